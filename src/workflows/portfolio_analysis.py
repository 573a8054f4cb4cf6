"""Portfolio-analysis workflow.

    get-portfolio
        ├── bundles: analyze-bundles  (top holdings, one at a time)
        └── nfts:    get-nfts         (wallet_address from the request)
    generate-report                   (join + portfolio + wallet_address)

Every analysis step degrades instead of failing the run: the report is
always produced, with sentinel values where a branch had no data.
"""

from dataclasses import dataclass

from loguru import logger

from src.parsers.bundle_checker import check_bundles
from src.parsers.errors import validate_address
from src.parsers.nft_portfolio import NFTPortfolio, empty_nft_portfolio, fetch_nft_portfolio
from src.parsers.wallet_portfolio import (
    TokenHolding,
    WalletPortfolio,
    empty_portfolio,
    fetch_wallet_portfolio,
)
from src.services import AnalysisServices
from src.workflows.engine import Step, Workflow, WorkflowRun
from src.workflows.report import (
    BundleAnalysis,
    PortfolioReport,
    TokenBundleVerdict,
    synthesize_report,
)

WORKFLOW_ID = "solana-portfolio-analysis"
DEFAULT_BUNDLE_TOP_N = 3
UNKNOWN_SYMBOL = "Unknown"


@dataclass(frozen=True)
class PortfolioAnalysisRequest:
    wallet_address: str

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "wallet_address", validate_address(self.wallet_address, kind="walletAddress")
        )


@dataclass(frozen=True)
class BundleStepInput:
    tokens: tuple[TokenHolding, ...]


@dataclass(frozen=True)
class NFTStepInput:
    wallet_address: str


@dataclass(frozen=True)
class ReportStepInput:
    wallet_address: str
    portfolio: WalletPortfolio
    bundles: BundleAnalysis
    nfts: NFTPortfolio


def build_portfolio_workflow(services: AnalysisServices) -> Workflow:
    top_n = services.bundle_top_n or DEFAULT_BUNDLE_TOP_N

    async def get_portfolio(request: PortfolioAnalysisRequest) -> WalletPortfolio:
        return await fetch_wallet_portfolio(services.helius, services.enricher, request.wallet_address)

    async def analyze_bundles(step_input: BundleStepInput) -> BundleAnalysis:
        # Sequential: each token costs a TrenchBot call and a Helius call
        verdicts = [await _bundle_verdict(services, token) for token in step_input.tokens[:top_n]]
        return BundleAnalysis(verdicts=tuple(verdicts), summary=render_bundle_summary(verdicts))

    async def get_nfts(step_input: NFTStepInput) -> NFTPortfolio:
        return await fetch_nft_portfolio(
            services.helius,
            services.magiceden,
            step_input.wallet_address,
            search_timeout=services.nft_search_timeout,
        )

    async def generate_report(step_input: ReportStepInput) -> PortfolioReport:
        return synthesize_report(
            step_input.wallet_address,
            step_input.portfolio,
            step_input.bundles,
            step_input.nfts,
        )

    def bundles_unavailable(error: BaseException, step_input: BundleStepInput) -> BundleAnalysis:
        verdicts = [_failed_verdict(t) for t in step_input.tokens[:top_n]]
        return BundleAnalysis(verdicts=tuple(verdicts), summary=render_bundle_summary(verdicts))

    return (
        Workflow(WORKFLOW_ID, PortfolioAnalysisRequest, PortfolioReport)
        .then(Step(
            id="get-portfolio",
            description="Get wallet's SOL balance and token holdings",
            input_type=PortfolioAnalysisRequest,
            output_type=WalletPortfolio,
            run=get_portfolio,
            fallback=lambda e, req: empty_portfolio(req.wallet_address, f"Error fetching wallet data: {e}"),
        ))
        .parallel(
            bundles=Step(
                id="analyze-bundles",
                description="Check top tokens for bundle activity",
                input_type=BundleStepInput,
                output_type=BundleAnalysis,
                run=analyze_bundles,
                fallback=bundles_unavailable,
            ),
            nfts=Step(
                id="get-nfts",
                description="Get wallet's NFT collection",
                input_type=NFTStepInput,
                output_type=NFTPortfolio,
                run=get_nfts,
                forward=("wallet_address",),
                fallback=lambda e, inp: empty_nft_portfolio(
                    inp.wallet_address, f"Error fetching NFT portfolio: {e}"
                ),
            ),
        )
        .then(Step(
            id="generate-report",
            description="Generate comprehensive portfolio analysis report",
            input_type=ReportStepInput,
            output_type=PortfolioReport,
            run=generate_report,
            forward=("wallet_address",),
            needs={"portfolio": "get-portfolio"},
        ))
    )


async def run_portfolio_analysis(services: AnalysisServices, wallet_address: str) -> WorkflowRun:
    """Run the full analysis; raises InvalidAddressError for a bad address."""
    request = PortfolioAnalysisRequest(wallet_address)
    run = await build_portfolio_workflow(services).run(request)
    if run.degraded:
        failed = [r.step_id for r in run.steps if r.error]
        logger.warning(f"[WORKFLOW] {request.wallet_address[:12]} degraded steps: {failed}")
    return run


async def analyze_wallet(services: AnalysisServices, wallet_address: str) -> PortfolioReport:
    run = await run_portfolio_analysis(services, wallet_address)
    return run.output


async def _bundle_verdict(services: AnalysisServices, token: TokenHolding) -> TokenBundleVerdict:
    try:
        result = await check_bundles(services.trenchbot, services.helius, token.mint)
    except ValueError as e:
        logger.debug(f"[BUNDLES] Skipping {token.mint[:12]}: {e}")
        return _failed_verdict(token)

    if not result.ok:
        return _failed_verdict(token)
    return TokenBundleVerdict(
        mint=token.mint,
        symbol=token.symbol or UNKNOWN_SYMBOL,
        usd_value=token.usd_value,
        is_bundled=result.is_bundled,
        bundle_count=result.total_bundles,
        risk_level=result.creator_risk_level,
    )


def _failed_verdict(token: TokenHolding) -> TokenBundleVerdict:
    return TokenBundleVerdict(
        mint=token.mint,
        symbol=token.symbol or UNKNOWN_SYMBOL,
        usd_value=token.usd_value,
        failed=True,
    )


def render_bundle_summary(verdicts: list[TokenBundleVerdict]) -> str:
    lines = ["Bundle Analysis Summary:", ""]
    for v in verdicts:
        if v.failed:
            lines.append(f"{v.symbol}: ❌ Analysis failed")
        else:
            status = "🚨 BUNDLED" if v.is_bundled else "✅ Clean"
            lines.append(f"{v.symbol}: {status} ({v.bundle_count} bundles)")
    return "\n".join(lines)
