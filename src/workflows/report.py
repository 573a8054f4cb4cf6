"""Report synthesis: scores bundle risk and renders the final Markdown report."""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from src.parsers.nft_portfolio import NFTPortfolio
from src.parsers.wallet_portfolio import WalletPortfolio

RISK_PER_BUNDLED_TOKEN = 25
MAX_RISK_SCORE = 100
LARGE_SOL_HOLDING_USD = Decimal("1000")
LARGE_NFT_COLLECTION = 50

REC_REVIEW_BUNDLED = "⚠️ Consider reviewing bundled tokens for potential risks"
REC_DIVERSIFY_SOL = "💰 Consider diversifying large SOL holdings"
REC_MONITOR_FLOORS = "🎨 Large NFT collection - consider floor price monitoring"
REC_HEALTHY = "✅ Portfolio looks healthy - continue monitoring"


@dataclass(frozen=True)
class TokenBundleVerdict:
    mint: str
    symbol: str
    usd_value: Decimal
    is_bundled: bool = False
    bundle_count: int = 0
    risk_level: str = "Unknown"
    failed: bool = False


@dataclass(frozen=True)
class BundleAnalysis:
    verdicts: tuple[TokenBundleVerdict, ...] = ()
    summary: str = ""

    @property
    def bundled(self) -> tuple[TokenBundleVerdict, ...]:
        return tuple(v for v in self.verdicts if v.is_bundled)


@dataclass(frozen=True)
class PortfolioReport:
    wallet_address: str
    report: str
    risk_score: int
    recommendations: tuple[str, ...]
    portfolio: WalletPortfolio
    bundle_analysis: BundleAnalysis
    nfts: NFTPortfolio
    generated_at: datetime


def risk_score(bundled_count: int) -> int:
    return min(MAX_RISK_SCORE, RISK_PER_BUNDLED_TOKEN * max(bundled_count, 0))


def recommendations_for(
    bundled_count: int,
    native_usd: Decimal,
    total_nfts: int,
) -> list[str]:
    """Each rule fires independently; the order is fixed."""
    recs: list[str] = []
    if bundled_count > 0:
        recs.append(REC_REVIEW_BUNDLED)
    if native_usd > LARGE_SOL_HOLDING_USD:
        recs.append(REC_DIVERSIFY_SOL)
    if total_nfts > LARGE_NFT_COLLECTION:
        recs.append(REC_MONITOR_FLOORS)
    if not recs:
        recs.append(REC_HEALTHY)
    return recs


def synthesize_report(
    wallet_address: str,
    portfolio: WalletPortfolio,
    bundle_analysis: BundleAnalysis,
    nfts: NFTPortfolio,
    *,
    now: datetime | None = None,
) -> PortfolioReport:
    generated_at = now or datetime.now(timezone.utc)
    bundled = len(bundle_analysis.bundled)
    score = risk_score(bundled)
    recs = recommendations_for(bundled, portfolio.native.usd, nfts.total_nfts)

    text = render_report(
        wallet_address, portfolio, bundle_analysis, nfts, score, recs, generated_at
    )
    return PortfolioReport(
        wallet_address=wallet_address,
        report=text,
        risk_score=score,
        recommendations=tuple(recs),
        portfolio=portfolio,
        bundle_analysis=bundle_analysis,
        nfts=nfts,
        generated_at=generated_at,
    )


def render_report(
    wallet_address: str,
    portfolio: WalletPortfolio,
    bundle_analysis: BundleAnalysis,
    nfts: NFTPortfolio,
    score: int,
    recommendations: list[str],
    generated_at: datetime,
) -> str:
    native = portfolio.native
    lines = [
        "# 📊 Comprehensive Portfolio Analysis",
        "",
        f"**Wallet:** `{wallet_address}`",
        "",
        "## 💰 Token Holdings",
        f"- **SOL Balance:** {native.sol:.4f} SOL (${native.usd:,.2f})",
        f"- **Token Count:** {len(portfolio.tokens)} tokens",
        f"- **Total Portfolio Value:** ${portfolio.total_usd:,.2f}",
        "",
        "## 🚨 Risk Analysis",
        f"- **Risk Score:** {score}/100",
        f"- **Bundled Tokens:** {len(bundle_analysis.bundled)}/{len(bundle_analysis.verdicts)} analyzed",
        "",
        bundle_analysis.summary,
        "",
        "## 🎨 NFT Collection",
        f"- **Total NFTs:** {nfts.total_nfts}",
        f"- **Collections:** {nfts.total_collections}",
        f"- **Estimated NFT Value:** {nfts.estimated_portfolio_value:.2f} SOL",
        "",
        "## 📋 Recommendations",
        *(f"- {r}" for r in recommendations),
        "",
        "---",
        f"*Analysis completed at {generated_at.isoformat()}*",
    ]
    return "\n".join(lines)
