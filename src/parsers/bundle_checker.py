"""Bundle risk analysis: coordinated-buy clusters for a single mint.

Detection is delegated to TrenchBot; this module normalizes its payload and
turns it into a verdict plus a fixed-structure Markdown report.

1. Fetch the raw cluster payload (no data → clean/unknown sentinel)
2. Fetch mint decimals from Helius (default 9 if unavailable)
3. Rescale the declared token-quantity fields by 10^decimals
4. Bundled iff total_bundles > 0 AND total_percentage_bundled > 0
5. Rank clusters by SOL spent (top 25 shown), wallets by SOL spent
6. Render the report

Failures never raise: the result has is_bundled=False and the reason in
``summary``.
"""

from dataclasses import dataclass, replace
from decimal import Decimal

from loguru import logger

from src.parsers.errors import UpstreamError, validate_address
from src.parsers.helius.client import HeliusClient
from src.parsers.trenchbot.client import TrenchBotClient
from src.parsers.trenchbot.models import (
    TrenchBundle,
    TrenchBundleReport,
    TrenchCreatorAnalysis,
)

DEFAULT_MINT_DECIMALS = 9  # pump.fun tokens use 6, but 9 is the SPL default
MAX_BUNDLES_SHOWN = 25
UNKNOWN = "Unknown"
NO_DATA_MESSAGE = "Unable to fetch bundle data. Please make sure this is a pump.fun token."
TRENCH_BUNDLES_URL = "https://trench.bot/bundles"
SOLSCAN_ACCOUNT_URL = "https://solscan.io/account"


@dataclass(frozen=True)
class WalletBuy:
    address: str
    tokens: Decimal  # decimal-adjusted
    token_percentage: float
    sol: float
    sol_percentage: float


@dataclass(frozen=True)
class FundingSignals:
    trust_score: float | None = None
    cex_funded_percentage: float | None = None
    mixer_funded_percentage: float | None = None


@dataclass(frozen=True)
class BundleRecord:
    """One cluster of wallets that bought the mint in a coordinated way."""

    bundle_id: str
    unique_wallets: int
    total_sol: float
    total_tokens: Decimal  # decimal-adjusted
    token_percentage: float  # % of supply bought
    holding_percentage: float  # % of supply still held
    holding_amount: Decimal  # decimal-adjusted
    slot: int | None = None
    primary_category: str = ""
    is_likely_bundle: bool = False
    funding: FundingSignals | None = None
    wallets: tuple[WalletBuy, ...] = ()  # ranked by SOL spent


@dataclass(frozen=True)
class CreatorProfile:
    address: str
    risk_level: str
    current_holdings: Decimal
    holding_percentage: float
    prior_tokens_created: int
    rug_count: int
    recent_rugs: int = 0
    warning_flags: tuple[str, ...] = ()
    has_history: bool = False


@dataclass(frozen=True)
class BundleCheckResult:
    mint: str
    is_bundled: bool = False
    ticker: str = UNKNOWN
    total_bundles: int = 0
    total_percentage_bundled: float = 0.0
    total_holding_percentage: float = 0.0
    total_holding_amount: Decimal = Decimal("0")
    total_sol_spent: float = 0.0
    bonded: bool = False
    creator_risk_level: str = UNKNOWN
    rug_count: int = 0
    summary: str = ""
    decimals: int | None = None
    creator: CreatorProfile | None = None
    bundles: tuple[BundleRecord, ...] = ()  # top MAX_BUNDLES_SHOWN, ranked
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def is_bundled(total_bundles: int, total_percentage_bundled: float) -> bool:
    """Both conditions required: zero-impact clusters do not count."""
    return total_bundles > 0 and total_percentage_bundled > 0


async def check_bundles(
    trench: TrenchBotClient,
    helius: HeliusClient,
    mint_address: str,
) -> BundleCheckResult:
    """Analyze a mint for bundled (coordinated) buying.

    Raises InvalidAddressError for a missing/malformed mint only.
    """
    mint = validate_address(mint_address, kind="mintAddress")

    try:
        raw = await trench.get_bundle_analysis(mint)
        if raw is None:
            return BundleCheckResult(mint=mint, summary=NO_DATA_MESSAGE)

        decimals = await _mint_decimals(helius, mint)
        return build_result(mint, raw.rescaled(decimals), decimals)

    except UpstreamError as e:
        logger.warning(f"[BUNDLES] Analysis failed for {mint[:12]}: {e}")
        return BundleCheckResult(
            mint=mint, summary=f"Error analyzing bundles: {e}", error=str(e)
        )
    except (ArithmeticError, ValueError) as e:
        logger.warning(f"[BUNDLES] Bad payload for {mint[:12]}: {e}")
        return BundleCheckResult(
            mint=mint, summary=f"Error analyzing bundles: {e}", error=str(e)
        )


async def _mint_decimals(helius: HeliusClient, mint: str) -> int:
    try:
        info = await helius.get_mint_info(mint)
    except UpstreamError as e:
        logger.debug(f"[BUNDLES] Mint info failed for {mint[:12]}, assuming 9: {e}")
        return DEFAULT_MINT_DECIMALS
    if info is None:
        return DEFAULT_MINT_DECIMALS
    return info.decimals


def build_result(mint: str, report: TrenchBundleReport, decimals: int) -> BundleCheckResult:
    """Turn a decimal-adjusted report into the verdict + rendered summary."""
    bundled = is_bundled(report.total_bundles, report.total_percentage_bundled)
    ranked = rank_bundles(report.bundles)
    creator = _creator_profile(report.creator_analysis)

    result = BundleCheckResult(
        mint=mint,
        is_bundled=bundled,
        ticker=report.ticker or UNKNOWN,
        total_bundles=report.total_bundles,
        total_percentage_bundled=report.total_percentage_bundled,
        total_holding_percentage=report.total_holding_percentage,
        total_holding_amount=report.total_holding_amount,
        total_sol_spent=report.total_sol_spent,
        bonded=report.bonded,
        creator_risk_level=(creator.risk_level if creator else UNKNOWN),
        rug_count=(creator.rug_count if creator else 0),
        decimals=decimals,
        creator=creator,
        bundles=tuple(ranked[:MAX_BUNDLES_SHOWN]),
    )
    summary = render_bundle_report(mint, report, result, all_bundles=ranked)

    if bundled:
        logger.info(
            f"[BUNDLES] {mint[:12]} bundled: {report.total_bundles} bundles, "
            f"{report.total_percentage_bundled:.2f}% of supply"
        )
    return _with_summary(result, summary)


def rank_bundles(bundles: dict[str, TrenchBundle]) -> list[BundleRecord]:
    """All clusters ranked by SOL spent (desc), each with wallets ranked by SOL."""
    records = [_bundle_record(bundle_id, b) for bundle_id, b in bundles.items()]
    return sorted(records, key=lambda r: r.total_sol, reverse=True)


def _bundle_record(bundle_id: str, bundle: TrenchBundle) -> BundleRecord:
    wallets = sorted(
        (
            WalletBuy(
                address=address,
                tokens=info.tokens,
                token_percentage=info.token_percentage,
                sol=info.sol,
                sol_percentage=info.sol_percentage,
            )
            for address, info in bundle.wallet_info.items()
        ),
        key=lambda w: w.sol,
        reverse=True,
    )
    classification = bundle.bundle_analysis
    funding = None
    if bundle.funding_analysis is not None:
        funding = FundingSignals(
            trust_score=bundle.funding_analysis.funding_trust_score,
            cex_funded_percentage=bundle.funding_analysis.cex_funded_percentage,
            mixer_funded_percentage=bundle.funding_analysis.mixer_funded_percentage,
        )
    return BundleRecord(
        bundle_id=bundle_id,
        unique_wallets=bundle.unique_wallets,
        total_sol=bundle.total_sol,
        total_tokens=bundle.total_tokens,
        token_percentage=bundle.token_percentage,
        holding_percentage=bundle.holding_percentage,
        holding_amount=bundle.holding_amount,
        slot=bundle.slot,
        primary_category=classification.primary_category if classification else "",
        is_likely_bundle=classification.is_likely_bundle if classification else False,
        funding=funding,
        wallets=tuple(wallets),
    )


def _creator_profile(creator: TrenchCreatorAnalysis | None) -> CreatorProfile | None:
    if creator is None:
        return None
    history = creator.history
    return CreatorProfile(
        address=creator.address,
        risk_level=creator.risk_level or UNKNOWN,
        current_holdings=creator.current_holdings,
        holding_percentage=creator.holding_percentage,
        prior_tokens_created=history.total_coins_created if history else 0,
        rug_count=history.rug_count if history else 0,
        recent_rugs=history.recent_rugs if history else 0,
        warning_flags=tuple(f for f in creator.warning_flags if f),
        has_history=history is not None,
    )


def _with_summary(result: BundleCheckResult, summary: str) -> BundleCheckResult:
    return replace(result, summary=summary)


# --- Rendering ---


def format_number(num: Decimal | float) -> str:
    """Compact K/M/B notation with 2 decimals."""
    value = float(num)
    if value >= 1e9:
        return f"{value / 1e9:.2f}B"
    if value >= 1e6:
        return f"{value / 1e6:.2f}M"
    if value >= 1e3:
        return f"{value / 1e3:.2f}K"
    return f"{value:.2f}"


def shorten_address(address: str) -> str:
    if len(address) <= 16:
        return address
    return f"{address[:8]}...{address[-8:]}"


def render_bundle_report(
    mint: str,
    report: TrenchBundleReport,
    result: BundleCheckResult,
    *,
    all_bundles: list[BundleRecord],
) -> str:
    """Fixed-structure Markdown report.

    Section order: summary table, creator table, per-bundle detail,
    distribution statistics, bundle characteristics, final assessment.
    Consumers pattern-match on these headings and table rows.
    """
    source_url = f"{TRENCH_BUNDLES_URL}/{mint}?all=true"
    held_tokens = format_number(report.total_holding_amount) if report.total_holding_amount else "N/A"
    status = "🚨 **BUNDLED**" if result.is_bundled else "✅ **Clean**"

    out = [
        f"# 🔍 Bundle Analysis: {(report.ticker or 'Token').upper()}",
        "",
        "## 📊 **Bundle Detection Summary**",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| **Bundle Status** | {status} |",
        f"| **Ticker** | {report.ticker or 'N/A'} |",
        f"| **Total Bundles** | {report.total_bundles} |",
        f"| **Total SOL Spent** | {report.total_sol_spent:.2f} SOL |",
        f"| **Bundled Total** | {report.total_percentage_bundled:.2f}% |",
        f"| **Held Percentage** | {report.total_holding_percentage:.2f}% |",
        f"| **Held Tokens** | {held_tokens} |",
        f"| **Bonded** | {'Yes' if report.bonded else 'No'} |",
        f"| **Source** | [TrenchRadar]({source_url}) |",
        "",
    ]

    creator = result.creator
    if creator is not None:
        out += [
            "## 👤 **Creator Analysis**",
            "",
            "| Metric | Value |",
            "|--------|-------|",
            f"| **Creator Address** | `{creator.address}` |",
            f"| **Risk Level** | {creator.risk_level} |",
            f"| **Current Holdings** | {format_number(creator.current_holdings)} tokens |",
        ]
        if creator.has_history:
            out += [
                f"| **Previous Coins Created** | {creator.prior_tokens_created} |",
                f"| **Rug History** | {creator.rug_count} rugs |",
                f"| **Current Holdings** | {creator.holding_percentage:.2f}% |",
            ]
        out.append("")

    if result.bundles:
        total = len(all_bundles)
        plural = "s" if total != 1 else ""
        out += [
            "## 🎯 **Individual Bundle Analysis**",
            "",
            f"Found **{total}** bundle{plural} (showing top {len(result.bundles)}):",
            "",
        ]
        for index, bundle in enumerate(result.bundles, start=1):
            out += _render_bundle(index, bundle)

    if report.distributed_wallets > 0:
        out += [
            "## 📈 **Distribution Statistics**",
            "",
            f"- **Distributed Amount:** {format_number(report.distributed_amount)} tokens "
            f"({report.distributed_percentage:.2f}% of supply)",
            f"- **Distributed to:** {report.distributed_wallets} wallets",
            f"- **Current Holdings in Bundles:** {format_number(report.total_holding_amount)} tokens "
            f"({report.total_holding_percentage:.2f}% of supply)",
            "",
        ]

    if all_bundles:
        # listing order as returned by TrenchBot, not the SOL ranking
        first = next(iter(report.bundles.values()), None)
        top_category = (
            first.bundle_analysis.primary_category if first and first.bundle_analysis else ""
        ) or "new wallet"
        sizes = [b.unique_wallets for b in all_bundles]
        shares = [b.token_percentage for b in all_bundles]
        out += [
            "## 🔍 **Bundle Characteristics**",
            "",
            f'- **Most bundles are characterized by:** "{top_category}" categories',
            f"- **Bundle sizes vary from:** 2-{max(sizes)} wallets per bundle",
            f"- **Individual bundle percentages range from:** ~{min(shares):.2f}% "
            f"to ~{max(shares):.2f}% of total supply",
            "",
        ]

    out += ["## 🎯 **Final Assessment**", ""]
    if result.is_bundled:
        verdict = (
            "⚠️ **This token shows clear signs of coordinated buying through multiple bundles, "
            f"with over {report.total_percentage_bundled:.2f}% of the tokens being involved "
            "in bundle transactions.** "
        )
        if result.rug_count > 0:
            verdict += (
                "While the creator's history shows low risk, the high percentage of bundled tokens "
                "suggests potential price manipulation risk. "
            )
        verdict += "Users should exercise caution when trading this token."
        out += [verdict, ""]
    else:
        out += ["✅ **Good News:** No significant bundling activity detected for this token.", ""]

    out += [
        f"**Mint Address:** `{mint}`",
        f"**Analysis Source:** [TrenchRadar Bundle Analysis]({source_url})",
    ]
    return "\n".join(out)


def _render_bundle(index: int, bundle: BundleRecord) -> list[str]:
    out = [
        f"### **Bundle {index}**",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| **Unique Wallets** | {bundle.unique_wallets} |",
        f"| **Total Tokens Bought** | {format_number(bundle.total_tokens)} |",
        f"| **Total SOL Spent** | {bundle.total_sol:.2f} SOL |",
        f"| **Token Percentage** | {bundle.token_percentage:.2f}% |",
        f"| **Holding Percentage** | {bundle.holding_percentage:.2f}% |",
        f"| **Holding Amount** | {format_number(bundle.holding_amount)} |",
    ]
    if bundle.slot:
        out.append(f"| **Slot** | {bundle.slot} |")
    out.append("")

    if bundle.primary_category or bundle.is_likely_bundle:
        out += [
            "**Bundle Analysis:**",
            f"- **Primary Category:** {bundle.primary_category or 'N/A'}",
            f"- **Likely Team Bundle:** {'Yes' if bundle.is_likely_bundle else 'No'}",
            "",
        ]

    if bundle.funding is not None:
        f = bundle.funding
        trust = f"{f.trust_score:g}" if f.trust_score is not None else "N/A"
        cex = f.cex_funded_percentage or 0.0
        mixer = f.mixer_funded_percentage or 0.0
        out += [
            f"**Funding Analysis:** Trust Score: {trust}/100, CEX: {cex:.2f}%, Mixer: {mixer:.2f}%",
            "",
        ]

    if bundle.wallets:
        out += ["**Wallet Information:**", ""]
        for wallet in bundle.wallets:
            out += [
                f"**{shorten_address(wallet.address)}** [📊]({SOLSCAN_ACCOUNT_URL}/{wallet.address})",
                f"- **Tokens Bought:** {format_number(wallet.tokens)} ({wallet.token_percentage:.2f}%)",
                f"- **SOL Spent:** {wallet.sol:.2f} SOL ({wallet.sol_percentage:.2f}%)",
                "",
            ]

    out += ["---", ""]
    return out
