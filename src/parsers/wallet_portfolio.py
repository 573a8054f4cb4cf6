"""Wallet portfolio: native SOL + fungible holdings, normalized and valued.

Pipeline for one wallet:
1. One Helius searchAssets call (fungible tokens + native balance)
2. Native SOL injected as a synthetic holding so it goes through the same
   decimals / price path as every SPL token
3. Decimals resolved (indexer → Jupiter token list → default), amounts normalized
4. Priced (Jupiter batch for SPL mints, Helius price for SOL)
5. Dust (< $0.01) dropped, stable sort by USD value descending
6. "Top holdings" view capped at 10; the total uses every non-dust holding

An indexer failure never raises: the caller gets a zero-valued portfolio
whose text explains what went wrong.
"""

import asyncio
from dataclasses import dataclass, field
from decimal import Decimal

from loguru import logger

from src.parsers.errors import UpstreamError, validate_address
from src.parsers.helius.client import HeliusClient
from src.parsers.helius.models import HeliusAsset, HeliusNativeBalance
from src.parsers.price_enricher import PRICE_SOURCE_NONE, PriceEnricher
from src.parsers.units import SOL_DECIMALS, SOL_MINT, normalize, resolve_decimals

DUST_THRESHOLD_USD = Decimal("0.01")
TOP_HOLDINGS_LIMIT = 10
FUNGIBLE_INTERFACES = frozenset({"FungibleToken", "FungibleAsset"})

SOL_NAME = "Solana"
SOL_SYMBOL = "SOL"
SOL_LOGO = (
    "https://raw.githubusercontent.com/solana-labs/token-list/main/assets/mainnet/"
    "So11111111111111111111111111111111111111112/logo.png"
)


@dataclass(frozen=True)
class TokenHolding:
    """One fungible balance. ``ui_amount`` and ``usd_value`` are always derived."""

    mint: str
    raw_amount: str  # integer string, never a float
    decimals: int
    price: Decimal = Decimal("0")
    price_source: str = PRICE_SOURCE_NONE
    name: str | None = None
    symbol: str | None = None
    logo: str | None = None
    decimals_assumed: bool = False
    ui_amount: Decimal = field(init=False)
    usd_value: Decimal = field(init=False)

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValueError(f"negative price for {self.mint}")
        ui_amount = normalize(self.raw_amount, self.decimals)
        object.__setattr__(self, "ui_amount", ui_amount)
        object.__setattr__(self, "usd_value", max(ui_amount * self.price, Decimal("0")))

    @property
    def label(self) -> str:
        return self.name or self.symbol or self.mint

    @property
    def is_dust(self) -> bool:
        return self.usd_value < DUST_THRESHOLD_USD


@dataclass(frozen=True)
class NativeBalance:
    lamports: int = 0
    sol: Decimal = Decimal("0")
    price: Decimal = Decimal("0")
    usd: Decimal = Decimal("0")
    price_source: str = PRICE_SOURCE_NONE


@dataclass(frozen=True)
class WalletPortfolio:
    """Normalized, valued holdings of one wallet."""

    wallet_address: str
    native: NativeBalance
    tokens: tuple[TokenHolding, ...] = ()  # every non-dust SPL holding, ranked
    top_holdings: tuple[TokenHolding, ...] = ()  # first TOP_HOLDINGS_LIMIT of tokens
    total_usd: Decimal = Decimal("0")
    text: str = ""
    warnings: tuple[str, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class _Entry:
    """Pre-normalization view of one asset (SPL token or the native balance)."""

    mint: str
    raw_amount: str
    reported_decimals: int | None
    indexer_price: Decimal | None
    name: str | None = None
    symbol: str | None = None
    logo: str | None = None
    is_native: bool = False


def empty_portfolio(wallet_address: str, reason: str) -> WalletPortfolio:
    return WalletPortfolio(
        wallet_address=wallet_address,
        native=NativeBalance(),
        text=reason,
        error=reason,
    )


async def fetch_wallet_portfolio(
    helius: HeliusClient,
    enricher: PriceEnricher,
    wallet_address: str,
) -> WalletPortfolio:
    """Fetch and value every fungible holding of a wallet.

    Raises InvalidAddressError for a missing/malformed address; every
    upstream failure degrades instead of raising.
    """
    wallet = validate_address(wallet_address, kind="walletAddress")

    try:
        page = await helius.search_assets(
            wallet, token_type="fungible", show_native_balance=True
        )
    except UpstreamError as e:
        logger.warning(f"[PORTFOLIO] Asset fetch failed for {wallet[:12]}: {e}")
        return empty_portfolio(wallet, f"Error fetching wallet data: {e}")

    entries = [
        _entry_from_asset(item)
        for item in page.items
        if item.interface in FUNGIBLE_INTERFACES
    ]
    entries.append(_native_entry(page.native_balance or HeliusNativeBalance()))

    batch_prices, token_list = await asyncio.gather(
        enricher.get_prices([e.mint for e in entries]),
        enricher.get_token_list(),
    )

    holdings: list[TokenHolding] = []
    native_holding: TokenHolding | None = None
    warnings: list[str] = []

    for entry in entries:
        listed = token_list.get(entry.mint)
        decimals, assumed = resolve_decimals(
            entry.mint, entry.reported_decimals, listed.decimals if listed else None
        )
        quote = PriceEnricher.resolve_price(entry.mint, batch_prices, entry.indexer_price)
        try:
            holding = TokenHolding(
                mint=entry.mint,
                raw_amount=entry.raw_amount,
                decimals=decimals,
                price=quote.price,
                price_source=quote.source,
                name=(listed.name if listed and listed.name else None) or entry.name,
                symbol=(listed.symbol if listed and listed.symbol else None) or entry.symbol,
                logo=(listed.logo_uri if listed else None) or entry.logo,
                decimals_assumed=assumed,
            )
        except ValueError as e:
            logger.debug(f"[PORTFOLIO] Skipping {entry.mint[:12]}: {e}")
            warnings.append(f"{entry.mint}: unreadable balance, skipped")
            continue

        if assumed:
            warnings.append(f"{holding.symbol or holding.mint}: decimals unknown, assumed 0")

        if entry.is_native:
            native_holding = holding
        else:
            holdings.append(holding)

    # sorted() is stable, so equal values keep their indexer order
    ranked = sorted(
        (h for h in holdings if not h.is_dust),
        key=lambda h: h.usd_value,
        reverse=True,
    )
    native = _native_balance(native_holding)
    total_usd = native.usd + sum((h.usd_value for h in ranked), Decimal("0"))
    top = tuple(ranked[:TOP_HOLDINGS_LIMIT])

    logger.info(
        f"[PORTFOLIO] {wallet[:12]}: {len(ranked)} holdings "
        f"(dropped {len(holdings) - len(ranked)} dust), total ${total_usd:,.2f}"
    )

    return WalletPortfolio(
        wallet_address=wallet,
        native=native,
        tokens=tuple(ranked),
        top_holdings=top,
        total_usd=total_usd,
        text=render_portfolio_text(wallet, native, top, total_usd, warnings),
        warnings=tuple(warnings),
    )


def _entry_from_asset(item: HeliusAsset) -> _Entry:
    info = item.token_info
    metadata = item.content.metadata
    price_info = info.price_info if info else None
    return _Entry(
        mint=item.id,
        raw_amount=(info.balance if info and info.balance is not None else "0"),
        reported_decimals=info.decimals if info else None,
        indexer_price=price_info.price_per_token if price_info else None,
        name=metadata.name or None,
        symbol=metadata.symbol or (info.symbol if info else None) or None,
        logo=item.content.links.image or None,
    )


def _native_entry(native: HeliusNativeBalance) -> _Entry:
    return _Entry(
        mint=SOL_MINT,
        raw_amount=str(native.lamports),
        reported_decimals=SOL_DECIMALS,
        indexer_price=native.price_per_sol,
        name=SOL_NAME,
        symbol=SOL_SYMBOL,
        logo=SOL_LOGO,
        is_native=True,
    )


def _native_balance(holding: TokenHolding | None) -> NativeBalance:
    if holding is None:
        return NativeBalance()
    return NativeBalance(
        lamports=int(holding.raw_amount),
        sol=holding.ui_amount,
        price=holding.price,
        usd=holding.usd_value,
        price_source=holding.price_source,
    )


def format_amount(value: Decimal, max_places: int = 9) -> str:
    """Thousands separators, up to ``max_places`` decimals, no trailing zeros."""
    text = f"{value:,.{max_places}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def render_portfolio_text(
    wallet: str,
    native: NativeBalance,
    top: tuple[TokenHolding, ...],
    total_usd: Decimal,
    warnings: list[str] | tuple[str, ...] = (),
) -> str:
    """Markdown summary consumed verbatim by the conversational layer."""
    lines = [
        f"Here is the summary of wallet `{wallet}`:",
        "",
        "💰 **Wallet Portfolio Summary**",
        "",
        f"The current portfolio value of the wallet is **${total_usd:,.2f}**.",
        "",
        f"🌞 **SOL Balance:** {format_amount(native.sol)} SOL (${native.usd:,.2f})",
        "",
    ]

    if top:
        lines += [
            "Here are the top holdings:",
            "",
            "| # | Token | Symbol | Amount | Value (USD) |",
            "|---|-------|--------|--------|-------------|",
        ]
        for idx, token in enumerate(top, start=1):
            lines.append(
                f"| {idx} | {token.label} | {token.symbol or ''} | "
                f"{format_amount(token.ui_amount, max(token.decimals, 2))} | ${token.usd_value:,.2f} |"
            )
        plural = "s" if len(top) > 1 else ""
        lines += ["", f"The wallet holds a total of {len(top)} token{plural}."]
    else:
        lines.append("No nonzero token holdings found.")

    if warnings:
        lines += ["", "⚠️ **Data warnings:**"]
        lines += [f"- {w}" for w in warnings]

    return "\n".join(lines)
