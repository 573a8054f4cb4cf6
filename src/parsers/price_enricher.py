"""USD price enrichment for wallet holdings.

Two price sources:
- Jupiter batch price lookup: authoritative for every SPL mint
- Helius-reported price: authoritative for native SOL (nativeBalance.price_per_sol)

Whichever source is not authoritative for a mint is only a fallback. A mint
that neither source prices gets price 0 (usd value 0) instead of an error.

Token metadata comes from the verified Jupiter token list, held in an
explicit TTL cache owned by the enricher.
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from decimal import Decimal

from loguru import logger

from src.parsers.errors import UpstreamError
from src.parsers.jupiter.client import JupiterClient
from src.parsers.jupiter.models import JupiterToken
from src.parsers.units import SOL_MINT

TOKEN_LIST_TTL_SEC = 300.0

PRICE_SOURCE_JUPITER = "jupiter"
PRICE_SOURCE_INDEXER = "helius"
PRICE_SOURCE_NONE = "none"


@dataclass(frozen=True)
class PriceQuote:
    price: Decimal
    source: str  # "jupiter" | "helius" | "none"

    @property
    def known(self) -> bool:
        return self.source != PRICE_SOURCE_NONE


class TokenListCache:
    """Time-bounded cache of the verified token list.

    Refreshed lazily on the first read after expiry. Two concurrent readers
    may both refresh; the load is idempotent so the last write wins. A
    failed refresh keeps serving the previous list (or an empty one).
    """

    def __init__(
        self,
        loader: Callable[[], Awaitable[list[JupiterToken]]],
        ttl: float = TOKEN_LIST_TTL_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl = ttl
        self._clock = clock
        self._value: dict[str, JupiterToken] | None = None
        self._timestamp = 0.0

    @property
    def ttl(self) -> float:
        return self._ttl

    def is_fresh(self) -> bool:
        return self._value is not None and self._clock() - self._timestamp < self._ttl

    def invalidate(self) -> None:
        self._timestamp = 0.0
        self._value = None

    async def get(self) -> dict[str, JupiterToken]:
        """Token list indexed by mint address."""
        if self.is_fresh():
            return self._value  # type: ignore[return-value]

        try:
            tokens = await self._loader()
        except UpstreamError as e:
            logger.warning(f"[PRICES] Token list refresh failed: {e}")
            return self._value or {}

        self._value = {t.address: t for t in tokens}
        self._timestamp = self._clock()
        return self._value


class PriceEnricher:
    """Batch price lookup + token metadata for the portfolio fetcher."""

    def __init__(self, jupiter: JupiterClient, token_cache: TokenListCache | None = None) -> None:
        self._jupiter = jupiter
        self._token_cache = token_cache or TokenListCache(jupiter.get_verified_tokens)

    @property
    def token_cache(self) -> TokenListCache:
        return self._token_cache

    async def get_prices(self, mints: list[str]) -> dict[str, Decimal]:
        """mint → USD unit price. Partial: unpriced mints are simply absent."""
        if not mints:
            return {}
        try:
            quotes = await self._jupiter.get_prices(mints)
        except UpstreamError as e:
            logger.warning(f"[PRICES] Batch price lookup failed for {len(mints)} mints: {e}")
            return {}
        return {mint: q.price for mint, q in quotes.items() if q.price is not None}

    async def get_token_list(self) -> dict[str, JupiterToken]:
        return await self._token_cache.get()

    async def token_info(self, mint: str) -> JupiterToken | None:
        return (await self._token_cache.get()).get(mint)

    async def search_tokens(self, query: str) -> list[JupiterToken]:
        """Case-insensitive search over the verified list; exact matches first.

        Matches name/symbol substrings or an exact mint address. A leading
        "$" is ignored so "$BONK" finds BONK.
        """
        term = query.strip().lstrip("$").lower()
        if not term:
            return []

        matches = [
            t for t in (await self._token_cache.get()).values()
            if t.name and t.symbol and (
                term in t.name.lower()
                or term in t.symbol.lower()
                or t.address.lower() == term
            )
        ]

        def _is_exact(t: JupiterToken) -> bool:
            return term in (t.symbol.lower(), t.name.lower(), t.address.lower())

        # stable: keeps list order within the exact / partial groups
        return sorted(matches, key=lambda t: not _is_exact(t))

    @staticmethod
    def resolve_price(
        mint: str,
        batch_prices: dict[str, Decimal],
        indexer_price: Decimal | None,
    ) -> PriceQuote:
        """Pick a unit price for one mint from the two sources."""
        batch_price = batch_prices.get(mint)
        if mint == SOL_MINT:
            ordered = ((indexer_price, PRICE_SOURCE_INDEXER), (batch_price, PRICE_SOURCE_JUPITER))
        else:
            ordered = ((batch_price, PRICE_SOURCE_JUPITER), (indexer_price, PRICE_SOURCE_INDEXER))

        for price, source in ordered:
            if price is not None and price > 0:
                return PriceQuote(price=price, source=source)
        return PriceQuote(price=Decimal("0"), source=PRICE_SOURCE_NONE)
