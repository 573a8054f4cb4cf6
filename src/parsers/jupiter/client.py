"""Jupiter API client: batch USD pricing and the verified token list.

Pricing via /price/v2 (max 100 ids per call), token metadata via the
verified token list. Free tier: 1 RPS, optional x-api-key header.
"""

import asyncio
from decimal import Decimal, InvalidOperation

import httpx
from loguru import logger
from pydantic import ValidationError

from src.parsers.errors import JupiterError
from src.parsers.jupiter.models import JupiterPrice, JupiterToken
from src.parsers.rate_limiter import RateLimiter

PRICE_URL = "https://api.jup.ag/price/v2"
TOKENS_URL = "https://tokens.jup.ag/tokens"
PRICE_BATCH_SIZE = 100
MAX_RETRIES = 2
RETRY_DELAYS = [1.0, 3.0]


class JupiterClient:
    """Async HTTP client for Jupiter price and token APIs."""

    def __init__(self, api_key: str = "", max_rps: float = 1.0, timeout: float = 10.0) -> None:
        self._api_key = api_key
        self._rate_limiter = RateLimiter(max_rps)
        headers: dict[str, str] = {}
        if api_key:
            headers["x-api-key"] = api_key
        self._client = httpx.AsyncClient(timeout=timeout, headers=headers)

    async def close(self) -> None:
        await self._client.aclose()

    async def get_prices(self, mints: list[str]) -> dict[str, JupiterPrice]:
        """Fetch USD prices for many mints. Mints Jupiter does not price are absent.

        Raises JupiterError if a batch cannot be fetched at all.
        """
        unique = list(dict.fromkeys(m for m in mints if m))
        results: dict[str, JupiterPrice] = {}
        for start in range(0, len(unique), PRICE_BATCH_SIZE):
            batch = unique[start:start + PRICE_BATCH_SIZE]
            data = await self._get_json(PRICE_URL, {"ids": ",".join(batch)})
            if not isinstance(data, dict):
                raise JupiterError("price response is not an object")
            for mint in batch:
                price = _parse_price(data, mint)
                if price:
                    results[mint] = price
        return results

    async def get_verified_tokens(self) -> list[JupiterToken]:
        """Fetch the verified token list (name/symbol/decimals/logo per mint)."""
        data = await self._get_json(TOKENS_URL, {"tags": "verified"})
        if not isinstance(data, list):
            raise JupiterError("token list response is not an array")

        tokens: list[JupiterToken] = []
        for raw in data:
            try:
                tokens.append(JupiterToken.model_validate(raw))
            except ValidationError:
                continue  # skip malformed entries, keep the rest of the list
        logger.debug(f"[JUPITER] Token list loaded: {len(tokens)} verified tokens")
        return tokens

    async def _get_json(self, url: str, params: dict[str, str]) -> object:
        for attempt in range(MAX_RETRIES + 1):
            try:
                await self._rate_limiter.acquire()
                resp = await self._client.get(url, params=params)

                if resp.status_code == 429 and attempt < MAX_RETRIES:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    logger.debug(f"[JUPITER] Rate limited, waiting {delay}s")
                    await asyncio.sleep(delay)
                    continue
                if resp.status_code != 200:
                    raise JupiterError(f"HTTP {resp.status_code} for {url}")
                return resp.json()

            except httpx.TimeoutException as e:
                raise JupiterError(f"timeout for {url}") from e
            except httpx.ConnectError as e:
                if attempt < MAX_RETRIES:
                    await asyncio.sleep(RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)])
                else:
                    logger.warning(f"[JUPITER] Failed after {MAX_RETRIES + 1} attempts: {e}")
                    raise JupiterError(f"connection failed for {url}") from e
            except httpx.HTTPError as e:
                logger.warning(f"[JUPITER] Transport error for {url}: {e!r}")
                raise JupiterError(f"transport error for {url}: {type(e).__name__}") from e
            except ValueError as e:
                raise JupiterError(f"invalid JSON from {url}") from e

        raise JupiterError(f"rate limited for {url}")


def _parse_price(data: dict, mint: str) -> JupiterPrice | None:
    """Parse Jupiter price response for a single mint."""
    by_mint = data.get("data")
    if by_mint is None:
        return None
    if not isinstance(by_mint, dict):
        raise JupiterError("price response \"data\" is not an object")
    token_data = by_mint.get(mint)
    if not isinstance(token_data, dict):
        return None

    price_str = token_data.get("price")
    if price_str is None:
        return None
    try:
        price = Decimal(str(price_str))
    except InvalidOperation:
        return None
    if not price.is_finite() or price < 0:
        return None

    return JupiterPrice(
        id=mint,
        mint_symbol=token_data.get("mintSymbol", "") or "",
        vs_token=token_data.get("vsToken", "") or "",
        vs_token_symbol=token_data.get("vsTokenSymbol", "") or "",
        price=price,
    )
