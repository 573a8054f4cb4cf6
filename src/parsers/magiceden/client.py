"""Magic Eden client: NFT mint → collection symbol → collection stats.

Short timeouts and no retries on timeout: the NFT aggregator calls this
once per collection, sequentially, and treats a slow answer as "no floor".
"""

import asyncio

import httpx
from loguru import logger
from pydantic import ValidationError

from src.parsers.errors import MagicEdenError
from src.parsers.magiceden.models import MagicEdenCollectionStats
from src.parsers.rate_limiter import RateLimiter

BASE_URL = "https://api-mainnet.magiceden.dev/v2"
USER_AGENT = "Mozilla/5.0 (compatible; wallet-radar/0.1)"
MAX_RETRIES = 1
RETRY_DELAYS = [2.0]


class MagicEdenClient:
    """Async HTTP client for the public Magic Eden v2 API."""

    def __init__(self, base_url: str = BASE_URL, max_rps: float = 2.0, timeout: float = 5.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._rate_limiter = RateLimiter(max_rps)
        self._client = httpx.AsyncClient(
            timeout=timeout, headers={"User-Agent": USER_AGENT}
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def get_token_collection(self, mint: str) -> str | None:
        """Resolve an NFT mint to its Magic Eden collection symbol."""
        data = await self._get_json(f"{self._base_url}/tokens/{mint}")
        if not isinstance(data, dict):
            return None
        collection = data.get("collection")
        return collection if isinstance(collection, str) and collection else None

    async def get_collection_stats(self, symbol: str) -> MagicEdenCollectionStats | None:
        """Fetch floor price / listed count / volume for a collection symbol."""
        data = await self._get_json(f"{self._base_url}/collections/{symbol}/stats")
        if not isinstance(data, dict) or not data:
            return None
        try:
            return MagicEdenCollectionStats.model_validate(data)
        except ValidationError as e:
            raise MagicEdenError(f"unexpected stats payload for {symbol}") from e

    async def _get_json(self, url: str) -> object | None:
        """GET a JSON document. None on 404; MagicEdenError on other failures."""
        for attempt in range(MAX_RETRIES + 1):
            try:
                await self._rate_limiter.acquire()
                resp = await self._client.get(url)

                if resp.status_code == 429 and attempt < MAX_RETRIES:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    logger.debug(f"[MAGICEDEN] Rate limited, waiting {delay}s")
                    await asyncio.sleep(delay)
                    continue
                if resp.status_code == 404:
                    return None
                if resp.status_code != 200:
                    raise MagicEdenError(f"HTTP {resp.status_code} for {url}")
                return resp.json()

            except httpx.TimeoutException as e:
                raise MagicEdenError(f"timeout for {url}") from e
            except httpx.ConnectError as e:
                raise MagicEdenError(f"connection failed for {url}") from e
            except httpx.HTTPError as e:
                raise MagicEdenError(f"transport error for {url}: {type(e).__name__}") from e
            except ValueError as e:
                raise MagicEdenError(f"invalid JSON from {url}") from e

        raise MagicEdenError(f"rate limited for {url}")
