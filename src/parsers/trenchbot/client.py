"""TrenchBot client: advanced bundle (coordinated buy cluster) analysis.

Works for pump.fun launches; other mints usually come back empty or 404.
"""

import asyncio

import httpx
from loguru import logger
from pydantic import ValidationError

from src.parsers.errors import TrenchBotError
from src.parsers.rate_limiter import RateLimiter
from src.parsers.trenchbot.models import TrenchBundleReport

BASE_URL = "https://trench.bot/api/bundle/bundle_advanced"
MAX_RETRIES = 2
RETRY_DELAYS = [2.0, 5.0]


class TrenchBotClient:
    """Async HTTP client for the TrenchBot bundle API."""

    def __init__(self, base_url: str = BASE_URL, max_rps: float = 2.0, timeout: float = 15.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._rate_limiter = RateLimiter(max_rps)
        self._client = httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def get_bundle_analysis(self, mint: str) -> TrenchBundleReport | None:
        """Fetch the raw (not decimal-adjusted) bundle report for a mint.

        Returns None when TrenchBot has no data for the mint.
        Raises TrenchBotError on transport errors or an unexpected payload.
        """
        url = f"{self._base_url}/{mint}"

        for attempt in range(MAX_RETRIES + 1):
            try:
                await self._rate_limiter.acquire()
                resp = await self._client.get(url)

                if resp.status_code == 429 and attempt < MAX_RETRIES:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    logger.debug(f"[TRENCH] Rate limited, waiting {delay}s")
                    await asyncio.sleep(delay)
                    continue
                if resp.status_code == 404:
                    logger.debug(f"[TRENCH] No data for {mint[:12]}")
                    return None
                if resp.status_code != 200:
                    raise TrenchBotError(f"HTTP {resp.status_code} for {mint[:12]}")

                if not resp.content:
                    return None
                data = resp.json()
                if not data:
                    return None
                return TrenchBundleReport.model_validate(data)

            except httpx.TimeoutException as e:
                raise TrenchBotError(f"timeout for {mint[:12]}") from e
            except httpx.ConnectError as e:
                if attempt < MAX_RETRIES:
                    await asyncio.sleep(RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)])
                else:
                    logger.warning(f"[TRENCH] Failed for {mint[:12]}: {e}")
                    raise TrenchBotError(f"connection failed for {mint[:12]}") from e
            except httpx.HTTPError as e:
                logger.warning(f"[TRENCH] Transport error for {mint[:12]}: {e!r}")
                raise TrenchBotError(f"transport error for {mint[:12]}: {type(e).__name__}") from e
            except ValidationError as e:
                raise TrenchBotError(f"unexpected payload for {mint[:12]}: {e.error_count()} errors") from e
            except ValueError as e:
                raise TrenchBotError(f"invalid JSON for {mint[:12]}") from e

        raise TrenchBotError(f"rate limited for {mint[:12]}")
