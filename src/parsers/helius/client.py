"""Helius API client: DAS asset search and parsed mint accounts."""

import asyncio
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from src.parsers.errors import HeliusError
from src.parsers.helius.models import HeliusAssetPage, HeliusMintInfo
from src.parsers.rate_limiter import RateLimiter

MAX_RETRIES = 2
RETRY_DELAYS = [1.0, 3.0]
SEARCH_PAGE_LIMIT = 1000


class HeliusClient:
    """Async JSON-RPC client for the Helius RPC / DAS endpoint."""

    def __init__(
        self,
        api_key: str,
        rpc_url: str = "",
        max_rps: float = 10.0,
        timeout: float = 15.0,
    ) -> None:
        self._api_key = api_key
        self._rpc_url = rpc_url or f"https://mainnet.helius-rpc.com/?api-key={api_key}"
        self._rate_limiter = RateLimiter(max_rps)
        self._client = httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def search_assets(
        self,
        owner: str,
        *,
        token_type: str = "fungible",
        show_native_balance: bool = False,
        show_collection_metadata: bool = False,
        timeout: float | None = None,
    ) -> HeliusAssetPage:
        """Search assets owned by a wallet (DAS searchAssets).

        token_type: "fungible", "nonFungible", "all", ...
        Raises HeliusError on transport failure or an unexpected payload.
        """
        params = {
            "ownerAddress": owner,
            "tokenType": token_type,
            "limit": SEARCH_PAGE_LIMIT,
            "displayOptions": {
                "showNativeBalance": show_native_balance,
                "showInscription": False,
                "showCollectionMetadata": show_collection_metadata,
            },
        }
        result = await self._rpc("searchAssets", params, timeout=timeout)
        if not isinstance(result, dict):
            raise HeliusError("searchAssets returned no result")
        try:
            return HeliusAssetPage.model_validate(result)
        except ValidationError as e:
            raise HeliusError(f"searchAssets unexpected shape: {e.error_count()} errors") from e

    async def get_mint_info(self, mint: str) -> HeliusMintInfo | None:
        """Fetch a parsed SPL mint account. None if the account is not a mint."""
        result = await self._rpc(
            "getAccountInfo", [mint, {"encoding": "jsonParsed"}]
        )
        value = result.get("value") if isinstance(result, dict) else None
        if not value:
            return None
        if not isinstance(value, dict):
            raise HeliusError(f"getAccountInfo unexpected shape for {mint[:12]}")

        data = value.get("data")
        parsed = data.get("parsed") if isinstance(data, dict) else None
        if not isinstance(parsed, dict) or parsed.get("type") not in (None, "mint"):
            return None

        info = parsed.get("info") or {}
        if not isinstance(info, dict):
            raise HeliusError(f"getAccountInfo unexpected shape for {mint[:12]}")
        if info.get("decimals") is None:
            return None
        try:
            return HeliusMintInfo.model_validate(info)
        except ValidationError as e:
            raise HeliusError(f"getAccountInfo unexpected shape for {mint[:12]}") from e

    async def _rpc(
        self, method: str, params: Any, *, timeout: float | None = None
    ) -> Any:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        request_timeout = timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT

        for attempt in range(MAX_RETRIES + 1):
            try:
                await self._rate_limiter.acquire()
                resp = await self._client.post(
                    self._rpc_url, json=payload, timeout=request_timeout
                )

                if resp.status_code == 429 and attempt < MAX_RETRIES:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    logger.debug(f"[HELIUS] {method} rate limited, waiting {delay}s")
                    await asyncio.sleep(delay)
                    continue
                if resp.status_code != 200:
                    raise HeliusError(f"{method} HTTP {resp.status_code}")

                data = resp.json()
                if not isinstance(data, dict):
                    raise HeliusError(f"{method} returned non-object JSON")
                if "error" in data:
                    raise HeliusError(f"{method} RPC error: {data['error']}")
                return data.get("result")

            except httpx.TimeoutException as e:
                # Timeouts are terminal: the caller degrades instead of waiting longer
                raise HeliusError(f"{method} timed out") from e
            except httpx.ConnectError as e:
                if attempt < MAX_RETRIES:
                    await asyncio.sleep(RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)])
                else:
                    logger.warning(f"[HELIUS] {method} failed: {e}")
                    raise HeliusError(f"{method} connection failed") from e
            except httpx.HTTPError as e:
                logger.warning(f"[HELIUS] {method} transport error: {e!r}")
                raise HeliusError(f"{method} transport error: {type(e).__name__}") from e
            except ValueError as e:
                raise HeliusError(f"{method} returned invalid JSON") from e

        raise HeliusError(f"{method} rate limited after {MAX_RETRIES + 1} attempts")
