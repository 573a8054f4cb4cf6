"""Payload builders shared by the test modules."""

from typing import Any
from unittest.mock import MagicMock

from src.parsers.helius.models import HeliusAssetPage

WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
MINT_A = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
MINT_B = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
MINT_C = "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN"
MINT_D = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"


def make_response(status_code: int = 200, payload: Any = None, content: bytes = b"{}") -> MagicMock:
    """httpx.Response stand-in for ``client._client.get/post`` mocks."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.content = content
    resp.json.return_value = payload
    return resp


def fungible_asset(
    mint: str,
    balance: int | str,
    decimals: int | None,
    symbol: str = "",
    price: str | None = None,
) -> dict[str, Any]:
    token_info: dict[str, Any] = {"balance": balance, "symbol": symbol}
    if decimals is not None:
        token_info["decimals"] = decimals
    if price is not None:
        token_info["price_info"] = {"price_per_token": price, "currency": "USDC"}
    return {
        "id": mint,
        "interface": "FungibleToken",
        "content": {"metadata": {"name": symbol, "symbol": symbol}},
        "token_info": token_info,
    }


def nft_asset(
    asset_id: str,
    name: str,
    collection: str | None,
    *,
    interface: str = "V1_NFT",
    compressed: bool = False,
) -> dict[str, Any]:
    grouping = []
    if collection is not None:
        grouping.append({
            "group_key": "collection",
            "group_value": f"{collection}-key",
            "collection_metadata": {"name": collection, "symbol": collection[:4].upper()},
        })
    return {
        "id": asset_id,
        "interface": interface,
        "content": {"metadata": {"name": name}, "links": {"image": f"https://img/{asset_id}.png"}},
        "grouping": grouping,
        "compression": {"compressed": compressed},
    }


def asset_page(
    items: list[dict[str, Any]],
    lamports: int = 0,
    price_per_sol: str | None = None,
) -> HeliusAssetPage:
    return HeliusAssetPage.model_validate({
        "total": len(items),
        "items": items,
        "nativeBalance": {"lamports": lamports, "price_per_sol": price_per_sol},
    })
