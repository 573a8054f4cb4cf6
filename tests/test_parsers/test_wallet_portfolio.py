"""Tests for the wallet portfolio fetcher."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from src.parsers.errors import HeliusError, InvalidAddressError
from src.parsers.helius.client import HeliusClient
from src.parsers.jupiter.client import JupiterClient
from src.parsers.jupiter.models import JupiterToken
from src.parsers.price_enricher import PRICE_SOURCE_INDEXER, PRICE_SOURCE_JUPITER, PriceEnricher
from src.parsers.units import SOL_MINT
from src.parsers.wallet_portfolio import (
    TokenHolding,
    fetch_wallet_portfolio,
    format_amount,
)
from tests.factories import MINT_A, MINT_B, WALLET, asset_page, fungible_asset, make_response


class TestTokenHolding:
    def test_derived_fields(self) -> None:
        holding = TokenHolding(mint="M", raw_amount="1234500", decimals=6, price=Decimal("2"))
        assert holding.ui_amount == Decimal("1.2345")
        assert holding.usd_value == Decimal("2.4690")

    def test_dust_boundary_is_inclusive(self) -> None:
        below = TokenHolding(mint="M", raw_amount="9999", decimals=6, price=Decimal("1"))
        at = TokenHolding(mint="M", raw_amount="10000", decimals=6, price=Decimal("1"))
        assert below.usd_value == Decimal("0.009999")
        assert below.is_dust
        assert not at.is_dust

    def test_negative_price_rejected(self) -> None:
        with pytest.raises(ValueError):
            TokenHolding(mint="M", raw_amount="1", decimals=0, price=Decimal("-1"))

    def test_label_fallback(self) -> None:
        assert TokenHolding(mint="M", raw_amount="1", decimals=0, symbol="S").label == "S"
        assert TokenHolding(mint="M", raw_amount="1", decimals=0).label == "M"


class TestFetchWalletPortfolio:
    @pytest.mark.asyncio
    async def test_native_included_and_dust_dropped(
        self, helius: MagicMock, enricher: MagicMock
    ) -> None:
        """2.5 SOL at $100 plus a $0.005 token → $250.00 and no top holdings."""
        helius.search_assets.return_value = asset_page(
            [fungible_asset(MINT_A, 5000, 6, symbol="DUST", price="1")],
            lamports=2_500_000_000,
            price_per_sol="100",
        )

        portfolio = await fetch_wallet_portfolio(helius, enricher, WALLET)

        assert portfolio.ok
        assert portfolio.native.sol == Decimal("2.5")
        assert portfolio.native.usd == Decimal("250")
        assert portfolio.total_usd == Decimal("250")
        assert portfolio.top_holdings == ()
        assert portfolio.tokens == ()
        assert "**$250.00**" in portfolio.text
        assert "No nonzero token holdings found." in portfolio.text

    @pytest.mark.asyncio
    async def test_dust_threshold_in_pipeline(self, helius: MagicMock, enricher: MagicMock) -> None:
        helius.search_assets.return_value = asset_page([
            fungible_asset(MINT_A, 9999, 6, symbol="BELOW", price="1"),
            fungible_asset(MINT_B, 10000, 6, symbol="AT", price="1"),
        ])
        portfolio = await fetch_wallet_portfolio(helius, enricher, WALLET)
        assert [h.symbol for h in portfolio.top_holdings] == ["AT"]

    @pytest.mark.asyncio
    async def test_equal_values_keep_indexer_order(
        self, helius: MagicMock, enricher: MagicMock
    ) -> None:
        helius.search_assets.return_value = asset_page([
            fungible_asset("MintSmall", 1, 0, symbol="SMALL", price="1"),
            fungible_asset("MintFirst", 5, 0, symbol="FIRST", price="2"),
            fungible_asset("MintSecond", 10, 0, symbol="SECOND", price="1"),
        ])
        portfolio = await fetch_wallet_portfolio(helius, enricher, WALLET)
        assert [h.symbol for h in portfolio.tokens] == ["FIRST", "SECOND", "SMALL"]

    @pytest.mark.asyncio
    async def test_top_holdings_capped_total_uncapped(
        self, helius: MagicMock, enricher: MagicMock
    ) -> None:
        helius.search_assets.return_value = asset_page(
            [fungible_asset(f"Mint{i:02d}", 1, 0, symbol=f"T{i}", price="1") for i in range(12)],
            lamports=1_000_000_000,
            price_per_sol="10",
        )
        portfolio = await fetch_wallet_portfolio(helius, enricher, WALLET)

        assert len(portfolio.top_holdings) == 10
        assert len(portfolio.tokens) == 12
        assert portfolio.total_usd == Decimal("22")
        assert "The wallet holds a total of 10 tokens." in portfolio.text

    @pytest.mark.asyncio
    async def test_price_source_precedence(self, helius: MagicMock, enricher: MagicMock) -> None:
        """Jupiter wins for SPL mints, the indexer price wins for SOL."""
        helius.search_assets.return_value = asset_page(
            [fungible_asset(MINT_A, 1_000_000, 6, symbol="USDC", price="0.99")],
            lamports=1_000_000_000,
            price_per_sol="100",
        )
        enricher.get_prices.return_value = {MINT_A: Decimal("1"), SOL_MINT: Decimal("90")}

        portfolio = await fetch_wallet_portfolio(helius, enricher, WALLET)

        assert portfolio.native.price == Decimal("100")
        assert portfolio.native.price_source == PRICE_SOURCE_INDEXER
        usdc = portfolio.tokens[0]
        assert usdc.price == Decimal("1")
        assert usdc.price_source == PRICE_SOURCE_JUPITER

    @pytest.mark.asyncio
    async def test_unpriced_token_is_zero_not_error(
        self, helius: MagicMock, enricher: MagicMock
    ) -> None:
        helius.search_assets.return_value = asset_page([fungible_asset(MINT_A, 10**9, 6, symbol="X")])
        portfolio = await fetch_wallet_portfolio(helius, enricher, WALLET)
        assert portfolio.ok
        assert portfolio.tokens == ()  # $0 is dust
        assert portfolio.total_usd == Decimal("0")

    @pytest.mark.asyncio
    async def test_unknown_decimals_warns(self, helius: MagicMock, enricher: MagicMock) -> None:
        helius.search_assets.return_value = asset_page(
            [fungible_asset(MINT_A, 5, None, symbol="ODD", price="1")]
        )
        portfolio = await fetch_wallet_portfolio(helius, enricher, WALLET)

        holding = portfolio.tokens[0]
        assert holding.decimals == 0
        assert holding.decimals_assumed
        assert holding.ui_amount == Decimal("5")
        assert portfolio.warnings == ("ODD: decimals unknown, assumed 0",)
        assert "ODD: decimals unknown, assumed 0" in portfolio.text

    @pytest.mark.asyncio
    async def test_token_list_supplies_decimals_and_names(
        self, helius: MagicMock, enricher: MagicMock
    ) -> None:
        helius.search_assets.return_value = asset_page(
            [fungible_asset(MINT_B, 500_000, None, price="1")]
        )
        enricher.get_token_list.return_value = {
            MINT_B: JupiterToken(address=MINT_B, name="Bonk", symbol="BONK", decimals=5)
        }
        portfolio = await fetch_wallet_portfolio(helius, enricher, WALLET)

        holding = portfolio.tokens[0]
        assert holding.ui_amount == Decimal("5")
        assert holding.symbol == "BONK"
        assert portfolio.warnings == ()

    @pytest.mark.asyncio
    async def test_indexer_failure_degrades(self, helius: MagicMock, enricher: MagicMock) -> None:
        helius.search_assets.side_effect = HeliusError("searchAssets timed out")
        portfolio = await fetch_wallet_portfolio(helius, enricher, WALLET)

        assert not portfolio.ok
        assert portfolio.total_usd == Decimal("0")
        assert portfolio.text.startswith("Error fetching wallet data:")
        enricher.get_prices.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_wallet_raises(self, helius: MagicMock, enricher: MagicMock) -> None:
        with pytest.raises(InvalidAddressError):
            await fetch_wallet_portfolio(helius, enricher, "abc")
        helius.search_assets.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_fungible_items_ignored(self, helius: MagicMock, enricher: MagicMock) -> None:
        nft = fungible_asset(MINT_A, 1, 0, symbol="NFT", price="5")
        nft["interface"] = "V1_NFT"
        helius.search_assets.return_value = asset_page([nft])
        portfolio = await fetch_wallet_portfolio(helius, enricher, WALLET)
        assert portfolio.tokens == ()


def test_format_amount() -> None:
    assert format_amount(Decimal("1234.500000000")) == "1,234.5"
    assert format_amount(Decimal("2")) == "2"
    assert format_amount(Decimal("0.000000001")) == "0.000000001"


@pytest.mark.asyncio
async def test_prices_and_token_list_requested_once() -> None:
    helius = MagicMock()
    helius.search_assets = AsyncMock(return_value=asset_page([fungible_asset(MINT_A, 1, 0)]))
    enricher = MagicMock()
    enricher.get_prices = AsyncMock(return_value={})
    enricher.get_token_list = AsyncMock(return_value={})

    await fetch_wallet_portfolio(helius, enricher, WALLET)

    enricher.get_prices.assert_awaited_once()
    requested = enricher.get_prices.await_args.args[0]
    assert set(requested) == {MINT_A, SOL_MINT}
    enricher.get_token_list.assert_awaited_once()


class TestTransportFailures:
    """Dropped connections inside the real clients degrade instead of raising."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        httpx.ReadError("connection reset"),
        httpx.RemoteProtocolError("Server disconnected without sending a response."),
    ])
    async def test_indexer_disconnect(self, error: httpx.HTTPError, enricher: MagicMock) -> None:
        helius = HeliusClient(api_key="k", max_rps=100.0)

        with patch.object(helius._client, "post", new_callable=AsyncMock, side_effect=error):
            portfolio = await fetch_wallet_portfolio(helius, enricher, WALLET)

        assert not portfolio.ok
        assert portfolio.total_usd == Decimal("0")
        assert portfolio.tokens == ()
        assert type(error).__name__ in portfolio.text

    @pytest.mark.asyncio
    async def test_price_feed_disconnect_keeps_indexer_prices(self) -> None:
        helius = HeliusClient(api_key="k", max_rps=100.0)
        jupiter = JupiterClient(max_rps=100.0)
        page = {
            "jsonrpc": "2.0",
            "id": 1,
            "result": {
                "items": [fungible_asset(MINT_A, 2_000_000, 6, symbol="AAA", price="3")],
                "nativeBalance": {"lamports": 1_000_000_000, "price_per_sol": 100},
            },
        }

        with patch.object(helius._client, "post", new_callable=AsyncMock,
                          return_value=make_response(payload=page)), \
                patch.object(jupiter._client, "get", new_callable=AsyncMock,
                             side_effect=httpx.ReadError("connection reset")):
            portfolio = await fetch_wallet_portfolio(helius, PriceEnricher(jupiter), WALLET)

        assert portfolio.ok
        assert portfolio.total_usd == Decimal("106")
        assert portfolio.tokens[0].price_source == PRICE_SOURCE_INDEXER
