"""HTTP tests for the analysis API with mocked upstream services."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from src.api.app import API_VERSION, create_app
from src.parsers.jupiter.models import JupiterToken
from src.parsers.trenchbot.models import TrenchBundleReport
from src.services import AnalysisServices
from tests.factories import MINT_A, WALLET, asset_page, fungible_asset, nft_asset


@pytest.fixture
def services(helius: MagicMock, enricher: MagicMock, magiceden: MagicMock, trench: MagicMock) -> AnalysisServices:
    helius.search_assets.return_value = asset_page(
        [fungible_asset(MINT_A, 3_000_000, 6, symbol="AAA", price="2")],
        lamports=1_000_000_000,
        price_per_sol="150",
    )
    enricher.token_cache.is_fresh.return_value = True
    enricher.search_tokens = AsyncMock(return_value=[
        JupiterToken(address=MINT_A, name="Bonk", symbol="BONK", decimals=5),
    ])
    return AnalysisServices(
        helius=helius,
        jupiter=MagicMock(),
        trenchbot=trench,
        magiceden=magiceden,
        enricher=enricher,
    )


@pytest.fixture
def client(services: AnalysisServices) -> TestClient:
    return TestClient(create_app(services=services))


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        resp = client.get("/api/v1/health")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["version"] == API_VERSION
        assert body["token_list_cached"] is True


class TestPortfolioEndpoint:
    def test_portfolio(self, client: TestClient) -> None:
        resp = client.get(f"/api/v1/wallets/{WALLET}/portfolio")

        assert resp.status_code == 200
        body = resp.json()
        assert body["wallet_address"] == WALLET
        assert Decimal(body["sol"]["usd"]) == Decimal("150")
        assert Decimal(body["total_usd"]) == Decimal("156")
        assert [t["symbol"] for t in body["tokens"]] == ["AAA"]
        assert body["tokens"][0]["raw_amount"] == "3000000"
        assert body["error"] is None

    def test_invalid_wallet(self, client: TestClient, helius: MagicMock) -> None:
        resp = client.get("/api/v1/wallets/xyz/portfolio")

        assert resp.status_code == 422
        assert "walletAddress" in resp.json()["detail"]
        helius.search_assets.assert_not_awaited()


class TestNFTEndpoint:
    def test_nfts(self, client: TestClient, helius: MagicMock) -> None:
        helius.search_assets.return_value = asset_page([nft_asset("n-1", "Bear #1", "Okay Bears")])

        resp = client.get(f"/api/v1/wallets/{WALLET}/nfts")

        assert resp.status_code == 200
        body = resp.json()
        assert body["total_nfts"] == 1
        collection = body["collections"][0]
        assert collection["name"] == "Okay Bears"
        assert collection["floor_price"] is None
        assert collection["estimated_value"] is None


class TestTokenEndpoints:
    def test_search(self, client: TestClient, enricher: MagicMock) -> None:
        resp = client.get("/api/v1/tokens/search", params={"q": "bonk", "limit": 5})

        assert resp.status_code == 200
        assert resp.json()[0]["symbol"] == "BONK"
        enricher.search_tokens.assert_awaited_once_with("bonk")

    def test_search_requires_query(self, client: TestClient) -> None:
        assert client.get("/api/v1/tokens/search").status_code == 422

    def test_bundles(self, client: TestClient, trench: MagicMock) -> None:
        trench.get_bundle_analysis.return_value = TrenchBundleReport.model_validate(
            {"ticker": "aaa", "total_bundles": 3, "total_percentage_bundled": 7.5}
        )

        resp = client.get(f"/api/v1/tokens/{MINT_A}/bundles")

        assert resp.status_code == 200
        body = resp.json()
        assert body["is_bundled"] is True
        assert body["total_bundles"] == 3
        assert body["error"] is None

    def test_bundles_no_data(self, client: TestClient) -> None:
        resp = client.get(f"/api/v1/tokens/{MINT_A}/bundles")

        body = resp.json()
        assert body["is_bundled"] is False
        assert "pump.fun" in body["text"]
        assert body["error"] is None


class TestAnalysisEndpoint:
    def test_full_analysis(self, client: TestClient) -> None:
        resp = client.get(f"/api/v1/wallets/{WALLET}/analysis")

        assert resp.status_code == 200
        body = resp.json()
        assert len(body["run_id"]) == 32
        assert body["wallet_address"] == WALLET
        assert body["risk_score"] == 0
        assert body["report"].startswith("# 📊 Comprehensive Portfolio Analysis")
        assert [s["step_id"] for s in body["steps"]][0] == "get-portfolio"
        assert {s["status"] for s in body["steps"]} == {"success"}

    def test_analysis_invalid_wallet(self, client: TestClient) -> None:
        assert client.get("/api/v1/wallets/bad/analysis").status_code == 422
