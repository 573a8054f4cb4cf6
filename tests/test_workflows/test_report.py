"""Tests for risk scoring, recommendations and the Markdown report."""

from datetime import datetime, timezone
from decimal import Decimal

from src.parsers.nft_portfolio import NFTPortfolio
from src.parsers.wallet_portfolio import NativeBalance, TokenHolding, WalletPortfolio
from src.workflows.report import (
    REC_DIVERSIFY_SOL,
    REC_HEALTHY,
    REC_MONITOR_FLOORS,
    REC_REVIEW_BUNDLED,
    BundleAnalysis,
    TokenBundleVerdict,
    recommendations_for,
    risk_score,
    synthesize_report,
)
from tests.factories import MINT_A, MINT_B, WALLET

NOW = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _portfolio(sol: str = "2.5", usd: str = "250") -> WalletPortfolio:
    token = TokenHolding(mint=MINT_A, raw_amount="5000000", decimals=6, price=Decimal("2"), symbol="AAA")
    return WalletPortfolio(
        wallet_address=WALLET,
        native=NativeBalance(lamports=int(Decimal(sol) * 10**9), sol=Decimal(sol), usd=Decimal(usd)),
        tokens=(token,),
        top_holdings=(token,),
        total_usd=Decimal(usd) + token.usd_value,
    )


def _analysis(*bundled: bool) -> BundleAnalysis:
    verdicts = tuple(
        TokenBundleVerdict(mint=f"Mint{i}", symbol=f"T{i}", usd_value=Decimal("1"), is_bundled=b, bundle_count=int(b))
        for i, b in enumerate(bundled)
    )
    return BundleAnalysis(verdicts=verdicts, summary="Bundle Analysis Summary:")


class TestRiskScore:
    def test_linear_then_clamped(self) -> None:
        assert risk_score(0) == 0
        assert risk_score(1) == 25
        assert risk_score(3) == 75
        assert risk_score(4) == 100
        assert risk_score(9) == 100


class TestRecommendations:
    def test_healthy_default(self) -> None:
        assert recommendations_for(0, Decimal("250"), 3) == [REC_HEALTHY]

    def test_all_rules_in_order(self) -> None:
        recs = recommendations_for(2, Decimal("1000.01"), 51)
        assert recs == [REC_REVIEW_BUNDLED, REC_DIVERSIFY_SOL, REC_MONITOR_FLOORS]

    def test_thresholds_are_strict(self) -> None:
        assert recommendations_for(0, Decimal("1000"), 50) == [REC_HEALTHY]

    def test_healthy_never_mixed_in(self) -> None:
        assert recommendations_for(0, Decimal("0"), 80) == [REC_MONITOR_FLOORS]


class TestSynthesizeReport:
    def test_report_fields(self) -> None:
        nfts = NFTPortfolio(
            wallet_address=WALLET, total_nfts=4, total_collections=2,
            estimated_portfolio_value=Decimal("6"),
        )
        report = synthesize_report(WALLET, _portfolio(), _analysis(True, False, False), nfts, now=NOW)

        assert report.risk_score == 25
        assert report.recommendations == (REC_REVIEW_BUNDLED,)
        assert report.generated_at == NOW
        text = report.report
        assert text.startswith("# 📊 Comprehensive Portfolio Analysis")
        assert f"**Wallet:** `{WALLET}`" in text
        assert "- **SOL Balance:** 2.5000 SOL ($250.00)" in text
        assert "- **Token Count:** 1 tokens" in text
        assert "- **Total Portfolio Value:** $260.00" in text
        assert "- **Risk Score:** 25/100" in text
        assert "- **Bundled Tokens:** 1/3 analyzed" in text
        assert "- **Total NFTs:** 4" in text
        assert "- **Estimated NFT Value:** 6.00 SOL" in text
        assert f"- {REC_REVIEW_BUNDLED}" in text
        assert text.endswith("*Analysis completed at 2025-01-02T03:04:05+00:00*")

    def test_large_holdings(self) -> None:
        nfts = NFTPortfolio(wallet_address=WALLET, total_nfts=120, total_collections=9)
        report = synthesize_report(WALLET, _portfolio("20", "2400"), _analysis(), nfts, now=NOW)

        assert report.risk_score == 0
        assert report.recommendations == (REC_DIVERSIFY_SOL, REC_MONITOR_FLOORS)
        assert "$2,400.00" in report.report

    def test_degraded_inputs_still_render(self) -> None:
        portfolio = WalletPortfolio(wallet_address=WALLET, native=NativeBalance(), error="down")
        nfts = NFTPortfolio(wallet_address=WALLET, error="down")
        report = synthesize_report(WALLET, portfolio, BundleAnalysis(), nfts, now=NOW)

        assert report.risk_score == 0
        assert report.recommendations == (REC_HEALTHY,)
        assert "- **Bundled Tokens:** 0/0 analyzed" in report.report

    def test_default_timestamp_is_utc(self) -> None:
        nfts = NFTPortfolio(wallet_address=WALLET)
        report = synthesize_report(WALLET, _portfolio(), _analysis(), nfts)
        assert report.generated_at.tzinfo is timezone.utc


def test_bundled_property() -> None:
    analysis = BundleAnalysis(verdicts=(
        TokenBundleVerdict(mint=MINT_A, symbol="A", usd_value=Decimal("1"), is_bundled=True),
        TokenBundleVerdict(mint=MINT_B, symbol="B", usd_value=Decimal("1")),
    ))
    assert [v.symbol for v in analysis.bundled] == ["A"]
