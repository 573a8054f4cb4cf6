"""Pydantic models for the TrenchBot advanced bundle analysis payload.

Token quantities arrive in raw (smallest-unit) form. Each payload type
declares the fields that hold token quantities in ``TOKEN_QUANTITY_FIELDS``;
``rescaled()`` divides exactly those by 10^decimals and nothing else.
Percentages, wallet counts and SOL amounts are never rescaled.
"""

from decimal import Decimal
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, model_validator

from src.parsers.units import scale_amount


class _TrenchModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    TOKEN_QUANTITY_FIELDS: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # TrenchBot sends null for "not computed", fall back to field defaults
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data

    def _scaled_fields(self, decimals: int) -> dict[str, Decimal]:
        return {
            name: scale_amount(getattr(self, name), decimals)
            for name in self.TOKEN_QUANTITY_FIELDS
        }


class TrenchWalletInfo(_TrenchModel):
    TOKEN_QUANTITY_FIELDS: ClassVar[tuple[str, ...]] = ("tokens",)

    sol: float = 0.0
    sol_percentage: float = 0.0
    token_percentage: float = 0.0
    tokens: Decimal = Decimal("0")

    def rescaled(self, decimals: int) -> "TrenchWalletInfo":
        return self.model_copy(update=self._scaled_fields(decimals))


class TrenchBundleClassification(_TrenchModel):
    category_breakdown: dict[str, int] = {}
    copytrading_groups: dict[str, str] = {}
    is_likely_bundle: bool = False
    primary_category: str = ""


class TrenchFundingAnalysis(_TrenchModel):
    cex_funded_percentage: float | None = None
    funding_trust_score: float | None = None
    mixer_funded_percentage: float | None = None


class TrenchBundle(_TrenchModel):
    TOKEN_QUANTITY_FIELDS: ClassVar[tuple[str, ...]] = ("total_tokens", "holding_amount")

    bundle_analysis: TrenchBundleClassification | None = None
    funding_analysis: TrenchFundingAnalysis | None = None
    holding_amount: Decimal = Decimal("0")
    holding_percentage: float = 0.0
    slot: int | None = None
    token_percentage: float = 0.0
    total_sol: float = 0.0
    total_tokens: Decimal = Decimal("0")
    unique_wallets: int = 0
    wallet_categories: dict[str, str] = {}
    wallet_info: dict[str, TrenchWalletInfo] = {}

    def rescaled(self, decimals: int) -> "TrenchBundle":
        update: dict[str, Any] = self._scaled_fields(decimals)
        update["wallet_info"] = {
            address: info.rescaled(decimals) for address, info in self.wallet_info.items()
        }
        return self.model_copy(update=update)


class TrenchPreviousCoin(_TrenchModel):
    created_at: int = 0
    is_rug: bool = False
    market_cap: float = 0.0
    mint: str = ""
    symbol: str = ""


class TrenchCreatorHistory(_TrenchModel):
    average_market_cap: float = 0.0
    high_risk: bool = False
    previous_coins: list[TrenchPreviousCoin] = []
    recent_rugs: int = 0
    rug_count: int = 0
    rug_percentage: float = 0.0
    total_coins_created: int = 0


class TrenchCreatorAnalysis(_TrenchModel):
    address: str = ""
    current_holdings: Decimal = Decimal("0")
    history: TrenchCreatorHistory | None = None
    holding_percentage: float = 0.0
    risk_level: str = ""
    warning_flags: list[str | None] = []


class TrenchBundleReport(_TrenchModel):
    """Top-level bundle analysis for one mint."""

    TOKEN_QUANTITY_FIELDS: ClassVar[tuple[str, ...]] = (
        "total_tokens_bundled",
        "distributed_amount",
        "total_holding_amount",
    )

    bonded: bool = False
    bundles: dict[str, TrenchBundle] = {}
    creator_analysis: TrenchCreatorAnalysis | None = None
    distributed_amount: Decimal = Decimal("0")
    distributed_percentage: float = 0.0
    distributed_wallets: int = 0
    ticker: str = ""
    total_bundles: int = 0
    total_holding_amount: Decimal = Decimal("0")
    total_holding_percentage: float = 0.0
    total_percentage_bundled: float = 0.0
    total_sol_spent: float = 0.0
    total_tokens_bundled: Decimal = Decimal("0")

    def rescaled(self, decimals: int) -> "TrenchBundleReport":
        update: dict[str, Any] = self._scaled_fields(decimals)
        update["bundles"] = {
            bundle_id: bundle.rescaled(decimals) for bundle_id, bundle in self.bundles.items()
        }
        return self.model_copy(update=update)
