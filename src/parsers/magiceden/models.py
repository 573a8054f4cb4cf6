"""Pydantic models for Magic Eden v2 REST responses."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.parsers.units import SOL_DECIMALS, scale_amount


class MagicEdenCollectionStats(BaseModel):
    """Collection stats; prices are in lamports as returned by the API."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    symbol: str = ""
    floor_price_lamports: Decimal | None = Field(default=None, alias="floorPrice")
    listed_count: int | None = Field(default=None, alias="listedCount")
    avg_price_24h_lamports: Decimal | None = Field(default=None, alias="avgPrice24hr")
    volume_all_lamports: Decimal | None = Field(default=None, alias="volumeAll")

    @property
    def floor_price_sol(self) -> Decimal | None:
        if self.floor_price_lamports is None:
            return None
        return scale_amount(self.floor_price_lamports, SOL_DECIMALS)

    @property
    def volume_all_sol(self) -> Decimal | None:
        if self.volume_all_lamports is None:
            return None
        return scale_amount(self.volume_all_lamports, SOL_DECIMALS)
