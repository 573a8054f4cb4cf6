"""Pydantic models for Jupiter Price API and token list responses."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class JupiterPrice(BaseModel):
    """Price data for a single token from Jupiter."""

    id: str  # mint address
    mint_symbol: str = ""
    vs_token: str = ""
    vs_token_symbol: str = ""
    price: Decimal | None = None


class JupiterToken(BaseModel):
    """Entry of the verified token list."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    address: str
    name: str = ""
    symbol: str = ""
    decimals: int | None = None
    logo_uri: str | None = Field(default=None, alias="logoURI")
    tags: list[str] = []
