"""Pydantic models for Helius DAS (Digital Asset Standard) responses."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _DasModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class HeliusPriceInfo(_DasModel):
    """Per-token price reported by the indexer (USDC quote)."""

    price_per_token: Decimal | None = None
    total_price: Decimal | None = None
    currency: str = "USDC"


class HeliusTokenInfo(_DasModel):
    """Fungible balance block of a DAS asset."""

    balance: str | None = None  # raw integer amount, kept as string
    decimals: int | None = None
    symbol: str | None = None
    supply: str | None = None
    price_info: HeliusPriceInfo | None = None

    @field_validator("balance", "supply", mode="before")
    @classmethod
    def _int_to_str(cls, v: object) -> object:
        # DAS returns u64 balances as JSON numbers; keep the integer digits
        if isinstance(v, bool):
            return None
        if isinstance(v, int):
            return str(v)
        if isinstance(v, float) and v.is_integer():
            return str(int(v))
        return v


class HeliusCollectionMetadata(_DasModel):
    name: str | None = None
    symbol: str | None = None


class HeliusGrouping(_DasModel):
    group_key: str = ""
    group_value: str = ""
    collection_metadata: HeliusCollectionMetadata | None = None


class HeliusAssetMetadata(_DasModel):
    name: str | None = None
    symbol: str | None = None
    description: str | None = None


class HeliusAssetLinks(_DasModel):
    image: str | None = None
    external_url: str | None = None


class HeliusAssetContent(_DasModel):
    metadata: HeliusAssetMetadata = Field(default_factory=HeliusAssetMetadata)
    links: HeliusAssetLinks = Field(default_factory=HeliusAssetLinks)


class HeliusCompression(_DasModel):
    compressed: bool = False


class HeliusAsset(_DasModel):
    """One item of a searchAssets page (fungible token or NFT)."""

    id: str
    interface: str = ""  # "FungibleToken", "FungibleAsset", "V1_NFT", "ProgrammableNFT", ...
    content: HeliusAssetContent = Field(default_factory=HeliusAssetContent)
    grouping: list[HeliusGrouping] = []
    compression: HeliusCompression | None = None
    token_info: HeliusTokenInfo | None = None

    @property
    def is_compressed(self) -> bool:
        return bool(self.compression and self.compression.compressed)

    @property
    def collection_name(self) -> str | None:
        for group in self.grouping:
            if group.collection_metadata and group.collection_metadata.name:
                return group.collection_metadata.name
        return None

    @property
    def collection_symbol(self) -> str | None:
        for group in self.grouping:
            if group.collection_metadata and group.collection_metadata.symbol:
                return group.collection_metadata.symbol
        return None


class HeliusNativeBalance(_DasModel):
    """SOL balance block returned when showNativeBalance=true."""

    lamports: int = 0
    price_per_sol: Decimal | None = None
    total_price: Decimal | None = None


class HeliusAssetPage(_DasModel):
    total: int = 0
    items: list[HeliusAsset] = []
    native_balance: HeliusNativeBalance | None = Field(default=None, alias="nativeBalance")


class HeliusMintInfo(_DasModel):
    """Parsed SPL mint account (getAccountInfo jsonParsed)."""

    decimals: int
    supply: str = "0"
    mint_authority: str | None = Field(default=None, alias="mintAuthority")
    freeze_authority: str | None = Field(default=None, alias="freezeAuthority")
