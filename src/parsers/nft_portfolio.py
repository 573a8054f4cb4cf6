"""NFT portfolio: a wallet's regular NFTs grouped by collection, with floors.

Only uncompressed V1_NFT / ProgrammableNFT assets count. Compressed NFTs
are almost always airdrop spam and fungible tokens belong to the wallet
portfolio, so both are excluded.

Floor prices come from Magic Eden: mint of the first item → collection
symbol → collection stats. One lookup per collection, strictly sequential
to stay under Magic Eden's public rate limit. A failed lookup leaves that
collection without a floor; the others are unaffected.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from loguru import logger

from src.parsers.errors import UpstreamError, validate_address
from src.parsers.helius.client import HeliusClient
from src.parsers.helius.models import HeliusAsset
from src.parsers.magiceden.client import MagicEdenClient

NFT_INTERFACES = frozenset({"V1_NFT", "ProgrammableNFT"})
UNCATEGORIZED = "Uncategorized"
UNNAMED_NFT = "Unnamed NFT"
MAX_SAMPLE_ITEMS = 5
MAX_TEXT_SAMPLE_ITEMS = 3
MAX_TEXT_DESCRIPTION_LEN = 80
NFT_SEARCH_TIMEOUT_SEC = 30.0


@dataclass(frozen=True)
class NFTItem:
    id: str
    name: str
    symbol: str = ""
    description: str = ""
    image: str = ""
    external_url: str = ""


@dataclass(frozen=True)
class NFTCollection:
    """NFTs of one collection. Unknown floor → floor and value are None, not 0."""

    name: str
    item_count: int
    symbol: str = ""
    floor_price: Decimal | None = None  # SOL
    listed_count: int | None = None
    marketplace_symbol: str | None = None
    sample_items: tuple[NFTItem, ...] = ()
    lookup_error: str | None = None
    estimated_value: Decimal | None = field(init=False)

    def __post_init__(self) -> None:
        value = None if self.floor_price is None else self.floor_price * self.item_count
        object.__setattr__(self, "estimated_value", value)

    @property
    def ranking_value(self) -> Decimal:
        return self.estimated_value if self.estimated_value is not None else Decimal("0")


@dataclass(frozen=True)
class NFTPortfolio:
    wallet_address: str
    collections: tuple[NFTCollection, ...] = ()
    total_nfts: int = 0
    total_collections: int = 0
    estimated_portfolio_value: Decimal = Decimal("0")  # sum of known values only, SOL
    text: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class _FloorLookup:
    marketplace_symbol: str | None = None
    floor_price: Decimal | None = None
    listed_count: int | None = None
    error: str | None = None


def empty_nft_portfolio(wallet_address: str, reason: str) -> NFTPortfolio:
    return NFTPortfolio(wallet_address=wallet_address, text=reason, error=reason)


async def fetch_nft_portfolio(
    helius: HeliusClient,
    magiceden: MagicEdenClient,
    wallet_address: str,
    *,
    search_timeout: float = NFT_SEARCH_TIMEOUT_SEC,
) -> NFTPortfolio:
    """Group a wallet's NFTs by collection and estimate value from floors.

    Raises InvalidAddressError for a missing/malformed address; upstream
    failures degrade to an empty result or a collection without a floor.
    """
    wallet = validate_address(wallet_address, kind="walletAddress")

    try:
        page = await helius.search_assets(
            wallet,
            token_type="nonFungible",
            show_collection_metadata=True,
            timeout=search_timeout,
        )
    except UpstreamError as e:
        logger.warning(f"[NFT] Asset fetch failed for {wallet[:12]}: {e}")
        return empty_nft_portfolio(wallet, f"Error fetching NFT portfolio: {e}")

    regular = filter_regular_nfts(page.items)
    logger.debug(f"[NFT] {wallet[:12]}: {len(regular)} regular NFTs out of {len(page.items)} items")

    groups = group_by_collection(regular)
    collections: list[NFTCollection] = []
    for name, items in groups.items():
        lookup = await _lookup_floor(magiceden, name, items[0].id)
        collections.append(
            NFTCollection(
                name=name,
                item_count=len(items),
                symbol=items[0].collection_symbol or "",
                floor_price=lookup.floor_price,
                listed_count=lookup.listed_count,
                marketplace_symbol=lookup.marketplace_symbol,
                sample_items=tuple(_nft_item(i) for i in items[:MAX_SAMPLE_ITEMS]),
                lookup_error=lookup.error,
            )
        )

    ranked = rank_collections(collections)
    total_value = sum(
        (c.estimated_value for c in ranked if c.estimated_value is not None), Decimal("0")
    )

    logger.info(
        f"[NFT] {wallet[:12]}: {len(regular)} NFTs in {len(ranked)} collections, "
        f"est. {total_value:.2f} SOL"
    )
    return NFTPortfolio(
        wallet_address=wallet,
        collections=tuple(ranked),
        total_nfts=len(regular),
        total_collections=len(ranked),
        estimated_portfolio_value=total_value,
        text=render_nft_text(wallet, ranked, len(regular), total_value),
    )


def filter_regular_nfts(items: list[HeliusAsset]) -> list[HeliusAsset]:
    return [i for i in items if i.interface in NFT_INTERFACES and not i.is_compressed]


def group_by_collection(items: list[HeliusAsset]) -> dict[str, list[HeliusAsset]]:
    """Group by collection display name, in first-seen order."""
    groups: dict[str, list[HeliusAsset]] = {}
    for item in items:
        groups.setdefault(item.collection_name or UNCATEGORIZED, []).append(item)
    return groups


def rank_collections(collections: list[NFTCollection]) -> list[NFTCollection]:
    """Estimated value desc (unknown ranks as 0), then item count desc."""
    return sorted(collections, key=lambda c: (c.ranking_value, c.item_count), reverse=True)


async def _lookup_floor(magiceden: MagicEdenClient, collection: str, first_mint: str) -> _FloorLookup:
    try:
        slug = await magiceden.get_token_collection(first_mint)
        if not slug:
            logger.debug(f"[NFT] No Magic Eden collection for {collection}")
            return _FloorLookup()
        stats = await magiceden.get_collection_stats(slug)
    except UpstreamError as e:
        logger.debug(f"[NFT] Floor lookup failed for {collection}: {e}")
        return _FloorLookup(error=str(e))

    if stats is None:
        return _FloorLookup(marketplace_symbol=slug)
    return _FloorLookup(
        marketplace_symbol=slug,
        floor_price=stats.floor_price_sol,
        listed_count=stats.listed_count,
    )


def _nft_item(asset: HeliusAsset) -> NFTItem:
    metadata = asset.content.metadata
    links = asset.content.links
    return NFTItem(
        id=asset.id,
        name=metadata.name or UNNAMED_NFT,
        symbol=metadata.symbol or "",
        description=metadata.description or "",
        image=links.image or "",
        external_url=links.external_url or "",
    )


def render_nft_text(
    wallet: str,
    collections: list[NFTCollection],
    total_nfts: int,
    total_value: Decimal,
) -> str:
    lines = [f"Here is the NFT portfolio for wallet `{wallet}`:", ""]

    if not collections:
        lines += [
            "🎨 **No regular NFTs found in this wallet.**",
            "",
            "This wallet either has no NFTs, or only contains compressed NFTs (cNFTs) "
            "which are typically spam/airdrops.",
        ]
        return "\n".join(lines)

    lines += [
        "🎨 **NFT Portfolio Summary**",
        "",
        f"**Total Collections:** {len(collections)}",
        f"**Total NFTs:** {total_nfts}",
    ]
    if total_value > 0:
        lines.append(f"**Estimated Portfolio Value:** {total_value:.2f} SOL")
    lines += ["", "---", ""]

    for index, c in enumerate(collections, start=1):
        lines.append(f"### {index}. 📁 {c.name}")
        lines.append(f"**Count:** {c.item_count} NFT{'s' if c.item_count > 1 else ''}")
        if c.floor_price is not None:
            lines.append(f"**Floor Price:** {c.floor_price:.3f} SOL")
        else:
            lines.append("**Floor Price:** Not available")
        if c.estimated_value is not None:
            lines.append(f"**Estimated Value:** {c.estimated_value:.2f} SOL")
        if c.listed_count is not None:
            lines.append(f"**Listed:** {c.listed_count} items")

        lines += ["", "**Sample NFTs:**"]
        for n, nft in enumerate(c.sample_items[:MAX_TEXT_SAMPLE_ITEMS], start=1):
            lines.append(f"{n}. **{nft.name}**")
            if nft.description and len(nft.description) < MAX_TEXT_DESCRIPTION_LEN:
                lines.append(f"   *{nft.description}*")
            lines.append(f"   ID: `{nft.id}`")
        if c.item_count > MAX_TEXT_SAMPLE_ITEMS:
            lines.append(f"   *...and {c.item_count - MAX_TEXT_SAMPLE_ITEMS} more*")
        lines.append("")

    lines += [
        "",
        "💡 **Note:** Floor prices are fetched from Magic Eden (token → collection → stats). "
        "Values are estimates based on current floor prices.",
    ]
    return "\n".join(lines)
