"""Wallet and token analysis endpoints: the tools the chat layer calls.

``text`` / ``report`` fields are Markdown meant to be shown verbatim.
Decimal amounts are serialized as strings to keep full precision.
"""

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from config.settings import settings
from src.api.app import limiter
from src.api.dependencies import get_services
from src.parsers.bundle_checker import check_bundles
from src.parsers.nft_portfolio import fetch_nft_portfolio
from src.parsers.wallet_portfolio import TokenHolding, fetch_wallet_portfolio
from src.services import AnalysisServices
from src.workflows.portfolio_analysis import run_portfolio_analysis

router = APIRouter(prefix="/api/v1", tags=["analysis"])


class HoldingOut(BaseModel):
    mint: str
    name: str | None = None
    symbol: str | None = None
    logo: str | None = None
    raw_amount: str
    decimals: int
    decimals_assumed: bool = False
    ui_amount: Decimal
    price: Decimal
    price_source: str
    usd_value: Decimal


class NativeBalanceOut(BaseModel):
    lamports: int
    sol: Decimal
    price: Decimal
    usd: Decimal
    price_source: str


class PortfolioResponse(BaseModel):
    wallet_address: str
    sol: NativeBalanceOut
    tokens: list[HoldingOut]
    top_holdings: list[HoldingOut]
    total_usd: Decimal
    warnings: list[str]
    text: str
    error: str | None = None


class NFTItemOut(BaseModel):
    id: str
    name: str
    symbol: str = ""
    image: str = ""


class NFTCollectionOut(BaseModel):
    name: str
    symbol: str = ""
    item_count: int
    floor_price: Decimal | None = None
    estimated_value: Decimal | None = None
    listed_count: int | None = None
    sample_items: list[NFTItemOut]


class NFTPortfolioResponse(BaseModel):
    wallet_address: str
    collections: list[NFTCollectionOut]
    total_nfts: int
    total_collections: int
    estimated_portfolio_value: Decimal
    text: str
    error: str | None = None


class BundleCheckResponse(BaseModel):
    mint: str
    is_bundled: bool
    ticker: str
    total_bundles: int
    total_percentage_bundled: float
    total_holding_percentage: float
    bonded: bool
    creator_risk_level: str
    rug_count: int
    text: str
    error: str | None = None


class TokenSearchItem(BaseModel):
    address: str
    name: str
    symbol: str
    decimals: int | None = None
    logo_uri: str | None = None


class StepOut(BaseModel):
    step_id: str
    status: str
    duration_sec: float
    error: str | None = None


class AnalysisResponse(BaseModel):
    run_id: str
    wallet_address: str
    risk_score: int
    recommendations: list[str]
    report: str
    generated_at: datetime
    steps: list[StepOut]


def _holding_out(h: TokenHolding) -> HoldingOut:
    return HoldingOut(
        mint=h.mint,
        name=h.name,
        symbol=h.symbol,
        logo=h.logo,
        raw_amount=h.raw_amount,
        decimals=h.decimals,
        decimals_assumed=h.decimals_assumed,
        ui_amount=h.ui_amount,
        price=h.price,
        price_source=h.price_source,
        usd_value=h.usd_value,
    )


@router.get("/wallets/{wallet}/portfolio", response_model=PortfolioResponse)
async def get_wallet_portfolio(
    wallet: str,
    services: AnalysisServices = Depends(get_services),
) -> PortfolioResponse:
    """SOL balance + fungible holdings with USD values."""
    p = await fetch_wallet_portfolio(services.helius, services.enricher, wallet)
    return PortfolioResponse(
        wallet_address=p.wallet_address,
        sol=NativeBalanceOut(
            lamports=p.native.lamports,
            sol=p.native.sol,
            price=p.native.price,
            usd=p.native.usd,
            price_source=p.native.price_source,
        ),
        tokens=[_holding_out(h) for h in p.tokens],
        top_holdings=[_holding_out(h) for h in p.top_holdings],
        total_usd=p.total_usd,
        warnings=list(p.warnings),
        text=p.text,
        error=p.error,
    )


@router.get("/wallets/{wallet}/nfts", response_model=NFTPortfolioResponse)
async def get_wallet_nfts(
    wallet: str,
    services: AnalysisServices = Depends(get_services),
) -> NFTPortfolioResponse:
    """Regular NFTs grouped by collection with Magic Eden floor prices."""
    p = await fetch_nft_portfolio(
        services.helius, services.magiceden, wallet, search_timeout=services.nft_search_timeout
    )
    return NFTPortfolioResponse(
        wallet_address=p.wallet_address,
        collections=[
            NFTCollectionOut(
                name=c.name,
                symbol=c.symbol,
                item_count=c.item_count,
                floor_price=c.floor_price,
                estimated_value=c.estimated_value,
                listed_count=c.listed_count,
                sample_items=[
                    NFTItemOut(id=i.id, name=i.name, symbol=i.symbol, image=i.image)
                    for i in c.sample_items
                ],
            )
            for c in p.collections
        ],
        total_nfts=p.total_nfts,
        total_collections=p.total_collections,
        estimated_portfolio_value=p.estimated_portfolio_value,
        text=p.text,
        error=p.error,
    )


@router.get("/tokens/search", response_model=list[TokenSearchItem])
async def search_tokens(
    q: str = Query(..., min_length=1, max_length=100),
    limit: int = Query(10, ge=1, le=50),
    services: AnalysisServices = Depends(get_services),
) -> list[TokenSearchItem]:
    """Search the verified token list by name, symbol or mint."""
    matches = await services.enricher.search_tokens(q)
    return [
        TokenSearchItem(
            address=t.address,
            name=t.name,
            symbol=t.symbol,
            decimals=t.decimals,
            logo_uri=t.logo_uri,
        )
        for t in matches[:limit]
    ]


@router.get("/tokens/{mint}/bundles", response_model=BundleCheckResponse)
async def get_token_bundles(
    mint: str,
    services: AnalysisServices = Depends(get_services),
) -> BundleCheckResponse:
    """Bundle (coordinated buy) analysis for a pump.fun mint."""
    r = await check_bundles(services.trenchbot, services.helius, mint)
    return BundleCheckResponse(
        mint=r.mint,
        is_bundled=r.is_bundled,
        ticker=r.ticker,
        total_bundles=r.total_bundles,
        total_percentage_bundled=r.total_percentage_bundled,
        total_holding_percentage=r.total_holding_percentage,
        bonded=r.bonded,
        creator_risk_level=r.creator_risk_level,
        rug_count=r.rug_count,
        text=r.summary,
        error=r.error,
    )


@router.get("/wallets/{wallet}/analysis", response_model=AnalysisResponse)
@limiter.limit(settings.api_rate_limit)
async def get_wallet_analysis(
    request: Request,
    wallet: str,
    services: AnalysisServices = Depends(get_services),
) -> AnalysisResponse:
    """Full workflow: portfolio, bundle risk of top holdings, NFTs, report."""
    run = await run_portfolio_analysis(services, wallet)
    report = run.output
    return AnalysisResponse(
        run_id=run.run_id,
        wallet_address=report.wallet_address,
        risk_score=report.risk_score,
        recommendations=list(report.recommendations),
        report=report.report,
        generated_at=report.generated_at,
        steps=[
            StepOut(
                step_id=s.step_id,
                status=s.status,
                duration_sec=round(s.duration_sec, 3),
                error=s.error,
            )
            for s in run.steps
        ],
    )
