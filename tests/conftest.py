"""Shared test fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from tests.factories import asset_page


@pytest.fixture
def helius() -> MagicMock:
    """HeliusClient stand-in: empty wallet, unknown mints."""
    client = MagicMock()
    client.search_assets = AsyncMock(return_value=asset_page([]))
    client.get_mint_info = AsyncMock(return_value=None)
    return client


@pytest.fixture
def enricher() -> MagicMock:
    """PriceEnricher stand-in: no batch prices, empty token list."""
    mock = MagicMock()
    mock.get_prices = AsyncMock(return_value={})
    mock.get_token_list = AsyncMock(return_value={})
    return mock


@pytest.fixture
def magiceden() -> MagicMock:
    client = MagicMock()
    client.get_token_collection = AsyncMock(return_value=None)
    client.get_collection_stats = AsyncMock(return_value=None)
    return client


@pytest.fixture
def trench() -> MagicMock:
    client = MagicMock()
    client.get_bundle_analysis = AsyncMock(return_value=None)
    return client
