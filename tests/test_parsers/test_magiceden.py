"""Tests for the Magic Eden client."""

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from src.parsers.errors import MagicEdenError
from src.parsers.magiceden.client import MagicEdenClient
from src.parsers.magiceden.models import MagicEdenCollectionStats
from tests.factories import make_response


def test_stats_lamports_to_sol() -> None:
    stats = MagicEdenCollectionStats.model_validate(
        {"symbol": "okay_bears", "floorPrice": 12_340_000_000, "listedCount": 412, "volumeAll": 5e15}
    )
    assert stats.floor_price_sol == Decimal("12.34")
    assert stats.volume_all_sol == Decimal("5000000")
    assert stats.listed_count == 412


def test_stats_missing_floor() -> None:
    stats = MagicEdenCollectionStats.model_validate({"symbol": "x"})
    assert stats.floor_price_sol is None


class TestMagicEdenClient:
    @pytest.mark.asyncio
    async def test_token_collection(self) -> None:
        client = MagicEdenClient(max_rps=100.0)
        mock_response = make_response(payload={"mintAddress": "nft-1", "collection": "okay_bears"})

        with patch.object(client._client, "get", new_callable=AsyncMock, return_value=mock_response) as get:
            slug = await client.get_token_collection("nft-1")

        assert slug == "okay_bears"
        assert get.await_args.args[0].endswith("/tokens/nft-1")

    @pytest.mark.asyncio
    async def test_token_without_collection(self) -> None:
        client = MagicEdenClient(max_rps=100.0)
        mock_response = make_response(payload={"mintAddress": "nft-1", "collection": ""})

        with patch.object(client._client, "get", new_callable=AsyncMock, return_value=mock_response):
            assert await client.get_token_collection("nft-1") is None

    @pytest.mark.asyncio
    async def test_collection_stats(self) -> None:
        client = MagicEdenClient(max_rps=100.0)
        mock_response = make_response(payload={"symbol": "okay_bears", "floorPrice": 1_500_000_000})

        with patch.object(client._client, "get", new_callable=AsyncMock, return_value=mock_response) as get:
            stats = await client.get_collection_stats("okay_bears")

        assert stats is not None
        assert stats.floor_price_sol == Decimal("1.5")
        assert get.await_args.args[0].endswith("/collections/okay_bears/stats")

    @pytest.mark.asyncio
    async def test_not_found(self) -> None:
        client = MagicEdenClient(max_rps=100.0)

        with patch.object(client._client, "get", new_callable=AsyncMock, return_value=make_response(404)):
            assert await client.get_collection_stats("gone") is None

    @pytest.mark.asyncio
    async def test_timeout_not_retried(self) -> None:
        client = MagicEdenClient(max_rps=100.0)

        with patch.object(
            client._client, "get", new_callable=AsyncMock, side_effect=httpx.ReadTimeout("slow")
        ) as get:
            with pytest.raises(MagicEdenError, match="timeout"):
                await client.get_token_collection("nft-1")

        assert get.await_count == 1

    @pytest.mark.asyncio
    async def test_remote_protocol_error(self) -> None:
        client = MagicEdenClient(max_rps=100.0)
        disconnect = httpx.RemoteProtocolError("Server disconnected without sending a response.")

        with patch.object(client._client, "get", new_callable=AsyncMock, side_effect=disconnect):
            with pytest.raises(MagicEdenError, match="RemoteProtocolError"):
                await client.get_token_collection("nft-1")

    @pytest.mark.asyncio
    async def test_token_collection_not_a_string(self) -> None:
        client = MagicEdenClient(max_rps=100.0)
        mock_response = make_response(payload={"collection": {"symbol": "okay_bears"}})

        with patch.object(client._client, "get", new_callable=AsyncMock, return_value=mock_response):
            assert await client.get_token_collection("nft-1") is None

    @pytest.mark.asyncio
    async def test_rate_limited(self) -> None:
        client = MagicEdenClient(max_rps=100.0)

        with patch.object(client._client, "get", new_callable=AsyncMock, return_value=make_response(429)), \
                patch("src.parsers.magiceden.client.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(MagicEdenError):
                await client.get_collection_stats("okay_bears")

    def test_user_agent(self) -> None:
        client = MagicEdenClient()
        assert "wallet-radar" in client._client.headers["User-Agent"]
