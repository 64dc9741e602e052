"""Tests for the httpx fetch helper."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from repocache.data.http_client import json_fetcher
from repocache.services.repository import Repository


def _mock_client(response: MagicMock) -> AsyncMock:
    mock_client = AsyncMock()
    mock_client.__aenter__.return_value = mock_client
    mock_client.get = AsyncMock(return_value=response)
    return mock_client


@pytest.mark.asyncio
async def test_json_fetcher_returns_decoded_body():
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.json.return_value = {"t": 30, "w": 5, "p": 1024}

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = _mock_client(mock_response)
        mock_client_class.return_value = mock_client

        fetch = json_fetcher(
            "https://example.com/weather",
            headers={"apikey": "test_key"},
            params={"city": "montreal"},
            timeout=5.0,
        )
        data = await fetch()

    assert data == {"t": 30, "w": 5, "p": 1024}
    mock_client_class.assert_called_once_with(headers={"apikey": "test_key"}, timeout=5.0)
    mock_client.get.assert_awaited_once_with("https://example.com/weather", params={"city": "montreal"})
    mock_response.raise_for_status.assert_called_once()


@pytest.mark.asyncio
async def test_json_fetcher_propagates_http_errors():
    mock_response = MagicMock()
    mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
        "503 Service Unavailable",
        request=MagicMock(),
        response=MagicMock(),
    )

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = _mock_client(mock_response)

        with pytest.raises(httpx.HTTPStatusError):
            await json_fetcher("https://example.com/weather")()

    mock_response.json.assert_not_called()


@pytest.mark.asyncio
async def test_repository_with_json_fetcher(clock, settings):
    mock_response = MagicMock()
    mock_response.json.return_value = [{"day": "Mon", "t": 20, "w": 3, "p": 1000}]

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = _mock_client(mock_response)

        repo = Repository(
            "forecast",
            json_fetcher("https://example.com/forecast"),
            stale_after=60_000,
            field_map=[{"day": "day", "temperature": "t"}],
            clock=clock,
            settings=settings,
        )
        first = await repo.get_data()
        second = await repo.get_data()

    assert first == second == [{"day": "Mon", "temperature": 20}]
    assert mock_client_class.call_count == 1
