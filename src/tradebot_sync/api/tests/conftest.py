"""
Test fixtures for the API layer.

IMPORTANT: All HTTP calls must be mocked.
Never hit a real backend in tests.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from tradebot_sync.api.client import BotApiClient


# =============================================================================
# Fake aiohttp plumbing
# =============================================================================


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse."""

    def __init__(self, status=200, body=None, invalid_json=False):
        self.status = status
        self._body = body
        self._invalid_json = invalid_json

    async def json(self, content_type=None):
        if self._invalid_json:
            raise json.JSONDecodeError("Expecting value", "<html>", 0)
        return self._body

    async def text(self):
        if self._invalid_json:
            return "<html>"
        return json.dumps(self._body)


class FakeRequest:
    """Async context manager returned by session.request()."""

    def __init__(self, response=None, error=None):
        self._response = response
        self._error = error

    async def __aenter__(self):
        if self._error is not None:
            raise self._error
        return self._response

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


def queue_responses(session, *items):
    """Make session.request() yield each response (or raise each exception) in turn."""
    session.request.side_effect = [
        FakeRequest(error=item) if isinstance(item, BaseException) else FakeRequest(response=item)
        for item in items
    ]


# =============================================================================
# Client Fixtures
# =============================================================================


@pytest.fixture
def fake_session():
    """Mock aiohttp session."""
    session = MagicMock()
    session.close = AsyncMock()
    return session


@pytest.fixture
def respond(fake_session):
    """Queue responses (or exceptions) for the fake session."""
    def _respond(*items):
        queue_responses(fake_session, *items)
    return _respond


@pytest.fixture
def response():
    """Factory for fake responses."""
    return FakeResponse


@pytest.fixture
def client(fake_session):
    """Client wired to the fake session (single attempt per request)."""
    return BotApiClient("http://bot.local/api", session=fake_session)


# =============================================================================
# Payload Fixtures
# =============================================================================


@pytest.fixture
def running_status_payload():
    """Status of a running bot with its in-memory config."""
    return {
        "running": True,
        "uptime": 3600000,
        "stats": {"totalTrades": 12, "winTrades": 8},
        "config": {"activeStrategy": "DCA", "common": {"leverage": 20}},
    }


@pytest.fixture
def ticker_v2_payload():
    """Exchange v2 ticker response as proxied by the backend."""
    return {
        "code": "00000",
        "msg": "success",
        "requestTime": 1700000000000,
        "data": [
            {
                "symbol": "BTCUSDT",
                "lastPr": "64250.5",
                "open24h": "63000.0",
                "high24h": "65000.0",
                "low24h": "62500.0",
                "baseVolume": "18234.2",
                "change24h": "0.0198",
                "markPrice": "64251.0",
            }
        ],
    }


@pytest.fixture
def stored_config_document():
    """Configuration document as stored by the backend."""
    return {
        "_id": "65a1f0c2e4b0a1b2c3d4e5f6",
        "__v": 0,
        "symbol": "BTCUSDT",
        "activeStrategy": "SCALPING",
        "common": {"enabled": True, "leverage": 5, "initialBalance": 100, "reinvestment": 50},
        "createdAt": "2024-01-12T10:00:00.000Z",
        "updatedAt": "2024-01-13T10:00:00.000Z",
    }


@pytest.fixture
def balance_payload():
    """Account balance response with a list of per-coin rows."""
    return {
        "code": "00000",
        "msg": "success",
        "requestTime": 1700000000000,
        "data": [
            {
                "marginCoin": "USDT",
                "available": "1523.75",
                "equity": "1610.20",
                "usdtEquity": "1610.20",
                "locked": "0",
            }
        ],
    }
