"""
State API test fixtures.

The synchronizer is mocked; handles carry real ResolvedState values so the
JSON shape under test is the one consumers see.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from tradebot_sync.monitoring.dashboard import create_state_app
from tradebot_sync.sync.metrics import SyncMetricsCollector
from tradebot_sync.sync.models import Origin, ResolvedState, ResourceKey


def make_handle(key, state, interval=3.0):
    """Mock SubscriptionHandle for `key` with a fixed state."""
    handle = MagicMock()
    handle.key = ResourceKey.parse(key)
    handle.state = state
    handle.interval_seconds = interval
    handle.active = True
    handle.force_refresh = AsyncMock(return_value=True)
    return handle


@pytest.fixture
def live_ticker_handle():
    return make_handle(
        "ticker:BTCUSDT",
        ResolvedState().with_success({"symbol": "BTCUSDT", "last": "64250.5"}, Origin.LIVE),
    )


@pytest.fixture
def synthetic_ticker_handle():
    return make_handle(
        "ticker:ETHUSDT",
        ResolvedState().with_fallback(
            {"symbol": "ETHUSDT", "last": "50000.00"}, "TransportError: connection refused"
        ),
    )


@pytest.fixture
def mock_synchronizer():
    """Mock Synchronizer whose subscriptions are set per test."""
    synchronizer = MagicMock()
    synchronizer.metrics = SyncMetricsCollector()
    synchronizer.subscriptions = []

    def find(key):
        key = key if isinstance(key, ResourceKey) else ResourceKey.parse(key)
        for handle in synchronizer.subscriptions:
            if handle.key == key:
                return handle
        return None

    synchronizer.find.side_effect = find
    return synchronizer


@pytest.fixture
def client(mock_synchronizer):
    """Test client for the state API."""
    with TestClient(create_state_app(mock_synchronizer)) as client:
        yield client


@pytest.fixture
def balance_handle():
    return make_handle(
        "balance",
        ResolvedState().with_success(
            {"marginCoin": "USDT", "available": 1523.75, "equity": 1610.2, "usdtEquity": 1610.2},
            Origin.LIVE,
        ),
        interval=30.0,
    )
