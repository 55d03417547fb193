"""
Sync layer test fixtures.

Sync tests verify polling, retry and precedence logic, so the backend
client and resolution policies are replaced by mocks and scripted stand-ins.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from tradebot_sync.api.models import BotStatus
from tradebot_sync.sync.models import Origin, Resolution, ResourceKey, ResourceKind
from tradebot_sync.sync.retry import RetryFallbackController


# =============================================================================
# Scripted Policies
# =============================================================================


class ScriptedPolicy:
    """
    Policy that replays a script of results.

    Each item is either an exception (raised) or a value (resolved with
    `origin`). The last item repeats once the script is exhausted.
    """

    def __init__(self, *results, origin=Origin.LIVE):
        self._results = list(results)
        self._origin = origin
        self.calls = 0

    async def resolve(self, key):
        index = min(self.calls, len(self._results) - 1)
        self.calls += 1
        result = self._results[index]
        if isinstance(result, BaseException):
            raise result
        return Resolution(result, self._origin, ("live",))


class GatedPolicy:
    """Policy whose resolution blocks until `gate` is set."""

    def __init__(self, value, origin=Origin.LIVE):
        self.value = value
        self.origin = origin
        self.gate = asyncio.Event()
        self.calls = 0

    async def resolve(self, key):
        self.calls += 1
        await self.gate.wait()
        return Resolution(self.value, self.origin, ("live",))


@pytest.fixture
def scripted_policy():
    """Factory for ScriptedPolicy."""
    return ScriptedPolicy


@pytest.fixture
def gated_policy():
    """Factory for GatedPolicy."""
    return GatedPolicy


# =============================================================================
# Keys & Controller
# =============================================================================


@pytest.fixture
def ticker_key():
    return ResourceKey(ResourceKind.TICKER, "ETHUSDT")


@pytest.fixture
def config_key():
    return ResourceKey(ResourceKind.CONFIG, "BTCUSDT")


@pytest.fixture
def controller():
    """Retry controller with no retry delay for fast tests."""
    return RetryFallbackController(retry_delay=0)


# =============================================================================
# Client Fixtures
# =============================================================================


@pytest.fixture
def mock_client():
    """Mock BotApiClient with a stopped bot and nothing persisted."""
    client = MagicMock()
    client.get_bot_status = AsyncMock(return_value=BotStatus(running=False))
    client.get_bot_config = AsyncMock(return_value=None)
    client.update_bot_config = AsyncMock(return_value={"success": True})
    client.set_strategy = AsyncMock(return_value={"success": True})
    client.get_ticker = AsyncMock()
    client.analyze_market = AsyncMock()
    client.get_bot_stats = AsyncMock()
    client.get_account_balance = AsyncMock()
    return client


@pytest.fixture
def live_dca_client(mock_client):
    """Running bot on DCA, with SCALPING persisted."""
    mock_client.get_bot_status.return_value = BotStatus(
        running=True,
        config={"activeStrategy": "DCA", "common": {"leverage": 10}},
    )
    mock_client.get_bot_config.return_value = {"activeStrategy": "SCALPING"}
    return mock_client
