"""
Resolution policies - decide which source is authoritative for a resource.

Configuration precedence (ConfigResolutionPolicy):
    1. Live: the bot is running and its status embeds a config
       -> that config wins, nothing else is queried
    2. Persisted: the last saved configuration for the symbol
    3. Recommended: caller's default tree with only the recommended
       strategy merged in
    4. Default: a copy of the caller's default tree (reported as recommended)

A running bot's in-memory config wins even if the stored config has since
been edited. A recommendation never overrides a persisted choice.

Market-style resources (LiveResourcePolicy) have a single live source;
failures propagate so the retry controller can retry and then synthesize.
"""
from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Protocol, Union

from pydantic import BaseModel

from tradebot_sync.api.client import NotFoundError

from .models import Origin, Resolution, ResourceKey, ResourceKind
from .synthetic import default_config
from .tree import update_path

if TYPE_CHECKING:
    from tradebot_sync.api.client import BotApiClient

logger = logging.getLogger(__name__)

Recommendation = Union[str, Mapping[str, Any], BaseModel, None]


class ResolutionPolicy(Protocol):
    """Anything that can resolve a resource key to a value and origin."""

    async def resolve(self, key: ResourceKey) -> Resolution:
        ...


def to_payload(value: Any) -> Any:
    """Turn validated API models into plain dicts for consumers."""
    if hasattr(value, "to_payload"):
        return value.to_payload()
    if isinstance(value, BaseModel):
        return value.model_dump()
    return value


def recommended_strategy(recommendation: Recommendation) -> Optional[str]:
    """Extract the strategy tag from a tag, an analysis model or its payload."""
    if recommendation is None:
        return None
    if isinstance(recommendation, str):
        return recommendation or None
    if isinstance(recommendation, BaseModel):
        recommendation = to_payload(recommendation)
    return recommendation.get("recommendedStrategy") or None


class ConfigResolutionPolicy:
    """
    Resolves a bot configuration tree using live > persisted > recommended.

    Usage:
        policy = ConfigResolutionPolicy(client, recommendation="SCALPING")
        resolution = await policy.resolve(ResourceKey(ResourceKind.CONFIG, "BTCUSDT"))
        resolution.origin  # Origin.LIVE / PERSISTED / RECOMMENDED
    """

    def __init__(
        self,
        client: "BotApiClient",
        defaults: Optional[Mapping[str, Any]] = None,
        recommendation: Recommendation = None,
    ) -> None:
        """
        Initialize the policy.

        Args:
            client: Backend client providing get_bot_status/get_bot_config
            defaults: Caller's current default tree (built-in default if None)
            recommendation: Strategy tag, a MarketAnalysis, or an analysis
                            payload carrying "recommendedStrategy"
        """
        self._client = client
        self._defaults = defaults if defaults is not None else default_config()
        self._recommendation = recommendation

    @property
    def defaults(self) -> Mapping[str, Any]:
        return self._defaults

    def set_defaults(self, defaults: Mapping[str, Any]) -> None:
        self._defaults = defaults

    def set_recommendation(self, recommendation: Recommendation) -> None:
        self._recommendation = recommendation

    async def resolve(self, key: ResourceKey) -> Resolution:
        symbol = key.symbol
        sources: list[str] = []

        sources.append("live")
        try:
            status = await self._client.get_bot_status(symbol)
        except NotFoundError:
            logger.debug(f"No status for {symbol}, trying persisted config")
        else:
            if status.live_config is not None:
                return Resolution(status.live_config, Origin.LIVE, tuple(sources))
            if status.running:
                logger.debug(f"{symbol} is running without embedded config")

        sources.append("persisted")
        try:
            persisted = await self._client.get_bot_config(symbol)
        except NotFoundError:
            persisted = None
        if persisted:
            return Resolution(persisted, Origin.PERSISTED, tuple(sources))

        sources.append("recommended")
        strategy = recommended_strategy(self._recommendation)
        if strategy:
            value = update_path(self._defaults, ["activeStrategy"], strategy)
        else:
            value = copy.deepcopy(self._defaults)
        return Resolution(value, Origin.RECOMMENDED, tuple(sources))


class LiveResourcePolicy:
    """
    Single-source policy: fetch the live resource once.

    Usage:
        policy = LiveResourcePolicy(client.get_ticker)
        resolution = await policy.resolve(ResourceKey(ResourceKind.TICKER, "ETHUSDT"))

    Account-level keys carry no symbol, so their fetch is called without one.
    """

    def __init__(
        self,
        fetch: Callable[..., Awaitable[Any]],
        source: str = "live",
    ) -> None:
        self._fetch = fetch
        self._source = source

    async def resolve(self, key: ResourceKey) -> Resolution:
        if key.symbol is None:
            value = await self._fetch()
        else:
            value = await self._fetch(key.symbol)
        return Resolution(to_payload(value), Origin.LIVE, (self._source,))


def policy_for(
    key: ResourceKey,
    client: "BotApiClient",
    defaults: Optional[Mapping[str, Any]] = None,
    recommendation: Recommendation = None,
) -> ResolutionPolicy:
    """Default policy for a resource kind."""
    if key.kind == ResourceKind.CONFIG:
        return ConfigResolutionPolicy(client, defaults, recommendation)

    fetchers = {
        ResourceKind.STATUS: client.get_bot_status,
        ResourceKind.TICKER: client.get_ticker,
        ResourceKind.ANALYSIS: client.analyze_market,
        ResourceKind.STATS: client.get_bot_stats,
        ResourceKind.BALANCE: client.get_account_balance,
    }
    return LiveResourcePolicy(fetchers[key.kind])
