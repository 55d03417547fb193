"""
Placeholder data used when the backend cannot be reached.

Each synthesizer is total: it returns a well-formed payload for any
resource key, so the dashboard always has something to render. Values
mirror the backend's own defaults for an idle bot.
"""
from __future__ import annotations

import copy
import time
from typing import Any, Callable, Optional

from .models import ResourceKey, ResourceKind

Synthesizer = Callable[[ResourceKey], Any]


DEFAULT_BOT_CONFIG: dict[str, Any] = {
    "activeStrategy": "AUTO",
    "common": {
        "enabled": True,
        "leverage": 10,
        "initialBalance": 100,
        "reinvestment": 100,
    },
    "dca": {
        "maxDCAOrders": 5,
        "dcaPriceStep": 1.5,
        "dcaMultiplier": 1.5,
        "maxTradeDuration": 240,  # minutes
        "trailingStop": 0.5,
    },
    "scalping": {
        "timeframe": "1m",
        "profitTarget": 0.5,
        "stopLoss": 0.3,
        "maxTradeDuration": 30,  # minutes
        "minVolatility": 0.2,
        "maxSpread": 0.1,
        "useTrailingStop": True,
        "trailingStopActivation": 0.2,
        "trailingStopDistance": 0.1,
    },
    "autoSwitching": {
        "enabled": True,
        "volatilityThreshold": 1.5,
        "volumeThreshold": 2.0,
        "trendStrengthThreshold": 0.6,
    },
}


def default_config() -> dict[str, Any]:
    """Fresh deep copy of the built-in configuration tree."""
    return copy.deepcopy(DEFAULT_BOT_CONFIG)


def synthesize_ticker(key: ResourceKey) -> dict[str, Any]:
    """Flat ticker placeholder."""
    return {
        "symbol": key.symbol,
        "last": "50000.00",
        "open24h": "49000.00",
        "high24h": "51000.00",
        "low24h": "48500.00",
        "volume24h": "1000.00",
        "change24h": "0.02",
        "markPrice": None,
    }


def synthesize_analysis(key: ResourceKey) -> dict[str, Any]:
    """Neutral market analysis recommending the default strategy."""
    return {
        "symbol": key.symbol,
        "marketType": "UNKNOWN",
        "recommendedStrategy": "DCA",
        "confidence": 0.5,
        "volatility": 0.0,
        "volumeRatio": 0.0,
        "trendStrength": 0.0,
        "timestamp": int(time.time() * 1000),
    }


def synthesize_stats(key: ResourceKey) -> dict[str, Any]:
    """Zeroed statistics for an idle bot."""
    return {
        "totalTrades": 0,
        "winTrades": 0,
        "lossTrades": 0,
        "totalPnl": 0.0,
        "maxDrawdown": 0.0,
        "currentBalance": 100.0,
        "initialBalance": 100.0,
        "activeStrategy": "DCA",
    }


def synthesize_status(key: ResourceKey) -> dict[str, Any]:
    """A stopped bot with idle statistics and no embedded config."""
    return {
        "running": False,
        "uptime": None,
        "stats": synthesize_stats(key),
        "config": None,
    }


def synthesize_balance(key: ResourceKey) -> dict[str, Any]:
    """Empty USDT account."""
    return {
        "marginCoin": "USDT",
        "available": 0.0,
        "equity": 0.0,
        "usdtEquity": 0.0,
    }


def synthesize_config(key: ResourceKey) -> dict[str, Any]:
    return default_config()


_SYNTHESIZERS: dict[ResourceKind, Synthesizer] = {
    ResourceKind.TICKER: synthesize_ticker,
    ResourceKind.ANALYSIS: synthesize_analysis,
    ResourceKind.STATS: synthesize_stats,
    ResourceKind.STATUS: synthesize_status,
    ResourceKind.CONFIG: synthesize_config,
    ResourceKind.BALANCE: synthesize_balance,
}


def synthesizer_for(kind: ResourceKind) -> Optional[Synthesizer]:
    """Default placeholder generator for a resource kind."""
    return _SYNTHESIZERS.get(kind)
