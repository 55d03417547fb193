"""
API Layer - Trading-bot backend client.

This module provides:
    - BotApiClient: aiohttp REST client (the synchronizer's fetch port)
    - FetchPort: protocol describing the minimal get/post surface
    - Error taxonomy: TransportError, NotFoundError, MalformedResponseError
    - Payload models validated at the client boundary

Usage:
    from tradebot_sync.api import BotApiClient

    async with BotApiClient("http://localhost:5000/api") as client:
        status = await client.get_bot_status("BTCUSDT")
        if status.live_config:
            ...
"""

# Models
from .models import (
    AccountBalance,
    BalanceResponse,
    BalanceRow,
    BotStats,
    BotStatus,
    MarketAnalysis,
    TickerResponse,
    TickerRow,
    TickerSnapshot,
    config_from_document,
)

# REST Client
from .client import (
    BotApiClient,
    BotApiError,
    FetchPort,
    MalformedResponseError,
    NotFoundError,
    TransportError,
)

__all__ = [
    # Models
    "AccountBalance",
    "BalanceResponse",
    "BalanceRow",
    "BotStats",
    "BotStatus",
    "MarketAnalysis",
    "TickerResponse",
    "TickerRow",
    "TickerSnapshot",
    "config_from_document",
    # Client
    "BotApiClient",
    "BotApiError",
    "FetchPort",
    "MalformedResponseError",
    "NotFoundError",
    "TransportError",
]
