"""
Shared test fixtures for integration tests.

This file provides fixtures that span multiple components,
unlike component-specific fixtures in src/tradebot_sync/{component}/tests/conftest.py

A small aiohttp application stands in for the trading-bot backend so the
real BotApiClient, policies and synchronizer can be exercised together.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from tradebot_sync.api import BotApiClient


@dataclass
class FakeBackend:
    """Mutable backend state driven by the tests."""

    running: bool = False
    live_config: Optional[dict[str, Any]] = None
    persisted: dict[str, dict[str, Any]] = field(default_factory=dict)
    ticker_price: str = "3100.25"
    ticker_status: int = 200
    balance: Any = field(
        default_factory=lambda: [{"marginCoin": "USDT", "available": "250.5", "equity": "260.0"}]
    )
    strategy_calls: list[tuple[str, str]] = field(default_factory=list)
    requests: int = 0

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/api/bot/status", self.get_status)
        app.router.add_get("/api/bot/config", self.get_config)
        app.router.add_post("/api/bot/config", self.post_config)
        app.router.add_post("/api/bot/strategy", self.post_strategy)
        app.router.add_get("/api/market/ticker/{symbol}", self.get_ticker)
        app.router.add_get("/api/account/balance", self.get_balance)
        return app

    async def get_status(self, request: web.Request) -> web.Response:
        self.requests += 1
        return web.json_response({
            "running": self.running,
            "uptime": 1000 if self.running else None,
            "config": self.live_config if self.running else None,
        })

    async def get_config(self, request: web.Request) -> web.Response:
        self.requests += 1
        symbol = request.query.get("symbol")
        if symbol not in self.persisted:
            return web.json_response({"error": "No configuration found"}, status=404)
        document = {"_id": "abc123", "__v": 0, "symbol": symbol, **self.persisted[symbol]}
        return web.json_response(document)

    async def post_config(self, request: web.Request) -> web.Response:
        self.requests += 1
        body = await request.json()
        self.persisted[body["symbol"]] = body["config"]
        return web.json_response({"success": True})

    async def post_strategy(self, request: web.Request) -> web.Response:
        self.requests += 1
        body = await request.json()
        self.strategy_calls.append((body["symbol"], body["strategy"]))
        return web.json_response({"success": True, "currentStrategy": body["strategy"]})

    async def get_balance(self, request: web.Request) -> web.Response:
        self.requests += 1
        if self.balance is None:
            return web.json_response({"code": "00000", "msg": "success"})
        return web.json_response({"code": "00000", "msg": "success", "data": self.balance})

    async def get_ticker(self, request: web.Request) -> web.Response:
        self.requests += 1
        if self.ticker_status != 200:
            return web.json_response({"error": "upstream failure"}, status=self.ticker_status)
        return web.json_response({
            "code": "00000",
            "msg": "success",
            "data": [{
                "symbol": request.match_info["symbol"],
                "lastPr": self.ticker_price,
                "baseVolume": "5120.4",
                "open24h": "3050.00",
            }],
        })


# =============================================================================
# Backend Fixtures
# =============================================================================


@pytest.fixture
def backend():
    """Fresh fake backend state."""
    return FakeBackend()


@pytest.fixture
async def backend_server(backend):
    """Serve the fake backend on a local port."""
    server = TestServer(backend.build_app())
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
async def api_client(backend_server):
    """Real BotApiClient pointed at the fake backend."""
    client = BotApiClient(str(backend_server.make_url("/api")), rate_limit=100)
    yield client
    await client.close()
