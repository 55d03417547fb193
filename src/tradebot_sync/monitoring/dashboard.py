"""
FastAPI state API for the synchronizer.

Provides:
    - REST endpoints exposing each subscription's consumer-facing state
    - Manual refresh endpoint (out-of-band resolution)
    - Resolution metrics and a health summary
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from fastapi import FastAPI, HTTPException

from tradebot_sync import __version__
from tradebot_sync.sync.models import Origin, ResourceKey, ResourceKind

if TYPE_CHECKING:
    from tradebot_sync.sync.synchronizer import SubscriptionHandle, Synchronizer

logger = logging.getLogger(__name__)


def _subscription_summary(handle: "SubscriptionHandle") -> dict:
    return {
        "key": str(handle.key),
        "kind": handle.key.kind.value,
        "symbol": handle.key.symbol,
        "interval_seconds": handle.interval_seconds,
        "active": handle.active,
        "state": handle.state.to_dict(),
    }


def create_state_app(synchronizer: "Synchronizer") -> FastAPI:
    """
    Create the FastAPI state application.

    Args:
        synchronizer: The synchronizer whose subscriptions are exposed

    Returns:
        FastAPI application instance
    """
    app = FastAPI(
        title="Trading Bot State Sync",
        description="Consumer-facing state of polled trading-bot resources",
        version=__version__,
    )

    def _lookup(kind: str, symbol: Optional[str] = None) -> "SubscriptionHandle":
        try:
            key = ResourceKey(ResourceKind(kind), symbol)
        except ValueError as e:
            raise HTTPException(status_code=404, detail=f"Unknown resource: {e}")

        handle = synchronizer.find(key)
        if handle is None:
            raise HTTPException(status_code=404, detail=f"No subscription for {key}")
        return handle

    async def _refresh(handle: "SubscriptionHandle") -> dict:
        refreshed = await handle.force_refresh()
        if not refreshed:
            logger.debug(f"Refresh of {handle.key} skipped: resolution in flight")
        return {"refreshed": refreshed, "state": handle.state.to_dict()}

    @app.get("/health")
    async def health():
        """Healthy unless some subscription is serving placeholder data."""
        handles = synchronizer.subscriptions
        synthetic = [
            str(h.key) for h in handles if h.state.origin == Origin.SYNTHETIC
        ]
        stale = [str(h.key) for h in handles if h.state.is_stale]
        if synthetic:
            status = "degraded"
        elif stale:
            status = "warning"
        else:
            status = "healthy"
        return {
            "status": status,
            "subscriptions": len(handles),
            "stale": stale,
            "synthetic": synthetic,
        }

    @app.get("/api/subscriptions")
    async def list_subscriptions():
        """All live subscriptions with their current state."""
        return {
            "subscriptions": [
                _subscription_summary(h) for h in synchronizer.subscriptions
            ],
        }

    @app.get("/api/state/{kind}/{symbol}")
    async def get_state(kind: str, symbol: str):
        """Consumer-facing state of one subscription."""
        return _lookup(kind, symbol).state.to_dict()

    @app.get("/api/state/{kind}")
    async def get_account_state(kind: str):
        """State of an account-level subscription (no symbol), e.g. balance."""
        return _lookup(kind).state.to_dict()

    @app.post("/api/refresh/{kind}/{symbol}")
    async def refresh(kind: str, symbol: str):
        """Resolve a subscription now, without resetting its timer."""
        return await _refresh(_lookup(kind, symbol))

    @app.post("/api/refresh/{kind}")
    async def refresh_account(kind: str):
        """Resolve an account-level subscription now."""
        return await _refresh(_lookup(kind))

    @app.get("/api/metrics")
    async def get_metrics():
        """Resolution metrics per resource key."""
        return synchronizer.metrics.to_dict()

    return app


async def run_state_api(
    synchronizer: "Synchronizer",
    host: str = "127.0.0.1",
    port: int = 9060,
) -> None:
    """
    Run the state API as a server.

    Args:
        synchronizer: The synchronizer to expose
        host: Host to bind to
        port: Port to listen on
    """
    import uvicorn

    app = create_state_app(synchronizer)
    config = uvicorn.Config(app, host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)
    logger.info(f"State API listening on http://{host}:{port}")
    await server.serve()
