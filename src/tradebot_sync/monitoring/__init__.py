"""
Monitoring Layer - HTTP view of synchronizer state.

This module provides:
    - create_state_app: FastAPI app exposing subscription state and metrics
    - run_state_api: uvicorn runner for the state app

Usage:
    from tradebot_sync.monitoring import create_state_app

    app = create_state_app(synchronizer)
"""

from .dashboard import create_state_app, run_state_api

__all__ = [
    "create_state_app",
    "run_state_api",
]
