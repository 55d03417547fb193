"""
Trading Bot Dashboard State Synchronizer.

Keeps dashboard-facing state in sync with an unreliable trading-bot backend.
Polling, retry-once-then-fallback and configuration-source precedence are
handled here so presentation code always has something to render.
"""

__version__ = "0.1.0"
