"""
Trading Bot State Sync - Main Entry Point

Watches trading-bot resources for one symbol and logs every state change.
Optionally serves the consumer-facing state over HTTP.

Usage:
    python -m tradebot_sync.main --symbol BTCUSDT
    python -m tradebot_sync.main --symbol BTCUSDT --resource ticker --resource config
    python -m tradebot_sync.main --symbol ETHUSDT --no-api --log-level DEBUG
    python -m tradebot_sync.main --symbol BTCUSDT --resource balance

Configuration:
    The service reads configuration from:
    1. Environment variables (optionally from a .env file)
    2. Command line arguments

Environment Variables:
    BOT_API_URL                Backend API root (default: http://localhost:5000/api)
    BOT_API_TIMEOUT            Request timeout in seconds (default: 30)
    SYNC_RETRY_DELAY           Delay before the single retry (default: 1.0)
    TICKER_INTERVAL_SECONDS    Ticker poll interval (default: 3)
    STATUS_INTERVAL_SECONDS    Bot status poll interval (default: 30)
    CONFIG_INTERVAL_SECONDS    Configuration poll interval (default: 30)
    ANALYSIS_INTERVAL_SECONDS  Market analysis poll interval (default: 60)
    STATS_INTERVAL_SECONDS     Bot stats poll interval (default: 30)
    BALANCE_INTERVAL_SECONDS   Account balance poll interval (default: 30)
    STATE_API_ENABLED          Serve the state API (default: true)
    STATE_API_HOST             State API host (default: 127.0.0.1)
    STATE_API_PORT             State API port (default: 9060)
    LOG_LEVEL                  Logging level (DEBUG/INFO/WARNING/ERROR)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Configure logging before imports
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

from tradebot_sync.api import BotApiClient
from tradebot_sync.sync import (
    ResolvedState,
    ResourceKey,
    ResourceKind,
    SubscriptionHandle,
    Synchronizer,
    synthesizer_for,
)

DEFAULT_RESOURCES = (ResourceKind.TICKER, ResourceKind.STATUS)


@dataclass
class SyncConfig:
    """Configuration for the state sync service."""

    # Backend
    api_url: str = BotApiClient.DEFAULT_BASE_URL
    api_timeout: float = 30.0

    # Retry/fallback
    retry_delay: float = 1.0

    # Poll intervals (seconds)
    ticker_interval_seconds: float = 3.0
    status_interval_seconds: float = 30.0
    config_interval_seconds: float = 30.0
    analysis_interval_seconds: float = 60.0
    stats_interval_seconds: float = 30.0
    balance_interval_seconds: float = 30.0

    # State API
    state_api_enabled: bool = True
    state_api_host: str = "127.0.0.1"
    state_api_port: int = 9060

    @classmethod
    def from_env(cls) -> "SyncConfig":
        """Load configuration from environment variables."""
        return cls(
            api_url=os.environ.get("BOT_API_URL", BotApiClient.DEFAULT_BASE_URL),
            api_timeout=float(os.environ.get("BOT_API_TIMEOUT", "30")),
            retry_delay=float(os.environ.get("SYNC_RETRY_DELAY", "1.0")),
            ticker_interval_seconds=float(os.environ.get("TICKER_INTERVAL_SECONDS", "3")),
            status_interval_seconds=float(os.environ.get("STATUS_INTERVAL_SECONDS", "30")),
            config_interval_seconds=float(os.environ.get("CONFIG_INTERVAL_SECONDS", "30")),
            analysis_interval_seconds=float(os.environ.get("ANALYSIS_INTERVAL_SECONDS", "60")),
            stats_interval_seconds=float(os.environ.get("STATS_INTERVAL_SECONDS", "30")),
            balance_interval_seconds=float(os.environ.get("BALANCE_INTERVAL_SECONDS", "30")),
            state_api_enabled=os.environ.get("STATE_API_ENABLED", "true").lower() == "true",
            state_api_host=os.environ.get("STATE_API_HOST", "127.0.0.1"),
            state_api_port=int(os.environ.get("STATE_API_PORT", "9060")),
        )

    def interval_for(self, kind: ResourceKind) -> float:
        """Poll interval for a resource kind."""
        return {
            ResourceKind.TICKER: self.ticker_interval_seconds,
            ResourceKind.STATUS: self.status_interval_seconds,
            ResourceKind.CONFIG: self.config_interval_seconds,
            ResourceKind.ANALYSIS: self.analysis_interval_seconds,
            ResourceKind.STATS: self.stats_interval_seconds,
            ResourceKind.BALANCE: self.balance_interval_seconds,
        }[kind]


def log_state_change(handle: SubscriptionHandle):
    """Listener that logs each committed state for a subscription."""

    def _log(state: ResolvedState) -> None:
        origin = state.origin.value if state.origin else "none"
        if state.error:
            logger.warning(
                f"{handle.key}: origin={origin} stale={state.is_stale} error={state.error}"
            )
        else:
            logger.info(f"{handle.key}: origin={origin} stale={state.is_stale}")

    return _log


class SyncService:
    """
    Runs a synchronizer for one symbol until shutdown.

    Manages the lifecycle of:
    - Backend client
    - Synchronizer and its subscriptions
    - Optional state API server
    """

    def __init__(self, config: SyncConfig) -> None:
        self._config = config
        self._client: Optional[BotApiClient] = None
        self._synchronizer: Optional[Synchronizer] = None
        self._api_task: Optional[asyncio.Task] = None
        self._shutdown_event = asyncio.Event()

    @property
    def synchronizer(self) -> Optional[Synchronizer]:
        return self._synchronizer

    async def start(self, symbol: str, kinds: tuple[ResourceKind, ...] = DEFAULT_RESOURCES) -> None:
        """Subscribe to the requested resources."""
        self._client = BotApiClient(self._config.api_url, timeout=self._config.api_timeout)
        self._synchronizer = Synchronizer(self._client, retry_delay=self._config.retry_delay)

        for kind in kinds:
            handle = self._synchronizer.subscribe(
                ResourceKey(kind, symbol if kind.requires_symbol else None),
                interval_seconds=self._config.interval_for(kind),
                synthesize=synthesizer_for(kind),
            )
            handle.add_listener(log_state_change(handle))

        if self._config.state_api_enabled:
            await self._start_state_api()

        logger.info(
            f"Watching {', '.join(k.value for k in kinds)} for {symbol} "
            f"via {self._config.api_url}"
        )

    async def _start_state_api(self) -> None:
        """Start the state API server in the background."""
        try:
            from tradebot_sync.monitoring import run_state_api

            self._api_task = asyncio.create_task(
                run_state_api(
                    self._synchronizer,
                    host=self._config.state_api_host,
                    port=self._config.state_api_port,
                ),
                name="state_api",
            )
        except ImportError as e:
            logger.warning(f"State API dependencies not installed: {e}")

    async def run(self, symbol: str, kinds: tuple[ResourceKind, ...] = DEFAULT_RESOURCES) -> None:
        """Start, wait for a shutdown signal, then stop."""
        self._setup_signal_handlers()
        await self.start(symbol, kinds)
        try:
            await self._shutdown_event.wait()
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Unsubscribe everything and close the client."""
        logger.info("Shutting down...")

        if self._api_task and not self._api_task.done():
            self._api_task.cancel()
            await asyncio.gather(self._api_task, return_exceptions=True)

        if self._synchronizer:
            await self._synchronizer.close()

        if self._client:
            await self._client.close()

        logger.info("Shutdown complete")

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def handle_signal(sig):
            logger.info(f"Received signal {sig.name}, initiating shutdown...")
            self.request_shutdown()

        try:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass


def load_env_file(path: str = ".env") -> None:
    """Load environment variables from .env file if it exists."""
    env_path = Path(path)
    if env_path.exists():
        logger.info(f"Loading environment from {env_path}")
        with open(env_path) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, _, value = line.partition("=")
                    value = value.strip().strip('"').strip("'")
                    os.environ.setdefault(key.strip(), value)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Trading Bot State Sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--symbol",
        required=True,
        help="Trading pair to watch, e.g. BTCUSDT",
    )
    parser.add_argument(
        "--resource",
        action="append",
        choices=[k.value for k in ResourceKind],
        help="Resource to watch (repeatable; default: ticker and status)",
    )
    parser.add_argument(
        "--no-api",
        action="store_true",
        help="Do not serve the state API",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level",
    )
    return parser.parse_args(argv)


async def main_async(args: argparse.Namespace) -> int:
    """Async main function."""
    config = SyncConfig.from_env()
    if args.no_api:
        config.state_api_enabled = False

    kinds = tuple(ResourceKind(r) for r in args.resource) if args.resource else DEFAULT_RESOURCES

    service = SyncService(config)
    try:
        await service.run(args.symbol.upper(), kinds)
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    load_env_file()

    args = parse_args(argv)

    if args.log_level:
        logging.getLogger().setLevel(getattr(logging, args.log_level))

    try:
        return asyncio.run(main_async(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
