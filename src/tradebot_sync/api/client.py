"""
REST API client for the trading-bot backend.

Provides async access to bot status, configuration and market endpoints.
This client is the Remote Fetch Port of the synchronizer: it only knows
about transport and payload validation. Retry-then-fallback policy lives in
tradebot_sync.sync.retry, so every call here makes a single attempt.

Error taxonomy:
    - TransportError: network failure, timeout, 5xx or unexpected status
    - NotFoundError: resource absent (404), e.g. no persisted config yet
    - MalformedResponseError: body is not JSON or fails model validation
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional, Protocol

import aiohttp
from pydantic import ValidationError

from .models import (
    AccountBalance,
    BalanceResponse,
    BotStats,
    BotStatus,
    MarketAnalysis,
    TickerResponse,
    TickerSnapshot,
    config_from_document,
)

logger = logging.getLogger(__name__)


class BotApiError(Exception):
    """Base exception for trading-bot backend errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransportError(BotApiError):
    """Network failure, timeout or server-side error."""
    pass


class NotFoundError(BotApiError):
    """Requested resource does not exist."""
    pass


class MalformedResponseError(BotApiError):
    """Response body is missing expected fields or is not JSON."""
    pass


class FetchPort(Protocol):
    """Minimal HTTP surface the synchronizer depends on."""

    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        ...

    async def post(self, path: str, body: dict[str, Any]) -> Any:
        ...


class BotApiClient:
    """
    Async REST client for the trading-bot backend.

    Features:
        - Rate limiting to avoid hammering the backend from many pollers
        - Typed errors (TransportError / NotFoundError / MalformedResponseError)
        - Payload validation into pydantic models

    Usage:
        async with BotApiClient("http://localhost:5000/api") as client:
            status = await client.get_bot_status("BTCUSDT")
            ticker = await client.get_ticker("BTCUSDT")
    """

    DEFAULT_BASE_URL = "http://localhost:5000/api"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[aiohttp.ClientSession] = None,
        rate_limit: float = 10.0,  # requests per second
        timeout: float = 30.0,
    ):
        """
        Initialize the REST client.

        Args:
            base_url: Backend API root (e.g. http://localhost:5000/api)
            session: Optional aiohttp session (created if not provided)
            rate_limit: Maximum requests per second
            timeout: Request timeout in seconds
        """
        self._base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None
        self._rate_limit = rate_limit
        self._timeout = aiohttp.ClientTimeout(total=timeout)

        # Rate limiting
        self._request_times: list[float] = []
        self._rate_lock = asyncio.Lock()

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> "BotApiClient":
        """Async context manager entry."""
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the client session."""
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _rate_limit_wait(self) -> None:
        """Wait if necessary to respect rate limits."""
        async with self._rate_lock:
            now = time.time()

            # Remove old timestamps outside the 1-second window
            self._request_times = [t for t in self._request_times if now - t < 1.0]

            if len(self._request_times) >= self._rate_limit:
                wait_time = 1.0 - (now - self._request_times[0])
                if wait_time > 0:
                    await asyncio.sleep(wait_time)

            self._request_times.append(time.time())

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """
        Make a single HTTP request with rate limiting.

        Args:
            method: HTTP method (GET, POST)
            path: Path relative to the API root
            **kwargs: Additional arguments for aiohttp

        Returns:
            Decoded JSON response

        Raises:
            NotFoundError: On 404
            TransportError: On network errors, timeouts and other bad statuses
            MalformedResponseError: When the body is not valid JSON
            asyncio.CancelledError: When task is cancelled (re-raised)
        """
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

        url = self._url(path)

        try:
            await self._rate_limit_wait()

            async with self._session.request(method, url, **kwargs) as response:
                if response.status == 404:
                    text = await response.text()
                    raise NotFoundError(
                        f"Not found: {path} - {text}",
                        status_code=404,
                    )

                if response.status >= 400:
                    text = await response.text()
                    raise TransportError(
                        f"API error: {response.status} - {text}",
                        status_code=response.status,
                    )

                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise MalformedResponseError(
                        f"Invalid JSON from {path}: {e}",
                        status_code=response.status,
                    )

        except asyncio.CancelledError:
            logger.debug("Request cancelled")
            raise

        except asyncio.TimeoutError:
            raise TransportError(f"Request timed out: {method} {path}")

        except aiohttp.ClientError as e:
            raise TransportError(f"Request failed: {method} {path}: {e}")

    # =========================================================================
    # Fetch Port
    # =========================================================================

    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """GET a resource and return its decoded JSON body."""
        return await self._request("GET", path, params=params)

    async def post(self, path: str, body: dict[str, Any]) -> Any:
        """POST a JSON body and return the decoded JSON response."""
        return await self._request("POST", path, json=body)

    # =========================================================================
    # Bot Endpoints
    # =========================================================================

    async def get_bot_status(self, symbol: str) -> BotStatus:
        """
        Fetch running status (and in-memory config) of the bot for a symbol.

        Args:
            symbol: Trading pair, e.g. "BTCUSDT"

        Returns:
            Validated BotStatus
        """
        data = await self.get("bot/status", params={"symbol": symbol})
        return _validate(BotStatus, data, "bot/status")

    async def get_bot_config(self, symbol: str) -> Optional[dict[str, Any]]:
        """
        Fetch the persisted configuration for a symbol.

        Returns:
            Configuration tree, or None if the backend returned an empty body

        Raises:
            NotFoundError: If no configuration has been stored
        """
        data = await self.get("bot/config", params={"symbol": symbol})
        if not data:
            return None
        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"bot/config returned {type(data).__name__}, expected object"
            )
        return config_from_document(data)

    async def update_bot_config(self, symbol: str, config: dict[str, Any]) -> Any:
        """Persist a configuration tree for a symbol."""
        logger.info(f"Saving configuration for {symbol}")
        return await self.post("bot/config", {"symbol": symbol, "config": config})

    async def set_strategy(self, symbol: str, strategy: str) -> Any:
        """Switch the active strategy of a running bot."""
        logger.info(f"Switching {symbol} strategy to {strategy}")
        return await self.post("bot/strategy", {"symbol": symbol, "strategy": strategy})

    async def get_bot_stats(self, symbol: str) -> BotStats:
        """Fetch trading statistics for a symbol."""
        data = await self.get("bot/stats", params={"symbol": symbol})
        return _validate(BotStats, data, "bot/stats")

    async def analyze_market(self, symbol: str) -> MarketAnalysis:
        """Fetch market-condition analysis and the recommended strategy."""
        data = await self.get("bot/market-analysis", params={"symbol": symbol})
        return _validate(MarketAnalysis, data, "bot/market-analysis")

    # =========================================================================
    # Market Endpoints
    # =========================================================================

    async def get_ticker(self, symbol: str) -> TickerSnapshot:
        """
        Fetch the 24h ticker for a symbol.

        The v2 response is normalized to a flat TickerSnapshot; an empty
        data list is treated as malformed rather than silently replaced.
        """
        data = await self.get(f"market/ticker/{symbol}")
        response = _validate(TickerResponse, data, f"market/ticker/{symbol}")
        return TickerSnapshot.from_response(response)

    # =========================================================================
    # Account Endpoints
    # =========================================================================

    async def get_account_balance(self) -> AccountBalance:
        """
        Fetch the futures account balance.

        Not tied to a symbol. A body without "data" is malformed, never
        silently read as a zero balance.
        """
        data = await self.get("account/balance")
        response = _validate(BalanceResponse, data, "account/balance")
        return AccountBalance.from_response(response)


def _validate(model: Any, data: Any, resource: str) -> Any:
    """Validate a decoded body against a model, mapping failures to MalformedResponseError."""
    if not isinstance(data, dict):
        raise MalformedResponseError(
            f"{resource} returned {type(data).__name__}, expected object"
        )
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(f"{resource} payload invalid: {e}")
