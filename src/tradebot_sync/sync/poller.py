"""
Poller - one repeating timer per subscription.

The poller fires a tick immediately on start and then every
`interval_seconds` until cancelled. Ticks run as their own tasks so a slow
tick never delays the timer; a per-subscription single-flight guard skips a
tick that fires while the previous one is still resolving.

State machine:
    IDLE -> RUNNING -> CANCELLED (terminal)
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from .models import ResourceKey

logger = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[None]]


class PollerState(Enum):
    """Lifecycle of a poller."""

    IDLE = "idle"
    RUNNING = "running"
    CANCELLED = "cancelled"


@dataclass
class Subscription:
    """
    One consumer's interest in one resource.

    Attributes:
        key: Resource being polled
        interval_seconds: Re-fetch cadence
        active: False once unsubscribed; results must not be committed after
    """

    key: ResourceKey
    interval_seconds: float
    active: bool = True

    def __post_init__(self) -> None:
        if self.interval_seconds <= 0:
            raise ValueError(
                f"interval_seconds must be positive, got {self.interval_seconds}"
            )


class Poller:
    """
    Owns the timer for a single subscription.

    Usage:
        poller = Poller(subscription)
        cancel = poller.start(on_tick)
        # ... later ...
        cancel()  # idempotent
    """

    def __init__(self, subscription: Subscription) -> None:
        self._subscription = subscription
        self._state = PollerState.IDLE
        self._on_tick: Optional[TickCallback] = None
        self._timer_task: Optional[asyncio.Task] = None
        self._in_flight: Optional[asyncio.Task] = None
        self._ticks_fired = 0
        self._ticks_skipped = 0

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def subscription(self) -> Subscription:
        return self._subscription

    @property
    def ticks_fired(self) -> int:
        """Ticks that started a resolution."""
        return self._ticks_fired

    @property
    def ticks_skipped(self) -> int:
        """Ticks dropped because the previous one was still in flight."""
        return self._ticks_skipped

    @property
    def is_busy(self) -> bool:
        """Whether a tick is currently resolving."""
        return self._in_flight is not None and not self._in_flight.done()

    def start(self, on_tick: TickCallback) -> Callable[[], None]:
        """
        Start polling. The first tick fires immediately.

        Returns:
            Idempotent cancel function

        Raises:
            RuntimeError: If the poller was already cancelled
        """
        if self._state == PollerState.CANCELLED:
            raise RuntimeError(
                f"Poller for {self._subscription.key} was cancelled; "
                "create a new subscription instead"
            )
        if self._state == PollerState.RUNNING:
            logger.warning(f"Poller for {self._subscription.key} already running")
            return self.cancel

        self._state = PollerState.RUNNING
        self._on_tick = on_tick
        self._fire()
        self._timer_task = asyncio.create_task(
            self._timer_loop(),
            name=f"poll:{self._subscription.key}",
        )
        logger.debug(
            f"Started poller for {self._subscription.key} "
            f"(interval={self._subscription.interval_seconds}s)"
        )
        return self.cancel

    def cancel(self) -> None:
        """Stop the timer. Safe to call any number of times."""
        if self._state == PollerState.CANCELLED:
            return

        self._state = PollerState.CANCELLED
        self._subscription.active = False
        if self._timer_task and not self._timer_task.done():
            self._timer_task.cancel()
        logger.debug(f"Cancelled poller for {self._subscription.key}")

    async def run_now(self) -> bool:
        """
        Run an out-of-band tick without resetting the timer.

        Returns:
            False if the poller is not running or a tick is already in flight
        """
        if self._state != PollerState.RUNNING:
            return False
        task = self._fire()
        if task is None:
            return False
        await asyncio.shield(task)
        return True

    async def wait_closed(self) -> None:
        """Wait for the timer and any in-flight tick to finish."""
        pending = [t for t in (self._timer_task, self._in_flight) if t is not None]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    @property
    def is_closed(self) -> bool:
        """Cancelled, with neither the timer nor a tick still running."""
        return self._state == PollerState.CANCELLED and not self._pending_tasks()

    def on_closed(self, callback: Callable[[], None]) -> None:
        """
        Call `callback` once the poller is closed.

        Called right away if the poller is already closed.
        """
        pending = self._pending_tasks()
        if self._state == PollerState.CANCELLED and not pending:
            callback()
            return

        fired = False

        def _check(_task: asyncio.Task) -> None:
            nonlocal fired
            if not fired and self.is_closed:
                fired = True
                callback()

        for task in pending:
            task.add_done_callback(_check)

    def _pending_tasks(self) -> list[asyncio.Task]:
        return [t for t in (self._timer_task, self._in_flight) if t is not None and not t.done()]

    def _fire(self) -> Optional[asyncio.Task]:
        """Start a tick unless one is already in flight."""
        if self.is_busy:
            self._ticks_skipped += 1
            logger.debug(f"Skipping tick for {self._subscription.key}: previous tick in flight")
            return None

        self._ticks_fired += 1
        self._in_flight = asyncio.create_task(
            self._run_tick(),
            name=f"tick:{self._subscription.key}",
        )
        return self._in_flight

    async def _run_tick(self) -> None:
        try:
            await self._on_tick()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in tick for {self._subscription.key}: {e}")

    async def _timer_loop(self) -> None:
        """Fire a tick every interval, on a fixed schedule."""
        loop = asyncio.get_running_loop()
        interval = self._subscription.interval_seconds
        next_at = loop.time()

        while self._state == PollerState.RUNNING:
            try:
                next_at += interval
                await asyncio.sleep(max(0.0, next_at - loop.time()))

                if self._state != PollerState.RUNNING:
                    break

                self._fire()

            except asyncio.CancelledError:
                break
