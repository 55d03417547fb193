"""
Synchronizer - public surface for resilient remote state.

Composes Poller + RetryFallbackController + ResolutionPolicy behind
explicit subscribe/unsubscribe handles. Lifetime is controlled by the
handle, not by whoever happens to be holding a reference.

Usage:
    async with BotApiClient(base_url) as client:
        async with Synchronizer(client) as sync:
            ticker = sync.subscribe(
                "ticker:BTCUSDT",
                interval_seconds=3,
                synthesize=synthesize_ticker,
            )
            state = await ticker.wait_for_first()
            print(state.value["last"], state.origin, state.is_stale)
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Union

from .metrics import SyncMetricsCollector
from .models import ResolvedState, ResourceKey
from .policy import ResolutionPolicy, policy_for
from .poller import Poller, PollerState, Subscription
from .retry import RetryFallbackController
from .synthetic import Synthesizer

if TYPE_CHECKING:
    from tradebot_sync.api.client import BotApiClient

logger = logging.getLogger(__name__)

Listener = Callable[[ResolvedState], Any]


class SubscriptionHandle:
    """
    A consumer's handle on one subscription.

    The handle exposes the latest ResolvedState and the lifecycle controls.
    After unsubscribe() the state is frozen: late results are discarded.
    """

    def __init__(
        self,
        subscription: Subscription,
        policy: ResolutionPolicy,
        controller: RetryFallbackController,
        synthesize: Optional[Synthesizer] = None,
        metrics: Optional[SyncMetricsCollector] = None,
        on_close: Optional[Callable[["SubscriptionHandle"], None]] = None,
    ) -> None:
        self._subscription = subscription
        self._policy = policy
        self._controller = controller
        self._synthesize = synthesize
        self._metrics = metrics
        self._on_close = on_close

        self._poller = Poller(subscription)
        self._state = ResolvedState()
        self._first_tick = True
        self._first_resolved = asyncio.Event()
        self._listeners: List[Listener] = []

    @property
    def key(self) -> ResourceKey:
        return self._subscription.key

    @property
    def active(self) -> bool:
        return self._subscription.active

    @property
    def interval_seconds(self) -> float:
        return self._subscription.interval_seconds

    @property
    def poller(self) -> Poller:
        return self._poller

    @property
    def policy(self) -> ResolutionPolicy:
        return self._policy

    @property
    def state(self) -> ResolvedState:
        """Latest resolved state (read-only snapshot)."""
        return self._state

    def get_state(self) -> ResolvedState:
        return self._state

    def add_listener(self, listener: Listener) -> None:
        """Call `listener(state)` after every committed state change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def start(self) -> None:
        self._poller.start(self._tick)

    def unsubscribe(self) -> None:
        """Stop polling. Idempotent; the last state stays readable."""
        if self._poller.state == PollerState.CANCELLED:
            return

        self._poller.cancel()
        self._first_resolved.set()
        logger.info(f"Unsubscribed from {self.key}")

        if self._on_close:
            self._on_close(self)

    async def force_refresh(self) -> bool:
        """
        Resolve now, out of band, without resetting the timer.

        Returns:
            False if unsubscribed or a resolution is already in flight
        """
        return await self._poller.run_now()

    async def wait_for_first(self, timeout: Optional[float] = None) -> ResolvedState:
        """Wait until the first resolution has been committed (or unsubscribe)."""
        await asyncio.wait_for(self._first_resolved.wait(), timeout=timeout)
        return self._state

    async def wait_closed(self) -> None:
        await self._poller.wait_closed()

    async def _tick(self) -> None:
        first_tick = self._first_tick
        self._first_tick = False

        attempt = await self._controller.resolve_once(
            self.key,
            self._policy,
            self._synthesize,
            first_tick=first_tick,
            is_active=lambda: self._subscription.active,
        )

        # Subscription closed while the fetch was in flight
        if not self._subscription.active:
            logger.debug(f"Discarding late result for {self.key}")
            if self._metrics:
                self._metrics.record_discarded(str(self.key))
            return

        if self._metrics:
            self._metrics.record_attempt(attempt)

        self._state = self._controller.apply(self._state, attempt)
        self._first_resolved.set()
        await self._notify(self._state)

    async def _notify(self, state: ResolvedState) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(state)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Listener for {self.key} failed: {e}")


class Synchronizer:
    """
    Owns every live subscription and the shared retry controller.

    Subscriptions are independent: each has its own timer, state and
    single-flight guard. They share only the backend client.
    """

    def __init__(
        self,
        client: Optional["BotApiClient"] = None,
        retry_delay: float = 1.0,
        controller: Optional[RetryFallbackController] = None,
        metrics: Optional[SyncMetricsCollector] = None,
    ) -> None:
        """
        Initialize the synchronizer.

        Args:
            client: Backend client used to build default policies
            retry_delay: Seconds before the single retry of a failed resolution
            controller: Custom retry controller (overrides retry_delay)
            metrics: Metrics collector (created if not provided)
        """
        self._client = client
        self._controller = controller or RetryFallbackController(retry_delay=retry_delay)
        self._metrics = metrics or SyncMetricsCollector()
        self._handles: List[SubscriptionHandle] = []
        self._closing: List[SubscriptionHandle] = []

    async def __aenter__(self) -> "Synchronizer":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def metrics(self) -> SyncMetricsCollector:
        return self._metrics

    @property
    def subscriptions(self) -> List[SubscriptionHandle]:
        """Live subscription handles."""
        return list(self._handles)

    @property
    def closing(self) -> List[SubscriptionHandle]:
        """Unsubscribed handles whose timer or last tick is still running."""
        return list(self._closing)

    def find(self, key: Union[str, ResourceKey]) -> Optional[SubscriptionHandle]:
        """First live subscription for a key, if any."""
        key = _as_key(key)
        for handle in self._handles:
            if handle.key == key:
                return handle
        return None

    def subscribe(
        self,
        key: Union[str, ResourceKey],
        interval_seconds: float,
        synthesize: Optional[Synthesizer] = None,
        policy: Optional[ResolutionPolicy] = None,
    ) -> SubscriptionHandle:
        """
        Start polling a resource.

        Must be called from a running event loop. The first resolution
        starts immediately; until it completes the state is empty and stale.

        Args:
            key: ResourceKey or "kind:SYMBOL"
            interval_seconds: Re-fetch cadence (must be positive)
            synthesize: Placeholder generator used when both attempts fail
            policy: Resolution policy (default policy for the kind if None)

        Raises:
            ValueError: On a non-positive interval, or no policy and no client
        """
        key = _as_key(key)
        subscription = Subscription(key=key, interval_seconds=interval_seconds)

        if policy is None:
            if self._client is None:
                raise ValueError(f"No policy given for {key} and no client to build one")
            policy = policy_for(key, self._client)

        handle = SubscriptionHandle(
            subscription,
            policy,
            self._controller,
            synthesize=synthesize,
            metrics=self._metrics,
            on_close=self._forget,
        )
        self._handles.append(handle)
        handle.start()

        logger.info(f"Subscribed to {key} (interval={interval_seconds}s)")
        return handle

    async def close(self) -> None:
        """Unsubscribe everything and wait for in-flight ticks to settle."""
        for handle in list(self._handles):
            handle.unsubscribe()

        closing, self._closing = self._closing, []
        if closing:
            await asyncio.gather(*(h.wait_closed() for h in closing), return_exceptions=True)

    def _forget(self, handle: SubscriptionHandle) -> None:
        if handle not in self._handles:
            return
        self._handles.remove(handle)

        # Held only until its timer and last tick have finished
        self._closing.append(handle)
        handle.poller.on_closed(lambda: self._release(handle))

    def _release(self, handle: SubscriptionHandle) -> None:
        if handle in self._closing:
            self._closing.remove(handle)


def _as_key(key: Union[str, ResourceKey]) -> ResourceKey:
    if isinstance(key, ResourceKey):
        return key
    return ResourceKey.parse(key)
