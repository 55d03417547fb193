"""
Retry/fallback controller - one resolution cycle with a safety net.

Each cycle runs the policy, retries exactly once after a fixed delay, and
then falls back to a synthetic placeholder. During steady-state polling a
failure is never raised to the consumer: it becomes either a retried
success or a Fallback. Only when no synthesizer is supplied does a Failure
come back, which the synchronizer surfaces as an explicit error state.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from .models import (
    Failure,
    Fallback,
    FetchAttempt,
    ResolvedState,
    ResourceKey,
    Success,
)
from .policy import ResolutionPolicy
from .synthetic import Synthesizer

logger = logging.getLogger(__name__)


def describe_error(error: BaseException) -> str:
    """Short human-readable form of an error for the state's error field."""
    message = str(error)
    return f"{type(error).__name__}: {message}" if message else type(error).__name__


class RetryFallbackController:
    """
    Wraps a single resolution with retry-once and synthetic fallback.

    Usage:
        controller = RetryFallbackController(retry_delay=1.0)
        attempt = await controller.resolve_once(key, policy, synthesize_ticker)
        state = controller.apply(state, attempt)
    """

    def __init__(self, retry_delay: float = 1.0) -> None:
        """
        Initialize the controller.

        Args:
            retry_delay: Seconds to wait before the single retry
        """
        self._retry_delay = retry_delay

    @property
    def retry_delay(self) -> float:
        return self._retry_delay

    async def resolve_once(
        self,
        key: ResourceKey,
        policy: ResolutionPolicy,
        synthesize: Optional[Synthesizer] = None,
        first_tick: bool = False,
        is_active: Optional[Callable[[], bool]] = None,
    ) -> FetchAttempt:
        """
        Resolve `key` once, retrying a single time on failure.

        Never raises for resolution errors (CancelledError is re-raised).

        Args:
            key: Resource to resolve
            policy: Policy that picks the authoritative source
            synthesize: Placeholder generator used after both attempts fail
            first_tick: True for a subscription's initial resolution
            is_active: Checked after the retry delay; when it returns False
                       the retry is skipped and a Failure is returned

        Returns:
            FetchAttempt with Success, Fallback, or - only when no
            synthesizer is supplied - Failure
        """
        sources: list[str] = []

        try:
            resolution = await policy.resolve(key)
            sources.extend(resolution.sources_tried)
            return FetchAttempt(key, Success(resolution.value, resolution.origin), tuple(sources), 1)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = e
            logger.warning(f"Resolution of {key} failed: {e}, retrying in {self._retry_delay}s")

        await asyncio.sleep(self._retry_delay)

        # Unsubscribed during the delay
        if is_active is not None and not is_active():
            logger.debug(f"Skipping retry for {key}: no longer active")
            return FetchAttempt(key, Failure(error), tuple(sources), 1)

        try:
            resolution = await policy.resolve(key)
            sources.extend(resolution.sources_tried)
            return FetchAttempt(key, Success(resolution.value, resolution.origin), tuple(sources), 2)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = e

        if synthesize is None:
            # Initial load failures must stay visible; later ones keep the last value
            if first_tick:
                logger.error(f"Initial resolution of {key} failed after retry: {error}")
            else:
                logger.warning(f"Resolution of {key} failed after retry: {error}, keeping last value")
            return FetchAttempt(key, Failure(error), tuple(sources), 2)

        try:
            placeholder = synthesize(key)
        except Exception as e:
            logger.error(f"Placeholder generator for {key} raised: {e}")
            return FetchAttempt(key, Failure(error), tuple(sources), 2)

        logger.warning(f"Resolution of {key} failed after retry: {error}, using placeholder")
        return FetchAttempt(key, Fallback(placeholder, error), tuple(sources), 2)

    @staticmethod
    def apply(state: ResolvedState, attempt: FetchAttempt) -> ResolvedState:
        """Compute the next consumer state from an attempt's outcome."""
        outcome = attempt.outcome
        if isinstance(outcome, Success):
            return state.with_success(outcome.value, outcome.origin)
        if isinstance(outcome, Fallback):
            error = describe_error(outcome.error) if outcome.error else None
            return state.with_fallback(outcome.value, error)
        return state.with_failure(describe_error(outcome.error))
