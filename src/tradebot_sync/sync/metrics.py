"""
Metrics collection for the synchronizer.

Counts resolution outcomes per resource key so the state API (and logs)
can show which resources are running on placeholder data.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .models import Failure, Fallback, FetchAttempt, Success


@dataclass
class ResourceMetrics:
    """Outcome counters for one resource key."""

    resolutions: int = 0
    successes: int = 0
    retries: int = 0
    fallbacks: int = 0
    failures: int = 0
    discarded: int = 0
    last_success_at: Optional[datetime] = None
    last_error: Optional[str] = None

    @property
    def success_rate(self) -> float:
        """Successful resolutions as a percentage (100 when idle)."""
        if self.resolutions == 0:
            return 100.0
        return self.successes / self.resolutions * 100

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "resolutions": self.resolutions,
            "successes": self.successes,
            "retries": self.retries,
            "fallbacks": self.fallbacks,
            "failures": self.failures,
            "discarded": self.discarded,
            "success_rate": round(self.success_rate, 1),
            "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
            "last_error": self.last_error,
        }


class SyncMetricsCollector:
    """
    Collects per-resource resolution metrics.

    Usage:
        collector = SyncMetricsCollector()
        collector.record_attempt(attempt)
        collector.get("ticker:BTCUSDT").fallbacks
    """

    def __init__(self) -> None:
        self._resources: dict[str, ResourceMetrics] = {}
        self._started_at = datetime.now(timezone.utc)

    def get(self, key: str) -> ResourceMetrics:
        """Metrics for a key (created empty on first access)."""
        if key not in self._resources:
            self._resources[key] = ResourceMetrics()
        return self._resources[key]

    def record_attempt(self, attempt: FetchAttempt) -> None:
        """Record the outcome of one resolution cycle."""
        metrics = self.get(str(attempt.key))
        metrics.resolutions += 1
        if attempt.attempts > 1:
            metrics.retries += 1

        outcome = attempt.outcome
        if isinstance(outcome, Success):
            metrics.successes += 1
            metrics.last_success_at = datetime.now(timezone.utc)
        elif isinstance(outcome, Fallback):
            metrics.fallbacks += 1
            metrics.last_error = str(outcome.error) if outcome.error else None
        elif isinstance(outcome, Failure):
            metrics.failures += 1
            metrics.last_error = str(outcome.error)

    def record_discarded(self, key: str) -> None:
        """Record a result that arrived after its subscription was closed."""
        self.get(key).discarded += 1

    def to_dict(self) -> dict:
        """All metrics, keyed by resource key."""
        uptime = (datetime.now(timezone.utc) - self._started_at).total_seconds()
        return {
            "started_at": self._started_at.isoformat(),
            "uptime_seconds": round(uptime, 0),
            "resources": {k: m.to_dict() for k, m in sorted(self._resources.items())},
        }
