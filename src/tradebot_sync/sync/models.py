"""
Data models for the synchronizer.

These models represent:
- Resource keys (what is being polled)
- Resolution results from a policy (value + which source produced it)
- Fetch attempt outcomes (Success / Fallback / Failure)
- Consumer-visible resolved state

Note on staleness:
    ResolvedState is replaced wholesale on every outcome, never mutated.
    A Failure keeps the previous value but flips is_stale, so the consumer
    can keep rendering while showing the non-fatal error.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union


class Origin(str, Enum):
    """Which precedence tier produced a resolved value."""
    LIVE = "live"
    PERSISTED = "persisted"
    RECOMMENDED = "recommended"
    SYNTHETIC = "synthetic"


class ResourceKind(str, Enum):
    """Pollable resource types exposed by the backend."""
    STATUS = "status"
    CONFIG = "config"
    TICKER = "ticker"
    ANALYSIS = "analysis"
    STATS = "stats"
    BALANCE = "balance"

    @property
    def requires_symbol(self) -> bool:
        """Account-level resources (balance) are not tied to a trading pair."""
        return self is not ResourceKind.BALANCE


@dataclass(frozen=True)
class ResourceKey:
    """
    Stable identifier of one pollable remote value.

    Attributes:
        kind: Resource type
        symbol: Trading pair, e.g. "BTCUSDT"; None for account-level kinds
    """
    kind: ResourceKind
    symbol: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind.requires_symbol and not self.symbol:
            raise ValueError(f"{self.kind.value} keys need a symbol")
        if not self.kind.requires_symbol and self.symbol is not None:
            raise ValueError(f"{self.kind.value} keys take no symbol, got {self.symbol!r}")

    def __str__(self) -> str:
        if self.symbol is None:
            return self.kind.value
        return f"{self.kind.value}:{self.symbol}"

    @classmethod
    def parse(cls, text: str) -> "ResourceKey":
        """Parse "<kind>:<symbol>" (e.g. "ticker:BTCUSDT") or a bare account kind ("balance")."""
        kind, _, symbol = text.partition(":")
        return cls(ResourceKind(kind), symbol or None)


@dataclass(frozen=True)
class Resolution:
    """Value picked by a resolution policy, plus the sources it queried."""
    value: Any
    origin: Origin
    sources_tried: tuple[str, ...] = ()


# =============================================================================
# Fetch Outcomes
# =============================================================================


@dataclass(frozen=True)
class Success:
    """A policy resolved a value from a real source."""
    value: Any
    origin: Origin


@dataclass(frozen=True)
class Fallback:
    """All attempts failed; a synthetic placeholder was produced."""
    value: Any
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class Failure:
    """All attempts failed and no placeholder could be produced."""
    error: BaseException


Outcome = Union[Success, Fallback, Failure]


@dataclass(frozen=True)
class FetchAttempt:
    """
    Ephemeral record of one resolution cycle.

    Attributes:
        key: Resource that was resolved
        outcome: Success, Fallback or Failure
        sources_tried: Source identifiers queried, in order, across attempts
        attempts: Number of policy invocations (1 or 2)
    """
    key: ResourceKey
    outcome: Outcome
    sources_tried: tuple[str, ...] = ()
    attempts: int = 1

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, Success)


# =============================================================================
# Consumer State
# =============================================================================


@dataclass(frozen=True)
class ResolvedState:
    """
    Value exposed to consumers for one subscription.

    Attributes:
        value: Last resolved or synthesized payload
        origin: Tier that produced value (None before first resolution)
        is_stale: True for synthetic values or when the latest tick failed
        last_updated: When value was last assigned
        error: Non-fatal error message from the latest failing tick
    """
    value: Any = None
    origin: Optional[Origin] = None
    is_stale: bool = True
    last_updated: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def has_value(self) -> bool:
        return self.origin is not None

    def with_success(self, value: Any, origin: Origin) -> "ResolvedState":
        return ResolvedState(
            value=value,
            origin=origin,
            is_stale=False,
            last_updated=datetime.now(timezone.utc),
            error=None,
        )

    def with_fallback(self, value: Any, error: Optional[str]) -> "ResolvedState":
        return ResolvedState(
            value=value,
            origin=Origin.SYNTHETIC,
            is_stale=True,
            last_updated=datetime.now(timezone.utc),
            error=error,
        )

    def with_failure(self, error: str) -> "ResolvedState":
        return replace(self, is_stale=True, error=error)

    def to_dict(self) -> dict:
        """Convert to the consumer-facing JSON shape."""
        return {
            "value": self.value,
            "origin": self.origin.value if self.origin else None,
            "isStale": self.is_stale,
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
            "error": self.error,
        }
