"""
Sync Layer - Resilient remote state synchronization.

This module provides:
    - Synchronizer / SubscriptionHandle: subscribe, unsubscribe, force_refresh
    - Poller / Subscription: one timer per subscription, single-flight ticks
    - RetryFallbackController: retry once, then synthetic placeholder
    - ConfigResolutionPolicy: live > persisted > recommended config precedence
    - LiveResourcePolicy: single-source market resources
    - update_path: immutable nested updates for configuration trees
    - ConfigEditor: load / edit / submit session for a bot configuration

Data Flow:
    1. Poller fires a tick (immediately, then every interval)
    2. RetryFallbackController runs the policy, retrying once on failure
    3. ResolutionPolicy queries sources through the API client
    4. Outcome (Success / Fallback / Failure) becomes the next ResolvedState
    5. Results arriving after unsubscribe() are discarded
"""

# Models
from .models import (
    Failure,
    Fallback,
    FetchAttempt,
    Origin,
    Resolution,
    ResolvedState,
    ResourceKey,
    ResourceKind,
    Success,
)

# Tree updates
from .tree import get_path, merge_fields, update_path

# Placeholders
from .synthetic import (
    DEFAULT_BOT_CONFIG,
    default_config,
    synthesize_analysis,
    synthesize_balance,
    synthesize_config,
    synthesize_stats,
    synthesize_status,
    synthesize_ticker,
    synthesizer_for,
)

# Policies
from .policy import (
    ConfigResolutionPolicy,
    LiveResourcePolicy,
    ResolutionPolicy,
    policy_for,
)

# Retry / polling / facade
from .retry import RetryFallbackController
from .poller import Poller, PollerState, Subscription
from .metrics import ResourceMetrics, SyncMetricsCollector
from .synchronizer import SubscriptionHandle, Synchronizer

# Configuration editing
from .editor import ConfigEditor

__all__ = [
    # Models
    "Failure",
    "Fallback",
    "FetchAttempt",
    "Origin",
    "Resolution",
    "ResolvedState",
    "ResourceKey",
    "ResourceKind",
    "Success",
    # Tree updates
    "get_path",
    "merge_fields",
    "update_path",
    # Placeholders
    "DEFAULT_BOT_CONFIG",
    "default_config",
    "synthesize_analysis",
    "synthesize_balance",
    "synthesize_config",
    "synthesize_stats",
    "synthesize_status",
    "synthesize_ticker",
    "synthesizer_for",
    # Policies
    "ConfigResolutionPolicy",
    "LiveResourcePolicy",
    "ResolutionPolicy",
    "policy_for",
    # Retry / polling / facade
    "RetryFallbackController",
    "Poller",
    "PollerState",
    "Subscription",
    "ResourceMetrics",
    "SyncMetricsCollector",
    "SubscriptionHandle",
    "Synchronizer",
    # Configuration editing
    "ConfigEditor",
]
