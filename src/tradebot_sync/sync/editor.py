"""
ConfigEditor - editing session for one symbol's bot configuration.

Loads the effective configuration through ConfigResolutionPolicy (live >
persisted > recommended), applies nested edits immutably, and submits the
result back to the backend. Every edit produces a new tree, so a renderer
holding `editor.tree` never sees a half-applied change.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Optional

from .models import Origin, ResolvedState, ResourceKey, ResourceKind
from .policy import ConfigResolutionPolicy, Recommendation
from .retry import RetryFallbackController
from .tree import Path, get_path, merge_fields, update_path

if TYPE_CHECKING:
    from tradebot_sync.api.client import BotApiClient

logger = logging.getLogger(__name__)


class ConfigEditor:
    """
    Editing session for a bot configuration.

    Usage:
        editor = ConfigEditor(client, "BTCUSDT", recommendation=analysis)
        state = await editor.load()
        editor.edit("common.leverage", 20)
        editor.set_strategy("SCALPING")
        await editor.submit()
    """

    def __init__(
        self,
        client: "BotApiClient",
        symbol: str,
        defaults: Optional[Mapping[str, Any]] = None,
        recommendation: Recommendation = None,
        controller: Optional[RetryFallbackController] = None,
    ) -> None:
        """
        Initialize the editor.

        Args:
            client: Backend client
            symbol: Trading pair being configured
            defaults: Default tree shown when nothing is stored
            recommendation: Strategy tag, MarketAnalysis or analysis payload to pre-select
            controller: Retry controller for loading (1s retry delay if None)
        """
        self._client = client
        self._key = ResourceKey(ResourceKind.CONFIG, symbol)
        self._policy = ConfigResolutionPolicy(client, defaults, recommendation)
        self._controller = controller or RetryFallbackController()

        self._state = ResolvedState()
        self._loaded: Mapping[str, Any] = self._policy.defaults
        self._tree: Mapping[str, Any] = self._loaded

    @property
    def symbol(self) -> str:
        return self._key.symbol

    @property
    def state(self) -> ResolvedState:
        """State produced by the last load()."""
        return self._state

    @property
    def origin(self) -> Optional[Origin]:
        return self._state.origin

    @property
    def tree(self) -> Mapping[str, Any]:
        """Current (possibly edited) configuration tree."""
        return self._tree

    @property
    def is_dirty(self) -> bool:
        """Whether the tree differs from what was loaded or last saved."""
        return self._tree != self._loaded

    def get(self, path: Path, default: Any = None) -> Any:
        return get_path(self._tree, path, default)

    async def load(self, recommendation: Recommendation = None) -> ResolvedState:
        """
        Resolve the effective configuration.

        On repeated failure the current defaults are shown as a synthetic,
        stale value with the error attached, never an exception.
        """
        if recommendation is not None:
            self._policy.set_recommendation(recommendation)

        attempt = await self._controller.resolve_once(
            self._key,
            self._policy,
            lambda key: self._policy.defaults,
            first_tick=True,
        )
        self._state = self._controller.apply(self._state, attempt)
        self._loaded = self._state.value
        self._tree = self._loaded

        logger.info(
            f"Loaded configuration for {self.symbol} "
            f"(origin={self._state.origin.value}, stale={self._state.is_stale})"
        )
        return self._state

    def edit(self, path: Path, value: Any) -> Mapping[str, Any]:
        """Replace one setting; returns the new tree."""
        self._tree = update_path(self._tree, path, value)
        return self._tree

    def edit_many(self, updates: Mapping[str, Any]) -> Mapping[str, Any]:
        """Apply several "section.field" -> value edits in order."""
        self._tree = merge_fields(self._tree, updates)
        return self._tree

    def set_strategy(self, strategy: str) -> Mapping[str, Any]:
        return self.edit(["activeStrategy"], strategy)

    def reset(self) -> Mapping[str, Any]:
        """Drop unsaved edits."""
        self._tree = self._loaded
        return self._tree

    async def submit(self) -> Any:
        """
        Persist the current tree.

        Errors from the backend propagate to the caller.
        """
        tree = self._tree
        response = await self._client.update_bot_config(self.symbol, dict(tree))
        self._loaded = tree
        logger.info(f"Saved configuration for {self.symbol}")
        return response

    async def switch_live_strategy(self, strategy: str) -> Any:
        """Switch a running bot's strategy and reflect it in the tree."""
        response = await self._client.set_strategy(self.symbol, strategy)
        self.set_strategy(strategy)
        self._loaded = update_path(self._loaded, ["activeStrategy"], strategy)
        return response
