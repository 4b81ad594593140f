"""
Host plugin contract shared by the browser and server Amplitude plugins.

The host analytics framework owns plugin registration and drives each plugin
through its lifecycle hooks::

    plugin.initialize({"config": config, "instance": analytics})
    plugin.identify({"payload": {"userId": "u1", "traits": {"plan": "pro"}}})
    plugin.track({"payload": {"event": "Signed Up", "properties": {...}, "options": {}}})
    plugin.page({"payload": {"properties": {"path": "/"}, "options": {}}})
    plugin.loaded()

Lifecycle: UNINITIALIZED -> INITIALIZING -> READY. Event hooks called before
``initialize`` raise ``PluginNotReadyError``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any, Protocol

from .errors import PluginNotReadyError
from .page_view import PageViewTracker

logger = logging.getLogger(__name__)

PLUGIN_NAME = "amplitude"


class PluginState(Enum):
    """Readiness of a plugin instance."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class AnalyticsInstance(Protocol):
    """The slice of the host framework the plugin queries during ``initialize``."""

    def user(self, key: str) -> Any: ...


class AmplitudePlugin:
    """
    Base class implementing the parts of the hook contract both variants share.

    Attributes:
        name: Plugin identifier registered with the host
        config: Configuration supplied at construction, unmodified
    """

    name = PLUGIN_NAME

    def __init__(self, config: Mapping[str, Any] | None = None):
        self.config = config if config is not None else {}
        self._state = PluginState.UNINITIALIZED
        self._page_view_tracker: PageViewTracker | None = None

    @property
    def state(self) -> PluginState:
        return self._state

    def initialize(self, ctx: Mapping[str, Any]) -> None:
        raise NotImplementedError

    def identify(self, ctx: Mapping[str, Any]) -> Any:
        raise NotImplementedError

    def track(self, ctx: Mapping[str, Any]) -> Any:
        raise NotImplementedError

    def page(self, data: Mapping[str, Any]) -> Any:
        """Log a page view through the shared tracker."""
        if self._page_view_tracker is None:
            raise PluginNotReadyError("page")
        return self._page_view_tracker.page(data)

    def loaded(self) -> bool:
        """True once the underlying client confirmed initialization."""
        return self._state is PluginState.READY

    def _mark_ready(self) -> None:
        logger.debug(f"{type(self).__name__} is ready")
        self._state = PluginState.READY

    def __repr__(self) -> str:
        return f"{type(self).__name__}(state={self._state.value})"


def read_payload(ctx: Mapping[str, Any]) -> Mapping[str, Any]:
    """Extract the ``payload`` mapping of an event hook context."""
    return ctx.get("payload") or {}
