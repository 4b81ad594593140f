"""Page view tracking shared by the browser and server plugins."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

DEFAULT_PAGE_EVENT_TYPE = "Page View"


class EventLogger(Protocol):
    """Anything with Amplitude's ``logEvent`` shape: the SDK or ``AmplitudeClient``."""

    def log_event(self, event_type: str, properties: Mapping[str, Any] | None = None) -> Any: ...


class PageViewTracker:
    """Turns a page view into a single named Amplitude event."""

    def __init__(self, client: EventLogger):
        self._client = client

    def page(self, data: Mapping[str, Any]) -> Any:
        payload = data.get("payload") or {}
        options = payload.get("options") or {}
        event_type = options.get("eventType") or DEFAULT_PAGE_EVENT_TYPE
        return self._client.log_event(event_type, payload.get("properties"))
