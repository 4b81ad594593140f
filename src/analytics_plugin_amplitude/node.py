"""
Server-side Amplitude plugin.

No vendor SDK exists outside the browser, so this plugin drives an
``AmplitudeClient`` that talks to the HTTP API v2 directly.

Usage:
    from analytics_plugin_amplitude import amplitude

    plugin = amplitude({
        "apiKey": "token",
        "options": {
            "apiEndpoint": "api.eu.amplitude.com",
            "httpHeaders": {"User-Agent": "my-service/1.0"},
            "eventOptions": {"min_id_length": 1},
        },
    })
    plugin.initialize({"config": plugin.config, "instance": analytics})
    plugin.track({"payload": {"event": "Signed Up", "properties": {"plan": "pro"}}})
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

import httpx

from .client import AmplitudeClient, UserContext
from .config import PluginConfig
from .errors import PluginNotReadyError
from .metrics import MetricsCollector
from .page_view import PageViewTracker
from .plugin import AmplitudePlugin, PluginState, read_payload

logger = logging.getLogger(__name__)


class AmplitudeServerPlugin(AmplitudePlugin):
    """
    Amplitude plugin for server-side processes.

    One plugin instance reports for one session: it owns a single
    ``AmplitudeClient`` whose user context starts with the host's anonymous
    id and follows ``identify`` calls.
    """

    def __init__(
        self,
        config: Mapping[str, Any] | None = None,
        *,
        user_properties: Mapping[str, Any] | None = None,
        http_client: httpx.Client | None = None,
        executor: ThreadPoolExecutor | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the plugin.

        Args:
            config: Host configuration mapping (validated in ``initialize``)
            user_properties: Properties attached to every event
            http_client: httpx client handed to the AmplitudeClient
            executor: Executor handed to the AmplitudeClient
            metrics: Optional MetricsCollector for request metrics
        """
        super().__init__(config)
        self._user_properties = dict(user_properties or {})
        self._http_client = http_client
        self._executor = executor
        self._metrics = metrics
        self.client: AmplitudeClient | None = None

    def initialize(self, ctx: Mapping[str, Any]) -> None:
        """
        Validate the configuration and build the HTTP client.

        Raises:
            ConfigurationError: If the configuration is invalid; no client
                is created in that case
        """
        if self._state is not PluginState.UNINITIALIZED:
            logger.warning("Amplitude plugin already initialized; ignoring initialize()")
            return

        settings = PluginConfig.from_mapping(ctx.get("config", self.config))
        self._state = PluginState.INITIALIZING

        instance = ctx.get("instance")
        device_id = instance.user("anonymousId") if instance is not None else None

        self.client = AmplitudeClient(
            base_url=settings.base_url,
            api_key=settings.api_key,
            user_context=UserContext(device_id=device_id),
            http_headers=settings.http_headers,
            event_options=settings.event_options,
            user_properties=self._user_properties,
            http_client=self._http_client,
            executor=self._executor,
            metrics=self._metrics,
        )
        self._page_view_tracker = PageViewTracker(self.client)
        logger.debug(f"Amplitude client created for {settings.base_url}")
        self._mark_ready()

    def identify(self, ctx: Mapping[str, Any]) -> Future[None]:
        """Switch the session to ``userId`` and ``$set`` its traits."""
        client = self._require_client("identify")
        payload = read_payload(ctx)
        user_id = payload.get("userId")

        client.user_context.user_id = user_id
        return client.identify(
            {
                "user_id": user_id,
                "user_properties": {"$set": dict(payload.get("traits") or {})},
            }
        )

    def track(self, ctx: Mapping[str, Any]) -> Future[None]:
        """
        Log one event.

        ``options.userProperties`` applies to this event only.
        """
        client = self._require_client("track")
        payload = read_payload(ctx)
        options = payload.get("options") or {}

        payload_base = None
        if options.get("userProperties"):
            payload_base = {"user_properties": options["userProperties"]}
        return client.log_event(payload.get("event"), payload.get("properties"), payload_base)

    def shutdown(self) -> None:
        """Flush in-flight requests and release the client."""
        if self.client is not None:
            self.client.close()
        self.client = None
        self._page_view_tracker = None
        self._state = PluginState.UNINITIALIZED

    def _require_client(self, hook: str) -> AmplitudeClient:
        if self.client is None:
            raise PluginNotReadyError(hook)
        return self.client


def amplitude(config: Mapping[str, Any] | None = None, **kwargs: Any) -> AmplitudeServerPlugin:
    """
    Create the server-side Amplitude plugin.

    Args:
        config: Host configuration (``apiKey`` and optional ``options``)
        **kwargs: Forwarded to ``AmplitudeServerPlugin``

    Returns:
        Plugin ready to be registered with the host framework
    """
    return AmplitudeServerPlugin(config, **kwargs)
