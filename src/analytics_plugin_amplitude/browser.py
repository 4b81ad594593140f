"""
Browser-side Amplitude plugin.

In the browser the vendor SDK already handles batching, retries and device
ids, so this plugin only delegates to it. The SDK is an opaque dependency
described by the ``AmplitudeSdk`` protocol; SDK handles are obtained from an
``SdkRegistry`` keyed by project name, so several Amplitude projects can be
reported to from one host process.

Usage:
    from analytics_plugin_amplitude.browser import amplitude_browser, sdk_registry

    sdk_registry.set_factory(lambda name: BridgeToAmplitudeJs(name))

    plugin = amplitude_browser({"apiKey": "token", "projectName": "marketing"})
    plugin.initialize({"config": plugin.config, "instance": analytics})
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from .config import PluginConfig
from .errors import ConfigurationError, PluginNotReadyError
from .page_view import PageViewTracker
from .plugin import AmplitudePlugin, PluginState, read_payload

logger = logging.getLogger(__name__)

DEFAULT_INSTANCE = "$default_instance"


class AmplitudeSdk(Protocol):
    """Capabilities of the vendor SDK instance the plugin relies on."""

    def init(
        self,
        api_key: str,
        user_id: str | None,
        options: Mapping[str, Any] | None,
        on_complete: Callable[..., Any],
    ) -> Any: ...

    def set_device_id(self, device_id: str | None) -> Any: ...

    def set_user_id(self, user_id: str | None) -> Any: ...

    def set_user_properties(self, properties: Mapping[str, Any]) -> Any: ...

    def log_event(self, event_type: str, properties: Mapping[str, Any] | None = None) -> Any: ...


SdkFactory = Callable[[str], AmplitudeSdk]


class SdkRegistry:
    """
    Project name -> SDK handle.

    Handles are created by the factory on first use and live as long as the
    registry. Names are case-insensitive; an empty name means the default
    instance.
    """

    def __init__(self, factory: SdkFactory | None = None):
        self._factory = factory
        self._instances: dict[str, AmplitudeSdk] = {}
        self._lock = threading.Lock()

    def set_factory(self, factory: SdkFactory) -> None:
        """Install the factory used for instances not created yet."""
        with self._lock:
            self._factory = factory

    def get_instance(self, project_name: str | None = None) -> AmplitudeSdk:
        """
        Return the SDK handle for a project, creating it if needed.

        Raises:
            ConfigurationError: If no factory was configured
        """
        key = project_name.lower() if project_name else DEFAULT_INSTANCE
        with self._lock:
            sdk = self._instances.get(key)
            if sdk is None:
                if self._factory is None:
                    raise ConfigurationError(
                        "No Amplitude SDK factory configured", field="projectName"
                    )
                sdk = self._factory(key)
                self._instances[key] = sdk
                logger.debug(f"Created Amplitude SDK instance {key!r}")
            return sdk

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._instances)

    def __contains__(self, project_name: object) -> bool:
        if not isinstance(project_name, str):
            return False
        with self._lock:
            return (project_name.lower() or DEFAULT_INSTANCE) in self._instances

    def __len__(self) -> int:
        with self._lock:
            return len(self._instances)


# Shared by every browser plugin that is not given its own registry
sdk_registry = SdkRegistry()


class AmplitudeBrowserPlugin(AmplitudePlugin):
    """
    Amplitude plugin delegating to the vendor SDK.

    Attributes:
        amplitude: The SDK registry, for direct access to Amplitude APIs
        client: SDK handle in use once initialized
    """

    def __init__(
        self,
        config: Mapping[str, Any] | None = None,
        *,
        registry: SdkRegistry | None = None,
    ):
        super().__init__(config)
        self.amplitude = registry if registry is not None else sdk_registry
        self.client: AmplitudeSdk | None = None

    def initialize(self, ctx: Mapping[str, Any]) -> None:
        """
        Validate the configuration and start the SDK.

        Readiness is reached when the SDK reports its init completed.

        Raises:
            ConfigurationError: If the configuration is invalid or no SDK
                can be obtained
        """
        if self._state is not PluginState.UNINITIALIZED:
            logger.warning("Amplitude plugin already initialized; ignoring initialize()")
            return

        settings = PluginConfig.from_mapping(ctx.get("config", self.config))
        client = self.amplitude.get_instance(settings.project_name)

        options = dict(settings.sdk_options) if settings.sdk_options is not None else None
        self._state = PluginState.INITIALIZING
        try:
            client.init(settings.api_key, None, options, lambda *_: self._mark_ready())
        except Exception:
            self._state = PluginState.UNINITIALIZED
            raise
        self.client = client

        instance = ctx.get("instance")
        client.set_device_id(instance.user("anonymousId") if instance is not None else None)
        self._page_view_tracker = PageViewTracker(client)

    def identify(self, ctx: Mapping[str, Any]) -> None:
        """Set the active user and replace its user properties."""
        client = self._require_client("identify")
        payload = read_payload(ctx)
        client.set_user_id(payload.get("userId"))
        client.set_user_properties(payload.get("traits") or {})

    def track(self, ctx: Mapping[str, Any]) -> Any:
        client = self._require_client("track")
        payload = read_payload(ctx)
        return client.log_event(payload.get("event"), payload.get("properties"))

    def _require_client(self, hook: str) -> AmplitudeSdk:
        if self.client is None:
            raise PluginNotReadyError(hook)
        return self.client


def amplitude_browser(
    config: Mapping[str, Any] | None = None,
    registry: SdkRegistry | None = None,
) -> AmplitudeBrowserPlugin:
    """
    Create the browser Amplitude plugin.

    Args:
        config: Host configuration (``apiKey``, optional ``projectName`` and SDK ``options``)
        registry: SDK registry (defaults to the module-wide ``sdk_registry``)
    """
    return AmplitudeBrowserPlugin(config, registry=registry)
