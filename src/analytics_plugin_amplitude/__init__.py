"""
Amplitude plugin for a generic analytics dispatch framework.

Reports identify, track and page calls to Amplitude from two contexts:
- Browser: delegates to the vendor SDK (batching, retries, device ids)
- Server: speaks Amplitude HTTP API v2 directly through httpx

Features:
- Host plugin contract: initialize / identify / track / page / loaded
- Endpoint normalization (bare hostnames or absolute URLs)
- Fire-and-callback requests returning futures, in call order
- Typed errors: ConfigurationError, TransportError, ProtocolError
- Optional OpenTelemetry spans and pluggable request metrics

Basic Usage:
    from analytics_plugin_amplitude import amplitude

    plugin = amplitude({"apiKey": "token"})
    plugin.initialize({"config": plugin.config, "instance": analytics})

    plugin.identify({"payload": {"userId": "u-42", "traits": {"plan": "pro"}}})
    plugin.track({"payload": {"event": "Checkout", "properties": {"total": 12}}})
    plugin.page({"payload": {"properties": {"path": "/pricing"}}})

With a result callback:
    from analytics_plugin_amplitude import AmplitudeClient, UserContext

    client = AmplitudeClient("https://api.amplitude.com/", "token", UserContext("anon-1"))
    client.log_event("Checkout", {"total": 12}, callback=lambda err: print(err))
"""

from .browser import AmplitudeBrowserPlugin, AmplitudeSdk, SdkRegistry, amplitude_browser, sdk_registry
from .client import AmplitudeClient, UserContext
from .config import DEFAULT_API_ENDPOINT, PluginConfig, normalize_endpoint
from .errors import (
    AmplitudeError,
    ConfigurationError,
    PluginNotReadyError,
    ProtocolError,
    TransportError,
)
from .metrics import (
    CallbackMetrics,
    InMemoryMetrics,
    MetricsBackend,
    MetricsCollector,
    NoopMetrics,
)
from .node import AmplitudeServerPlugin, amplitude
from .page_view import DEFAULT_PAGE_EVENT_TYPE, PageViewTracker
from .plugin import PLUGIN_NAME, AmplitudePlugin, AnalyticsInstance, PluginState
from .telemetry import is_otel_available

__version__ = "0.1.0"

__all__ = [
    # Plugins
    "amplitude",
    "amplitude_browser",
    "AmplitudePlugin",
    "AmplitudeServerPlugin",
    "AmplitudeBrowserPlugin",
    "AnalyticsInstance",
    "PluginState",
    "PLUGIN_NAME",
    # Server client
    "AmplitudeClient",
    "UserContext",
    # Browser SDK
    "AmplitudeSdk",
    "SdkRegistry",
    "sdk_registry",
    # Page views
    "PageViewTracker",
    "DEFAULT_PAGE_EVENT_TYPE",
    # Configuration
    "PluginConfig",
    "normalize_endpoint",
    "DEFAULT_API_ENDPOINT",
    # Errors
    "AmplitudeError",
    "ConfigurationError",
    "PluginNotReadyError",
    "TransportError",
    "ProtocolError",
    # Metrics
    "MetricsBackend",
    "MetricsCollector",
    "NoopMetrics",
    "CallbackMetrics",
    "InMemoryMetrics",
    # Telemetry
    "is_otel_available",
]
