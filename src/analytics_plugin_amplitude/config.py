"""
Plugin configuration.

The host framework hands the plugin a plain mapping using its own camelCase
keys::

    {
        "apiKey": "token",
        "projectName": "secondary",          # browser variant only
        "options": {
            "apiEndpoint": "api.eu.amplitude.com",
            "httpHeaders": {"X-Forwarded-For": "10.0.0.1"},
            "eventOptions": {"min_id_length": 1},
        },
    }

``PluginConfig.from_mapping`` validates that mapping and resolves the
endpoint into the base URL used by the HTTP client.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit

from .errors import ConfigurationError

DEFAULT_API_ENDPOINT = "api.amplitude.com"


def normalize_endpoint(endpoint: str | None = None) -> str:
    """
    Resolve a configured endpoint into a base URL.

    An absolute URL is used verbatim. Anything else is treated as a bare
    hostname (the way the browser SDK is configured) and becomes
    ``https://<host>/``.

    Args:
        endpoint: Configured ``apiEndpoint`` (defaults to the production host)

    Returns:
        Base URL that request paths are appended to
    """
    endpoint = endpoint or DEFAULT_API_ENDPOINT
    parts = urlsplit(endpoint)
    if parts.scheme and parts.netloc:
        return endpoint
    return f"https://{endpoint}/"


@dataclass(frozen=True)
class PluginConfig:
    """
    Validated plugin configuration.

    Attributes:
        api_key: Amplitude project API key
        project_name: Optional SDK instance name (browser variant)
        api_endpoint: Endpoint as configured, if any
        http_headers: Extra headers added to every request
        event_options: Opaque ingestion options sent with each batch
        sdk_options: The raw ``options`` mapping handed to the vendor SDK
    """

    api_key: str
    project_name: str | None = None
    api_endpoint: str | None = None
    http_headers: dict[str, str] = field(default_factory=dict)
    event_options: Any = None
    sdk_options: Mapping[str, Any] | None = None

    @property
    def base_url(self) -> str:
        return normalize_endpoint(self.api_endpoint)

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any] | None) -> PluginConfig:
        """
        Build a config from the host framework's mapping.

        Raises:
            ConfigurationError: If the API key is missing or empty, or if
                ``options`` / ``options.httpHeaders`` are not mappings
        """
        config = config or {}

        api_key = config.get("apiKey")
        if not api_key:
            raise ConfigurationError("Amplitude project API key is not defined", field="apiKey")
        if not isinstance(api_key, str):
            raise ConfigurationError("Amplitude project API key must be a string", field="apiKey")

        options = config.get("options")
        if options is not None and not isinstance(options, Mapping):
            raise ConfigurationError("Amplitude SDK options must be an object", field="options")
        opts = options or {}

        headers = opts.get("httpHeaders")
        if headers is not None and not isinstance(headers, Mapping):
            raise ConfigurationError(
                "Amplitude HTTP headers must be an object", field="options.httpHeaders"
            )

        return cls(
            api_key=api_key,
            project_name=config.get("projectName"),
            api_endpoint=opts.get("apiEndpoint"),
            http_headers=dict(headers or {}),
            event_options=opts.get("eventOptions"),
            sdk_options=options,
        )
