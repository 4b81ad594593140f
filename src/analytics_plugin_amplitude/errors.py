"""
Exception taxonomy for the Amplitude plugin.

Configuration problems are raised synchronously from ``initialize``.
Request failures never raise at the call site; they are delivered to the
caller's callback (and set on the returned future).
"""

from __future__ import annotations

from typing import Any

import httpx

# Transport failures reach callers unchanged, as raised by httpx
TransportError = httpx.TransportError


class AmplitudeError(Exception):
    """Base class for all plugin errors."""

    pass


class ConfigurationError(AmplitudeError):
    """Raised when the plugin configuration is invalid."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class PluginNotReadyError(AmplitudeError):
    """Raised when a hook is called before ``initialize`` created a client."""

    def __init__(self, hook: str):
        self.hook = hook
        super().__init__(f"Amplitude plugin is not initialized; cannot call {hook}()")


class ProtocolError(AmplitudeError):
    """Amplitude answered with a status other than 200."""

    def __init__(self, status_code: int, body: Any, details: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Unexpected response from Amplitude {status_code}: {details}")
