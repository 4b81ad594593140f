"""
OpenTelemetry integration for outbound Amplitude requests.

Each HTTP call made by the server-side client runs inside a CLIENT span
when OpenTelemetry is installed. This module gracefully degrades if
OpenTelemetry is not installed, allowing the library to work without OTEL
as a required dependency.

Usage:
    from analytics_plugin_amplitude.telemetry import request_span

    with request_span("amplitude.identify", {"http.url": url}) as span:
        response = http.post(url, ...)
        record_response(span, response.status_code)
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger(__name__)

# Try to import OpenTelemetry, but don't require it
try:
    from opentelemetry import trace
    from opentelemetry.trace import SpanKind, Status, StatusCode

    OTEL_AVAILABLE = True
except ImportError:
    OTEL_AVAILABLE = False
    trace = None  # type: ignore
    Status = None  # type: ignore
    StatusCode = None  # type: ignore
    SpanKind = None  # type: ignore


def is_otel_available() -> bool:
    """Check if OpenTelemetry is available."""
    return OTEL_AVAILABLE


def get_tracer(name: str = "analytics_plugin_amplitude") -> Any:
    """
    Get an OpenTelemetry tracer.

    Returns:
        Tracer instance if OTEL available, None otherwise
    """
    if not OTEL_AVAILABLE:
        return None
    return trace.get_tracer(name)


@contextlib.contextmanager
def request_span(name: str, attributes: dict[str, Any] | None = None) -> Iterator[Any]:
    """
    Run the enclosed block inside a CLIENT span.

    Yields the span, or None when OpenTelemetry is not installed. Exceptions
    raised inside the block are recorded on the span and re-raised.

    Args:
        name: Span name
        attributes: Initial span attributes
    """
    if not OTEL_AVAILABLE:
        yield None
        return

    tracer = get_tracer()
    with tracer.start_as_current_span(name, kind=SpanKind.CLIENT) as span:
        if attributes:
            for key, value in attributes.items():
                span.set_attribute(key, value)
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise


def record_response(span: Any, status_code: int) -> None:
    """
    Annotate a request span with the HTTP status.

    Args:
        span: Span yielded by ``request_span`` (may be None)
        status_code: HTTP status returned by Amplitude
    """
    if span is None or not span.is_recording():
        return

    span.set_attribute("http.status_code", status_code)
    if status_code == 200:
        span.set_status(Status(StatusCode.OK))
    else:
        span.set_status(Status(StatusCode.ERROR, f"HTTP {status_code}"))
        logger.debug(f"Recorded failing Amplitude response {status_code} on span")
