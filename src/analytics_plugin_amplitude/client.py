"""
Amplitude HTTP API v2 client.

Server-side processes have no vendor SDK, so this client speaks the
ingestion protocol directly:

- ``POST {base_url}identify`` with a form body carrying ``api_key`` and a
  base64-encoded JSON ``identification``
- ``POST {base_url}2/httpapi`` with a JSON body ``{api_key, events, options}``

The client reports data for a single user. Every operation returns
immediately with a ``concurrent.futures.Future``; the HTTP request runs on a
single worker so requests leave in call order. The outcome is delivered to
the optional callback as ``None`` (HTTP 200), a ``ProtocolError``, or the
``httpx.TransportError`` the transport raised.

See:
    - https://developers.amplitude.com/#Http-Api-V2
    - https://developers.amplitude.com/#identify-api

Usage:
    from analytics_plugin_amplitude.client import AmplitudeClient, UserContext

    client = AmplitudeClient(
        base_url="https://api.amplitude.com/",
        api_key="token",
        user_context=UserContext(device_id="anon-1"),
    )

    def on_done(error):
        if error:
            print(f"Amplitude rejected the event: {error}")

    client.log_event("Signed Up", {"plan": "pro"}, callback=on_done)
    client.close()
"""

from __future__ import annotations

import base64
import json
import logging
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

import httpx

from .errors import ProtocolError, TransportError
from .metrics import MetricsCollector, TimingContext
from .telemetry import record_response, request_span

logger = logging.getLogger(__name__)

# Receives None on success or the error describing the failure
ResultCallback = Callable[[Exception | None], Any]

IDENTIFY_PATH = "identify"
EVENTS_PATH = "2/httpapi"


class UserContext:
    """
    Identity of the user the client reports for.

    ``device_id`` is fixed at construction; ``user_id`` changes as the
    session is identified or anonymized.
    """

    def __init__(self, device_id: str | None = None, user_id: str | None = None):
        self._device_id = device_id
        self.user_id = user_id

    @property
    def device_id(self) -> str | None:
        return self._device_id

    def to_dict(self) -> dict[str, str]:
        """Wire identity fields, omitting unset ones."""
        data = {}
        if self.user_id is not None:
            data["user_id"] = self.user_id
        if self._device_id is not None:
            data["device_id"] = self._device_id
        return data

    def __repr__(self) -> str:
        return f"UserContext(device_id={self._device_id!r}, user_id={self.user_id!r})"


def _describe_body(response: httpx.Response) -> tuple[Any, str]:
    """Return the decoded body and its string form for error messages."""
    try:
        body = response.json()
    except ValueError:
        return response.text, response.text
    if isinstance(body, (dict, list)):
        return body, json.dumps(body)
    return body, str(body)


class AmplitudeClient:
    """
    Amplitude client that uses Amplitude HTTP API v2.

    Attributes:
        base_url: Fully-qualified base URL that request paths are appended to
        user_context: Identity attached to every identify and event payload
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        user_context: UserContext | None = None,
        http_headers: Mapping[str, str] | None = None,
        event_options: Any = None,
        user_properties: Mapping[str, Any] | None = None,
        http_client: httpx.Client | None = None,
        executor: ThreadPoolExecutor | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Already-normalized base URL (see ``config.normalize_endpoint``)
            api_key: Amplitude project API key
            user_context: Identity for this session (defaults to an empty one)
            http_headers: Extra headers added to every request
            event_options: Ingestion options sent with every event batch
            user_properties: Properties attached to every event
            http_client: httpx client to send requests with (owned if omitted)
            executor: Executor running the requests (single worker if omitted)
            metrics: Optional MetricsCollector for request metrics
        """
        self.base_url = base_url
        self.user_context = user_context or UserContext()
        self._api_key = api_key
        self._http_headers = dict(http_headers or {})
        self._event_options = event_options
        self._user_properties = user_properties
        self._metrics = metrics

        self._owns_http = http_client is None
        self._http = http_client or httpx.Client()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="amplitude"
        )

    def identify(
        self,
        payload: Mapping[str, Any],
        callback: ResultCallback | None = None,
    ) -> Future[None]:
        """
        Send an identify call for the current user.

        ``payload`` typically holds ``user_id`` and ``user_properties``
        (``{"$set": traits}``); any identity field it supplies overrides the
        stored user context.

        Args:
            payload: Identification fields to send
            callback: Optional completion callback

        Returns:
            Future resolved once Amplitude answered
        """
        data: dict[str, Any] = self.user_context.to_dict()
        data.update(payload)
        for key in ("user_id", "device_id"):
            if key in data and data[key] is None:
                del data[key]

        identification = base64.b64encode(
            json.dumps(data, separators=(",", ":")).encode("utf-8")
        ).decode("ascii")
        form = {"api_key": self._api_key, "identification": identification}

        return self._submit(IDENTIFY_PATH, {"data": form}, callback)

    def send_events(
        self,
        events: Sequence[Mapping[str, Any]],
        callback: ResultCallback | None = None,
    ) -> Future[None]:
        """
        Upload a batch of events in a single request.

        Args:
            events: Event payloads in Amplitude wire shape
            callback: Optional completion callback

        Returns:
            Future resolved once Amplitude answered
        """
        body: dict[str, Any] = {"api_key": self._api_key, "events": list(events)}
        if self._event_options is not None:
            body["options"] = self._event_options

        return self._submit(EVENTS_PATH, {"json": body}, callback, event_count=len(body["events"]))

    def log_event(
        self,
        event_type: str | None,
        properties: Mapping[str, Any] | None = None,
        payload_base: Mapping[str, Any] | None = None,
        callback: ResultCallback | None = None,
    ) -> Future[None]:
        """
        Compose one event for the current user and send it.

        Stored user properties come first, ``payload_base`` is merged over
        them, and the identity fields always come from ``user_context``.

        Args:
            event_type: Event name
            properties: Event properties (omitted when empty)
            payload_base: Extra top-level fields, e.g. ``user_properties``
            callback: Optional completion callback

        Returns:
            Future resolved once Amplitude answered
        """
        event: dict[str, Any] = {}
        if self._user_properties is not None:
            event["user_properties"] = self._user_properties
        if payload_base:
            event.update(payload_base)

        event.pop("user_id", None)
        event.pop("device_id", None)
        event.update(self.user_context.to_dict())

        if event_type:
            event["event_type"] = event_type
        if properties:
            event["event_properties"] = dict(properties)

        return self.send_events([event], callback)

    def close(self) -> None:
        """Wait for in-flight requests, then release owned resources."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> AmplitudeClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _submit(
        self,
        path: str,
        request_kwargs: dict[str, Any],
        callback: ResultCallback | None,
        event_count: int = 0,
    ) -> Future[None]:
        """Schedule a POST and wire its outcome to the callback."""
        future = self._executor.submit(self._post, path, request_kwargs, event_count)
        if callback is not None:
            future.add_done_callback(lambda f: self._invoke_callback(callback, f))
        return future

    def _post(self, path: str, request_kwargs: dict[str, Any], event_count: int) -> None:
        """Perform one request; raises the httpx TransportError or ProtocolError on failure."""
        url = f"{self.base_url}{path}"
        logger.debug(f"POST {url}")

        timing = TimingContext()
        status_code: int | None = None
        try:
            with request_span(f"amplitude.{path}", {"http.method": "POST", "http.url": url}) as span:
                with timing:
                    try:
                        response = self._http.post(
                            url, headers=self._http_headers, **request_kwargs
                        )
                    except TransportError as e:
                        logger.warning(f"Amplitude request to {url} failed: {e!r}")
                        raise
                status_code = response.status_code
                record_response(span, status_code)
        finally:
            if self._metrics:
                self._metrics.record_request(path, timing.elapsed_seconds, status_code)

        if status_code != 200:
            body, details = _describe_body(response)
            logger.warning(f"Amplitude rejected request to {url} with {status_code}")
            raise ProtocolError(status_code, body, details)

        logger.debug(f"Amplitude accepted request to {url}")
        if self._metrics and event_count:
            self._metrics.record_events_sent(event_count)

    @staticmethod
    def _invoke_callback(callback: ResultCallback, future: Future[None]) -> None:
        """Deliver the outcome of a finished request to the caller."""
        try:
            callback(future.exception())
        except Exception:  # nosec - user callback failures must not kill the worker
            logger.exception("Amplitude result callback raised")
