"""
Pytest configuration for Amplitude plugin tests.
"""

from __future__ import annotations

import contextlib
import json
import threading
from collections.abc import Callable
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest


class SpyTransport(httpx.MockTransport):
    """Mock transport that records every request and answers with a configurable response."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.raised: list[httpx.TransportError] = []
        self.responder: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, json={"code": 200}
        )
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    def respond_with(self, *args: Any, **kwargs: Any) -> None:
        self.responder = lambda request: httpx.Response(*args, **kwargs)

    def fail_with(self, exc_type: type[httpx.TransportError], message: str) -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            exc = exc_type(message, request=request)
            self.raised.append(exc)
            raise exc

        self.responder = _raise

    @staticmethod
    def json_body(request: httpx.Request) -> Any:
        return json.loads(request.content)

    @staticmethod
    def form_body(request: httpx.Request) -> dict[str, str]:
        return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


class CallbackRecorder:
    """Result callback that lets tests wait for delivery."""

    def __init__(self):
        self.calls: list[Exception | None] = []
        self._done = threading.Event()

    def __call__(self, error: Exception | None) -> None:
        self.calls.append(error)
        self._done.set()

    def wait(self, timeout: float = 5.0) -> Exception | None:
        assert self._done.wait(timeout), "callback was not invoked"
        return self.calls[-1]


class FakeAnalytics:
    """Host framework instance exposing the anonymous id."""

    def __init__(self, anonymous_id: str = "anon-123"):
        self.anonymous_id = anonymous_id
        self.queries: list[str] = []

    def user(self, key: str) -> Any:
        self.queries.append(key)
        if key == "anonymousId":
            return self.anonymous_id
        return None


class FakeSdk:
    """In-memory stand-in for the vendor SDK recording every call."""

    def __init__(self, name: str = "$default_instance", complete_init: bool = False):
        self.name = name
        self.complete_init = complete_init
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.on_complete: Callable[..., Any] | None = None

    def init(self, api_key, user_id, options, on_complete):
        self.calls.append(("init", (api_key, user_id, options)))
        self.on_complete = on_complete
        if self.complete_init:
            on_complete(self)

    def set_device_id(self, device_id):
        self.calls.append(("set_device_id", (device_id,)))

    def set_user_id(self, user_id):
        self.calls.append(("set_user_id", (user_id,)))

    def set_user_properties(self, properties):
        self.calls.append(("set_user_properties", (properties,)))

    def log_event(self, event_type, properties=None):
        self.calls.append(("log_event", (event_type, properties)))

    def finish_init(self) -> None:
        assert self.on_complete is not None
        self.on_complete(self)

    def calls_named(self, name: str) -> list[tuple[Any, ...]]:
        return [args for call, args in self.calls if call == name]


@pytest.fixture
def transport():
    """Spy transport answering 200 by default."""
    return SpyTransport()


@pytest.fixture
def http_client(transport):
    client = httpx.Client(transport=transport)
    yield client
    client.close()


@pytest.fixture
def amplitude_client(http_client):
    """AmplitudeClient for device 'dev-1' against the default endpoint."""
    from analytics_plugin_amplitude import AmplitudeClient, UserContext

    client = AmplitudeClient(
        base_url="https://api.amplitude.com/",
        api_key="test-key",
        user_context=UserContext(device_id="dev-1"),
        http_client=http_client,
    )
    yield client
    with contextlib.suppress(Exception):
        client.close()


@pytest.fixture
def analytics():
    return FakeAnalytics()


@pytest.fixture
def callback():
    return CallbackRecorder()


@pytest.fixture
def server_plugin(http_client, analytics):
    """Initialized server plugin sending through the spy transport."""
    from analytics_plugin_amplitude import amplitude

    plugin = amplitude({"apiKey": "test-key"}, http_client=http_client)
    plugin.initialize({"config": plugin.config, "instance": analytics})
    yield plugin
    with contextlib.suppress(Exception):
        plugin.shutdown()


@pytest.fixture
def fake_sdks():
    """SDK registry whose factory builds FakeSdk handles; returns (registry, created)."""
    from analytics_plugin_amplitude import SdkRegistry

    created: dict[str, FakeSdk] = {}

    def factory(name: str) -> FakeSdk:
        created[name] = FakeSdk(name)
        return created[name]

    return SdkRegistry(factory), created
