"""
Shared fixtures for buddy-platform tests.
"""

import inspect
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from buddy_platform import (
    BuddyClient,
    CallResult,
    ConnectivityLevel,
    InlineDispatcher,
    MemorySettingsStore,
    RetryPolicy,
)


class FakePlatform:
    """PlatformAccess double with settable connectivity and config."""

    platform = "Test"

    def __init__(self):
        self.application_id = "com.example.app"
        self.app_version = "2.1"
        self.device_unique_id = "device-123"
        self.model = "TestModel"
        self.os_version = "TestOS 1.0"
        self.connectivity_level = ConnectivityLevel.CONNECTED
        self.push_token = None
        self.settings = {}

    async def get_push_token(self):
        return self.push_token

    def set_push_token(self, token):
        self.push_token = token

    def get_config_setting(self, name):
        return self.settings.get(name)


class FakeTransport:
    """RemoteMethodProvider double.

    ``routes`` maps ``(verb, path)`` to a ``CallResult`` or to a callable
    taking ``(parameters, access_token)`` and returning one (or an
    awaitable of one). Unrouted calls succeed with an empty value. Every
    call is recorded in ``calls``.
    """

    def __init__(self):
        self.service_root = None
        self.roots = []
        self.routes = {}
        self.calls = []
        self.call_method = AsyncMock(side_effect=self._dispatch)

    def factory(self, root):
        self.roots.append(root)
        self.service_root = root
        return self

    def route(self, verb, path, result):
        self.routes[(verb, path)] = result

    async def _dispatch(self, verb, path, parameters, *, access_token=None):
        self.calls.append((verb, path, parameters, access_token))
        handler = self.routes.get((verb, path))
        if handler is None:
            return CallResult(value={})
        if callable(handler):
            result = handler(parameters, access_token)
            if inspect.isawaitable(result):
                result = await result
            return result
        return handler

    def calls_to(self, verb, path):
        return [c for c in self.calls if c[0] == verb and c[1] == path]


def registration_result(token="device-token", service_root=None):
    value = {"accessToken": token, "accessTokenExpires": "2030-01-01T00:00:00Z"}
    if service_root is not None:
        value["serviceRoot"] = service_root
    return CallResult(value=value)


def login_result(user_id="user-1", token="user-token", **extra):
    return CallResult(value={"id": user_id, "accessToken": token, **extra})


def unauthorized_result(error="AuthAccessTokenInvalid", status_code=401):
    return CallResult(status_code=status_code, error=error, message="Unauthorized")


def offline_result():
    return CallResult(status_code=0, error="InternetConnectionError")


@pytest.fixture
def results():
    """Canned transport outcomes.

    Usage:
        transport.route("POST", "/users/login", results.login("u-1"))
    """
    return SimpleNamespace(
        registration=registration_result,
        login=login_result,
        unauthorized=unauthorized_result,
        offline=offline_result,
    )


@pytest.fixture
def fake_platform():
    return FakePlatform()


@pytest.fixture
def transport():
    t = FakeTransport()
    t.route("POST", "/devices", registration_result())
    return t


@pytest.fixture
def store():
    return MemorySettingsStore()


@pytest.fixture
def make_client(fake_platform, transport, store):
    """Factory building a client wired to the fake platform and transport.

    Usage:
        client = make_client()
        client = make_client(best_effort_token_reads=True)
    """
    def _make(**kwargs):
        options = dict(
            platform=fake_platform,
            store=store,
            dispatcher=InlineDispatcher(),
            transport_factory=transport.factory,
            retry_policy=RetryPolicy(interval=0.0, max_attempts=3),
        )
        options.update(kwargs)
        return BuddyClient("app-1", "key-1", **options)
    return _make


@pytest.fixture
def client(make_client):
    return make_client()
