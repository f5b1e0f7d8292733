"""Capability ports supplied by the host platform and transport."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol, TypeVar

from .models import ConnectivityLevel

T = TypeVar("T")


@dataclass
class CallResult:
    """Raw outcome of one remote call, before classification."""

    value: Any = None
    status_code: int = 200
    error: str | None = None
    error_number: int | None = None
    message: str | None = None
    request_id: str | None = None


class RemoteMethodProvider(Protocol):
    """Port for executing one verb+path call against the service root."""

    service_root: str | None

    async def call_method(
        self,
        verb: str,
        path: str,
        parameters: dict[str, Any],
        *,
        access_token: str | None = None,
    ) -> CallResult:
        ...


class CallbackDispatcher(Protocol):
    """Port for the single logical context where events and hooks run.

    ``run`` must be safe to call from inside an action it is already running
    and must eventually execute the action.
    """

    async def run(self, action: Callable[[], T | Awaitable[T]]) -> T:
        ...


class SettingsStore(Protocol):
    """Persisted key/value storage, one string value per key."""

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def clear(self, key: str) -> None:
        ...


class PlatformAccess(Protocol):
    """Device descriptor and platform facilities."""

    platform: str
    application_id: str | None
    app_version: str | None
    device_unique_id: str | None
    model: str | None
    os_version: str | None

    @property
    def connectivity_level(self) -> ConnectivityLevel:
        ...

    async def get_push_token(self) -> str | None:
        ...

    def set_push_token(self, token: str | None) -> None:
        ...

    def get_config_setting(self, name: str) -> str | None:
        ...
