"""Platform access for a plain Python host (desktop, server, CLI)."""

from __future__ import annotations

import os
import platform as _platform
import uuid

from .models import ConnectivityLevel

PLATFORM_NAME = "Python"


def _config_env_name(name: str) -> str:
    out = []
    for i, ch in enumerate(name):
        if ch.isupper() and i and not name[i - 1].isupper():
            out.append("_")
        out.append(ch.upper())
    return "BUDDY_" + "".join(out)


class HostPlatform:
    """Describes the current machine.

    Config settings are read from ``BUDDY_<SNAKE_NAME>`` environment
    variables (``RootUrl`` -> ``BUDDY_ROOT_URL``).
    """

    platform = PLATFORM_NAME

    def __init__(
        self,
        *,
        application_id: str | None = None,
        app_version: str | None = None,
        device_unique_id: str | None = None,
        connectivity_level: ConnectivityLevel = ConnectivityLevel.CONNECTED,
    ):
        self.application_id = application_id
        self.app_version = app_version
        self.device_unique_id = device_unique_id or f"{uuid.getnode():012x}"
        self.model = _platform.machine() or None
        self.os_version = _platform.platform()
        self._connectivity_level = connectivity_level
        self._push_token: str | None = None

    @property
    def connectivity_level(self) -> ConnectivityLevel:
        return self._connectivity_level

    @connectivity_level.setter
    def connectivity_level(self, value: ConnectivityLevel) -> None:
        self._connectivity_level = value

    async def get_push_token(self) -> str | None:
        return self._push_token

    def set_push_token(self, token: str | None) -> None:
        self._push_token = token

    def get_config_setting(self, name: str) -> str | None:
        value = os.environ.get(_config_env_name(name), "").strip()
        return value or None
