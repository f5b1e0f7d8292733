"""Explicit session context: holds credentials and builds the client on demand."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .client import BuddyClient
from .models import ClientCredentials, ClientFlags

logger = logging.getLogger(__name__)


class SessionContext:
    """Created once at startup and passed to whatever needs the client.

    ``init`` may be called again only with ``ClientFlags.ALLOW_REINITIALIZE``;
    doing so discards the previously built client.
    """

    def __init__(self):
        self._credentials: ClientCredentials | None = None
        self._flags = ClientFlags.NONE
        self._options: dict[str, Any] = {}
        self._client: BuddyClient | None = None
        self._crash_reporting_loop: asyncio.AbstractEventLoop | None = None
        self._crash_reports: set[asyncio.Task] = set()

    @property
    def initialized(self) -> bool:
        return self._credentials is not None

    @property
    def flags(self) -> ClientFlags:
        return self._flags

    def init(self, app_id: str, app_key: str, flags: ClientFlags = ClientFlags.DEFAULT, **client_options: Any) -> None:
        if self._credentials is not None and ClientFlags.ALLOW_REINITIALIZE not in flags:
            raise RuntimeError("Already initialized.")
        self._credentials = ClientCredentials(app_id, app_key)
        self._flags = flags
        self._options = client_options
        self._client = None

    @property
    def client(self) -> BuddyClient:
        if self._credentials is None:
            raise RuntimeError("init must be called before accessing the client.")
        if self._client is None:
            self._client = BuddyClient(
                self._credentials.app_id,
                self._credentials.app_key,
                **self._options,
            )
            if ClientFlags.AUTO_CRASH_REPORT in self._flags:
                try:
                    self.install_crash_reporting(asyncio.get_running_loop())
                except RuntimeError:
                    logger.debug("No running loop; crash reporting not installed")
        return self._client

    def install_crash_reporting(self, loop: asyncio.AbstractEventLoop) -> None:
        """Report unhandled task exceptions on ``loop`` as crash reports."""
        if self._crash_reporting_loop is loop:
            return
        self._crash_reporting_loop = loop

        def _handle(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
            exc = context.get("exception")
            if exc is not None and self._client is not None:
                task = loop.create_task(self._client.add_crash_report(exc, context.get("message")))
                self._crash_reports.add(task)
                task.add_done_callback(self._crash_reports.discard)
            loop.default_exception_handler(context)

        loop.set_exception_handler(_handle)
