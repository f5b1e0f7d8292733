"""Connectivity tracking and the offline probe loop."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from .config import CONNECTIVITY_RETRY_MAX_SECONDS, CONNECTIVITY_RETRY_SECONDS
from .events import CONNECTIVITY_LEVEL_CHANGED, EventHub
from .models import ConnectivityLevel, ConnectivityLevelChangedEvent
from .ports import CallbackDispatcher, PlatformAccess

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Probe cadence while offline.

    ``backoff`` of 1.0 keeps a fixed interval; larger values grow the delay
    up to ``max_interval``. ``max_attempts`` of None probes until success or
    cancellation.
    """

    interval: float = CONNECTIVITY_RETRY_SECONDS
    backoff: float = 1.0
    max_interval: float = CONNECTIVITY_RETRY_MAX_SECONDS
    max_attempts: int | None = None

    def delay(self, attempt: int) -> float:
        return min(self.interval * (self.backoff ** (attempt - 1)), self.max_interval)

    def exhausted(self, attempt: int) -> bool:
        return self.max_attempts is not None and attempt >= self.max_attempts


class ConnectivityMonitor:
    """Caches the connectivity level and probes the service while offline."""

    def __init__(
        self,
        *,
        platform: PlatformAccess,
        events: EventHub,
        dispatcher: CallbackDispatcher,
        probe: Callable[[], Awaitable[bool]] | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.platform = platform
        self.events = events
        self.dispatcher = dispatcher
        self.probe = probe
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._level: ConnectivityLevel | None = None
        self._lock = asyncio.Lock()
        self._retry_task: asyncio.Task | None = None

    @property
    def level(self) -> ConnectivityLevel:
        if self._level is None:
            return self.platform.connectivity_level
        return self._level

    @property
    def retrying(self) -> bool:
        return self._retry_task is not None and not self._retry_task.done()

    async def on_connectivity_changed(self, level: ConnectivityLevel) -> None:
        """Record a new level; emit and start probing only on a transition."""
        async with self._lock:
            if level == self._level:
                return

            logger.info("Connectivity changed: %s -> %s", self._level, level.value)
            self._level = level
            event = ConnectivityLevelChangedEvent(level=level)
            await self.dispatcher.run(lambda: self.events.emit(CONNECTIVITY_LEVEL_CHANGED, event))

            if level.is_online:
                self._cancel_retry()
            else:
                self.check_connectivity()

    def check_connectivity(self) -> asyncio.Task | None:
        """Start the probe loop unless one is already running."""
        if self.probe is None:
            logger.warning("No connectivity probe configured; staying offline")
            return None
        if not self.retrying:
            self._retry_task = asyncio.ensure_future(self._retry_until_online())
        return self._retry_task

    async def _retry_until_online(self) -> bool:
        attempt = 0
        while True:
            attempt += 1
            try:
                ok = await self.probe()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("Connectivity probe raised: %s", e)
                ok = False

            if ok:
                self._retry_task = None
                level = self.platform.connectivity_level
                if not level.is_online:
                    level = ConnectivityLevel.CONNECTED
                await self.dispatcher.run(lambda: self.on_connectivity_changed(level))
                return True

            if self.retry_policy.exhausted(attempt):
                logger.warning("Connectivity probe gave up after %d attempts", attempt)
                self._retry_task = None
                return False

            await self._sleep(self.retry_policy.delay(attempt))

    def _cancel_retry(self) -> None:
        task = self._retry_task
        self._retry_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def stop(self) -> None:
        """Cancel a running probe loop and wait for it to finish."""
        task = self._retry_task
        self._cancel_retry()
        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)
