"""Callback dispatchers: the context where events, prompts and hooks run."""

from __future__ import annotations

import asyncio
import inspect
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


class InlineDispatcher:
    """Runs each action immediately in the caller's task."""

    async def run(self, action: Callable[[], T | Awaitable[T]]) -> T:
        result = action()
        if inspect.isawaitable(result):
            result = await result
        return result


class LoopDispatcher:
    """Marshals actions onto one event loop.

    Actions may be submitted from any thread; the caller waits until the
    action (and any awaitable it returns) has completed on the target loop.
    Submitting from inside a running action schedules a new task instead of
    blocking, so nested dispatch cannot deadlock.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    async def run(self, action: Callable[[], T | Awaitable[T]]) -> T:
        target = self.loop
        future = asyncio.run_coroutine_threadsafe(self._invoke(action), target)
        return await asyncio.wrap_future(future)

    @staticmethod
    async def _invoke(action: Callable[[], T | Awaitable[T]]) -> T:
        result = action()
        if inspect.isawaitable(result):
            result = await result
        return result
