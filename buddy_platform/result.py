"""Typed call results and result conversion."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from .errors import ServiceException
from .ports import CallbackDispatcher

A = TypeVar("A")
B = TypeVar("B")
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """Outcome of one remote call: a value, or a classified error."""

    value: Optional[T] = None
    error: Optional[ServiceException] = None
    request_id: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    def convert(self, map: Callable[[T], B]) -> "ServiceResult[B]":
        """Map a successful value; failures carry their error through."""
        if not self.is_success:
            return ServiceResult(error=self.error, request_id=self.request_id)
        return ServiceResult(value=map(self.value), request_id=self.request_id)


async def convert_result(
    task: Awaitable[ServiceResult[A]],
    map: Callable[[A], B] | None = None,
    completed: Callable[[ServiceResult[A], ServiceResult[B]], object] | None = None,
    *,
    dispatcher: CallbackDispatcher | None = None,
    identity: bool = False,
) -> ServiceResult[B]:
    """Convert ``ServiceResult[A]`` into ``ServiceResult[B]``.

    ``identity=True`` passes the awaited result through unchanged; otherwise
    ``map`` is applied to a successful value. ``completed(original, converted)``
    runs once on ``dispatcher`` before the converted result is returned, so
    state it installs is visible to the caller together with the result.
    """
    if not identity and map is None:
        raise ValueError("convert_result needs a map function or identity=True")
    if completed is not None and dispatcher is None:
        raise ValueError("convert_result needs a dispatcher to run the completed hook")

    original = await task
    converted = original if identity else original.convert(map)

    if completed is not None:
        await dispatcher.run(lambda: completed(original, converted))
    return converted
