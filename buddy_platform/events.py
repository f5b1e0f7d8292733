"""Client event hub and the fault policy consulted for classified failures."""

from __future__ import annotations

import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Protocol

from .errors import ServiceException
from .models import ServiceExceptionEvent

logger = logging.getLogger(__name__)

AUTH_LEVEL_CHANGED = "auth_level_changed"
LOGIN_REQUIRED = "login_required"
CONNECTIVITY_LEVEL_CHANGED = "connectivity_level_changed"
USER_CHANGED = "user_changed"
SERVICE_EXCEPTION = "service_exception"

EVENT_NAMES = frozenset(
    {
        AUTH_LEVEL_CHANGED,
        LOGIN_REQUIRED,
        CONNECTIVITY_LEVEL_CHANGED,
        USER_CHANGED,
        SERVICE_EXCEPTION,
    }
)


class EventHub:
    """Named-event subscription registry.

    ``emit`` is synchronous; callers are responsible for invoking it on the
    callback dispatcher. A failing handler is logged and does not stop the
    remaining handlers.
    """

    def __init__(self):
        self._handlers: dict[str, list[Callable[..., Any]]] = defaultdict(list)

    def subscribe(self, event: str, handler: Callable[..., Any]) -> Callable[[], None]:
        """Register ``handler`` for ``event``; returns an unsubscribe callable."""
        if event not in EVENT_NAMES:
            raise ValueError(f"Unknown event: {event}")
        self._handlers[event].append(handler)
        return lambda: self.unsubscribe(event, handler)

    def unsubscribe(self, event: str, handler: Callable[..., Any]) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def has_subscribers(self, event: str) -> bool:
        return bool(self._handlers.get(event))

    def emit(self, event: str, *args: Any) -> None:
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(*args)
            except Exception:
                logger.exception("Handler for '%s' failed", event)


class FaultDecision(str, Enum):
    SUPPRESS = "suppress"
    RETHROW = "rethrow"


class ExceptionPolicy(Protocol):
    """Decides whether a classified failure is raised to an opted-in caller."""

    def decide(self, fault: ServiceException) -> FaultDecision:
        ...


class EventExceptionPolicy:
    """Publishes ``service_exception`` and rethrows iff a handler asked to."""

    def __init__(self, events: EventHub):
        self.events = events

    def decide(self, fault: ServiceException) -> FaultDecision:
        args = ServiceExceptionEvent(error=fault)
        self.events.emit(SERVICE_EXCEPTION, args)
        return FaultDecision.RETHROW if args.should_throw else FaultDecision.SUPPRESS
