"""Tests for the event hub and the event-backed exception policy."""

import logging

import pytest

from buddy_platform.errors import ServiceException
from buddy_platform.events import (
    AUTH_LEVEL_CHANGED,
    SERVICE_EXCEPTION,
    EventExceptionPolicy,
    EventHub,
    FaultDecision,
)


def test_subscribe_rejects_unknown_event():
    with pytest.raises(ValueError, match="Unknown event"):
        EventHub().subscribe("nope", lambda: None)


def test_unsubscribe_callable_removes_handler():
    hub = EventHub()
    seen = []
    unsubscribe = hub.subscribe(AUTH_LEVEL_CHANGED, seen.append)

    hub.emit(AUTH_LEVEL_CHANGED, 1)
    unsubscribe()
    hub.emit(AUTH_LEVEL_CHANGED, 2)

    assert seen == [1]
    assert not hub.has_subscribers(AUTH_LEVEL_CHANGED)


def test_failing_handler_is_logged_and_others_still_run(caplog):
    hub = EventHub()
    seen = []

    def _broken(level):
        raise RuntimeError("handler bug")

    hub.subscribe(AUTH_LEVEL_CHANGED, _broken)
    hub.subscribe(AUTH_LEVEL_CHANGED, seen.append)

    with caplog.at_level(logging.ERROR, logger="buddy_platform.events"):
        hub.emit(AUTH_LEVEL_CHANGED, "x")

    assert seen == ["x"]
    assert "auth_level_changed" in caplog.text


class TestEventExceptionPolicy:
    def test_suppresses_without_handlers(self):
        policy = EventExceptionPolicy(EventHub())
        assert policy.decide(ServiceException("E")) is FaultDecision.SUPPRESS

    def test_rethrows_when_handler_asks(self):
        hub = EventHub()
        seen = []

        def _handler(args):
            seen.append(args.error.error)
            args.should_throw = True

        hub.subscribe(SERVICE_EXCEPTION, _handler)

        assert EventExceptionPolicy(hub).decide(ServiceException("E")) is FaultDecision.RETHROW
        assert seen == ["E"]
