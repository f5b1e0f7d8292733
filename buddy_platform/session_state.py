"""Persisted session state: credentials and tokens keyed by application id."""

from __future__ import annotations

import json
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

from contracts.v1.schemas import SessionRecord

from .config import get_settings_dir
from .ports import SettingsStore

logger = logging.getLogger(__name__)


class MemorySettingsStore:
    """In-process settings store."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def clear(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileSettingsStore:
    """One ``<key>.json`` file per key under a settings directory."""

    def __init__(self, directory: Path | None = None):
        self.directory = Path(directory) if directory is not None else get_settings_dir()

    def _path(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return self.directory / f"{safe}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(value, encoding="utf-8")

    def clear(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class SessionState:
    """Tokens and identity persisted as one record per application id.

    Every mutation that must survive a restart is followed by :meth:`save`.
    Use :meth:`mutate` to make a mutate-then-persist sequence atomic with
    respect to other call paths.
    """

    def __init__(self, record: SessionRecord, store: SettingsStore):
        self.record = record
        self.store = store
        self._lock = threading.RLock()

    @classmethod
    def load(cls, app_id: str | None, app_key: str | None, store: SettingsStore) -> "SessionState":
        """Return the stored record for ``app_id`` or zero-valued defaults.

        Unreadable or corrupt data is treated as absent.
        """
        record = SessionRecord()
        if app_id is not None:
            raw = store.get(app_id)
            if raw is not None:
                try:
                    record = SessionRecord.model_validate(json.loads(raw))
                except (json.JSONDecodeError, ValidationError, TypeError) as e:
                    logger.warning("Ignoring unreadable session record for %s: %s", app_id, e)
                    record = SessionRecord()
        record.app_id = app_id
        record.app_key = app_key
        return cls(record, store)

    @contextmanager
    def mutate(self) -> Iterator[SessionRecord]:
        with self._lock:
            yield self.record
            self.save()

    def save(self) -> None:
        with self._lock:
            if self.record.app_id is None:
                return
            payload = self.record.model_dump(mode="json", by_alias=True)
            self.store.set(self.record.app_id, json.dumps(payload))

    def clear_user(self) -> None:
        with self._lock:
            if self.record.app_id is None:
                return
            self.record.user_token = None
            self.record.user_token_expires = None
            self.record.user_id = None
            self.save()

    def clear_device(self) -> None:
        """Zero the device credential and the service root override, keeping the user."""
        with self._lock:
            if self.record.app_id is None:
                return
            self.record.device_token = None
            self.record.device_token_expires = None
            self.record.service_url = None
            self.save()

    def clear(self) -> None:
        """Zero every credential; the push token and app version are kept."""
        with self._lock:
            if self.record.app_id is None:
                return
            self.record.service_url = None
            self.record.device_token = None
            self.record.device_token_expires = None
            self.record.last_user_id = None
            self.clear_user()

    # Convenience accessors used across components

    @property
    def user_token(self) -> str | None:
        return self.record.user_token

    @property
    def device_token(self) -> str | None:
        return self.record.device_token

    def best_token(self) -> str | None:
        return self.record.user_token or self.record.device_token
