"""Tests for persisted session state and settings stores."""

import json
import logging
from datetime import datetime, timezone

from buddy_platform.session_state import (
    JsonFileSettingsStore,
    MemorySettingsStore,
    SessionState,
)


def _stored(store, key="app-1"):
    return json.loads(store.get(key))


class TestLoad:
    def test_missing_record_yields_defaults_with_credentials(self):
        state = SessionState.load("app-1", "key-1", MemorySettingsStore())

        assert state.record.app_id == "app-1"
        assert state.record.app_key == "key-1"
        assert state.record.device_token is None
        assert state.record.user_token is None

    def test_corrupt_record_is_treated_as_absent(self, caplog):
        store = MemorySettingsStore({"app-1": "{not json"})

        with caplog.at_level(logging.WARNING, logger="buddy_platform.session_state"):
            state = SessionState.load("app-1", "key-1", store)

        assert state.record.device_token is None
        assert state.record.app_id == "app-1"
        assert "unreadable session record" in caplog.text

    def test_wrong_shape_is_treated_as_absent(self):
        store = MemorySettingsStore({"app-1": json.dumps(["a", "list"])})

        state = SessionState.load("app-1", "key-1", store)

        assert state.record.user_id is None

    def test_reads_pascal_case_record(self):
        store = MemorySettingsStore(
            {
                "app-1": json.dumps(
                    {
                        "AppID": "app-1",
                        "DeviceToken": "dt",
                        "UserToken": "ut",
                        "UserID": "u-1",
                        "ServiceUrl": "https://eu.example.com/",
                    }
                )
            }
        )

        state = SessionState.load("app-1", "other-key", store)

        assert state.device_token == "dt"
        assert state.user_token == "ut"
        assert state.record.user_id == "u-1"
        assert state.record.service_url == "https://eu.example.com/"
        # The caller's key always wins over whatever was persisted
        assert state.record.app_key == "other-key"

    def test_no_app_id_skips_store(self):
        store = MemorySettingsStore()

        state = SessionState.load(None, None, store)
        state.save()

        assert store.get("None") is None


class TestMutations:
    def test_mutate_persists_on_exit(self):
        store = MemorySettingsStore()
        state = SessionState.load("app-1", "key-1", store)

        with state.mutate() as record:
            record.device_token = "dt"

        assert _stored(store)["DeviceToken"] == "dt"

    def test_best_token_prefers_user_token(self):
        state = SessionState.load("app-1", "key-1", MemorySettingsStore())
        state.record.device_token = "dt"
        assert state.best_token() == "dt"

        state.record.user_token = "ut"
        assert state.best_token() == "ut"

    def test_clear_user_keeps_device(self):
        store = MemorySettingsStore()
        state = SessionState.load("app-1", "key-1", store)
        with state.mutate() as record:
            record.device_token = "dt"
            record.user_token = "ut"
            record.user_id = "u-1"
            record.last_user_id = "u-1"

        state.clear_user()

        assert state.device_token == "dt"
        assert state.user_token is None
        assert state.record.user_id is None
        assert state.record.last_user_id == "u-1"
        assert _stored(store)["UserToken"] is None

    def test_clear_device_keeps_user_and_drops_root_override(self):
        state = SessionState.load("app-1", "key-1", MemorySettingsStore())
        with state.mutate() as record:
            record.device_token = "dt"
            record.service_url = "https://eu.example.com/"
            record.user_token = "ut"

        state.clear_device()

        assert state.device_token is None
        assert state.record.service_url is None
        assert state.user_token == "ut"

    def test_clear_zeroes_everything_but_credentials(self):
        store = MemorySettingsStore()
        state = SessionState.load("app-1", "key-1", store)
        with state.mutate() as record:
            record.device_token = "dt"
            record.user_token = "ut"
            record.user_id = "u-1"
            record.last_user_id = "u-1"
            record.service_url = "https://eu.example.com/"

        state.clear()

        record = state.record
        assert (record.app_id, record.app_key) == ("app-1", "key-1")
        assert record.device_token is None
        assert record.user_token is None
        assert record.user_id is None
        assert record.last_user_id is None
        assert record.service_url is None

    def test_clear_keeps_push_token_and_app_version_in_storage(self):
        store = MemorySettingsStore()
        state = SessionState.load("app-1", "key-1", store)
        with state.mutate() as record:
            record.device_token = "dt"
            record.user_token = "ut"
            record.device_push_token = "push-1"
            record.app_version = "2.1"

        state.clear()
        reloaded = SessionState.load("app-1", "key-1", store)

        assert reloaded.record.device_push_token == "push-1"
        assert reloaded.record.app_version == "2.1"
        assert reloaded.device_token is None
        assert reloaded.user_token is None


class TestJsonFileSettingsStore:
    def test_round_trip_through_files(self, tmp_path):
        store = JsonFileSettingsStore(tmp_path)
        state = SessionState.load("app-1", "key-1", store)
        with state.mutate() as record:
            record.device_token = "dt"

        reloaded = SessionState.load("app-1", "key-1", JsonFileSettingsStore(tmp_path))

        assert reloaded.device_token == "dt"
        assert (tmp_path / "app-1.json").exists()

    def test_every_field_survives_save_and_load(self, tmp_path):
        state = SessionState.load("app-1", "key-1", JsonFileSettingsStore(tmp_path))
        with state.mutate() as record:
            record.service_url = "https://eu.example.com/"
            record.device_token = "dt"
            record.device_token_expires = datetime(2030, 1, 1, tzinfo=timezone.utc)
            record.user_token = "ut"
            record.user_token_expires = datetime(2029, 6, 30, 12, 0, tzinfo=timezone.utc)
            record.user_id = "u-1"
            record.last_user_id = "u-1"
            record.device_push_token = "push"
            record.app_version = "3.0"

        reloaded = SessionState.load("app-1", "key-1", JsonFileSettingsStore(tmp_path))

        assert reloaded.record == state.record

    def test_unsafe_key_characters_are_replaced(self, tmp_path):
        store = JsonFileSettingsStore(tmp_path)
        store.set("../evil/app", "{}")

        assert (tmp_path / ".._evil_app.json").exists()
        assert store.get("../evil/app") == "{}"

    def test_clear_missing_key_is_noop(self, tmp_path):
        store = JsonFileSettingsStore(tmp_path)
        store.clear("nothing-here")
        assert store.get("nothing-here") is None

    def test_defaults_to_env_directory(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BUDDY_SETTINGS_DIR", str(tmp_path / "sessions"))

        store = JsonFileSettingsStore()
        store.set("app-1", "{}")

        assert (tmp_path / "sessions" / "app-1.json").exists()
