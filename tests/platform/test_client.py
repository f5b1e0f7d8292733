"""Tests for the BuddyClient facade: validation, users, devices, metrics."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from buddy_platform import (
    AuthenticationLevel,
    BuddyClient,
    CallResult,
    SocialAuthenticatedUser,
    UserGender,
)


def test_credentials_are_required(fake_platform):
    with pytest.raises(ValueError):
        BuddyClient("", "key", platform=fake_platform)
    with pytest.raises(ValueError):
        BuddyClient("app", "   ", platform=fake_platform)


def test_credentials_are_trimmed(fake_platform):
    client = BuddyClient(" app-1 ", " key-1\n", platform=fake_platform)

    assert client.app_id == "app-1"
    assert client.app_key == "key-1"


def test_restored_tokens_set_initial_level(make_client, store, fake_platform):
    store.set("app-1", json.dumps({"DeviceToken": "dt", "DevicePushToken": "push-9"}))

    client = make_client()

    assert client.auth_level is AuthenticationLevel.DEVICE
    assert fake_platform.push_token == "push-9"


def test_app_version_override_is_recorded(make_client):
    client = make_client(app_version="9.9")
    assert client.session.record.app_version == "9.9"


class TestUserValidation:
    @pytest.mark.asyncio
    async def test_create_user_rejects_bad_input_before_any_call(self, client, transport):
        with pytest.raises(ValueError):
            await client.create_user("", "pw")
        with pytest.raises(TypeError):
            await client.create_user("ann", None)
        with pytest.raises(ValueError):
            await client.create_user("ann", "pw", date_of_birth=datetime.now() + timedelta(days=1))

        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_login_rejects_bad_input(self, client):
        with pytest.raises(ValueError):
            await client.login_user("", "pw")
        with pytest.raises(TypeError):
            await client.login_user("ann", None)

    @pytest.mark.asyncio
    async def test_social_login_requires_provider_and_id(self, client):
        with pytest.raises(ValueError):
            await client.social_login_user("", "id", "tok")
        with pytest.raises(ValueError):
            await client.social_login_user("Facebook", "", "tok")


class TestUsers:
    @pytest.mark.asyncio
    async def test_create_user_posts_profile_and_installs_user(self, client, transport, results):
        transport.route("POST", "/users", results.login("user-7", "ut-7", firstName="Ann"))
        dob = datetime(1990, 5, 17, tzinfo=timezone.utc)

        result = await client.create_user(
            "ann", "pw", first_name="Ann", gender=UserGender.FEMALE, date_of_birth=dob, tag="beta"
        )

        assert result.value.id == "user-7"
        assert result.value.first_name == "Ann"
        assert client.user is result.value
        assert client.auth_level is AuthenticationLevel.USER
        (_, _, params, _), = transport.calls_to("POST", "/users")
        assert params["username"] == "ann"
        assert params["gender"] is UserGender.FEMALE
        assert params["dateOfBirth"] == dob
        assert params["tag"] == "beta"

    @pytest.mark.asyncio
    async def test_failed_login_leaves_no_user(self, client, transport):
        transport.route("POST", "/users/login", CallResult(status_code=400, error="BadPassword"))

        result = await client.login_user("ann", "wrong")

        assert result.error.error == "BadPassword"
        assert client.user is None
        assert client.auth_level is AuthenticationLevel.DEVICE

    @pytest.mark.asyncio
    async def test_login_payload_without_token_is_rejected(self, client, transport):
        transport.route("POST", "/users/login", CallResult(value={"id": "user-1"}))

        result = await client.login_user("ann", "pw")

        assert result.error.error == "InvalidResponse"
        assert client.user is None

    @pytest.mark.asyncio
    async def test_social_login_reports_new_user(self, client, transport, results):
        transport.route("POST", "/users/login/social", results.login("user-3", "ut-3", isNew=True))

        result = await client.social_login_user("Facebook", "fb-1", "fb-token")

        assert isinstance(result.value, SocialAuthenticatedUser)
        assert result.value.is_new is True
        (_, _, params, _), = transport.calls_to("POST", "/users/login/social")
        assert params == {
            "identityProviderName": "Facebook",
            "identityID": "fb-1",
            "identityAccessToken": "fb-token",
        }

    @pytest.mark.asyncio
    async def test_failed_logout_keeps_user(self, client, transport, results):
        transport.route("POST", "/users/login", results.login())
        await client.login_user("ann", "pw")
        transport.route("POST", "/users/me/logout", CallResult(status_code=500, error="ServerError"))

        result = await client.logout_user()

        assert not result.is_success
        assert client.user is not None

    @pytest.mark.asyncio
    async def test_password_reset_calls(self, client, transport):
        await client.request_password_reset("ann", "Reset", "Your code is {code}")
        await client.reset_password("ann", "123456", "new-pw")

        (_, _, requested, _), = transport.calls_to("POST", "/users/password")
        (_, _, reset, _), = transport.calls_to("PATCH", "/users/password")
        assert requested == {"userName": "ann", "subject": "Reset", "body": "Your code is {code}"}
        assert reset == {"userName": "ann", "resetCode": "123456", "newPassword": "new-pw"}


class TestDeviceAndPush:
    @pytest.mark.asyncio
    async def test_update_device_patches_current_device(self, client, transport):
        assert await client.update_device("push-1") is True

        (_, _, params, _), = transport.calls_to("PATCH", "/devices/current")
        assert params == {"pushToken": "push-1", "isProduction": True}

    @pytest.mark.asyncio
    async def test_update_device_with_nothing_to_send(self, client, transport):
        assert await client.update_device(None, None) is False
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_push_token_change_is_persisted_and_uploaded(self, client, transport, store):
        await client.tokens.get_access_token()

        await client.set_push_token("push-2")
        await client.set_push_token("push-2")

        assert json.loads(store.get("app-1"))["DevicePushToken"] == "push-2"
        assert len(transport.calls_to("PATCH", "/devices/current")) == 1

    @pytest.mark.asyncio
    async def test_push_token_before_registration_is_only_stored(self, client, transport):
        await client.set_push_token("push-3")

        assert client.session.record.device_push_token == "push-3"
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_notification_receipt_requires_registered_device(self, client, transport):
        assert await client.on_notification_received("n 1") is None

        await client.tokens.get_access_token()
        result = await client.on_notification_received("n 1")

        assert result.is_success
        assert transport.calls_to("POST", "/notifications/received/n%201")

    @pytest.mark.asyncio
    async def test_send_push_notification(self, client, transport):
        await client.send_push_notification(["u1", "u2"], title="Hi", counter=3)

        (_, _, params, _), = transport.calls_to("POST", "/notifications")
        assert params["recipients"] == ["u1", "u2"]
        assert params["title"] == "Hi"
        assert params["counterValue"] == 3


class TestMetricsAndCrashReports:
    @pytest.mark.asyncio
    async def test_record_metric_returns_id(self, client, transport):
        transport.route("POST", "/metrics/events/app%20open", CallResult(value={"id": "m1", "success": True}))

        result = await client.record_metric("app open", {"screen": "home"}, timeout=timedelta(minutes=2))

        assert result.value == "m1"
        (_, _, params, _), = transport.calls_to("POST", "/metrics/events/app%20open")
        assert params["timeoutInSeconds"] == 120
        assert params["value"] == {"screen": "home"}

    @pytest.mark.asyncio
    async def test_timed_metric_end_returns_elapsed(self, client, transport):
        transport.route("DELETE", "/metrics/events/m1", CallResult(value={"elaspedTimeInMs": 1500}))

        result = await client.record_timed_metric_end("m1")

        assert result.value == timedelta(seconds=1.5)

    @pytest.mark.asyncio
    async def test_crash_report_uploads_stack_trace(self, client, transport):
        try:
            raise RuntimeError("kaboom")
        except RuntimeError as e:
            exc = e

        assert await client.add_crash_report(exc, "while testing") is True

        (_, _, params, _), = transport.calls_to("POST", "/devices/current/crashreports")
        assert "RuntimeError: kaboom" in params["stackTrace"]
        assert params["message"] == "while testing"

    @pytest.mark.asyncio
    async def test_crash_report_never_raises(self, client, transport):
        transport.call_method.side_effect = OSError("disk on fire")

        assert await client.add_crash_report(ValueError("x")) is False


@pytest.mark.asyncio
async def test_call_service_method_normalises_verb(client, transport):
    await client.call_service_method("put", "/widgets/1", {"name": "w"})

    assert transport.calls_to("PUT", "/widgets/1")
