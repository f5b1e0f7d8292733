"""Client facade wiring session, tokens, auth, connectivity and the pipeline."""

from __future__ import annotations

import asyncio
import logging
import traceback
from datetime import datetime, timedelta
from typing import Any, Iterable
from urllib.parse import quote

from contracts.v1.schemas import (
    CompleteMetricResult,
    DeviceRegistrationResponse,
    MetricResult,
    UserLoginResponse,
)

from .auth import AuthManager
from .config import (
    CRASH_REPORT_TIMEOUT_SECONDS,
    CRASH_REPORTS_PATH,
    CURRENT_DEVICE_PATH,
    LOGIN_PATH,
    LOGOUT_PATH,
    METRICS_EVENTS_PATH,
    NOTIFICATION_RECEIVED_PATH,
    NOTIFICATIONS_PATH,
    PASSWORD_PATH,
    PING_PATH,
    SOCIAL_LOGIN_PATH,
    USERS_PATH,
)
from .connectivity import ConnectivityMonitor, RetryPolicy
from .dispatch import LoopDispatcher
from .events import EventExceptionPolicy, EventHub, ExceptionPolicy
from .http_client import HttpRemoteMethodProvider
from .models import (
    AuthenticatedUser,
    AuthenticationLevel,
    ClientCredentials,
    ConnectivityLevel,
    GeoLocation,
    SocialAuthenticatedUser,
    UserGender,
)
from .pipeline import RequestPipeline, TransportFactory
from .ports import CallbackDispatcher, PlatformAccess, SettingsStore
from .result import ServiceResult, convert_result
from .session_state import MemorySettingsStore, SessionState
from .token_provider import TokenProvider

logger = logging.getLogger(__name__)


def _validated_login_payload(data: Any) -> dict[str, Any]:
    UserLoginResponse.model_validate(data)
    return data


class BuddyClient:
    """Entry point for talking to the platform.

    One instance owns one session (keyed by application id). All calls are
    coroutines; failures come back inside ``ServiceResult`` unless the caller
    passes ``allow_throw=True`` and the exception policy asks to rethrow.
    """

    def __init__(
        self,
        app_id: str,
        app_key: str,
        *,
        platform: PlatformAccess,
        store: SettingsStore | None = None,
        dispatcher: CallbackDispatcher | None = None,
        transport_factory: TransportFactory | None = None,
        exception_policy: ExceptionPolicy | None = None,
        retry_policy: RetryPolicy | None = None,
        app_version: str | None = None,
        best_effort_token_reads: bool = False,
    ):
        self.credentials = ClientCredentials(app_id, app_key)
        self.platform = platform
        self.events = EventHub()
        self.dispatcher = dispatcher or LoopDispatcher()

        self.session = SessionState.load(
            self.credentials.app_id,
            self.credentials.app_key,
            store if store is not None else MemorySettingsStore(),
        )
        if app_version is not None:
            self.session.record.app_version = app_version

        self.auth = AuthManager(
            session=self.session,
            events=self.events,
            dispatcher=self.dispatcher,
            client=self,
        )
        self.pipeline = RequestPipeline(
            session=self.session,
            platform=platform,
            dispatcher=self.dispatcher,
            policy=exception_policy or EventExceptionPolicy(self.events),
            transport_factory=transport_factory or HttpRemoteMethodProvider,
        )
        self.connectivity = ConnectivityMonitor(
            platform=platform,
            events=self.events,
            dispatcher=self.dispatcher,
            probe=self.pipeline.probe,
            retry_policy=retry_policy,
        )
        self.tokens = TokenProvider(
            session=self.session,
            platform=platform,
            pipeline=self.pipeline,
            auth=self.auth,
            dispatcher=self.dispatcher,
            best_effort_while_registering=best_effort_token_reads,
        )
        self.pipeline.token_provider = self.tokens
        self.pipeline.auth = self.auth
        self.pipeline.connectivity = self.connectivity
        self.auth.pipeline = self.pipeline

        platform.set_push_token(self.session.record.device_push_token)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def app_id(self) -> str:
        return self.credentials.app_id

    @property
    def app_key(self) -> str:
        return self.credentials.app_key

    @property
    def auth_level(self) -> AuthenticationLevel:
        return self.auth.level

    @property
    def connectivity_level(self) -> ConnectivityLevel:
        return self.connectivity.level

    @property
    def user(self) -> AuthenticatedUser | None:
        """The installed user, without restoring or prompting."""
        return self.auth.user

    async def current_user(self) -> AuthenticatedUser | None:
        return await self.auth.current_user()

    @property
    def last_location(self) -> GeoLocation | None:
        return self.pipeline.last_location

    @last_location.setter
    def last_location(self, value: GeoLocation | None) -> None:
        self.pipeline.last_location = value

    async def close(self) -> None:
        await self.connectivity.stop()

    # ------------------------------------------------------------------
    # REST verbs
    # ------------------------------------------------------------------

    async def get(self, path: str, parameters: Any = None, allow_throw: bool = False, **kwargs) -> ServiceResult:
        return await self.pipeline.get(path, parameters, allow_throw=allow_throw, **kwargs)

    async def post(self, path: str, parameters: Any = None, allow_throw: bool = False, **kwargs) -> ServiceResult:
        return await self.pipeline.post(path, parameters, allow_throw=allow_throw, **kwargs)

    async def put(self, path: str, parameters: Any = None, allow_throw: bool = False, **kwargs) -> ServiceResult:
        return await self.pipeline.put(path, parameters, allow_throw=allow_throw, **kwargs)

    async def patch(self, path: str, parameters: Any = None, allow_throw: bool = False, **kwargs) -> ServiceResult:
        return await self.pipeline.patch(path, parameters, allow_throw=allow_throw, **kwargs)

    async def delete(self, path: str, parameters: Any = None, allow_throw: bool = False, **kwargs) -> ServiceResult:
        return await self.pipeline.delete(path, parameters, allow_throw=allow_throw, **kwargs)

    async def call_service_method(
        self, verb: str, path: str, parameters: Any = None, allow_throw: bool = False
    ) -> ServiceResult:
        return await self.pipeline.call(verb.upper(), path, parameters, allow_throw=allow_throw)

    async def ping(self) -> ServiceResult:
        return await self.get(PING_PATH)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(
        self,
        username: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
        email: str | None = None,
        gender: UserGender | None = None,
        date_of_birth: datetime | None = None,
        tag: str | None = None,
    ) -> ServiceResult[AuthenticatedUser]:
        if not username:
            raise ValueError("username can't be null or empty.")
        if password is None:
            raise TypeError("password can't be None.")
        if date_of_birth is not None and date_of_birth > datetime.now(date_of_birth.tzinfo):
            raise ValueError("date_of_birth must be in the past.")

        return await self._login_core(
            USERS_PATH,
            {
                "firstName": first_name,
                "lastName": last_name,
                "username": username,
                "password": password,
                "email": email,
                "gender": gender,
                "dateOfBirth": date_of_birth,
                "tag": tag,
            },
            lambda login: AuthenticatedUser(login.id, login.access_token, self),
        )

    async def login_user(self, username: str, password: str) -> ServiceResult[AuthenticatedUser]:
        if not username:
            raise ValueError("username can't be null or empty.")
        if password is None:
            raise TypeError("password can't be None.")

        return await self._login_core(
            LOGIN_PATH,
            {"username": username, "password": password},
            lambda login: AuthenticatedUser(login.id, login.access_token, self),
        )

    async def social_login_user(
        self, identity_provider_name: str, identity_id: str, identity_access_token: str
    ) -> ServiceResult[SocialAuthenticatedUser]:
        if not identity_provider_name:
            raise ValueError("identity_provider_name can't be null or empty.")
        if not identity_id:
            raise ValueError("identity_id can't be null or empty.")

        return await self._login_core(
            SOCIAL_LOGIN_PATH,
            {
                "identityProviderName": identity_provider_name,
                "identityID": identity_id,
                "identityAccessToken": identity_access_token,
            },
            lambda login: SocialAuthenticatedUser(login.id, login.access_token, login.is_new, self),
        )

    async def _login_core(self, path: str, parameters: dict[str, Any], create_user) -> ServiceResult:
        async def _install(original: ServiceResult[dict], converted: ServiceResult[AuthenticatedUser]):
            user = converted.value
            if user is not None:
                user.update(original.value)
                await self.auth.set_user(user)

        return await convert_result(
            self.post(path, parameters, parse=_validated_login_payload),
            map=lambda data: create_user(UserLoginResponse.model_validate(data)),
            completed=_install,
            dispatcher=self.dispatcher,
        )

    async def logout_user(self) -> ServiceResult[bool]:
        """Log the current user out, falling back to the returned device token."""
        result = await self.post(LOGOUT_PATH)
        if not result.is_success:
            return result.convert(lambda data: data is not None)

        await self.auth.set_user(None)
        data = result.value
        if isinstance(data, dict) and data.get("accessToken"):
            registration = DeviceRegistrationResponse.model_validate(data)
            with self.session.mutate() as record:
                record.device_token = registration.access_token
                record.device_token_expires = registration.access_token_expires
            await self.auth.update_access_level()
        return result.convert(lambda data: data is not None)

    async def request_password_reset(self, user_name: str, subject: str, body: str) -> ServiceResult[bool]:
        return await self.post(
            PASSWORD_PATH,
            {"userName": user_name, "subject": subject, "body": body},
        )

    async def reset_password(self, user_name: str, reset_code: str, new_password: str) -> ServiceResult[bool]:
        return await self.patch(
            PASSWORD_PATH,
            {"userName": user_name, "resetCode": reset_code, "newPassword": new_password},
        )

    # ------------------------------------------------------------------
    # Device and push
    # ------------------------------------------------------------------

    async def update_device(self, push_token: str | None = None, is_production: bool | None = True) -> bool:
        parameters: dict[str, Any] = {}
        if push_token is not None:
            parameters["pushToken"] = push_token
        if is_production is not None:
            parameters["isProduction"] = is_production
        if not parameters:
            return False

        result = await self.patch(CURRENT_DEVICE_PATH, parameters)
        return result.is_success

    async def set_push_token(self, token: str | None) -> None:
        self.platform.set_push_token(token)
        await self.on_push_token_changed()

    async def on_push_token_changed(self) -> None:
        """Persist a changed platform push token and upload it for a registered device."""
        token = await self.platform.get_push_token()
        if token == self.session.record.device_push_token:
            return
        with self.session.mutate() as record:
            record.device_push_token = token
        if self.session.device_token is not None:
            await self.update_device(token)

    async def on_notification_received(self, notification_id: str) -> ServiceResult | None:
        if self.session.device_token is None:
            return None
        return await self.post(f"{NOTIFICATION_RECEIVED_PATH}/{quote(notification_id, safe='')}")

    async def send_push_notification(
        self,
        recipient_user_ids: Iterable[str],
        title: str | None = None,
        message: str | None = None,
        counter: int | None = None,
        payload: str | None = None,
        os_custom_data: dict[str, Any] | None = None,
    ) -> ServiceResult[dict]:
        return await self.post(
            NOTIFICATIONS_PATH,
            {
                "title": title,
                "message": message,
                "counterValue": counter,
                "payload": payload,
                "osCustomData": os_custom_data,
                "recipients": list(recipient_user_ids),
            },
        )

    # ------------------------------------------------------------------
    # Metrics and crash reports
    # ------------------------------------------------------------------

    async def record_metric(
        self,
        key: str,
        value: dict[str, Any] | None = None,
        timeout: timedelta | None = None,
        timestamp: datetime | None = None,
    ) -> ServiceResult[str | None]:
        timeout_seconds = int(timeout.total_seconds()) if timeout is not None else None
        result = await self.post(
            f"{METRICS_EVENTS_PATH}/{quote(key, safe='')}",
            {"value": value, "timeoutInSeconds": timeout_seconds, "timeStamp": timestamp},
            parse=MetricResult.model_validate,
        )
        return result.convert(lambda metric: metric.id)

    async def record_timed_metric_end(self, timed_metric_id: str) -> ServiceResult[timedelta | None]:
        result = await self.delete(
            f"{METRICS_EVENTS_PATH}/{quote(timed_metric_id, safe='')}",
            parse=CompleteMetricResult.model_validate,
        )
        return result.convert(
            lambda r: timedelta(milliseconds=r.elapsed_ms) if r.elapsed_ms is not None else None
        )

    async def add_crash_report(self, exc: BaseException, message: str | None = None) -> bool:
        """Upload a crash report. Never raises; returns whether it was accepted."""
        stack_trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        try:
            result = await asyncio.wait_for(
                self.post(CRASH_REPORTS_PATH, {"stackTrace": stack_trace, "message": message}),
                CRASH_REPORT_TIMEOUT_SECONDS,
            )
        except Exception as e:
            logger.warning("Crash report upload failed: %s", e)
            return False
        return result.is_success
