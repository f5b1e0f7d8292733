"""Bearer token acquisition with single-flight device registration."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from contracts.v1.schemas import DeviceRegistrationRequest, DeviceRegistrationResponse

from .config import DEVICES_PATH
from .ports import CallbackDispatcher, PlatformAccess
from .result import ServiceResult, convert_result
from .session_state import SessionState

if TYPE_CHECKING:
    from .auth import AuthManager
    from .pipeline import RequestPipeline

logger = logging.getLogger(__name__)


class TokenProvider:
    """Supplies the active bearer token.

    The user token wins over the device token. With neither present the
    device is registered; concurrent callers share one registration call.
    By default they await its outcome. With ``best_effort_while_registering``
    they instead get whatever token is cached at that moment (possibly None)
    without waiting.
    """

    def __init__(
        self,
        *,
        session: SessionState,
        platform: PlatformAccess,
        pipeline: RequestPipeline,
        auth: AuthManager,
        dispatcher: CallbackDispatcher,
        best_effort_while_registering: bool = False,
    ):
        self.session = session
        self.platform = platform
        self.pipeline = pipeline
        self.auth = auth
        self.dispatcher = dispatcher
        self.best_effort_while_registering = best_effort_while_registering
        self._lock = asyncio.Lock()
        self._registration: asyncio.Future[str | None] | None = None

    @property
    def registering(self) -> bool:
        return self._registration is not None and not self._registration.done()

    async def get_access_token(self) -> str | None:
        token = self.session.best_token()
        if token:
            return token

        if self.registering and self.best_effort_while_registering:
            return self.session.best_token()

        async with self._lock:
            token = self.session.best_token()
            if token:
                return token
            if not self.registering:
                self._registration = asyncio.ensure_future(self.register_device())
            registration = self._registration

        return await asyncio.shield(registration)

    async def register_device(self) -> str | None:
        """Register this installation and return the issued device token.

        Returns None and clears all credentials when registration fails.
        """
        record = self.session.record
        request = DeviceRegistrationRequest(
            app_id=record.app_id,
            app_key=record.app_key,
            application_id=self.platform.application_id,
            platform=self.platform.platform,
            unique_id=self.platform.device_unique_id,
            model=self.platform.model,
            os_version=self.platform.os_version,
            push_token=await self.platform.get_push_token(),
            app_version=record.app_version or self.platform.app_version,
        )
        logger.info("Registering device for app %s", record.app_id)

        result = await convert_result(
            self.pipeline.post(
                DEVICES_PATH,
                request,
                authenticate=False,
                parse=DeviceRegistrationResponse.model_validate,
            ),
            completed=self._on_registered,
            dispatcher=self.dispatcher,
            identity=True,
        )
        if not result.is_success:
            return None
        return result.value.access_token

    async def _on_registered(
        self,
        original: ServiceResult[DeviceRegistrationResponse],
        converted: ServiceResult[DeviceRegistrationResponse],
    ) -> None:
        if not converted.is_success:
            logger.warning("Device registration failed: %r", converted.error)
            await self.auth.clear_credentials(clear_user=True, clear_device=True)
            return

        registration = converted.value
        with self.session.mutate() as record:
            record.device_token = registration.access_token
            record.device_token_expires = registration.access_token_expires
            if registration.service_root is not None:
                record.service_url = registration.service_root
        if registration.service_root is not None:
            self.pipeline.set_service_root(registration.service_root)
        await self.auth.update_access_level()
