"""Authentication level, current user transitions and login-failure recovery."""

from __future__ import annotations

import asyncio
import logging
import threading
from enum import Enum
from typing import TYPE_CHECKING

from contracts.v1.schemas import SessionRecord

from .errors import AuthErrorCode, ServiceException, UnauthorizedError
from .events import AUTH_LEVEL_CHANGED, LOGIN_REQUIRED, USER_CHANGED, EventHub
from .models import AuthenticatedUser, AuthenticationLevel, User, UserChangedEvent
from .ports import CallbackDispatcher
from .session_state import SessionState

if TYPE_CHECKING:
    from .client import BuddyClient
    from .pipeline import RequestPipeline

logger = logging.getLogger(__name__)


def auth_level(record: SessionRecord) -> AuthenticationLevel:
    """Return the authentication level implied by the tokens in ``record``."""
    if record.user_token is not None:
        return AuthenticationLevel.USER
    if record.device_token is not None:
        return AuthenticationLevel.DEVICE
    return AuthenticationLevel.NONE


class RecoveryState(str, Enum):
    IDLE = "idle"
    CLEARING_CREDENTIALS = "clearing_credentials"
    AWAITING_LOGIN = "awaiting_login"


class AuthManager:
    """Owns the authentication level, the current user and failure recovery."""

    def __init__(
        self,
        *,
        session: SessionState,
        events: EventHub,
        dispatcher: CallbackDispatcher,
        client: BuddyClient | None = None,
    ):
        self.session = session
        self.events = events
        self.dispatcher = dispatcher
        self.client = client
        self.pipeline: RequestPipeline | None = None
        self.level = auth_level(session.record)
        self._user: AuthenticatedUser | None = None
        self._user_initialized = False
        self._recovery_state = RecoveryState.IDLE
        self._recovery_lock = threading.Lock()
        self._background: set[asyncio.Task] = set()

    @property
    def user(self) -> AuthenticatedUser | None:
        return self._user

    @property
    def recovery_state(self) -> RecoveryState:
        return self._recovery_state

    # ------------------------------------------------------------------
    # Authentication level
    # ------------------------------------------------------------------

    async def update_access_level(self) -> AuthenticationLevel:
        """Recompute the level; emit ``auth_level_changed`` only on a change."""
        old = self.level
        new = auth_level(self.session.record)
        self.level = new
        if old != new:
            logger.info("Authentication level changed: %s -> %s", old.name, new.name)
            await self.dispatcher.run(lambda: self.events.emit(AUTH_LEVEL_CHANGED, new))
        return new

    # ------------------------------------------------------------------
    # Current user
    # ------------------------------------------------------------------

    def _current_identity(self) -> str | None:
        if self._user is not None:
            return self._user.id
        return self.session.record.user_id

    async def set_user(self, user: AuthenticatedUser | None) -> None:
        """Install or clear the current user.

        ``user_changed(new, prior)`` is emitted once when the identity actually
        changes; ``prior`` is None when no user was established.
        """
        await self._assign_user(user)
        await self.update_access_level()

    async def _assign_user(self, user: AuthenticatedUser | None) -> None:
        prior_id = self._current_identity()

        if user is not None:
            with self.session.mutate() as record:
                record.user_token = user.access_token
                record.user_id = user.id
                record.last_user_id = user.id
        else:
            self.session.clear_user()

        self._user = user
        self._user_initialized = True

        new_id = user.id if user is not None else None
        if new_id != prior_id:
            event = UserChangedEvent(
                new_user=user,
                previous_user=User(prior_id) if prior_id is not None else None,
            )
            await self.dispatcher.run(lambda: self.events.emit(USER_CHANGED, event))

    async def current_user(self) -> AuthenticatedUser | None:
        """Return the current user, restoring it from the session on first use.

        With no user established this requests a login. An unpopulated user
        gets its profile fetched in the background.
        """
        if not self._user_initialized:
            self._user_initialized = True
            record = self.session.record
            if self._user is None and record.user_id and record.user_token:
                await self.set_user(AuthenticatedUser(record.user_id, record.user_token, self.client))

        if self._user is None:
            await self.on_authorization_failure(None)
        elif not self._user.is_populated and self.client is not None:
            task = asyncio.ensure_future(self._user.fetch())
            self._background.add(task)
            task.add_done_callback(self._on_fetch_done)
        return self._user

    def _on_fetch_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Fetching current user profile failed: %s", exc)

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    async def clear_credentials(self, *, clear_user: bool = True, clear_device: bool = True) -> None:
        """Clear the requested credentials, then recompute the level once."""
        if clear_user and self._current_identity() is not None:
            await self._assign_user(None)

        if clear_device and clear_user:
            self.session.clear()
        elif clear_device:
            self.session.clear_device()
        elif clear_user:
            self.session.clear_user()

        if clear_device and self.pipeline is not None:
            self.pipeline.reset_service_root()

        await self.update_access_level()

    async def on_authorization_failure(self, error: ServiceException | None) -> None:
        """Recover from an authorization failure.

        ``None`` means no user is established and only asks for a login.
        Only one recovery runs at a time; failures reported while one is in
        progress (including from login handlers) are ignored.
        """
        with self._recovery_lock:
            if self._recovery_state is not RecoveryState.IDLE:
                logger.debug("Authorization recovery already in progress; ignoring %r", error)
                return
            self._recovery_state = RecoveryState.CLEARING_CREDENTIALS

        try:
            request_login = error is None
            code = error.auth_code if isinstance(error, UnauthorizedError) else None

            if code in (AuthErrorCode.APP_CREDENTIALS_INVALID, AuthErrorCode.ACCESS_TOKEN_INVALID):
                logger.info("Clearing device credentials after %s", code.value)
                await self.clear_credentials(clear_user=False, clear_device=True)
            elif code is AuthErrorCode.USER_ACCESS_TOKEN_REQUIRED:
                logger.info("Clearing credentials after %s", code.value)
                await self.clear_credentials(clear_user=True, clear_device=True)
                request_login = True

            if request_login:
                with self._recovery_lock:
                    self._recovery_state = RecoveryState.AWAITING_LOGIN
                await self.dispatcher.run(lambda: self.events.emit(LOGIN_REQUIRED))
        finally:
            with self._recovery_lock:
                self._recovery_state = RecoveryState.IDLE
