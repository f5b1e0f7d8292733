"""Domain models shared across the client: levels, identities, event payloads."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, Flag, IntEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .client import BuddyClient
    from .errors import ServiceException
    from .result import ServiceResult


class AuthenticationLevel(IntEnum):
    NONE = 0
    DEVICE = 1
    USER = 2


class ConnectivityLevel(str, Enum):
    NONE = "none"
    CARRIER = "carrier"
    WIFI = "wifi"
    CONNECTED = "connected"

    @property
    def is_online(self) -> bool:
        return self is not ConnectivityLevel.NONE


class ClientFlags(Flag):
    NONE = 0
    AUTO_CRASH_REPORT = 0x2
    ALLOW_REINITIALIZE = 0x4
    DEFAULT = AUTO_CRASH_REPORT


class UserGender(str, Enum):
    UNKNOWN = "unknown"
    MALE = "male"
    FEMALE = "female"


@dataclass(frozen=True)
class ClientCredentials:
    """Application id and key, stripped and required non-empty."""

    app_id: str
    app_key: str

    def __post_init__(self):
        if not self.app_id or not self.app_id.strip():
            raise ValueError("app_id can't be null or empty.")
        if not self.app_key or not self.app_key.strip():
            raise ValueError("app_key can't be null or empty.")
        object.__setattr__(self, "app_id", self.app_id.strip())
        object.__setattr__(self, "app_key", self.app_key.strip())


@dataclass(frozen=True)
class GeoLocation:
    latitude: float
    longitude: float

    def __str__(self) -> str:
        return f"{self.latitude}, {self.longitude}"


@dataclass(frozen=True)
class User:
    """A bare identity reference; profile data is not loaded."""

    id: str


# Wire name -> attribute name for lazily populated profile fields
_PROFILE_FIELDS = {
    "username": "username",
    "userName": "username",
    "firstName": "first_name",
    "lastName": "last_name",
    "email": "email",
    "gender": "gender",
    "dateOfBirth": "date_of_birth",
    "tag": "tag",
    "profilePictureUrl": "profile_picture_url",
}


class AuthenticatedUser:
    """The identity owning the current user token.

    Profile fields start empty and are populated by :meth:`update` or
    :meth:`fetch`; ``is_populated`` reports whether that has happened.
    """

    def __init__(self, user_id: str, access_token: str, client: BuddyClient | None = None):
        if not user_id:
            raise ValueError("user_id can't be null or empty.")
        self.id = user_id
        self.access_token = access_token
        self._client = client
        self.username: str | None = None
        self.first_name: str | None = None
        self.last_name: str | None = None
        self.email: str | None = None
        self.gender: str | None = None
        self.date_of_birth: str | None = None
        self.tag: str | None = None
        self.profile_picture_url: str | None = None
        self.is_populated = False

    def update(self, data: dict[str, Any] | None) -> None:
        """Apply profile fields from a server payload."""
        if not data:
            return
        for wire_name, attr in _PROFILE_FIELDS.items():
            if wire_name in data:
                setattr(self, attr, data[wire_name])
        self.is_populated = True

    async def fetch(self) -> "ServiceResult[dict[str, Any]]":
        """Load profile fields from ``/users/{id}``."""
        if self._client is None:
            raise RuntimeError("AuthenticatedUser is not bound to a client.")
        result = await self._client.get(f"/users/{self.id}")
        if result.is_success and isinstance(result.value, dict):
            self.update(result.value)
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"


class SocialAuthenticatedUser(AuthenticatedUser):
    def __init__(self, user_id: str, access_token: str, is_new: bool, client: BuddyClient | None = None):
        super().__init__(user_id, access_token, client)
        self.is_new = is_new


@dataclass
class UserChangedEvent:
    new_user: AuthenticatedUser | None
    previous_user: User | None


@dataclass
class ConnectivityLevelChangedEvent:
    level: ConnectivityLevel


@dataclass
class ServiceExceptionEvent:
    """Published for every classified failure.

    Handlers set ``should_throw`` to ask that the failure be raised to a
    caller that opted into ``allow_throw``.
    """

    error: ServiceException
    should_throw: bool = False

