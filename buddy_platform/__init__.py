"""Client-side session manager for the Buddy platform service."""

__version__ = "1.0.0"

from .auth import AuthManager, RecoveryState, auth_level
from .client import BuddyClient
from .connectivity import ConnectivityMonitor, RetryPolicy
from .context import SessionContext
from .dispatch import InlineDispatcher, LoopDispatcher
from .errors import (
    AuthErrorCode,
    BuddyClientError,
    ErrorKind,
    NoInternetError,
    ServiceException,
    UnauthorizedError,
    classify,
)
from .events import EventExceptionPolicy, EventHub, FaultDecision
from .host import HostPlatform
from .http_client import HttpRemoteMethodProvider
from .models import (
    AuthenticatedUser,
    AuthenticationLevel,
    ClientCredentials,
    ClientFlags,
    ConnectivityLevel,
    GeoLocation,
    ServiceExceptionEvent,
    SocialAuthenticatedUser,
    User,
    UserChangedEvent,
    UserGender,
)
from .pipeline import RequestPipeline
from .ports import CallResult
from .result import ServiceResult, convert_result
from .session_state import JsonFileSettingsStore, MemorySettingsStore, SessionState
from .token_provider import TokenProvider

__all__ = [
    "__version__",
    "AuthErrorCode",
    "AuthManager",
    "AuthenticatedUser",
    "AuthenticationLevel",
    "BuddyClient",
    "BuddyClientError",
    "CallResult",
    "ClientCredentials",
    "ClientFlags",
    "ConnectivityLevel",
    "ConnectivityMonitor",
    "ErrorKind",
    "EventExceptionPolicy",
    "EventHub",
    "FaultDecision",
    "GeoLocation",
    "HostPlatform",
    "HttpRemoteMethodProvider",
    "InlineDispatcher",
    "JsonFileSettingsStore",
    "LoopDispatcher",
    "MemorySettingsStore",
    "NoInternetError",
    "RecoveryState",
    "RequestPipeline",
    "RetryPolicy",
    "ServiceException",
    "ServiceExceptionEvent",
    "ServiceResult",
    "SessionContext",
    "SessionState",
    "SocialAuthenticatedUser",
    "TokenProvider",
    "UnauthorizedError",
    "User",
    "UserChangedEvent",
    "UserGender",
    "auth_level",
    "classify",
    "convert_result",
]
