"""Request pipeline: dispatch, classify, notify, convert.

One call runs through these steps:

1. Build the transport handle once, under a lock, for the effective root.
2. Merge the last known location into the parameters.
3. Obtain a bearer token (skipped for unauthenticated calls).
4. Invoke the transport.
5. Classify the raw outcome.
6. Ask the exception policy, on the callback dispatcher, whether the failure
   should be raised.
7. Drive authorization recovery (401/403) or the connectivity monitor
   (status 0). These run whatever the caller asked for.
8. Return a ``ServiceResult``, or raise when the caller passed
   ``allow_throw=True`` and the policy chose ``RETHROW``.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from pydantic import BaseModel

from .config import (
    DEFAULT_SERVICE_ROOT,
    DELETE_VERB,
    GET_VERB,
    PATCH_VERB,
    PING_PATH,
    POST_VERB,
    PUT_VERB,
    ROOT_URL_SETTING,
)
from .errors import ErrorKind, ServiceException, classify
from .events import ExceptionPolicy, FaultDecision
from .models import ConnectivityLevel, GeoLocation
from .ports import CallbackDispatcher, CallResult, PlatformAccess, RemoteMethodProvider
from .result import ServiceResult
from .session_state import SessionState

if TYPE_CHECKING:
    from .auth import AuthManager
    from .connectivity import ConnectivityMonitor
    from .token_provider import TokenProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")

INVALID_RESPONSE_ERROR = "InvalidResponse"

TransportFactory = Callable[[str], RemoteMethodProvider]


def parameters_to_dict(parameters: Any) -> dict[str, Any]:
    """Normalise call parameters (dict, pydantic model, dataclass, object) to a dict."""
    if parameters is None:
        return {}
    if isinstance(parameters, dict):
        return dict(parameters)
    if isinstance(parameters, BaseModel):
        return parameters.model_dump(mode="json", by_alias=True)
    if dataclasses.is_dataclass(parameters) and not isinstance(parameters, type):
        return dataclasses.asdict(parameters)
    if hasattr(parameters, "__dict__"):
        return {k: v for k, v in vars(parameters).items() if not k.startswith("_")}
    raise TypeError(f"Unsupported parameters type: {type(parameters).__name__}")


class RequestPipeline:
    """Executes typed remote calls with uniform error handling."""

    def __init__(
        self,
        *,
        session: SessionState,
        platform: PlatformAccess,
        dispatcher: CallbackDispatcher,
        policy: ExceptionPolicy,
        transport_factory: TransportFactory,
    ):
        self.session = session
        self.platform = platform
        self.dispatcher = dispatcher
        self.policy = policy
        self.transport_factory = transport_factory
        self.token_provider: TokenProvider | None = None
        self.auth: AuthManager | None = None
        self.connectivity: ConnectivityMonitor | None = None
        self.last_location: GeoLocation | None = None
        self._service: RemoteMethodProvider | None = None
        self._service_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Transport handle
    # ------------------------------------------------------------------

    def resolve_root_url(self) -> str:
        """Session override, else platform ``RootUrl`` setting, else the default."""
        try:
            setting = self.platform.get_config_setting(ROOT_URL_SETTING)
        except NotImplementedError:
            setting = None
        return self.session.record.service_url or setting or DEFAULT_SERVICE_ROOT

    async def get_service(self) -> RemoteMethodProvider:
        async with self._service_lock:
            if self._service is None:
                root = self.resolve_root_url()
                logger.info("Creating service client for %s", root)
                self._service = self.transport_factory(root)
            return self._service

    def set_service_root(self, root: str) -> None:
        if self._service is not None:
            self._service.service_root = root

    def reset_service_root(self) -> None:
        if self._service is not None:
            self._service.service_root = self.resolve_root_url()

    # ------------------------------------------------------------------
    # Call
    # ------------------------------------------------------------------

    def add_location_to_parameters(self, parameters: Any) -> dict[str, Any]:
        merged = parameters_to_dict(parameters)
        if "location" not in merged and self.last_location is not None:
            merged["location"] = str(self.last_location)
        return merged

    async def call(
        self,
        verb: str,
        path: str,
        parameters: Any = None,
        *,
        allow_throw: bool = False,
        authenticate: bool = True,
        parse: Callable[[Any], T] | None = None,
    ) -> ServiceResult[T]:
        service = await self.get_service()
        merged = self.add_location_to_parameters(parameters)

        token = None
        if authenticate and self.token_provider is not None:
            token = await self.token_provider.get_access_token()

        logger.debug("%s %s", verb, path)
        call_result = await service.call_method(verb, path, merged, access_token=token)
        return await self.handle_service_result(call_result, allow_throw=allow_throw, parse=parse)

    async def handle_service_result(
        self,
        call_result: CallResult,
        *,
        allow_throw: bool = False,
        parse: Callable[[Any], T] | None = None,
    ) -> ServiceResult[T]:
        error = classify(
            status_code=call_result.status_code,
            error=call_result.error,
            message=call_result.message,
            error_number=call_result.error_number,
        )

        value = call_result.value
        if error is None and parse is not None:
            try:
                value = parse(value)
            except (ValueError, TypeError, KeyError) as e:
                error = ServiceException(
                    INVALID_RESPONSE_ERROR, str(e), None, call_result.status_code
                )

        if error is None:
            return ServiceResult(value=value, request_id=call_result.request_id)

        logger.info("Call failed: %r", error)
        decision = await self.dispatcher.run(lambda: self.policy.decide(error))

        if error.kind is ErrorKind.UNAUTHORIZED and self.auth is not None:
            await self.auth.on_authorization_failure(error)
        elif error.kind is ErrorKind.NO_INTERNET and self.connectivity is not None:
            await self.connectivity.on_connectivity_changed(ConnectivityLevel.NONE)

        if allow_throw and decision is FaultDecision.RETHROW:
            raise error
        return ServiceResult(error=error, request_id=call_result.request_id)

    async def probe(self) -> bool:
        """Unauthenticated liveness check; outcomes are not published."""
        service = await self.get_service()
        call_result = await service.call_method(GET_VERB, PING_PATH, {}, access_token=None)
        return classify(
            status_code=call_result.status_code,
            error=call_result.error,
        ) is None

    # ------------------------------------------------------------------
    # Verbs
    # ------------------------------------------------------------------

    async def get(self, path: str, parameters: Any = None, **kwargs) -> ServiceResult:
        return await self.call(GET_VERB, path, parameters, **kwargs)

    async def post(self, path: str, parameters: Any = None, **kwargs) -> ServiceResult:
        return await self.call(POST_VERB, path, parameters, **kwargs)

    async def put(self, path: str, parameters: Any = None, **kwargs) -> ServiceResult:
        return await self.call(PUT_VERB, path, parameters, **kwargs)

    async def patch(self, path: str, parameters: Any = None, **kwargs) -> ServiceResult:
        return await self.call(PATCH_VERB, path, parameters, **kwargs)

    async def delete(self, path: str, parameters: Any = None, **kwargs) -> ServiceResult:
        return await self.call(DELETE_VERB, path, parameters, **kwargs)
