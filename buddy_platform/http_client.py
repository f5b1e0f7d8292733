"""HTTP adapter implementing the remote-method port over the platform envelope."""

from __future__ import annotations

import asyncio
import json
import socket
from datetime import date, datetime
from enum import Enum
from typing import Any
from urllib import error, parse, request

from pydantic import ValidationError

from contracts.v1.schemas import JsonEnvelope

from .config import (
    DELETE_VERB,
    GET_VERB,
    HTTP_TIMEOUT_SECONDS,
    INTERNET_CONNECTION_ERROR,
    UNKNOWN_SERVICE_ERROR,
)
from .ports import CallResult

CLIENT_NAME = "buddy-platform-python"
CLIENT_VERSION = "1.0.0"


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


class HttpRemoteMethodProvider:
    """Calls ``<service_root><path>`` and unwraps the JSON envelope.

    Transport failures never raise: they come back as a ``CallResult`` with
    status code 0, which the pipeline classifies as no-internet.
    """

    def __init__(self, service_root: str, *, timeout_seconds: float = HTTP_TIMEOUT_SECONDS):
        self._service_root: str | None = None
        self.service_root = service_root
        self.timeout_seconds = timeout_seconds

    @property
    def service_root(self) -> str | None:
        return self._service_root

    @service_root.setter
    def service_root(self, value: str | None) -> None:
        self._service_root = value.rstrip("/") if value is not None else None

    async def call_method(
        self,
        verb: str,
        path: str,
        parameters: dict[str, Any],
        *,
        access_token: str | None = None,
    ) -> CallResult:
        return await asyncio.to_thread(self._request, verb, path, parameters, access_token)

    def _build_request(
        self,
        verb: str,
        path: str,
        parameters: dict[str, Any],
        access_token: str | None,
    ) -> request.Request:
        url = f"{self.service_root}{path}"
        data = None
        if verb in (GET_VERB, DELETE_VERB):
            query = {
                k: v if isinstance(v, str) else _json_default(v)
                for k, v in parameters.items()
                if v is not None
            }
            if query:
                url = f"{url}?{parse.urlencode(query)}"
        else:
            data = json.dumps(parameters, default=_json_default).encode("utf-8")

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"{CLIENT_NAME}/{CLIENT_VERSION}",
        }
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return request.Request(url, data=data, headers=headers, method=verb)

    def _request(
        self,
        verb: str,
        path: str,
        parameters: dict[str, Any],
        access_token: str | None,
    ) -> CallResult:
        req = self._build_request(verb, path, parameters, access_token)
        try:
            with request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8")
                return self._parse_envelope(raw, resp.status)
        except error.HTTPError as e:
            return self._parse_envelope(self._read_http_error_body(e), e.code, reason=e.reason)
        except (error.URLError, TimeoutError, socket.timeout, ConnectionError) as e:
            return CallResult(status_code=0, error=INTERNET_CONNECTION_ERROR, message=str(e))

    @staticmethod
    def _read_http_error_body(exc: error.HTTPError) -> str:
        try:
            return exc.read().decode("utf-8") if exc.fp is not None else ""
        except (OSError, UnicodeDecodeError):
            return ""

    @staticmethod
    def _parse_envelope(raw: str, http_status: int, *, reason: str | None = None) -> CallResult:
        failed = http_status >= 400
        if not raw:
            return CallResult(
                status_code=http_status,
                error=(reason or UNKNOWN_SERVICE_ERROR) if failed else None,
            )
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            return CallResult(
                status_code=http_status,
                error=(reason or UNKNOWN_SERVICE_ERROR) if failed else UNKNOWN_SERVICE_ERROR,
                message=raw[:200] if failed else "Service returned invalid JSON",
            )

        if not isinstance(payload, dict):
            return CallResult(value=payload, status_code=http_status)

        try:
            envelope = JsonEnvelope.model_validate(payload)
        except ValidationError as e:
            return CallResult(status_code=http_status, error=UNKNOWN_SERVICE_ERROR, message=str(e))

        status = http_status if failed else envelope.status
        error_code = envelope.error
        if error_code is None and (failed or status >= 400):
            error_code = reason or UNKNOWN_SERVICE_ERROR
        return CallResult(
            value=envelope.result,
            status_code=status,
            error=error_code,
            error_number=envelope.error_number,
            message=envelope.message,
            request_id=envelope.request_id,
        )
