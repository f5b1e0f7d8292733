"""Pydantic contracts for the v1 platform wire format and persisted session record."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _StrictModel(BaseModel):
    """Base model that rejects unknown fields."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class _LenientModel(BaseModel):
    """Base model for server payloads; unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class SessionRecord(_LenientModel):
    """Session state persisted as one JSON document per application id."""

    app_id: str | None = Field(default=None, alias="AppID")
    app_key: str | None = Field(default=None, alias="AppKey")
    service_url: str | None = Field(default=None, alias="ServiceUrl")
    device_token: str | None = Field(default=None, alias="DeviceToken")
    device_token_expires: datetime | None = Field(default=None, alias="DeviceTokenExpires")
    user_token: str | None = Field(default=None, alias="UserToken")
    user_token_expires: datetime | None = Field(default=None, alias="UserTokenExpires")
    user_id: str | None = Field(default=None, alias="UserID")
    last_user_id: str | None = Field(default=None, alias="LastUserID")
    device_push_token: str | None = Field(default=None, alias="DevicePushToken")
    app_version: str | None = Field(default=None, alias="AppVersion")


class DeviceRegistrationRequest(_StrictModel):
    app_id: str = Field(alias="AppId", min_length=1)
    app_key: str = Field(alias="AppKey", min_length=1)
    application_id: str | None = Field(default=None, alias="ApplicationId")
    platform: str | None = Field(default=None, alias="Platform")
    unique_id: str | None = Field(default=None, alias="UniqueID")
    model: str | None = Field(default=None, alias="Model")
    os_version: str | None = Field(default=None, alias="OSVersion")
    push_token: str | None = Field(default=None, alias="PushToken")
    app_version: str | None = Field(default=None, alias="AppVersion")


class DeviceRegistrationResponse(_LenientModel):
    access_token: str = Field(alias="accessToken")
    access_token_expires: datetime | None = Field(default=None, alias="accessTokenExpires")
    service_root: str | None = Field(default=None, alias="serviceRoot")


class UserLoginResponse(_LenientModel):
    """Identity payload returned by user creation and login calls."""

    id: str
    access_token: str = Field(alias="accessToken")
    access_token_expires: datetime | None = Field(default=None, alias="accessTokenExpires")
    is_new: bool = Field(default=False, alias="isNew")


class JsonEnvelope(_LenientModel):
    """Response envelope wrapping every platform call result."""

    status: int = 200
    error: str | None = None
    error_number: int | None = Field(default=None, alias="errorNumber")
    message: str | None = None
    result: Any = None
    request_id: str | None = None


class MetricResult(_LenientModel):
    id: str | None = None
    success: bool = False


class CompleteMetricResult(_LenientModel):
    elapsed_ms: int | None = Field(default=None, alias="elaspedTimeInMs")
