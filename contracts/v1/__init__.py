"""v1 wire contracts and persisted session record schema."""

__version__ = "1.0.0"

from .schemas import (
    CompleteMetricResult,
    DeviceRegistrationRequest,
    DeviceRegistrationResponse,
    JsonEnvelope,
    MetricResult,
    SessionRecord,
    UserLoginResponse,
)

__all__ = [
    "__version__",
    "CompleteMetricResult",
    "DeviceRegistrationRequest",
    "DeviceRegistrationResponse",
    "JsonEnvelope",
    "MetricResult",
    "SessionRecord",
    "UserLoginResponse",
]
