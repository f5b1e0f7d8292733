"""
Configuration constants for the buddy-platform client.
"""

import os
from pathlib import Path

# Service root used when neither the session record nor the platform
# configuration supplies one.
DEFAULT_SERVICE_ROOT = os.environ.get("BUDDY_SERVICE_ROOT", "").strip() or "https://api.buddyplatform.com/"

# Platform configuration key consulted for a root URL override
ROOT_URL_SETTING = "RootUrl"

# Request verbs understood by the platform
GET_VERB = "GET"
POST_VERB = "POST"
PUT_VERB = "PUT"
PATCH_VERB = "PATCH"
DELETE_VERB = "DELETE"

# Well-known endpoints
DEVICES_PATH = "/devices"
CURRENT_DEVICE_PATH = "/devices/current"
CRASH_REPORTS_PATH = "/devices/current/crashreports"
PING_PATH = "/service/ping"
USERS_PATH = "/users"
LOGIN_PATH = "/users/login"
SOCIAL_LOGIN_PATH = "/users/login/social"
LOGOUT_PATH = "/users/me/logout"
PASSWORD_PATH = "/users/password"
METRICS_EVENTS_PATH = "/metrics/events"
NOTIFICATIONS_PATH = "/notifications"
NOTIFICATION_RECEIVED_PATH = "/notifications/received"

# Error string reported for transport failures (status code 0)
INTERNET_CONNECTION_ERROR = "InternetConnectionError"
UNKNOWN_SERVICE_ERROR = "UnknownServiceError"

_CONNECTIVITY_RETRY_INTERVAL_ENV = "BUDDY_CONNECTIVITY_RETRY_SECONDS"
_CONNECTIVITY_RETRY_MAX_INTERVAL_ENV = "BUDDY_CONNECTIVITY_RETRY_MAX_SECONDS"
_HTTP_TIMEOUT_ENV = "BUDDY_HTTP_TIMEOUT_SECONDS"
_SETTINGS_DIR_ENV = "BUDDY_SETTINGS_DIR"


def _to_float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


# Offline probe cadence. The interval is fixed unless a backoff factor is
# configured on the RetryPolicy, in which case it is capped at the maximum.
CONNECTIVITY_RETRY_SECONDS = _to_float_env(_CONNECTIVITY_RETRY_INTERVAL_ENV, 1.0)
CONNECTIVITY_RETRY_MAX_SECONDS = _to_float_env(_CONNECTIVITY_RETRY_MAX_INTERVAL_ENV, 30.0)

HTTP_TIMEOUT_SECONDS = _to_float_env(_HTTP_TIMEOUT_ENV, 30.0)

# Seconds to wait for a crash report to go out before giving up
CRASH_REPORT_TIMEOUT_SECONDS = 2.0


def get_settings_dir() -> Path:
    """Return the directory holding persisted session records.

    Supports an override via ``BUDDY_SETTINGS_DIR`` for tests.
    """
    override = os.environ.get(_SETTINGS_DIR_ENV, "").strip()
    if override:
        return Path(override)

    if os.name == "nt":
        base = Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))
        return base / "buddy-platform" / "sessions"

    return Path.home() / ".config" / "buddy-platform" / "sessions"
