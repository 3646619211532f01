from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_STORE_ROOT_ENV = "STORE_ROOT_PATH"
_THRESHOLD_ENV = "ALERT_THRESHOLD_CM"
_PUSH_PROVIDER_ENV = "PUSH_PROVIDER"
_EXPO_URL_ENV = "EXPO_PUSH_URL"
_EXPO_TOKEN_ENV = "EXPO_ACCESS_TOKEN"
_PUSH_TIMEOUT_ENV = "PUSH_TIMEOUT_SECONDS"
_WORKER_COUNT_ENV = "DISPATCH_WORKER_COUNT"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_PUSH_PROVIDERS = ("expo", "mock")


@dataclass(frozen=True)
class Settings:
    store_root_path: Optional[str]
    alert_threshold_cm: float
    push_provider: str
    expo_push_url: str
    expo_access_token: Optional[str]
    push_timeout_seconds: float
    dispatch_workers: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_worker_count(default: int) -> int:
    value = os.getenv(_WORKER_COUNT_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_push_provider(default: str) -> str:
    candidate = _read_str_env(_PUSH_PROVIDER_ENV, default).lower()
    return candidate if candidate in _PUSH_PROVIDERS else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        store_root_path=_read_optional_env(_STORE_ROOT_ENV, "./tmp/store"),
        alert_threshold_cm=_read_positive_float(_THRESHOLD_ENV, 100.0),
        push_provider=_read_push_provider("expo"),
        expo_push_url=_read_str_env(_EXPO_URL_ENV, "https://exp.host/--/api/v2/push/send"),
        expo_access_token=_read_optional_env(_EXPO_TOKEN_ENV, None),
        push_timeout_seconds=_read_positive_float(_PUSH_TIMEOUT_ENV, 10.0),
        dispatch_workers=_read_worker_count(4),
        log_level=_read_log_level("INFO"),
    )
