from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

VERSION = "0.5.0"

_DEVICES_CONFIG_ENV = "MGET_DEVICES_CONFIG"
_DEVICES_ENV = "MGET_DEVICES"
_DISCOVER_ENV = "MGET_DISCOVER"
_MGET_TEMP_ENV = "MGET_TEMP_BINARY"
_MST_ENV = "MST_BINARY"
_POLL_INTERVAL_ENV = "POLL_INTERVAL_SECONDS"
_COMMAND_TIMEOUT_ENV = "COMMAND_TIMEOUT_SECONDS"
_WORKER_COUNT_ENV = "SAMPLER_WORKER_COUNT"
_HOST_ENV = "EXPORTER_HOST"
_PORT_ENV = "EXPORTER_PORT"
_TLS_CERT_ENV = "EXPORTER_TLS_CERT"
_TLS_KEY_ENV = "EXPORTER_TLS_KEY"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    devices_config_path: str
    devices: Optional[str]
    discover: bool
    mget_temp_binary: str
    mst_binary: str
    poll_interval: float
    command_timeout: float
    sampler_workers: Optional[int]
    host: str
    port: int
    tls_cert_path: Optional[str]
    tls_key_path: Optional[str]
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if not candidate:
        return default
    return candidate in _TRUTHY


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


def _read_worker_count() -> Optional[int]:
    value = os.getenv(_WORKER_COUNT_ENV)
    if value is None:
        return None
    candidate = value.strip()
    if not candidate:
        return None
    try:
        parsed = int(candidate)
    except ValueError:
        return None
    return parsed if parsed > 0 else None


def _read_port(default: int) -> int:
    value = os.getenv(_PORT_ENV)
    if value is None:
        return default
    candidate = value.strip()
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if 0 < parsed < 65536 else default


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
        devices_config_path=_read_str_env(_DEVICES_CONFIG_ENV, "devices.cfg"),
        devices=_read_optional_env(_DEVICES_ENV),
        discover=_read_bool_env(_DISCOVER_ENV, False),
        mget_temp_binary=_read_str_env(_MGET_TEMP_ENV, "mget_temp"),
        mst_binary=_read_str_env(_MST_ENV, "mst"),
        poll_interval=_read_positive_float(_POLL_INTERVAL_ENV, 10.0),
        command_timeout=_read_positive_float(_COMMAND_TIMEOUT_ENV, 8.0),
        sampler_workers=_read_worker_count(),
        host=_read_str_env(_HOST_ENV, "0.0.0.0"),
        port=_read_port(6656),
        tls_cert_path=_read_optional_env(_TLS_CERT_ENV),
        tls_key_path=_read_optional_env(_TLS_KEY_ENV),
        log_level=_read_log_level("INFO"),
    )
