from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple


_STORE_PATH_ENV = "SECHALOG_STORE_PATH"
_OTHER_LABELS_ENV = "SECHALOG_OTHER_LABELS"
_TIMEZONE_ENV = "SECHALOG_DISPLAY_TIMEZONE"
_SEASON_MONTH_ENV = "SECHALOG_SEASON_START_MONTH"
_RECENT_LIMIT_ENV = "SECHALOG_RECENT_LIMIT"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    store_path: Optional[str]
    other_labels: Tuple[str, ...]
    display_timezone: str
    season_start_month: int
    recent_limit: int
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


def _read_int_env(name: str, default: int, minimum: int = 1, maximum: Optional[int] = None) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    if parsed < minimum:
        return default
    if maximum is not None and parsed > maximum:
        return default
    return parsed


def _read_labels(default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.getenv(_OTHER_LABELS_ENV)
    if value is None:
        return default
    labels = tuple(part.strip() for part in value.split(",") if part.strip())
    return labels or default


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
        store_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/sechalog.json"),
        other_labels=_read_labels(("Others", "Other", "Autre")),
        display_timezone=_read_str_env(_TIMEZONE_ENV, "UTC"),
        season_start_month=_read_int_env(_SEASON_MONTH_ENV, 8, minimum=1, maximum=12),
        recent_limit=_read_int_env(_RECENT_LIMIT_ENV, 10),
        log_level=_read_log_level("INFO"),
    )
