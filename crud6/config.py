"""Runtime settings sourced from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Tuple


DEFAULT_SCHEMA_PATH = "app/schema/crud6"
DEFAULT_TABLE_PREFIXES: Tuple[str, ...] = ("tbl_", "test_")
CRUD_OPERATIONS: Tuple[str, ...] = ("create", "read", "update", "delete", "list")


@dataclass(frozen=True)
class RelationshipDetectionSettings:
    detect_implicit: bool = False
    sample_size: int = 100
    table_prefixes: Tuple[str, ...] = DEFAULT_TABLE_PREFIXES
    confidence_threshold: float = 0.8


@dataclass(frozen=True)
class Settings:
    schema_path: str = DEFAULT_SCHEMA_PATH
    schema_directory: str = DEFAULT_SCHEMA_PATH
    debug_mode: bool = True
    cache_enabled: bool = False
    cache_ttl: int = 3600
    locale: str = "en_US"
    exclude_tables: Tuple[str, ...] = ()
    crud_options: Dict[str, bool] = field(default_factory=lambda: {op: True for op in CRUD_OPERATIONS})
    relationship_detection: RelationshipDetectionSettings = field(default_factory=RelationshipDetectionSettings)


def _normalize_bool(value: str | None, default: bool = True) -> bool:
    """Return normalized boolean from environment-style value."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"", "0", "false", "no", "off"}:
        return False
    if normalized in {"1", "true", "yes", "on"}:
        return True
    return default


def _split_csv(value: str | None) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@lru_cache(maxsize=None)
def get_settings() -> Settings:
    """Return the cached settings built from the environment."""
    disabled = {op.lower() for op in _split_csv(os.getenv("CRUD6_CRUD_OPTIONS"))}
    prefixes = _split_csv(os.getenv("CRUD6_TABLE_PREFIXES")) or DEFAULT_TABLE_PREFIXES
    detection = RelationshipDetectionSettings(
        detect_implicit=_normalize_bool(os.getenv("CRUD6_DETECT_IMPLICIT"), default=False),
        sample_size=_int_env("CRUD6_SAMPLE_SIZE", 100),
        table_prefixes=prefixes,
        confidence_threshold=_float_env("CRUD6_CONFIDENCE_THRESHOLD", 0.8),
    )
    return Settings(
        schema_path=os.getenv("CRUD6_SCHEMA_PATH", DEFAULT_SCHEMA_PATH),
        schema_directory=os.getenv("CRUD6_SCHEMA_DIRECTORY", DEFAULT_SCHEMA_PATH),
        debug_mode=_normalize_bool(os.getenv("CRUD6_DEBUG_MODE"), default=True),
        cache_enabled=_normalize_bool(os.getenv("CRUD6_CACHE_ENABLED"), default=False),
        cache_ttl=_int_env("CRUD6_CACHE_TTL", 3600),
        locale=os.getenv("CRUD6_LOCALE", "en_US").strip() or "en_US",
        exclude_tables=_split_csv(os.getenv("CRUD6_EXCLUDE_TABLES")),
        crud_options={op: op not in disabled for op in CRUD_OPERATIONS},
        relationship_detection=detection,
    )


def dev_mode_active() -> bool:
    """Return True when DEV_MODE is set to a truthy value."""
    return _normalize_bool(os.getenv("DEV_MODE"), default=False)


def refresh_settings_cache() -> None:
    """Invalidate cached settings (useful for tests)."""
    get_settings.cache_clear()
