"""Configuration for the activity recorder and idle account queries."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Mapping, Optional, Tuple

import yaml

from .epoch import DEFAULT_DATE_FORMAT
from .models import LAST_LOGIN_TIME_CLAIM, LAST_PASSWORD_UPDATE_TIME_CLAIM
from .store import resolve_database_path

TENANT_ASSOCIATION_MANAGER = "tenantAssociationManager"
ACTIVITY_CLAIMS = (LAST_LOGIN_TIME_CLAIM, LAST_PASSWORD_UPDATE_TIME_CLAIM)


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def _reject_unknown(section: str, data: Mapping[str, object], allowed: set[str]) -> None:
    unknown = sorted(str(key) for key in set(data) - allowed)
    if unknown:
        raise ValueError(f"Unknown {section} configuration fields: {', '.join(unknown)}")


def _section(raw: Mapping[str, object], name: str) -> Mapping[str, object]:
    data = raw.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{name} must be a mapping")
    return data


def _as_bool(section: str, name: str, value: object) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{section}.{name} must be a boolean")
    return value


@dataclass(frozen=True)
class RecorderConfig:
    """Switches for the activity event recorder."""

    enabled: bool = False
    use_durable_write_path: bool = False
    reserved_usernames: Tuple[str, ...] = (TENANT_ASSOCIATION_MANAGER,)

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "RecorderConfig":
        _reject_unknown("recorder", data, {f.name for f in fields(RecorderConfig)})
        reserved = data.get("reserved_usernames", (TENANT_ASSOCIATION_MANAGER,))
        if not isinstance(reserved, (list, tuple)) or not all(isinstance(item, str) for item in reserved):
            raise ValueError("recorder.reserved_usernames must be a list of strings")
        return RecorderConfig(
            enabled=_as_bool("recorder", "enabled", data.get("enabled", False)),
            use_durable_write_path=_as_bool(
                "recorder", "use_durable_write_path", data.get("use_durable_write_path", False)
            ),
            reserved_usernames=tuple(reserved),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class QueryConfig:
    """Settings for idle account queries."""

    date_format: str = DEFAULT_DATE_FORMAT
    activity_claim: str = LAST_LOGIN_TIME_CLAIM
    lookup_workers: int = 1

    def __post_init__(self) -> None:
        if self.activity_claim not in ACTIVITY_CLAIMS:
            raise ValueError(f"Unsupported activity claim {self.activity_claim!r}")
        if self.lookup_workers < 1:
            raise ValueError("query.lookup_workers must be at least 1")

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "QueryConfig":
        _reject_unknown("query", data, {f.name for f in fields(QueryConfig)})
        workers = data.get("lookup_workers", 1)
        if isinstance(workers, bool) or not isinstance(workers, int):
            raise ValueError("query.lookup_workers must be an integer")
        return QueryConfig(
            date_format=str(data.get("date_format", DEFAULT_DATE_FORMAT)),
            activity_claim=str(data.get("activity_claim", LAST_LOGIN_TIME_CLAIM)),
            lookup_workers=workers,
        )


@dataclass(frozen=True)
class Settings:
    """Top-level settings handed to :func:`idle_accounts.create_services`."""

    database_path: Path
    recorder: RecorderConfig = field(default_factory=RecorderConfig)
    query: QueryConfig = field(default_factory=QueryConfig)


def load_settings(config_path: Path) -> Settings:
    """Load settings from a YAML file."""

    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError("Configuration file must contain a mapping")
    _reject_unknown("top-level", raw, {"database_path", "recorder", "query"})

    raw_db_path = raw.get("database_path")
    if raw_db_path:
        candidate = Path(str(raw_db_path)).expanduser()
        if not candidate.is_absolute():
            candidate = config_path.parent / candidate
        database_path = candidate.resolve(strict=False)
    else:
        database_path = resolve_database_path(None)

    return Settings(
        database_path=database_path,
        recorder=RecorderConfig.from_dict(_section(raw, "recorder")),
        query=QueryConfig.from_dict(_section(raw, "query")),
    )


def apply_env_overrides(settings: Settings, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Return a copy of ``settings`` with environment overrides applied."""

    env: Mapping[str, str] = os.environ if environ is None else environ
    recorder = replace(
        settings.recorder,
        enabled=_env_bool(env.get("IDLE_ACCOUNTS_RECORDER_ENABLED"), settings.recorder.enabled),
        use_durable_write_path=_env_bool(
            env.get("IDLE_ACCOUNTS_USE_DURABLE_WRITE_PATH"), settings.recorder.use_durable_write_path
        ),
    )
    db_env = env.get("IDLE_ACCOUNTS_DB_PATH")
    database_path = resolve_database_path(db_env) if db_env else settings.database_path
    return replace(settings, recorder=recorder, database_path=database_path)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "idle_accounts.yaml").resolve(strict=False)
    return candidate


__all__ = [
    "QueryConfig",
    "RecorderConfig",
    "Settings",
    "TENANT_ASSOCIATION_MANAGER",
    "apply_env_overrides",
    "load_settings",
    "resolve_config_path",
]
