"""Factory that wires the store, cache, resolver, query engine and recorder."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .cache import MetadataCache
from .config import Settings, apply_env_overrides, load_settings, resolve_config_path
from .directory import RealmService, UserDirectoryResolver
from .epoch import EpochConverter
from .query import IdleUserQueryEngine
from .recorder import ActivityEventRecorder
from .store import MetadataStore


@dataclass(frozen=True)
class Services:
    """Components sharing one metadata store and cache."""

    store: MetadataStore
    cache: MetadataCache
    resolver: UserDirectoryResolver
    query_engine: IdleUserQueryEngine
    recorder: ActivityEventRecorder


def create_services(settings: Settings, realm: RealmService) -> Services:
    """Build every component from ``settings`` against the given realm."""

    store = MetadataStore(settings.database_path)
    store.initialize()

    cache = MetadataCache()
    resolver = UserDirectoryResolver(realm)
    converter = EpochConverter(settings.query.date_format)

    return Services(
        store=store,
        cache=cache,
        resolver=resolver,
        query_engine=IdleUserQueryEngine(store, resolver, config=settings.query, converter=converter),
        recorder=ActivityEventRecorder(store, cache, config=settings.recorder, converter=converter),
    )


def create_services_from_environment(realm: RealmService, *, config_path: Optional[str] = None) -> Services:
    """Load settings from ``IDLE_ACCOUNTS_CONFIG`` (or ``config_path``) and build the services."""

    path = resolve_config_path(config_path or os.getenv("IDLE_ACCOUNTS_CONFIG"))
    settings = apply_env_overrides(load_settings(path))
    return create_services(settings, realm)


__all__ = ["Services", "create_services", "create_services_from_environment"]
