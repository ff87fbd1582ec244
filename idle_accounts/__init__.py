"""Per-user activity tracking and idle account identification."""

from __future__ import annotations

from .application import Services, create_services, create_services_from_environment
from .cache import MetadataCache
from .config import QueryConfig, RecorderConfig, Settings, load_settings
from .directory import InMemoryRealm, InMemoryUserStoreManager, UserDirectoryResolver, UserStoreError
from .epoch import EpochConverter
from .errors import ClientError, DirectoryError, InvalidDateFormat, ServerError, StorageError
from .events import LifecycleEvent
from .models import IdentityClaimBag, IdleUserReport, InactiveUserEntry, Tenant
from .query import IdleUserQueryEngine
from .recorder import ActivityEventRecorder
from .store import MetadataStore, resolve_database_path

__all__ = [
    "ActivityEventRecorder",
    "ClientError",
    "DirectoryError",
    "EpochConverter",
    "IdentityClaimBag",
    "IdleUserQueryEngine",
    "IdleUserReport",
    "InMemoryRealm",
    "InMemoryUserStoreManager",
    "InactiveUserEntry",
    "InvalidDateFormat",
    "LifecycleEvent",
    "MetadataCache",
    "MetadataStore",
    "QueryConfig",
    "RecorderConfig",
    "ServerError",
    "Services",
    "Settings",
    "StorageError",
    "Tenant",
    "UserDirectoryResolver",
    "UserStoreError",
    "create_services",
    "create_services_from_environment",
    "load_settings",
    "resolve_database_path",
]
