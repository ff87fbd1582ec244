"""Lifecycle events delivered by the identity event bus."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

POST_AUTHENTICATION = "POST_AUTHENTICATION"
POST_UPDATE_CREDENTIAL = "POST_UPDATE_CREDENTIAL"
POST_UPDATE_CREDENTIAL_BY_ADMIN = "POST_UPDATE_CREDENTIAL_BY_ADMIN"

# Event property keys.
USER_STORE_MANAGER = "userStoreManager"
OPERATION_STATUS = "OPERATION_STATUS"
USER_NAME = "user-name"


@dataclass(frozen=True)
class LifecycleEvent:
    """A single event with its property bag."""

    name: str
    properties: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        return self.properties.get(key, default)


__all__ = [
    "LifecycleEvent",
    "OPERATION_STATUS",
    "POST_AUTHENTICATION",
    "POST_UPDATE_CREDENTIAL",
    "POST_UPDATE_CREDENTIAL_BY_ADMIN",
    "USER_NAME",
    "USER_STORE_MANAGER",
]
