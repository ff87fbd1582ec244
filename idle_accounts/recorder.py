"""Write path: record login and credential update times from lifecycle events."""
from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, Optional

from .cache import MetadataCache
from .config import RecorderConfig
from .directory import UserStoreError, UserStoreManager, qualify_username, store_domain_name
from .epoch import EpochConverter
from .errors import DirectoryError, ErrorMessage, ServerError
from .events import (
    OPERATION_STATUS,
    POST_AUTHENTICATION,
    POST_UPDATE_CREDENTIAL,
    POST_UPDATE_CREDENTIAL_BY_ADMIN,
    USER_NAME,
    USER_STORE_MANAGER,
    LifecycleEvent,
)
from .models import LAST_LOGIN_TIME_CLAIM, LAST_PASSWORD_UPDATE_TIME_CLAIM
from .store import MetadataStore

logger = logging.getLogger("idleaccounts.recorder")

HANDLER_NAME = "userActivityRecorder"
HANDLER_FRIENDLY_NAME = "User Activity Recorder"
HANDLER_PRIORITY = 50


class ActivityEventRecorder:
    """Keep last-login and last-password-update claims current.

    With ``use_durable_write_path`` the timestamp goes to the metadata store
    first and then to the cache. The two writes share no transaction; a
    failure in either propagates and the next successful event for the same
    claim brings them back in line. Otherwise the claim is written straight
    to the user's directory entry.
    """

    def __init__(
        self,
        store: MetadataStore,
        cache: MetadataCache,
        *,
        config: Optional[RecorderConfig] = None,
        converter: Optional[EpochConverter] = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._config = config or RecorderConfig()
        self._converter = converter or EpochConverter()
        self._handlers: Dict[str, Callable[[LifecycleEvent], bool]] = {
            POST_AUTHENTICATION: self._on_authentication,
            POST_UPDATE_CREDENTIAL: self._on_credential_update,
            POST_UPDATE_CREDENTIAL_BY_ADMIN: self._on_credential_update,
        }

    @property
    def name(self) -> str:
        return HANDLER_NAME

    @property
    def friendly_name(self) -> str:
        return HANDLER_FRIENDLY_NAME

    @property
    def priority(self) -> int:
        return HANDLER_PRIORITY

    @property
    def handled_events(self) -> Iterable[str]:
        return tuple(self._handlers)

    def handle_event(self, event: LifecycleEvent) -> bool:
        """Process one event and return ``True`` when a timestamp was written."""

        if not self._config.enabled:
            logger.debug("User activity recorder is disabled; ignoring %s", event.name)
            return False
        handler = self._handlers.get(event.name)
        if handler is None:
            return False
        return handler(event)

    def _on_authentication(self, event: LifecycleEvent) -> bool:
        logger.debug("Handling post authentication event")
        if event.get(OPERATION_STATUS) is not True:
            return False
        return self._record(event, LAST_LOGIN_TIME_CLAIM)

    def _on_credential_update(self, event: LifecycleEvent) -> bool:
        logger.debug("Handling %s event", event.name)
        return self._record(event, LAST_PASSWORD_UPDATE_TIME_CLAIM)

    def _record(self, event: LifecycleEvent, claim_uri: str) -> bool:
        timestamp = self._converter.now()
        manager = event.get(USER_STORE_MANAGER)
        if manager is None:
            raise ServerError(ErrorMessage.ERROR_INVALID_EVENT, f"{event.name} has no user store manager.")
        raw_username = event.get(USER_NAME)
        if not isinstance(raw_username, str) or not raw_username.strip():
            raise ServerError(ErrorMessage.ERROR_INVALID_EVENT, f"{event.name} has no username.")

        if not self._config.use_durable_write_path:
            self._set_directory_claim(manager, raw_username, claim_uri, timestamp, event.name)
            return True

        username = qualify_username(raw_username, store_domain_name(manager))
        if self._is_reserved(username):
            logger.debug("Skipping %s for reserved account %s", claim_uri, username)
            return False

        self._store.upsert_claim(manager.tenant_id, username, claim_uri, timestamp)
        self._cache.update_claim(manager.tenant_id, username, claim_uri, timestamp)
        logger.debug("Recorded %s=%s for %s after %s", claim_uri, timestamp, username, event.name)
        return True

    def _is_reserved(self, username: str) -> bool:
        return any(reserved in username for reserved in self._config.reserved_usernames)

    def _set_directory_claim(
        self,
        manager: UserStoreManager,
        username: str,
        claim_uri: str,
        value: str,
        event_name: str,
    ) -> None:
        try:
            manager.set_user_claim_values(username, {claim_uri: value})
        except UserStoreError as exc:
            raise DirectoryError(
                ErrorMessage.ERROR_UPDATE_USER_CLAIMS,
                f"Updating claims for the {event_name} event failed.",
            ) from exc
        logger.debug("Updated user claims for the %s event", event_name)


__all__ = ["ActivityEventRecorder", "HANDLER_NAME", "HANDLER_PRIORITY"]
