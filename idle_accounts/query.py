"""Read path: find idle accounts of a tenant and resolve their email addresses."""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence, Tuple

from .config import QueryConfig
from .directory import UserDirectoryResolver
from .epoch import EpochConverter
from .errors import DirectoryError
from .models import IdleUserReport, InactiveUserEntry, Tenant, Window
from .store import MetadataStore

logger = logging.getLogger("idleaccounts.query")


class IdleUserQueryEngine:
    """Answer windowed idle account queries for a single tenant at a time.

    ``get_inactive_users`` aborts on the first directory failure.
    ``collect_inactive_users`` keeps going and reports failed users next to
    the entries that could be built.
    """

    def __init__(
        self,
        store: MetadataStore,
        resolver: UserDirectoryResolver,
        *,
        config: Optional[QueryConfig] = None,
        converter: Optional[EpochConverter] = None,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._config = config or QueryConfig()
        self._converter = converter or EpochConverter(self._config.date_format)

    @property
    def config(self) -> QueryConfig:
        return self._config

    def build_window(self, inactive_after: str, exclude_before: Optional[str] = None) -> Window:
        inactive_epoch = self._converter.to_epoch_seconds(inactive_after)
        exclude_epoch = None
        if exclude_before:
            exclude_epoch = self._converter.to_epoch_seconds(exclude_before)
        return Window(inactive_after_epoch=inactive_epoch, exclude_before_epoch=exclude_epoch)

    def get_inactive_users(
        self,
        tenant_domain: str,
        inactive_after: str,
        exclude_before: Optional[str] = None,
    ) -> List[InactiveUserEntry]:
        tenant, usernames = self._find_idle_usernames(tenant_domain, inactive_after, exclude_before)
        if self._config.lookup_workers == 1 or len(usernames) < 2:
            return [self._build_entry(tenant, username) for username in usernames]

        with ThreadPoolExecutor(max_workers=self._config.lookup_workers) as executor:
            futures = [executor.submit(self._build_entry, tenant, username) for username in usernames]
            entries: List[InactiveUserEntry] = []
            for index, future in enumerate(futures):
                try:
                    entries.append(future.result())
                except DirectoryError:
                    for pending in futures[index + 1:]:
                        pending.cancel()
                    raise
        return entries

    def collect_inactive_users(
        self,
        tenant_domain: str,
        inactive_after: str,
        exclude_before: Optional[str] = None,
    ) -> IdleUserReport:
        tenant, usernames = self._find_idle_usernames(tenant_domain, inactive_after, exclude_before)
        entries: List[InactiveUserEntry] = []
        failures: Dict[str, Exception] = {}

        with ThreadPoolExecutor(max_workers=self._config.lookup_workers) as executor:
            futures: Sequence[Tuple[str, Future]] = [
                (username, executor.submit(self._build_entry, tenant, username)) for username in usernames
            ]
            for username, future in futures:
                try:
                    entries.append(future.result())
                except DirectoryError as exc:
                    logger.warning("Could not resolve idle user %s in tenant %s: %s", username, tenant.domain, exc)
                    failures[username] = exc

        return IdleUserReport(entries=tuple(entries), failures=failures)

    def _find_idle_usernames(
        self,
        tenant_domain: str,
        inactive_after: str,
        exclude_before: Optional[str],
    ) -> Tuple[Tenant, List[str]]:
        window = self.build_window(inactive_after, exclude_before)
        tenant = self._resolver.resolve_tenant(tenant_domain)
        if window.reversed:
            logger.warning(
                "Exclusion bound %s is not earlier than the idle threshold %s for tenant %s",
                window.exclude_before_epoch,
                window.inactive_after_epoch,
                tenant.domain,
            )

        usernames = self._store.query_idle_users(
            tenant.id,
            self._config.activity_claim,
            window.inactive_after_epoch,
            window.exclude_before_epoch,
        )
        logger.info(
            "Found %d idle users in tenant %s (inactive after %s, exclude before %s)",
            len(usernames),
            tenant.domain,
            inactive_after,
            exclude_before or "-",
        )
        return tenant, usernames

    def _build_entry(self, tenant: Tenant, username: str) -> InactiveUserEntry:
        return InactiveUserEntry(
            username=username,
            user_store_domain=self._resolver.resolve_domain(username),
            email=self._resolver.fetch_email(tenant.id, username),
        )


__all__ = ["IdleUserQueryEngine"]
