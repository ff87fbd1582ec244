"""User directory access: tenant lookup, store domains and claim retrieval."""
from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, Mapping, Optional, Protocol

from .errors import ClientError, DirectoryError, ErrorMessage
from .models import DOMAIN_SEPARATOR, EMAIL_CLAIM, PRIMARY_DEFAULT_DOMAIN_NAME, Tenant

logger = logging.getLogger("idleaccounts.directory")


class UserStoreError(RuntimeError):
    """Raised by directory adapters when the user store cannot serve a request."""


class UserStoreManager(Protocol):
    """The parts of a tenant's user store this package relies on.

    Implementations should report failures as :class:`UserStoreError`;
    anything they raise is surfaced to callers as a directory error.
    """

    @property
    def tenant_id(self) -> int: ...

    @property
    def domain_name(self) -> Optional[str]: ...

    def get_user_claim_values(self, username: str, claim_uris: Iterable[str]) -> Mapping[str, str]: ...

    def set_user_claim_values(self, username: str, claims: Mapping[str, str]) -> None: ...


class RealmService(Protocol):
    """Resolves tenants and hands out their active user store manager."""

    def get_tenant_id(self, tenant_domain: str) -> Optional[int]: ...

    def get_user_store_manager(self, tenant_id: int) -> UserStoreManager: ...


def _split_name(username: str) -> tuple[Optional[str], str]:
    name = username.strip()
    if DOMAIN_SEPARATOR in name:
        domain, local = name.split(DOMAIN_SEPARATOR, 1)
        return domain.strip().upper() or None, local
    return None, name


def extract_domain_from_name(username: str) -> str:
    """Return the upper-cased store domain of ``username``, defaulting to the primary store."""

    domain, _ = _split_name(username)
    return domain or PRIMARY_DEFAULT_DOMAIN_NAME


def qualify_username(username: str, store_domain: Optional[str]) -> str:
    """Build the canonical stored form of a username.

    Secondary store users keep a ``DOMAIN/`` prefix; primary store users are
    stored under their bare name.
    """

    domain, local = _split_name(username)
    if domain is None:
        domain = (store_domain or "").strip().upper() or PRIMARY_DEFAULT_DOMAIN_NAME
    if domain == PRIMARY_DEFAULT_DOMAIN_NAME:
        return local
    return f"{domain}{DOMAIN_SEPARATOR}{local}"


def store_domain_name(manager: UserStoreManager) -> str:
    domain = manager.domain_name
    if domain is None or not domain.strip():
        return PRIMARY_DEFAULT_DOMAIN_NAME
    return domain.strip().upper()


class InMemoryUserStoreManager:
    """Dictionary-backed user store, mostly useful for embedding and tests."""

    def __init__(
        self,
        tenant_id: int,
        *,
        domain_name: Optional[str] = None,
        users: Optional[Mapping[str, Mapping[str, str]]] = None,
    ) -> None:
        self._tenant_id = tenant_id
        self._domain_name = domain_name
        self._users: Dict[str, Dict[str, str]] = {
            name: dict(claims) for name, claims in (users or {}).items()
        }
        self._lock = threading.Lock()

    @property
    def tenant_id(self) -> int:
        return self._tenant_id

    @property
    def domain_name(self) -> Optional[str]:
        return self._domain_name

    def _local_name(self, username: str) -> str:
        domain, local = _split_name(username)
        if domain is not None and domain != store_domain_name(self):
            raise UserStoreError(f"User {username} does not belong to store {store_domain_name(self)}")
        return local

    def add_user(self, username: str, claims: Optional[Mapping[str, str]] = None) -> None:
        with self._lock:
            self._users[self._local_name(username)] = dict(claims or {})

    def get_user_claim_values(self, username: str, claim_uris: Iterable[str]) -> Mapping[str, str]:
        local = self._local_name(username)
        with self._lock:
            claims = self._users.get(local)
            if claims is None:
                raise UserStoreError(f"User {username} does not exist")
            return {uri: claims[uri] for uri in claim_uris if uri in claims}

    def set_user_claim_values(self, username: str, claims: Mapping[str, str]) -> None:
        local = self._local_name(username)
        with self._lock:
            existing = self._users.get(local)
            if existing is None:
                raise UserStoreError(f"User {username} does not exist")
            existing.update(claims)


class InMemoryRealm:
    """Realm adapter holding one user store manager per tenant."""

    def __init__(self) -> None:
        self._tenants: Dict[str, int] = {}
        self._managers: Dict[int, UserStoreManager] = {}

    def register(self, tenant: Tenant, manager: UserStoreManager) -> None:
        self._tenants[tenant.domain.strip().lower()] = tenant.id
        self._managers[tenant.id] = manager

    def get_tenant_id(self, tenant_domain: str) -> Optional[int]:
        return self._tenants.get(tenant_domain.strip().lower())

    def get_user_store_manager(self, tenant_id: int) -> UserStoreManager:
        try:
            return self._managers[tenant_id]
        except KeyError as exc:
            raise UserStoreError(f"No user store configured for tenant {tenant_id}") from exc


class UserDirectoryResolver:
    """Resolve tenants, store domains and email addresses through a realm."""

    def __init__(self, realm: RealmService) -> None:
        self._realm = realm

    def resolve_tenant(self, tenant_domain: str) -> Tenant:
        if not isinstance(tenant_domain, str) or not tenant_domain.strip():
            raise ClientError(ErrorMessage.INVALID_TENANT_DOMAIN, "Tenant domain must not be empty.")
        domain = tenant_domain.strip()
        try:
            tenant_id = self._realm.get_tenant_id(domain)
        except Exception as exc:
            raise DirectoryError(ErrorMessage.ERROR_RETRIEVE_USER_CLAIMS, f"Tenant lookup failed for {domain}.") from exc
        if tenant_id is None:
            raise ClientError(ErrorMessage.INVALID_TENANT_DOMAIN, f"Unknown tenant domain {domain!r}.")
        return Tenant(id=tenant_id, domain=domain)

    @staticmethod
    def resolve_domain(username: str) -> str:
        return extract_domain_from_name(username)

    def fetch_email(self, tenant_id: int, username: str) -> str:
        """Return the email claim of ``username``, or an empty string when it is unset.

        Users from a store other than the tenant's active one cannot be
        queried here, so their username is returned in place of an address.
        """

        try:
            manager = self._realm.get_user_store_manager(tenant_id)
            if store_domain_name(manager) != self.resolve_domain(username):
                logger.debug("User %s is outside the active user store; using username as email", username)
                return username
            claims = manager.get_user_claim_values(username, [EMAIL_CLAIM])
        except Exception as exc:
            raise DirectoryError(
                ErrorMessage.ERROR_RETRIEVE_USER_CLAIMS,
                f"Could not read the email of user {username} in tenant {tenant_id}.",
            ) from exc
        return claims.get(EMAIL_CLAIM) or ""


__all__ = [
    "InMemoryRealm",
    "InMemoryUserStoreManager",
    "RealmService",
    "UserDirectoryResolver",
    "UserStoreError",
    "UserStoreManager",
    "extract_domain_from_name",
    "qualify_username",
    "store_domain_name",
]
