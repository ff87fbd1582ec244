"""Domain models for user activity metadata and idle account reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

LAST_LOGIN_TIME_CLAIM = "http://wso2.org/claims/identity/lastLoginTime"
LAST_PASSWORD_UPDATE_TIME_CLAIM = "http://wso2.org/claims/identity/lastPasswordUpdateTime"
EMAIL_CLAIM = "http://wso2.org/claims/emailaddress"

PRIMARY_DEFAULT_DOMAIN_NAME = "PRIMARY"
DOMAIN_SEPARATOR = "/"


@dataclass(frozen=True)
class Tenant:
    """An isolated partition of users, resolved outside this package."""

    id: int
    domain: str


@dataclass(frozen=True)
class Window:
    """Epoch bounds for an idle account query."""

    inactive_after_epoch: str
    exclude_before_epoch: Optional[str] = None

    @property
    def reversed(self) -> bool:
        if self.exclude_before_epoch is None:
            return False
        return int(self.exclude_before_epoch) >= int(self.inactive_after_epoch)


@dataclass(frozen=True)
class InactiveUserEntry:
    """A user whose last recorded activity falls inside the queried window."""

    username: str
    user_store_domain: str
    email: str

    def __post_init__(self) -> None:
        if not self.username or not self.username.strip():
            raise ValueError("Inactive user entries require a username")


@dataclass
class IdentityClaimBag:
    """Claim values recorded for a single user."""

    username: str
    claims: Dict[str, str] = field(default_factory=dict)

    def get_claim(self, claim_uri: str) -> Optional[str]:
        return self.claims.get(claim_uri)

    def set_claim(self, claim_uri: str, value: str) -> None:
        self.claims[claim_uri] = value

    def copy(self) -> "IdentityClaimBag":
        return IdentityClaimBag(username=self.username, claims=dict(self.claims))


@dataclass(frozen=True)
class IdleUserReport:
    """Result of a query that keeps going when single directory lookups fail."""

    entries: Tuple[InactiveUserEntry, ...]
    failures: Mapping[str, Exception] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.failures


__all__ = [
    "DOMAIN_SEPARATOR",
    "EMAIL_CLAIM",
    "IdentityClaimBag",
    "IdleUserReport",
    "InactiveUserEntry",
    "LAST_LOGIN_TIME_CLAIM",
    "LAST_PASSWORD_UPDATE_TIME_CLAIM",
    "PRIMARY_DEFAULT_DOMAIN_NAME",
    "Tenant",
    "Window",
]
