from __future__ import annotations

import pytest

from idle_accounts.directory import (
    InMemoryRealm,
    InMemoryUserStoreManager,
    UserDirectoryResolver,
    UserStoreError,
    extract_domain_from_name,
    qualify_username,
)
from idle_accounts.errors import ClientError, DirectoryError, ErrorMessage
from idle_accounts.models import EMAIL_CLAIM, Tenant

ACME = Tenant(id=7, domain="acme")


def _resolver(manager: InMemoryUserStoreManager) -> UserDirectoryResolver:
    realm = InMemoryRealm()
    realm.register(ACME, manager)
    return UserDirectoryResolver(realm)


@pytest.mark.parametrize(
    ("username", "expected"),
    [
        ("SECONDARY/dave", "SECONDARY"),
        ("secondary/dave", "SECONDARY"),
        ("erin", "PRIMARY"),
        ("/erin", "PRIMARY"),
    ],
)
def test_extract_domain_from_name(username: str, expected: str) -> None:
    assert extract_domain_from_name(username) == expected


@pytest.mark.parametrize(
    ("username", "store_domain", "expected"),
    [
        ("PRIMARY/erin", None, "erin"),
        ("erin", "PRIMARY", "erin"),
        ("erin", "", "erin"),
        ("dave", "secondary", "SECONDARY/dave"),
        ("ldap/dave", "PRIMARY", "LDAP/dave"),
    ],
)
def test_qualify_username(username: str, store_domain: str | None, expected: str) -> None:
    assert qualify_username(username, store_domain) == expected


def test_fetch_email_returns_directory_claim_for_matching_domain() -> None:
    manager = InMemoryUserStoreManager(ACME.id, users={"erin": {EMAIL_CLAIM: "erin@acme.test"}})

    assert _resolver(manager).fetch_email(ACME.id, "erin") == "erin@acme.test"


def test_fetch_email_compares_domains_case_insensitively() -> None:
    manager = InMemoryUserStoreManager(
        ACME.id,
        domain_name="Secondary",
        users={"dave": {EMAIL_CLAIM: "dave@acme.test"}},
    )

    assert _resolver(manager).fetch_email(ACME.id, "secondary/dave") == "dave@acme.test"


def test_fetch_email_falls_back_to_username_for_other_stores() -> None:
    manager = InMemoryUserStoreManager(ACME.id, domain_name="PRIMARY")

    assert _resolver(manager).fetch_email(ACME.id, "SECONDARY/dave") == "SECONDARY/dave"


def test_fetch_email_without_claim_is_empty() -> None:
    manager = InMemoryUserStoreManager(ACME.id, users={"erin": {}})

    assert _resolver(manager).fetch_email(ACME.id, "erin") == ""


def test_directory_failures_are_wrapped() -> None:
    manager = InMemoryUserStoreManager(ACME.id)

    with pytest.raises(DirectoryError) as excinfo:
        _resolver(manager).fetch_email(ACME.id, "ghost")

    assert excinfo.value.error is ErrorMessage.ERROR_RETRIEVE_USER_CLAIMS
    assert isinstance(excinfo.value.__cause__, UserStoreError)

    with pytest.raises(DirectoryError):
        _resolver(manager).fetch_email(99, "erin")


def test_resolve_tenant() -> None:
    resolver = _resolver(InMemoryUserStoreManager(ACME.id))

    assert resolver.resolve_tenant(" ACME ") == Tenant(id=7, domain="ACME")
    with pytest.raises(ClientError) as unknown:
        resolver.resolve_tenant("globex")
    assert unknown.value.code == "IDLE-60002"
    with pytest.raises(ClientError):
        resolver.resolve_tenant("  ")


def test_tenant_lookup_failure_is_a_directory_error() -> None:
    class BrokenRealm(InMemoryRealm):
        def get_tenant_id(self, tenant_domain: str):
            raise UserStoreError("realm offline")

    with pytest.raises(DirectoryError):
        UserDirectoryResolver(BrokenRealm()).resolve_tenant("acme")


class UnreachableStore(InMemoryUserStoreManager):
    def get_user_claim_values(self, username, claim_uris):
        raise ConnectionError("ldap down")


def test_unexpected_adapter_errors_are_wrapped() -> None:
    with pytest.raises(DirectoryError) as excinfo:
        _resolver(UnreachableStore(ACME.id)).fetch_email(ACME.id, "erin")

    assert isinstance(excinfo.value.__cause__, ConnectionError)

    class OfflineRealm(InMemoryRealm):
        def get_tenant_id(self, tenant_domain: str):
            raise TimeoutError("realm timed out")

    with pytest.raises(DirectoryError) as tenant_error:
        UserDirectoryResolver(OfflineRealm()).resolve_tenant("acme")
    assert isinstance(tenant_error.value.__cause__, TimeoutError)
