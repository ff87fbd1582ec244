"""Tests for idle account queries against a SQLite store and an in-memory realm."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from idle_accounts.config import QueryConfig
from idle_accounts.directory import InMemoryRealm, InMemoryUserStoreManager, UserDirectoryResolver
from idle_accounts.epoch import EpochConverter
from idle_accounts.errors import ClientError, DirectoryError, InvalidDateFormat, ServerError
from idle_accounts.models import (
    EMAIL_CLAIM,
    LAST_LOGIN_TIME_CLAIM,
    LAST_PASSWORD_UPDATE_TIME_CLAIM,
    InactiveUserEntry,
    Tenant,
)
from idle_accounts.query import IdleUserQueryEngine
from idle_accounts.store import MetadataStore

ACME = Tenant(id=1, domain="acme")


class IdleUserQueryEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        self.store = MetadataStore(Path(self._tempdir.name) / "identity_metadata.sqlite3")
        self.store.initialize()
        self.manager = InMemoryUserStoreManager(
            ACME.id,
            users={
                "alice": {EMAIL_CLAIM: "alice@acme.test"},
                "bob": {EMAIL_CLAIM: "bob@acme.test"},
                "carol": {EMAIL_CLAIM: "carol@acme.test"},
            },
        )
        realm = InMemoryRealm()
        realm.register(ACME, self.manager)
        self.resolver = UserDirectoryResolver(realm)
        self.epoch = EpochConverter().to_epoch_seconds

    def tearDown(self) -> None:
        self._tempdir.cleanup()

    def _engine(self, **config: object) -> IdleUserQueryEngine:
        return IdleUserQueryEngine(self.store, self.resolver, config=QueryConfig(**config))  # type: ignore[arg-type]

    def _login(self, username: str, date: str) -> None:
        self.store.upsert_claim(ACME.id, username, LAST_LOGIN_TIME_CLAIM, self.epoch(date))

    def test_single_bound_query_returns_idle_users(self) -> None:
        self._login("alice", "2022-06-01")
        self._login("bob", "2023-06-01")

        result = self._engine().get_inactive_users("acme", "2023-01-01")

        self.assertEqual(result, [InactiveUserEntry("alice", "PRIMARY", "alice@acme.test")])

    def test_bounded_query_excludes_older_users(self) -> None:
        self._login("alice", "2022-06-01")
        self._login("carol", "2023-03-01")
        self._login("bob", "2023-06-01")

        result = self._engine().get_inactive_users("acme", "2023-06-01", exclude_before="2023-01-01")

        self.assertEqual([entry.username for entry in result], ["carol"])
        self.assertEqual(result[0].email, "carol@acme.test")

    def test_empty_exclusion_uses_single_bound_mode(self) -> None:
        self._login("alice", "2022-06-01")

        result = self._engine().get_inactive_users("acme", "2023-01-01", exclude_before="")

        self.assertEqual([entry.username for entry in result], ["alice"])

    def test_invalid_date_fails_before_touching_storage(self) -> None:
        engine = self._engine()
        with mock.patch.object(self.store, "query_idle_users") as query:
            with self.assertRaises(InvalidDateFormat) as ctx:
                engine.get_inactive_users("acme", "not-a-date")
            with self.assertRaises(ClientError):
                engine.get_inactive_users("acme", "2023-01-01", exclude_before="01/01/2022")

        query.assert_not_called()
        self.assertEqual(ctx.exception.code, "IDLE-60001")

    def test_unknown_tenant_is_a_client_error(self) -> None:
        with self.assertRaises(ClientError):
            self._engine().get_inactive_users("globex", "2023-01-01")

    def test_secondary_store_users_fall_back_to_username(self) -> None:
        self.store.upsert_claim(ACME.id, "SECONDARY/dave", LAST_LOGIN_TIME_CLAIM, self.epoch("2022-01-01"))

        result = self._engine().get_inactive_users("acme", "2023-01-01")

        self.assertEqual(result, [InactiveUserEntry("SECONDARY/dave", "SECONDARY", "SECONDARY/dave")])

    def test_directory_failure_aborts_the_query(self) -> None:
        self._login("alice", "2022-06-01")
        self._login("ghost", "2022-06-01")

        for workers in (1, 4):
            with self.subTest(workers=workers):
                with self.assertRaises(DirectoryError) as ctx:
                    self._engine(lookup_workers=workers).get_inactive_users("acme", "2023-01-01")
                self.assertIsInstance(ctx.exception, ServerError)

    def test_storage_failure_surfaces_as_server_error(self) -> None:
        broken = MetadataStore(Path(self._tempdir.name) / "uninitialised.sqlite3")
        engine = IdleUserQueryEngine(broken, self.resolver)

        with self.assertRaises(ServerError):
            engine.get_inactive_users("acme", "2023-01-01")

    def test_collect_reports_failed_lookups_next_to_entries(self) -> None:
        self._login("alice", "2022-06-01")
        self._login("ghost", "2022-06-01")

        report = self._engine(lookup_workers=2).collect_inactive_users("acme", "2023-01-01")

        self.assertEqual([entry.username for entry in report.entries], ["alice"])
        self.assertEqual(list(report.failures), ["ghost"])
        self.assertIsInstance(report.failures["ghost"], DirectoryError)
        self.assertFalse(report.complete)

    def test_unexpected_directory_errors_are_contained(self) -> None:
        self._login("alice", "2022-06-01")
        self._login("bob", "2022-06-01")
        lookup = self.manager.get_user_claim_values

        def flaky_lookup(username, claim_uris):
            if username == "bob":
                raise ConnectionError("ldap down")
            return lookup(username, claim_uris)

        with mock.patch.object(self.manager, "get_user_claim_values", side_effect=flaky_lookup):
            for workers in (1, 4):
                with self.subTest(workers=workers):
                    with self.assertRaises(DirectoryError):
                        self._engine(lookup_workers=workers).get_inactive_users("acme", "2023-01-01")

            report = self._engine(lookup_workers=2).collect_inactive_users("acme", "2023-01-01")

        self.assertEqual(report.entries, (InactiveUserEntry("alice", "PRIMARY", "alice@acme.test"),))
        self.assertIsInstance(report.failures["bob"].__cause__, ConnectionError)

    def test_entries_require_a_username(self) -> None:
        with self.assertRaises(ValueError):
            InactiveUserEntry("  ", "PRIMARY", "")

    def test_worker_pool_preserves_storage_order(self) -> None:
        for username in ("alice", "bob", "carol"):
            self._login(username, "2022-06-01")

        sequential = self._engine().get_inactive_users("acme", "2023-01-01")
        pooled = self._engine(lookup_workers=3).get_inactive_users("acme", "2023-01-01")

        self.assertEqual(pooled, sequential)
        self.assertEqual(len(pooled), 3)

    def test_reversed_window_returns_nothing(self) -> None:
        self._login("alice", "2022-06-01")

        with self.assertLogs("idleaccounts.query", level="WARNING"):
            result = self._engine().get_inactive_users("acme", "2022-01-01", exclude_before="2023-01-01")

        self.assertEqual(result, [])

    def test_password_update_claim_can_drive_the_query(self) -> None:
        self._login("alice", "2022-06-01")
        self.store.upsert_claim(ACME.id, "bob", LAST_PASSWORD_UPDATE_TIME_CLAIM, self.epoch("2021-01-01"))

        engine = self._engine(activity_claim=LAST_PASSWORD_UPDATE_TIME_CLAIM)

        self.assertEqual([entry.username for entry in engine.get_inactive_users("acme", "2023-01-01")], ["bob"])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
