"""SQLite-backed persistence for per-user activity claims."""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from .errors import ErrorMessage, StorageError
from .models import IdentityClaimBag

logger = logging.getLogger("idleaccounts.store")

_UPSERT_CLAIM = """
    INSERT INTO identity_user_data (tenant_id, user_name, data_key, data_value)
    VALUES (?, ?, ?, ?)
    ON CONFLICT (tenant_id, user_name, data_key) DO UPDATE SET data_value = excluded.data_value
"""

_SELECT_IDLE_USERS = """
    SELECT user_name FROM identity_user_data
     WHERE data_key = ? AND tenant_id = ?
       AND data_value GLOB '[0-9]*'
       AND CAST(data_value AS INTEGER) < ?
     ORDER BY user_name
"""

_SELECT_IDLE_USERS_IN_RANGE = """
    SELECT user_name FROM identity_user_data
     WHERE data_key = ? AND tenant_id = ?
       AND data_value GLOB '[0-9]*'
       AND CAST(data_value AS INTEGER) < ?
       AND CAST(data_value AS INTEGER) >= ?
     ORDER BY user_name
"""


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the metadata database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "identity_metadata.sqlite3").resolve(strict=False)


class MetadataStore:
    """Durable key-value storage of claim values, scoped by tenant and user."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _session(self, *, read_only: bool = False) -> Iterator[sqlite3.Connection]:
        """Yield a connection that is committed or rolled back, then always closed."""

        conn = self._connect()
        try:
            if read_only:
                conn.execute("PRAGMA query_only = ON")
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        try:
            with self._session() as conn:
                conn.executescript(
                    """
                    CREATE TABLE IF NOT EXISTS identity_user_data (
                        tenant_id INTEGER NOT NULL,
                        user_name TEXT NOT NULL,
                        data_key TEXT NOT NULL,
                        data_value TEXT,
                        PRIMARY KEY (tenant_id, user_name, data_key)
                    );

                    CREATE INDEX IF NOT EXISTS idx_identity_user_data_key
                        ON identity_user_data(tenant_id, data_key);
                    """
                )
        except sqlite3.Error as exc:
            raise StorageError(ErrorMessage.ERROR_PERSIST_USER_METADATA, "Schema creation failed.") from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def upsert_claim(self, tenant_id: int, username: str, claim_uri: str, value: str) -> None:
        """Store ``value`` for the claim, replacing any previous value."""

        try:
            with self._session() as conn:
                conn.execute(_UPSERT_CLAIM, (tenant_id, username, claim_uri, value))
        except sqlite3.Error as exc:
            raise StorageError(
                ErrorMessage.ERROR_PERSIST_USER_METADATA,
                f"Could not store {claim_uri} for user {username} in tenant {tenant_id}.",
            ) from exc
        logger.debug("Stored %s for user %s in tenant %s", claim_uri, username, tenant_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_claims(self, tenant_id: int, username: str) -> Optional[IdentityClaimBag]:
        try:
            with self._session(read_only=True) as conn:
                rows = conn.execute(
                    "SELECT data_key, data_value FROM identity_user_data WHERE tenant_id = ? AND user_name = ?",
                    (tenant_id, username),
                ).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(ErrorMessage.ERROR_RETRIEVE_USER_METADATA) from exc

        if not rows:
            return None
        return IdentityClaimBag(
            username=username,
            claims={str(row["data_key"]): str(row["data_value"]) for row in rows},
        )

    def query_idle_users(
        self,
        tenant_id: int,
        claim_uri: str,
        inactive_after_epoch: str,
        exclude_before_epoch: Optional[str] = None,
    ) -> List[str]:
        """Return users whose claim value is older than ``inactive_after_epoch``.

        With ``exclude_before_epoch`` the result is limited to values in
        ``[exclude_before_epoch, inactive_after_epoch)`` so consecutive slices
        never return the same user twice.
        """

        try:
            if exclude_before_epoch is None:
                sql = _SELECT_IDLE_USERS
                params: tuple = (claim_uri, tenant_id, int(inactive_after_epoch))
            else:
                sql = _SELECT_IDLE_USERS_IN_RANGE
                params = (claim_uri, tenant_id, int(inactive_after_epoch), int(exclude_before_epoch))
        except (TypeError, ValueError) as exc:
            raise StorageError(
                ErrorMessage.ERROR_RETRIEVE_INACTIVE_USERS_FROM_DB,
                f"Epoch bounds must be integer strings, got {inactive_after_epoch!r} and {exclude_before_epoch!r}.",
            ) from exc

        usernames: List[str] = []
        try:
            with self._session(read_only=True) as conn:
                for row in conn.execute(sql, params):
                    username = row["user_name"]
                    if username is None or not str(username).strip():
                        logger.warning("Skipping idle user row without a username in tenant %s", tenant_id)
                        continue
                    usernames.append(str(username))
        except sqlite3.Error as exc:
            raise StorageError(ErrorMessage.ERROR_RETRIEVE_INACTIVE_USERS_FROM_DB) from exc
        return usernames


__all__ = ["MetadataStore", "resolve_database_path"]
