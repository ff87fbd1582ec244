"""Error taxonomy shared by the read and write paths."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorMessage(Enum):
    """Stable error codes used for operational triage."""

    INVALID_DATE_FORMAT = ("IDLE-60001", "Invalid date format.")
    INVALID_TENANT_DOMAIN = ("IDLE-60002", "Invalid tenant domain.")
    ERROR_RETRIEVE_INACTIVE_USERS_FROM_DB = (
        "IDLE-65001",
        "Error while retrieving inactive users from the database.",
    )
    ERROR_PERSIST_USER_METADATA = ("IDLE-65002", "Error while persisting user metadata.")
    ERROR_RETRIEVE_USER_METADATA = ("IDLE-65003", "Error while loading user metadata.")
    ERROR_RETRIEVE_USER_CLAIMS = ("IDLE-65004", "Error while retrieving user claims from the directory.")
    ERROR_UPDATE_USER_CLAIMS = ("IDLE-65005", "Error while updating user claims in the directory.")
    ERROR_INVALID_EVENT = ("IDLE-65006", "Lifecycle event is missing required properties.")

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def message(self) -> str:
        return self.value[1]


class IdleAccountError(RuntimeError):
    """Base class for errors raised while tracking or querying user activity."""

    def __init__(self, error: ErrorMessage, description: Optional[str] = None) -> None:
        super().__init__(error.message if description is None else f"{error.message} {description}")
        self.error = error
        self.code = error.code
        self.message = error.message
        self.description = description

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.description:
            payload["description"] = self.description
        return payload


class ClientError(IdleAccountError):
    """Raised when caller supplied input is invalid. Never retried."""


class InvalidDateFormat(ClientError):
    """Raised when a date string does not match the configured format."""

    def __init__(self, value: object, date_format: str) -> None:
        super().__init__(
            ErrorMessage.INVALID_DATE_FORMAT,
            f"Expected a date matching {date_format!r}, got {value!r}.",
        )
        self.value = value
        self.date_format = date_format


class ServerError(IdleAccountError):
    """Raised when storage, the directory or internal state fails."""


class StorageError(ServerError):
    """Raised when the metadata store cannot complete an operation."""


class DirectoryError(ServerError):
    """Raised when the user directory cannot be reached or queried."""


__all__ = [
    "ClientError",
    "DirectoryError",
    "ErrorMessage",
    "IdleAccountError",
    "InvalidDateFormat",
    "ServerError",
    "StorageError",
]
