"""
Failure taxonomy and the tagged result returned by every client operation.

The transport and storage layers raise the exceptions below; clients and
controllers catch them at their boundary and hand a ``Result`` to the view.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class FailureKind(str, Enum):
    """Classification the presentation layer switches on."""

    VALIDATION = "validation"
    AUTH = "auth"
    CONNECTION = "connection"
    SERVER = "server"
    STORAGE = "storage"


class MonitorError(Exception):
    """Base class for all classified client failures."""

    kind: FailureKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MonitorError):
    """Input rejected locally; no request was sent."""

    kind = FailureKind.VALIDATION

    def __init__(self, message: str, fields: dict[str, str] | None = None):
        super().__init__(message)
        self.fields = fields or {}


class AuthError(MonitorError):
    """Credentials or bearer token rejected by the service."""

    kind = FailureKind.AUTH


class ConnectionError(MonitorError):  # noqa: A001
    """No response reached the client."""

    kind = FailureKind.CONNECTION

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class ServerError(MonitorError):
    """The service answered with a non-auth failure status."""

    kind = FailureKind.SERVER

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StorageUnavailable(MonitorError):
    """The session persistence medium could not be read or written."""

    kind = FailureKind.STORAGE


@dataclass
class Ack:
    """Acknowledgement of a fire-and-forget request."""

    message: str | None = None

    @classmethod
    def from_body(cls, body: Any) -> Ack:
        if isinstance(body, dict) and isinstance(body.get("message"), str):
            return cls(message=body["message"])
        return cls()


@dataclass
class Result(Generic[T]):
    """Success payload or a classified failure, never both."""

    value: T | None = None
    error: MonitorError | None = None
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def success(cls, value: T | None = None) -> Result[T]:
        return cls(value=value)

    @classmethod
    def fail(cls, error: MonitorError) -> Result[T]:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> FailureKind | None:
        return self.error.kind if self.error else None

    @property
    def message(self) -> str | None:
        return self.error.message if self.error else None

    def unwrap(self) -> T:
        """Return the value or re-raise the failure."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
