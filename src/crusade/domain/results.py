"""Result types and the error taxonomy of the crusade engine.

Expected business-rule violations are returned as a failed
:class:`OperationResult`; only persistence failures are raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorKind(StrEnum):
    """Why an operation was rejected."""

    VALIDATION = "validation"
    CAP_EXCEEDED = "cap_exceeded"
    CATEGORY_VIOLATION = "category_violation"
    INSUFFICIENT_RESOURCES = "insufficient_resources"
    NOT_FOUND = "not_found"


@dataclass(slots=True)
class OperationResult(Generic[T]):
    """Outcome of a mutating engine operation.

    ``entity`` carries the updated entity on success (and, for some
    rejections, the untouched entity so callers can re-render it).
    """

    success: bool
    message: str
    entity: T | None = None
    error: ErrorKind | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, entity: T | None = None, **data: Any) -> OperationResult[T]:
        return cls(success=True, message=message, entity=entity, data=data)

    @classmethod
    def fail(
        cls, error: ErrorKind, message: str, entity: T | None = None, **data: Any
    ) -> OperationResult[T]:
        return cls(success=False, message=message, entity=entity, error=error, data=data)

    def __bool__(self) -> bool:
        return self.success


class PersistenceError(Exception):
    """Base class for snapshot and backup failures."""


class CorruptSnapshotError(PersistenceError):
    """A snapshot could not be decoded, verified or migrated."""

    def __init__(self, message: str, *, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


class RecoveryFailedError(PersistenceError):
    """Every snapshot in the backup ring failed to load or validate."""

    def __init__(self, message: str, failures: list[tuple[str, str]] | None = None) -> None:
        super().__init__(message)
        self.failures = failures or []
