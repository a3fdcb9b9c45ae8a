"""Storage error taxonomy and classification.

Every failure that reaches a user-facing boundary is mapped to one of a closed
set of kinds, each with a fixed remediation text.
"""

from __future__ import annotations

import inspect
import sqlite3
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

import httpx

from tradesnap.infrastructure.logging.logging import get_logger
from tradesnap.models.storage_models import BestEffortResult

T = TypeVar("T")

log = get_logger("storage_errors")


class StorageErrorKind(str, Enum):
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    ACCESS_DENIED = "ACCESS_DENIED"
    VERSION_MISMATCH = "VERSION_MISMATCH"
    TRANSACTION_INACTIVE = "TRANSACTION_INACTIVE"
    CONSTRAINT_VIOLATION = "CONSTRAINT_VIOLATION"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN = "UNKNOWN"


RECOMMENDATIONS = {
    StorageErrorKind.QUOTA_EXCEEDED: "Please clear some storage or delete old trades to free up space.",
    StorageErrorKind.ACCESS_DENIED: "Please check the permissions of the data directory.",
    StorageErrorKind.VERSION_MISMATCH: "Please restart the application to update the database schema.",
    StorageErrorKind.TRANSACTION_INACTIVE: "Please try the operation again. If the problem persists, restart the application.",
    StorageErrorKind.CONSTRAINT_VIOLATION: "The operation failed due to a constraint violation. Please check your input data.",
    StorageErrorKind.NETWORK_ERROR: "Please check your internet connection and try again.",
    StorageErrorKind.UNKNOWN: "Please try again or restart the application.",
}


class StorageError(RuntimeError):
    """Base class for local store and sync failures."""

    kind: StorageErrorKind = StorageErrorKind.UNKNOWN


class StorageUnsupportedError(StorageError):
    kind = StorageErrorKind.ACCESS_DENIED


class VersionMismatchError(StorageError):
    kind = StorageErrorKind.VERSION_MISMATCH


class NotFoundError(StorageError):
    kind = StorageErrorKind.CONSTRAINT_VIOLATION

    def __init__(self, store: str, record_id: int) -> None:
        super().__init__(f"{store} record with ID {record_id} not found")
        self.store = store
        self.record_id = record_id


class DuplicateSymbolError(StorageError):
    kind = StorageErrorKind.CONSTRAINT_VIOLATION

    def __init__(self, symbol: str) -> None:
        super().__init__(f"Instrument with symbol {symbol} already exists")
        self.symbol = symbol


class InvalidRecordError(StorageError):
    kind = StorageErrorKind.CONSTRAINT_VIOLATION


class RemoteAPIError(StorageError):
    kind = StorageErrorKind.NETWORK_ERROR

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SyncPushError(StorageError):
    """A push of a local mutation to the remote API failed."""

    def __init__(self, message: str, *, trade_id: int, kind: StorageErrorKind = StorageErrorKind.UNKNOWN) -> None:
        super().__init__(message)
        self.trade_id = trade_id
        self.kind = kind


@dataclass(frozen=True)
class StorageErrorDetails:
    kind: StorageErrorKind
    message: str
    operation: str
    recoverable: bool
    recommendation: str
    original: Optional[BaseException] = None

    def as_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "operation": self.operation,
            "recoverable": self.recoverable,
            "recommendation": self.recommendation,
        }


def _kind_from_exception(exc: BaseException) -> Optional[StorageErrorKind]:
    if isinstance(exc, StorageError):
        return exc.kind
    if isinstance(exc, sqlite3.IntegrityError):
        return StorageErrorKind.CONSTRAINT_VIOLATION
    if isinstance(exc, sqlite3.ProgrammingError) and "closed" in str(exc).lower():
        return StorageErrorKind.TRANSACTION_INACTIVE
    if isinstance(exc, PermissionError):
        return StorageErrorKind.ACCESS_DENIED
    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        return StorageErrorKind.NETWORK_ERROR
    return None


def _kind_from_message(message: str) -> StorageErrorKind:
    text = message.lower()
    if "full" in text or "quota" in text:
        return StorageErrorKind.QUOTA_EXCEEDED
    if any(k in text for k in ("readonly", "read-only", "access", "permission", "unable to open")):
        return StorageErrorKind.ACCESS_DENIED
    if "version" in text:
        return StorageErrorKind.VERSION_MISMATCH
    if "transaction" in text or "closed" in text:
        return StorageErrorKind.TRANSACTION_INACTIVE
    if "constraint" in text or "unique" in text:
        return StorageErrorKind.CONSTRAINT_VIOLATION
    if "network" in text or "offline" in text:
        return StorageErrorKind.NETWORK_ERROR
    return StorageErrorKind.UNKNOWN


def classify_error(exc: BaseException, operation: str) -> StorageErrorDetails:
    message = str(exc) or type(exc).__name__
    kind = _kind_from_exception(exc) or _kind_from_message(message)
    return StorageErrorDetails(
        kind=kind,
        message=message,
        operation=operation,
        recoverable=kind is not StorageErrorKind.ACCESS_DENIED,
        recommendation=RECOMMENDATIONS[kind],
        original=exc,
    )


def user_friendly_message(details: StorageErrorDetails) -> str:
    base = f"Storage error while {details.operation}."
    kind = details.kind
    if kind is StorageErrorKind.QUOTA_EXCEEDED:
        return f"{base} You've reached the storage limit. {details.recommendation}"
    if kind is StorageErrorKind.ACCESS_DENIED:
        return f"{base} TradeSnap doesn't have permission to access its storage. {details.recommendation}"
    if kind is StorageErrorKind.VERSION_MISMATCH:
        return f"{base} There's a database version mismatch. {details.recommendation}"
    if kind is StorageErrorKind.TRANSACTION_INACTIVE:
        return f"{base} The storage operation couldn't be completed. {details.recommendation}"
    if kind is StorageErrorKind.CONSTRAINT_VIOLATION:
        return f"{base} {details.recommendation}"
    if kind is StorageErrorKind.NETWORK_ERROR:
        return f"{base} A network issue prevented the operation. {details.recommendation}"
    return f"{base} {details.message}. {details.recommendation}"


async def safe_operation(
    operation: str,
    action: Callable[[], Union[T, Awaitable[T]]],
    *,
    default: Any = None,
    on_error: Optional[Callable[[StorageErrorDetails], None]] = None,
) -> BestEffortResult[Any]:
    """Run ``action`` and never raise: failures come back classified on the result."""
    try:
        result = action()
        if inspect.isawaitable(result):
            result = await result
        return BestEffortResult(value=result)
    except Exception as e:
        details = classify_error(e, operation)
        log.error(
            "storage_operation_failed",
            operation=operation,
            kind=details.kind.value,
            error=details.message,
        )
        if on_error is not None:
            on_error(details)
        return BestEffortResult(value=default, error=details)
