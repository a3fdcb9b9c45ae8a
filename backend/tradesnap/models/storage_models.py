"""Derived storage state and operation outcomes (never persisted)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Generic, List, Optional, TypeVar

if TYPE_CHECKING:
    from tradesnap.infrastructure.storage.errors import StorageErrorDetails

T = TypeVar("T")


@dataclass(frozen=True)
class StorageInfo:
    used: int
    quota: int
    percent_used: float
    is_approaching_limit: bool
    is_near_limit: bool
    formatted_used: str
    formatted_quota: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "used": self.used,
            "quota": self.quota,
            "percentUsed": self.percent_used,
            "isApproachingLimit": self.is_approaching_limit,
            "isNearLimit": self.is_near_limit,
            "formattedUsed": self.formatted_used,
            "formattedQuota": self.formatted_quota,
        }


@dataclass(frozen=True)
class BestEffortResult(Generic[T]):
    """Always carries a value; on failure the value is a degraded default."""

    value: T
    error: Optional["StorageErrorDetails"] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def degraded(self) -> bool:
        return self.error is not None


@dataclass
class RetentionOutcome:
    requested: int = 0
    succeeded: int = 0
    failed_ids: List[int] = field(default_factory=list)
    missing_ids: List[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_ids

    def as_dict(self) -> Dict[str, Any]:
        return {
            "requested": self.requested,
            "succeeded": self.succeeded,
            "failedIds": list(self.failed_ids),
            "missingIds": list(self.missing_ids),
            "ok": self.ok,
        }


@dataclass
class SyncReport:
    entity: str
    fetched: bool = True
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    local_only: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "entity": self.entity,
            "fetched": self.fetched,
            "inserted": self.inserted,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "failed": self.failed,
            "localOnly": self.local_only,
        }
