"""Storage monitor for the local database.

Usage is measured two ways: the platform's view (database file sizes against
free disk space) and a manual walk over every stored record. The manual figure
wins when available because embedded screenshot data is sized from its
decoded length rather than its text form.
"""

from __future__ import annotations

import json
import math
import shutil
from typing import Any, Dict, Optional, Tuple

from tradesnap.infrastructure.logging.logging import get_logger
from tradesnap.infrastructure.storage.database import SCHEMA_VERSION, TRADES, LocalDatabase
from tradesnap.infrastructure.storage.errors import VersionMismatchError, classify_error
from tradesnap.models.storage_models import BestEffortResult, StorageInfo

JsonDict = Dict[str, Any]

MB = 1024 * 1024
DEFAULT_WARNING_THRESHOLD = 0.70
DEFAULT_CRITICAL_THRESHOLD = 0.90
DEFAULT_QUOTA = 50 * MB
# Platforms report far more space than is reliably usable
MAX_REASONABLE_QUOTA = 500 * MB

BASE64_DECODED_RATIO = 0.75
UNSERIALIZABLE_RECORD_BYTES = 5000

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def format_bytes(num_bytes: float) -> str:
    if num_bytes <= 0:
        return "0 Bytes"
    i = max(0, min(int(math.floor(math.log(num_bytes, 1024))), len(_SIZE_UNITS) - 1))
    value = num_bytes / (1024 ** i)
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[i]}"


def build_storage_info(
    used: float,
    quota: float,
    *,
    warning_threshold: float = DEFAULT_WARNING_THRESHOLD,
    critical_threshold: float = DEFAULT_CRITICAL_THRESHOLD,
) -> StorageInfo:
    percent_used = used / quota if quota > 0 else 0.0
    return StorageInfo(
        used=int(round(used)),
        quota=int(quota),
        percent_used=percent_used,
        is_approaching_limit=percent_used >= warning_threshold,
        is_near_limit=percent_used >= critical_threshold,
        formatted_used=format_bytes(used),
        formatted_quota=format_bytes(quota),
    )


def utf16_size(text: str) -> int:
    """Bytes taken by ``text`` as UTF-16 (2 bytes per code unit)."""
    return len(text.encode("utf-16-le"))


def _json(record: JsonDict) -> str:
    return json.dumps(record, separators=(",", ":"), ensure_ascii=False, default=str)


def estimate_screenshot_bytes(screenshot: str) -> float:
    # base64 text is ~4/3 of the binary it encodes
    return len(screenshot) * BASE64_DECODED_RATIO


def estimate_record_bytes(store: str, record: JsonDict) -> float:
    try:
        if store == TRADES and record.get("screenshots"):
            base = utf16_size(_json({**record, "screenshots": None}))
            shots = sum(estimate_screenshot_bytes(s) for s in record["screenshots"])
            return base + shots
        return utf16_size(_json(record))
    except (TypeError, ValueError):
        return UNSERIALIZABLE_RECORD_BYTES


class StorageMonitor:
    def __init__(
        self,
        database: LocalDatabase,
        *,
        warning_threshold: float = DEFAULT_WARNING_THRESHOLD,
        critical_threshold: float = DEFAULT_CRITICAL_THRESHOLD,
        default_quota: int = DEFAULT_QUOTA,
        max_quota: int = MAX_REASONABLE_QUOTA,
    ) -> None:
        self._db = database
        self.warning_threshold = warning_threshold
        self.critical_threshold = critical_threshold
        self.default_quota = default_quota
        self.max_quota = max_quota
        self._logger = get_logger("storage_monitor", db=database.name)

    def _info(self, used: float, quota: float) -> StorageInfo:
        return build_storage_info(
            used,
            quota,
            warning_threshold=self.warning_threshold,
            critical_threshold=self.critical_threshold,
        )

    def default_info(self) -> StorageInfo:
        return self._info(0, self.default_quota)

    def platform_estimate(self) -> Tuple[int, int]:
        """(quota, usage) from the filesystem; falls back to (default quota, 0)."""
        try:
            usage = sum(p.stat().st_size for p in self._db.file_paths())
            free = shutil.disk_usage(self._db.path.parent).free
            return usage + free, usage
        except OSError as e:
            self._logger.warning("platform_estimate_failed", error=str(e))
            return self.default_quota, 0

    def estimate_store_bytes(self, store: str) -> float:
        size = 0.0
        items = 0
        for record in self._db.iter_records(store):
            size += estimate_record_bytes(store, record)
            items += 1
        self._logger.debug("store_size_estimated", store=store, items=items, size=format_bytes(size))
        return size

    def manual_estimate(self) -> Optional[float]:
        """Sum of record sizes across every store, or None when it cannot be measured."""
        try:
            if self._db.is_upgrading:
                raise VersionMismatchError("database upgrade in progress")
            version = self._db.schema_version()
            if version != SCHEMA_VERSION:
                raise VersionMismatchError(f"schema version {version} != {SCHEMA_VERSION}")
            breakdown = {store: self.estimate_store_bytes(store) for store in self._db.store_names()}
        except Exception as e:
            self._logger.warning("manual_estimate_failed", error=str(e))
            return None
        total = sum(breakdown.values())
        self._logger.debug("manual_estimate", breakdown=breakdown, total=format_bytes(total))
        return total

    def check_usage(self) -> BestEffortResult[StorageInfo]:
        """Never raises: a failed check returns the low-usage default with the error attached."""
        try:
            reported_quota, platform_usage = self.platform_estimate()
            quota = min(reported_quota or self.default_quota, self.max_quota)

            used = self.manual_estimate()
            if used is None:
                self._logger.info("manual_estimate_unavailable_using_platform_usage")
                used = float(platform_usage)

            info = self._info(used, quota)
            self._logger.info(
                "storage_checked",
                used=info.formatted_used,
                quota=info.formatted_quota,
                percent_used=round(info.percent_used, 4),
            )
            return BestEffortResult(value=info)
        except Exception as e:
            details = classify_error(e, "checking storage usage")
            self._logger.error("storage_check_failed", kind=details.kind.value, error=details.message)
            return BestEffortResult(value=self.default_info(), error=details)
