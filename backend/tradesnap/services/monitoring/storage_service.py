"""Storage monitor service: the state and actions the UI layer binds to.

Holds the latest StorageInfo and the ids of trades outside the retention
window, re-runs the checks on demand or on an interval, and turns failures
into user-visible notifications instead of exceptions.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol

from tradesnap.infrastructure.logging.logging import get_logger, log_operation
from tradesnap.infrastructure.storage.database import LocalDatabase
from tradesnap.infrastructure.storage.errors import StorageErrorDetails, safe_operation
from tradesnap.infrastructure.utils.timeutils import utc_now
from tradesnap.models.storage_models import RetentionOutcome, StorageInfo
from tradesnap.services.monitoring.storage_monitor import StorageMonitor
from tradesnap.services.retention.retention import RetentionActions, RetentionScanner


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    variant: str = "default"  # "default" | "destructive"
    ts: str = field(default_factory=lambda: utc_now().isoformat())


class Notifier(Protocol):
    def notify(self, title: str, description: str, variant: str = "default") -> None: ...


class LogNotifier:
    """Logs each notification and keeps the most recent ones for the HTTP surface."""

    def __init__(self, maxlen: int = 50) -> None:
        self._items: Deque[Notification] = deque(maxlen=maxlen)
        self._logger = get_logger("notifications")

    def notify(self, title: str, description: str, variant: str = "default") -> None:
        self._items.append(Notification(title=title, description=description, variant=variant))
        level = self._logger.warning if variant == "destructive" else self._logger.info
        level("notification", title=title, description=description, variant=variant)

    def recent(self) -> List[Dict[str, Any]]:
        return [asdict(n) for n in reversed(self._items)]


class StorageMonitorService:
    def __init__(
        self,
        database: LocalDatabase,
        monitor: StorageMonitor,
        scanner: RetentionScanner,
        actions: RetentionActions,
        notifier: Notifier,
        *,
        months_to_retain: int = 1,
        auto_refresh_interval_sec: float = 0.0,
    ) -> None:
        self._db = database
        self._monitor = monitor
        self._scanner = scanner
        self._actions = actions
        self._notifier = notifier
        self.months_to_retain = months_to_retain
        self.auto_refresh_interval_sec = auto_refresh_interval_sec
        self._logger = get_logger("storage_service")

        self.storage_info: Optional[StorageInfo] = None
        self.is_loading = True
        self.old_trade_ids: List[int] = []
        self.is_clearing_screenshots = False
        self.is_deleting_trades = False
        self.last_outcome: Optional[RetentionOutcome] = None

        self._refresh_task: Optional[asyncio.Task[None]] = None

    @property
    def old_trade_count(self) -> int:
        return len(self.old_trade_ids)

    async def refresh_info(self) -> None:
        if not self._db.is_supported():
            self._notifier.notify(
                "Local Storage Not Supported",
                "The local data directory is not available, which is required for local storage features.",
                "destructive",
            )
            self.is_loading = False
            return

        self.is_loading = True
        try:
            with log_operation("storage_refresh", months_to_retain=self.months_to_retain):
                self.storage_info = self._monitor.check_usage().value
                self.old_trade_ids = self._scanner.find_old(self.months_to_retain)

            if self.storage_info.is_approaching_limit and self.old_trade_ids:
                self._notifier.notify(
                    "Storage Space Running Low",
                    f"You're using {self.storage_info.formatted_used} of {self.storage_info.formatted_quota}. "
                    "Consider clearing old screenshots or trades to free up space.",
                    "destructive",
                )
        except Exception as e:
            self._logger.error("storage_refresh_failed", error=str(e))
            self._notifier.notify(
                "Storage Check Failed",
                "Unable to check storage usage. Some storage management features may be unavailable.",
                "destructive",
            )
        finally:
            self.is_loading = False

    def _error_notifier(self, title: str, fallback: str) -> Callable[[StorageErrorDetails], None]:
        def _notify(details: StorageErrorDetails) -> None:
            self._notifier.notify(title, details.recommendation or fallback, "destructive")

        return _notify

    async def _run_retention_action(
        self,
        *,
        operation: str,
        action: Callable[[List[int]], RetentionOutcome],
        error_title: str,
        success_title: str,
        success_verb: str,
    ) -> bool:
        ids = list(self.old_trade_ids)
        if not ids:
            return True

        with log_operation(operation.replace(" ", "_"), trade_count=len(ids)):
            result = await safe_operation(
                operation,
                lambda: action(ids),
                on_error=self._error_notifier(error_title, f"Failed while {operation}. Please try again."),
            )
        outcome: Optional[RetentionOutcome] = result.value
        if outcome is None:
            return False

        self.last_outcome = outcome
        if not outcome.ok:
            self._notifier.notify(
                error_title,
                f"{len(outcome.failed_ids)} of {outcome.requested} trades could not be processed. Please try again.",
                "destructive",
            )
            # earlier ids were already processed
            await self.refresh_info()
            return False

        self._notifier.notify(success_title, f"Successfully {success_verb} {outcome.succeeded} old trades.")
        await self.refresh_info()
        return True

    async def clear_old_screenshots(self) -> bool:
        self.is_clearing_screenshots = True
        try:
            return await self._run_retention_action(
                operation="clearing old screenshots",
                action=self._actions.clear_screenshots,
                error_title="Error Clearing Screenshots",
                success_title="Screenshots Cleared",
                success_verb="cleared screenshots from",
            )
        finally:
            self.is_clearing_screenshots = False

    async def delete_old_trade_records(self) -> bool:
        self.is_deleting_trades = True
        try:
            return await self._run_retention_action(
                operation="deleting old trades",
                action=self._actions.delete_records,
                error_title="Error Deleting Trades",
                success_title="Trades Deleted",
                success_verb="deleted",
            )
        finally:
            self.is_deleting_trades = False

    # --------- auto refresh ---------
    async def start(self) -> None:
        await self.refresh_info()
        if self.auto_refresh_interval_sec > 0 and self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._auto_refresh())

    async def stop(self) -> None:
        if self._refresh_task is None:
            return
        self._refresh_task.cancel()
        try:
            await self._refresh_task
        except asyncio.CancelledError:
            pass
        self._refresh_task = None

    async def _auto_refresh(self) -> None:
        while True:
            await asyncio.sleep(self.auto_refresh_interval_sec)
            await self.refresh_info()

    def snapshot(self) -> Dict[str, Any]:
        return {
            "storageInfo": self.storage_info.as_dict() if self.storage_info else None,
            "isLoading": self.is_loading,
            "oldTradeCount": self.old_trade_count,
            "oldTradeIds": list(self.old_trade_ids),
            "isClearingScreenshots": self.is_clearing_screenshots,
            "isDeletingTrades": self.is_deleting_trades,
            "monthsToRetain": self.months_to_retain,
            "lastOutcome": self.last_outcome.as_dict() if self.last_outcome else None,
        }
