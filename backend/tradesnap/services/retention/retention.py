"""Retention window: find trades older than N months and shrink or drop them."""

from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional

from tradesnap.infrastructure.logging.logging import get_logger
from tradesnap.infrastructure.storage.database import LocalDatabase
from tradesnap.infrastructure.storage.errors import NotFoundError
from tradesnap.infrastructure.storage.trade_repository import TradeRepository
from tradesnap.infrastructure.utils.timeutils import subtract_months, utc_now
from tradesnap.models.storage_models import RetentionOutcome


def retention_cutoff(months_to_retain: int, today: Optional[date] = None) -> date:
    return subtract_months(today or utc_now().date(), months_to_retain)


class RetentionScanner:
    """Read-only: never mutates the store."""

    def __init__(self, database: LocalDatabase) -> None:
        self._db = database
        self._logger = get_logger("retention_scanner", db=database.name)

    def find_old(self, months_to_retain: int = 1, today: Optional[date] = None) -> List[int]:
        cutoff = retention_cutoff(months_to_retain, today)
        with self._db.transaction() as conn:
            rows = conn.execute(
                "SELECT id FROM trades WHERE date < ? ORDER BY date, id",
                (cutoff.isoformat(),),
            ).fetchall()
        ids = [int(r["id"]) for r in rows]
        self._logger.info("old_trades_found", cutoff=cutoff.isoformat(), count=len(ids))
        return ids


class RetentionActions:
    """Best-effort bulk actions: one write per id, no rollback of earlier writes."""

    def __init__(self, trades: TradeRepository) -> None:
        self._trades = trades
        self._logger = get_logger("retention_actions")

    def clear_screenshots(self, trade_ids: Iterable[int]) -> RetentionOutcome:
        ids = list(trade_ids)
        outcome = RetentionOutcome(requested=len(ids))
        for trade_id in ids:
            try:
                self._trades.update(trade_id, {"screenshots": []})
                outcome.succeeded += 1
            except NotFoundError:
                outcome.missing_ids.append(trade_id)
            except Exception as e:
                self._logger.warning("clear_screenshots_failed", trade_id=trade_id, error=str(e))
                outcome.failed_ids.append(trade_id)
        self._logger.info("screenshots_cleared", **outcome.as_dict())
        return outcome

    def delete_records(self, trade_ids: Iterable[int]) -> RetentionOutcome:
        ids = list(trade_ids)
        outcome = RetentionOutcome(requested=len(ids))
        for trade_id in ids:
            try:
                self._trades.delete(trade_id)
                outcome.succeeded += 1
            except Exception as e:
                self._logger.warning("delete_trade_failed", trade_id=trade_id, error=str(e))
                outcome.failed_ids.append(trade_id)
        self._logger.info("old_trades_deleted", **outcome.as_dict())
        return outcome
