"""Trade repository: CRUD and indexed lookups over the local ``trades`` store."""

from __future__ import annotations

from datetime import date
from typing import Any, List, Mapping, Optional, Union

from tradesnap.infrastructure.storage.base_repository import SQLiteRecordRepository
from tradesnap.infrastructure.storage.database import TRADES
from tradesnap.infrastructure.utils.timeutils import utc_now
from tradesnap.models.trade_models import Trade

NEWEST_FIRST = "date DESC, id DESC"


class TradeRepository(SQLiteRecordRepository[Trade]):
    store = TRADES
    model = Trade

    def get_all(self, user_id: Optional[int] = None) -> List[Trade]:
        if user_id is None:
            return self._select(order_by=NEWEST_FIRST)
        return self._select("user_id = ?", (user_id,), order_by=NEWEST_FIRST)

    def get_by_symbol(self, symbol: str, user_id: Optional[int] = None) -> List[Trade]:
        if user_id is None:
            return self._select("symbol = ?", (symbol,), order_by=NEWEST_FIRST)
        return self._select("symbol = ? AND user_id = ?", (symbol, user_id), order_by=NEWEST_FIRST)

    def get_by_date_range(self, start: date, end: date, user_id: Optional[int] = None) -> List[Trade]:
        """Trades with start <= date <= end (inclusive), newest first."""
        where = "date >= ? AND date <= ?"
        params: tuple = (start.isoformat(), end.isoformat())
        if user_id is not None:
            where += " AND user_id = ?"
            params += (user_id,)
        return self._select(where, params, order_by=NEWEST_FIRST)

    def add(self, trade: Union[Trade, Mapping[str, Any]]) -> Trade:
        record = self._validate(trade)
        if record.created_at is None:
            record = record.model_copy(update={"created_at": utc_now()})
        stored = self._insert(record)
        self._logger.info("trade_added", trade_id=stored.id, symbol=stored.symbol)
        return stored

    def update(self, trade_id: int, partial: Union[Trade, Mapping[str, Any]]) -> Trade:
        """Shallow-merge ``partial`` onto the stored trade and persist the merged record."""
        merged = self.merge(trade_id, partial)
        self._put(merged)
        self._logger.info("trade_updated", trade_id=trade_id)
        return merged

    def delete_all(self, user_id: Optional[int] = None) -> int:
        with self._db.transaction() as conn:
            if user_id is None:
                deleted = conn.execute(f"DELETE FROM {self.store}").rowcount
            else:
                deleted = conn.execute(f"DELETE FROM {self.store} WHERE user_id = ?", (user_id,)).rowcount
        self._logger.info("trades_deleted", user_id=user_id, deleted=deleted)
        return deleted
