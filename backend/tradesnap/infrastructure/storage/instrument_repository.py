"""Instrument repository: futures contract reference data in the local store."""

from __future__ import annotations

import sqlite3
from typing import Any, Iterable, List, Mapping, Optional, Union

from tradesnap.infrastructure.storage.base_repository import SQLiteRecordRepository
from tradesnap.infrastructure.storage.database import INSTRUMENTS
from tradesnap.infrastructure.storage.errors import DuplicateSymbolError, StorageError
from tradesnap.models.trade_models import Instrument


class InstrumentRepository(SQLiteRecordRepository[Instrument]):
    store = INSTRUMENTS
    model = Instrument

    def _conflict(self, exc: sqlite3.IntegrityError, record: Optional[Instrument] = None) -> StorageError:
        if record is not None and "symbol" in str(exc):
            return DuplicateSymbolError(record.symbol)
        return super()._conflict(exc, record)

    def get_all(self) -> List[Instrument]:
        return self._select(order_by="symbol ASC")

    def get_by_symbol(self, symbol: str) -> Optional[Instrument]:
        with self._db.transaction() as conn:
            row = conn.execute(f"SELECT * FROM {self.store} WHERE symbol = ?", (symbol,)).fetchone()
        return self._from_row(row) if row else None

    def add(self, instrument: Union[Instrument, Mapping[str, Any]]) -> Instrument:
        record = self._validate(instrument)
        if self.get_by_symbol(record.symbol) is not None:
            raise DuplicateSymbolError(record.symbol)
        stored = self._insert(record)
        self._logger.info("instrument_added", instrument_id=stored.id, symbol=stored.symbol)
        return stored

    def update(self, instrument_id: int, partial: Union[Instrument, Mapping[str, Any]]) -> Instrument:
        merged = self.merge(instrument_id, partial)
        clash = self.get_by_symbol(merged.symbol)
        if clash is not None and clash.id != instrument_id:
            raise DuplicateSymbolError(merged.symbol)
        self._put(merged)
        self._logger.info("instrument_updated", instrument_id=instrument_id)
        return merged

    def delete_all(self) -> int:
        with self._db.transaction() as conn:
            deleted = conn.execute(f"DELETE FROM {self.store}").rowcount
        self._logger.info("instruments_deleted", deleted=deleted)
        return deleted

    def initialize_defaults(self, defaults: Iterable[Union[Instrument, Mapping[str, Any]]]) -> int:
        """Seed the store only when it is empty. Returns the number of instruments added."""
        if self.count() > 0:
            self._logger.info("instruments_exist_skip_seed")
            return 0
        added = 0
        for instrument in defaults:
            self.add(instrument)
            added += 1
        self._logger.info("default_instruments_initialized", count=added)
        return added
