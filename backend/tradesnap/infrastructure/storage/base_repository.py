"""Row <-> record mapping shared by the trade and instrument repositories."""

from __future__ import annotations

import json
import sqlite3
from typing import Any, Dict, Generic, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import ValidationError

from tradesnap.infrastructure.logging.logging import get_logger
from tradesnap.infrastructure.storage.database import STORES, LocalDatabase
from tradesnap.infrastructure.storage.errors import InvalidRecordError, NotFoundError, StorageError
from tradesnap.models.trade_models import RecordModel

M = TypeVar("M", bound=RecordModel)

JsonDict = Dict[str, Any]


class SQLiteRecordRepository(Generic[M]):
    store: str
    model: Type[M]

    def __init__(self, database: LocalDatabase) -> None:
        self._db = database
        self._logger = get_logger(f"{self.store}_repository")

    # --------- mapping ---------
    def _validate(self, data: Union[M, Mapping[str, Any]]) -> M:
        if isinstance(data, self.model):
            return data
        try:
            return self.model.model_validate(dict(data))
        except ValidationError as e:
            raise InvalidRecordError(f"Invalid {self.store} record: {e}") from e

    def _normalize_partial(self, partial: Union[M, Mapping[str, Any]]) -> JsonDict:
        """Accept python names or wire aliases; unknown keys are dropped."""
        if isinstance(partial, RecordModel):
            return partial.model_dump(exclude_unset=True)
        fields = self.model.model_fields
        by_alias = {f.alias: name for name, f in fields.items() if f.alias}
        out: JsonDict = {}
        for key, value in partial.items():
            name = key if key in fields else by_alias.get(key)
            if name is not None:
                out[name] = value
        return out

    def _to_row(self, record: M) -> JsonDict:
        row = record.model_dump(mode="json")
        for column in STORES[self.store].json_columns:
            row[column] = json.dumps(row.get(column) or [])
        return row

    def _from_row(self, row: sqlite3.Row) -> M:
        return self.model.model_validate(self._db.decode_row(self.store, row))

    def _conflict(self, exc: sqlite3.IntegrityError, record: Optional[M] = None) -> StorageError:
        """Map a uniqueness violation raised by the store to a typed error."""
        return InvalidRecordError(f"{self.store} record conflicts with an existing record: {exc}")

    # --------- primitives ---------
    def _select(self, where: str = "", params: tuple = (), order_by: str = "id") -> List[M]:
        sql = f"SELECT * FROM {self.store}"
        if where:
            sql += f" WHERE {where}"
        sql += f" ORDER BY {order_by}"
        with self._db.transaction() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._from_row(r) for r in rows]

    def _insert(self, record: M) -> M:
        row = self._to_row(record)
        if row.get("id") is None:
            row.pop("id", None)
        columns = ", ".join(row.keys())
        placeholders = ", ".join("?" for _ in row)
        try:
            with self._db.transaction() as conn:
                cur = conn.execute(
                    f"INSERT INTO {self.store}({columns}) VALUES({placeholders})",
                    tuple(row.values()),
                )
                new_id = int(cur.lastrowid) if record.id is None else record.id
        except sqlite3.IntegrityError as e:
            raise self._conflict(e, record) from e
        return record.model_copy(update={"id": new_id})

    def _put(self, record: M) -> None:
        row = self._to_row(record)
        record_id = row.pop("id")
        assignments = ", ".join(f"{c} = ?" for c in row)
        try:
            with self._db.transaction() as conn:
                conn.execute(
                    f"UPDATE {self.store} SET {assignments} WHERE id = ?",
                    (*row.values(), record_id),
                )
        except sqlite3.IntegrityError as e:
            raise self._conflict(e, record) from e

    # --------- shared operations ---------
    def get_by_id(self, record_id: int) -> Optional[M]:
        with self._db.transaction() as conn:
            row = conn.execute(f"SELECT * FROM {self.store} WHERE id = ?", (record_id,)).fetchone()
        return self._from_row(row) if row else None

    def merge(self, record_id: int, partial: Union[M, Mapping[str, Any]]) -> M:
        existing = self.get_by_id(record_id)
        if existing is None:
            raise NotFoundError(self.store, record_id)
        data = existing.model_dump()
        data.update(self._normalize_partial(partial))
        data["id"] = record_id
        return self._validate(data)

    def delete(self, record_id: int) -> bool:
        """Idempotent: deleting an absent id is not an error."""
        with self._db.transaction() as conn:
            deleted = conn.execute(f"DELETE FROM {self.store} WHERE id = ?", (record_id,)).rowcount
        if deleted:
            self._logger.info("record_deleted", record_id=record_id)
        return True

    def rekey(self, old_id: int, new_id: int) -> M:
        """Move a record to a new id (e.g. the one assigned by the remote API).

        A different record already holding ``new_id`` is a local-only one (the
        server never hands out an id twice); it is moved to a fresh local id in
        the same transaction.
        """
        if old_id == new_id:
            existing = self.get_by_id(old_id)
            if existing is None:
                raise NotFoundError(self.store, old_id)
            return existing

        displaced_to: Optional[int] = None
        try:
            with self._db.transaction() as conn:
                if conn.execute(f"SELECT 1 FROM {self.store} WHERE id = ?", (old_id,)).fetchone() is None:
                    raise NotFoundError(self.store, old_id)
                if conn.execute(f"SELECT 1 FROM {self.store} WHERE id = ?", (new_id,)).fetchone() is not None:
                    displaced_to = int(conn.execute(f"SELECT MAX(id) + 1 FROM {self.store}").fetchone()[0])
                    conn.execute(f"UPDATE {self.store} SET id = ? WHERE id = ?", (displaced_to, new_id))
                conn.execute(f"UPDATE {self.store} SET id = ? WHERE id = ?", (new_id, old_id))
        except sqlite3.IntegrityError as e:
            raise self._conflict(e) from e

        if displaced_to is not None:
            self._logger.warning("record_displaced", from_id=new_id, to_id=displaced_to)
        self._logger.info("record_rekeyed", old_id=old_id, new_id=new_id)
        record = self.get_by_id(new_id)
        if record is None:
            raise NotFoundError(self.store, new_id)
        return record

    def count(self) -> int:
        with self._db.transaction() as conn:
            row = conn.execute(f"SELECT COUNT(*) FROM {self.store}").fetchone()
        return int(row[0]) if row else 0
