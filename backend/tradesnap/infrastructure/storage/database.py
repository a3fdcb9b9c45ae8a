"""Local database handle (SQLite) for the offline copy of trades and instruments.

One ``LocalDatabase`` object is built by the composition root and handed to
the repositories; it opens its single connection lazily and can be closed and
reopened.
"""

from __future__ import annotations

import json
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from tradesnap.infrastructure.logging.logging import get_logger
from tradesnap.infrastructure.storage.errors import StorageUnsupportedError, VersionMismatchError

DB_NAME = "TradeSnapDB"
SCHEMA_VERSION = 1

TRADES = "trades"
INSTRUMENTS = "instruments"

JsonDict = Dict[str, Any]


@dataclass(frozen=True)
class StoreIndex:
    name: str
    column: str
    unique: bool = False


@dataclass(frozen=True)
class StoreConfig:
    name: str
    columns_sql: str
    indices: Tuple[StoreIndex, ...] = ()
    json_columns: Tuple[str, ...] = ()


STORES: Dict[str, StoreConfig] = {
    TRADES: StoreConfig(
        name=TRADES,
        columns_sql="""
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          user_id INTEGER NOT NULL,
          symbol TEXT NOT NULL,
          trade_type TEXT NOT NULL,
          quantity INTEGER NOT NULL,
          entry_price TEXT NOT NULL,
          exit_price TEXT,
          stop_loss_price TEXT,
          is_ongoing INTEGER NOT NULL DEFAULT 0,
          date TEXT NOT NULL,
          entry_time TEXT,
          pnl_points TEXT,
          pnl_dollars TEXT,
          risk_reward_ratio TEXT,
          notes TEXT,
          screenshots TEXT NOT NULL DEFAULT '[]',
          created_at TEXT
        """,
        indices=(
            StoreIndex("date", "date"),
            StoreIndex("symbol", "symbol"),
            StoreIndex("user_id", "user_id"),
        ),
        json_columns=("screenshots",),
    ),
    INSTRUMENTS: StoreConfig(
        name=INSTRUMENTS,
        columns_sql="""
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          symbol TEXT NOT NULL,
          description TEXT NOT NULL DEFAULT '',
          tick_size TEXT NOT NULL,
          tick_value TEXT NOT NULL,
          point_value TEXT NOT NULL
        """,
        indices=(StoreIndex("symbol", "symbol", unique=True),),
    ),
}


class LocalDatabase:
    def __init__(self, directory: Path, name: str = DB_NAME) -> None:
        self._directory = Path(directory)
        self._name = name
        self._conn: Optional[sqlite3.Connection] = None
        self._upgrading = False
        self._logger = get_logger("local_db", db=name)

    @property
    def name(self) -> str:
        return self._name

    @property
    def path(self) -> Path:
        return self._directory / f"{self._name}.sqlite3"

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def is_upgrading(self) -> bool:
        return self._upgrading

    def is_supported(self) -> bool:
        try:
            self._ensure_supported()
        except StorageUnsupportedError:
            return False
        return True

    def _ensure_supported(self) -> None:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnsupportedError(f"Local storage directory is not available: {e}") from e
        if not os.access(self._directory, os.W_OK):
            raise StorageUnsupportedError(f"Local storage directory is not writable: {self._directory}")

    def open(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn

        self._ensure_supported()
        conn = sqlite3.connect(self.path.as_posix(), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        try:
            self._upgrade(conn)
        except Exception:
            conn.close()
            raise

        self._conn = conn
        self._logger.info("local_db_opened", path=self.path.as_posix(), version=SCHEMA_VERSION)
        return conn

    def _upgrade(self, conn: sqlite3.Connection) -> None:
        current = int(conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise VersionMismatchError(
                f"Database version {current} is newer than supported version {SCHEMA_VERSION}"
            )
        if current == SCHEMA_VERSION:
            return

        self._upgrading = True
        try:
            with conn:
                for store in STORES.values():
                    conn.execute(f"CREATE TABLE IF NOT EXISTS {store.name} ({store.columns_sql})")
                    for index in store.indices:
                        unique = "UNIQUE " if index.unique else ""
                        conn.execute(
                            f"CREATE {unique}INDEX IF NOT EXISTS idx_{store.name}_{index.name} "
                            f"ON {store.name}({index.column})"
                        )
                    self._logger.info("store_created", store=store.name)
                conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        finally:
            self._upgrading = False

    def close(self) -> None:
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None
        self._logger.info("local_db_closed")

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Open (if needed) and run one transaction; commits on success, rolls back on error."""
        conn = self.open()
        with conn:
            yield conn

    def schema_version(self) -> int:
        conn = self.open()
        return int(conn.execute("PRAGMA user_version").fetchone()[0])

    def store_names(self) -> List[str]:
        conn = self.open()
        rows = conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        ).fetchall()
        return [r["name"] for r in rows]

    def _check_store(self, store: str) -> StoreConfig:
        config = STORES.get(store)
        if config is None or store not in self.store_names():
            raise ValueError(f"Unknown store: {store}")
        return config

    def decode_row(self, store: str, row: sqlite3.Row) -> JsonDict:
        record = dict(row)
        for column in STORES[store].json_columns:
            raw = record.get(column)
            record[column] = json.loads(raw) if raw else []
        return record

    def iter_records(self, store: str) -> Iterator[JsonDict]:
        self._check_store(store)
        conn = self.open()
        for row in conn.execute(f"SELECT * FROM {store} ORDER BY id"):
            yield self.decode_row(store, row)

    def clear_store(self, store: str) -> int:
        self._check_store(store)
        with self.transaction() as conn:
            deleted = conn.execute(f"DELETE FROM {store}").rowcount
        self._logger.info("store_cleared", store=store, deleted=deleted)
        return deleted

    def file_paths(self) -> List[Path]:
        candidates = [self.path] + [self.path.with_name(self.path.name + s) for s in ("-wal", "-shm", "-journal")]
        return [p for p in candidates if p.exists()]
