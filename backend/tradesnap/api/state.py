# tradesnap/api/state.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx

from tradesnap.infrastructure.remote.api_client import RemoteAPIClient
from tradesnap.infrastructure.storage.database import LocalDatabase
from tradesnap.infrastructure.storage.instrument_repository import InstrumentRepository
from tradesnap.infrastructure.storage.trade_repository import TradeRepository
from tradesnap.infrastructure.utils.config import TradeSnapConfig
from tradesnap.services.monitoring.storage_monitor import MB, StorageMonitor
from tradesnap.services.monitoring.storage_service import LogNotifier, StorageMonitorService
from tradesnap.services.retention.retention import RetentionActions, RetentionScanner
from tradesnap.services.sync.sync_engine import SyncEngine


@dataclass
class AppState:
    config: TradeSnapConfig
    database: LocalDatabase
    trades: TradeRepository
    instruments: InstrumentRepository
    remote: RemoteAPIClient
    sync: SyncEngine
    notifier: LogNotifier
    storage: StorageMonitorService

    async def aclose(self) -> None:
        await self.storage.stop()
        await self.remote.aclose()
        self.database.close()


def build_state(
    config: TradeSnapConfig,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AppState:
    """Composition root: every component gets its collaborators passed in."""
    database = LocalDatabase(Path(config.database.directory), config.database.name)
    trades = TradeRepository(database)
    instruments = InstrumentRepository(database)
    remote = RemoteAPIClient(
        config.remote.base_url,
        timeout_sec=config.remote.timeout_seconds,
        transport=transport,
    )
    monitor = StorageMonitor(
        database,
        warning_threshold=config.storage.warning_threshold,
        critical_threshold=config.storage.critical_threshold,
        default_quota=config.storage.default_quota_mb * MB,
        max_quota=config.storage.max_quota_mb * MB,
    )
    notifier = LogNotifier()
    storage = StorageMonitorService(
        database,
        monitor,
        RetentionScanner(database),
        RetentionActions(trades),
        notifier,
        months_to_retain=config.storage.months_to_retain,
        auto_refresh_interval_sec=config.storage.auto_refresh_interval_seconds,
    )
    return AppState(
        config=config,
        database=database,
        trades=trades,
        instruments=instruments,
        remote=remote,
        sync=SyncEngine(trades, instruments, remote),
        notifier=notifier,
        storage=storage,
    )


_state: Optional[AppState] = None


def set_state(state: Optional[AppState]) -> None:
    global _state
    _state = state


def get_state() -> AppState:
    if _state is None:
        raise RuntimeError("API state not initialized. Build it with build_state() first.")
    return _state
