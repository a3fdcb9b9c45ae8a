"""Synchronization between the remote API and the local store.

Pull (remote -> local) is best-effort: a failed fetch is logged and the pass
ends; local-only records are never deleted because they may be pending upload.
Push (local -> remote) is strict: any failure raises ``SyncPushError``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from tradesnap.infrastructure.logging.logging import get_logger, log_operation
from tradesnap.infrastructure.remote.api_client import RemoteAPIClient
from tradesnap.infrastructure.storage.errors import (
    RemoteAPIError,
    StorageErrorKind,
    SyncPushError,
    classify_error,
)
from tradesnap.infrastructure.storage.instrument_repository import InstrumentRepository
from tradesnap.infrastructure.storage.trade_repository import TradeRepository
from tradesnap.infrastructure.utils.timeutils import EPOCH
from tradesnap.models.storage_models import SyncReport
from tradesnap.models.trade_models import Instrument, Trade

JsonDict = Dict[str, Any]

# Server-computed or server-owned; not sent on push
_PUSH_EXCLUDE = {"id", "created_at", "pnl_points", "pnl_dollars"}


def _freshness(trade: Trade) -> Any:
    return trade.created_at or EPOCH


class SyncEngine:
    def __init__(
        self,
        trades: TradeRepository,
        instruments: InstrumentRepository,
        client: RemoteAPIClient,
    ) -> None:
        self._trades = trades
        self._instruments = instruments
        self._client = client
        self._logger = get_logger("sync")

    # --------- pull ---------
    async def sync_trades(self) -> SyncReport:
        report = SyncReport(entity="trades")
        try:
            remote_rows = await self._client.list_trades()
        except RemoteAPIError as e:
            self._logger.error("trade_fetch_failed", error=str(e), status=e.status_code)
            report.fetched = False
            return report

        local = {t.id: t for t in self._trades.get_all()}
        for row in remote_rows:
            try:
                remote = Trade.model_validate(row)
                if remote.id is None:
                    raise ValueError("remote trade has no id")
                existing = local.pop(remote.id, None)
                if existing is None:
                    self._trades.add(remote)
                    report.inserted += 1
                    self._logger.info("trade_pulled", trade_id=remote.id)
                elif _freshness(remote) > _freshness(existing):
                    self._trades.update(remote.id, remote)
                    report.updated += 1
                    self._logger.info("trade_refreshed", trade_id=remote.id)
                else:
                    report.unchanged += 1
            except Exception as e:
                report.failed += 1
                self._logger.warning("trade_sync_record_failed", trade_id=row.get("id"), error=str(e))

        report.local_only = len(local)
        self._logger.info("trade_sync_complete", **report.as_dict())
        return report

    async def sync_instruments(self) -> SyncReport:
        report = SyncReport(entity="instruments")
        try:
            remote_rows = await self._client.list_instruments()
        except RemoteAPIError as e:
            self._logger.error("instrument_fetch_failed", error=str(e), status=e.status_code)
            report.fetched = False
            return report

        local = {i.id: i for i in self._instruments.get_all()}
        for row in remote_rows:
            try:
                remote = Instrument.model_validate(row)
                if remote.id is None:
                    raise ValueError("remote instrument has no id")
                if local.pop(remote.id, None) is not None:
                    self._instruments.update(remote.id, remote)
                    report.updated += 1
                    continue

                same_symbol = self._instruments.get_by_symbol(remote.symbol)
                if same_symbol is None:
                    self._instruments.add(remote)
                    report.inserted += 1
                    self._logger.info("instrument_pulled", instrument_id=remote.id, symbol=remote.symbol)
                else:
                    # Locally seeded copy of a server instrument: adopt the server id
                    local.pop(same_symbol.id, None)
                    self._instruments.rekey(same_symbol.id, remote.id)
                    self._instruments.update(remote.id, remote)
                    report.updated += 1
                    self._logger.info("instrument_adopted", old_id=same_symbol.id, instrument_id=remote.id)
            except Exception as e:
                report.failed += 1
                self._logger.warning("instrument_sync_record_failed", instrument_id=row.get("id"), error=str(e))

        report.local_only = len(local)
        self._logger.info("instrument_sync_complete", **report.as_dict())
        return report

    async def full_sync(self) -> List[SyncReport]:
        with log_operation("full_sync"):
            reports = [await self.sync_instruments(), await self.sync_trades()]
            self._logger.info("full_sync_complete", fetched=all(r.fetched for r in reports))
        return reports

    # --------- push ---------
    def _require_local(self, trade_id: int) -> Trade:
        trade = self._trades.get_by_id(trade_id)
        if trade is None:
            raise SyncPushError(
                f"Trade with ID {trade_id} not found in the local store",
                trade_id=trade_id,
                kind=StorageErrorKind.CONSTRAINT_VIOLATION,
            )
        return trade

    def _push_failed(self, trade_id: int, action: str, exc: Exception) -> SyncPushError:
        details = classify_error(exc, f"pushing {action} trade {trade_id}")
        self._logger.error("trade_push_failed", trade_id=trade_id, action=action, kind=details.kind.value, error=details.message)
        return SyncPushError(f"Failed to push {action} trade {trade_id}: {details.message}", trade_id=trade_id, kind=details.kind)

    def _adopt_server_copy(self, local_id: int, server: Optional[JsonDict]) -> Trade:
        """Merge the server's copy into the local record, taking the server id if it differs."""
        if not server:
            return self._require_local(local_id)
        server_trade = Trade.model_validate(server)
        target_id = local_id
        if server_trade.id is not None and server_trade.id != local_id:
            self._trades.rekey(local_id, server_trade.id)
            target_id = server_trade.id
        return self._trades.update(target_id, server_trade.model_dump(exclude={"id"}, exclude_unset=True))

    async def push_new_trade(self, trade_id: int) -> Trade:
        trade = self._require_local(trade_id)
        try:
            server = await self._client.create_trade(trade.to_wire(exclude=_PUSH_EXCLUDE))
            stored = self._adopt_server_copy(trade_id, server)
        except Exception as e:
            raise self._push_failed(trade_id, "new", e) from e
        self._logger.info("trade_pushed", action="new", local_id=trade_id, trade_id=stored.id)
        return stored

    async def push_updated_trade(self, trade_id: int) -> Trade:
        trade = self._require_local(trade_id)
        try:
            server = await self._client.update_trade(trade_id, trade.to_wire(exclude=_PUSH_EXCLUDE))
            stored = self._adopt_server_copy(trade_id, server)
        except Exception as e:
            raise self._push_failed(trade_id, "updated", e) from e
        self._logger.info("trade_pushed", action="updated", trade_id=stored.id)
        return stored

    async def push_deleted_trade(self, trade_id: int) -> None:
        self._require_local(trade_id)
        try:
            await self._client.delete_trade(trade_id)
            self._trades.delete(trade_id)
        except Exception as e:
            raise self._push_failed(trade_id, "deleted", e) from e
        self._logger.info("trade_pushed", action="deleted", trade_id=trade_id)
