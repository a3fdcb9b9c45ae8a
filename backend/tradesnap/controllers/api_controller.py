from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from tradesnap.api.state import AppState, get_state, set_state
from tradesnap.infrastructure.logging.logging import get_logger
from tradesnap.infrastructure.storage.errors import (
    DuplicateSymbolError,
    InvalidRecordError,
    NotFoundError,
    StorageError,
    SyncPushError,
    classify_error,
    user_friendly_message,
)
from tradesnap.infrastructure.storage.seed import initialize_local_database

JsonDict = Dict[str, Any]

log = get_logger("api")


def _http_error(exc: StorageError, operation: str) -> HTTPException:
    if isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, DuplicateSymbolError):
        status = 409
    elif isinstance(exc, InvalidRecordError):
        status = 422
    elif isinstance(exc, SyncPushError):
        status = 502
    else:
        status = 500
    details = classify_error(exc, operation)
    return HTTPException(
        status_code=status,
        detail={**details.as_dict(), "userMessage": user_friendly_message(details)},
    )


def create_app(state: AppState) -> FastAPI:
    set_state(state)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        s = get_state()
        initialize_local_database(s.database, s.instruments)
        await s.storage.start()
        log.info("api_started", db=s.database.path.as_posix(), remote=s.config.remote.base_url)
        try:
            yield
        finally:
            await s.aclose()
            log.info("api_stopped")

    app = FastAPI(title="TradeSnap Local Store API", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=state.config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --------- Health / storage ---------
    @app.get("/health")
    def health() -> JsonDict:
        s = get_state()
        return {"ok": True, "db": s.database.name, "open": s.database.is_open}

    @app.get("/storage")
    def storage() -> JsonDict:
        return {"ok": True, **get_state().storage.snapshot()}

    @app.post("/storage/refresh")
    async def refresh_storage() -> JsonDict:
        s = get_state()
        await s.storage.refresh_info()
        return {"ok": True, **s.storage.snapshot()}

    @app.post("/storage/clear-screenshots")
    async def clear_screenshots() -> JsonDict:
        s = get_state()
        success = await s.storage.clear_old_screenshots()
        return {"ok": success, **s.storage.snapshot()}

    @app.post("/storage/delete-old")
    async def delete_old() -> JsonDict:
        s = get_state()
        success = await s.storage.delete_old_trade_records()
        return {"ok": success, **s.storage.snapshot()}

    @app.get("/notifications")
    def notifications() -> JsonDict:
        return {"ok": True, "notifications": get_state().notifier.recent()}

    # --------- Local records ---------
    @app.get("/trades")
    def trades(user_id: Optional[int] = None, symbol: Optional[str] = None) -> JsonDict:
        s = get_state()
        if symbol:
            rows = s.trades.get_by_symbol(symbol, user_id)
        else:
            rows = s.trades.get_all(user_id)
        return {"ok": True, "trades": [t.to_wire() for t in rows]}

    @app.post("/trades", status_code=201)
    def add_trade(payload: JsonDict) -> JsonDict:
        s = get_state()
        payload.setdefault("userId", s.config.user.demo_user_id)
        try:
            trade = s.trades.add(payload)
        except StorageError as e:
            raise _http_error(e, "saving the trade")
        return {"ok": True, "trade": trade.to_wire()}

    @app.patch("/trades/{trade_id}")
    def update_trade(trade_id: int, payload: JsonDict) -> JsonDict:
        try:
            trade = get_state().trades.update(trade_id, payload)
        except StorageError as e:
            raise _http_error(e, "updating the trade")
        return {"ok": True, "trade": trade.to_wire()}

    @app.delete("/trades/{trade_id}")
    def delete_trade(trade_id: int) -> JsonDict:
        return {"ok": get_state().trades.delete(trade_id)}

    @app.get("/instruments")
    def instruments() -> JsonDict:
        return {"ok": True, "instruments": [i.to_wire() for i in get_state().instruments.get_all()]}

    # --------- Sync ---------
    @app.post("/sync")
    async def sync() -> JsonDict:
        reports = await get_state().sync.full_sync()
        return {"ok": all(r.fetched for r in reports), "reports": [r.as_dict() for r in reports]}

    @app.post("/trades/{trade_id}/push")
    async def push_new(trade_id: int) -> JsonDict:
        try:
            trade = await get_state().sync.push_new_trade(trade_id)
        except SyncPushError as e:
            raise _http_error(e, "uploading the trade")
        return {"ok": True, "trade": trade.to_wire()}

    @app.put("/trades/{trade_id}/push")
    async def push_updated(trade_id: int) -> JsonDict:
        try:
            trade = await get_state().sync.push_updated_trade(trade_id)
        except SyncPushError as e:
            raise _http_error(e, "uploading the trade changes")
        return {"ok": True, "trade": trade.to_wire()}

    @app.delete("/trades/{trade_id}/push")
    async def push_deleted(trade_id: int) -> JsonDict:
        try:
            await get_state().sync.push_deleted_trade(trade_id)
        except SyncPushError as e:
            raise _http_error(e, "deleting the trade on the server")
        return {"ok": True}

    return app
