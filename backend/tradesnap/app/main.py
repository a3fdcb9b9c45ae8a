"""Entrypoint.

Usage:
  python -m tradesnap.app.main api       # serve the local store API
  python -m tradesnap.app.main init      # create the database and seed default instruments
  python -m tradesnap.app.main sync      # pull trades and instruments from the remote API once
  python -m tradesnap.app.main storage   # print storage usage and old-trade counts
"""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Optional

import uvicorn

from tradesnap.api.state import AppState, build_state
from tradesnap.infrastructure.logging.logging import configure_logging
from tradesnap.infrastructure.storage.seed import initialize_local_database
from tradesnap.infrastructure.utils.config import TradeSnapConfig, load_config


async def run_sync(state: AppState) -> int:
    try:
        initialize_local_database(state.database, state.instruments)
        reports = await state.sync.full_sync()
        print(json.dumps([r.as_dict() for r in reports], indent=2))
        return 0 if all(r.fetched for r in reports) else 1
    finally:
        await state.aclose()


async def run_storage_report(state: AppState) -> int:
    try:
        await state.storage.refresh_info()
        print(json.dumps(state.storage.snapshot(), indent=2))
        return 0
    finally:
        await state.aclose()


def serve(config: TradeSnapConfig) -> None:
    from tradesnap.controllers.api_controller import create_app

    app = create_app(build_state(config))
    uvicorn.run(app, host=config.api.host, port=config.api.port, reload=False)


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser("tradesnap")
    parser.add_argument("command", choices=["api", "init", "sync", "storage"], help="What to run")
    parser.add_argument("--config", type=Path, default=None, help="Path to a YAML config file")
    parser.add_argument("--console-logs", action="store_true", help="Human-readable logs instead of JSON")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    configure_logging(config.log_level, json_output=not args.console_logs)

    if args.command == "api":
        serve(config)
        return 0

    state = build_state(config)

    if args.command == "init":
        added = initialize_local_database(state.database, state.instruments)
        print(json.dumps({"db": state.database.path.as_posix(), "seeded_instruments": added}))
        asyncio.run(state.aclose())
        return 0

    if args.command == "sync":
        return asyncio.run(run_sync(state))

    return asyncio.run(run_storage_report(state))


if __name__ == "__main__":
    raise SystemExit(main())
