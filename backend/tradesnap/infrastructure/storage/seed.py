"""First-run initialization: open the local database and seed default instruments."""

from __future__ import annotations

from typing import List

from tradesnap.infrastructure.logging.logging import get_logger
from tradesnap.infrastructure.storage.database import LocalDatabase
from tradesnap.infrastructure.storage.instrument_repository import InstrumentRepository
from tradesnap.models.trade_models import Instrument

log = get_logger("local_db_init")

DEFAULT_INSTRUMENTS: List[Instrument] = [
    # Standard futures contracts
    Instrument(symbol="ES", description="E-mini S&P 500 futures contract", tick_size="0.25", tick_value="12.50", point_value="50.00"),
    Instrument(symbol="NQ", description="E-mini Nasdaq 100 futures contract", tick_size="0.25", tick_value="5.00", point_value="20.00"),
    Instrument(symbol="CL", description="Light Sweet Crude Oil futures contract", tick_size="0.01", tick_value="10.00", point_value="1000.00"),
    Instrument(symbol="GC", description="Gold futures contract", tick_size="0.10", tick_value="10.00", point_value="100.00"),
    Instrument(symbol="YM", description="E-mini Dow Jones futures contract", tick_size="1.00", tick_value="5.00", point_value="5.00"),
    # Micro futures contracts
    Instrument(symbol="MES", description="Micro E-mini S&P 500 futures contract (1/10 of ES)", tick_size="0.25", tick_value="1.25", point_value="5.00"),
    Instrument(symbol="MNQ", description="Micro E-mini Nasdaq 100 futures contract (1/10 of NQ)", tick_size="0.25", tick_value="0.50", point_value="2.00"),
    Instrument(symbol="MCL", description="Micro WTI Crude Oil futures contract (1/10 of CL)", tick_size="0.01", tick_value="1.00", point_value="100.00"),
    Instrument(symbol="MGC", description="Micro Gold futures contract (1/10 of GC)", tick_size="0.10", tick_value="1.00", point_value="10.00"),
    Instrument(symbol="MYM", description="Micro E-mini Dow Jones futures contract (1/10 of YM)", tick_size="1.00", tick_value="0.50", point_value="0.50"),
]


def initialize_local_database(database: LocalDatabase, instruments: InstrumentRepository) -> int:
    database.open()
    added = instruments.initialize_defaults(DEFAULT_INSTRUMENTS)
    log.info("local_db_setup_complete", seeded=added)
    return added
