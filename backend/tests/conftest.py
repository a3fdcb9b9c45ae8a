"""Shared fixtures for the local store tests."""

from typing import Any, Callable, Dict

import httpx
import pytest

from tradesnap.infrastructure.remote.api_client import RemoteAPIClient
from tradesnap.infrastructure.storage.database import LocalDatabase
from tradesnap.infrastructure.storage.instrument_repository import InstrumentRepository
from tradesnap.infrastructure.storage.trade_repository import TradeRepository

REMOTE_BASE_URL = "http://remote.test"


def make_trade(**overrides: Any) -> Dict[str, Any]:
    """A completed long ES trade in wire (camelCase) form."""
    data: Dict[str, Any] = {
        "userId": 1,
        "symbol": "ES",
        "tradeType": "long",
        "quantity": 2,
        "entryPrice": "4500.25",
        "exitPrice": "4510.25",
        "isOngoing": False,
        "date": "2026-10-01",
        "screenshots": [],
    }
    data.update(overrides)
    return data


def make_instrument(**overrides: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "symbol": "ES",
        "description": "E-mini S&P 500 futures contract",
        "tickSize": "0.25",
        "tickValue": "12.50",
        "pointValue": "50.00",
    }
    data.update(overrides)
    return data


@pytest.fixture
def database(tmp_path):
    db = LocalDatabase(tmp_path / "data")
    yield db
    db.close()


@pytest.fixture
def trades(database):
    return TradeRepository(database)


@pytest.fixture
def instruments(database):
    return InstrumentRepository(database)


@pytest.fixture
def remote_factory():
    """Build a RemoteAPIClient whose requests are answered by ``handler``."""

    def _factory(handler: Callable[[httpx.Request], httpx.Response]) -> RemoteAPIClient:
        return RemoteAPIClient(REMOTE_BASE_URL, transport=httpx.MockTransport(handler))

    return _factory
