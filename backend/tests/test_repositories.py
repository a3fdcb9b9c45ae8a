"""Tests for the trade and instrument repositories."""

from datetime import date

import pytest

from tradesnap.infrastructure.storage.errors import (
    DuplicateSymbolError,
    InvalidRecordError,
    NotFoundError,
)
from tradesnap.infrastructure.storage.seed import DEFAULT_INSTRUMENTS, initialize_local_database
from tradesnap.models.trade_models import Trade
from conftest import make_instrument, make_trade


class TestTradeRepository:
    def test_add_assigns_id_and_created_at(self, trades):
        trade = trades.add(make_trade())

        assert trade.id is not None
        assert trade.created_at is not None
        assert trades.get_by_id(trade.id).model_dump() == trade.model_dump()

    def test_add_keeps_supplied_id(self, trades):
        trade = trades.add(make_trade(id=42))
        assert trade.id == 42
        assert trades.get_by_id(42).symbol == "ES"

    def test_ongoing_trade_without_exit_price_is_accepted(self, trades):
        trade = trades.add(make_trade(isOngoing=True, exitPrice=None))
        assert trade.is_ongoing is True
        assert trade.exit_price is None

    @pytest.mark.parametrize("exit_price", [None, "", "   "])
    def test_completed_trade_without_exit_price_is_rejected(self, trades, exit_price):
        with pytest.raises(InvalidRecordError):
            trades.add(make_trade(isOngoing=False, exitPrice=exit_price))
        assert trades.get_all() == []

    def test_numeric_prices_are_stored_as_text(self, trades):
        trade = trades.add(make_trade(entryPrice=4500.5, exitPrice=4501))
        assert trade.entry_price == "4500.5"
        assert trades.get_by_id(trade.id).exit_price == "4501"

    def test_timestamp_date_is_truncated_to_day(self, trades):
        trade = trades.add(make_trade(date="2026-03-04T15:30:00.000Z"))
        assert trade.date == date(2026, 3, 4)

    def test_get_all_newest_first_and_user_filter(self, trades):
        trades.add(make_trade(date="2026-01-01"))
        trades.add(make_trade(date="2026-03-01"))
        trades.add(make_trade(date="2026-02-01", userId=2))

        assert [t.date.month for t in trades.get_all()] == [3, 2, 1]
        assert [t.date.month for t in trades.get_all(user_id=1)] == [3, 1]

    def test_get_by_symbol(self, trades):
        trades.add(make_trade(symbol="ES"))
        trades.add(make_trade(symbol="NQ"))
        trades.add(make_trade(symbol="NQ", userId=2))

        assert len(trades.get_by_symbol("NQ")) == 2
        assert len(trades.get_by_symbol("NQ", user_id=2)) == 1
        assert trades.get_by_symbol("CL") == []

    def test_get_by_date_range_is_inclusive(self, trades):
        for day in ("2026-05-01", "2026-05-15", "2026-05-31", "2026-06-01"):
            trades.add(make_trade(date=day))

        found = trades.get_by_date_range(date(2026, 5, 1), date(2026, 5, 31))

        assert [t.date.day for t in found] == [31, 15, 1]

    def test_update_merges_partial(self, trades):
        trade = trades.add(make_trade(symbol="ES"))

        updated = trades.update(trade.id, {"notes": "x"})

        assert updated.symbol == "ES"
        assert updated.notes == "x"
        assert trades.get_by_id(trade.id).model_dump() == updated.model_dump()

    def test_update_accepts_python_names_and_ignores_id(self, trades):
        trade = trades.add(make_trade())

        updated = trades.update(trade.id, {"exit_price": "4520", "id": 999})

        assert updated.id == trade.id
        assert updated.exit_price == "4520"
        assert trades.get_by_id(999) is None

    def test_update_missing_raises_not_found(self, trades):
        with pytest.raises(NotFoundError):
            trades.update(12345, {"notes": "x"})

    def test_update_revalidates_exit_price_rule(self, trades):
        trade = trades.add(make_trade())
        with pytest.raises(InvalidRecordError):
            trades.update(trade.id, {"exitPrice": None})

    def test_delete_is_idempotent(self, trades):
        assert trades.delete(999) is True
        assert trades.delete(999) is True

        trade = trades.add(make_trade())
        assert trades.delete(trade.id) is True
        assert trades.delete(trade.id) is True
        assert trades.get_by_id(trade.id) is None

    def test_delete_all_by_user(self, trades):
        trades.add(make_trade(userId=1))
        trades.add(make_trade(userId=2))

        assert trades.delete_all(user_id=1) == 1
        assert [t.user_id for t in trades.get_all()] == [2]
        assert trades.delete_all() == 1
        assert trades.count() == 0

    def test_rekey(self, trades):
        trade = trades.add(make_trade(notes="mine"))

        moved = trades.rekey(trade.id, 500)

        assert moved.id == 500
        assert moved.notes == "mine"
        assert trades.get_by_id(trade.id) is None

    def test_rekey_missing_raises(self, trades):
        with pytest.raises(NotFoundError):
            trades.rekey(1, 2)

    def test_rekey_onto_taken_id_moves_the_occupant(self, trades):
        first = trades.add(make_trade(notes="first"))
        second = trades.add(make_trade(notes="second"))

        moved = trades.rekey(second.id, first.id)

        assert moved.id == first.id
        assert moved.notes == "second"
        assert trades.get_by_id(second.id) is None
        assert sorted(t.notes for t in trades.get_all()) == ["first", "second"]
        displaced = [t for t in trades.get_all() if t.notes == "first"][0]
        assert displaced.id not in (first.id, second.id)

    def test_duplicate_supplied_id_is_invalid_record(self, trades):
        trades.add(make_trade(id=5))

        with pytest.raises(InvalidRecordError):
            trades.add(make_trade(id=5, notes="again"))
        assert trades.count() == 1

    def test_screenshots_round_trip(self, trades):
        trade = trades.add(make_trade(screenshots=["/uploads/a.png", "data:image/png;base64,AAAA"]))
        assert trades.get_by_id(trade.id).screenshots == trade.screenshots

    def test_more_than_two_screenshots_rejected(self, trades):
        with pytest.raises(InvalidRecordError):
            trades.add(make_trade(screenshots=["a", "b", "c"]))

    def test_accepts_model_instances(self, trades):
        trade = trades.add(Trade.model_validate(make_trade()))
        assert trades.get_by_id(trade.id).quantity == 2


class TestInstrumentRepository:
    def test_get_all_sorted_by_symbol(self, instruments):
        for symbol in ("NQ", "CL", "ES"):
            instruments.add(make_instrument(symbol=symbol))

        assert [i.symbol for i in instruments.get_all()] == ["CL", "ES", "NQ"]

    def test_duplicate_symbol_rejected(self, instruments):
        instruments.add(make_instrument())
        with pytest.raises(DuplicateSymbolError):
            instruments.add(make_instrument(description="again"))

    def test_get_by_symbol(self, instruments):
        added = instruments.add(make_instrument(symbol="GC"))
        assert instruments.get_by_symbol("GC").id == added.id
        assert instruments.get_by_symbol("XX") is None

    def test_update_merges_and_checks_symbol_clash(self, instruments):
        es = instruments.add(make_instrument(symbol="ES"))
        instruments.add(make_instrument(symbol="NQ"))

        updated = instruments.update(es.id, {"tickValue": "13.00"})
        assert updated.tick_value == "13.00"
        assert updated.point_value == "50.00"

        with pytest.raises(DuplicateSymbolError):
            instruments.update(es.id, {"symbol": "NQ"})

    def test_update_missing_raises(self, instruments):
        with pytest.raises(NotFoundError):
            instruments.update(77, {"description": "x"})

    def test_delete_is_idempotent(self, instruments):
        added = instruments.add(make_instrument())
        assert instruments.delete(added.id) is True
        assert instruments.delete(added.id) is True

    def test_symbol_index_violation_is_duplicate_symbol(self, instruments, monkeypatch):
        instruments.add(make_instrument(symbol="ES"))
        # a concurrent writer got past the lookup
        monkeypatch.setattr(instruments, "get_by_symbol", lambda symbol: None)

        with pytest.raises(DuplicateSymbolError):
            instruments.add(make_instrument(symbol="ES"))
        assert instruments.count() == 1


class TestSeeding:
    def test_defaults_seeded_once(self, database, instruments):
        assert initialize_local_database(database, instruments) == len(DEFAULT_INSTRUMENTS)
        assert initialize_local_database(database, instruments) == 0
        assert instruments.count() == 10
        mes = instruments.get_by_symbol("MES")
        assert (mes.tick_size, mes.tick_value, mes.point_value) == ("0.25", "1.25", "5.00")

    def test_no_seed_when_instruments_exist(self, instruments):
        instruments.add(make_instrument(symbol="ZB"))
        assert instruments.initialize_defaults(DEFAULT_INSTRUMENTS) == 0
        assert [i.symbol for i in instruments.get_all()] == ["ZB"]
