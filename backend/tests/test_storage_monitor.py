"""Tests for storage usage estimation."""

import pytest

from tradesnap.infrastructure.storage.database import TRADES
from tradesnap.services.monitoring.storage_monitor import (
    DEFAULT_QUOTA,
    MAX_REASONABLE_QUOTA,
    MB,
    UNSERIALIZABLE_RECORD_BYTES,
    StorageMonitor,
    _json,
    build_storage_info,
    estimate_record_bytes,
    format_bytes,
    utf16_size,
)
from conftest import make_trade


@pytest.mark.parametrize(
    "num_bytes, text",
    [
        (0, "0 Bytes"),
        (500, "500 Bytes"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (50 * MB, "50 MB"),
    ],
)
def test_format_bytes(num_bytes, text):
    assert format_bytes(num_bytes) == text


class TestThresholds:
    def test_warning_boundary_is_inclusive(self):
        assert build_storage_info(70, 100).is_approaching_limit is True
        assert build_storage_info(69.9, 100).is_approaching_limit is False

    def test_critical_boundary_is_inclusive(self):
        info = build_storage_info(90, 100)
        assert info.is_near_limit is True
        assert info.is_approaching_limit is True
        assert build_storage_info(89, 100).is_near_limit is False

    def test_custom_thresholds(self):
        info = build_storage_info(50, 100, warning_threshold=0.5, critical_threshold=0.6)
        assert info.is_approaching_limit is True
        assert info.is_near_limit is False

    def test_zero_quota(self):
        assert build_storage_info(10, 0).percent_used == 0.0


class TestRecordSize:
    def test_plain_record_is_utf16_of_compact_json(self):
        # {"a":"é"} is 9 code units
        assert estimate_record_bytes("instruments", {"a": "é"}) == 18

    def test_screenshot_counts_three_quarters_of_its_length(self):
        record = {"id": 1, "symbol": "ES", "screenshots": ["x" * 1000]}
        base = utf16_size(_json({"id": 1, "symbol": "ES", "screenshots": None}))

        assert estimate_record_bytes(TRADES, record) == base + 750

    def test_unserializable_record_has_fixed_size(self):
        record = {}
        record["self"] = record
        assert estimate_record_bytes(TRADES, record) == UNSERIALIZABLE_RECORD_BYTES


class TestCheckUsage:
    def test_manual_estimate_preferred(self, database, trades, monkeypatch):
        trades.add(make_trade(screenshots=["A" * 4000]))
        monitor = StorageMonitor(database)
        monkeypatch.setattr(monitor, "platform_estimate", lambda: (100 * MB, 10 * MB))

        result = monitor.check_usage()

        assert result.ok
        assert result.value.quota == 100 * MB
        assert result.value.used == round(monitor.manual_estimate())
        assert 3000 < result.value.used < 10 * MB

    def test_quota_capped(self, database, monkeypatch):
        monitor = StorageMonitor(database)
        monkeypatch.setattr(monitor, "platform_estimate", lambda: (100_000 * MB, 0))

        assert monitor.check_usage().value.quota == MAX_REASONABLE_QUOTA

    def test_falls_back_to_platform_usage_while_upgrading(self, database, monkeypatch):
        database.open()
        monitor = StorageMonitor(database)
        monkeypatch.setattr(monitor, "platform_estimate", lambda: (200 * MB, 1234))
        monkeypatch.setattr(database, "_upgrading", True)

        assert monitor.manual_estimate() is None
        result = monitor.check_usage()
        assert result.ok
        assert result.value.used == 1234

    def test_fails_open_to_default(self, database, monkeypatch):
        monitor = StorageMonitor(database)

        def boom():
            raise RuntimeError("quota probe exploded")

        monkeypatch.setattr(monitor, "platform_estimate", boom)
        result = monitor.check_usage()

        assert result.degraded
        assert result.value.used == 0
        assert result.value.quota == DEFAULT_QUOTA
        assert result.value.is_approaching_limit is False

    def test_platform_estimate_reads_files(self, database, trades):
        trades.add(make_trade())
        quota, usage = StorageMonitor(database).platform_estimate()
        assert usage > 0
        assert quota >= usage
