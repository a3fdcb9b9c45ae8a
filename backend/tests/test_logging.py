from enum import Enum
from pathlib import Path

import structlog

from tradesnap.infrastructure.logging.logging import _plain_values, log_operation


class Color(Enum):
    RED = "red"


def test_log_operation_binds_and_unbinds():
    with log_operation("full_sync", attempt=2):
        assert structlog.contextvars.get_contextvars() == {"operation": "full_sync", "attempt": 2}
    assert "operation" not in structlog.contextvars.get_contextvars()


def test_enums_and_paths_are_logged_by_value():
    event = _plain_values(None, "info", {"kind": Color.RED, "path": Path("/tmp/db.sqlite3"), "n": 1})
    assert event == {"kind": "red", "path": "/tmp/db.sqlite3", "n": 1}
