"""CLI entrypoint tests (init and storage commands)."""

import json

from tradesnap.app.main import main


def _config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        f"log_level: WARNING\ndatabase:\n  directory: {(tmp_path / 'data').as_posix()}\n",
        encoding="utf-8",
    )
    return path


def test_init_seeds_once(tmp_path, capsys, monkeypatch):
    monkeypatch.delenv("DATABASE__DIRECTORY", raising=False)
    config = _config(tmp_path)

    assert main(["init", "--config", str(config)]) == 0
    first = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert main(["init", "--config", str(config)]) == 0
    second = json.loads(capsys.readouterr().out.strip().splitlines()[-1])

    assert first["seeded_instruments"] == 10
    assert second["seeded_instruments"] == 0
    assert (tmp_path / "data" / "TradeSnapDB.sqlite3").exists()


def test_storage_report(tmp_path, capsys, monkeypatch):
    monkeypatch.delenv("DATABASE__DIRECTORY", raising=False)

    assert main(["storage", "--config", str(_config(tmp_path))]) == 0

    out = capsys.readouterr().out
    report = json.loads(out[out.index("{\n"):])
    assert report["oldTradeCount"] == 0
    assert report["isLoading"] is False
