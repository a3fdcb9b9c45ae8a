"""Tests for YAML + environment configuration loading."""

from pathlib import Path

import pytest

from tradesnap.infrastructure.utils.config import ENV_OVERRIDES, TradeSnapConfig, load_config

ENV_KEYS = tuple(ENV_OVERRIDES)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_from_yaml(tmp_path):
    path = _write(
        tmp_path,
        "log_level: debug\n"
        "storage:\n  months_to_retain: 3\n"
        "remote:\n  base_url: https://api.example.com/\n",
    )

    config = TradeSnapConfig.from_yaml(path)

    assert config.log_level == "DEBUG"
    assert config.storage.months_to_retain == 3
    assert config.storage.warning_threshold == 0.70
    assert config.remote.base_url == "https://api.example.com"
    assert config.database.name == "TradeSnapDB"


def test_env_overrides_yaml(tmp_path, monkeypatch):
    path = _write(tmp_path, "remote:\n  base_url: http://localhost:5000\n")
    monkeypatch.setenv("REMOTE__BASE_URL", "http://sync.internal:8080/")
    monkeypatch.setenv("STORAGE__MONTHS_TO_RETAIN", "6")

    config = TradeSnapConfig.from_yaml(path)

    assert config.remote.base_url == "http://sync.internal:8080"
    assert config.storage.months_to_retain == 6


def test_critical_below_warning_is_rejected(tmp_path):
    path = _write(tmp_path, "storage:\n  warning_threshold: 0.9\n  critical_threshold: 0.5\n")
    with pytest.raises(ValueError):
        TradeSnapConfig.from_yaml(path)


def test_bad_base_url_is_rejected(tmp_path):
    path = _write(tmp_path, "remote:\n  base_url: ftp://nope\n")
    with pytest.raises(ValueError):
        TradeSnapConfig.from_yaml(path)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        TradeSnapConfig.from_yaml(tmp_path / "absent.yaml")


def test_load_config_without_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE__DIRECTORY", "/var/lib/tradesnap")

    config = load_config()

    assert config.database.directory == "/var/lib/tradesnap"
    assert config.storage.months_to_retain == 1


def test_invalid_env_value_names_the_variable(tmp_path, monkeypatch):
    path = _write(tmp_path, "{}\n")
    monkeypatch.setenv("API__PORT", "80")

    with pytest.raises(ValueError, match="API__PORT"):
        TradeSnapConfig.from_yaml(path)
