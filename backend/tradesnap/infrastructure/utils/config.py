"""Configuration for the TradeSnap local store.

``config/default.yaml`` holds the defaults; selected environment variables
(also read from ``.env``) override them. The YAML is never copied into
``os.environ``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseModel):
    """Local database location. The file is <directory>/<name>.sqlite3."""

    directory: str = Field(default="data")
    name: str = Field(default="TradeSnapDB")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = str(v).strip()
        if not v or "/" in v or "\\" in v:
            raise ValueError("database name must be a plain, non-empty file stem")
        return v


class StorageConfig(BaseModel):
    """Storage monitor and retention settings."""

    months_to_retain: int = Field(default=1, ge=0, le=120)
    auto_refresh_interval_seconds: float = Field(default=0.0, ge=0.0, description="0 disables auto-refresh")
    warning_threshold: float = Field(default=0.70, gt=0.0, le=1.0)
    critical_threshold: float = Field(default=0.90, gt=0.0, le=1.0)
    max_quota_mb: int = Field(default=500, ge=1)
    default_quota_mb: int = Field(default=50, ge=1)

    @field_validator("critical_threshold")
    @classmethod
    def validate_thresholds(cls, v: float, info) -> float:
        if "warning_threshold" in info.data and v < info.data["warning_threshold"]:
            raise ValueError("critical_threshold must be >= warning_threshold")
        return v


class RemoteConfig(BaseModel):
    """Remote REST API (authoritative copy of trades and instruments)."""

    base_url: str = Field(default="http://localhost:5000")
    timeout_seconds: float = Field(default=10.0, gt=0)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        v = str(v).strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v


class APIConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=1024, le=65535)
    cors_origins: List[str] = Field(default=["http://localhost:3000", "http://localhost:5173"])


class UserConfig(BaseModel):
    """Single demo user; there is no authentication."""

    demo_user_id: int = Field(default=1, ge=0)


class TradeSnapConfig(BaseSettings):
    """Main configuration class.

    Settings-managed variables are prefixed (``TRADESNAP_STORAGE__MONTHS_TO_RETAIN``)
    so that generic names such as ``USER`` never land on a section. The short
    names in ``ENV_OVERRIDES`` are applied on top by ``with_env_overrides``.
    """

    model_config = SettingsConfigDict(
        env_prefix="TRADESNAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = Field(default="INFO")
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    user: UserConfig = Field(default_factory=UserConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if str(v).upper() not in valid:
            raise ValueError(f"Log level must be one of: {sorted(valid)}")
        return str(v).upper()

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "TradeSnapConfig":
        """YAML first, then the environment overrides in ``ENV_OVERRIDES``."""
        return cls._validated(_read_yaml(yaml_path), source=str(yaml_path)).with_env_overrides()

    @classmethod
    def _validated(cls, data: Dict[str, Any], *, source: str) -> "TradeSnapConfig":
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration ({source}): {e}") from e

    def with_env_overrides(self) -> "TradeSnapConfig":
        data = self.model_dump()
        applied = []
        for env_name, (section, key) in ENV_OVERRIDES.items():
            raw = os.getenv(env_name)
            if not raw:
                continue
            target = data if section is None else data[section]
            target[key] = raw
            applied.append(env_name)
        if not applied:
            return self
        return type(self)._validated(data, source="environment: " + ", ".join(applied))


# env var -> (section, field); None means a top-level field
ENV_OVERRIDES: Dict[str, Tuple[Optional[str], str]] = {
    "LOG_LEVEL": (None, "log_level"),
    "DATABASE__DIRECTORY": ("database", "directory"),
    "REMOTE__BASE_URL": ("remote", "base_url"),
    "REMOTE__TIMEOUT_SECONDS": ("remote", "timeout_seconds"),
    "STORAGE__MONTHS_TO_RETAIN": ("storage", "months_to_retain"),
    "STORAGE__AUTO_REFRESH_INTERVAL_SECONDS": ("storage", "auto_refresh_interval_seconds"),
    "API__PORT": ("api", "port"),
}

CONFIG_SEARCH_PATHS = (
    Path("config/default.yaml"),
    Path("backend/config/default.yaml"),
    Path("config.yaml"),
)


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return data


def load_config(config_path: Optional[Path] = None) -> TradeSnapConfig:
    """Explicit path, else the first existing search path, else built-in defaults; env wins."""
    load_dotenv(dotenv_path=Path(".env"))

    if config_path is None:
        config_path = next((p for p in CONFIG_SEARCH_PATHS if p.exists()), None)
    if config_path is None:
        return TradeSnapConfig().with_env_overrides()
    return TradeSnapConfig.from_yaml(config_path)


_config: Optional[TradeSnapConfig] = None


def get_config() -> TradeSnapConfig:
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config(config_path: Optional[Path] = None) -> TradeSnapConfig:
    global _config
    _config = load_config(config_path)
    return _config
