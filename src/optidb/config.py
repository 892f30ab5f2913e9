"""
Configuration system for OptiDB.

Implements 12-factor config principles:
- Environment variables as primary config source
- Optional JSON/YAML config file for local development
- Engine thresholds grouped in an immutable EngineConfig

Usage:
    from optidb.config import get_config

    config = get_config()
    engine = RuleEngine.from_config(config)

Environment variables:
    OPTIDB_ENVIRONMENT=production
    OPTIDB_MIN_TABLE_SIZE=1000
    OPTIDB_MIN_SEQ_SCAN_TIME=0.1
    OPTIDB_MIN_CALLS=5
    OPTIDB_AI_ENABLED=true
    OPTIDB_AI_API_KEY=... (falls back to ANTHROPIC_API_KEY)
    OPTIDB_AI_MODEL=claude-sonnet-4-20250514
    OPTIDB_AI_TIMEOUT_SECONDS=30
    OPTIDB_AI_BASE_URL=https://api.anthropic.com
    OPTIDB_DATABASE_URL=postgresql://profiler_ro@localhost/app
    OPTIDB_LOG_LEVEL=INFO
    OPTIDB_CONFIG_FILE=optidb.yaml
"""

from __future__ import annotations

import json
import logging
import os
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from optidb.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class Environment(str, Enum):
    """Environment profiles."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """Parse environment from string, defaulting to development."""
        try:
            return cls(value.lower())
        except ValueError:
            return cls.DEVELOPMENT


class EngineConfig(BaseModel):
    """
    Thresholds that gate the heuristic rules.

    Read-only after construction, so one engine can serve concurrent calls.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    min_table_size: int = Field(
        default=1000,
        ge=0,
        description="Minimum table row count before an index is suggested",
    )
    min_seq_scan_time: float = Field(
        default=0.1,
        ge=0.0,
        description="Mean execution time (ms) above which a query counts as slow",
    )
    min_calls: int = Field(
        default=5,
        ge=0,
        description="Queries called fewer times than this are never analyzed",
    )


class Config(BaseModel):
    """OptiDB configuration, loaded from environment variables and an optional file."""

    model_config = ConfigDict(frozen=True)

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Current environment (development/staging/production)",
    )
    engine: EngineConfig = Field(default_factory=EngineConfig)

    # AI augmenter
    ai_enabled: bool = Field(
        default=True,
        description="Use the AI augmenter when an API key is available",
    )
    ai_api_key: str | None = Field(default=None, repr=False)
    ai_model: str = Field(default="claude-sonnet-4-20250514")
    ai_max_tokens: int = Field(default=2000, ge=1)
    ai_timeout_seconds: float = Field(default=30.0, gt=0)
    ai_base_url: str | None = Field(default=None, description="Anthropic API base URL override")

    # Stats collector
    database_url: str | None = Field(default=None, repr=False)
    statement_timeout_ms: int = Field(
        default=5000,
        ge=0,
        description="Per-statement timeout for collector queries",
    )

    log_level: str = Field(default="WARNING")

    @property
    def ai_available(self) -> bool:
        """True if the augmenter should be wired into the engine."""
        return self.ai_enabled and bool(self.ai_api_key)


def _parse_env_bool(value: str | None, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_env_int(value: str | None, default: int) -> int:
    """Parse integer from environment variable."""
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Could not parse integer setting %r, using %s", value, default)
        return default


def _parse_env_float(value: str | None, default: float) -> float:
    """Parse float from environment variable."""
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Could not parse float setting %r, using %s", value, default)
        return default


def _build_config(kwargs: dict[str, Any], source: str) -> Config:
    try:
        return Config(**kwargs)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration from {source}: {e}") from e


def load_config_from_env() -> Config:
    """Load configuration from OPTIDB_* environment variables."""
    env = os.environ
    engine_kwargs: dict[str, Any] = {
        "min_table_size": _parse_env_int(env.get("OPTIDB_MIN_TABLE_SIZE"), 1000),
        "min_seq_scan_time": _parse_env_float(env.get("OPTIDB_MIN_SEQ_SCAN_TIME"), 0.1),
        "min_calls": _parse_env_int(env.get("OPTIDB_MIN_CALLS"), 5),
    }

    config_kwargs: dict[str, Any] = {
        "environment": Environment.from_string(env.get("OPTIDB_ENVIRONMENT", "development")),
        "engine": engine_kwargs,
        "ai_enabled": _parse_env_bool(env.get("OPTIDB_AI_ENABLED"), True),
        "ai_api_key": env.get("OPTIDB_AI_API_KEY") or env.get("ANTHROPIC_API_KEY"),
        "ai_model": env.get("OPTIDB_AI_MODEL", "claude-sonnet-4-20250514"),
        "ai_timeout_seconds": _parse_env_float(env.get("OPTIDB_AI_TIMEOUT_SECONDS"), 30.0),
        "ai_base_url": env.get("OPTIDB_AI_BASE_URL"),
        "database_url": env.get("OPTIDB_DATABASE_URL"),
        "log_level": env.get("OPTIDB_LOG_LEVEL", "WARNING").upper(),
    }

    return _build_config(config_kwargs, "environment")


def load_config_from_file(path: Path) -> Config:
    """
    Load configuration from a JSON or YAML file.

    Secrets missing from the file (API key, database URL) are taken from
    the environment.
    """
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}", config_key="OPTIDB_CONFIG_FILE")

    try:
        with open(path, encoding="utf-8") as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Failed to read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    env_defaults = load_config_from_env()
    data.setdefault("ai_api_key", env_defaults.ai_api_key)
    data.setdefault("database_url", env_defaults.database_url)

    return _build_config(data, str(path))


@lru_cache(maxsize=1)
def get_config() -> Config:
    """
    Get the process configuration.

    Loads from:
    1. OPTIDB_CONFIG_FILE (if set)
    2. Environment variables (default)

    Result is cached for the lifetime of the process.
    """
    config_file = os.environ.get("OPTIDB_CONFIG_FILE")

    if config_file:
        return load_config_from_file(Path(config_file))

    return load_config_from_env()


def reset_config() -> None:
    """Reset the cached configuration (mainly for testing)."""
    get_config.cache_clear()
