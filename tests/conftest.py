"""Shared fixtures: keep tests independent of the caller's environment."""

import pytest

from optidb.config import reset_config

_ENV_VARS = (
    "OPTIDB_ENVIRONMENT",
    "OPTIDB_MIN_TABLE_SIZE",
    "OPTIDB_MIN_SEQ_SCAN_TIME",
    "OPTIDB_MIN_CALLS",
    "OPTIDB_AI_ENABLED",
    "OPTIDB_AI_API_KEY",
    "OPTIDB_AI_MODEL",
    "OPTIDB_AI_TIMEOUT_SECONDS",
    "OPTIDB_AI_BASE_URL",
    "OPTIDB_DATABASE_URL",
    "OPTIDB_LOG_LEVEL",
    "OPTIDB_CONFIG_FILE",
    "ANTHROPIC_API_KEY",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """No API key, no config file, fresh config cache."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()
