"""Tests for configuration loading."""

import json

import pytest

from optidb.config import (
    Config,
    EngineConfig,
    Environment,
    get_config,
    load_config_from_env,
    load_config_from_file,
    reset_config,
)
from optidb.exceptions import ConfigurationError


class TestDefaults:
    def test_engine_defaults(self):
        config = EngineConfig()
        assert config.min_table_size == 1000
        assert config.min_seq_scan_time == 0.1
        assert config.min_calls == 5

    def test_config_defaults(self):
        config = load_config_from_env()
        assert config.environment == Environment.DEVELOPMENT
        assert config.engine == EngineConfig()
        assert config.ai_timeout_seconds == 30.0
        assert config.log_level == "WARNING"
        assert not config.ai_available

    def test_engine_config_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            EngineConfig(min_rows=10)

    def test_secrets_not_in_repr(self):
        config = Config(ai_api_key="sk-secret", database_url="postgresql://u:pw@db/app")
        assert "sk-secret" not in repr(config)
        assert "pw@db" not in repr(config)


class TestEnvironment:
    def test_engine_thresholds(self, monkeypatch):
        monkeypatch.setenv("OPTIDB_MIN_TABLE_SIZE", "5000")
        monkeypatch.setenv("OPTIDB_MIN_SEQ_SCAN_TIME", "2.5")
        monkeypatch.setenv("OPTIDB_MIN_CALLS", "10")

        engine = load_config_from_env().engine

        assert engine == EngineConfig(min_table_size=5000, min_seq_scan_time=2.5, min_calls=10)

    def test_unparseable_number_uses_default(self, monkeypatch):
        monkeypatch.setenv("OPTIDB_MIN_CALLS", "lots")
        assert load_config_from_env().engine.min_calls == 5

    def test_negative_threshold_rejected(self, monkeypatch):
        monkeypatch.setenv("OPTIDB_MIN_CALLS", "-1")
        with pytest.raises(ConfigurationError):
            load_config_from_env()

    def test_anthropic_key_fallback(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
        config = load_config_from_env()
        assert config.ai_api_key == "sk-ant"
        assert config.ai_available

    def test_ai_base_url(self, monkeypatch):
        assert load_config_from_env().ai_base_url is None
        monkeypatch.setenv("OPTIDB_AI_BASE_URL", "http://localhost:8080")
        assert load_config_from_env().ai_base_url == "http://localhost:8080"

    def test_optidb_key_wins(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
        monkeypatch.setenv("OPTIDB_AI_API_KEY", "sk-optidb")
        assert load_config_from_env().ai_api_key == "sk-optidb"

    def test_ai_disabled(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
        monkeypatch.setenv("OPTIDB_AI_ENABLED", "false")
        assert not load_config_from_env().ai_available

    def test_environment_and_logging(self, monkeypatch):
        monkeypatch.setenv("OPTIDB_ENVIRONMENT", "Production")
        monkeypatch.setenv("OPTIDB_LOG_LEVEL", "debug")
        config = load_config_from_env()
        assert config.environment == Environment.PRODUCTION
        assert config.log_level == "DEBUG"

    def test_unknown_environment(self):
        assert Environment.from_string("qa") == Environment.DEVELOPMENT


class TestConfigFile:
    def test_yaml_file(self, tmp_path):
        path = tmp_path / "optidb.yaml"
        path.write_text(
            "environment: staging\n"
            "engine:\n"
            "  min_calls: 2\n"
            "log_level: INFO\n"
        )
        config = load_config_from_file(path)

        assert config.environment == Environment.STAGING
        assert config.engine.min_calls == 2
        assert config.engine.min_table_size == 1000
        assert config.log_level == "INFO"

    def test_json_file_takes_secrets_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
        path = tmp_path / "optidb.json"
        path.write_text(json.dumps({"ai_model": "claude-test"}))

        config = load_config_from_file(path)

        assert config.ai_model == "claude-test"
        assert config.ai_api_key == "sk-ant"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            load_config_from_file(tmp_path / "missing.yaml")
        assert exc_info.value.config_key == "OPTIDB_CONFIG_FILE"

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "optidb.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config_from_file(path)

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "optidb.json"
        path.write_text(json.dumps({"engine": {"min_calls": "many"}}))
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_config_from_file(path)


class TestGetConfig:
    def test_cached(self):
        assert get_config() is get_config()

    def test_reset(self, monkeypatch):
        first = get_config()
        monkeypatch.setenv("OPTIDB_MIN_CALLS", "42")
        assert get_config() is first

        reset_config()

        assert get_config().engine.min_calls == 42

    def test_config_file_env(self, tmp_path, monkeypatch):
        path = tmp_path / "optidb.yaml"
        path.write_text("engine:\n  min_table_size: 10\n")
        monkeypatch.setenv("OPTIDB_CONFIG_FILE", str(path))

        assert get_config().engine.min_table_size == 10
