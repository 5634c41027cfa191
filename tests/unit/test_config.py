"""Unit tests for configuration loading and environment overrides."""

import json
import os
from unittest.mock import patch

import pytest

from timeledger.config import CacheConfig, ConfigManager, GCConfig, SyncConfig, TimeLedgerConfig


@pytest.mark.unit
class TestDefaults:
    """Test built-in defaults."""

    def test_cache_ttl_defaults_to_five_seconds(self):
        assert CacheConfig().default_ttl_seconds == 5.0

    def test_gc_defaults(self):
        config = GCConfig()
        assert config.retention_days == 7
        assert config.require_pushed is True

    def test_sync_defaults_offline(self):
        config = SyncConfig()
        assert config.remote_url is None
        assert config.max_conflict_retries == 2

    def test_dict_roundtrip_keeps_sections(self):
        config = TimeLedgerConfig()
        config.sync.remote_url = "https://sync.example.com"
        config.gc.retention_days = 14

        restored = TimeLedgerConfig.from_dict(config.to_dict())

        assert restored.sync.remote_url == "https://sync.example.com"
        assert restored.gc.retention_days == 14
        assert restored.cache.default_ttl_seconds == 5.0


@pytest.mark.unit
class TestConfigManager:
    """Test file loading and TIMELEDGER_* overrides."""

    def test_missing_file_gives_defaults_without_writing(self, tmp_path):
        config_file = tmp_path / "config.json"
        with patch.dict(os.environ, {"TIMELEDGER_CONFIG_FILE": str(config_file)}):
            config = ConfigManager().load_config()

        assert config.database.url == "sqlite:///timeledger.db"
        assert not config_file.exists()

    def test_loads_file(self, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"cache": {"default_ttl_seconds": 2.5}, "server": {"port": 9001}}))

        with patch.dict(os.environ, {"TIMELEDGER_CONFIG_FILE": str(config_file)}):
            config = ConfigManager().load_config()

        assert config.cache.default_ttl_seconds == 2.5
        assert config.server.port == 9001

    def test_corrupt_file_falls_back_to_defaults(self, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")

        with patch.dict(os.environ, {"TIMELEDGER_CONFIG_FILE": str(config_file)}):
            config = ConfigManager().load_config()

        assert config.server.port == 8000

    def test_environment_overrides(self, tmp_path):
        env = {
            "TIMELEDGER_CONFIG_FILE": str(tmp_path / "none.json"),
            "TIMELEDGER_DATABASE_URL": "sqlite:///:memory:",
            "TIMELEDGER_REMOTE_URL": "https://sync.example.com",
            "TIMELEDGER_CACHE_TTL": "1.5",
            "TIMELEDGER_DEBUG": "true",
        }
        with patch.dict(os.environ, env):
            config = ConfigManager().load_config()

        assert config.database.url == "sqlite:///:memory:"
        assert config.sync.remote_url == "https://sync.example.com"
        assert config.cache.default_ttl_seconds == 1.5
        assert config.app.debug is True
        assert config.app.log_level == "DEBUG"

    def test_invalid_ttl_override_ignored(self, tmp_path):
        env = {"TIMELEDGER_CONFIG_FILE": str(tmp_path / "none.json"), "TIMELEDGER_CACHE_TTL": "fast"}
        with patch.dict(os.environ, env):
            config = ConfigManager().load_config()

        assert config.cache.default_ttl_seconds == 5.0

    def test_save_then_load(self, tmp_path):
        config_file = tmp_path / "nested" / "config.json"
        with patch.dict(os.environ, {"TIMELEDGER_CONFIG_FILE": str(config_file)}):
            manager = ConfigManager()
            config = manager.load_config()
            config.gc.retention_days = 30
            assert manager.save_config(config) is True

            reloaded = ConfigManager().load_config()

        assert reloaded.gc.retention_days == 30

    def test_validate_config_reports_issues(self, tmp_path):
        with patch.dict(os.environ, {"TIMELEDGER_CONFIG_FILE": str(tmp_path / "none.json")}):
            manager = ConfigManager()
            config = manager.load_config()
            config.cache.default_ttl_seconds = 0
            config.gc.retention_days = 0
            config.sync.remote_url = "ftp://example.com"

            issues = manager.validate_config()

        assert len(issues) == 3
