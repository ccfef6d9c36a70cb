"""
Tests for settings and routing file loading.
"""
import json
from pathlib import Path

import pytest

from relay.config import ConfigurationError, Settings, get_settings, load_routing_config


class TestSettings:
    """Test suite for process settings."""

    def test_default_values(self):
        """All settings have sensible defaults."""
        get_settings.cache_clear()

        settings = Settings(_env_file=None)

        assert settings.routing_config_path == "config.json"
        assert settings.http_timeout_seconds == 10.0
        assert settings.delivery_max_attempts == 3
        assert settings.delivery_backoff_base_ms == 100
        assert settings.terminal_failure_policy == "dead_letter"
        assert settings.worker_max_concurrent == 10
        assert settings.worker_batch_size == 1
        assert settings.queue_redelivery_delays == [1, 5, 10, 30, 60]
        assert settings.log_level == "INFO"
        assert settings.enable_structured_logging is False

    def test_environment_variable_override(self, monkeypatch):
        """Environment variables override defaults."""
        get_settings.cache_clear()

        monkeypatch.setenv("ROUTING_CONFIG_PATH", "/etc/relay/routes.json")
        monkeypatch.setenv("DELIVERY_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("TERMINAL_FAILURE_POLICY", "drop")
        monkeypatch.setenv("QUEUE_REDELIVERY_DELAYS", "[0, 2]")

        settings = get_settings()

        assert settings.routing_config_path == "/etc/relay/routes.json"
        assert settings.delivery_max_attempts == 5
        assert settings.terminal_failure_policy == "drop"
        assert settings.queue_redelivery_delays == [0, 2]

        get_settings.cache_clear()

    def test_invalid_policy_rejected(self, monkeypatch):
        monkeypatch.setenv("TERMINAL_FAILURE_POLICY", "ignore")
        with pytest.raises(ValueError):
            Settings(_env_file=None)

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()


class TestLoadRoutingConfig:
    """Tests for the routing file loader."""

    def test_loads_valid_file(self, tmp_path, routing_data):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(routing_data))

        config = load_routing_config(path)

        assert len(config.notifications) == 2
        assert config.find_rule("payment").method == "PUT"
        assert config.mq.name_server == "127.0.0.1:9876"

    def test_accepts_string_path(self, tmp_path, routing_data):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(routing_data))

        assert load_routing_config(str(path)).max_retries == 16

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Failed to read"):
            load_routing_config(tmp_path / "absent.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{ notifications: ")

        with pytest.raises(ConfigurationError, match="not valid JSON"):
            load_routing_config(path)

    def test_invalid_rule(self, tmp_path, routing_data):
        routing_data["notifications"][0]["http_url"] = "not a url"
        path = tmp_path / "config.json"
        path.write_text(json.dumps(routing_data))

        with pytest.raises(ConfigurationError, match="invalid"):
            load_routing_config(path)

    def test_repository_example_is_valid(self):
        """The shipped example routing file loads."""
        example = Path(__file__).resolve().parents[2] / "config.example.json"
        config = load_routing_config(example)

        assert config.notifications
