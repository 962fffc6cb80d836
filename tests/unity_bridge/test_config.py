"""Tests for bridge settings."""

import pytest
from pydantic import ValidationError

from src.unity_bridge import config
from src.unity_bridge.config import BridgeSettings, get_settings, reload_settings


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in (
        "UNITY_BRIDGE_HOST",
        "UNITY_BRIDGE_WS_PATH",
        "UNITY_BRIDGE_REQUEST_TIMEOUT",
        "UNITY_BRIDGE_CLIENT_NAME",
        "UNITY_BRIDGE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "_settings", None)


class TestBridgeSettings:
    def test_defaults(self):
        settings = BridgeSettings(_env_file=None)

        assert settings.host == "localhost"
        assert settings.ws_path == "McpUnity"
        assert settings.port_env_var == "UNITY_PORT"
        assert settings.default_port == 8090
        assert settings.request_timeout == 10.0
        assert settings.connect_timeout == 10.0
        assert settings.client_name is None
        assert settings.log_level == "INFO"

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("UNITY_BRIDGE_HOST", "10.0.0.5")
        monkeypatch.setenv("UNITY_BRIDGE_REQUEST_TIMEOUT", "2.5")
        monkeypatch.setenv("UNITY_BRIDGE_CLIENT_NAME", "Windsurf")

        settings = BridgeSettings(_env_file=None)

        assert settings.host == "10.0.0.5"
        assert settings.request_timeout == 2.5
        assert settings.client_name == "Windsurf"

    def test_build_url(self):
        settings = BridgeSettings(_env_file=None, ws_path="/McpUnity/")

        assert settings.ws_path == "McpUnity"
        assert settings.build_url(8090) == "ws://localhost:8090/McpUnity"

    def test_log_level_is_normalized(self):
        assert BridgeSettings(_env_file=None, log_level="debug").log_level == "DEBUG"

        with pytest.raises(ValidationError):
            BridgeSettings(_env_file=None, log_level="verbose")

    @pytest.mark.parametrize("field", ["request_timeout", "connect_timeout", "close_timeout"])
    def test_timeouts_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            BridgeSettings(_env_file=None, **{field: 0})

    def test_runtime_info(self):
        info = BridgeSettings(_env_file=None, client_name="Cursor").get_runtime_info()

        assert info["endpoint"] == "localhost/McpUnity"
        assert info["timeouts"]["request"] == 10.0
        assert info["client_name"] == "Cursor"


class TestSettingsSingleton:
    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_reload_settings_reads_environment_again(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("UNITY_BRIDGE_HOST", "unity.local")

        reloaded = reload_settings()

        assert reloaded is not first
        assert reloaded.host == "unity.local"
        assert get_settings() is reloaded
