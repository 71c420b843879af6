"""
Unit tests for bridge configuration (BridgeSettings).

Tests verify:
- Config loads from environment variables with correct defaults.
- Config validation rejects missing required variables.
- Intervals must be positive and statistics must not be faster than status.
- A broker host or socket is required.
- Secrets are masked in repr().

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import pytest
from e3dc_bridge.src.config import BridgeSettings
from pydantic import ValidationError


class TestBridgeSettingsLoadsFromEnv:
    """Config loads all values from environment variables."""

    def test_loads_all_env_vars(self, env_vars_full: dict[str, str]) -> None:
        """All env vars are read and assigned correctly."""
        settings = BridgeSettings()

        assert settings.e3dc_host == env_vars_full["E3DC_HOST"]
        assert settings.e3dc_username == env_vars_full["E3DC_USERNAME"]
        assert settings.e3dc_password.get_secret_value() == env_vars_full["E3DC_PASSWORD"]
        assert settings.e3dc_key.get_secret_value() == env_vars_full["E3DC_KEY"]
        assert settings.status_interval_s == 2.0
        assert settings.statistics_interval_s == 30.0
        assert settings.mqtt_root == "home/e3dc"
        assert settings.mqtt_host == "broker.local"
        assert settings.mqtt_port == 8883
        assert settings.mqtt_username == "bridge"
        assert settings.mqtt_password.get_secret_value() == "mqtt-secret"
        assert settings.mqtt_tls is True
        assert settings.mqtt_keepalive_s == 30
        assert settings.mqtt_connect_timeout_s == 5.0
        assert settings.float_tolerance == 0.01
        assert settings.log_level == "DEBUG"

    def test_defaults_applied_when_optional_vars_missing(
        self, env_vars_required_only: dict[str, str]
    ) -> None:
        """Optional variables use default values when not set."""
        settings = BridgeSettings()

        assert settings.status_interval_s == 5.0
        assert settings.statistics_interval_s == 60.0
        assert settings.mqtt_root == "e3dc"
        assert settings.mqtt_port == 1883
        assert settings.mqtt_socket is None
        assert settings.mqtt_username == ""
        assert settings.mqtt_password.get_secret_value() == ""
        assert settings.mqtt_tls is False
        assert settings.float_tolerance == 0.0
        assert settings.log_level == "INFO"

    def test_reads_env_file(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        """A .env file in the working directory is picked up."""
        (tmp_path / ".env").write_text(
            "E3DC_HOST=10.1.1.1\n"
            "E3DC_USERNAME=user\n"
            "E3DC_PASSWORD=pw\n"
            "E3DC_KEY=key\n"
            "MQTT_SOCKET=/run/mosquitto.sock\n",
            encoding="utf-8",
        )
        settings = BridgeSettings()

        assert settings.e3dc_host == "10.1.1.1"
        assert settings.mqtt_socket == "/run/mosquitto.sock"


class TestBridgeSettingsRequired:
    """Missing required variables fail validation."""

    @pytest.mark.parametrize("var", ["E3DC_HOST", "E3DC_USERNAME", "E3DC_PASSWORD", "E3DC_KEY"])
    def test_missing_required_var_raises(
        self,
        env_vars_required_only: dict[str, str],
        monkeypatch: pytest.MonkeyPatch,
        var: str,
    ) -> None:
        monkeypatch.delenv(var)
        with pytest.raises(ValidationError):
            BridgeSettings()

    def test_missing_broker_address_raises(
        self, env_vars_required_only: dict[str, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Neither MQTT_HOST nor MQTT_SOCKET set is rejected."""
        monkeypatch.delenv("MQTT_HOST")
        with pytest.raises(ValidationError, match="MQTT_HOST or MQTT_SOCKET"):
            BridgeSettings()

    def test_socket_without_host_is_accepted(
        self, env_vars_required_only: dict[str, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("MQTT_HOST")
        monkeypatch.setenv("MQTT_SOCKET", "/run/mosquitto.sock")
        settings = BridgeSettings()

        assert settings.mqtt_host is None
        assert settings.mqtt_socket == "/run/mosquitto.sock"


class TestBridgeSettingsValidation:
    """Numeric and enum constraints are enforced."""

    @pytest.mark.parametrize("value", ["0", "-1"])
    def test_status_interval_must_be_positive(
        self,
        env_vars_required_only: dict[str, str],
        monkeypatch: pytest.MonkeyPatch,
        value: str,
    ) -> None:
        monkeypatch.setenv("STATUS_INTERVAL_S", value)
        with pytest.raises(ValidationError):
            BridgeSettings()

    def test_statistics_interval_shorter_than_status_rejected(
        self, env_vars_required_only: dict[str, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("STATUS_INTERVAL_S", "10")
        monkeypatch.setenv("STATISTICS_INTERVAL_S", "5")
        with pytest.raises(ValidationError, match="STATISTICS_INTERVAL_S"):
            BridgeSettings()

    def test_equal_intervals_accepted(
        self, env_vars_required_only: dict[str, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("STATUS_INTERVAL_S", "10")
        monkeypatch.setenv("STATISTICS_INTERVAL_S", "10")
        settings = BridgeSettings()

        assert settings.statistics_interval_s == settings.status_interval_s

    @pytest.mark.parametrize("port", ["0", "65536"])
    def test_mqtt_port_out_of_range(
        self,
        env_vars_required_only: dict[str, str],
        monkeypatch: pytest.MonkeyPatch,
        port: str,
    ) -> None:
        monkeypatch.setenv("MQTT_PORT", port)
        with pytest.raises(ValidationError):
            BridgeSettings()

    def test_negative_float_tolerance_rejected(
        self, env_vars_required_only: dict[str, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("FLOAT_TOLERANCE", "-0.1")
        with pytest.raises(ValidationError):
            BridgeSettings()

    def test_unknown_log_level_rejected(
        self, env_vars_required_only: dict[str, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("LOG_LEVEL", "TRACE")
        with pytest.raises(ValidationError):
            BridgeSettings()


class TestBridgeSettingsSecrets:
    """Secrets never appear in the settings repr."""

    def test_repr_masks_secrets(self, env_vars_full: dict[str, str]) -> None:
        text = repr(BridgeSettings())

        assert "portal-secret" not in text
        assert "rscp-secret" not in text
        assert "mqtt-secret" not in text
