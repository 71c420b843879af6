"""
Bridge configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All values come from environment variables or a ``.env`` file; no hardcoded
addresses or credentials. Secrets are ``SecretStr`` so they are masked in
``repr()`` and never end up in logs by accident.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class BridgeSettings(BaseSettings):
    """E3DC-to-MQTT bridge configuration.

    Required variables must be set; optional variables have sensible
    defaults.

    Attributes:
        e3dc_host: E3DC IP address / hostname on the local LAN.
        e3dc_username: E3DC portal username (usually an email address).
        e3dc_password: E3DC portal password.
        e3dc_key: RSCP key configured on the device.
        status_interval_s: Seconds between status cycles.
        statistics_interval_s: Seconds between statistics/battery cycles.
            Must not be shorter than the status interval.
        mqtt_root: Root topic.
        mqtt_host: Broker hostname; required unless mqtt_socket is set.
        mqtt_port: Broker TCP port.
        mqtt_socket: Broker Unix socket path; takes precedence over host.
        mqtt_username: Broker username; empty disables authentication.
        mqtt_password: Broker password.
        mqtt_tls: Enable TLS towards the broker.
        mqtt_keepalive_s: MQTT keepalive in seconds.
        mqtt_connect_timeout_s: Seconds to wait for CONNACK and publish acks.
        float_tolerance: Absolute tolerance for float change detection;
            0 means exact comparison.
        log_level: DEBUG, INFO, WARNING or ERROR.
    """

    e3dc_host: str
    e3dc_username: str
    e3dc_password: SecretStr
    e3dc_key: SecretStr
    status_interval_s: float = 5.0
    statistics_interval_s: float = 60.0
    mqtt_root: str = "e3dc"
    mqtt_host: str | None = None
    mqtt_port: int = 1883
    mqtt_socket: str | None = None
    mqtt_username: str = ""
    mqtt_password: SecretStr = SecretStr("")
    mqtt_tls: bool = False
    mqtt_keepalive_s: int = 60
    mqtt_connect_timeout_s: float = 10.0
    float_tolerance: float = 0.0
    log_level: str = "INFO"

    @field_validator("status_interval_s", "statistics_interval_s", "mqtt_connect_timeout_s")
    @classmethod
    def interval_must_be_positive(cls, v: float) -> float:
        """Intervals and timeouts must be strictly positive."""
        if v <= 0:
            raise ValueError("interval must be > 0")
        return v

    @field_validator("mqtt_port")
    @classmethod
    def mqtt_port_must_be_valid(cls, v: int) -> int:
        """Validate broker TCP port is in valid range."""
        if v < 1 or v > 65535:
            raise ValueError("MQTT_PORT must be between 1 and 65535")
        return v

    @field_validator("float_tolerance")
    @classmethod
    def float_tolerance_must_be_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("FLOAT_TOLERANCE must be >= 0")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}")
        return level

    @model_validator(mode="after")
    def _check_cross_field(self) -> BridgeSettings:
        """Require a broker address and a statistics interval >= status interval."""
        if not self.mqtt_host and not self.mqtt_socket:
            raise ValueError("MQTT_HOST or MQTT_SOCKET must be set")
        if self.statistics_interval_s < self.status_interval_s:
            raise ValueError("STATISTICS_INTERVAL_S must be >= STATUS_INTERVAL_S")
        return self

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
