"""
Shared test fixtures for the bridge tests.

Provides environment variable fixtures for BridgeSettings tests and factories
for raw pye3dc dictionaries and typed snapshots. All bridge env vars are
cleaned before each test to ensure isolation.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import copy
from datetime import UTC, datetime
from typing import Any

import pytest
from e3dc_bridge.src.models import (
    BatterySnapshot,
    DailyStatsSnapshot,
    DcbSnapshot,
    StatusSnapshot,
    SystemInfo,
)

# All BridgeSettings environment variable names, used for cleanup.
_ALL_BRIDGE_ENV_VARS = (
    "E3DC_HOST",
    "E3DC_USERNAME",
    "E3DC_PASSWORD",
    "E3DC_KEY",
    "STATUS_INTERVAL_S",
    "STATISTICS_INTERVAL_S",
    "MQTT_ROOT",
    "MQTT_HOST",
    "MQTT_PORT",
    "MQTT_SOCKET",
    "MQTT_USERNAME",
    "MQTT_PASSWORD",
    "MQTT_TLS",
    "MQTT_KEEPALIVE_S",
    "MQTT_CONNECT_TIMEOUT_S",
    "FLOAT_TOLERANCE",
    "LOG_LEVEL",
)

TS = datetime(2026, 10, 18, 12, 0, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _clean_bridge_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all bridge env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_BRIDGE_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_full(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set all required and optional environment variables for BridgeSettings."""
    env = {
        "E3DC_HOST": "192.168.1.50",
        "E3DC_USERNAME": "owner@example.com",
        "E3DC_PASSWORD": "portal-secret",
        "E3DC_KEY": "rscp-secret",
        "STATUS_INTERVAL_S": "2",
        "STATISTICS_INTERVAL_S": "30",
        "MQTT_ROOT": "home/e3dc",
        "MQTT_HOST": "broker.local",
        "MQTT_PORT": "8883",
        "MQTT_USERNAME": "bridge",
        "MQTT_PASSWORD": "mqtt-secret",
        "MQTT_TLS": "true",
        "MQTT_KEEPALIVE_S": "30",
        "MQTT_CONNECT_TIMEOUT_S": "5",
        "FLOAT_TOLERANCE": "0.01",
        "LOG_LEVEL": "debug",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def env_vars_required_only(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set only the required environment variables (no optional ones)."""
    env = {
        "E3DC_HOST": "10.0.0.7",
        "E3DC_USERNAME": "owner@example.com",
        "E3DC_PASSWORD": "portal-secret",
        "E3DC_KEY": "rscp-secret",
        "MQTT_HOST": "localhost",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


# ---------------------------------------------------------------------------
# Raw pye3dc dictionaries
# ---------------------------------------------------------------------------

_RAW_SYSTEM_INFO: dict[str, Any] = {
    "serial": "72-123456789",
    "model": "S10E",
    "macAddress": "00:11:22:33:44:55",
    "ipAddress": "192.168.1.50",
    "release": "P10_2024_01",
    "installedPeakPower": 9800,
    "installedBatteryCapacity": 13800,
    "maxAcPower": 12000,
    "maxBatChargePower": 9000,
    "maxBatDischargePower": 9000,
    "deratePercent": 70.0,
    "deratePower": 6860,
    "externalSourceAvailable": 0,
}

_RAW_STATUS: dict[str, Any] = {
    "autarky": 87.43,
    "consumption": {"battery": -1200.0, "house": 2100.0, "wallbox": 0.0},
    "production": {"solar": 3400.0, "add": 0.0, "grid": -500.0},
    "selfConsumption": 76.2,
    "stateOfCharge": 64.0,
    "time": datetime(2026, 10, 18, 12, 0, 0),
}

_RAW_DAILY_STATS: dict[str, Any] = {
    "autarky": 91.26,
    "bat_power_in": 5400.4,
    "bat_power_out": 2100.0,
    "consumed_production": 58.4,
    "consumption": 9800.0,
    "grid_power_in": 4100.0,
    "grid_power_out": 850.0,
    "solarProduction": 14500.0,
    "stateOfCharge": 64.0,
    "startTimestamp": 1792281600,
    "timespanSeconds": 43200,
}

_RAW_DCB: dict[str, Any] = {
    "current": 1.234,
    "currentAvg30s": 1.2,
    "cycleCount": 321,
    "designCapacity": 27.5,
    "designVoltage": 51.2,
    "deviceName": "DCB_V2",
    "endOfDischarge": 44.8,
    "error": 0,
    "fullChargeCapacity": 26.9,
    "fwVersion": 6.0,
    "manufactureName": "E3DC",
    "manufactureDate": 1640995200,
    "maxChargeCurrent": 40.0,
    "maxChargeTemperature": 45.0,
    "maxChargeVoltage": 56.0,
    "maxDischargeCurrent": -40.0,
    "minChargeTemperature": 0.0,
    "parallelCellCount": 1,
    "sensorCount": 4,
    "seriesCellCount": 16,
    "pcbVersion": 2.0,
    "protocolVersion": 1.0,
    "remainingCapacity": 17.214,
    "serialCode": "DCB0001",
    "serialNo": 100001,
    "soc": 64.0,
    "soh": 97.5,
    "status": 0,
    "temperatures": [21.5, 22.0, 0.0, 21.75],
    "voltage": 52.347,
    "voltageAvg30s": 52.3,
    "voltages": [3.271, 3.272, 3.27],
    "warning": 0,
}

_RAW_BATTERY: dict[str, Any] = {
    "asoc": 62.0,
    "chargeCycles": 321,
    "current": 1.234,
    "dcbCount": 0,
    "designCapacity": 55.0,
    "deviceName": "BAT_1",
    "eodVoltage": 44.8,
    "errorCode": 0,
    "fcc": 53.8,
    "index": 0,
    "maxBatVoltage": 56.0,
    "maxChargeCurrent": 80.0,
    "maxDischargeCurrent": -80.0,
    "maxDcbCellTemp": 22.5,
    "minDcbCellTemp": 21.0,
    "moduleVoltage": 52.347,
    "rc": 34.456,
    "readyForShutdown": False,
    "rsoc": 64.0,
    "rsocReal": 63.876,
    "statusCode": 0,
    "terminalVoltage": 52.3,
    "totalDischargeTime": 1000,
    "totalUseTime": 2000,
    "trainingMode": False,
    "usuableCapacity": 49.5,
    "usuableRemainingCapacity": 31.7,
    "dcbs": {0: _RAW_DCB, 1: _RAW_DCB},
}


def raw_system_info(**overrides: Any) -> dict[str, Any]:
    raw = copy.deepcopy(_RAW_SYSTEM_INFO)
    raw.update(overrides)
    return raw


def raw_status(**overrides: Any) -> dict[str, Any]:
    raw = copy.deepcopy(_RAW_STATUS)
    raw.update(overrides)
    return raw


def raw_daily_stats(**overrides: Any) -> dict[str, Any]:
    raw = copy.deepcopy(_RAW_DAILY_STATS)
    raw.update(overrides)
    return raw


def raw_dcb(**overrides: Any) -> dict[str, Any]:
    raw = copy.deepcopy(_RAW_DCB)
    raw.update(overrides)
    return raw


def raw_battery(**overrides: Any) -> dict[str, Any]:
    raw = copy.deepcopy(_RAW_BATTERY)
    raw.update(overrides)
    return raw


# ---------------------------------------------------------------------------
# Typed snapshots
# ---------------------------------------------------------------------------


def make_system_info(**overrides: Any) -> SystemInfo:
    fields: dict[str, Any] = {
        "time": TS,
        "serial": "72-123456789",
        "model": "S10E",
        "mac_address": "00:11:22:33:44:55",
        "ip_address": "192.168.1.50",
        "release": "P10_2024_01",
        "installed_peak_power": 9800,
        "derate_percent": 70.0,
        "derate_power": 6860,
        "external_source_available": False,
    }
    fields.update(overrides)
    return SystemInfo(**fields)


def make_status(**overrides: Any) -> StatusSnapshot:
    fields: dict[str, Any] = {
        "time": TS,
        "solar_production": 3400,
        "battery_charge": 0,
        "battery_discharge": 1200,
        "battery_consumption": -1200,
        "house_consumption": 2100,
        "consumption_from_grid": 0,
        "export_to_grid": 500,
        "grid_production": -500,
        "solar_production_excess": 1300,
        "additional": 0,
        "wb_consumption": 0,
        "state_of_charge": 64.0,
        "autarky": 87.4,
        "self_consumption": 76.2,
    }
    fields.update(overrides)
    return StatusSnapshot(**fields)


def make_daily_stats(**overrides: Any) -> DailyStatsSnapshot:
    fields: dict[str, Any] = {
        "time": TS,
        "autarky_today": 91.3,
        "self_consumption_today": 58.4,
        "solar_production_today": 14500,
        "house_consumption_today": 9800,
        "battery_charge_today": 5400,
        "battery_discharge_today": 2100,
        "export_to_grid_today": 4100,
        "consumption_from_grid_today": 850,
        "state_of_charge_today": 64.0,
        "start": datetime(2026, 10, 18, tzinfo=UTC),
        "timespan": 43200,
    }
    fields.update(overrides)
    return DailyStatsSnapshot(**fields)


def make_dcb(index: int = 0, **overrides: Any) -> DcbSnapshot:
    fields: dict[str, Any] = {
        "index": index,
        "voltage": 52.35,
        "voltage_avg_30s": 52.3,
        "current": 1.23,
        "current_avg_30s": 1.2,
        "soc": 64.0,
        "soh": 97.5,
        "cycle_count": 321,
        "design_capacity": 27.5,
        "design_voltage": 51.2,
        "full_charge_capacity": 26.9,
        "remaining_capacity": 17.21,
        "max_charge_voltage": 56.0,
        "max_charge_current": 40.0,
        "max_discharge_current": -40.0,
        "end_of_discharge": 44.8,
        "max_charge_temperature": 45.0,
        "min_charge_temperature": 0.0,
        "device_name": "DCB_V2",
        "manufacture_name": "E3DC",
        "manufacture_date": 1640995200.0,
        "serial_no": 100001 + index,
        "serial_code": f"DCB000{index}",
        "fw_version": 6.0,
        "pcb_version": 2.0,
        "protocol_version": 1.0,
        "error": 0,
        "warning": 0,
        "status": 0,
        "series_cell_count": 16,
        "parallel_cell_count": 1,
        "sensor_count": 4,
        "voltages": (3.27, 3.27, 3.27),
        "temperatures": (21.5, 22.0),
    }
    fields.update(overrides)
    return DcbSnapshot(**fields)


def make_battery(index: int = 0, dcb_count: int = 2, **overrides: Any) -> BatterySnapshot:
    fields: dict[str, Any] = {
        "index": index,
        "rsoc": 64.0,
        "rsoc_real": 63.88,
        "asoc": 62.0,
        "current": 1.23,
        "module_voltage": 52.35,
        "terminal_voltage": 52.3,
        "max_battery_voltage": 56.0,
        "eod_voltage": 44.8,
        "status_code": 0,
        "error_code": 0,
        "charge_cycles": 321,
        "fcc": 53.8,
        "rc": 34.46,
        "design_capacity": 55.0,
        "usable_capacity": 49.5,
        "usable_remaining_capacity": 31.7,
        "max_charge_current": 80.0,
        "max_discharge_current": -80.0,
        "max_dcb_cell_temp": 22.5,
        "min_dcb_cell_temp": 21.0,
        "total_use_time": 2000,
        "total_discharge_time": 1000,
        "device_name": f"BAT_{index}",
        "dcb_count": dcb_count,
        "ready_for_shutdown": False,
        "training_mode": False,
        "dcbs": tuple(make_dcb(i) for i in range(dcb_count)),
    }
    fields.update(overrides)
    return BatterySnapshot(**fields)
