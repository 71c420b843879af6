"""
Pure normalizer that converts raw pye3dc dictionaries into typed snapshots.

The pye3dc library returns nested dicts with camelCase keys. This module maps
them onto the snapshot models, splits signed power values into
charge/discharge and import/export pairs, rounds floats to the device's own
quantisation, and drops invalid cell temperature readings.

This is a pure module: no I/O, no clock. Timestamps that the device does not
supply are injected by the caller. A missing key raises
:class:`~e3dc_bridge.src.errors.SnapshotShapeError`; the normalizer never
returns a partial snapshot.

CHANGELOG:
- 2026-10-18: Map DCB manufactureDate
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from e3dc_bridge.src.errors import SnapshotShapeError
from e3dc_bridge.src.models import (
    BatterySnapshot,
    DailyStatsSnapshot,
    DcbSnapshot,
    StatusSnapshot,
    SystemInfo,
)

logger = logging.getLogger(__name__)

MIN_VALID_CELL_TEMP_C: float = 10.0
"""Cell temperatures below this are sensor placeholders (firmware reports 0.0)."""

# ---------------------------------------------------------------------------
# Key maps: snapshot field name -> pye3dc key
# ---------------------------------------------------------------------------

_BATTERY_FIELD_MAP: dict[str, str] = {
    "rsoc": "rsoc",
    "rsoc_real": "rsocReal",
    "asoc": "asoc",
    "current": "current",
    "module_voltage": "moduleVoltage",
    "terminal_voltage": "terminalVoltage",
    "max_battery_voltage": "maxBatVoltage",
    "eod_voltage": "eodVoltage",
    "status_code": "statusCode",
    "error_code": "errorCode",
    "charge_cycles": "chargeCycles",
    "fcc": "fcc",
    "rc": "rc",
    "design_capacity": "designCapacity",
    "usable_capacity": "usuableCapacity",
    "usable_remaining_capacity": "usuableRemainingCapacity",
    "max_charge_current": "maxChargeCurrent",
    "max_discharge_current": "maxDischargeCurrent",
    "max_dcb_cell_temp": "maxDcbCellTemp",
    "min_dcb_cell_temp": "minDcbCellTemp",
    "total_use_time": "totalUseTime",
    "total_discharge_time": "totalDischargeTime",
    "device_name": "deviceName",
    "ready_for_shutdown": "readyForShutdown",
    "training_mode": "trainingMode",
}
"""Maps BatterySnapshot field name -> key in ``get_battery_data()`` output."""

_DCB_FIELD_MAP: dict[str, str] = {
    "voltage": "voltage",
    "voltage_avg_30s": "voltageAvg30s",
    "current": "current",
    "current_avg_30s": "currentAvg30s",
    "soc": "soc",
    "soh": "soh",
    "cycle_count": "cycleCount",
    "design_capacity": "designCapacity",
    "design_voltage": "designVoltage",
    "full_charge_capacity": "fullChargeCapacity",
    "remaining_capacity": "remainingCapacity",
    "max_charge_voltage": "maxChargeVoltage",
    "max_charge_current": "maxChargeCurrent",
    "max_discharge_current": "maxDischargeCurrent",
    "end_of_discharge": "endOfDischarge",
    "max_charge_temperature": "maxChargeTemperature",
    "min_charge_temperature": "minChargeTemperature",
    "device_name": "deviceName",
    "manufacture_name": "manufactureName",
    "manufacture_date": "manufactureDate",
    "serial_no": "serialNo",
    "serial_code": "serialCode",
    "fw_version": "fwVersion",
    "pcb_version": "pcbVersion",
    "protocol_version": "protocolVersion",
    "error": "error",
    "warning": "warning",
    "status": "status",
    "series_cell_count": "seriesCellCount",
    "parallel_cell_count": "parallelCellCount",
    "sensor_count": "sensorCount",
}
"""Maps DcbSnapshot field name -> key in a ``dcbs`` entry."""

_ROUNDED_2: frozenset[str] = frozenset(
    {
        "current",
        "current_avg_30s",
        "voltage",
        "voltage_avg_30s",
        "design_voltage",
        "max_charge_voltage",
        "remaining_capacity",
        "soc",
        "rsoc",
        "rsoc_real",
        "module_voltage",
        "terminal_voltage",
        "max_battery_voltage",
        "max_dcb_cell_temp",
        "min_dcb_cell_temp",
        "rc",
        "usable_capacity",
        "usable_remaining_capacity",
    }
)
"""Float fields rounded to two decimals before diffing."""

# Serial number prefix -> model name, checked in order (longest prefixes first).
_MODEL_BY_SERIAL_PREFIX: tuple[tuple[str, str], ...] = (
    ("72", "S10E"),
    ("74", "S10E_Compact"),
    ("70", "S10E_Pro"),
    ("75", "S10E_Pro_Compact"),
    ("4", "S10E"),
    ("5", "S10_Mini"),
    ("6", "Quattroporte"),
    ("8", "S10X"),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require(raw: dict[str, Any], key: str, where: str) -> Any:
    """Return ``raw[key]`` or raise SnapshotShapeError naming the snapshot."""
    if not isinstance(raw, dict):
        raise SnapshotShapeError(f"{where}: expected a mapping, got {type(raw).__name__}")
    if key not in raw:
        raise SnapshotShapeError(f"{where}: missing key '{key}'")
    return raw[key]


def split_signed(value: float) -> tuple[int, int]:
    """Split a signed power value into ``(positive_part, negative_part)``.

    Returns ``(value, 0)`` for values >= 0 and ``(0, abs(value))`` otherwise,
    both rounded to whole watts.
    """
    if value >= 0:
        return round(value), 0
    return 0, round(abs(value))


def model_from_serial(serial: str) -> str:
    """Derive the E3DC model name from the serial number prefix."""
    for prefix, model in _MODEL_BY_SERIAL_PREFIX:
        if serial.startswith(prefix):
            return model
    return "N/A"


def as_utc(value: datetime | None, fallback: datetime) -> datetime:
    """Return *value* as an aware UTC datetime, or *fallback* when missing.

    pye3dc reports naive UTC datetimes; they are tagged rather than converted.
    """
    if value is None:
        return fallback
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _map_fields(
    raw: dict[str, Any],
    field_map: dict[str, str],
    where: str,
) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    for field_name, key in field_map.items():
        value = _require(raw, key, where)
        if field_name in _ROUNDED_2 and isinstance(value, (int, float)):
            value = round(float(value), 2)
        fields[field_name] = value
    return fields


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize_system_info(raw: dict[str, Any], *, ts: datetime) -> SystemInfo:
    """Convert ``get_system_info()`` output into a :class:`SystemInfo`.

    Args:
        raw: pye3dc system info dict.
        ts: Timestamp of the query.

    Returns:
        The validated system info record.
    """
    where = "system_info"
    serial = str(_require(raw, "serial", where))
    model = raw.get("model") or model_from_serial(serial)
    return SystemInfo(
        time=ts,
        serial=serial,
        model=model,
        mac_address=_require(raw, "macAddress", where),
        ip_address=_require(raw, "ipAddress", where),
        release=_require(raw, "release", where),
        installed_peak_power=_require(raw, "installedPeakPower", where),
        installed_battery_capacity=raw.get("installedBatteryCapacity"),
        max_ac_power=raw.get("maxAcPower"),
        max_battery_charge_power=raw.get("maxBatChargePower"),
        max_battery_discharge_power=raw.get("maxBatDischargePower"),
        derate_percent=round(float(_require(raw, "deratePercent", where)), 2),
        derate_power=_require(raw, "deratePower", where),
        external_source_available=bool(_require(raw, "externalSourceAvailable", where)),
    )


def normalize_status(raw: dict[str, Any], *, ts: datetime) -> StatusSnapshot:
    """Convert ``poll()`` output into a :class:`StatusSnapshot`.

    Battery power is positive while charging; grid power is positive while
    drawing from the grid.

    Args:
        raw: pye3dc poll dict with ``production`` and ``consumption``
            sub-dicts.
        ts: Timestamp to use when the device did not report one.

    Returns:
        The validated status snapshot.
    """
    where = "status"
    production = _require(raw, "production", where)
    consumption = _require(raw, "consumption", where)

    power_pv = float(_require(production, "solar", f"{where}.production"))
    power_grid = float(_require(production, "grid", f"{where}.production"))
    power_add = float(_require(production, "add", f"{where}.production"))
    power_battery = float(_require(consumption, "battery", f"{where}.consumption"))
    power_home = float(_require(consumption, "house", f"{where}.consumption"))
    power_wb = float(_require(consumption, "wallbox", f"{where}.consumption"))

    battery_charge, battery_discharge = split_signed(power_battery)
    consumption_from_grid, export_to_grid = split_signed(power_grid)

    return StatusSnapshot(
        time=as_utc(raw.get("time"), ts),
        solar_production=round(power_pv),
        battery_charge=battery_charge,
        battery_discharge=battery_discharge,
        battery_consumption=round(power_battery),
        house_consumption=round(power_home),
        consumption_from_grid=consumption_from_grid,
        export_to_grid=export_to_grid,
        grid_production=round(power_grid),
        solar_production_excess=round(power_pv - power_home),
        additional=round(power_add),
        wb_consumption=round(power_wb),
        state_of_charge=round(float(_require(raw, "stateOfCharge", where)), 1),
        autarky=round(float(_require(raw, "autarky", where)), 1),
        self_consumption=round(float(_require(raw, "selfConsumption", where)), 1),
    )


def normalize_daily_stats(
    raw: dict[str, Any],
    *,
    ts: datetime,
    start: datetime,
    timespan: timedelta,
) -> DailyStatsSnapshot:
    """Convert ``get_db_data_timestamp()`` output into a :class:`DailyStatsSnapshot`.

    E3DC names grid energy from the grid's point of view: ``grid_power_in``
    is energy fed *into* the grid.

    Args:
        raw: pye3dc database sums dict.
        ts: Timestamp of the query.
        start: Start of the queried window.
        timespan: Length of the queried window.

    Returns:
        The validated daily statistics snapshot.
    """
    where = "daily_stats"
    return DailyStatsSnapshot(
        time=ts,
        autarky_today=round(float(_require(raw, "autarky", where)), 1),
        self_consumption_today=round(float(_require(raw, "consumed_production", where)), 1),
        solar_production_today=round(_require(raw, "solarProduction", where)),
        house_consumption_today=round(_require(raw, "consumption", where)),
        battery_charge_today=round(_require(raw, "bat_power_in", where)),
        battery_discharge_today=round(_require(raw, "bat_power_out", where)),
        export_to_grid_today=round(_require(raw, "grid_power_in", where)),
        consumption_from_grid_today=round(_require(raw, "grid_power_out", where)),
        state_of_charge_today=round(float(_require(raw, "stateOfCharge", where)), 1),
        start=start,
        timespan=int(timespan.total_seconds()),
    )


def normalize_dcb(raw: dict[str, Any], *, index: int, where: str = "dcb") -> DcbSnapshot:
    """Convert one entry of a battery's ``dcbs`` dict into a :class:`DcbSnapshot`.

    Cell temperatures below :data:`MIN_VALID_CELL_TEMP_C` are dropped.
    """
    fields = _map_fields(raw, _DCB_FIELD_MAP, where)
    voltages = [round(float(v), 2) for v in raw.get("voltages") or ()]
    temperatures = [
        round(float(t), 2)
        for t in raw.get("temperatures") or ()
        if float(t) >= MIN_VALID_CELL_TEMP_C
    ]
    return DcbSnapshot(
        index=index,
        voltages=tuple(voltages),
        temperatures=tuple(temperatures),
        **fields,
    )


def normalize_battery(raw: dict[str, Any], *, index: int, dcb_count: int) -> BatterySnapshot:
    """Convert ``get_battery_data()`` output into a :class:`BatterySnapshot`.

    The DCB count reported in the battery data is unreliable (often 0), so
    the count discovered at connect time is used instead.

    Args:
        raw: pye3dc battery dict with a ``dcbs`` mapping of index -> DCB dict.
        index: Battery index.
        dcb_count: Number of DCBs discovered at connect time.

    Returns:
        The validated battery snapshot with its DCBs ordered by index.
    """
    where = f"battery:{index}"
    fields = _map_fields(raw, _BATTERY_FIELD_MAP, where)
    raw_dcbs = raw.get("dcbs") or {}
    dcbs = []
    for dcb_index in sorted(raw_dcbs):
        dcbs.append(
            normalize_dcb(
                raw_dcbs[dcb_index],
                index=int(dcb_index),
                where=f"{where}/dcb:{dcb_index}",
            )
        )
    return BatterySnapshot(
        index=index,
        dcb_count=dcb_count,
        dcbs=tuple(dcbs),
        **fields,
    )
