"""
Pydantic models for E3DC telemetry snapshots.

Each model is one immutable snapshot of device state after raw RSCP values
have been converted to engineering units. Power and energy are integers
(W, Wh); ratios, voltages, currents and temperatures are floats.

- SystemInfo: static installation data, fetched once at startup.
- StatusSnapshot: live power flows, fetched every fast cycle.
- DailyStatsSnapshot: today's energy sums, fetched every slow cycle.
- BatterySnapshot / DcbSnapshot: per-battery and per-DCB detail, fetched
  every slow cycle.

CHANGELOG:
- 2026-10-18: Add DCB manufacture_date
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, NonNegativeInt


class _Snapshot(BaseModel):
    """Common configuration: snapshots are frozen once captured."""

    model_config = ConfigDict(frozen=True)


class SystemInfo(_Snapshot):
    """Static installation data of the power station.

    Published once, retained, as a single JSON record under ``info``.

    Attributes:
        time: Device timestamp of the query.
        serial: Serial number without the vendor prefix.
        model: Model name derived from the serial number.
        mac_address: MAC address of the device.
        ip_address: IP address reported by the device.
        release: Software release string.
        installed_peak_power: Installed PV peak power in watts.
        installed_battery_capacity: Installed battery capacity in Wh.
        max_ac_power: Maximum AC power in watts.
        max_battery_charge_power: Maximum battery charge power in watts.
        max_battery_discharge_power: Maximum battery discharge power in watts.
        derate_percent: Feed-in derating threshold in percent.
        derate_power: Feed-in derating threshold in watts.
        external_source_available: Whether an additional source is installed.
    """

    time: datetime
    serial: str
    model: str
    mac_address: str
    ip_address: str
    release: str
    installed_peak_power: int
    installed_battery_capacity: int | None = None
    max_ac_power: int | None = None
    max_battery_charge_power: int | None = None
    max_battery_discharge_power: int | None = None
    derate_percent: float
    derate_power: int
    external_source_available: bool


class StatusSnapshot(_Snapshot):
    """Live power flows, published under ``status/``.

    Signed device values are split into two non-negative fields so that
    dashboards do not need to interpret signs.

    Attributes:
        time: Device timestamp of the snapshot.
        solar_production: PV production in watts.
        battery_charge: Power flowing into the battery in watts.
        battery_discharge: Power flowing out of the battery in watts.
        battery_consumption: Signed battery power (positive = charging).
        house_consumption: House consumption in watts.
        consumption_from_grid: Power drawn from the grid in watts.
        export_to_grid: Power fed into the grid in watts.
        grid_production: Signed grid power (positive = drawing from grid).
        solar_production_excess: Solar production minus house consumption.
        additional: Power of an additional source (e.g. second inverter).
        wb_consumption: Wallbox consumption in watts.
        state_of_charge: Battery state of charge in percent.
        autarky: Autarky in percent.
        self_consumption: Self-consumption in percent.
    """

    time: datetime
    solar_production: int
    battery_charge: int
    battery_discharge: int
    battery_consumption: int
    house_consumption: int
    consumption_from_grid: int
    export_to_grid: int
    grid_production: int
    solar_production_excess: int
    additional: int
    wb_consumption: int
    state_of_charge: float
    autarky: float
    self_consumption: float


class DailyStatsSnapshot(_Snapshot):
    """Energy sums for the current day, published under ``status_sums/``.

    Attributes:
        time: Device timestamp of the query.
        autarky_today: Autarky of the window in percent.
        self_consumption_today: Self-consumption of the window in percent.
        solar_production_today: PV energy in Wh.
        house_consumption_today: House consumption in Wh.
        battery_charge_today: Energy charged into the battery in Wh.
        battery_discharge_today: Energy discharged from the battery in Wh.
        export_to_grid_today: Energy fed into the grid in Wh.
        consumption_from_grid_today: Energy drawn from the grid in Wh.
        state_of_charge_today: Battery charge level in percent.
        start: Start of the statistics window.
        timespan: Length of the statistics window in seconds.
    """

    time: datetime
    autarky_today: float
    self_consumption_today: float
    solar_production_today: int
    house_consumption_today: int
    battery_charge_today: int
    battery_discharge_today: int
    export_to_grid_today: int
    consumption_from_grid_today: int
    state_of_charge_today: float
    start: datetime
    timespan: int


class DcbSnapshot(_Snapshot):
    """One DC battery controller (cell module) inside a battery.

    ``voltages`` and ``temperatures`` are per-cell sequences and are
    published as one JSON array each. ``manufacture_date`` is a Unix
    timestamp in seconds.
    """

    index: NonNegativeInt
    voltage: float
    voltage_avg_30s: float
    current: float
    current_avg_30s: float
    soc: float
    soh: float
    cycle_count: int
    design_capacity: float
    design_voltage: float
    full_charge_capacity: float
    remaining_capacity: float
    max_charge_voltage: float
    max_charge_current: float
    max_discharge_current: float
    end_of_discharge: float
    max_charge_temperature: float
    min_charge_temperature: float
    device_name: str
    manufacture_name: str
    manufacture_date: float
    serial_no: int
    serial_code: str
    fw_version: float
    pcb_version: float
    protocol_version: float
    error: int
    warning: int
    status: int
    series_cell_count: int
    parallel_cell_count: int
    sensor_count: int
    voltages: tuple[float, ...] = ()
    temperatures: tuple[float, ...] = ()


class BatterySnapshot(_Snapshot):
    """One physical battery with its DCB modules.

    Capacities are in Ah, voltages in V, currents in A, times in seconds.
    """

    index: NonNegativeInt
    rsoc: float
    rsoc_real: float
    asoc: float
    current: float
    module_voltage: float
    terminal_voltage: float
    max_battery_voltage: float
    eod_voltage: float
    status_code: int
    error_code: int
    charge_cycles: int
    fcc: float
    rc: float
    design_capacity: float
    usable_capacity: float
    usable_remaining_capacity: float
    max_charge_current: float
    max_discharge_current: float
    max_dcb_cell_temp: float
    min_dcb_cell_temp: float
    total_use_time: int
    total_discharge_time: int
    device_name: str
    dcb_count: NonNegativeInt
    ready_for_shutdown: bool
    training_mode: bool
    dcbs: tuple[DcbSnapshot, ...] = ()
