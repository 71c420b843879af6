"""
E3DC device client on top of the pye3dc RSCP library.

Opens one local RSCP connection, discovers the installed batteries and their
DCB counts once, and exposes one method per snapshot kind. Every library call
goes through :meth:`E3dcClient._query`, which converts any library or socket
failure into :class:`~e3dc_bridge.src.errors.DeviceError`. There is no retry
and no backoff: a failed query is fatal for the process.

Raw dictionaries are handed to the pure functions in
:mod:`e3dc_bridge.src.normalizer`.

CHANGELOG:
- 2026-10-18: Report a malformed battery list as SnapshotShapeError
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from e3dc import E3DC

from e3dc_bridge.src.errors import DeviceError, SnapshotShapeError
from e3dc_bridge.src.models import (
    BatterySnapshot,
    DailyStatsSnapshot,
    StatusSnapshot,
    SystemInfo,
)
from e3dc_bridge.src.normalizer import (
    normalize_battery,
    normalize_daily_stats,
    normalize_status,
    normalize_system_info,
)

logger = logging.getLogger(__name__)


class DeviceClient(Protocol):
    """Capability consumed by snapshot acquisition."""

    def connect(self) -> None: ...

    def fetch_system_info(self) -> SystemInfo: ...

    def fetch_status(self) -> StatusSnapshot: ...

    def fetch_daily_stats(self) -> DailyStatsSnapshot: ...

    def fetch_batteries(self) -> list[BatterySnapshot]: ...


# ---------------------------------------------------------------------------
# Statistics window
# ---------------------------------------------------------------------------


def daily_window(now: datetime, stat_interval: timedelta) -> tuple[datetime, timedelta]:
    """Return the ``(start, timespan)`` of the daily statistics query.

    Normally the window runs from today's UTC midnight until *now*. During
    the first statistics interval after midnight the previous full day is
    returned instead, so the final sums of yesterday are still published
    before the counters restart.

    Args:
        now: Current time (aware, UTC).
        stat_interval: Slow-cycle interval.

    Returns:
        Window start and length.
    """
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    elapsed = now - midnight
    if elapsed <= stat_interval:
        return midnight - timedelta(days=1), timedelta(days=1)
    return midnight, timedelta(seconds=int(elapsed.total_seconds()))


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class E3dcClient:
    """RSCP client for a local E3DC power station.

    Args:
        host: Device IP address or hostname.
        username: E3DC portal username.
        password: E3DC portal password.
        key: RSCP key configured on the device.
        stat_interval: Slow-cycle interval, used to pick the statistics
            window.
        clock: Returns the current aware UTC time. Injected for tests.
    """

    def __init__(
        self,
        *,
        host: str,
        username: str,
        password: str,
        key: str,
        stat_interval: timedelta,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._host = host
        self._username = username
        self._password = password
        self._key = key
        self._stat_interval = stat_interval
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._e3dc: Any = None
        self._batteries: list[tuple[int, int]] = []

    @property
    def batteries(self) -> list[tuple[int, int]]:
        """Discovered ``(battery_index, dcb_count)`` pairs."""
        return list(self._batteries)

    def connect(self) -> None:
        """Open the RSCP connection and discover installed batteries.

        Raises:
            DeviceError: If the connection or the battery scan fails.
            SnapshotShapeError: If the battery list is malformed.
        """
        logger.info("Connecting to E3DC at %s", self._host)
        self._e3dc = self._query(
            "connect",
            E3DC,
            E3DC.CONNECT_LOCAL,
            username=self._username,
            password=self._password,
            ipAddress=self._host,
            key=self._key,
        )
        found = self._query("get_batteries", self._handle().get_batteries, keepAlive=True)
        try:
            self._batteries = [(int(b["index"]), int(b.get("dcbs", 0))) for b in found or ()]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise SnapshotShapeError(f"get_batteries: malformed battery list: {exc!r}") from exc
        logger.info("Found %d battery/batteries", len(self._batteries))
        for index, dcb_count in self._batteries:
            logger.info("  Battery %d: %d DCB modules", index, dcb_count)

    def fetch_system_info(self) -> SystemInfo:
        raw = self._query("fetch_system_info", self._handle().get_system_info, keepAlive=True)
        return normalize_system_info(raw, ts=self._clock())

    def fetch_status(self) -> StatusSnapshot:
        raw = self._query("fetch_status", self._handle().poll, keepAlive=True)
        return normalize_status(raw, ts=self._clock())

    def fetch_daily_stats(self) -> DailyStatsSnapshot:
        now = self._clock()
        start, timespan = daily_window(now, self._stat_interval)
        raw = self._query(
            "fetch_daily_stats",
            self._handle().get_db_data_timestamp,
            startTimestamp=int(start.timestamp()),
            timespanSeconds=int(timespan.total_seconds()),
            keepAlive=True,
        )
        return normalize_daily_stats(raw, ts=now, start=start, timespan=timespan)

    def fetch_batteries(self) -> list[BatterySnapshot]:
        """Query every battery discovered at connect time, DCBs included."""
        snapshots = []
        for index, dcb_count in self._batteries:
            raw = self._query(
                f"fetch_battery:{index}",
                self._handle().get_battery_data,
                batIndex=index,
                dcbs=list(range(dcb_count)),
                keepAlive=True,
            )
            snapshots.append(normalize_battery(raw, index=index, dcb_count=dcb_count))
        return snapshots

    def disconnect(self) -> None:
        """Close the RSCP connection, if open."""
        if self._e3dc is None:
            return
        try:
            self._e3dc.disconnect()
        except Exception:
            logger.warning("Error disconnecting from E3DC", exc_info=True)
        else:
            logger.info("E3DC client disconnected")
        self._e3dc = None

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _handle(self) -> Any:
        if self._e3dc is None:
            raise DeviceError("query", "client is not connected")
        return self._e3dc

    def _query(self, operation: str, call: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run one library call, converting any failure into DeviceError."""
        try:
            return call(*args, **kwargs)
        except Exception as exc:
            raise DeviceError(operation, f"{type(exc).__name__}: {exc}") from exc
