"""
The bridge: fetch -> diff -> publish for each cycle, with per-kind baselines.

Holds the last *published* flattened snapshot of each kind (status, daily
sums, batteries). A baseline is replaced wholesale only after every change of
its cycle was published; with no baseline every field counts as changed, so
the first cycle seeds the bus with a full snapshot.

Startup order is fixed: ``online`` (retained), then ``info`` (retained, once),
and only then the first ``status/...`` publish.

CHANGELOG:
- 2026-10-18: Count changed fields explicitly in cycle logs
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from e3dc_bridge.src.detector import (
    ChangeSet,
    FlatSnapshot,
    diff,
    flatten_batteries,
    flatten_daily_stats,
    flatten_status,
)
from e3dc_bridge.src.topics import INFO_PATH, ONLINE_PAYLOAD, ONLINE_PATH, encode_payload

if TYPE_CHECKING:
    from e3dc_bridge.src.acquisition import SnapshotSource
    from e3dc_bridge.src.models import SystemInfo
    from e3dc_bridge.src.publisher import BusSession
    from e3dc_bridge.src.topics import TopicMapper

logger = logging.getLogger(__name__)


class TelemetryBridge:
    """Runs the startup publish and both cycles of the bridge.

    Args:
        source: Typed snapshot source.
        session: Bus session used for every publish.
        topics: Topic mapper for this device.
        float_tolerance: Absolute float tolerance for change detection.
    """

    def __init__(
        self,
        *,
        source: SnapshotSource,
        session: BusSession,
        topics: TopicMapper,
        float_tolerance: float = 0.0,
    ) -> None:
        self._source = source
        self._session = session
        self._topics = topics
        self._float_tolerance = float_tolerance
        self._status_baseline: FlatSnapshot | None = None
        self._sums_baseline: FlatSnapshot | None = None
        self._battery_baseline: FlatSnapshot | None = None
        self._info_published = False
        self.published = 0

    def start(self, info: SystemInfo) -> None:
        """Publish the connection status and the system info record.

        Raises:
            RuntimeError: If called twice; ``info`` is published once per run.
        """
        if self._info_published:
            raise RuntimeError("System info was already published")
        self._publish(ONLINE_PATH, ONLINE_PAYLOAD)
        self._publish(INFO_PATH, encode_payload(info))
        self._info_published = True
        logger.info("Published online status and system info to %s", self._topics.base)

    def run_fast_cycle(self) -> None:
        """Fetch status, publish what changed, replace the status baseline."""
        status = self._source.fetch_status()
        current = flatten_status(status)
        changes = diff(current, self._status_baseline, self._float_tolerance)
        self._publish_changes(changes)
        self._status_baseline = current
        logger.debug(
            "Status: Solar=%dW Battery=%dW Grid=%dW Home=%dW SOC=%.1f%% (%d changed)",
            status.solar_production,
            status.battery_consumption,
            status.grid_production,
            status.house_consumption,
            status.state_of_charge,
            len(changes.changed),
        )

    def run_slow_cycle(self) -> None:
        """Fetch daily sums and batteries, then publish what changed.

        Both fetches complete before anything is published, so a failed
        battery fetch publishes nothing from this cycle.
        """
        stats = self._source.fetch_daily_stats()
        batteries = self._source.fetch_batteries()

        sums_current = flatten_daily_stats(stats)
        battery_current = flatten_batteries(batteries)
        sums_changes = diff(sums_current, self._sums_baseline, self._float_tolerance)
        battery_changes = diff(battery_current, self._battery_baseline, self._float_tolerance)

        self._publish_changes(sums_changes)
        self._publish_changes(battery_changes)
        self._sums_baseline = sums_current
        self._battery_baseline = battery_current

        logger.info(
            "Statistics: Autarky=%.1f%% SelfCons=%.1f%% Solar=%dWh Consumption=%dWh "
            "(%d sums, %d battery fields changed)",
            stats.autarky_today,
            stats.self_consumption_today,
            stats.solar_production_today,
            stats.house_consumption_today,
            len(sums_changes.changed),
            len(battery_changes.changed),
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _publish_changes(self, changes: ChangeSet) -> None:
        for change in changes.changed:
            self._publish(change.path, encode_payload(change.value))
        if changes.removed:
            logger.warning(
                "%d fields no longer reported by the device: %s",
                len(changes.removed),
                ", ".join(sorted({p.rsplit("/", 1)[0] for p in changes.removed})),
            )

    def _publish(self, path: str, payload: bytes) -> None:
        self._session.publish(self._topics.topic(path), payload, self._topics.retained(path))
        self.published += 1
