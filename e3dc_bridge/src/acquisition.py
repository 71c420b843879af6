"""
Snapshot acquisition: one device round trip -> one typed snapshot or a typed failure.

Wraps a :class:`~e3dc_bridge.src.device.DeviceClient` so that the bridge only
ever sees fully populated snapshots, :class:`DeviceError` or
:class:`SnapshotShapeError`. Validation failures from the normalizer
(pydantic, type or value errors) become shape errors; battery and DCB
indices are checked to be contiguous from zero.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, TypeVar

from pydantic import ValidationError

from e3dc_bridge.src.errors import BridgeError, SnapshotShapeError

if TYPE_CHECKING:
    from e3dc_bridge.src.device import DeviceClient
    from e3dc_bridge.src.models import (
        BatterySnapshot,
        DailyStatsSnapshot,
        StatusSnapshot,
        SystemInfo,
    )

logger = logging.getLogger(__name__)

T = TypeVar("T")


def check_contiguous(indices: Sequence[int], what: str) -> None:
    """Raise SnapshotShapeError unless *indices* are exactly ``0..n-1`` in order."""
    expected = list(range(len(indices)))
    if list(indices) != expected:
        raise SnapshotShapeError(
            f"{what} indices must be contiguous from 0, got {list(indices)}"
        )


def check_batteries(batteries: Sequence[BatterySnapshot]) -> None:
    """Validate battery and DCB index layout of one slow-cycle fetch."""
    check_contiguous([b.index for b in batteries], "battery")
    for battery in batteries:
        check_contiguous([d.index for d in battery.dcbs], f"battery:{battery.index} dcb")


class SnapshotSource:
    """Typed, fallible snapshot fetches on top of a device client.

    Args:
        client: A connected device client.
    """

    def __init__(self, client: DeviceClient) -> None:
        self._client = client

    def fetch_system_info(self) -> SystemInfo:
        return self._fetch("fetch_system_info", self._client.fetch_system_info)

    def fetch_status(self) -> StatusSnapshot:
        return self._fetch("fetch_status", self._client.fetch_status)

    def fetch_daily_stats(self) -> DailyStatsSnapshot:
        return self._fetch("fetch_daily_stats", self._client.fetch_daily_stats)

    def fetch_batteries(self) -> list[BatterySnapshot]:
        batteries = list(self._fetch("fetch_batteries", self._client.fetch_batteries))
        check_batteries(batteries)
        return batteries

    def _fetch(self, operation: str, call: Callable[[], T]) -> T:
        started = time.monotonic()
        try:
            result = call()
        except BridgeError:
            raise
        except (ValidationError, TypeError, ValueError, KeyError) as exc:
            raise SnapshotShapeError(f"{operation}: malformed snapshot: {exc}") from exc
        logger.debug("%s took %.3fs", operation, time.monotonic() - started)
        return result
