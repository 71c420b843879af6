"""
Change detection over flattened snapshots.

Every snapshot kind is flattened into an ordered ``{field_path: value}``
mapping whose paths already carry the topic category and the battery/DCB
index, e.g.::

    status/solar_production
    status_sums/autarky_today
    status/battery:0/rsoc
    status/battery:0/dcb:1/voltages

One generic :func:`diff` then compares the current mapping against the last
published one. Because batteries and DCBs are addressed by index inside the
path, "the same battery" across two snapshots is decided by index, a new
battery contributes all of its paths, and a vanished battery shows up as
removed paths.

CHANGELOG:
- 2026-10-18: Drop ChangeSet truthiness and length; callers read changed and removed
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from e3dc_bridge.src.errors import SnapshotShapeError
from e3dc_bridge.src.models import (
    BatterySnapshot,
    DailyStatsSnapshot,
    StatusSnapshot,
)

STATUS_CATEGORY = "status"
SUMS_CATEGORY = "status_sums"

FlatSnapshot = dict[str, Any]
"""Ordered mapping of field path -> value."""


@dataclass(frozen=True, slots=True)
class Change:
    """One changed field: its path and complete new value."""

    path: str
    value: Any


@dataclass(slots=True)
class ChangeSet:
    """Result of comparing two flattened snapshots.

    Attributes:
        changed: Paths whose value differs or that are new, in snapshot order.
        removed: Paths present in the baseline but absent now (a battery or
            DCB disappeared).
    """

    changed: list[Change] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def paths(self) -> list[str]:
        return [c.path for c in self.changed]


# ---------------------------------------------------------------------------
# Flattening
# ---------------------------------------------------------------------------


def _scalar_fields(model: BaseModel, prefix: str, exclude: Iterable[str] = ()) -> FlatSnapshot:
    skip = set(exclude)
    return {
        f"{prefix}/{name}": getattr(model, name)
        for name in type(model).model_fields
        if name not in skip
    }


def flatten_status(snapshot: StatusSnapshot) -> FlatSnapshot:
    return _scalar_fields(snapshot, STATUS_CATEGORY)


def flatten_daily_stats(snapshot: DailyStatsSnapshot) -> FlatSnapshot:
    return _scalar_fields(snapshot, SUMS_CATEGORY)


def flatten_batteries(batteries: Sequence[BatterySnapshot]) -> FlatSnapshot:
    """Flatten all batteries and their DCBs into one mapping.

    Raises:
        SnapshotShapeError: If two entries share the same index.
    """
    flat: FlatSnapshot = {}
    seen: set[int] = set()
    for battery in batteries:
        if battery.index in seen:
            raise SnapshotShapeError(f"duplicate battery index {battery.index}")
        seen.add(battery.index)
        prefix = f"{STATUS_CATEGORY}/battery:{battery.index}"
        flat.update(_scalar_fields(battery, prefix, exclude=("dcbs",)))
        dcb_seen: set[int] = set()
        for dcb in battery.dcbs:
            if dcb.index in dcb_seen:
                raise SnapshotShapeError(
                    f"duplicate dcb index {dcb.index} in battery {battery.index}"
                )
            dcb_seen.add(dcb.index)
            flat.update(_scalar_fields(dcb, f"{prefix}/dcb:{dcb.index}"))
    return flat


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


def values_equal(old: Any, new: Any, tolerance: float = 0.0) -> bool:
    """Compare two field values.

    Floats compare exactly unless *tolerance* > 0, in which case an absolute
    difference up to *tolerance* counts as equal. Sequences compare element
    by element and differ whenever their lengths differ. Booleans, integers,
    strings and datetimes always compare exactly.
    """
    if isinstance(old, tuple | list) or isinstance(new, tuple | list):
        if not (isinstance(old, tuple | list) and isinstance(new, tuple | list)):
            return False
        if len(old) != len(new):
            return False
        return all(values_equal(a, b, tolerance) for a, b in zip(old, new, strict=True))
    if tolerance > 0 and isinstance(old, float) and isinstance(new, float):
        return abs(old - new) <= tolerance
    if type(old) is not type(new):
        return False
    return old == new


def diff(
    current: Mapping[str, Any],
    baseline: Mapping[str, Any] | None,
    tolerance: float = 0.0,
) -> ChangeSet:
    """Return the minimal set of changes from *baseline* to *current*.

    Args:
        current: Flattened snapshot just fetched.
        baseline: Flattened snapshot last published, or ``None`` before the
            first successful publish (every field is then a change).
        tolerance: Absolute float tolerance; 0 means exact equality.

    Returns:
        The change set, with changes in the order of *current*.
    """
    if baseline is None:
        return ChangeSet(changed=[Change(path, value) for path, value in current.items()])

    changes = ChangeSet()
    for path, value in current.items():
        if path not in baseline or not values_equal(baseline[path], value, tolerance):
            changes.changed.append(Change(path, value))
    changes.removed = [path for path in baseline if path not in current]
    return changes
