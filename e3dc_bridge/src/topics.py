"""
Deterministic topic naming, retention policy and payload encoding.

Topic layout (all below ``{root}/{device_id}``)::

    online                          "online" / "offline" (retained, last will)
    info                            SystemInfo as JSON (retained, once)
    status/<field>                  fast-cycle fields (not retained)
    status/battery:<i>/<field>      battery fields (not retained)
    status/battery:<i>/dcb:<j>/<f>  DCB fields (not retained)
    status_sums/<field>             daily sums (retained)

Payloads are UTF-8 text: numbers in base 10, booleans as ``true``/``false``,
timestamps in RFC 3339, sequences and records as JSON.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel

from e3dc_bridge.src.detector import SUMS_CATEGORY
from e3dc_bridge.src.models import SystemInfo

ONLINE_PATH = "online"
INFO_PATH = "info"
ONLINE_PAYLOAD = b"online"
OFFLINE_PAYLOAD = b"offline"


def device_id_for(info: SystemInfo) -> str:
    """Return the stable device id ``{model}-{serial}`` used in every topic."""
    return f"{info.model}-{info.serial}"


def encode_payload(value: Any) -> bytes:
    """Encode one field value as a UTF-8 MQTT payload.

    Raises:
        TypeError: For values with no defined encoding.
    """
    if isinstance(value, bytes):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json().encode("utf-8")
    if isinstance(value, bool):
        text = "true" if value else "false"
    elif isinstance(value, int | float):
        text = str(value)
    elif isinstance(value, str):
        text = value
    elif isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        text = value.isoformat()
    elif isinstance(value, timedelta):
        text = str(int(value.total_seconds()))
    elif isinstance(value, tuple | list):
        text = json.dumps(list(value))
    elif isinstance(value, dict):
        text = json.dumps(value, default=str)
    else:
        raise TypeError(f"Cannot encode payload of type {type(value).__name__}")
    return text.encode("utf-8")


class TopicMapper:
    """Maps field paths to full topics for one device.

    Args:
        root: Topic root from configuration (e.g. ``"e3dc"``).
        device_id: Device id from :func:`device_id_for`.
    """

    def __init__(self, root: str, device_id: str) -> None:
        self._base = f"{root.rstrip('/')}/{device_id}" if root else device_id

    @property
    def base(self) -> str:
        return self._base

    @property
    def online_topic(self) -> str:
        return self.topic(ONLINE_PATH)

    @property
    def info_topic(self) -> str:
        return self.topic(INFO_PATH)

    def topic(self, path: str) -> str:
        return f"{self._base}/{path}"

    @staticmethod
    def retained(path: str) -> bool:
        """Retention policy for a field path.

        ``online``, ``info`` and ``status_sums/...`` are retained; everything
        under ``status/`` is transient telemetry.
        """
        if path in (ONLINE_PATH, INFO_PATH):
            return True
        return path.split("/", 1)[0] == SUMS_CATEGORY
