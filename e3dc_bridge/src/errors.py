"""
Exception hierarchy for the bridge.

Every failure inside acquisition, change detection or publishing is fatal:
it propagates to the scheduler, which stops the loop, and the entrypoint
exits non-zero so the process supervisor can restart the bridge.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for all fatal bridge errors."""


class DeviceError(BridgeError):
    """Connecting to or querying the E3DC device failed.

    Args:
        operation: Name of the device operation that failed
            (e.g. ``"fetch_status"``).
        reason: Human-readable cause, usually the wrapped exception text.
    """

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(f"Device operation '{operation}' failed: {reason}")
        self.operation = operation
        self.reason = reason


class PublishError(BridgeError):
    """Connecting to the broker or publishing a message failed.

    Args:
        topic: Topic being published, or the broker address for connect
            failures.
        reason: Human-readable cause.
    """

    def __init__(self, topic: str, reason: str) -> None:
        super().__init__(f"Failed to publish message to topic '{topic}': {reason}")
        self.topic = topic
        self.reason = reason


class SnapshotShapeError(BridgeError):
    """A snapshot did not have the expected shape (missing keys, bad indices)."""
