"""
E3DC-to-MQTT bridge package.

Reads telemetry from an E3DC home power station over RSCP, detects which
fields changed since the last publish, and publishes only the deltas to an
MQTT broker.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""
