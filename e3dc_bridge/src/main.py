"""
Entrypoint for the E3DC-to-MQTT bridge.

Startup sequence:
1. Load and validate configuration (exit code 2 on invalid config).
2. Connect to the E3DC device and fetch the system info record, which
   yields the device id used in every topic.
3. Open the MQTT session with the ``offline`` last will registered.
4. Publish ``online`` and ``info``, then hand control to the dual-rate
   scheduler: status every fast tick, statistics and batteries every slow
   cycle.

The process is a single blocking thread plus the paho network thread. Any
failure stops the loop; the MQTT session is then aborted without a
DISCONNECT packet so the broker delivers the last will, and the process
exits with code 1 for the supervisor to restart it. SIGTERM/SIGINT set a
shutdown event; the current cycle finishes, ``offline`` is published and the
process exits with code 0.

Structured JSON logging is used for all events.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import argparse
import hashlib
import json
import logging
import signal
import sys
import threading
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from pydantic import ValidationError

from e3dc_bridge.src.acquisition import SnapshotSource
from e3dc_bridge.src.bridge import TelemetryBridge
from e3dc_bridge.src.config import BridgeSettings
from e3dc_bridge.src.device import E3dcClient
from e3dc_bridge.src.errors import BridgeError
from e3dc_bridge.src.publisher import MqttSession
from e3dc_bridge.src.scheduler import DualRateScheduler
from e3dc_bridge.src.topics import TopicMapper, device_id_for

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for the bridge.

    Sets up the root logger with a JSON-formatted handler writing to stderr.

    Args:
        level: Root log level name.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def _masked_token(value: str | None) -> str:
    """Return a short non-reversible secret fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


# ---------------------------------------------------------------------------
# Startup config logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: BridgeSettings) -> None:
    """Log a config summary at startup, excluding secrets.

    The E3DC password, RSCP key and MQTT password are only logged as
    fingerprints.

    Args:
        settings: Validated bridge settings.
    """
    logger.info(
        "Bridge starting with config: "
        "e3dc_host=%s, e3dc_username=%s, "
        "status_interval_s=%s, statistics_interval_s=%s, "
        "mqtt_root=%s, mqtt_host=%s, mqtt_port=%s, mqtt_socket=%s, "
        "mqtt_username=%s, mqtt_tls=%s, float_tolerance=%s, "
        "e3dc_password_masked=%s, e3dc_key_masked=%s, mqtt_password_masked=%s",
        settings.e3dc_host,
        settings.e3dc_username,
        settings.status_interval_s,
        settings.statistics_interval_s,
        settings.mqtt_root,
        settings.mqtt_host,
        settings.mqtt_port,
        settings.mqtt_socket,
        settings.mqtt_username,
        settings.mqtt_tls,
        settings.float_tolerance,
        _masked_token(settings.e3dc_password.get_secret_value()),
        _masked_token(settings.e3dc_key.get_secret_value()),
        _masked_token(settings.mqtt_password.get_secret_value()),
    )


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def run(settings: BridgeSettings, shutdown_event: threading.Event) -> None:
    """Connect device and broker, then run the scheduler until shutdown.

    Args:
        settings: Validated bridge settings.
        shutdown_event: Set to stop the scheduler after the current cycle.

    Raises:
        BridgeError: On any device, shape or publish failure.
    """
    client = E3dcClient(
        host=settings.e3dc_host,
        username=settings.e3dc_username,
        password=settings.e3dc_password.get_secret_value(),
        key=settings.e3dc_key.get_secret_value(),
        stat_interval=timedelta(seconds=settings.statistics_interval_s),
    )
    client.connect()
    try:
        source = SnapshotSource(client)
        info = source.fetch_system_info()
        device_id = device_id_for(info)
        topics = TopicMapper(settings.mqtt_root, device_id)
        logger.info("Device %s (release %s), publishing below %s", device_id, info.release, topics.base)

        session = MqttSession(
            client_id=f"e3dc-mqtt-bridge-{device_id}",
            status_topic=topics.online_topic,
            host=settings.mqtt_host,
            port=settings.mqtt_port,
            socket_path=settings.mqtt_socket,
            username=settings.mqtt_username,
            password=settings.mqtt_password.get_secret_value(),
            tls=settings.mqtt_tls,
            keepalive_s=settings.mqtt_keepalive_s,
            timeout_s=settings.mqtt_connect_timeout_s,
        )
        session.connect()

        bridge = TelemetryBridge(
            source=source,
            session=session,
            topics=topics,
            float_tolerance=settings.float_tolerance,
        )
        scheduler = DualRateScheduler(
            fast_interval_s=settings.status_interval_s,
            slow_interval_s=settings.statistics_interval_s,
            shutdown_event=shutdown_event,
        )
        try:
            bridge.start(info)
            scheduler.run(bridge.run_fast_cycle, bridge.run_slow_cycle)
        except BaseException:
            session.abort()
            raise
        session.close()
        logger.info(
            "Bridge stopped: %d ticks, %d slow cycles, %d overruns, %d messages",
            scheduler.ticks,
            scheduler.slow_runs,
            scheduler.overruns,
            bridge.published,
        )
    finally:
        client.disconnect()


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="e3dc-mqtt-bridge",
        description="Publish E3DC power station telemetry to an MQTT broker.",
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Read configuration from this file instead of ./.env",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Force DEBUG log level (overrides LOG_LEVEL)",
    )
    return parser


def _handle_signal(shutdown_event: threading.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event.

    Args:
        shutdown_event: The event to set for graceful shutdown.
    """
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main(argv: Sequence[str] | None = None) -> int:
    """Synchronous entrypoint for the bridge.

    Returns:
        Process exit code: 0 after a graceful shutdown, 1 after a fatal
        bridge error, 2 for invalid configuration.
    """
    args = build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.debug else "INFO")

    try:
        if args.env_file:
            settings = BridgeSettings(_env_file=args.env_file)
        else:
            settings = BridgeSettings()
    except ValidationError as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_CONFIG

    if not args.debug:
        logging.getLogger().setLevel(settings.log_level)
    log_config_summary(settings)

    shutdown_event = threading.Event()
    for sig in (signal.SIGTERM, signal.SIGINT):
        signal.signal(sig, lambda signum, frame: _handle_signal(shutdown_event))

    try:
        run(settings, shutdown_event)
    except BridgeError as exc:
        logger.error("Bridge stopped on fatal error: %s", exc)
        return EXIT_FAILURE
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
