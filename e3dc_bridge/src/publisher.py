"""
Blocking MQTT publish session on top of paho-mqtt.

The paho network loop runs on its own background thread (``loop_start()``);
the bridge only calls :meth:`MqttSession.publish`, which waits for the
broker's QoS 1 acknowledgement and raises
:class:`~e3dc_bridge.src.errors.PublishError` on any failure. There is no
local retry or queueing: a lost connection marks the session as failed and
the next publish raises, which stops the bridge.

The connection-status topic is registered as last will (``offline``,
retained) before connecting, so the broker announces an ungraceful
disconnect on the bridge's behalf.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol

import paho.mqtt.client as mqtt

from e3dc_bridge.src.errors import PublishError
from e3dc_bridge.src.topics import OFFLINE_PAYLOAD

logger = logging.getLogger(__name__)

QOS = 1


class BusSession(Protocol):
    """Capability consumed by the bridge."""

    def publish(self, topic: str, payload: bytes, retained: bool) -> None: ...


class MqttSession:
    """One MQTT session with last will and blocking publishes.

    Args:
        client_id: MQTT client id.
        status_topic: Connection-status topic; used for the last will and
            for the ``offline`` message on graceful shutdown.
        host: Broker hostname, ignored when *socket_path* is set.
        port: Broker TCP port.
        socket_path: Unix domain socket of the broker, takes precedence over
            *host*/*port*.
        username: Optional username; credentials are only sent when set.
        password: Password for *username*.
        tls: Enable TLS with the system CA store.
        keepalive_s: MQTT keepalive interval in seconds.
        timeout_s: Seconds to wait for CONNACK and for each publish
            acknowledgement.
    """

    def __init__(
        self,
        *,
        client_id: str,
        status_topic: str,
        host: str | None = None,
        port: int = 1883,
        socket_path: str | None = None,
        username: str = "",
        password: str = "",
        tls: bool = False,
        keepalive_s: int = 60,
        timeout_s: float = 10.0,
    ) -> None:
        if not host and not socket_path:
            raise ValueError("MQTT host or socket must be configured")
        self._status_topic = status_topic
        self._host = host
        self._port = port
        self._socket_path = socket_path
        self._keepalive_s = keepalive_s
        self._timeout_s = timeout_s
        self._connected = threading.Event()
        self._failed = threading.Event()
        self._failure_reason = ""

        transport = "unix" if socket_path else "tcp"
        self._client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            transport=transport,
        )
        if username:
            self._client.username_pw_set(username, password)
        if tls:
            self._client.tls_set()
        self._client.will_set(status_topic, payload=OFFLINE_PAYLOAD, qos=QOS, retain=True)
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect

    @property
    def address(self) -> str:
        if self._socket_path:
            return f"unix:{self._socket_path}"
        return f"{self._host}:{self._port}"

    @property
    def connected(self) -> bool:
        return self._connected.is_set() and not self._failed.is_set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Connect, start the network thread and wait for CONNACK.

        Raises:
            PublishError: If the broker is unreachable or refuses the
                connection.
        """
        logger.info("Connecting to MQTT broker at %s", self.address)
        try:
            if self._socket_path:
                self._client.connect(self._socket_path, keepalive=self._keepalive_s)
            else:
                self._client.connect(self._host, self._port, keepalive=self._keepalive_s)
        except (OSError, ValueError) as exc:
            raise PublishError(self.address, f"connect failed: {exc}") from exc
        self._client.loop_start()

        if not self._connected.wait(self._timeout_s):
            self._client.loop_stop()
            reason = self._failure_reason or f"no CONNACK within {self._timeout_s}s"
            raise PublishError(self.address, reason)
        if self._failed.is_set():
            self._client.loop_stop()
            raise PublishError(self.address, self._failure_reason)
        logger.info("MQTT connected to %s", self.address)

    def close(self) -> None:
        """Publish ``offline`` and disconnect cleanly (graceful shutdown only)."""
        if self.connected:
            try:
                self.publish(self._status_topic, OFFLINE_PAYLOAD, retained=True)
            except PublishError:
                logger.warning("Could not publish offline status", exc_info=True)
        self._client.disconnect()
        self._client.loop_stop()
        logger.info("MQTT session closed")

    def abort(self) -> None:
        """Stop the network thread without a DISCONNECT packet.

        The broker then delivers the last will once the socket closes.
        """
        self._client.loop_stop()

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish(self, topic: str, payload: bytes, retained: bool) -> None:
        """Publish one message and wait for the broker acknowledgement.

        Raises:
            PublishError: If the session has failed, the message could not be
                queued, or no acknowledgement arrived in time.
        """
        if self._failed.is_set():
            raise PublishError(topic, self._failure_reason or "connection lost")
        info = self._client.publish(topic, payload, qos=QOS, retain=retained)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(topic, mqtt.error_string(info.rc))
        try:
            info.wait_for_publish(timeout=self._timeout_s)
        except (RuntimeError, ValueError) as exc:
            raise PublishError(topic, str(exc)) from exc
        if not info.is_published():
            raise PublishError(topic, f"not acknowledged within {self._timeout_s}s")
        logger.debug("Published %s (retain=%s)", topic, retained)

    # ------------------------------------------------------------------
    # paho callbacks (network thread)
    # ------------------------------------------------------------------

    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        if reason_code == 0:
            self._connected.set()
            return
        self._failure_reason = f"connection refused: {reason_code}"
        logger.error("MQTT connection failed: %s", reason_code)
        self._failed.set()
        self._connected.set()

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None) -> None:
        if reason_code == 0:
            logger.info("MQTT disconnected")
            return
        self._failure_reason = f"connection lost: {reason_code}"
        logger.error("MQTT connection lost: %s", reason_code)
        self._failed.set()
