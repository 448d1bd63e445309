"""Broker transport: threaded paho-mqtt client feeding an asyncio loop."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from typing import Any, Protocol, cast

import paho.mqtt.client as mqtt

from chainview._constants import PUBLISH_QOS, PUBLISH_RETAIN
from chainview.config import ConsoleConfig
from chainview.exceptions import BrokerTransportError

MessageHandler = Callable[[str, bytes], None]


class BrokerTransport(Protocol):
    """Minimal pub/sub surface the router and gateway depend on."""

    def set_message_handler(self, handler: MessageHandler) -> None: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def subscribe(self, pattern: str) -> None: ...

    def unsubscribe_all(self) -> None: ...

    def publish(
        self,
        topic: str,
        payload: str | bytes,
        *,
        qos: int = PUBLISH_QOS,
        retain: bool = PUBLISH_RETAIN,
    ) -> None: ...


class PahoBrokerTransport:
    """Threaded paho-mqtt runtime that hands messages to an asyncio loop.

    Every pattern passed to :meth:`subscribe` is remembered and re-sent from
    ``on_connect``, so subscriptions survive broker reconnects.
    """

    def __init__(
        self,
        config: ConsoleConfig,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._loop = loop
        self._logger = logger or logging.getLogger(__name__)
        self._handler: MessageHandler | None = None
        self._client: mqtt.Client | None = None
        self._running = False
        self._lock = threading.Lock()
        self._subscriptions: list[str] = []

    @property
    def is_running(self) -> bool:
        """Whether the network loop is active."""
        return self._running

    @property
    def subscriptions(self) -> list[str]:
        with self._lock:
            return list(self._subscriptions)

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._handler = handler

    def start(self) -> None:
        """Connect to the configured broker and start the network thread."""
        self.stop()
        config = self._config
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        loop = self._loop
        self._logger.debug(
            "MQTT transport start requested host=%s port=%s protocol=%s client_id=%s",
            config.broker_host,
            config.broker_port,
            config.broker_protocol,
            config.client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=config.client_id,
            protocol=mqtt.MQTTv5,
            transport="websockets" if config.uses_websockets else "tcp",
        )
        client.enable_logger(self._logger)
        if config.uses_websockets:
            client.ws_set_options(path=config.broker_path)
        if config.uses_tls:
            client.tls_set()

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            patterns = self.subscriptions
            self._logger.info("MQTT connected reason=%s resubscribing=%d", reason_code, len(patterns))
            for pattern in patterns:
                c.subscribe(pattern, qos=PUBLISH_QOS)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            handler = self._handler
            if handler is None:
                return
            self._logger.debug("Received PUBLISH topic=%s bytes=%d", msg.topic, len(msg.payload))
            loop.call_soon_threadsafe(handler, msg.topic, bytes(msg.payload))

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.info("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        try:
            client.connect(config.broker_host, config.broker_port, keepalive=config.mqtt_keepalive)
        except OSError as exc:
            raise BrokerTransportError(
                f"Could not connect to broker: {exc}",
                host=config.broker_host,
                port=config.broker_port,
            ) from exc
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect the current client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    def subscribe(self, pattern: str) -> None:
        with self._lock:
            if pattern in self._subscriptions:
                return
            self._subscriptions.append(pattern)
        client = self._client
        if client is not None and client.is_connected():
            client.subscribe(pattern, qos=PUBLISH_QOS)

    def unsubscribe_all(self) -> None:
        with self._lock:
            patterns = list(self._subscriptions)
            self._subscriptions.clear()
        client = self._client
        if patterns and client is not None and client.is_connected():
            client.unsubscribe(patterns)

    def publish(
        self,
        topic: str,
        payload: str | bytes,
        *,
        qos: int = PUBLISH_QOS,
        retain: bool = PUBLISH_RETAIN,
    ) -> None:
        client = self._client
        if client is None:
            raise BrokerTransportError(
                "Transport is not started",
                host=self._config.broker_host,
                port=self._config.broker_port,
            )
        info = client.publish(topic, payload, qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self._logger.warning("MQTT publish failed topic=%s rc=%s", topic, info.rc)
