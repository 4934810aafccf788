"""
Publish Transports
==================

Transports deliver one payload to one topic and report the outcome through
an asyncio future.

This module provides:
    - Transport: protocol used by the publisher gateway
    - MQTTTransport: paho-mqtt client running its network loop in a thread
    - DryRunTransport: acknowledges everything locally (no broker)

Design Rules:
    - publish() never blocks and never raises; failures arrive via the future
    - Retries and reconnects belong to the transport client, not the pipeline
"""

import asyncio
import logging
import threading
from typing import Dict, Optional, Protocol, Set
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt


logger = logging.getLogger(__name__)


class PublishError(Exception):
    """Raised (through a publish future) when a payload was not delivered."""
    pass


class Transport(Protocol):
    """
    Protocol for publish transports.
    
    Implemented by:
        - MQTTTransport (production)
        - DryRunTransport (local runs, probes)
    """
    
    @property
    def connected(self) -> bool:
        ...
    
    def connect(self) -> None:
        ...
    
    def disconnect(self) -> None:
        ...
    
    def publish(self, topic: str, payload: bytes, qos: int) -> "asyncio.Future[None]":
        """
        Hand a payload to the transport.
        
        Must be called from the event loop thread.
        
        Returns:
            Future resolved on delivery, or failed with PublishError
        """
        ...
    
    def stats(self) -> dict:
        ...


def _failed_future(error: Exception) -> "asyncio.Future[None]":
    future = asyncio.get_running_loop().create_future()
    future.set_exception(error)
    return future


class DryRunTransport:
    """
    Transport that acknowledges every publish immediately.
    
    Attributes:
        published: Number of payloads acknowledged
        last_payloads: Most recent payload per topic
    """
    
    def __init__(self) -> None:
        self.published: int = 0
        self.last_payloads: Dict[str, bytes] = {}
    
    @property
    def connected(self) -> bool:
        return True
    
    def connect(self) -> None:
        logger.info("Dry-run transport active, frames are not sent to a broker")
    
    def disconnect(self) -> None:
        pass
    
    def publish(self, topic: str, payload: bytes, qos: int) -> "asyncio.Future[None]":
        future = asyncio.get_running_loop().create_future()
        self.published += 1
        self.last_payloads[topic] = payload
        future.set_result(None)
        return future
    
    def stats(self) -> dict:
        return {
            "connected": True,
            "broker": "dry-run",
            "published": self.published,
        }


class MQTTTransport:
    """
    paho-mqtt backed transport.
    
    The paho network loop runs in its own thread (loop_start). Publish
    acknowledgements arrive on that thread and are marshalled back onto
    the asyncio loop that issued the publish.
    
    Attributes:
        broker: Broker URL (mqtt://host:port or mqtts://host:port)
        connected: Whether the client currently holds a broker session
        
    Example:
        transport = MQTTTransport("mqtt://localhost:1883")
        transport.connect()
        
        await transport.publish("led/display1", payload, qos=1)
        
        transport.disconnect()
    """
    
    def __init__(
        self,
        broker: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = "",
        keepalive: int = 60,
        reconnect_delay_seconds: float = 5.0,
    ) -> None:
        """
        Initialize MQTT transport.
        
        Args:
            broker: Broker URL
            username: Optional username
            password: Optional password
            client_id: Client id (empty = broker/paho generated)
            keepalive: Keepalive interval in seconds
            reconnect_delay_seconds: Upper bound for reconnect backoff
        """
        parts = urlsplit(broker if "://" in broker else f"mqtt://{broker}")
        if parts.scheme not in ("mqtt", "mqtts", "tcp", "ssl"):
            raise ValueError(f"Unsupported broker scheme: {parts.scheme}")
        if not parts.hostname:
            raise ValueError(f"Broker URL has no host: {broker}")
        
        self.broker = broker
        self._host = parts.hostname
        self._tls = parts.scheme in ("mqtts", "ssl")
        self._port = parts.port or (8883 if self._tls else 1883)
        self._keepalive = keepalive
        
        self._client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
        )
        if username:
            self._client.username_pw_set(username, password)
        if self._tls:
            self._client.tls_set()
        self._client.reconnect_delay_set(
            min_delay=1,
            max_delay=max(1, int(reconnect_delay_seconds)),
        )
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_publish = self._on_publish
        
        # mid -> (loop, future); guarded because paho calls back from its thread
        self._lock = threading.RLock()
        self._pending: Dict[int, tuple] = {}
        self._early_acks: Set[int] = set()
        
        self._connected: bool = False
        self._started: bool = False
        self.published: int = 0
        self.failed: int = 0
    
    @property
    def connected(self) -> bool:
        return self._connected
    
    def connect(self) -> None:
        """Start connecting in the background; paho keeps reconnecting."""
        logger.info(f"Connecting to MQTT broker: {self.broker}")
        self._client.connect_async(self._host, self._port, keepalive=self._keepalive)
        self._client.loop_start()
        self._started = True
    
    def disconnect(self) -> None:
        """Close the session and stop the network thread."""
        if not self._started:
            return
        self._client.disconnect()
        self._client.loop_stop()
        self._started = False
        self._connected = False
        
        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()
            self._early_acks.clear()
        for loop, future in pending:
            self._resolve(loop, future, PublishError("MQTT client disconnected"))
        
        logger.info("MQTT client disconnected")
    
    def publish(self, topic: str, payload: bytes, qos: int) -> "asyncio.Future[None]":
        if not self._connected:
            self.failed += 1
            return _failed_future(PublishError("MQTT client not connected"))
        
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        
        with self._lock:
            info = self._client.publish(topic, payload, qos=qos)
            if info.rc != mqtt.MQTT_ERR_SUCCESS:
                self.failed += 1
                future.set_exception(
                    PublishError(f"publish to {topic} failed: {mqtt.error_string(info.rc)}")
                )
                return future
            if info.mid in self._early_acks:
                self._early_acks.discard(info.mid)
                self.published += 1
                future.set_result(None)
            else:
                self._pending[info.mid] = (loop, future)
        
        return future
    
    def stats(self) -> dict:
        with self._lock:
            awaiting_ack = len(self._pending)
        return {
            "connected": self._connected,
            "broker": self.broker,
            "published": self.published,
            "failed": self.failed,
            "awaiting_ack": awaiting_ack,
        }
    
    # -------------------------------------------------------------------------
    # paho callbacks (network thread)
    # -------------------------------------------------------------------------
    
    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            logger.error(f"MQTT connection refused: {reason_code}")
            self._connected = False
            return
        logger.info("Connected to MQTT broker")
        # acks from a previous session must not resolve a reused mid
        with self._lock:
            self._early_acks.clear()
        self._connected = True
    
    def _on_disconnect(self, client, userdata, flags, reason_code, properties) -> None:
        if self._connected:
            logger.warning(f"MQTT client offline: {reason_code}")
        self._connected = False
    
    def _on_publish(self, client, userdata, mid, reason_code, properties) -> None:
        with self._lock:
            entry = self._pending.pop(mid, None)
            if entry is None:
                self._early_acks.add(mid)
                return
        
        loop, future = entry
        if reason_code.is_failure:
            self.failed += 1
            self._resolve(loop, future, PublishError(f"broker rejected publish: {reason_code}"))
        else:
            self.published += 1
            self._resolve(loop, future, None)
    
    @staticmethod
    def _resolve(loop, future, error: Optional[Exception]) -> None:
        def _set() -> None:
            if future.done():
                return
            if error is None:
                future.set_result(None)
            else:
                future.set_exception(error)
        
        if loop.is_closed():
            return
        loop.call_soon_threadsafe(_set)
