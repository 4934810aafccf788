"""
Publisher Gateway
=================

Hands finished sub-frames to the transport, one publish per target.

The pipeline never awaits a publish: it calls publish() and moves on to
the next frame. Each call gets its own future, so a failure on display1
has no effect on display2 or on the frames that follow.

Backpressure:
    max_in_flight == 0
        Every publish goes straight to the transport (fire-and-forget).
        Outstanding publishes are unbounded if the broker is slower than
        the frame rate; watch the ``outstanding`` metric.
    max_in_flight > 0
        At most max_in_flight publishes are with the transport. Further
        publishes wait in a FIFO of pending_queue_size entries; when it is
        full the oldest pending publish is dropped.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Optional

from pixel_streamer.models.status import PublisherStats
from pixel_streamer.publish.transport import Transport


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Publish:
    target_id: str
    topic: str
    payload: bytes
    result: "asyncio.Future[bool]"


class PublisherGateway:
    """
    Per-target publish adapter with failure isolation.
    
    Attributes:
        topics: target_id -> topic
        qos: Quality of service for every publish
        payload_size: Required payload length (None = not checked)
        
    Example:
        gateway = PublisherGateway(
            transport,
            topics={"display1": "led/display1", "display2": "led/display2"},
            qos=1,
        )
        gateway.publish("display1", payload)   # not awaited
    """
    
    def __init__(
        self,
        transport: Transport,
        topics: Dict[str, str],
        qos: int = 1,
        payload_size: Optional[int] = None,
        max_in_flight: int = 0,
        pending_queue_size: int = 8,
    ) -> None:
        """
        Initialize publisher gateway.
        
        Args:
            transport: Transport that performs the actual delivery
            topics: Mapping of target id to topic
            qos: Quality of service level
            payload_size: Expected payload length, checked before publishing
            max_in_flight: Concurrent publishes allowed (0 = unbounded)
            pending_queue_size: Waiting publishes kept when bounded
        """
        if max_in_flight < 0:
            raise ValueError("max_in_flight must be >= 0")
        if pending_queue_size < 1:
            raise ValueError("pending_queue_size must be >= 1")
        
        self.transport = transport
        self.topics = dict(topics)
        self.qos = qos
        self.payload_size = payload_size
        self.max_in_flight = max_in_flight
        
        self._pending: Deque[_Publish] = deque()
        self._pending_limit = pending_queue_size
        self._in_flight: int = 0
        
        self._published: int = 0
        self._failed: int = 0
        self._dropped: int = 0
    
    @property
    def outstanding(self) -> int:
        """Publishes not yet resolved (in flight + pending)."""
        return self._in_flight + len(self._pending)
    
    def publish(self, target_id: str, payload: bytes) -> "asyncio.Future[bool]":
        """
        Publish a payload to a target without waiting for the outcome.
        
        Must be called from the event loop thread.
        
        Args:
            target_id: Display identifier (e.g. "display1")
            payload: Sub-frame bytes
            
        Returns:
            Future resolving to True when delivered, False when the publish
            failed or was dropped. It never raises.
        """
        result: "asyncio.Future[bool]" = asyncio.get_running_loop().create_future()
        
        topic = self.topics.get(target_id)
        if topic is None:
            self._fail(target_id, result, f"unknown target {target_id!r}")
            return result
        if self.payload_size is not None and len(payload) != self.payload_size:
            self._fail(
                target_id,
                result,
                f"invalid frame size: {len(payload)} bytes (expected {self.payload_size})",
            )
            return result
        
        message = _Publish(target_id=target_id, topic=topic, payload=payload, result=result)
        
        if self.max_in_flight and self._in_flight >= self.max_in_flight:
            self._enqueue(message)
        else:
            self._dispatch(message)
        
        return result
    
    def stats(self) -> PublisherStats:
        """Snapshot of publish counters."""
        return PublisherStats(
            published=self._published,
            failed=self._failed,
            dropped=self._dropped,
            in_flight=self._in_flight,
            pending=len(self._pending),
            outstanding=self.outstanding,
            max_in_flight=self.max_in_flight,
        )
    
    def _enqueue(self, message: _Publish) -> None:
        if len(self._pending) >= self._pending_limit:
            oldest = self._pending.popleft()
            self._dropped += 1
            oldest.result.set_result(False)
            logger.warning(
                f"Publish queue full, dropped oldest frame for {oldest.target_id}. "
                f"Total dropped: {self._dropped}"
            )
        self._pending.append(message)
    
    def _dispatch(self, message: _Publish) -> None:
        self._in_flight += 1
        ack = self.transport.publish(message.topic, message.payload, self.qos)
        ack.add_done_callback(lambda fut: self._on_ack(message, fut))
    
    def _on_ack(self, message: _Publish, ack: "asyncio.Future[None]") -> None:
        self._in_flight -= 1
        
        if ack.cancelled():
            self._fail(message.target_id, message.result, "publish cancelled")
        elif ack.exception() is not None:
            self._fail(message.target_id, message.result, str(ack.exception()))
        else:
            self._published += 1
            if not message.result.done():
                message.result.set_result(True)
        
        while self._pending and (
            not self.max_in_flight or self._in_flight < self.max_in_flight
        ):
            self._dispatch(self._pending.popleft())
    
    def _fail(self, target_id: str, result: "asyncio.Future[bool]", reason: str) -> None:
        self._failed += 1
        logger.error(f"Failed to publish frame to {target_id}: {reason}")
        if not result.done():
            result.set_result(False)
