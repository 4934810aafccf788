"""
Service Wiring
==============

Builds one independent pipeline instance (transport, gateway, pipeline,
supervisor, stats) from settings. Nothing here is a process-wide global;
call build_services() as many times as needed.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from pixel_streamer.config import Settings
from pixel_streamer.observability import StatsReporter
from pixel_streamer.pipeline import FramePipeline
from pixel_streamer.processing import DISPLAY1, DISPLAY2, FrameDistributor, FrameTransformer
from pixel_streamer.publish import DryRunTransport, MQTTTransport, PublisherGateway, Transport
from pixel_streamer.stream import DecoderProcess, FrameSpec, StreamSupervisor, StreamWatcher


logger = logging.getLogger(__name__)


DecoderFactory = Callable[[str], DecoderProcess]


@dataclass
class Services:
    """Everything the control surface needs for one pipeline."""
    
    settings: Settings
    transport: Transport
    gateway: PublisherGateway
    stats: StatsReporter
    pipeline: FramePipeline
    supervisor: StreamSupervisor
    watcher: Optional[StreamWatcher] = None
    watcher_task: Optional[asyncio.Task] = None
    startup_time: float = 0.0


def create_transport(settings: Settings) -> Transport:
    """Build the MQTT transport, or a dry-run one when configured."""
    if settings.mqtt.dry_run:
        return DryRunTransport()
    return MQTTTransport(
        broker=settings.mqtt.broker,
        username=settings.mqtt.username,
        password=settings.mqtt.password,
        client_id=settings.mqtt.client_id,
        keepalive=settings.mqtt.keepalive,
        reconnect_delay_seconds=settings.mqtt.reconnect_delay_seconds,
    )


def create_decoder_factory(settings: Settings, spec: FrameSpec) -> DecoderFactory:
    """Return a factory that builds ffmpeg decoders for a source URL."""
    def factory(source: str) -> DecoderProcess:
        return DecoderProcess(
            source,
            spec,
            frame_rate=settings.decoder.frame_rate,
            ffmpeg_path=settings.decoder.ffmpeg_path,
            input_options=settings.decoder.input_options,
            loglevel=settings.decoder.loglevel,
        )
    return factory


def build_services(
    settings: Settings,
    transport: Optional[Transport] = None,
    decoder_factory: Optional[DecoderFactory] = None,
) -> Services:
    """
    Wire one pipeline instance from settings.
    
    Args:
        settings: Loaded configuration
        transport: Transport override (defaults to MQTT or dry-run per settings)
        decoder_factory: Decoder override (defaults to ffmpeg)
    """
    spec = FrameSpec(width=settings.display.width, height=settings.display.height)
    transport = transport if transport is not None else create_transport(settings)
    
    distributor = FrameDistributor(spec, settings.display.mode)
    gateway = PublisherGateway(
        transport,
        topics={
            DISPLAY1: settings.mqtt.display1_topic,
            DISPLAY2: settings.mqtt.display2_topic,
        },
        qos=settings.mqtt.qos,
        payload_size=distributor.target_byte_size,
        max_in_flight=settings.publish.max_in_flight,
        pending_queue_size=settings.publish.pending_queue_size,
    )
    stats = StatsReporter(
        interval_seconds=settings.stats.interval_seconds,
        buffer_probe=lambda: pipeline.buffered_bytes,
        outstanding_probe=lambda: gateway.outstanding,
    )
    pipeline = FramePipeline(
        spec,
        FrameTransformer(settings.display.brightness, settings.display.swap_red_blue),
        distributor,
        gateway,
        stats=stats,
    )
    supervisor = StreamSupervisor(
        pipeline,
        decoder_factory or create_decoder_factory(settings, spec),
        base_url=settings.stream.base_url,
        read_chunk_size=settings.decoder.read_chunk_size,
        stats=stats,
    )
    return Services(
        settings=settings,
        transport=transport,
        gateway=gateway,
        stats=stats,
        pipeline=pipeline,
        supervisor=supervisor,
    )


def build_status(services: Services) -> dict:
    """Full status payload shared by /api/status and /ws/status."""
    settings = services.settings
    snapshot = services.stats.last_snapshot
    return {
        "mqtt": services.transport.stats(),
        "processor": services.supervisor.get_status().model_dump(mode="json"),
        "publisher": services.gateway.stats().model_dump(mode="json"),
        "throughput": snapshot.model_dump(mode="json") if snapshot else None,
        "last_error": services.supervisor.last_error,
        "config": {
            "display": settings.display.model_dump(mode="json"),
            "stream_url": settings.stream_url,
            "topics": {
                DISPLAY1: settings.mqtt.display1_topic,
                DISPLAY2: settings.mqtt.display2_topic,
            },
        },
    }


async def stop_watcher(services: Services, timeout: float = 5.0) -> None:
    """Stop the restart watcher (if any) and wait for its task to finish."""
    if services.watcher is not None:
        await services.watcher.stop()
    if services.watcher_task is not None:
        try:
            await asyncio.wait_for(services.watcher_task, timeout=timeout)
        except asyncio.TimeoutError:
            services.watcher_task.cancel()
    services.watcher = None
    services.watcher_task = None
