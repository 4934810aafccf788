"""
Frame Pipeline Tests
====================

End-to-end chunk processing against an in-memory transport.
"""

import asyncio

import pytest

from pixel_streamer.observability import StatsReporter
from pixel_streamer.pipeline import FramePipeline
from pixel_streamer.processing import FrameDistributor, FrameTransformer
from pixel_streamer.publish import PublisherGateway
from pixel_streamer.stream import DisplayMode, FrameSpec

from fakes import TOPICS, FakeTransport, settle


def _frames(spec, count):
    return b"".join(bytes([n + 1]) * spec.frame_byte_size for n in range(count))


class TestProcessing:
    
    def test_single_mode_publishes_each_frame(self, small_spec, build_pipeline):
        async def scenario():
            transport = FakeTransport()
            pipeline = build_pipeline(small_spec, transport)
            data = _frames(small_spec, 3)
            completed = pipeline.process_chunk(data[:50]) + pipeline.process_chunk(data[50:])
            await settle()
            return transport, pipeline, completed
        
        transport, pipeline, completed = asyncio.run(scenario())
        
        assert completed == 3
        assert pipeline.frames_processed == 3
        assert [payload[0] for _, payload in transport.delivered] == [1, 2, 3]
        assert {topic for topic, _ in transport.delivered} == {"led/display1"}
    
    def test_dual_mode_publish_order(self, build_pipeline):
        spec = FrameSpec(width=2, height=4)
        
        async def scenario():
            transport = FakeTransport()
            pipeline = build_pipeline(spec, transport, mode=DisplayMode.DUAL)
            pipeline.process_chunk(_frames(spec, 2))
            await settle()
            return transport
        
        transport = asyncio.run(scenario())
        
        assert [topic for topic, _ in transport.calls] == [
            "led/display1", "led/display2", "led/display1", "led/display2",
        ]
        assert all(len(payload) == spec.frame_byte_size // 2 for _, payload in transport.calls)
    
    def test_brightness_applied_before_publish(self, small_spec, build_pipeline):
        async def scenario():
            transport = FakeTransport()
            pipeline = build_pipeline(small_spec, transport, brightness=50)
            pipeline.process_chunk(b"\xff" * small_spec.frame_byte_size)
            await settle()
            return transport
        
        transport = asyncio.run(scenario())
        
        (_, payload), = transport.delivered
        assert payload == bytes([128, 128, 128, 255]) * (small_spec.width * small_spec.height)
    
    def test_failed_publish_does_not_stop_next_frame(self, build_pipeline):
        spec = FrameSpec(width=2, height=2)
        
        async def scenario():
            transport = FakeTransport(fail_topics={"led/display1"})
            pipeline = build_pipeline(spec, transport, mode=DisplayMode.DUAL)
            pipeline.process_chunk(_frames(spec, 2))
            await settle()
            return transport, pipeline
        
        transport, pipeline = asyncio.run(scenario())
        
        assert pipeline.frames_processed == 2
        assert [topic for topic, _ in transport.delivered] == ["led/display2", "led/display2"]
        assert pipeline.gateway.stats().failed == 2
    
    def test_stats_count_frames(self, small_spec, build_pipeline):
        async def scenario():
            pipeline = build_pipeline(small_spec, FakeTransport())
            pipeline.process_chunk(_frames(small_spec, 4))
            await settle()
            return pipeline
        
        pipeline = asyncio.run(scenario())
        
        assert pipeline.stats.total_frames == 4


class TestReset:
    
    def test_reset_drops_partial_frame(self, small_spec, build_pipeline):
        async def scenario():
            transport = FakeTransport()
            pipeline = build_pipeline(small_spec, transport)
            pipeline.process_chunk(b"\x09" * 20)
            buffered = pipeline.buffered_bytes
            pipeline.reset()
            pipeline.process_chunk(b"\x01" * small_spec.frame_byte_size)
            await settle()
            return transport, pipeline, buffered
        
        transport, pipeline, buffered = asyncio.run(scenario())
        
        assert buffered == 20
        assert pipeline.buffered_bytes == 0
        (_, payload), = transport.delivered
        assert payload == b"\x01" * small_spec.frame_byte_size


class TestWiring:
    
    def test_mismatched_distributor_rejected(self, small_spec):
        other = FrameSpec(width=8, height=8)
        gateway = PublisherGateway(FakeTransport(), topics=TOPICS)
        with pytest.raises(ValueError):
            FramePipeline(
                small_spec,
                FrameTransformer(100),
                FrameDistributor(other, DisplayMode.SINGLE),
                gateway,
                stats=StatsReporter(),
            )
