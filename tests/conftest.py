"""
Test Configuration
==================

Pytest fixtures and test configuration for the pixel streamer.
"""

import pytest

from pixel_streamer.observability import StatsReporter
from pixel_streamer.pipeline import FramePipeline
from pixel_streamer.processing import FrameDistributor, FrameTransformer
from pixel_streamer.publish import PublisherGateway
from pixel_streamer.stream import DisplayMode, FrameSpec

from fakes import TOPICS, FakeTransport


@pytest.fixture
def small_spec():
    """4x2 RGBA frame: 32 bytes."""
    return FrameSpec(width=4, height=2)


@pytest.fixture
def matrix_spec():
    """128x64 matrix used by the dual split checks."""
    return FrameSpec(width=128, height=64)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def build_pipeline():
    """Factory for a pipeline wired to a given transport."""
    def _build(
        spec,
        transport,
        mode=DisplayMode.SINGLE,
        brightness=100,
        max_in_flight=0,
    ):
        distributor = FrameDistributor(spec, mode)
        gateway = PublisherGateway(
            transport,
            topics=TOPICS,
            qos=1,
            payload_size=distributor.target_byte_size,
            max_in_flight=max_in_flight,
        )
        stats = StatsReporter(interval_seconds=60.0)
        return FramePipeline(
            spec,
            FrameTransformer(brightness),
            distributor,
            gateway,
            stats=stats,
        )
    return _build
