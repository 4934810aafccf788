"""
Frame Pipeline
==============

Synchronous per-chunk processing:

    chunk -> FrameReassembler -> FrameTransformer -> FrameDistributor -> PublisherGateway

Everything here is CPU-only and runs to completion for a chunk before the
next chunk is read. Publishes are handed off, not awaited.

Each FramePipeline owns its accumulator and counters; several pipelines can
live in one process without sharing state.
"""

import logging
from typing import Optional

from pixel_streamer.observability.stats import StatsReporter
from pixel_streamer.processing.brightness import FrameTransformer
from pixel_streamer.processing.distributor import FrameDistributor
from pixel_streamer.publish.gateway import PublisherGateway
from pixel_streamer.stream.frame import Frame, FrameSpec
from pixel_streamer.stream.reassembler import FrameReassembler


logger = logging.getLogger(__name__)


class FramePipeline:
    """
    Reassembles, transforms, splits and publishes frames.
    
    Attributes:
        spec: Frame geometry
        transformer: Brightness stage
        distributor: Display split stage
        gateway: Publish stage
        stats: Throughput observer (optional)
        
    Example:
        pipeline = FramePipeline(spec, transformer, distributor, gateway)
        frames = pipeline.process_chunk(chunk)
    """
    
    def __init__(
        self,
        spec: FrameSpec,
        transformer: FrameTransformer,
        distributor: FrameDistributor,
        gateway: PublisherGateway,
        stats: Optional[StatsReporter] = None,
    ) -> None:
        if distributor.spec != spec:
            raise ValueError("distributor spec does not match pipeline spec")
        
        self.spec = spec
        self.transformer = transformer
        self.distributor = distributor
        self.gateway = gateway
        self.stats = stats
        
        self._reassembler = FrameReassembler(spec)
        self._frames_processed: int = 0
    
    @property
    def buffered_bytes(self) -> int:
        """Bytes waiting for the rest of their frame."""
        return self._reassembler.buffered_bytes
    
    @property
    def expected_frame_size(self) -> int:
        return self.spec.frame_byte_size
    
    @property
    def frames_processed(self) -> int:
        return self._frames_processed
    
    def process_chunk(self, chunk: bytes) -> int:
        """
        Feed one chunk and push every frame it completes downstream.
        
        Args:
            chunk: Bytes read from the decoder
            
        Returns:
            Number of frames completed by this chunk
        """
        completed = 0
        for frame in self._reassembler.feed(chunk):
            self._process_frame(frame)
            completed += 1
        return completed
    
    def _process_frame(self, frame: Frame) -> None:
        output = self.transformer.transform(frame)
        for target_id, payload in self.distributor.distribute(output):
            self.gateway.publish(target_id, payload)
        
        self._frames_processed += 1
        if self.stats is not None:
            self.stats.record_frame()
    
    def reset(self) -> None:
        """Drop any partial frame so the next session starts byte-aligned."""
        discarded = self._reassembler.reset()
        if discarded:
            logger.info(f"Discarded {discarded} bytes of partial frame data")
