"""
Stats Reporter
==============

Rolling throughput metrics for observability ONLY.

The reporter counts completed frames and, on a wall-clock cadence that is
independent of frame arrival, logs frames / elapsed_seconds together with
accumulator occupancy and outstanding publishes. It never blocks or slows
the pipeline.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from pixel_streamer.models.status import ThroughputSnapshot


logger = logging.getLogger(__name__)


class StatsReporter:
    """
    Frame-rate and buffer-occupancy reporter.
    
    Attributes:
        interval_seconds: Flush cadence
        total_frames: Frames recorded since construction
        last_snapshot: Most recent flushed window (None before first flush)
        
    Example:
        stats = StatsReporter(interval_seconds=5.0)
        task = asyncio.create_task(stats.run())
        
        stats.record_frame()   # from the pipeline, per frame
    """
    
    def __init__(
        self,
        interval_seconds: float = 5.0,
        buffer_probe: Optional[Callable[[], int]] = None,
        outstanding_probe: Optional[Callable[[], int]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        
        self.interval_seconds = interval_seconds
        self._buffer_probe = buffer_probe
        self._outstanding_probe = outstanding_probe
        self._clock = clock
        
        self._frames: int = 0
        self._last_flush: float = clock()
        self.total_frames: int = 0
        self.last_snapshot: Optional[ThroughputSnapshot] = None
    
    def record_frame(self) -> None:
        """Count one completed frame."""
        self._frames += 1
        self.total_frames += 1
    
    def reset(self) -> None:
        """Start a fresh window (called when a stream session starts)."""
        self._frames = 0
        self._last_flush = self._clock()
    
    def flush(self) -> ThroughputSnapshot:
        """Close the current window, log it and start the next."""
        now = self._clock()
        elapsed = max(0.0, now - self._last_flush)
        fps = self._frames / elapsed if elapsed > 0 else 0.0
        
        snapshot = ThroughputSnapshot(
            fps=round(fps, 2),
            frames=self._frames,
            elapsed_seconds=round(elapsed, 3),
            buffered_bytes=self._buffer_probe() if self._buffer_probe else 0,
            outstanding_publishes=self._outstanding_probe() if self._outstanding_probe else 0,
        )
        logger.info(
            f"Processing stats: {snapshot.fps:.1f} fps, {snapshot.frames} frames, "
            f"buffered={snapshot.buffered_bytes}B, "
            f"outstanding_publishes={snapshot.outstanding_publishes}"
        )
        
        self._frames = 0
        self._last_flush = now
        self.last_snapshot = snapshot
        return snapshot
    
    async def run(self) -> None:
        """Flush every interval_seconds until cancelled."""
        self.reset()
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.flush()
