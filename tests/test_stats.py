"""
Stats Reporter Tests
====================
"""

import asyncio

import pytest

from pixel_streamer.observability import StatsReporter


class FakeClock:
    
    def __init__(self) -> None:
        self.now = 100.0
    
    def __call__(self) -> float:
        return self.now


class TestFlush:
    
    def test_fps_over_window(self):
        clock = FakeClock()
        stats = StatsReporter(interval_seconds=5.0, clock=clock)
        for _ in range(375):
            stats.record_frame()
        clock.now += 5.0
        
        snapshot = stats.flush()
        
        assert snapshot.fps == 75.0
        assert snapshot.frames == 375
        assert snapshot.elapsed_seconds == 5.0
        assert stats.last_snapshot == snapshot
    
    def test_window_restarts_after_flush(self):
        clock = FakeClock()
        stats = StatsReporter(clock=clock)
        stats.record_frame()
        clock.now += 1.0
        stats.flush()
        
        clock.now += 2.0
        snapshot = stats.flush()
        
        assert snapshot.frames == 0
        assert snapshot.fps == 0.0
        assert stats.total_frames == 1
    
    def test_probes_reported(self, caplog):
        stats = StatsReporter(
            buffer_probe=lambda: 1234,
            outstanding_probe=lambda: 7,
            clock=FakeClock(),
        )
        
        with caplog.at_level("INFO"):
            snapshot = stats.flush()
        
        assert snapshot.buffered_bytes == 1234
        assert snapshot.outstanding_publishes == 7
        assert "Processing stats" in caplog.text
    
    def test_zero_elapsed_is_zero_fps(self):
        stats = StatsReporter(clock=FakeClock())
        stats.record_frame()
        assert stats.flush().fps == 0.0
    
    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            StatsReporter(interval_seconds=0)


class TestRun:
    
    def test_run_flushes_on_cadence(self):
        async def scenario():
            stats = StatsReporter(interval_seconds=0.01)
            task = asyncio.create_task(stats.run())
            stats.record_frame()
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return stats
        
        stats = asyncio.run(scenario())
        
        assert stats.last_snapshot is not None
        assert stats.total_frames == 1
