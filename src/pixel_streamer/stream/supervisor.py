"""
Stream Supervisor
=================

Owns the decoder process lifecycle and drives the frame pipeline.

State machine:
    idle --start()--> starting --decoder up--> running
    starting/running --stop() | end of stream | decoder error--> idle

Design Rules:
    - start() while active is a logged no-op
    - Every exit from a session kills the decoder and empties the
      accumulator, so a new session never sees stale partial-frame bytes
    - stop() only suppresses the next read; a chunk already read is
      processed to completion
    - No automatic restart here; see StreamWatcher for the caller policy
"""

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

from pixel_streamer.models.status import PipelineStatus
from pixel_streamer.observability.stats import StatsReporter
from pixel_streamer.stream.decoder import DecoderError, DecoderProcess, resolve_source

if TYPE_CHECKING:
    from pixel_streamer.pipeline import FramePipeline


logger = logging.getLogger(__name__)


class ProcessingState(str, Enum):
    """Supervisor lifecycle states."""
    
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"


DecoderFactory = Callable[[str], DecoderProcess]


class StreamSupervisor:
    """
    Supervises one decoder session at a time for one pipeline.
    
    Attributes:
        pipeline: Pipeline fed with decoder output
        state: Current ProcessingState
        stream: Source URL of the active session
        
    Example:
        supervisor = StreamSupervisor(
            pipeline,
            decoder_factory=lambda url: DecoderProcess(url, spec),
            base_url="rtmp://localhost:1935/live",
        )
        await supervisor.start("pixelmatrix")
        ...
        await supervisor.stop()
    """
    
    def __init__(
        self,
        pipeline: "FramePipeline",
        decoder_factory: DecoderFactory,
        base_url: str = "rtmp://localhost:1935/live",
        read_chunk_size: int = 65536,
        stats: Optional[StatsReporter] = None,
    ) -> None:
        """
        Initialize stream supervisor.
        
        Args:
            pipeline: Pipeline to feed
            decoder_factory: Builds a DecoderProcess for a source URL
            base_url: Base URL for bare stream keys
            read_chunk_size: Maximum bytes per stdout read
            stats: Reporter whose timer runs while a session is active
        """
        if read_chunk_size < 1:
            raise ValueError("read_chunk_size must be >= 1")
        
        self.pipeline = pipeline
        self._decoder_factory = decoder_factory
        self.base_url = base_url
        self.read_chunk_size = read_chunk_size
        self.stats = stats
        
        self._state = ProcessingState.IDLE
        self._stream: Optional[str] = None
        self._session_task: Optional[asyncio.Task] = None
        self._stats_task: Optional[asyncio.Task] = None
        self._idle_event = asyncio.Event()
        self._idle_event.set()
        self.last_error: Optional[str] = None
    
    @property
    def state(self) -> ProcessingState:
        return self._state
    
    @property
    def is_processing(self) -> bool:
        return self._state != ProcessingState.IDLE
    
    @property
    def stream(self) -> Optional[str]:
        return self._stream
    
    async def start(self, stream_identifier: str) -> bool:
        """
        Start a decoder session.
        
        Args:
            stream_identifier: Stream key, URL or absolute path
            
        Returns:
            True if a session was started, False if one is already active
        """
        if self.is_processing:
            logger.warning("Frame processing already running")
            return False
        
        source = resolve_source(stream_identifier, self.base_url)
        logger.info(f"Starting frame extraction from: {source}")
        
        self.pipeline.reset()
        self._state = ProcessingState.STARTING
        self._stream = source
        self.last_error = None
        self._idle_event.clear()
        
        if self.stats is not None:
            self._stats_task = asyncio.create_task(self.stats.run(), name="stream_stats")
        self._session_task = asyncio.create_task(
            self._run_session(source),
            name="stream_session",
        )
        return True
    
    async def stop(self) -> None:
        """Stop the current session and wait for teardown. Idempotent."""
        task = self._session_task
        try:
            if task is not None and not task.done():
                logger.info("Stopping frame processing...")
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    # swallow the session's cancellation, not one aimed at our caller
                    current = asyncio.current_task()
                    if current is not None and current.cancelling():
                        raise
        finally:
            # a task cancelled before its first step never reaches its finally
            self._teardown()
    
    async def wait_idle(self) -> None:
        """Wait until the current session (if any) has ended."""
        await self._idle_event.wait()
    
    def get_status(self) -> PipelineStatus:
        return PipelineStatus(
            is_processing=self.is_processing,
            state=self._state.value,
            stream=self._stream,
            buffered_bytes=self.pipeline.buffered_bytes,
            expected_frame_size=self.pipeline.expected_frame_size,
            frames_processed=self.pipeline.frames_processed,
        )
    
    async def _run_session(self, source: str) -> None:
        try:
            async with self._decoder_factory(source) as decoder:
                self._state = ProcessingState.RUNNING
                
                while True:
                    chunk = await decoder.read(self.read_chunk_size)
                    if not chunk:
                        break
                    self.pipeline.process_chunk(chunk)
                
                returncode = await decoder.wait()
                if returncode != 0:
                    self.last_error = (
                        f"decoder exited with code {returncode}: {decoder.stderr_tail}"
                    )
                    logger.error(f"FFmpeg error: {self.last_error}")
                else:
                    logger.info("FFmpeg processing finished")
        
        except asyncio.CancelledError:
            logger.info("Stream session cancelled")
            raise
        except DecoderError as e:
            self.last_error = str(e)
            logger.error(f"Decoder failure: {e}")
        except Exception as e:
            self.last_error = f"stream error: {e}"
            logger.exception(f"Stream error: {e}")
        finally:
            self._teardown()
    
    def _teardown(self) -> None:
        if self._stats_task is not None:
            self._stats_task.cancel()
            self._stats_task = None
        
        self.pipeline.reset()
        was_active = self._state != ProcessingState.IDLE
        self._state = ProcessingState.IDLE
        self._stream = None
        self._session_task = None
        self._idle_event.set()
        
        if was_active:
            logger.info("Frame processing stopped")
