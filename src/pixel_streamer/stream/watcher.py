"""
Stream Watcher
==============

Caller-side restart policy for the stream supervisor.

The compositor may start and stop publishing at any time. The watcher
starts a session on the configured stream, waits for it to end (stream
closed, decoder failure) and starts it again after a delay.

Design Rules:
    - The supervisor itself never retries; all retry policy lives here
    - A session that delivered frames resets the attempt counter
    - stop() cancels the pending delay immediately
"""

import asyncio
import logging

from pixel_streamer.stream.supervisor import StreamSupervisor


logger = logging.getLogger(__name__)


class StreamWatcher:
    """
    Keeps a stream session alive across compositor restarts.
    
    Attributes:
        supervisor: Supervisor to (re)start
        stream_identifier: Stream key, URL or path to start
        restart_count: Restarts since the last productive session
        
    Example:
        watcher = StreamWatcher(supervisor, "pixelmatrix", restart_delay_seconds=2.0)
        task = asyncio.create_task(watcher.run())
        ...
        await watcher.stop()
        await task
    """
    
    def __init__(
        self,
        supervisor: StreamSupervisor,
        stream_identifier: str,
        restart_delay_seconds: float = 2.0,
        max_restart_attempts: int = 0,
    ) -> None:
        """
        Initialize stream watcher.
        
        Args:
            supervisor: Supervisor to drive
            stream_identifier: What to pass to supervisor.start()
            restart_delay_seconds: Delay between sessions
            max_restart_attempts: Max consecutive restarts (0 = unlimited)
        """
        self.supervisor = supervisor
        self.stream_identifier = stream_identifier
        self.restart_delay_seconds = restart_delay_seconds
        self.max_restart_attempts = max_restart_attempts
        
        self.restart_count: int = 0
        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()
    
    @property
    def running(self) -> bool:
        return self._running
    
    async def run(self) -> None:
        """
        Start sessions until stopped or out of attempts.
        
        Call stop() to terminate gracefully.
        """
        self._running = True
        self._stop_event.clear()
        logger.info(f"StreamWatcher starting for {self.stream_identifier}")
        
        while self._running:
            frames_before = self.supervisor.pipeline.frames_processed
            
            if not self.supervisor.is_processing:
                await self.supervisor.start(self.stream_identifier)
            await self.supervisor.wait_idle()
            
            if not self._running:
                break
            
            if self.supervisor.pipeline.frames_processed > frames_before:
                self.restart_count = 0
            
            if (
                self.max_restart_attempts > 0
                and self.restart_count >= self.max_restart_attempts
            ):
                logger.error(
                    f"Max restart attempts ({self.max_restart_attempts}) exceeded"
                )
                break
            
            self.restart_count += 1
            logger.info(
                f"Stream ended, restarting in {self.restart_delay_seconds:.1f}s "
                f"(attempt {self.restart_count})"
            )
            
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self.restart_delay_seconds,
                )
                # Stop event was set, exit
                break
            except asyncio.TimeoutError:
                pass
        
        self._running = False
        logger.info("StreamWatcher stopped")
    
    async def stop(self) -> None:
        """Stop restarting and end the current session."""
        logger.info("StreamWatcher stopping...")
        self._running = False
        self._stop_event.set()
        await self.supervisor.stop()
