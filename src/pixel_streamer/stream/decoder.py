"""
Decoder Process
===============

External ffmpeg process that turns the compositor stream into raw frames.

ffmpeg pulls the stream, scales it to the display resolution and writes
RGBA frames back to back on stdout at a fixed rate. The process is a scoped
resource: it is spawned on ``__aenter__`` and killed and reaped on
``__aexit__``, whichever way the session ends.

Example:
    decoder = DecoderProcess(
        "rtmp://localhost:1935/live/pixelmatrix",
        FrameSpec(128, 32),
    )
    async with decoder:
        while chunk := await decoder.read(65536):
            pipeline.process_chunk(chunk)
"""

import asyncio
import logging
import shutil
from collections import deque
from typing import Deque, List, Optional, Sequence

from pixel_streamer.stream.frame import FrameSpec


logger = logging.getLogger(__name__)


DEFAULT_INPUT_OPTIONS = (
    "-fflags", "nobuffer",
    "-flags", "low_delay",
    "-strict", "experimental",
)


class DecoderError(Exception):
    """Raised when the decoder process cannot be started."""
    pass


def resolve_source(identifier: str, base_url: str) -> str:
    """
    Turn a stream identifier into a source URL.
    
    URLs (containing "://") and absolute paths are used unchanged;
    anything else is treated as a stream key under base_url.
    """
    identifier = identifier.strip()
    if not identifier:
        raise ValueError("stream identifier must not be empty")
    if "://" in identifier or identifier.startswith("/"):
        return identifier
    return f"{base_url.rstrip('/')}/{identifier}"


def resolve_ffmpeg(ffmpeg_path: Optional[str] = None) -> str:
    """Locate the ffmpeg executable or raise DecoderError."""
    exe = shutil.which(ffmpeg_path or "ffmpeg")
    if exe is None:
        raise DecoderError(f"ffmpeg executable not found: {ffmpeg_path or 'ffmpeg'}")
    return exe


class DecoderProcess:
    """
    ffmpeg subprocess emitting raw RGBA frames on stdout.
    
    Attributes:
        source: Input URL or path
        spec: Output frame geometry
        frame_rate: Output frames per second
    """
    
    def __init__(
        self,
        source: str,
        spec: FrameSpec,
        frame_rate: int = 75,
        ffmpeg_path: Optional[str] = None,
        input_options: Sequence[str] = DEFAULT_INPUT_OPTIONS,
        loglevel: str = "error",
        stderr_lines: int = 20,
    ) -> None:
        self.source = source
        self.spec = spec
        self.frame_rate = frame_rate
        self.ffmpeg_path = ffmpeg_path
        self.input_options = list(input_options)
        self.loglevel = loglevel
        
        self._process: Optional[asyncio.subprocess.Process] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._stderr_tail: Deque[str] = deque(maxlen=stderr_lines)
    
    @property
    def stderr_tail(self) -> str:
        """Last lines ffmpeg wrote to stderr."""
        return " | ".join(self._stderr_tail)
    
    def build_command(self, executable: str = "ffmpeg") -> List[str]:
        """Full argv for the decoder."""
        return [
            executable,
            "-hide_banner",
            "-nostdin",
            "-loglevel", self.loglevel,
            *self.input_options,
            "-i", self.source,
            "-an",
            "-f", "rawvideo",
            "-pix_fmt", "rgba",
            "-s", f"{self.spec.width}x{self.spec.height}",
            "-r", str(self.frame_rate),
            "pipe:1",
        ]
    
    async def __aenter__(self) -> "DecoderProcess":
        await self.start()
        return self
    
    async def __aexit__(self, *args) -> None:
        await self.close()
    
    async def start(self) -> None:
        """
        Spawn ffmpeg.
        
        Raises:
            DecoderError: If the executable is missing or cannot be run
        """
        command = self.build_command(resolve_ffmpeg(self.ffmpeg_path))
        logger.info(f"Starting decoder: {' '.join(command)}")
        
        try:
            self._process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise DecoderError(f"Failed to start ffmpeg: {e}") from e
        
        self._stderr_task = asyncio.create_task(
            self._drain_stderr(),
            name="decoder_stderr",
        )
        logger.info(f"Decoder started (pid={self._process.pid})")
    
    async def read(self, size: int) -> bytes:
        """Read up to size bytes of frame data; b"" means end of stream."""
        if self._process is None or self._process.stdout is None:
            return b""
        return await self._process.stdout.read(size)
    
    async def wait(self) -> int:
        """Wait for the process to exit and return its status."""
        if self._process is None:
            raise DecoderError("decoder was never started")
        returncode = await self._process.wait()
        if self._stderr_task is not None:
            await asyncio.wait({self._stderr_task}, timeout=1.0)
        return returncode
    
    async def close(self) -> None:
        """Kill and reap the process. Safe to call more than once."""
        process = self._process
        if process is None:
            return
        
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(process.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                logger.error(f"Decoder (pid={process.pid}) did not exit after kill")
        
        if self._stderr_task is not None:
            self._stderr_task.cancel()
            try:
                await self._stderr_task
            except asyncio.CancelledError:
                pass
            self._stderr_task = None
        
        logger.info(f"Decoder stopped (pid={process.pid}, returncode={process.returncode})")
        self._process = None
    
    async def _drain_stderr(self) -> None:
        stream = self._process.stderr if self._process else None
        if stream is None:
            return
        while True:
            line = await stream.readline()
            if not line:
                break
            text = line.decode("utf-8", errors="replace").rstrip()
            if text:
                self._stderr_tail.append(text)
                logger.debug(f"ffmpeg: {text}")
