"""
Frame Reassembler
==================

Turns an arbitrarily-chunked byte stream into fixed-size frames.

The decoder writes raw RGBA frames back to back on stdout, but pipe reads
return whatever is available: a read may hold a fraction of a frame, exactly
one frame, or several frames plus a tail. The reassembler carries the tail
over to the next chunk so that frame boundaries stay byte-aligned no matter
where chunk boundaries fall.

Design Rules:
    - No byte is ever dropped or duplicated
    - No partial frame is ever emitted
    - Between chunks the accumulator holds fewer than frame_byte_size bytes
"""

import logging
from typing import Iterator

from pixel_streamer.stream.frame import Frame, FrameSpec


logger = logging.getLogger(__name__)


class FrameReassembler:
    """
    Accumulates byte chunks and slices complete frames off the front.
    
    One instance belongs to one pipeline and must not be fed from more
    than one task at a time.
    
    Example:
        reassembler = FrameReassembler(FrameSpec(width=128, height=32))
        
        for chunk in chunks:
            for frame in reassembler.feed(chunk):
                handle(frame)
    """
    
    def __init__(self, spec: FrameSpec) -> None:
        self._spec = spec
        self._frame_size = spec.frame_byte_size
        self._buffer = bytearray()
        self._next_sequence = 0
    
    @property
    def spec(self) -> FrameSpec:
        """Frame geometry this reassembler slices for."""
        return self._spec
    
    @property
    def buffered_bytes(self) -> int:
        """Bytes received but not yet part of a complete frame."""
        return len(self._buffer)
    
    @property
    def frames_emitted(self) -> int:
        """Total frames produced by this instance."""
        return self._next_sequence
    
    def feed(self, chunk: bytes) -> Iterator[Frame]:
        """
        Append a chunk and return the complete frames it finishes.
        
        The chunk is appended immediately; frames are sliced lazily as the
        returned iterator is consumed.
        
        Args:
            chunk: Any number of bytes (empty is allowed)
            
        Returns:
            Iterator over zero or more complete frames, in stream order
        """
        if chunk:
            self._buffer += chunk
        return self._drain()
    
    def _drain(self) -> Iterator[Frame]:
        size = self._frame_size
        while len(self._buffer) >= size:
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
            frame = Frame(sequence=self._next_sequence, data=data)
            self._next_sequence += 1
            yield frame
    
    def reset(self) -> int:
        """
        Discard buffered bytes.
        
        The sequence counter is not reset so sequence numbers stay
        strictly increasing for the lifetime of the instance.
        
        Returns:
            Number of bytes discarded.
        """
        discarded = len(self._buffer)
        self._buffer = bytearray()
        if discarded:
            logger.debug(f"Discarded {discarded} buffered bytes")
        return discarded
