"""
Frame Data Model
=================

Raw frame representation for the ingestion pipeline.

This module defines the fixed geometry of a frame (FrameSpec), the frame
itself (Frame) and the display mode that decides how a frame is split
across physical displays.

Design Rules:
    - Pixel format is always RGBA, 4 bytes per pixel, row-major
    - FrameSpec is immutable and set once per pipeline
    - Frame carries exactly FrameSpec.frame_byte_size bytes
"""

from dataclasses import dataclass
from enum import Enum


BYTES_PER_PIXEL = 4


class DisplayMode(str, Enum):
    """
    How a frame maps onto physical displays.
    
    Attributes:
        SINGLE: Whole frame goes to one display
        DUAL: Top half goes to display1, bottom half to display2
    """
    
    SINGLE = "single"
    DUAL = "dual"


@dataclass(frozen=True, slots=True)
class FrameSpec:
    """
    Fixed frame geometry.
    
    Attributes:
        width: Pixels per row
        height: Rows per frame
        bytes_per_pixel: Always 4 (RGBA)
    """
    
    width: int
    height: int
    bytes_per_pixel: int = BYTES_PER_PIXEL
    
    def __post_init__(self) -> None:
        for name in ("width", "height", "bytes_per_pixel"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
    
    @property
    def row_byte_size(self) -> int:
        """Bytes in one row of pixels."""
        return self.width * self.bytes_per_pixel
    
    @property
    def frame_byte_size(self) -> int:
        """Bytes in one complete frame."""
        return self.row_byte_size * self.height


@dataclass(frozen=True, slots=True)
class Frame:
    """
    One complete raw RGBA image.
    
    Frames are immutable; each stage produces a new Frame rather than
    modifying the one it received.
    
    Attributes:
        sequence: Monotonically increasing counter assigned on reassembly
        data: Exactly frame_byte_size bytes of RGBA pixels
    """
    
    sequence: int
    data: bytes
    
    def __len__(self) -> int:
        return len(self.data)
    
    def __repr__(self) -> str:
        """Compact repr that doesn't dump the pixel data."""
        return f"Frame(sequence={self.sequence}, bytes={len(self.data)})"
