"""
Processing Module
=================

Pure, synchronous per-frame stages:
    - FrameTransformer: brightness scaling (and optional R/B swap)
    - FrameDistributor: single/dual display splitting
"""

from pixel_streamer.processing.brightness import FrameTransformer
from pixel_streamer.processing.distributor import (
    DISPLAY1,
    DISPLAY2,
    FrameDistributor,
)


__all__ = [
    "FrameTransformer",
    "FrameDistributor",
    "DISPLAY1",
    "DISPLAY2",
]
