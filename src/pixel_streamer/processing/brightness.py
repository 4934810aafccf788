"""
Frame Transformer
=================

Per-pixel brightness scaling for complete frames.

Every pixel is handled independently, so the whole frame is scaled in one
vectorised numpy pass instead of a Python loop over pixels.

Scaling:
    channel' = floor(channel * factor + 0.5)    for R, G, B
    alpha'   = alpha

Rounding is half-up so that e.g. 255 at 50% becomes 128.
"""

import logging

import numpy as np

from pixel_streamer.stream.frame import BYTES_PER_PIXEL, Frame


logger = logging.getLogger(__name__)


class FrameTransformer:
    """
    Applies brightness scaling (and optional red/blue swap) to frames.
    
    Attributes:
        brightness: Brightness percentage in [0, 100]
        factor: brightness / 100
        swap_red_blue: Whether R and B are exchanged after scaling
    """
    
    def __init__(self, brightness: int = 100, swap_red_blue: bool = False) -> None:
        """
        Initialize transformer.
        
        Args:
            brightness: Percentage in [0, 100]
            swap_red_blue: Emit BGRA instead of RGBA
            
        Raises:
            ValueError: If brightness is outside [0, 100]
        """
        if isinstance(brightness, bool) or not 0 <= brightness <= 100:
            raise ValueError(f"brightness must be within [0, 100], got {brightness!r}")
        
        self.brightness = brightness
        self.factor = brightness / 100
        self.swap_red_blue = swap_red_blue
        logger.info(
            f"FrameTransformer initialized: brightness={brightness}%, "
            f"swap_red_blue={swap_red_blue}"
        )
    
    @property
    def is_identity(self) -> bool:
        """True when transform() returns the input bytes unchanged."""
        return self.factor == 1.0 and not self.swap_red_blue
    
    def transform(self, frame: Frame) -> Frame:
        """
        Scale R, G and B of every pixel; alpha passes through.
        
        Args:
            frame: Complete RGBA frame
            
        Returns:
            New frame with the same sequence and length
        """
        if self.is_identity:
            return frame
        
        pixels = np.frombuffer(frame.data, dtype=np.uint8).reshape(-1, BYTES_PER_PIXEL)
        out = pixels.copy()
        
        if self.factor != 1.0:
            scaled = np.floor(pixels[:, :3] * self.factor + 0.5)
            out[:, :3] = np.clip(scaled, 0, 255).astype(np.uint8)
        
        if self.swap_red_blue:
            out[:, [0, 2]] = out[:, [2, 0]]
        
        return Frame(sequence=frame.sequence, data=out.tobytes())

