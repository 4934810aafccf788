"""
Frame Distributor
=================

Maps one frame onto the physical displays it drives.

Modes:
    single: display1 receives the whole frame
    dual:   display1 receives rows [0, h/2), display2 rows [h/2, 2*(h/2))

With an odd height the last row belongs to neither display. Rows are
addressed through a (height, row_bytes) view so that nothing past the
frame is ever read.
"""

import logging
from typing import List, Tuple

import numpy as np

from pixel_streamer.stream.frame import DisplayMode, Frame, FrameSpec


logger = logging.getLogger(__name__)


DISPLAY1 = "display1"
DISPLAY2 = "display2"


class FrameDistributor:
    """
    Splits frames into per-display payloads.
    
    Example:
        distributor = FrameDistributor(FrameSpec(128, 64), DisplayMode.DUAL)
        for target_id, payload in distributor.distribute(frame):
            gateway.publish(target_id, payload)
    """
    
    def __init__(self, spec: FrameSpec, mode: DisplayMode = DisplayMode.SINGLE) -> None:
        self.spec = spec
        self.mode = DisplayMode(mode)
        
        if self.mode == DisplayMode.DUAL:
            self._half_height = spec.height // 2
            if self._half_height == 0:
                raise ValueError("dual mode requires a height of at least 2 rows")
            if spec.height % 2:
                logger.warning(
                    f"Odd height {spec.height} in dual mode, "
                    f"row {spec.height - 1} is dropped"
                )
    
    @property
    def targets(self) -> Tuple[str, ...]:
        """Target ids in publish order."""
        if self.mode == DisplayMode.DUAL:
            return (DISPLAY1, DISPLAY2)
        return (DISPLAY1,)
    
    @property
    def target_byte_size(self) -> int:
        """Size of every payload produced for this mode."""
        if self.mode == DisplayMode.DUAL:
            return self._half_height * self.spec.row_byte_size
        return self.spec.frame_byte_size
    
    def distribute(self, frame: Frame) -> List[Tuple[str, bytes]]:
        """
        Split a frame into (target_id, payload) pairs.
        
        display1 always comes first so the top section is handed to the
        transport before the bottom one.
        
        Args:
            frame: Complete frame of spec.frame_byte_size bytes
            
        Returns:
            Ordered list of (target_id, payload)
            
        Raises:
            ValueError: If the frame length does not match the FrameSpec
        """
        if len(frame.data) != self.spec.frame_byte_size:
            raise ValueError(
                f"Frame {frame.sequence} has {len(frame.data)} bytes, "
                f"expected {self.spec.frame_byte_size}"
            )
        
        if self.mode == DisplayMode.SINGLE:
            return [(DISPLAY1, frame.data)]
        
        half = self._half_height
        rows = np.frombuffer(frame.data, dtype=np.uint8).reshape(
            self.spec.height, self.spec.row_byte_size
        )
        return [
            (DISPLAY1, rows[:half].tobytes()),
            (DISPLAY2, rows[half:2 * half].tobytes()),
        ]
