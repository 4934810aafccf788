"""
Status Models
=============

Pydantic models returned by the control surface.

Models:
    - PipelineStatus: supervisor/pipeline state
    - PublisherStats: gateway counters
    - ThroughputSnapshot: last StatsReporter window
"""

from typing import Optional

from pydantic import BaseModel, Field


class PipelineStatus(BaseModel):
    """
    Snapshot of the stream supervisor.
    
    Attributes:
        is_processing: True while a decoder session is starting or running
        state: idle, starting or running
        stream: Source URL of the current session (None when idle)
        buffered_bytes: Bytes held in the reassembly accumulator
        expected_frame_size: Bytes per complete frame
        frames_processed: Frames pushed through the pipeline so far
    """
    
    is_processing: bool
    state: str
    stream: Optional[str] = None
    buffered_bytes: int = Field(..., ge=0)
    expected_frame_size: int = Field(..., gt=0)
    frames_processed: int = Field(default=0, ge=0)


class PublisherStats(BaseModel):
    """Publish counters of the gateway."""
    
    published: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    dropped: int = Field(default=0, ge=0)
    in_flight: int = Field(default=0, ge=0)
    pending: int = Field(default=0, ge=0)
    outstanding: int = Field(default=0, ge=0)
    max_in_flight: int = Field(default=0, ge=0, description="0 = unbounded")


class ThroughputSnapshot(BaseModel):
    """
    One StatsReporter window.
    
    Attributes:
        fps: frames / elapsed_seconds
        frames: Frames completed in the window
        elapsed_seconds: Window length
        buffered_bytes: Accumulator occupancy at flush time
        outstanding_publishes: Unresolved publishes at flush time
    """
    
    fps: float = Field(..., ge=0)
    frames: int = Field(..., ge=0)
    elapsed_seconds: float = Field(..., ge=0)
    buffered_bytes: int = Field(default=0, ge=0)
    outstanding_publishes: int = Field(default=0, ge=0)
