"""
Data Models
===========

Pydantic models exposed by the pixel streamer control surface.
"""

from pixel_streamer.models.status import PipelineStatus, PublisherStats, ThroughputSnapshot

__all__ = [
    "PipelineStatus",
    "PublisherStats",
    "ThroughputSnapshot",
]
