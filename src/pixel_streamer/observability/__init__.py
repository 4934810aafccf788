"""
Observability Module
====================

Throughput reporting for the pixel streamer.

DESIGN RULES:
    - Observes frame completion, never participates in the data flow
    - Never applies backpressure
"""

from pixel_streamer.observability.stats import StatsReporter


__all__ = [
    "StatsReporter",
]
