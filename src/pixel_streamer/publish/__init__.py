"""
Publish Module
==============

Delivery of sub-frames to displays:
    - PublisherGateway: per-target, non-blocking publish with metrics
    - MQTTTransport: paho-mqtt transport
    - DryRunTransport: local transport that acknowledges everything
"""

from pixel_streamer.publish.transport import (
    DryRunTransport,
    MQTTTransport,
    PublishError,
    Transport,
)
from pixel_streamer.publish.gateway import PublisherGateway


__all__ = [
    "PublisherGateway",
    "Transport",
    "MQTTTransport",
    "DryRunTransport",
    "PublishError",
]
