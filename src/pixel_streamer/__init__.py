"""
Pixel Streamer
==============

Bridges a live compositor video stream to pixel-matrix displays over MQTT.

The compositor publishes its canvas as a video stream; ffmpeg decodes it to
raw RGBA frames at the display resolution. The streamer reassembles those
frames from the byte stream, scales brightness, splits them per display and
publishes every payload to the display's MQTT topic.

Components:
    - stream: frame model, reassembly, ffmpeg supervision, restart policy
    - processing: brightness scaling and display splitting
    - publish: MQTT/dry-run transports and the publisher gateway
    - observability: throughput reporting
    - pipeline: per-chunk processing that ties the stages together

Example:
    from pixel_streamer.config import load_config
    from pixel_streamer.main import create_app
    
    app = create_app(load_config())
"""

__version__ = "2.0.0"

__all__ = [
    "__version__",
]
