"""
Stream Module
=============

Decoder supervision and byte-stream reassembly.

This module provides the ingestion layer of the pixel streamer:
    - FrameSpec / Frame / DisplayMode: frame data model
    - FrameReassembler: chunked bytes -> fixed-size frames
    - DecoderProcess: ffmpeg subprocess emitting raw RGBA
    - StreamSupervisor: decoder lifecycle (idle/starting/running)
    - StreamWatcher: restart policy on top of the supervisor

Example:
    from pixel_streamer.stream import DecoderProcess, StreamSupervisor
    
    supervisor = StreamSupervisor(
        pipeline,
        decoder_factory=lambda url: DecoderProcess(url, spec),
    )
    await supervisor.start("pixelmatrix")
"""

from pixel_streamer.stream.frame import DisplayMode, Frame, FrameSpec
from pixel_streamer.stream.reassembler import FrameReassembler
from pixel_streamer.stream.decoder import DecoderError, DecoderProcess, resolve_source
from pixel_streamer.stream.supervisor import ProcessingState, StreamSupervisor
from pixel_streamer.stream.watcher import StreamWatcher


__all__ = [
    "DisplayMode",
    "Frame",
    "FrameSpec",
    "FrameReassembler",
    "DecoderError",
    "DecoderProcess",
    "resolve_source",
    "ProcessingState",
    "StreamSupervisor",
    "StreamWatcher",
]
