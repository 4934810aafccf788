"""
Decoder Process Tests
=====================

Command construction and source resolution; no ffmpeg is spawned.
"""

import asyncio

import pytest

from pixel_streamer.stream import DecoderError, DecoderProcess, FrameSpec, resolve_source
from pixel_streamer.stream.decoder import resolve_ffmpeg


class TestResolveSource:
    
    @pytest.mark.parametrize("identifier,expected", [
        ("pixelmatrix", "rtmp://localhost:1935/live/pixelmatrix"),
        ("  pixelmatrix ", "rtmp://localhost:1935/live/pixelmatrix"),
        ("srt://10.0.0.2:9000", "srt://10.0.0.2:9000"),
        ("rtmp://other/live/key", "rtmp://other/live/key"),
        ("/tmp/capture.mkv", "/tmp/capture.mkv"),
    ])
    def test_resolution(self, identifier, expected):
        assert resolve_source(identifier, "rtmp://localhost:1935/live/") == expected
    
    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            resolve_source("", "rtmp://localhost/live")


class TestCommand:
    
    def test_default_command(self):
        decoder = DecoderProcess("rtmp://localhost/live/key", FrameSpec(128, 32))
        
        command = decoder.build_command("/usr/bin/ffmpeg")
        
        assert command[0] == "/usr/bin/ffmpeg"
        assert command[-1] == "pipe:1"
        for flag, value in [
            ("-i", "rtmp://localhost/live/key"),
            ("-f", "rawvideo"),
            ("-pix_fmt", "rgba"),
            ("-s", "128x32"),
            ("-r", "75"),
            ("-fflags", "nobuffer"),
            ("-flags", "low_delay"),
        ]:
            assert command[command.index(flag) + 1] == value
        # input options come before the input
        assert command.index("-fflags") < command.index("-i")
    
    def test_custom_options(self):
        decoder = DecoderProcess(
            "/tmp/in.mp4",
            FrameSpec(64, 64),
            frame_rate=30,
            input_options=["-re"],
            loglevel="warning",
        )
        
        command = decoder.build_command()
        
        assert command[command.index("-loglevel") + 1] == "warning"
        assert "-fflags" not in command
        assert command[command.index("-re") + 1] == "-i"
        assert command[command.index("-r") + 1] == "30"


class TestProcess:
    
    def test_missing_ffmpeg(self, monkeypatch):
        monkeypatch.setattr("pixel_streamer.stream.decoder.shutil.which", lambda name: None)
        
        with pytest.raises(DecoderError):
            resolve_ffmpeg("ffmpeg-does-not-exist")
        
        decoder = DecoderProcess("rtmp://localhost/live/key", FrameSpec(4, 4))
        with pytest.raises(DecoderError):
            asyncio.run(decoder.start())
    
    def test_unstarted_process(self):
        async def scenario():
            decoder = DecoderProcess("rtmp://localhost/live/key", FrameSpec(4, 4))
            chunk = await decoder.read(1024)
            await decoder.close()
            with pytest.raises(DecoderError):
                await decoder.wait()
            return decoder, chunk
        
        decoder, chunk = asyncio.run(scenario())
        
        assert chunk == b""
        assert decoder.stderr_tail == ""
