"""
Pixel Streamer Main Application
===============================

FastAPI entry point for the pixel streamer.

The compositor (e.g. OBS) publishes its canvas to an RTMP server. The
streamer pulls that stream through ffmpeg, cuts it into RGBA frames at the
display resolution, scales brightness, splits it per display and publishes
each payload to MQTT.

Endpoints:
    GET  /                  - Service information
    GET  /health            - Liveness probe
    GET  /api/status        - MQTT, processor, publisher and throughput status
    POST /api/stream/start  - Start processing (optional {"stream_key": ...})
    POST /api/stream/stop   - Stop processing
    WS   /ws/status         - Status pushed every second
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from pixel_streamer import __version__
from pixel_streamer.config import Settings, load_config, setup_logging
from pixel_streamer.publish import Transport
from pixel_streamer.services import DecoderFactory, build_services, build_status, stop_watcher
from pixel_streamer.stream import StreamWatcher


logger = logging.getLogger(__name__)


class StartRequest(BaseModel):
    """Body of POST /api/stream/start."""
    
    stream_key: Optional[str] = None


# =============================================================================
# FastAPI Application
# =============================================================================

def create_app(
    settings: Settings,
    transport: Optional[Transport] = None,
    decoder_factory: Optional[DecoderFactory] = None,
) -> FastAPI:
    """
    Build the FastAPI application.
    
    Args:
        settings: Loaded configuration
        transport: Transport override (defaults to MQTT or dry-run per settings)
        decoder_factory: Decoder override (defaults to ffmpeg)
    """
    services = build_services(settings, transport, decoder_factory)
    
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan manager with graceful shutdown."""
        services.startup_time = time.time()
        logger.info(f"Starting pixel streamer {__version__}")
        logger.info(
            f"Display: {settings.display.width}x{settings.display.height} "
            f"mode={settings.display.mode.value} brightness={settings.display.brightness}%"
        )
        logger.info(f"Compositor stream URL: {settings.stream_url}")
        
        services.transport.connect()
        
        if settings.stream.auto_start:
            services.watcher = StreamWatcher(
                services.supervisor,
                settings.stream.stream_key,
                restart_delay_seconds=settings.stream.restart_delay_seconds,
                max_restart_attempts=settings.stream.max_restart_attempts,
            )
            services.watcher_task = asyncio.create_task(
                services.watcher.run(),
                name="stream_watcher",
            )
        
        yield
        
        logger.info("Shutting down gracefully...")
        
        await stop_watcher(services)
        
        await services.supervisor.stop()
        
        services.transport.disconnect()
        
        logger.info("Shutdown complete")
    
    app = FastAPI(
        title="Pixel Streamer",
        description="Compositor stream to MQTT pixel-matrix bridge",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services
    
    @app.get("/")
    async def root() -> JSONResponse:
        """Service information endpoint."""
        return JSONResponse({
            "service": "pixel-streamer",
            "version": __version__,
            "status": "running",
            "stream_url": settings.stream_url,
            "mode": settings.display.mode.value,
        })
    
    @app.get("/health")
    async def health() -> JSONResponse:
        """Liveness probe - always 200 while the process is up."""
        return JSONResponse({
            "status": "ok",
            "uptime_seconds": round(time.time() - services.startup_time, 1)
            if services.startup_time else 0.0,
        })
    
    @app.get("/api/status")
    async def status() -> JSONResponse:
        """Detailed status for observability."""
        return JSONResponse(build_status(services))
    
    @app.post("/api/stream/start")
    async def start_stream(request: Optional[StartRequest] = None) -> JSONResponse:
        """Start processing the configured or given stream key."""
        stream_key = (request.stream_key if request else None) or settings.stream.stream_key
        try:
            started = await services.supervisor.start(stream_key)
        except ValueError as e:
            return JSONResponse({"error": str(e)}, status_code=400)
        
        return JSONResponse(
            {
                "started": started,
                "processor": services.supervisor.get_status().model_dump(mode="json"),
            },
            status_code=202 if started else 409,
        )
    
    @app.post("/api/stream/stop")
    async def stop_stream() -> JSONResponse:
        """Stop processing and the auto-restart watcher; only a new start request resumes."""
        await stop_watcher(services)
        await services.supervisor.stop()
        return JSONResponse({
            "stopped": True,
            "processor": services.supervisor.get_status().model_dump(mode="json"),
        })
    
    @app.websocket("/ws/status")
    async def status_stream(websocket: WebSocket) -> None:
        """WebSocket endpoint for real-time status."""
        await websocket.accept()
        logger.info("Client connected to /ws/status")
        
        try:
            while True:
                await websocket.send_json(build_status(services))
                # client messages are ignored; receiving is how a disconnect shows up
                try:
                    await asyncio.wait_for(websocket.receive_text(), timeout=1.0)
                except asyncio.TimeoutError:
                    pass
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.warning(f"WebSocket error: {e}")
        finally:
            logger.info("Client disconnected from /ws/status")
    
    return app


# =============================================================================
# Module Application
# =============================================================================

settings = load_config()
setup_logging(settings)

app = create_app(settings)


# =============================================================================
# Main Entry Point
# =============================================================================

def run() -> None:
    """Console entry point."""
    import uvicorn
    
    uvicorn.run(
        "pixel_streamer.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run()
