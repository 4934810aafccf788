"""
Pixel Streamer Configuration
============================

This module handles configuration loading for the pixel streamer.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    MQTT_BROKER          -> mqtt.broker
    MQTT_USERNAME        -> mqtt.username
    MQTT_PASSWORD        -> mqtt.password
    MQTT_TOPIC_DISPLAY1  -> mqtt.display1_topic
    MQTT_TOPIC_DISPLAY2  -> mqtt.display2_topic
    STREAM_BASE_URL      -> stream.base_url
    STREAM_KEY           -> stream.stream_key
    CANVAS_WIDTH         -> display.width
    CANVAS_HEIGHT        -> display.height
    DISPLAY_MODE         -> display.mode
    BRIGHTNESS           -> display.brightness
    FFMPEG_PATH          -> decoder.ffmpeg_path
    DECODER_FRAME_RATE   -> decoder.frame_rate
    PORT                 -> server.port
    LOG_LEVEL            -> logging.level

Configuration is read once at startup. Changing any value requires
restarting the service.

Example:
    from pixel_streamer.config import load_config
    
    settings = load_config()
    print(settings.display.width, settings.display.height)
    print(settings.mqtt.broker)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from pixel_streamer.stream.frame import DisplayMode


logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration values are missing or out of range."""
    pass


# =============================================================================
# Configuration Models
# =============================================================================

class DisplayConfig(BaseModel):
    """Pixel matrix geometry and output adjustments."""
    
    width: int = Field(default=128, gt=0, description="Frame width in pixels")
    height: int = Field(default=32, gt=0, description="Frame height in pixels")
    mode: DisplayMode = Field(
        default=DisplayMode.SINGLE,
        description="Display mode: 'single' or 'dual' (top/bottom split)",
    )
    brightness: int = Field(
        default=50,
        ge=0,
        le=100,
        description="Brightness percentage applied to R, G and B channels",
    )
    swap_red_blue: bool = Field(
        default=False,
        description="Emit BGRA instead of RGBA for controllers with BGR wiring",
    )
    
    @model_validator(mode="after")
    def _warn_odd_dual_height(self) -> "DisplayConfig":
        if self.mode == DisplayMode.DUAL and self.height % 2:
            logger.warning(
                f"Dual mode with odd height {self.height}: "
                f"row {self.height - 1} is not sent to either display"
            )
        return self


class MQTTConfig(BaseModel):
    """MQTT broker connection and topics."""
    
    broker: str = Field(
        default="mqtt://localhost:1883",
        description="Broker URL (mqtt:// or mqtts://)",
    )
    username: Optional[str] = Field(default=None, description="Broker username")
    password: Optional[str] = Field(default=None, description="Broker password")
    display1_topic: str = Field(default="led/display1", min_length=1)
    display2_topic: str = Field(default="led/display2", min_length=1)
    qos: int = Field(default=1, ge=0, le=2, description="Publish quality of service")
    client_id: str = Field(default="", description="Client id (empty = generated)")
    keepalive: int = Field(default=60, ge=5, description="Keepalive in seconds")
    reconnect_delay_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Maximum delay between broker reconnect attempts",
    )
    dry_run: bool = Field(
        default=False,
        description="Acknowledge publishes locally without a broker",
    )


class StreamConfig(BaseModel):
    """Compositor stream source configuration."""
    
    base_url: str = Field(
        default="rtmp://localhost:1935/live",
        description="Base URL that stream keys are appended to",
    )
    stream_key: str = Field(default="pixelmatrix", min_length=1)
    auto_start: bool = Field(
        default=True,
        description="Start processing on service startup and restart when the stream ends",
    )
    restart_delay_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Delay before restarting an ended stream session",
    )
    max_restart_attempts: int = Field(
        default=0,
        ge=0,
        description="Maximum consecutive restarts (0 = unlimited)",
    )


class DecoderConfig(BaseModel):
    """External ffmpeg decoder configuration."""
    
    ffmpeg_path: Optional[str] = Field(
        default=None,
        description="ffmpeg executable (None = look up on PATH)",
    )
    frame_rate: int = Field(default=75, gt=0, le=240, description="Output frame rate")
    read_chunk_size: int = Field(
        default=65536,
        ge=1024,
        description="Maximum bytes read from decoder stdout per chunk",
    )
    loglevel: str = Field(default="error", description="ffmpeg -loglevel value")
    input_options: List[str] = Field(
        default_factory=lambda: [
            "-fflags", "nobuffer",
            "-flags", "low_delay",
            "-strict", "experimental",
        ],
        description="Options placed before -i",
    )


class PublishConfig(BaseModel):
    """Publish backpressure configuration."""
    
    max_in_flight: int = Field(
        default=0,
        ge=0,
        description="Publishes handed to the transport at once (0 = unbounded)",
    )
    pending_queue_size: int = Field(
        default=8,
        ge=1,
        description="Publishes waiting for an in-flight slot before the oldest is dropped",
    )


class StatsConfig(BaseModel):
    """Throughput reporting configuration."""
    
    interval_seconds: float = Field(default=5.0, gt=0, description="Report cadence")


class ServerConfig(BaseModel):
    """Server configuration."""
    
    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=3001, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the pixel streamer.
    
    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """
    
    display: DisplayConfig = Field(default_factory=DisplayConfig)
    mqtt: MQTTConfig = Field(default_factory=MQTTConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    decoder: DecoderConfig = Field(default_factory=DecoderConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)
    stats: StatsConfig = Field(default_factory=StatsConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    
    @property
    def stream_url(self) -> str:
        """Full URL of the configured compositor stream."""
        return f"{self.stream.base_url.rstrip('/')}/{self.stream.stream_key}"


# =============================================================================
# Configuration Loading
# =============================================================================

# (environment variable, section, key, converter)
_ENV_OVERRIDES = (
    ("MQTT_BROKER", "mqtt", "broker", str),
    ("MQTT_USERNAME", "mqtt", "username", str),
    ("MQTT_PASSWORD", "mqtt", "password", str),
    ("MQTT_TOPIC_DISPLAY1", "mqtt", "display1_topic", str),
    ("MQTT_TOPIC_DISPLAY2", "mqtt", "display2_topic", str),
    ("STREAM_BASE_URL", "stream", "base_url", str),
    ("STREAM_KEY", "stream", "stream_key", str),
    ("CANVAS_WIDTH", "display", "width", int),
    ("CANVAS_HEIGHT", "display", "height", int),
    ("DISPLAY_MODE", "display", "mode", str),
    ("BRIGHTNESS", "display", "brightness", int),
    ("FFMPEG_PATH", "decoder", "ffmpeg_path", str),
    ("DECODER_FRAME_RATE", "decoder", "frame_rate", int),
    ("PORT", "server", "port", int),
    ("LOG_LEVEL", "logging", "level", str),
)


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.
    
    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values
        
    Args:
        config_path: Path to config.yaml. If None, searches common locations.
        
    Returns:
        Settings: Loaded configuration
        
    Raises:
        ConfigurationError: If any value is malformed or out of range
    """
    # Find config file
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/app/config.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break
    
    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            try:
                config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(config_data, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping at top level")
    else:
        logger.info("No config file found, using defaults and environment variables")
    
    _apply_env_overrides(config_data)
    
    return _validate(config_data)


def apply_overrides(settings: Settings, overrides: dict) -> Settings:
    """
    Return a copy of settings with nested overrides applied and validated.
    
    Example:
        settings = apply_overrides(settings, {"display": {"mode": "dual"}})
    """
    config_data = settings.model_dump()
    for section, values in overrides.items():
        config_data.setdefault(section, {}).update(values)
    return _validate(config_data)


def _validate(config_data: dict) -> Settings:
    try:
        return Settings.model_validate(config_data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from e


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""
    for env_name, section, key, convert in _ENV_OVERRIDES:
        raw = os.environ.get(env_name)
        if raw is None or raw == "":
            continue
        try:
            value = convert(raw)
        except ValueError as e:
            raise ConfigurationError(
                f"Environment variable {env_name}={raw!r} is not a valid {convert.__name__}"
            ) from e
        config_data.setdefault(section, {})[key] = value


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)
    
    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    
    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
