"""
Configuration Tests
===================
"""

import pytest

from pixel_streamer.config import (
    ConfigurationError,
    Settings,
    apply_overrides,
    load_config,
)
from pixel_streamer.stream import DisplayMode


_ENV_NAMES = [
    "MQTT_BROKER", "MQTT_USERNAME", "MQTT_PASSWORD",
    "MQTT_TOPIC_DISPLAY1", "MQTT_TOPIC_DISPLAY2",
    "STREAM_BASE_URL", "STREAM_KEY",
    "CANVAS_WIDTH", "CANVAS_HEIGHT", "DISPLAY_MODE", "BRIGHTNESS",
    "FFMPEG_PATH", "DECODER_FRAME_RATE", "PORT", "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No config file in the working directory and no overrides set."""
    monkeypatch.chdir(tmp_path)
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDefaults:
    
    def test_defaults(self, clean_env):
        settings = load_config()
        
        assert settings.display.width == 128
        assert settings.display.height == 32
        assert settings.display.mode == DisplayMode.SINGLE
        assert settings.display.brightness == 50
        assert settings.mqtt.broker == "mqtt://localhost:1883"
        assert settings.mqtt.display1_topic == "led/display1"
        assert settings.mqtt.display2_topic == "led/display2"
        assert settings.mqtt.qos == 1
        assert settings.decoder.frame_rate == 75
        assert settings.server.port == 3001
        assert settings.stream_url == "rtmp://localhost:1935/live/pixelmatrix"


class TestEnvironment:
    
    def test_env_overrides(self, clean_env):
        clean_env.setenv("CANVAS_WIDTH", "64")
        clean_env.setenv("CANVAS_HEIGHT", "64")
        clean_env.setenv("DISPLAY_MODE", "dual")
        clean_env.setenv("BRIGHTNESS", "80")
        clean_env.setenv("MQTT_BROKER", "mqtt://broker.lan:1883")
        clean_env.setenv("MQTT_TOPIC_DISPLAY2", "wall/bottom")
        clean_env.setenv("STREAM_KEY", "wall")
        
        settings = load_config()
        
        assert (settings.display.width, settings.display.height) == (64, 64)
        assert settings.display.mode == DisplayMode.DUAL
        assert settings.display.brightness == 80
        assert settings.mqtt.broker == "mqtt://broker.lan:1883"
        assert settings.mqtt.display2_topic == "wall/bottom"
        assert settings.stream_url.endswith("/wall")
    
    def test_env_beats_file(self, clean_env, tmp_path):
        (tmp_path / "config.yaml").write_text("display:\n  brightness: 10\n")
        clean_env.setenv("BRIGHTNESS", "90")
        
        assert load_config().display.brightness == 90
    
    def test_non_numeric_env_rejected(self, clean_env):
        clean_env.setenv("CANVAS_WIDTH", "wide")
        with pytest.raises(ConfigurationError, match="CANVAS_WIDTH"):
            load_config()
    
    @pytest.mark.parametrize("name,value", [
        ("CANVAS_WIDTH", "0"),
        ("CANVAS_HEIGHT", "-2"),
        ("BRIGHTNESS", "101"),
        ("DISPLAY_MODE", "triple"),
    ])
    def test_out_of_range_rejected(self, clean_env, name, value):
        clean_env.setenv(name, value)
        with pytest.raises(ConfigurationError):
            load_config()


class TestFile:
    
    def test_yaml_file(self, clean_env, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text(
            "display:\n"
            "  width: 64\n"
            "  mode: dual\n"
            "mqtt:\n"
            "  qos: 0\n"
            "publish:\n"
            "  max_in_flight: 4\n"
        )
        
        settings = load_config(str(path))
        
        assert settings.display.width == 64
        assert settings.display.mode == DisplayMode.DUAL
        assert settings.mqtt.qos == 0
        assert settings.publish.max_in_flight == 4
    
    def test_config_yaml_found_in_cwd(self, clean_env, tmp_path):
        (tmp_path / "config.yaml").write_text("server:\n  port: 8080\n")
        assert load_config().server.port == 8080
    
    def test_invalid_yaml(self, clean_env, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("display: [unclosed\n")
        with pytest.raises(ConfigurationError):
            load_config(str(path))
    
    def test_non_mapping_yaml(self, clean_env, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            load_config(str(path))


class TestOverrides:
    
    def test_apply_overrides(self):
        settings = apply_overrides(Settings(), {"display": {"mode": "dual", "brightness": 100}})
        
        assert settings.display.mode == DisplayMode.DUAL
        assert settings.display.brightness == 100
        assert settings.display.width == 128
    
    def test_apply_overrides_validates(self):
        with pytest.raises(ConfigurationError, match="brightness"):
            apply_overrides(Settings(), {"display": {"brightness": -5}})
    
    def test_odd_dual_height_warns(self, caplog):
        with caplog.at_level("WARNING"):
            apply_overrides(Settings(), {"display": {"mode": "dual", "height": 65}})
        assert "odd height 65" in caplog.text
