import dataclasses

import pytest

from frame_grabber.config import (
    CaptureConfig,
    config_from_mapping,
    default_ffmpeg_path,
    load_config,
)
from frame_grabber.errors import ConfigError


def test_missing_keys_get_defaults(tmp_path):
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text("rtsp_url: rtsp://cam/stream\n", encoding="utf-8")

    cfg = load_config(cfg_file)
    assert cfg.rtsp_url == "rtsp://cam/stream"
    assert cfg.interval_ms == 1000
    assert cfg.request_timeout_ms == 5000
    assert cfg.output_dir == "frames"
    assert cfg.log_dir == "logs"
    assert cfg.ffmpeg_path == default_ffmpeg_path()
    assert not cfg.posts_frames


@pytest.mark.parametrize("interval, timeout", [(0, 0), (-5, -1), (-1000, 0)])
def test_non_positive_interval_and_timeout_fall_back(interval, timeout):
    cfg = config_from_mapping({"interval_ms": interval, "request_timeout_ms": timeout})
    assert cfg.interval_ms == 1000
    assert cfg.request_timeout_ms == 5000


def test_explicit_values_are_kept(tmp_path):
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(
        "\n".join(
            [
                "rtsp_url: rtsp://cam/stream",
                "interval_ms: 500",
                "request_timeout_ms: 2000",
                "post_url: http://example.test/frames",
                "ffmpeg_path: /opt/ffmpeg/bin/ffmpeg",
                "output_dir: out",
                "log_dir: /var/log/grabber",
            ]
        ),
        encoding="utf-8",
    )
    cfg = load_config(cfg_file)
    assert cfg.interval_seconds == 0.5
    assert cfg.timeout_seconds == 2.0
    assert cfg.posts_frames
    assert cfg.ffmpeg_path == "/opt/ffmpeg/bin/ffmpeg"
    assert cfg.output_dir == "out"
    assert cfg.log_dir == "/var/log/grabber"


def test_empty_file_is_all_defaults(tmp_path):
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text("", encoding="utf-8")
    cfg = load_config(cfg_file)
    assert cfg.rtsp_url == ""
    with pytest.raises(ConfigError):
        cfg.require_stream()


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "nope.yaml")


def test_invalid_yaml_raises(tmp_path):
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text("rtsp_url: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(cfg_file)


def test_non_mapping_document_raises(tmp_path):
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(cfg_file)


def test_non_numeric_interval_raises():
    with pytest.raises(ConfigError):
        config_from_mapping({"interval_ms": "soon"})


def test_config_is_frozen():
    cfg = CaptureConfig(rtsp_url="rtsp://cam")
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.rtsp_url = "rtsp://other"


def test_log_level_defaults_to_info_and_is_upper_cased():
    assert config_from_mapping({}).log_level == "INFO"
    assert config_from_mapping({"log_level": "debug"}).log_level == "DEBUG"
