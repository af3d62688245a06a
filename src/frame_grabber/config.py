from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

import yaml

from .errors import ConfigError

DEFAULT_CONFIG_PATH = "config.yaml"
DEFAULT_INTERVAL_MS = 1000
DEFAULT_REQUEST_TIMEOUT_MS = 5000
DEFAULT_OUTPUT_DIR = "frames"
DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_LEVEL = "INFO"


def default_ffmpeg_path() -> str:
    return "ffmpeg.exe" if sys.platform.startswith("win") else "ffmpeg"


@dataclass(frozen=True)
class CaptureConfig:
    rtsp_url: str = ""
    interval_ms: int = DEFAULT_INTERVAL_MS
    post_url: str = ""  # empty -> frames are saved under output_dir
    ffmpeg_path: str = ""
    request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS
    output_dir: str = DEFAULT_OUTPUT_DIR
    log_dir: str = DEFAULT_LOG_DIR
    log_level: str = DEFAULT_LOG_LEVEL  # "DEBUG" adds per-attempt ffmpeg/HTTP detail

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000.0

    @property
    def timeout_seconds(self) -> float:
        return self.request_timeout_ms / 1000.0

    @property
    def posts_frames(self) -> bool:
        return bool(self.post_url)

    def require_stream(self) -> None:
        if not self.rtsp_url:
            raise ConfigError("rtsp_url must be set")


def _as_str(payload: dict, key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise ConfigError(f"{key}: expected a string, got {type(value).__name__}")
    return str(value).strip()


def _as_positive_ms(payload: dict, key: str, default: int) -> int:
    value = payload.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"{key}: expected an integer, got {value!r}")
    try:
        ms = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key}: expected an integer, got {value!r}") from e
    return ms if ms > 0 else default


def config_from_mapping(payload: dict) -> CaptureConfig:
    """Build a CaptureConfig from a parsed mapping, filling in defaults.

    Non-positive intervals/timeouts fall back to their defaults, the same as
    missing ones.
    """

    return CaptureConfig(
        rtsp_url=_as_str(payload, "rtsp_url"),
        interval_ms=_as_positive_ms(payload, "interval_ms", DEFAULT_INTERVAL_MS),
        post_url=_as_str(payload, "post_url"),
        ffmpeg_path=_as_str(payload, "ffmpeg_path") or default_ffmpeg_path(),
        request_timeout_ms=_as_positive_ms(payload, "request_timeout_ms", DEFAULT_REQUEST_TIMEOUT_MS),
        output_dir=_as_str(payload, "output_dir") or DEFAULT_OUTPUT_DIR,
        log_dir=_as_str(payload, "log_dir") or DEFAULT_LOG_DIR,
        log_level=_as_str(payload, "log_level").upper() or DEFAULT_LOG_LEVEL,
    )


def load_config(path: Path | str = DEFAULT_CONFIG_PATH) -> CaptureConfig:
    cfg_path = Path(path)
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            payload = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"cannot read {cfg_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"cannot parse {cfg_path}: {e}") from e

    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ConfigError(f"{cfg_path}: expected a mapping at the top level")
    return config_from_mapping(payload)
