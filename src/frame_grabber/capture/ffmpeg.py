from __future__ import annotations

import subprocess
import time
from dataclasses import dataclass
from typing import List, Optional

from ..config import CaptureConfig
from ..errors import CaptureError, CaptureTimeout
from ..utils.daily_log import LogContext


@dataclass(frozen=True)
class FramePayload:
    """Raw bytes of one captured frame. The content is never inspected."""

    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def build_ffmpeg_args(ffmpeg_path: str, rtsp_url: str) -> List[str]:
    """Command line asking ffmpeg for one MJPEG frame on stdout."""
    return [
        ffmpeg_path,
        "-rtsp_transport", "tcp",
        "-i", rtsp_url,
        "-frames:v", "1",
        "-f", "image2pipe",
        "-vcodec", "mjpeg",
        "pipe:1",
    ]


def _decode_stderr(stderr: Optional[bytes]) -> str:
    if not stderr:
        return ""
    return stderr.decode("utf-8", errors="replace").strip()


class FfmpegFrameCapturer:
    """Grab a single still from a live stream by running ffmpeg once.

    The subprocess is bound to the timeout passed to `capture`; when the
    deadline passes it is killed and reaped before `CaptureTimeout` is raised.
    """

    def __init__(self, ffmpeg_path: str, rtsp_url: str, log: LogContext | None = None):
        self.ffmpeg_path = ffmpeg_path
        self.rtsp_url = rtsp_url
        self.log = log

    @classmethod
    def from_config(cls, cfg: CaptureConfig, log: LogContext | None = None) -> "FfmpegFrameCapturer":
        return cls(cfg.ffmpeg_path, cfg.rtsp_url, log=log)

    @property
    def args(self) -> List[str]:
        return build_ffmpeg_args(self.ffmpeg_path, self.rtsp_url)

    def capture(self, timeout: float) -> FramePayload:
        start = time.monotonic()
        try:
            proc = subprocess.run(
                self.args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            # subprocess.run has already killed and waited for the child.
            raise CaptureTimeout(
                f"ffmpeg error: timed out after {timeout:.3f}s: {_decode_stderr(e.stderr)}"
            ) from e
        except OSError as e:
            raise CaptureError(f"ffmpeg error: cannot run {self.ffmpeg_path}: {e}") from e

        if proc.returncode != 0:
            raise CaptureError(
                f"ffmpeg error: exit status {proc.returncode}: {_decode_stderr(proc.stderr)}"
            )

        if self.log is not None:
            self.log.info.debug(
                "ffmpeg finished in %.3fs, %d bytes", time.monotonic() - start, len(proc.stdout)
            )
        return FramePayload(proc.stdout)
