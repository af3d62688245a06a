from __future__ import annotations

import datetime as _dt
import time
from pathlib import Path
from typing import Callable, Optional

import requests

from ..capture.ffmpeg import FramePayload
from ..config import CaptureConfig
from ..errors import DeliveryError
from ..utils.daily_log import LogContext

IMAGE_EXTENSION = ".jpg"
IMAGE_CONTENT_TYPE = "image/jpeg"
MAX_ERROR_BODY = 4096


def frame_filename(ts: _dt.datetime, suffix: int = 0) -> str:
    """`20060102_150405.000.jpg`, with `_<n>` before the extension for n > 0."""
    stem = ts.strftime("%Y%m%d_%H%M%S.") + f"{ts.microsecond // 1000:03d}"
    if suffix:
        stem = f"{stem}_{suffix}"
    return stem + IMAGE_EXTENSION


class FrameDeliverer:
    kind = "deliver"

    def deliver(self, payload: FramePayload) -> str:  # pragma: no cover - interface
        raise NotImplementedError

    def close(self) -> None:
        pass


class LocalFrameDeliverer(FrameDeliverer):
    """Write each frame to its own timestamp-named file under `output_dir`."""

    kind = "save"

    def __init__(
        self,
        output_dir: Path | str,
        now: Optional[Callable[[], _dt.datetime]] = None,
        max_suffix: int = 1000,
    ):
        self.output_dir = Path(output_dir)
        self._now = now or _dt.datetime.now
        self.max_suffix = max_suffix

    def deliver(self, payload: FramePayload) -> str:
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DeliveryError(f"cannot create {self.output_dir}: {e}") from e

        ts = self._now()
        for suffix in range(self.max_suffix):
            path = self.output_dir / frame_filename(ts, suffix)
            try:
                # "x" refuses to reuse a name taken in the same millisecond.
                with open(path, "xb") as f:
                    f.write(payload.data)
            except FileExistsError:
                continue
            except OSError as e:
                raise DeliveryError(f"cannot write {path}: {e}") from e
            return str(path)
        raise DeliveryError(f"no free file name for {frame_filename(ts)} in {self.output_dir}")


class HttpFrameDeliverer(FrameDeliverer):
    """POST each frame as raw `image/jpeg` bytes; any non-2xx status fails.

    The whole exchange is bounded by `timeout`: the response is streamed, the
    body of a 2xx reply is never read, and an error body is read a byte at a
    time until `max_error_body` bytes or the deadline, whichever comes first.
    A single blocking socket read is itself limited to `timeout`, so a call
    returns at most one read timeout after the deadline.
    """

    kind = "post"

    def __init__(
        self,
        url: str,
        timeout: float,
        session: Optional[requests.Session] = None,
        log: LogContext | None = None,
        max_error_body: int = MAX_ERROR_BODY,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.log = log
        self.max_error_body = max_error_body
        self._clock = clock

    def deliver(self, payload: FramePayload) -> str:
        deadline = self._clock() + self.timeout
        try:
            resp = self.session.post(
                self.url,
                data=payload.data,
                headers={"Content-Type": IMAGE_CONTENT_TYPE},
                timeout=self.timeout,
                stream=True,
            )
        except requests.RequestException as e:
            raise DeliveryError(f"POST {self.url}: {e}") from e

        try:
            if self._clock() > deadline:
                raise DeliveryError(
                    f"POST {self.url}: deadline of {self.timeout:.3f}s exceeded waiting for a response"
                )
            if not 200 <= resp.status_code < 300:
                status = f"unexpected status: {resp.status_code} {resp.reason or ''}".rstrip()
                raise DeliveryError(f"{status}: {self._read_error_body(resp, deadline)}")
        finally:
            resp.close()
        if self.log is not None:
            self.log.info.debug("POST %s -> %s", self.url, resp.status_code)
        return self.url

    def _read_error_body(self, resp, deadline: float) -> str:
        body = bytearray()
        note = ""
        try:
            for chunk in resp.iter_content(chunk_size=1):
                body.extend(chunk)
                if len(body) >= self.max_error_body:
                    note = " [truncated]"
                    break
                if self._clock() > deadline:
                    note = " [deadline exceeded]"
                    break
        except requests.RequestException as e:
            note = f" [body read failed: {e}]"
        return body[: self.max_error_body].decode(resp.encoding or "utf-8", errors="replace") + note

    def close(self) -> None:
        self.session.close()


def build_deliverer(cfg: CaptureConfig, log: LogContext | None = None) -> FrameDeliverer:
    if cfg.posts_frames:
        return HttpFrameDeliverer(cfg.post_url, timeout=cfg.timeout_seconds, log=log)
    return LocalFrameDeliverer(cfg.output_dir)
