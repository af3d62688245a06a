"""Fixed-interval capture loop.

One iteration captures a frame and hands it to the deliverer. Iterations never
overlap: the next one starts at the first tick boundary after the previous one
finished, and ticks missed while an iteration overran are dropped. Failures of
a single iteration are logged and never stop the loop.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol, Union

from .capture.ffmpeg import FramePayload
from .config import CaptureConfig
from .delivery.deliverers import FrameDeliverer
from .errors import CaptureError, DeliveryError
from .utils.daily_log import LogContext


class FrameCapturer(Protocol):
    def capture(self, timeout: float) -> FramePayload:
        ...


class SchedulerState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"


@dataclass(frozen=True)
class CaptureSuccess:
    size: int
    elapsed: float
    destination: str = ""


@dataclass(frozen=True)
class CaptureFailure:
    cause: str


@dataclass(frozen=True)
class DeliveryFailure:
    cause: str


CaptureOutcome = Union[CaptureSuccess, CaptureFailure, DeliveryFailure]


class CaptureScheduler:
    def __init__(
        self,
        capturer: FrameCapturer,
        deliverer: FrameDeliverer,
        log: LogContext,
        interval: float,
        timeout: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if interval <= 0 or timeout <= 0:
            raise ValueError("interval and timeout must be positive")
        self.capturer = capturer
        self.deliverer = deliverer
        self.log = log
        self.interval = interval
        self.timeout = timeout
        self._clock = clock
        self._sleep = sleep
        self.state = SchedulerState.IDLE
        self.iterations = 0

    @classmethod
    def from_config(
        cls,
        cfg: CaptureConfig,
        capturer: FrameCapturer,
        deliverer: FrameDeliverer,
        log: LogContext,
        **kwargs,
    ) -> "CaptureScheduler":
        return cls(
            capturer,
            deliverer,
            log,
            interval=cfg.interval_seconds,
            timeout=cfg.timeout_seconds,
            **kwargs,
        )

    def run_once(self) -> CaptureOutcome:
        self.state = SchedulerState.CAPTURING
        try:
            outcome = self._attempt()
            self._report(outcome)
            return outcome
        finally:
            self.iterations += 1
            self.state = SchedulerState.IDLE

    def _attempt(self) -> CaptureOutcome:
        start = self._clock()
        try:
            payload = self.capturer.capture(self.timeout)
        except CaptureError as e:
            return CaptureFailure(str(e))
        except Exception as e:
            self.log.error.exception("unexpected error during capture")
            return CaptureFailure(f"{type(e).__name__}: {e}")

        try:
            destination = self.deliverer.deliver(payload)
        except DeliveryError as e:
            return DeliveryFailure(str(e))
        except Exception as e:
            self.log.error.exception("unexpected error during delivery")
            return DeliveryFailure(f"{type(e).__name__}: {e}")

        return CaptureSuccess(size=payload.size, elapsed=self._clock() - start, destination=destination)

    def _report(self, outcome: CaptureOutcome) -> None:
        verb = getattr(self.deliverer, "kind", "deliver")
        if isinstance(outcome, CaptureSuccess):
            past = {"save": "saved", "post": "posted"}.get(verb, "delivered")
            self.log.info.info(
                "%s frame, size=%d bytes, cost=%.3fs", past, outcome.size, outcome.elapsed
            )
        elif isinstance(outcome, CaptureFailure):
            self.log.error.error("capture failed: %s", outcome.cause)
        else:
            self.log.error.error("%s failed: %s", verb, outcome.cause)

    def run(self, max_ticks: Optional[int] = None) -> None:
        """Run iterations on the tick grid; forever unless `max_ticks` is set."""

        self.log.info.info("starting capture loop, interval=%dms", round(self.interval * 1000))
        origin = self._clock()
        tick = 0
        done = 0
        while max_ticks is None or done < max_ticks:
            self.run_once()
            done += 1
            if max_ticks is not None and done >= max_ticks:
                break

            now = self._clock()
            due = tick + 1
            elapsed_ticks = int((now - origin) / self.interval)
            if elapsed_ticks >= due:
                due = elapsed_ticks + 1
            tick = due
            delay = origin + due * self.interval - now
            if delay > 0:
                self._sleep(delay)
