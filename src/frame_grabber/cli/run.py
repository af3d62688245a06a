"""Command-line entry point.

Logging starts out writing daily files in the working directory, so a
failure to load the config lands in `error-<date>.log` there (or on stderr
if that directory is unusable). Once the config is loaded, logging moves to
its `log_dir`.
"""

import argparse
from typing import List, Optional

from ..capture.ffmpeg import FfmpegFrameCapturer
from ..config import DEFAULT_CONFIG_PATH, load_config
from ..delivery.deliverers import build_deliverer
from ..errors import ConfigError
from ..scheduler import CaptureScheduler
from ..utils.daily_log import setup_logging


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Grab one frame from an RTSP stream on a fixed interval and save or POST it."
    )
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="path to config file")
    args = parser.parse_args(argv)

    log = setup_logging("")
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        log.error.critical("load config: %s", e)
        log.close()
        return 1

    log.close()
    log = setup_logging(cfg.log_dir, level=cfg.log_level)
    try:
        cfg.require_stream()
    except ConfigError as e:
        log.error.critical("%s", e)
        log.close()
        return 1

    capturer = FfmpegFrameCapturer.from_config(cfg, log=log)
    deliverer = build_deliverer(cfg, log=log)
    scheduler = CaptureScheduler.from_config(cfg, capturer, deliverer, log)
    try:
        scheduler.run()
    except KeyboardInterrupt:
        log.info.info("interrupted, exiting")
    finally:
        deliverer.close()
        log.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
