import stat
import sys
from pathlib import Path

import pytest


@pytest.fixture
def fake_ffmpeg(tmp_path):
    """Write an executable shell script standing in for ffmpeg."""

    if sys.platform.startswith("win"):
        pytest.skip("fake ffmpeg scripts need a POSIX shell")

    def _make(body: str, name: str = "ffmpeg") -> Path:
        path = tmp_path / name
        path.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make

