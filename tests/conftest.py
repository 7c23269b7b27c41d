import stat
from pathlib import Path

import pytest

from multivoice.events import MergeObserver


class RecordingObserver(MergeObserver):
    def __init__(self):
        self.events = []

    def names(self):
        return [name for name, _ in self.events]

    def progress(self):
        return [value for name, value in self.events if name == "progress"]

    def on_start(self, command):
        self.events.append(("start", command))

    def on_progress(self, percent):
        self.events.append(("progress", percent))

    def on_success(self, output):
        self.events.append(("success", output))

    def on_failure(self, error):
        self.events.append(("failure", error))


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def fake_engine(tmp_path):
    """Write an executable shell script standing in for ffmpeg."""

    def _write(body: str) -> str:
        script = tmp_path / f"fake_ffmpeg_{len(list(tmp_path.glob('fake_ffmpeg_*')))}"
        script.write_text("#!/bin/sh\nfor last in \"$@\"; do :; done\n" + body)
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(script)

    return _write


@pytest.fixture
def audio_inputs(tmp_path):
    inputs = []
    for name in ("a.mp3", "b.mp3"):
        path = tmp_path / name
        path.write_bytes(b"ID3")
        inputs.append(str(path))
    return inputs
