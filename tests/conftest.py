"""Shared fixtures for dub_timeline tests."""

import shutil

import numpy as np
import pytest
from pydub import AudioSegment

from dub_timeline.models import STATUS_READY, Segment


requires_ffmpeg = pytest.mark.skipif(
    shutil.which("ffmpeg") is None, reason="ffmpeg not installed",
)


class FakeEngine:
    """In-memory AudioEngine that records commands instead of running ffmpeg.

    Each successful run "writes" its output buffer (the last argument).
    `fail_when(args)` returning True makes that command exit non-zero.
    """

    def __init__(self, fail_when=None, exit_code=1):
        self.files = {}
        self.written = {}
        self.commands = []
        self.deleted = []
        self.fail_when = fail_when
        self.exit_code = exit_code

    def put(self, name, data):
        self.files[name] = bytes(data)
        self.written[name] = bytes(data)

    def get(self, name):
        return self.files[name]

    def delete(self, name):
        if name not in self.files:
            raise FileNotFoundError(name)
        del self.files[name]
        self.deleted.append(name)

    def run(self, args):
        self.commands.append(list(args))
        if self.fail_when is not None and self.fail_when(args):
            return self.exit_code
        self.put(args[-1], ("rendered:" + " ".join(args)).encode())
        return 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def list(self):
        return sorted(self.files)


def arg_after(cmd, flag):
    """Value following `flag` in an ffmpeg argument list."""
    return cmd[cmd.index(flag) + 1]


def tone(duration_ms=500, frame_rate=24000, channels=1):
    """Create an AudioSegment with actual sound (not silence)."""
    count = int(frame_rate * duration_ms / 1000) * channels
    samples = np.random.randint(-5000, 5000, count, dtype=np.int16)
    return AudioSegment(
        data=samples.tobytes(),
        sample_width=2,
        frame_rate=frame_rate,
        channels=channels,
    )


def ready(seg_id, start, end, audio_duration, audio_ref=None):
    """Helper to create a Segment whose clip is synthesized."""
    return Segment(
        id=seg_id, start=start, end=end,
        translated_text="text",
        status=STATUS_READY,
        audio_ref=audio_ref or f"/clips/{seg_id}.mp3",
        audio_duration=audio_duration,
    )


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def tiny_mp3(tmp_path):
    """Generate a 100ms silent MP3 for testing."""
    path = tmp_path / "test.mp3"
    silence = AudioSegment.silent(duration=100)
    silence.export(str(path), format="mp3")
    return path


@pytest.fixture
def make_clip(tmp_path):
    """Write a tone WAV of the given length and return its path."""
    def factory(name, duration_ms, frame_rate=24000, channels=1):
        path = tmp_path / f"{name}.wav"
        tone(duration_ms, frame_rate, channels).export(str(path), format="wav")
        return str(path)
    return factory


@pytest.fixture
def sample_segments():
    """Two ready segments with a one-second gap, for a 6s timeline."""
    return [
        ready(0, 0.0, 2.0, 2.0),
        ready(1, 3.0, 5.0, 1.0),
    ]
