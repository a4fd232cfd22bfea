"""Tests for constants and models (Layer 0)."""

import pytest

from dub_timeline import constants
from dub_timeline.models import (
    STATUS_ERROR,
    STATUS_IDLE,
    STATUS_READY,
    BuildPlan,
    Clip,
    Segment,
    Silence,
    segment_from_dict,
    segment_to_dict,
    target_char_count,
)


def test_segment_dataclass():
    """Segment fields exist and defaults work."""
    seg = Segment(id=1, start=0.5, end=2.0)
    assert seg.status == STATUS_IDLE
    assert seg.translated_text == ""
    assert seg.audio_ref is None
    assert seg.audio_duration is None
    assert seg.duration == pytest.approx(1.5)


@pytest.mark.parametrize("start,end", [(2.0, 2.0), (3.0, 1.0), (-1.0, 1.0), (0.0, float("inf"))])
def test_segment_rejects_bad_slot(start, end):
    with pytest.raises(ValueError):
        Segment(id=1, start=start, end=end)


def test_segment_rejects_unknown_status():
    with pytest.raises(ValueError, match="status"):
        Segment(id=1, start=0, end=1, status="done")


def test_is_ready_needs_clip():
    """Ready status without a clip reference isn't renderable."""
    seg = Segment(id=1, start=0, end=1, status=STATUS_READY)
    assert not seg.is_ready
    seg.audio_ref = "/clips/1.mp3"
    assert seg.is_ready


def test_apply_synthesis_ready_then_error():
    seg = Segment(id="a", start=0, end=1)
    seg.apply_synthesis(STATUS_READY, "/clips/a.mp3", 0.8)
    assert seg.status == STATUS_READY
    assert seg.audio_ref == "/clips/a.mp3"
    assert seg.audio_duration == 0.8

    # A later failure must not leave a stale clip behind
    seg.apply_synthesis(STATUS_ERROR)
    assert seg.status == STATUS_ERROR
    assert seg.audio_ref is None
    assert not seg.is_ready


def test_target_char_count():
    assert target_char_count(2.5) == 30
    assert target_char_count(0.05) == 0
    assert target_char_count(1.0, chars_per_second=20) == 20


def test_over_budget():
    seg = Segment(id=1, start=0, end=1, translated_text="x" * 13, target_char_count=12)
    assert seg.over_budget
    seg.translated_text = "x" * 12
    assert not seg.over_budget
    assert not Segment(id=2, start=0, end=1, translated_text="long" * 3).over_budget


def test_over_budget_falls_back_to_slot_budget():
    seg = Segment(id=1, start=0, end=1, translated_text="x" * 13)
    assert seg.char_budget == 12
    assert seg.over_budget
    seg.translated_text = "x" * 12
    assert not seg.over_budget


def test_segment_dict_round_trip():
    seg = Segment(
        id=7, start=1.0, end=2.5, original_text="Olá", translated_text="Hello",
        target_char_count=18, speaker="A", status=STATUS_READY,
        audio_ref="/clips/7.mp3", audio_duration=1.4,
    )
    assert segment_from_dict(segment_to_dict(seg)) == seg


def test_segment_to_dict_omits_unset_fields():
    data = segment_to_dict(Segment(id=1, start=0, end=1))
    assert "audio_ref" not in data
    assert "audio_duration" not in data
    assert "target_char_count" not in data


def test_blocks_compare_on_plan_fields_only():
    """Snapshot fields on a Clip don't affect equality."""
    assert Clip(3, 2.0, start=4.0, audio_ref="/x.mp3", audio_duration=1.0) == Clip(3, 2.0)
    assert Silence(1.0, start=2.0) == Silence(1.0)
    assert Clip(3, 2.0) != Clip(4, 2.0)


def test_build_plan_views():
    plan = BuildPlan(blocks=[Clip(0, 2.0), Silence(1.0), Clip(1, 2.0)], total_duration=5.0)
    assert plan.clips == [Clip(0, 2.0), Clip(1, 2.0)]
    assert plan.silences == [Silence(1.0)]
    assert plan.skipped == []


def test_constants_exist():
    """All module-level constants are defined."""
    expected = [
        "MIN_STRETCH",
        "MAX_STRETCH",
        "ATEMPO_MIN",
        "ATEMPO_MAX",
        "TEMPO_TOLERANCE",
        "GAP_EPSILON",
        "SAMPLE_RATE",
        "CHANNELS",
        "CHANNEL_LAYOUTS",
        "OUTPUT_FORMAT",
        "OUTPUT_BITRATE",
        "EXTRACT_BITRATE",
        "ENGINE_TIMEOUT_SECONDS",
        "TTS_RETRY_COUNT",
        "TTS_RETRY_BASE_DELAY",
        "TTS_RATE",
        "DEFAULT_VOICE",
        "SYNTHESIS_CONCURRENCY",
        "SAFE_CHARS_PER_SEC",
        "OUTPUT_DIR",
        "VERSION",
    ]
    for name in expected:
        assert hasattr(constants, name), f"Missing constant: {name}"
    assert (constants.MIN_STRETCH, constants.MAX_STRETCH) == (0.5, 2.0)
