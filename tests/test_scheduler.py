"""Tests for the gap scheduler (Layer 1b)."""

import itertools

import pytest

from conftest import ready
from dub_timeline.constants import GAP_EPSILON
from dub_timeline.errors import MissingSynthesis, OverlappingSegments
from dub_timeline.models import (
    STATUS_ERROR,
    STATUS_GENERATING,
    STATUS_IDLE,
    Clip,
    Segment,
    Silence,
)
from dub_timeline.scheduler import build_plan, sort_segments


def test_two_segments_with_gap_and_tail(sample_segments):
    """[0-2], [3-5] on a 6s timeline → clip, 1s silence, clip, 1s silence."""
    plan = build_plan(sample_segments, 6.0)
    assert plan.blocks == [Clip(0, 2.0), Silence(1.0), Clip(1, 2.0), Silence(1.0)]
    assert sum(getattr(b, "duration", None) or b.target_duration for b in plan.blocks) == pytest.approx(6.0)


def test_leading_silence():
    plan = build_plan([ready(0, 1.5, 2.0, 0.5)], 2.0)
    assert plan.blocks == [Silence(1.5), Clip(0, 0.5)]
    assert plan.blocks[0].start == 0.0


def test_permutation_invariance():
    segments = [
        ready(0, 0.0, 1.0, 1.0),
        ready(1, 1.5, 3.0, 2.0),
        ready(2, 4.0, 4.5, 0.4),
        ready(3, 6.0, 8.0, 1.9),
    ]
    expected = build_plan(segments, 10.0).blocks
    for perm in itertools.permutations(segments):
        assert build_plan(list(perm), 10.0).blocks == expected


def test_small_gap_gets_no_silence():
    segments = [ready(0, 0.0, 1.0, 1.0), ready(1, 1.0 + GAP_EPSILON / 2, 2.0, 1.0)]
    plan = build_plan(segments, 2.0)
    assert plan.silences == []
    assert plan.blocks == [Clip(0, 1.0), Clip(1, 2.0 - (1.0 + GAP_EPSILON / 2))]
    # The gap travels with the next clip instead of vanishing
    assert plan.clips[1].lead == pytest.approx(GAP_EPSILON / 2)
    assert plan.clips[1].span == pytest.approx(1.0)


def test_large_gap_gets_one_silence():
    segments = [ready(0, 0.0, 1.0, 1.0), ready(1, 1.3, 2.0, 1.0)]
    plan = build_plan(segments, 2.0)
    assert len(plan.silences) == 1
    assert plan.silences[0].duration == pytest.approx(0.3)


def test_short_tail_dropped():
    plan = build_plan([ready(0, 0.0, 1.0, 1.0)], 1.0 + GAP_EPSILON / 2)
    assert plan.blocks == [Clip(0, 1.0)]


@pytest.mark.parametrize("status", [STATUS_IDLE, STATUS_GENERATING, STATUS_ERROR])
def test_unready_segment_leaves_hole(status):
    """A missing clip doesn't shift the segments after it."""
    segments = [
        ready(0, 0.0, 1.0, 1.0),
        Segment(id=1, start=1.0, end=2.0, status=status),
        ready(2, 2.0, 3.0, 1.0),
    ]
    plan = build_plan(segments, 3.0)
    assert plan.blocks == [Clip(0, 1.0), Silence(1.0), Clip(2, 1.0)]
    assert plan.blocks[2].start == 2.0
    assert plan.skipped == [MissingSynthesis(segment_id=1, status=status)]


def test_no_ready_segments_is_all_silence():
    plan = build_plan([Segment(id=1, start=0.0, end=1.0)], 4.0)
    assert plan.blocks == [Silence(4.0)]
    assert len(plan.skipped) == 1


def test_ties_broken_by_id():
    a = ready("b", 0.0, 1.0, 1.0)
    b = ready("a", 0.0, 1.0, 1.0)
    assert [s.id for s in sort_segments([a, b])] == ["a", "b"]
    assert [s.id for s in sort_segments([ready(10, 0, 1, 1), ready(9, 0, 1, 1)])] == [9, 10]


def test_overlap_rejected():
    segments = [ready(0, 0.0, 2.0, 2.0), ready(1, 1.0, 3.0, 2.0)]
    with pytest.raises(OverlappingSegments) as exc:
        build_plan(segments, 3.0)
    assert exc.value.segment_id == 1


def test_overlap_allowed_places_back_to_back():
    segments = [ready(0, 0.0, 2.0, 2.0), ready(1, 1.0, 3.0, 2.0)]
    plan = build_plan(segments, 3.0, allow_overlap=True)
    assert plan.blocks == [Clip(0, 2.0), Clip(1, 2.0)]


def test_overlap_within_epsilon_tolerated():
    segments = [ready(0, 0.0, 1.0, 1.0), ready(1, 0.99, 2.0, 1.0)]
    plan = build_plan(segments, 2.0)
    assert [b.segment_id for b in plan.clips] == [0, 1]
    assert plan.clips[1].lead == pytest.approx(-0.01)
    assert plan.clips[1].start == 1.0


def test_allowed_overlap_never_moves_cursor_back():
    """A slot nested inside an earlier one plays after it; the tail follows."""
    segments = [ready(0, 0.0, 4.0, 4.0), ready(1, 1.0, 2.0, 1.0)]
    plan = build_plan(segments, 6.0, allow_overlap=True)
    assert plan.blocks == [Clip(0, 4.0), Clip(1, 1.0), Silence(1.0)]
    assert plan.clips[1].start == 4.0
    assert plan.silences[0].start == 5.0


def test_overlap_with_unready_segment_ignored():
    segments = [ready(0, 0.0, 2.0, 2.0), Segment(id=1, start=1.0, end=3.0)]
    plan = build_plan(segments, 3.0)
    assert plan.blocks == [Clip(0, 2.0), Silence(1.0)]


def test_clip_snapshots_segment():
    seg = ready(0, 0.0, 2.0, 1.7, audio_ref="/clips/zero.mp3")
    plan = build_plan([seg], 2.0)
    seg.audio_ref = "/clips/changed.mp3"
    seg.audio_duration = 9.0
    assert plan.clips[0].audio_ref == "/clips/zero.mp3"
    assert plan.clips[0].audio_duration == 1.7


@pytest.mark.parametrize("total", [0.0, -1.0, float("nan")])
def test_invalid_total_duration(total):
    with pytest.raises(ValueError):
        build_plan([ready(0, 0.0, 1.0, 1.0)], total)


def _block_length(block):
    return block.span if isinstance(block, Clip) else block.duration


@pytest.mark.parametrize("spacing", [0.0, 0.01, 0.04, 0.05, 0.06, 0.5])
def test_blocks_are_contiguous(spacing):
    """Each block starts where the previous one ended, at any gap size."""
    segments = [ready(i, i * (0.5 + spacing), i * (0.5 + spacing) + 0.5, 0.5) for i in range(10)]
    total = 10 * (0.5 + spacing)
    plan = build_plan(segments, total)
    position = 0.0
    for block in plan.blocks:
        assert block.start == pytest.approx(position)
        position += _block_length(block)
    # Whatever is left is within epsilon and the final trim pads it
    assert total - position == pytest.approx(0.0, abs=GAP_EPSILON)
    for seg, clip in zip(segments, plan.clips):
        assert clip.start + clip.lead == pytest.approx(seg.start)
