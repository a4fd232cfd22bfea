"""Lay ready segments onto the timeline and fill the holes with silence."""

import logging
import math

from dub_timeline.constants import GAP_EPSILON
from dub_timeline.errors import MissingSynthesis, OverlappingSegments
from dub_timeline.models import BuildPlan, Clip, Segment, Silence

logger = logging.getLogger(__name__)


def _id_key(segment_id) -> tuple:
    """Ints order numerically and before any string id."""
    if isinstance(segment_id, int) and not isinstance(segment_id, bool):
        return (0, segment_id, "")
    return (1, 0, str(segment_id))


def sort_segments(segments: list[Segment]) -> list[Segment]:
    """Ascending by start, ties broken by id."""
    return sorted(segments, key=lambda s: (s.start, _id_key(s.id)))


def build_plan(
    segments: list[Segment],
    total_duration: float,
    epsilon: float = GAP_EPSILON,
    allow_overlap: bool = False,
) -> BuildPlan:
    """Produce the ordered silence/clip blocks for a render.

    The cursor tracks where the rendered audio ends, and the renderer makes
    every clip fill exactly its `span`. A gap or overlap within `epsilon`
    gets no block of its own; it becomes the next clip's `lead`, so later
    clips stay on their slots. Segments without a ready clip are left out
    without moving the cursor, so they become holes of silence.
    """
    if not math.isfinite(total_duration) or total_duration <= 0:
        raise ValueError(f"total duration must be positive, got {total_duration!r}")
    if epsilon < 0:
        raise ValueError(f"epsilon must not be negative, got {epsilon!r}")

    blocks = []
    skipped = []
    cursor = 0.0

    for seg in sort_segments(segments):
        if not seg.is_ready:
            missing = MissingSynthesis(segment_id=seg.id, status=seg.status)
            skipped.append(missing)
            logger.info("Segment %r has no ready clip (status %s), leaving a hole", seg.id, seg.status)
            continue

        slot = seg.end - seg.start
        gap = seg.start - cursor
        lead = 0.0
        position = seg.start
        if gap < -epsilon:
            if not allow_overlap:
                raise OverlappingSegments(seg.id, seg.start, cursor)
            # Back to back: the whole slot plays after the previous clip.
            position = cursor
            end = cursor + slot
        elif gap > epsilon:
            blocks.append(Silence(duration=gap, start=cursor))
            end = seg.end
        else:
            # A slot swallowed by the overlap keeps a span of zero.
            lead = max(gap, -slot)
            position = cursor
            end = max(seg.end, cursor)

        blocks.append(Clip(
            segment_id=seg.id,
            target_duration=slot,
            start=position,
            audio_ref=seg.audio_ref,
            audio_duration=seg.audio_duration,
            lead=lead,
        ))
        cursor = end

    tail = total_duration - cursor
    if tail > epsilon:
        blocks.append(Silence(duration=tail, start=cursor))

    return BuildPlan(blocks=blocks, total_duration=total_duration, skipped=skipped)
