"""Data models for timeline dubbing."""

import math
from dataclasses import dataclass, field

from dub_timeline.constants import SAFE_CHARS_PER_SEC

STATUS_IDLE = "idle"
STATUS_GENERATING = "generating"
STATUS_READY = "ready"
STATUS_ERROR = "error"
SEGMENT_STATUSES = (STATUS_IDLE, STATUS_GENERATING, STATUS_READY, STATUS_ERROR)


def target_char_count(duration: float, chars_per_second: float = SAFE_CHARS_PER_SEC) -> int:
    """Translated-text length that comfortably fits a slot of `duration` seconds."""
    return int(math.floor(duration * chars_per_second))


@dataclass
class Segment:
    id: int | str
    start: float             # seconds on the master timeline
    end: float
    original_text: str = ""
    translated_text: str = ""
    target_char_count: int | None = None
    speaker: str = ""
    status: str = STATUS_IDLE
    audio_ref: str | None = None        # path or file:// URL of the synthesized clip
    audio_duration: float | None = None  # measured, seconds

    def __post_init__(self):
        if not (math.isfinite(self.start) and math.isfinite(self.end)):
            raise ValueError(f"segment {self.id!r} has a non-finite slot")
        if self.start < 0:
            raise ValueError(f"segment {self.id!r} starts before 0s")
        if self.start >= self.end:
            raise ValueError(
                f"segment {self.id!r} must end after it starts "
                f"({self.start}s >= {self.end}s)"
            )
        if self.status not in SEGMENT_STATUSES:
            raise ValueError(f"unknown segment status: {self.status!r}")

    @property
    def duration(self) -> float:
        return self.end - self.start

    @property
    def is_ready(self) -> bool:
        return self.status == STATUS_READY and bool(self.audio_ref)

    @property
    def char_budget(self) -> int:
        """Advisory translation length; derived from the slot when not set."""
        if self.target_char_count is None:
            return target_char_count(self.duration)
        return self.target_char_count

    @property
    def over_budget(self) -> bool:
        """True when the translation is longer than its advisory budget."""
        return len(self.translated_text) > self.char_budget

    def apply_synthesis(self, status: str, audio_ref: str | None = None,
                        audio_duration: float | None = None) -> None:
        """Record the outcome of a synthesis call on this segment."""
        if status not in SEGMENT_STATUSES:
            raise ValueError(f"unknown segment status: {status!r}")
        if status == STATUS_READY:
            self.audio_ref = audio_ref
            self.audio_duration = audio_duration
        else:
            self.audio_ref = None
            self.audio_duration = None
        self.status = status


def segment_from_dict(data: dict) -> Segment:
    """Build a Segment from its project-file representation."""
    return Segment(
        id=data["id"],
        start=float(data["start"]),
        end=float(data["end"]),
        original_text=data.get("original_text", ""),
        translated_text=data.get("translated_text", ""),
        target_char_count=data.get("target_char_count"),
        speaker=data.get("speaker", ""),
        status=data.get("status", STATUS_IDLE),
        audio_ref=data.get("audio_ref"),
        audio_duration=data.get("audio_duration"),
    )


def segment_to_dict(segment: Segment) -> dict:
    data = {
        "id": segment.id,
        "start": segment.start,
        "end": segment.end,
        "original_text": segment.original_text,
        "translated_text": segment.translated_text,
        "status": segment.status,
    }
    if segment.target_char_count is not None:
        data["target_char_count"] = segment.target_char_count
    if segment.speaker:
        data["speaker"] = segment.speaker
    if segment.audio_ref is not None:
        data["audio_ref"] = segment.audio_ref
    if segment.audio_duration is not None:
        data["audio_duration"] = segment.audio_duration
    return data


# --- Build plan blocks ---

@dataclass(frozen=True)
class Silence:
    duration: float
    start: float = field(default=0.0, compare=False)


@dataclass(frozen=True)
class Clip:
    segment_id: int | str
    target_duration: float
    # Snapshot of the segment at planning time; later edits don't leak in.
    start: float = field(default=0.0, compare=False)
    audio_ref: str | None = field(default=None, compare=False)
    audio_duration: float | None = field(default=None, compare=False)
    # Leading silence for a gap within epsilon; negative when an overlap
    # within epsilon shortens the clip instead.
    lead: float = field(default=0.0, compare=False)

    @property
    def span(self) -> float:
        """Timeline seconds the rendered clip occupies."""
        return self.lead + self.target_duration


@dataclass
class BuildPlan:
    blocks: list          # Silence | Clip, in timeline order
    total_duration: float
    skipped: list = field(default_factory=list)  # MissingSynthesis records

    @property
    def clips(self) -> list[Clip]:
        return [b for b in self.blocks if isinstance(b, Clip)]

    @property
    def silences(self) -> list[Silence]:
        return [b for b in self.blocks if isinstance(b, Silence)]
