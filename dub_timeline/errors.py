"""Error taxonomy for planning, scaling and rendering."""

from dataclasses import dataclass


class DubTimelineError(Exception):
    """Base class for every error raised by dub_timeline."""


class InvalidDuration(DubTimelineError, ValueError):
    """A tempo ratio was requested for a zero, negative or non-finite duration."""

    def __init__(self, source_duration, target_duration):
        self.source_duration = source_duration
        self.target_duration = target_duration
        super().__init__(
            f"cannot scale {source_duration!r}s into {target_duration!r}s"
        )


class OverlappingSegments(DubTimelineError, ValueError):
    """Two ready segments claim the same stretch of the timeline."""

    def __init__(self, segment_id, start, cursor):
        self.segment_id = segment_id
        self.start = start
        self.cursor = cursor
        super().__init__(
            f"segment {segment_id!r} starts at {start:.3f}s, "
            f"before the previous slot ends at {cursor:.3f}s"
        )


class RenderStageFailed(DubTimelineError):
    """An engine command failed; the render was aborted.

    ``stage`` is the failing segment id, or one of "silence", "concat", "trim".
    """

    def __init__(self, stage, exit_code=None, detail=""):
        self.stage = stage
        self.exit_code = exit_code
        self.detail = detail
        msg = f"render failed at stage {stage!r}"
        if exit_code is not None:
            msg += f" (exit code {exit_code})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class EngineUnavailable(DubTimelineError):
    """The ffmpeg binary could not be located."""


class EngineBusy(DubTimelineError, RuntimeError):
    """Another render is already running on the same engine."""


class SynthesisFailed(DubTimelineError):
    """Speech synthesis gave up after exhausting its retries."""


@dataclass(frozen=True)
class MissingSynthesis:
    """A segment left out of the plan because it has no ready clip."""
    segment_id: object
    status: str


@dataclass(frozen=True)
class CleanupWarning:
    """A workspace buffer that could not be deleted."""
    name: str
    cause: str

    def __str__(self):
        return f"could not delete workspace buffer {self.name!r}: {self.cause}"
