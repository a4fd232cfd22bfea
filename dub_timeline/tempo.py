"""Compile a clip-to-slot speed ratio into a chain of bounded atempo stages."""

import math
from dataclasses import dataclass

from dub_timeline.constants import (
    ATEMPO_MAX,
    ATEMPO_MIN,
    MAX_STRETCH,
    MIN_STRETCH,
    SAMPLE_RATE,
    TEMPO_TOLERANCE,
)
from dub_timeline.errors import InvalidDuration


def _format_factor(factor: float) -> str:
    """6 decimals, trailing zeros dropped: 2.0 → "2", 1.5 → "1.5"."""
    return f"{factor:.6f}".rstrip("0").rstrip(".")


@dataclass(frozen=True)
class TempoChain:
    ratio: float                 # clamped speed ratio the stages multiply out to
    stages: tuple[float, ...]    # each within [ATEMPO_MIN, ATEMPO_MAX]
    sample_rate: int = SAMPLE_RATE

    @property
    def filters(self) -> list[str]:
        """ffmpeg audio filters, stages first, resample always last."""
        chain = [f"atempo={_format_factor(f)}" for f in self.stages]
        chain.append(f"aresample={self.sample_rate}")
        return chain

    @property
    def filtergraph(self) -> str:
        return ",".join(self.filters)

    @property
    def product(self) -> float:
        return math.prod(self.stages)


def stretch_ratio(source_duration: float, target_duration: float) -> float:
    """Speed multiplier that makes `source_duration` last `target_duration`.

    Raises InvalidDuration for zero, negative or non-finite inputs.
    """
    if not (math.isfinite(source_duration) and math.isfinite(target_duration)):
        raise InvalidDuration(source_duration, target_duration)
    if source_duration <= 0 or target_duration <= 0:
        raise InvalidDuration(source_duration, target_duration)
    ratio = source_duration / target_duration
    if not math.isfinite(ratio) or ratio <= 0:
        raise InvalidDuration(source_duration, target_duration)
    return ratio


def decompose(ratio: float) -> list[float]:
    """Split `ratio` into atempo factors whose product is `ratio`.

    2.0 (or 0.5) is peeled off until the remainder fits the atempo range;
    the remainder becomes the final stage unless it is effectively 1.0.
    """
    if not math.isfinite(ratio) or ratio <= 0:
        raise ValueError(f"ratio must be positive and finite, got {ratio!r}")

    stages = []
    remaining = ratio
    while remaining > ATEMPO_MAX:
        stages.append(ATEMPO_MAX)
        remaining /= ATEMPO_MAX
    while remaining < ATEMPO_MIN:
        stages.append(ATEMPO_MIN)
        remaining /= ATEMPO_MIN
    if abs(remaining - 1.0) > TEMPO_TOLERANCE:
        stages.append(remaining)
    return stages


def neutral_chain(sample_rate: int = SAMPLE_RATE) -> TempoChain:
    """No scaling, just the resample stage."""
    return TempoChain(ratio=1.0, stages=(), sample_rate=sample_rate)


def compile_tempo(
    source_duration: float,
    target_duration: float,
    min_stretch: float = MIN_STRETCH,
    max_stretch: float = MAX_STRETCH,
    sample_rate: int = SAMPLE_RATE,
) -> TempoChain:
    """Build the filter chain that fits a clip into its slot without pitch change.

    The raw ratio is clamped into [min_stretch, max_stretch]; whatever the
    clamp leaves over is handled downstream by truncation or padding.
    """
    if not (0 < min_stretch <= max_stretch) or not math.isfinite(max_stretch):
        raise ValueError(
            f"invalid stretch bounds [{min_stretch!r}, {max_stretch!r}]"
        )
    ratio = stretch_ratio(source_duration, target_duration)
    clamped = max(min_stretch, min(max_stretch, ratio))
    return TempoChain(
        ratio=clamped,
        stages=tuple(decompose(clamped)),
        sample_rate=sample_rate,
    )
