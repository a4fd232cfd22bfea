"""Render a build plan into one exact-length audio file through an AudioEngine.

Every block becomes a 16-bit PCM WAV at the common sample rate and channel
layout, so the blocks can be joined by stream copy. The join is then cut to
the requested total duration and encoded into the output container.
"""

import logging
import re
import threading
from dataclasses import dataclass

from dub_timeline.constants import (
    CHANNEL_LAYOUTS,
    CHANNELS,
    GAP_EPSILON,
    MAX_STRETCH,
    MIN_STRETCH,
    OUTPUT_BITRATE,
    OUTPUT_FORMAT,
    SAMPLE_RATE,
)
from dub_timeline.errors import EngineBusy, InvalidDuration, RenderStageFailed
from dub_timeline.media import clip_extension, media_type_for, read_clip
from dub_timeline.models import BuildPlan, Clip, Segment, Silence
from dub_timeline.scheduler import build_plan
from dub_timeline.tempo import TempoChain, compile_tempo, neutral_chain
from dub_timeline.workspace import Workspace

logger = logging.getLogger(__name__)

STATE_IDLE = "idle"
STATE_PLANNING = "planning"
STATE_SCALING = "scaling"
STATE_CONCATENATING = "concatenating"
STATE_TRIMMING = "trimming"
STATE_DONE = "done"
STATE_FAILED = "failed"

CONCAT_LIST = "concat.txt"
JOINED = "joined.wav"
PCM_CODEC = ["-c:a", "pcm_s16le"]

# Engines with a render in flight, by id(); one render per engine at a time.
_busy_engines: set[int] = set()
_busy_lock = threading.Lock()


def _seconds(value: float) -> str:
    return f"{value:.6f}"


def _safe_token(segment_id) -> str:
    return re.sub(r"[^a-zA-Z0-9]+", "_", str(segment_id)).strip("_") or "seg"


@dataclass
class RenderResult:
    data: bytes
    media_type: str
    format: str
    duration: float     # seconds of output, always the requested total
    plan: BuildPlan


class TimelineRenderer:
    """Executes build plans against one engine, strictly in timeline order."""

    def __init__(
        self,
        engine,
        output_format: str = OUTPUT_FORMAT,
        bitrate: str = OUTPUT_BITRATE,
        epsilon: float = GAP_EPSILON,
        min_stretch: float = MIN_STRETCH,
        max_stretch: float = MAX_STRETCH,
        sample_rate: int = SAMPLE_RATE,
        channels: int = CHANNELS,
        allow_overlap: bool = False,
        load_clip=read_clip,
    ):
        if not (0 < min_stretch <= max_stretch):
            raise ValueError(f"invalid stretch bounds [{min_stretch!r}, {max_stretch!r}]")
        if channels not in CHANNEL_LAYOUTS:
            raise ValueError(f"unsupported channel count: {channels!r}")
        self.engine = engine
        self.output_format = output_format
        self.media_type = media_type_for(output_format)
        self.bitrate = bitrate
        self.epsilon = epsilon
        self.min_stretch = min_stretch
        self.max_stretch = max_stretch
        self.sample_rate = sample_rate
        self.channels = channels
        self.channel_layout = CHANNEL_LAYOUTS[channels]
        self.allow_overlap = allow_overlap
        self.load_clip = load_clip
        self.state = STATE_IDLE

    def _enter(self, state: str) -> None:
        self.state = state
        logger.info("Render state: %s", state)

    def _run(self, args: list[str], stage) -> None:
        code = self.engine.run(args)
        if code != 0:
            raise RenderStageFailed(stage, exit_code=code)

    def render(self, segments: list[Segment], total_duration: float) -> RenderResult:
        """Plan and render `segments` into exactly `total_duration` seconds.

        Raises RenderStageFailed when any engine command fails; workspace
        buffers are deleted before the error propagates.
        """
        key = id(self.engine)
        with _busy_lock:
            if key in _busy_engines:
                raise EngineBusy("A render is already in progress on this engine")
            _busy_engines.add(key)

        try:
            self._enter(STATE_PLANNING)
            try:
                # Planning snapshots the segment fields it needs.
                plan = build_plan(
                    list(segments),
                    total_duration,
                    epsilon=self.epsilon,
                    allow_overlap=self.allow_overlap,
                )
                with Workspace(self.engine) as workspace:
                    data, duration = self._execute(plan, workspace)
            except Exception:
                self._enter(STATE_FAILED)
                raise
            self._enter(STATE_DONE)
            return RenderResult(
                data=data,
                media_type=self.media_type,
                format=self.output_format,
                duration=duration,
                plan=plan,
            )
        finally:
            with _busy_lock:
                _busy_engines.discard(key)

    def _execute(self, plan: BuildPlan, workspace: Workspace) -> tuple[bytes, float]:
        parts = []
        rendered = 0.0
        clip_total = len(plan.clips)
        clip_number = 0

        self._enter(STATE_SCALING)
        for index, block in enumerate(plan.blocks):
            if isinstance(block, Clip):
                clip_number += 1
                if block.span <= 0:
                    logger.warning("Segment %r has no room left on the timeline, skipping", block.segment_id)
                    continue
                logger.info(
                    "Scaling clip %d/%d (segment %r) into %.3fs",
                    clip_number, clip_total, block.segment_id, block.span,
                )
                parts.append(self._render_clip(workspace, index, block))
                rendered += block.span
            elif isinstance(block, Silence):
                if block.duration <= self.epsilon:
                    continue
                parts.append(self._render_silence(workspace, index, block.duration))
                rendered += block.duration

        if not parts:
            # Nothing on the timeline at all: it is one long silence.
            parts.append(self._render_silence(workspace, 0, plan.total_duration))
            rendered = plan.total_duration

        self._enter(STATE_CONCATENATING)
        joined = self._concat(workspace, parts)

        self._enter(STATE_TRIMMING)
        if abs(rendered - plan.total_duration) > 1e-6:
            logger.info("Joined %.3fs; fitting to %.3fs", rendered, plan.total_duration)
        data = self._trim(workspace, joined, plan.total_duration)
        return data, plan.total_duration

    def tempo_for(self, block: Clip) -> TempoChain:
        """Tempo chain for a clip block, neutral if its durations are unusable."""
        source = block.audio_duration if block.audio_duration is not None else float("nan")
        try:
            return compile_tempo(
                source,
                block.target_duration,
                min_stretch=self.min_stretch,
                max_stretch=self.max_stretch,
                sample_rate=self.sample_rate,
            )
        except InvalidDuration as e:
            logger.warning("Segment %r: %s; rendering at original speed", block.segment_id, e)
            return neutral_chain(self.sample_rate)

    def _render_clip(self, workspace: Workspace, index: int, block: Clip) -> str:
        token = _safe_token(block.segment_id)
        source = workspace.acquire(f"clip_{index:03d}_{token}_src{clip_extension(block.audio_ref)}")
        output = workspace.acquire(f"clip_{index:03d}_{token}.wav")

        try:
            data = self.load_clip(block.audio_ref)
        except (OSError, ValueError) as e:
            raise RenderStageFailed(block.segment_id, detail=f"could not load clip: {e}") from e
        workspace.put(source, data)

        chain = self.tempo_for(block)
        span = _seconds(block.span)
        filters = list(chain.filters)
        if block.lead > 0:
            delay = round(block.lead * self.sample_rate)
            filters.append(f"adelay=delays={delay}S:all=1")
        # apad + -t: the scaled clip is padded or cut to exactly its span.
        filters.append(f"apad=whole_dur={span}")
        self._run(
            ["-i", source,
             "-af", ",".join(filters),
             "-ac", str(self.channels),
             "-t", span]
            + PCM_CODEC
            + [output],
            stage=block.segment_id,
        )
        return output

    def _render_silence(self, workspace: Workspace, index: int, duration: float) -> str:
        output = workspace.acquire(f"silence_{index:03d}.wav")
        self._run(
            ["-f", "lavfi",
             "-i", f"anullsrc=r={self.sample_rate}:cl={self.channel_layout}",
             "-t", _seconds(duration)]
            + PCM_CODEC
            + [output],
            stage="silence",
        )
        return output

    def _concat(self, workspace: Workspace, parts: list[str]) -> str:
        listing = "".join(f"file '{name}'\n" for name in parts)
        workspace.put(CONCAT_LIST, listing.encode("utf-8"))
        output = workspace.acquire(JOINED)
        self._run(
            ["-f", "concat", "-safe", "0", "-i", CONCAT_LIST, "-c", "copy", output],
            stage="concat",
        )
        return output

    def _codec_args(self) -> list[str]:
        if self.output_format == "mp3":
            return ["-c:a", "libmp3lame", "-b:a", self.bitrate]
        return list(PCM_CODEC)

    def _trim(self, workspace: Workspace, joined: str, total_duration: float) -> bytes:
        output = workspace.acquire(f"final.{self.output_format}")
        total = _seconds(total_duration)
        # Pad as well as cut, so the output is exactly the timeline length.
        self._run(
            ["-i", joined, "-af", f"apad=whole_dur={total}", "-t", total]
            + self._codec_args()
            + [output],
            stage="trim",
        )
        return workspace.read(output)


def render_timeline(segments: list[Segment], total_duration: float, engine, **options) -> RenderResult:
    """Render `segments` onto a `total_duration` timeline with a one-off renderer."""
    return TimelineRenderer(engine, **options).render(segments, total_duration)
