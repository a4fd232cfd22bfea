"""Speech synthesis via edge-tts with retry logic and concurrent fan-out."""

import asyncio
import logging
import os
from dataclasses import dataclass

import edge_tts

from dub_timeline.constants import (
    DEFAULT_VOICE,
    SYNTHESIS_CONCURRENCY,
    TTS_RATE,
    TTS_RETRY_BASE_DELAY,
    TTS_RETRY_COUNT,
)
from dub_timeline.errors import SynthesisFailed
from dub_timeline.media import measure_duration
from dub_timeline.models import STATUS_ERROR, STATUS_READY, Segment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SynthesisResult:
    segment_id: int | str
    status: str
    audio_ref: str | None = None
    audio_duration: float | None = None
    error: str = ""


async def generate_single_async(text: str, voice: str, output_path: str, rate: str = TTS_RATE) -> None:
    """Generate a single TTS clip with retry logic.

    Retries on network errors, HTTP errors, or 0-byte output files.
    Rate is a relative string like "-10%".
    """
    last_error = None
    for attempt in range(TTS_RETRY_COUNT):
        try:
            communicate = edge_tts.Communicate(text, voice, rate=rate)
            await communicate.save(output_path)

            # Validate output: 0-byte file counts as failure
            if os.path.exists(output_path) and os.path.getsize(output_path) > 0:
                return

            last_error = SynthesisFailed(f"TTS produced 0-byte file for: {text[:50]}...")
        except Exception as e:
            last_error = e

        # Exponential backoff
        if attempt < TTS_RETRY_COUNT - 1:
            delay = TTS_RETRY_BASE_DELAY * (2 ** attempt)
            await asyncio.sleep(delay)

    raise last_error


def generate_single(text: str, voice: str, output_path: str, rate: str = TTS_RATE) -> None:
    """Sync wrapper around generate_single_async()."""
    asyncio.run(generate_single_async(text, voice, output_path, rate=rate))


def synthesize(text: str, voice: str, output_path: str, rate: str = TTS_RATE) -> tuple[bytes, float]:
    """Synthesize `text` and return (clip bytes, measured duration in seconds)."""
    generate_single(text, voice, output_path, rate=rate)
    with open(output_path, "rb") as f:
        data = f.read()
    return data, measure_duration(output_path)


def _clip_filename(segment: Segment) -> str:
    token = "".join(c if c.isalnum() else "_" for c in str(segment.id))
    return f"segment_{token}.mp3"


async def _synthesize_one(segment: Segment, voice: str, output_dir: str, rate: str,
                          semaphore: asyncio.Semaphore) -> SynthesisResult:
    output_path = os.path.join(output_dir, _clip_filename(segment))
    async with semaphore:
        try:
            await generate_single_async(segment.translated_text, voice, output_path, rate=rate)
            duration = await asyncio.to_thread(measure_duration, output_path)
        except Exception as e:
            logger.warning("TTS failed for segment %r: %s", segment.id, e)
            return SynthesisResult(segment_id=segment.id, status=STATUS_ERROR, error=str(e))
    return SynthesisResult(
        segment_id=segment.id,
        status=STATUS_READY,
        audio_ref=output_path,
        audio_duration=duration,
    )


async def synthesize_segments(
    segments: list[Segment],
    output_dir: str,
    voice: str = DEFAULT_VOICE,
    rate: str = TTS_RATE,
    max_concurrency: int = SYNTHESIS_CONCURRENCY,
) -> dict:
    """Synthesize every segment with translated text, concurrently.

    Returns {segment id: SynthesisResult}. A failure marks only its own
    segment as errored; it never cancels the rest of the batch.
    """
    os.makedirs(output_dir, exist_ok=True)
    todo = [s for s in segments if s.translated_text.strip()]
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    results = await asyncio.gather(*(
        _synthesize_one(seg, voice, output_dir, rate, semaphore) for seg in todo
    ))
    return {r.segment_id: r for r in results}


def merge_results(segments: list[Segment], results: dict) -> int:
    """Apply synthesis results to their segments by id.

    Returns the number of segments updated.
    """
    updated = 0
    for seg in segments:
        result = results.get(seg.id)
        if result is None:
            continue
        seg.apply_synthesis(result.status, result.audio_ref, result.audio_duration)
        updated += 1
    return updated


def synthesize_all(
    segments: list[Segment],
    output_dir: str,
    voice: str = DEFAULT_VOICE,
    rate: str = TTS_RATE,
    max_concurrency: int = SYNTHESIS_CONCURRENCY,
) -> dict:
    """Synthesize, merge results back into `segments`, and print progress."""
    total = len([s for s in segments if s.translated_text.strip()])
    print(f"  Synthesizing {total} segment(s) with {voice}...")
    results = asyncio.run(synthesize_segments(
        segments, output_dir, voice=voice, rate=rate, max_concurrency=max_concurrency,
    ))
    merge_results(segments, results)

    for i, seg in enumerate(s for s in segments if s.id in results):
        result = results[seg.id]
        if result.status == STATUS_READY:
            print(f"  Segment {i + 1}/{total}: {seg.id} ({result.audio_duration:.2f}s)")
        else:
            print(f"  Segment {i + 1}/{total}: {seg.id} FAILED ({result.error})")
    return results
