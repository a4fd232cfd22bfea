"""Media helpers: clip loading, duration measurement, audio extraction."""

import os
from urllib.parse import unquote, urlparse

from pydub import AudioSegment

from dub_timeline.constants import CHANNELS, EXTRACT_BITRATE, SAMPLE_RATE

MEDIA_TYPES = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
}


def media_type_for(fmt: str) -> str:
    try:
        return MEDIA_TYPES[fmt]
    except KeyError:
        raise ValueError(f"Unsupported output format: {fmt}") from None


def ref_to_path(audio_ref: str) -> str:
    """Turn a plain path or file:// URL into a local path."""
    parsed = urlparse(audio_ref)
    if parsed.scheme == "file":
        return unquote(parsed.path)
    if parsed.scheme and len(parsed.scheme) > 1:
        raise ValueError(f"Unsupported clip reference: {audio_ref}")
    return audio_ref


def read_clip(audio_ref: str) -> bytes:
    """Default clip loader for the renderer."""
    with open(ref_to_path(audio_ref), "rb") as f:
        return f.read()


def clip_extension(audio_ref: str | None, default: str = ".mp3") -> str:
    if not audio_ref:
        return default
    ext = os.path.splitext(urlparse(audio_ref).path)[1].lower()
    if not ext or not ext[1:].isalnum():
        return default
    return ext


def measure_duration(path: str) -> float:
    """Duration of an audio file in seconds, measured from the decoded audio."""
    audio = AudioSegment.from_file(path)
    return len(audio) / 1000.0


def extract_audio(source_path: str, output_path: str, bitrate: str = EXTRACT_BITRATE) -> str:
    """Pull the audio track out of any media file as 44.1 kHz stereo MP3.

    Returns the output path.
    """
    if not os.path.exists(source_path):
        raise FileNotFoundError(source_path)
    audio = AudioSegment.from_file(source_path)
    audio = audio.set_frame_rate(SAMPLE_RATE).set_channels(CHANNELS)
    out_dir = os.path.dirname(output_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    audio.export(output_path, format="mp3", bitrate=bitrate)
    return output_path
