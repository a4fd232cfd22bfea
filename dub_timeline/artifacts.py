"""Project files: JSON persistence of the segment timeline."""

import json
import math
import os
import re

from dub_timeline.constants import DEFAULT_VOICE
from dub_timeline.models import Segment, segment_from_dict, segment_to_dict


def slug_from_path(project_path: str) -> str:
    """Convert a project filename to an output slug.

    "My Talk.json" → "my_talk"
    "/path/to/Episode 12.json" → "episode_12"
    """
    basename = os.path.splitext(os.path.basename(project_path))[0]
    slug = re.sub(r"[^a-zA-Z0-9]+", "_", basename).strip("_").lower()
    return slug or "project"


def write_artifact(directory: str, filename: str, data: dict) -> str:
    """Write JSON artifact to directory/filename.

    Returns path to the written file.
    """
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, filename)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    return path


def load_artifact(directory: str, filename: str) -> dict | None:
    """Read JSON artifact. Returns None if file doesn't exist."""
    path = os.path.join(directory, filename)
    if not os.path.exists(path):
        return None
    with open(path) as f:
        return json.load(f)


def load_project(path: str) -> dict:
    """Load a project file.

    Returns {"duration": float, "voice": str, "segments": [Segment, ...]}.
    Raises ValueError for a missing/invalid duration or malformed segments.
    """
    data = load_artifact(os.path.dirname(path) or ".", os.path.basename(path))
    if data is None:
        raise FileNotFoundError(path)

    try:
        duration = float(data["duration"])
    except (KeyError, TypeError, ValueError):
        raise ValueError(f"{path}: 'duration' must be a number of seconds") from None
    if not math.isfinite(duration) or duration <= 0:
        raise ValueError(f"{path}: 'duration' must be positive")

    segments = []
    seen = set()
    for i, raw in enumerate(data.get("segments", [])):
        try:
            seg = segment_from_dict(raw)
        except (KeyError, TypeError) as e:
            raise ValueError(f"{path}: segment #{i} is malformed ({e})") from None
        if seg.id in seen:
            raise ValueError(f"{path}: duplicate segment id {seg.id!r}")
        seen.add(seg.id)
        segments.append(seg)

    return {
        "duration": duration,
        "voice": data.get("voice", DEFAULT_VOICE),
        "segments": segments,
    }


def save_project(path: str, duration: float, segments: list[Segment], voice: str = DEFAULT_VOICE) -> str:
    data = {
        "duration": duration,
        "voice": voice,
        "segments": [segment_to_dict(s) for s in segments],
    }
    return write_artifact(os.path.dirname(path) or ".", os.path.basename(path), data)
