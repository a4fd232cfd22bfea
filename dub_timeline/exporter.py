"""Write a finished render to disk with a provenance manifest."""

import os
from datetime import datetime, timezone

from dub_timeline.artifacts import write_artifact
from dub_timeline.constants import VERSION
from dub_timeline.renderer import RenderResult


def export(
    result: RenderResult,
    output_dir: str,
    slug: str,
    settings: dict,
    segment_count: int,
) -> str:
    """Write the rendered audio and its manifest.

    Creates:
      - <output_dir>/<slug>.<format> (the dub track)
      - <output_dir>/output.json (provenance manifest)

    Returns path to the audio file.
    """
    os.makedirs(output_dir, exist_ok=True)
    output_path = os.path.join(output_dir, f"{slug}.{result.format}")
    with open(output_path, "wb") as f:
        f.write(result.data)

    plan = result.plan
    manifest = {
        "project": slug,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "producer_version": VERSION,
        "media_type": result.media_type,
        "settings": settings,
        "stats": {
            "segments": segment_count,
            "clips": len(plan.clips),
            "silences": len(plan.silences),
            "skipped": [str(m.segment_id) for m in plan.skipped],
            "duration_seconds": round(result.duration, 3),
        },
    }
    write_artifact(output_dir, "output.json", manifest)

    return output_path
