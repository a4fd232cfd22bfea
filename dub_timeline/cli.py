"""CLI interface: extract, plan, synthesize and render a dub timeline."""

import argparse
import logging
import os
import shutil
import sys

from dub_timeline.artifacts import load_project, save_project, slug_from_path
from dub_timeline.constants import (
    GAP_EPSILON,
    MAX_STRETCH,
    MIN_STRETCH,
    OUTPUT_DIR,
    VERSION,
)
from dub_timeline.engine import FFmpegEngine
from dub_timeline.errors import EngineBusy, OverlappingSegments, RenderStageFailed
from dub_timeline.exporter import export
from dub_timeline.media import MEDIA_TYPES, extract_audio
from dub_timeline.models import STATUS_READY, Clip
from dub_timeline.renderer import TimelineRenderer
from dub_timeline.scheduler import build_plan
from dub_timeline.tts import synthesize_all


def _check_ffmpeg():
    """Verify ffmpeg is installed."""
    if not shutil.which("ffmpeg"):
        print("Error: ffmpeg is required but not found.", file=sys.stderr)
        print("Install with: brew install ffmpeg", file=sys.stderr)
        raise SystemExit(1)


def _load(path: str) -> dict:
    if not os.path.exists(path):
        print(f"Error: Project file not found: {path}", file=sys.stderr)
        raise SystemExit(1)
    try:
        return load_project(path)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)


def cmd_extract(args):
    """Extract the audio track from a media file."""
    _check_ffmpeg()
    if not os.path.exists(args.file):
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        raise SystemExit(1)
    output = args.output or os.path.splitext(args.file)[0] + ".mp3"
    extract_audio(args.file, output)
    print(f"Extracted audio: {output}")


def cmd_plan(args):
    """Print the build plan for a project."""
    project = _load(args.project)
    segments = project["segments"]
    try:
        plan = build_plan(
            segments, project["duration"],
            epsilon=args.epsilon, allow_overlap=args.allow_overlap,
        )
    except OverlappingSegments as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)

    print(f"Timeline: {project['duration']:.2f}s, {len(segments)} segment(s)")
    for block in plan.blocks:
        if isinstance(block, Clip):
            print(f"  {block.start:8.2f}s  clip     {block.segment_id} → {block.target_duration:.2f}s")
        else:
            print(f"  {block.start:8.2f}s  silence  {block.duration:.2f}s")
    for missing in plan.skipped:
        print(f"  [skip] Segment {missing.segment_id}: {missing.status}")

    for seg in segments:
        if seg.over_budget:
            print(f"  [long] Segment {seg.id}: {len(seg.translated_text)} chars, budget {seg.char_budget}")


def cmd_synthesize(args):
    """Generate speech for every segment and store the results in the project."""
    _check_ffmpeg()
    project = _load(args.project)
    voice = args.voice or project["voice"]
    clips_dir = args.clips_dir or os.path.join(
        OUTPUT_DIR, slug_from_path(args.project), "segments",
    )
    results = synthesize_all(project["segments"], clips_dir, voice=voice)
    save_project(args.project, project["duration"], project["segments"], voice=voice)

    failed = [r for r in results.values() if r.status != STATUS_READY]
    print(f"Synthesized {len(results) - len(failed)}/{len(results)} segment(s)")
    if failed:
        print(f"Warning: {len(failed)} segment(s) failed and will be left silent", file=sys.stderr)


def cmd_render(args):
    """Render the project timeline to a single audio file."""
    _check_ffmpeg()
    project = _load(args.project)
    slug = slug_from_path(args.project)
    output_dir = args.output or os.path.join(OUTPUT_DIR, slug, "final")

    settings = {
        "format": args.format,
        "min_stretch": args.min_stretch,
        "max_stretch": args.max_stretch,
        "epsilon": args.epsilon,
        "allow_overlap": args.allow_overlap,
    }

    if not (0 < args.min_stretch <= args.max_stretch):
        print(f"Error: Invalid stretch bounds [{args.min_stretch}, {args.max_stretch}]", file=sys.stderr)
        raise SystemExit(1)

    print(f"Rendering {slug} ({project['duration']:.2f}s)...")
    with FFmpegEngine() as engine:
        renderer = TimelineRenderer(
            engine,
            output_format=args.format,
            epsilon=args.epsilon,
            min_stretch=args.min_stretch,
            max_stretch=args.max_stretch,
            allow_overlap=args.allow_overlap,
        )
        try:
            result = renderer.render(project["segments"], project["duration"])
        except (RenderStageFailed, OverlappingSegments, EngineBusy) as e:
            print(f"Error: {e}", file=sys.stderr)
            raise SystemExit(1)

    for missing in result.plan.skipped:
        print(f"  [skip] Segment {missing.segment_id}: no ready clip ({missing.status})")

    path = export(result, output_dir, slug, settings, len(project["segments"]))
    print(f"Done: {path}")


def _add_timeline_options(parser):
    parser.add_argument("--epsilon", type=float, default=GAP_EPSILON,
                        help=f"Shortest gap (s) that gets a silence block (default {GAP_EPSILON})")
    parser.add_argument("--allow-overlap", action="store_true",
                        help="Place overlapping segments back to back instead of failing")


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="dub-timeline",
        description="Fit synthesized speech clips onto a fixed-length timeline",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log render progress")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # extract
    extract_parser = subparsers.add_parser("extract", help="Extract audio from a media file")
    extract_parser.add_argument("file", help="Path to the audio or video file")
    extract_parser.add_argument("-o", "--output", help="Output MP3 path")
    extract_parser.set_defaults(func=cmd_extract)

    # plan
    plan_parser = subparsers.add_parser("plan", help="Show the silence/clip build plan")
    plan_parser.add_argument("project", help="Path to the project JSON file")
    _add_timeline_options(plan_parser)
    plan_parser.set_defaults(func=cmd_plan)

    # synthesize
    synth_parser = subparsers.add_parser("synthesize", help="Generate speech for each segment")
    synth_parser.add_argument("project", help="Path to the project JSON file")
    synth_parser.add_argument("--voice", help="edge-tts voice (default: project voice)")
    synth_parser.add_argument("--clips-dir", help="Where to write the clips")
    synth_parser.set_defaults(func=cmd_synthesize)

    # render
    render_parser = subparsers.add_parser("render", help="Render the timeline to one audio file")
    render_parser.add_argument("project", help="Path to the project JSON file")
    render_parser.add_argument("-o", "--output", help="Output directory")
    render_parser.add_argument("--format", choices=sorted(MEDIA_TYPES), default="mp3")
    render_parser.add_argument("--min-stretch", type=float, default=MIN_STRETCH)
    render_parser.add_argument("--max-stretch", type=float, default=MAX_STRETCH)
    _add_timeline_options(render_parser)
    render_parser.set_defaults(func=cmd_render)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return

    args.func(args)
