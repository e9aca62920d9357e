"""Command-line runtime for rendering frame sequences as quadtree leaf mosaics.

This module wires the CLI used by ``poetry run quadmosaic`` to the frame
discovery, scheduling and optional video export steps.
"""

from __future__ import annotations

import argparse
import functools
import importlib.metadata
import logging
import os
import sys
from pathlib import Path

from .frame_scheduler import FrameResourceScheduler
from .frame_scheduler import RunReport
from .frame_scheduler import collect_output_paths
from .frame_scheduler import load_engine
from .frame_sequence import FrameJob
from .frame_sequence import build_frame_jobs
from .frame_sequence import discover_frames
from .quadtree_settings import LIST_STR_STRATEGIES
from .quadtree_settings import ConfigurationError
from .quadtree_settings import DecompositionParameters
from .quadtree_settings import RunSettings
from .quadtree_settings import parse_hex_color
from .subdivision_policy import SubdivisionPolicy
from .subdivision_policy import create_policy

# Structured logging without timestamps for cleaner CLI output.
logging.basicConfig(format="%(levelname)s: %(message)s", level=logging.INFO)
logger_app = logging.getLogger(__name__)


def get_version() -> str:
    """Retrieve package version from installed metadata."""
    try:
        str_version_result: str = importlib.metadata.version("quadmosaic")
        return str_version_result
    except importlib.metadata.PackageNotFoundError as exc_error:
        logger_app.warning(
            "Package 'quadmosaic' not found. Using 'unknown' version. Context: %s",
            exc_error,
        )
        str_unknown_version: str = "unknown"
        return str_unknown_version


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser; defaults mirror the classic options."""
    obj_parser = argparse.ArgumentParser(
        prog="quadmosaic",
        description="Processes a sequence of frames into a quadtree animation.",
    )
    obj_parser.add_argument(
        "--version", "-v", action="store_true", help="Print version and exit"
    )
    obj_parser.add_argument(
        "-a", "--anim", type=str, default="res/{}.png",
        help="Path pattern to the animation frames.",
    )
    obj_parser.add_argument(
        "-r", "--repeat", type=int, default=2,
        help="Number of times to repeat each animation frame.",
    )
    obj_parser.add_argument(
        "-i", "--input", type=str, default="in/img_{}.png",
        help="Path pattern to input frames.",
    )
    obj_parser.add_argument(
        "-o", "--output", type=str, default="out/img_{}.png",
        help="Path pattern to output frames.",
    )
    obj_parser.add_argument(
        "-m", "--mode", type=str, default="color",
        help="Must be either 'bw' or 'color'.",
    )
    obj_parser.add_argument(
        "-s", "--similarity", type=int, default=16,
        help="Similarity threshold for colors (0-255).",
    )
    obj_parser.add_argument(
        "-b", "--background", type=str, default="#000000",
        help="Background color painted under every leaf.",
    )
    obj_parser.add_argument(
        "-p", "--out-resolution", type=int, nargs="?", const=480, default=None,
        help="Output vertical resolution (480 when given without a value).",
    )
    obj_parser.add_argument(
        "--min-size", type=int, default=8, help="Minimum leaf dimension."
    )
    obj_parser.add_argument(
        "--anim-start", type=int, default=0,
        help="First frame index of animation frames.",
    )
    obj_parser.add_argument(
        "--input-start", type=int, default=1,
        help="First frame index of input frames.",
    )
    obj_parser.add_argument(
        "--workers", type=int, default=os.cpu_count() or 1,
        help="Number of worker threads.",
    )
    obj_parser.add_argument(
        "--strategy", type=str, default="merge", choices=LIST_STR_STRATEGIES,
        help="Subdivision strategy: bottom-up merge (default) or top-down split.",
    )
    obj_parser.add_argument(
        "--video", type=str, default=None,
        help="Also assemble the written frames into this MP4 file.",
    )
    obj_parser.add_argument(
        "--fps", type=int, default=30, help="Frames per second for --video."
    )
    return obj_parser


def render_sequence(
    obj_settings: RunSettings,
    obj_params: DecompositionParameters,
    obj_policy: SubdivisionPolicy,
    bool_show_progress: bool = True,
) -> RunReport:
    """Discover frames, render them all and optionally export a video.

    Raises ``ConfigurationError`` when no animation frames exist.
    """
    logger_app.info("Searching for animation frames...")
    list_path_anim: list[Path] = discover_frames(
        obj_settings.str_anim_pattern, obj_settings.int_anim_start
    )
    if not list_path_anim:
        raise ConfigurationError("No animation frames found, aborting...")
    logger_app.info("Found %d animation frames.", len(list_path_anim))

    func_engine_factory = functools.partial(
        load_engine,
        obj_params=obj_params,
        obj_policy=obj_policy,
        str_strategy=obj_settings.str_strategy,
    )
    obj_scheduler: FrameResourceScheduler = FrameResourceScheduler(
        [str(path_anim) for path_anim in list_path_anim],
        obj_settings.int_repeat,
        func_engine_factory,
        int_out_height=obj_settings.int_out_height,
    )

    logger_app.info("Generating frame tasks...")
    list_jobs: list[FrameJob] = build_frame_jobs(
        obj_settings.str_input_pattern,
        obj_settings.str_output_pattern,
        obj_settings.int_input_start,
    )
    obj_report: RunReport = obj_scheduler.run(
        list_jobs, obj_settings.int_workers, bool_show_progress=bool_show_progress
    )
    if obj_report.list_int_failed:
        logger_app.error(
            "%d of %d frames failed: %s",
            len(obj_report.list_int_failed),
            obj_report.int_total,
            obj_report.list_int_failed,
        )
    logger_app.info("Done. Wrote %d frames.", len(obj_report.list_int_succeeded))

    if obj_settings.str_video_path is not None and obj_report.list_int_succeeded:
        from .video_export import write_video

        write_video(
            collect_output_paths(list_jobs, obj_report),
            obj_settings.str_video_path,
            int_fps=obj_settings.int_fps,
        )
    return obj_report


def main() -> None:
    """CLI entrypoint for quadtree frame rendering."""
    obj_args = build_parser().parse_args()

    if obj_args.version:
        str_version_text: str = f"quadmosaic v{get_version()} (Python {sys.version.split()[0]})"
        logger_app.info(str_version_text)
        sys.exit(0)

    try:
        obj_policy: SubdivisionPolicy = create_policy(obj_args.mode, obj_args.similarity)
        obj_params: DecompositionParameters = DecompositionParameters(
            int_min_size=obj_args.min_size,
            color_background=parse_hex_color(obj_args.background),
        )
        obj_settings: RunSettings = RunSettings(
            str_anim_pattern=obj_args.anim,
            str_input_pattern=obj_args.input,
            str_output_pattern=obj_args.output,
            int_repeat=obj_args.repeat,
            int_anim_start=obj_args.anim_start,
            int_input_start=obj_args.input_start,
            int_out_height=obj_args.out_resolution,
            int_workers=obj_args.workers,
            str_strategy=obj_args.strategy,
            str_video_path=obj_args.video,
            int_fps=obj_args.fps,
        )
    except ConfigurationError as exc_error:
        logger_app.error("Configuration error. Context: %s", exc_error)
        sys.exit(1)

    try:
        render_sequence(obj_settings, obj_params, obj_policy)
    except ConfigurationError as exc_error:
        logger_app.error("%s", exc_error)
        sys.exit(1)
    except Exception as exc_error:
        logger_app.error("Rendering failed. Context: %s", exc_error)
        sys.exit(1)


if __name__ == "__main__":
    main()
