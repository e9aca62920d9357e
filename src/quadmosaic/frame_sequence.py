"""Expand frame path patterns into contiguous, existing frame sequences."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

logger_app = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameJob:
    """One output frame to render: its index and input/output paths."""

    int_index: int
    path_input: Path
    path_output: Path


def format_frame_path(str_pattern: str, int_index: int) -> Path:
    """Substitute ``int_index`` into a ``str.format`` pattern such as ``in/{}.png``."""
    path_result: Path = Path(str_pattern.format(int_index))
    return path_result


def discover_frames(str_pattern: str, int_start: int) -> list[Path]:
    """Return existing paths for indices ``int_start, int_start + 1, ...``.

    Stops at the first missing file, or as soon as the pattern yields the same
    path twice (a pattern without a placeholder matches at most one file).
    """
    list_path_frames: list[Path] = []
    path_last: Path | None = None
    int_index: int = int_start
    while True:
        path_frame: Path = format_frame_path(str_pattern, int_index).absolute()
        if path_frame == path_last or not path_frame.exists():
            break
        list_path_frames.append(path_frame)
        path_last = path_frame
        int_index += 1

    logger_app.debug(
        "Pattern %s matched %d frames from index %d.",
        str_pattern,
        len(list_path_frames),
        int_start,
    )
    return list_path_frames


def build_frame_jobs(
    str_input_pattern: str, str_output_pattern: str, int_start: int
) -> list[FrameJob]:
    """Pair every discovered input frame with its output path."""
    list_jobs: list[FrameJob] = []
    for int_offset, path_input in enumerate(discover_frames(str_input_pattern, int_start)):
        int_index: int = int_start + int_offset
        list_jobs.append(
            FrameJob(
                int_index=int_index,
                path_input=path_input,
                path_output=format_frame_path(str_output_pattern, int_index),
            )
        )
    return list_jobs
