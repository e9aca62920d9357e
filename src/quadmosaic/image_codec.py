"""Pillow-backed decode/encode of frame files into ``PixelSurface`` buffers."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from PIL import Image

from .pixel_surface import PixelSurface

logger_app = logging.getLogger(__name__)


class FrameProcessingError(RuntimeError):
    """A single frame could not be processed; other frames are unaffected."""


class FrameDecodeError(FrameProcessingError):
    """The frame file is missing or could not be decoded."""


class FrameEncodeError(FrameProcessingError):
    """The rendered frame could not be written."""


def decode_surface(path_image: str | os.PathLike[str]) -> PixelSurface:
    """Load an image file as an RGB or RGBA surface."""
    try:
        with Image.open(path_image) as image_source:
            image_source.load()
            surface_result: PixelSurface = PixelSurface.from_image(image_source)
    except (OSError, ValueError) as exc_error:
        logger_app.error("Failed to open image file: %s. Context: %s", path_image, exc_error)
        raise FrameDecodeError(f"Error opening image {path_image}: {exc_error}") from exc_error
    return surface_result


def encode_surface(
    surface_image: PixelSurface,
    path_output: str | os.PathLike[str],
    str_format: str = "png",
) -> None:
    """Write ``surface_image`` to ``path_output`` atomically.

    The image is saved to a temporary sibling file and renamed into place, so a
    failed save never leaves a truncated output behind.
    """
    path_target: Path = Path(path_output)
    str_temp_path: str | None = None
    try:
        path_target.parent.mkdir(parents=True, exist_ok=True)
        int_fd: int
        int_fd, str_temp_path = tempfile.mkstemp(
            dir=path_target.parent, prefix=f".{path_target.name}.", suffix=".tmp"
        )
        with os.fdopen(int_fd, "wb") as obj_file:
            surface_image.to_image().save(obj_file, format=str_format)
        os.replace(str_temp_path, path_target)
        str_temp_path = None
    except (OSError, ValueError, KeyError) as exc_error:
        logger_app.error("Failed to save image %s. Context: %s", path_target, exc_error)
        raise FrameEncodeError(f"Error saving image {path_target}: {exc_error}") from exc_error
    finally:
        if str_temp_path is not None and os.path.exists(str_temp_path):
            os.remove(str_temp_path)
