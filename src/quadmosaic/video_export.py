"""Assemble rendered frames into an MP4 preview with OpenCV."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import numpy as np

from .image_codec import decode_surface
from .pixel_surface import PixelSurface

logger_app = logging.getLogger(__name__)

try:
    import cv2

    bool_has_video_support = True
except ImportError:
    bool_has_video_support = False


def write_video(
    list_path_frames: list[Path],
    str_output_path: str,
    int_fps: int = 30,
) -> None:
    """Encode ordered frame files into an MP4.

    Frames whose size differs from the first one are resized to match it.

    Third-party API reference:
    https://docs.opencv.org/4.x/dd/d9e/classcv_1_1VideoWriter.html
    """
    if not bool_has_video_support:
        logger_app.error("Video export requested but opencv-python is missing.")
        raise RuntimeError("opencv-python is required for video export.")
    if not list_path_frames:
        logger_app.error("Cannot write video because no frames were rendered.")
        raise ValueError("Frame list cannot be empty.")

    str_parent_dir: str = os.path.dirname(str_output_path)
    if str_parent_dir:
        os.makedirs(str_parent_dir, exist_ok=True)

    obj_video_writer = None
    tuple_reference_size: tuple[int, int] | None = None
    try:
        for path_frame in list_path_frames:
            surface_frame: PixelSurface = decode_surface(path_frame)
            if tuple_reference_size is None:
                tuple_reference_size = (surface_frame.int_width, surface_frame.int_height)
                obj_fourcc: int = cv2.VideoWriter_fourcc(*"mp4v")  # type: ignore
                obj_video_writer = cv2.VideoWriter(  # type: ignore
                    str_output_path,
                    obj_fourcc,
                    int_fps,
                    tuple_reference_size,
                )
            elif (surface_frame.int_width, surface_frame.int_height) != tuple_reference_size:
                surface_frame = surface_frame.resize_to(*tuple_reference_size)

            array_bgr: np.ndarray = surface_frame.array_pixels[:, :, 2::-1].copy()
            obj_video_writer.write(array_bgr)
    finally:
        if obj_video_writer is not None:
            obj_video_writer.release()
            logger_app.info("Video export complete. Saved to: %s", str_output_path)
