"""Shared pytest configuration and fixtures for the quadmosaic test suite."""

from pathlib import Path
import sys

import numpy as np
from PIL import Image
import pytest


path_project_root = Path(__file__).resolve().parents[1]
path_src = path_project_root / "src"
if str(path_src) not in sys.path:
    sys.path.insert(0, str(path_src))

from quadmosaic.pixel_surface import PixelSurface  # noqa: E402


def build_leaf_array(int_width: int = 16, int_height: int = 16) -> np.ndarray:
    """Build an RGBA leaf: light body, one transparent corner, gray shading."""
    array_leaf = np.zeros((int_height, int_width, 4), dtype=np.uint8)
    array_leaf[..., 0] = 240
    array_leaf[..., 1] = 200
    array_leaf[..., 2] = 160
    array_leaf[..., 3] = 255
    array_leaf[: int_height // 4, : int_width // 4, 3] = 0
    array_leaf[int_height // 2 :, :, :3] //= 2
    return array_leaf


@pytest.fixture
def surface_leaf() -> PixelSurface:
    """Return a 16x16 RGBA leaf template surface."""
    array_leaf = build_leaf_array()
    return PixelSurface(16, 16, 4, array_leaf)


@pytest.fixture
def path_leaf_image(tmp_path: Path) -> Path:
    """Write the RGBA leaf template to disk and return its path."""
    path_image = tmp_path / "anim" / "0.png"
    path_image.parent.mkdir(parents=True)
    Image.fromarray(build_leaf_array()).save(path_image)
    return path_image


@pytest.fixture
def path_input_image(tmp_path: Path) -> Path:
    """Create a small deterministic RGB test image and return its path."""
    path_image = tmp_path / "input_image.png"
    image_input = Image.new("RGB", (20, 20), (200, 200, 200))
    for int_x in range(10):
        for int_y in range(20):
            image_input.putpixel((int_x, int_y), (10, 30, 80))
    image_input.save(path_image)
    return path_image
