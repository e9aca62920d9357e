"""Region color and subdivision decisions for the monochrome and color modes.

A policy is one of two frozen dataclasses. The module-level functions dispatch
on the variant with ``match`` so adding a variant forces every decision point
to be revisited.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Union

import numpy as np

from .pixel_surface import PixelSurface
from .pixel_surface import Rect
from .pixel_surface import RgbColor
from .pixel_surface import clamp_byte
from .quadtree_settings import ConfigurationError

DICT_STR_MODE_ALIASES: dict[str, str] = {
    "bw": "bw",
    "mono": "bw",
    "monochrome": "bw",
    "color": "color",
    "colour": "color",
}


@dataclass(frozen=True)
class MonochromePolicy:
    """Gray decisions on channel 0; ``int_threshold`` is a raw channel spread."""

    int_threshold: int = 16


@dataclass(frozen=True)
class ColorPolicy:
    """RGB decisions; ``int_threshold`` is compared as ``3 * threshold**2``."""

    int_threshold: int = 16


SubdivisionPolicy = Union[MonochromePolicy, ColorPolicy]


def create_policy(str_mode: str, int_threshold: int) -> SubdivisionPolicy:
    """Build a policy from a CLI mode name.

    Raises ``ConfigurationError`` for unknown modes or negative thresholds.
    """
    if int_threshold < 0:
        raise ConfigurationError(
            f"Similarity threshold must be >= 0, got {int_threshold}."
        )

    str_canonical: str | None = DICT_STR_MODE_ALIASES.get(str_mode.strip().lower())
    if str_canonical == "bw":
        return MonochromePolicy(int_threshold)
    if str_canonical == "color":
        return ColorPolicy(int_threshold)
    raise ConfigurationError(f"Unknown mode: '{str_mode}'. Must be either 'bw' or 'color'.")


def _region_pixels(surface_frame: PixelSurface, rect_region: Rect) -> np.ndarray:
    array_region: np.ndarray = surface_frame.region(rect_region)
    if array_region.size == 0:
        raise ValueError(f"Region {rect_region} has no pixels inside the frame.")
    return array_region


def representative_color(
    obj_policy: SubdivisionPolicy, surface_frame: PixelSurface, rect_region: Rect
) -> RgbColor:
    """Return the rounded mean color of ``rect_region``."""
    array_region: np.ndarray = _region_pixels(surface_frame, rect_region)
    match obj_policy:
        case MonochromePolicy():
            int_gray: int = clamp_byte(float(array_region[..., 0].mean()))
            return RgbColor.gray(int_gray)
        case ColorPolicy():
            array_means: np.ndarray = array_region[..., :3].reshape(-1, 3).mean(axis=0)
            return RgbColor(*(clamp_byte(float(float_mean)) for float_mean in array_means))
        case _:
            raise TypeError(f"Unsupported subdivision policy: {obj_policy!r}")


def _squared_distance(color_a: RgbColor, color_b: RgbColor) -> int:
    return (
        (color_a.r - color_b.r) ** 2
        + (color_a.g - color_b.g) ** 2
        + (color_a.b - color_b.b) ** 2
    )


def should_merge(
    obj_policy: SubdivisionPolicy,
    color_tl: RgbColor,
    color_tr: RgbColor,
    color_bl: RgbColor,
    color_br: RgbColor,
) -> tuple[bool, RgbColor]:
    """Decide whether four sibling leaves collapse into one.

    Output:
    - ``(merge, merged_color)`` where ``merged_color`` is the rounded mean of
      the four inputs. The color is computed even when ``merge`` is false.
    """
    tuple_colors: tuple[RgbColor, RgbColor, RgbColor, RgbColor] = (
        color_tl,
        color_tr,
        color_bl,
        color_br,
    )
    match obj_policy:
        case MonochromePolicy(int_threshold=int_threshold):
            list_int_grays: list[int] = [color_item.r for color_item in tuple_colors]
            bool_merge: bool = max(list_int_grays) - min(list_int_grays) < int_threshold
            int_gray: int = clamp_byte(sum(list_int_grays) / 4.0)
            return bool_merge, RgbColor.gray(int_gray)
        case ColorPolicy(int_threshold=int_threshold):
            int_max_distance: int = max(
                _squared_distance(color_a, color_b)
                for color_a, color_b in itertools.combinations(tuple_colors, 2)
            )
            bool_merge = int_max_distance < 3 * int_threshold * int_threshold
            color_mean: RgbColor = RgbColor(
                clamp_byte(sum(color_item.r for color_item in tuple_colors) / 4.0),
                clamp_byte(sum(color_item.g for color_item in tuple_colors) / 4.0),
                clamp_byte(sum(color_item.b for color_item in tuple_colors) / 4.0),
            )
            return bool_merge, color_mean
        case _:
            raise TypeError(f"Unsupported subdivision policy: {obj_policy!r}")


def check_subdivision(
    obj_policy: SubdivisionPolicy, surface_frame: PixelSurface, rect_region: Rect
) -> tuple[bool, RgbColor]:
    """Top-down decision from the region's own pixel spread.

    Cheaper than the bottom-up merge but coarser: a region is kept whole
    without ever comparing the colors of its leaf-sized parts.

    - Monochrome: subdivide when ``max - min`` of channel 0 exceeds the threshold.
    - Color: subdivide when any pixel's squared RGB distance to the region's
      center pixel exceeds the threshold.
    """
    array_region: np.ndarray = _region_pixels(surface_frame, rect_region)
    color_mean: RgbColor = representative_color(obj_policy, surface_frame, rect_region)
    match obj_policy:
        case MonochromePolicy(int_threshold=int_threshold):
            array_gray: np.ndarray = array_region[..., 0]
            int_spread: int = int(array_gray.max()) - int(array_gray.min())
            return int_spread > int_threshold, color_mean
        case ColorPolicy(int_threshold=int_threshold):
            array_rgb: np.ndarray = array_region[..., :3].astype(np.int32)
            array_center: np.ndarray = array_rgb[
                array_rgb.shape[0] // 2, array_rgb.shape[1] // 2
            ]
            array_distance: np.ndarray = ((array_rgb - array_center) ** 2).sum(axis=-1)
            return bool((array_distance > int_threshold).any()), color_mean
        case _:
            raise TypeError(f"Unsupported subdivision policy: {obj_policy!r}")
