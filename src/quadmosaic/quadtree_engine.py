"""Quadtree decomposition of frames into tinted leaf sprites.

This module owns the per-animation-frame rendering context. A frame is first
cut into strips matching the leaf template's aspect ratio, then every strip is
decomposed into a quadtree whose leaves are painted with the template tinted
to the region's representative color.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass

from .pixel_surface import PixelSurface
from .pixel_surface import Rect
from .pixel_surface import RgbColor
from .quadtree_settings import LIST_STR_STRATEGIES
from .quadtree_settings import ConfigurationError
from .quadtree_settings import DecompositionParameters
from .sprite_cache import SpriteCache
from .subdivision_policy import SubdivisionPolicy
from .subdivision_policy import check_subdivision
from .subdivision_policy import representative_color
from .subdivision_policy import should_merge

logger_app = logging.getLogger(__name__)


def best_split_count(float_aspect_ratio: float) -> int:
    """Return how many near-square tiles fit a strip of ``float_aspect_ratio``.

    ``floor(ratio)`` is bumped by one when ``ratio**2 > n * (n + 1)``, i.e.
    when the ratio lies above the geometric mean of ``n`` and ``n + 1``.
    """
    int_count: int = int(math.floor(float_aspect_ratio))
    if float_aspect_ratio * float_aspect_ratio > int_count * (int_count + 1):
        int_count += 1
    return max(1, int_count)


def split_lengths(int_total: int, int_count: int) -> list[int]:
    """Split ``int_total`` into ``int_count`` lengths differing by at most one.

    The remainder is spread with a running error term so the longer pieces are
    distributed evenly rather than bunched at one end. Lengths always sum to
    ``int_total``.
    """
    if int_count < 1:
        raise ValueError(f"Split count must be >= 1, got {int_count}.")

    int_step: int = int_total // int_count
    int_error_step: int = int_total - int_step * int_count
    int_error: int = int_error_step
    int_size: int = int_step
    list_int_lengths: list[int] = []
    for _ in range(int_count):
        list_int_lengths.append(int_size)
        int_error += int_error_step
        if int_error >= int_count:
            int_size = int_step + 1
            int_error -= int_count
        else:
            int_size = int_step
    return list_int_lengths


def partition_tiles(int_width: int, int_height: int, float_leaf_aspect: float) -> list[Rect]:
    """Cut a frame into strips whose shape is close to the leaf's aspect ratio.

    Inputs:
    - ``int_width``/``int_height``: frame size.
    - ``float_leaf_aspect``: leaf template ``width / height``.

    Output:
    - Tiles covering the frame exactly, laid along its relatively longer axis.
    """
    if int_width <= 0 or int_height <= 0:
        return []

    bool_horizontal: bool = int_width >= int_height * float_leaf_aspect
    if bool_horizontal:
        float_ratio: float = int_width / (int_height * float_leaf_aspect)
        int_total: int = int_width
    else:
        float_ratio = (int_height * float_leaf_aspect) / int_width
        int_total = int_height

    int_count: int = min(best_split_count(float_ratio), int_total)
    list_rect_tiles: list[Rect] = []
    int_position: int = 0
    for int_length in split_lengths(int_total, int_count):
        if bool_horizontal:
            list_rect_tiles.append(Rect(int_position, 0, int_length, int_height))
        else:
            list_rect_tiles.append(Rect(0, int_position, int_width, int_length))
        int_position += int_length
    return list_rect_tiles


def split_quadrants(rect_region: Rect) -> tuple[Rect, Rect, Rect, Rect]:
    """Split at the midpoints; odd remainders go to the right and bottom halves."""
    int_left_w: int = rect_region.w // 2
    int_top_h: int = rect_region.h // 2
    int_mid_x: int = rect_region.x + int_left_w
    int_mid_y: int = rect_region.y + int_top_h
    int_right_w: int = rect_region.w - int_left_w
    int_bottom_h: int = rect_region.h - int_top_h
    return (
        Rect(rect_region.x, rect_region.y, int_left_w, int_top_h),
        Rect(int_mid_x, rect_region.y, int_right_w, int_top_h),
        Rect(rect_region.x, int_mid_y, int_left_w, int_bottom_h),
        Rect(int_mid_x, int_mid_y, int_right_w, int_bottom_h),
    )


@dataclass(frozen=True)
class LeafData:
    """A decided but not yet rendered leaf."""

    color: RgbColor
    rect_bounds: Rect


class _FramePass:
    """Mutable state for one ``process_frame`` call (thread-local by construction)."""

    def __init__(self, surface_frame: PixelSurface) -> None:
        self.surface_frame: PixelSurface = surface_frame
        self.int_leaf_count: int = 0


class QuadtreeEngine:
    """Decompose frames into quadtree mosaics of one leaf template.

    Constructor Input:
    - ``surface_leaf``: leaf template; it becomes owned by the engine's cache.
    - ``obj_params``: ``DecompositionParameters`` (min leaf size, background).
    - ``obj_policy``: monochrome or color ``SubdivisionPolicy``.
    - ``str_strategy``: ``merge`` (visit to min size, merge on unwind) or
      ``top_down`` (split only while the region itself looks non-uniform).

    Output/Behavior:
    - ``process_frame`` consumes a frame surface and returns it rendered.
    - Safe to call from many threads at once; the only shared state is the
      sprite cache.
    """

    def __init__(
        self,
        surface_leaf: PixelSurface,
        obj_params: DecompositionParameters,
        obj_policy: SubdivisionPolicy,
        str_strategy: str = "merge",
    ) -> None:
        if surface_leaf.int_width == 0 or surface_leaf.int_height == 0:
            raise ValueError("Leaf template must have non-zero dimensions.")
        if str_strategy not in LIST_STR_STRATEGIES:
            raise ConfigurationError(
                f"Unknown strategy '{str_strategy}'; expected one of {LIST_STR_STRATEGIES}."
            )

        self.obj_params: DecompositionParameters = obj_params
        self.obj_policy: SubdivisionPolicy = obj_policy
        self.str_strategy: str = str_strategy
        self.float_leaf_aspect: float = surface_leaf.int_width / surface_leaf.int_height
        self.obj_sprite_cache: SpriteCache | None = SpriteCache(surface_leaf)
        self._local_stats = threading.local()

    @property
    def int_last_leaf_count(self) -> int:
        """Leaves rendered by the last ``process_frame`` on the calling thread."""
        return getattr(self._local_stats, "int_leaf_count", 0)

    @property
    def bool_released(self) -> bool:
        return self.obj_sprite_cache is None

    def release(self) -> None:
        """Drop the sprite cache and template; the engine is unusable afterwards."""
        if self.obj_sprite_cache is not None:
            self.obj_sprite_cache.clear()
            self.obj_sprite_cache = None

    def process_frame(self, surface_frame: PixelSurface) -> PixelSurface:
        """Render ``surface_frame`` in place as a leaf mosaic and return it."""
        if self.obj_sprite_cache is None:
            raise RuntimeError("QuadtreeEngine used after release().")

        obj_pass: _FramePass = _FramePass(surface_frame)
        list_rect_tiles: list[Rect] = partition_tiles(
            surface_frame.int_width, surface_frame.int_height, self.float_leaf_aspect
        )
        for rect_tile in list_rect_tiles:
            if self.str_strategy == "top_down":
                self._process_top_down(obj_pass, rect_tile)
                continue

            leaf_pending: LeafData | None = self._process_region(obj_pass, rect_tile)
            if leaf_pending is not None:
                self._render_leaf(obj_pass, leaf_pending)

        logger_app.debug(
            "Rendered %dx%d frame as %d tiles / %d leaves.",
            surface_frame.int_width,
            surface_frame.int_height,
            len(list_rect_tiles),
            obj_pass.int_leaf_count,
        )
        self._local_stats.int_leaf_count = obj_pass.int_leaf_count
        return surface_frame

    def _process_region(self, obj_pass: _FramePass, rect_region: Rect) -> LeafData | None:
        """Return a pending leaf for the region, or ``None`` once rendered."""
        if min(rect_region.w, rect_region.h) <= self.obj_params.int_min_size:
            color_leaf: RgbColor = representative_color(
                self.obj_policy, obj_pass.surface_frame, rect_region
            )
            return LeafData(color_leaf, rect_region)

        tuple_rect_children: tuple[Rect, Rect, Rect, Rect] = split_quadrants(rect_region)
        list_children: list[LeafData | None] = [
            self._process_region(obj_pass, rect_child) for rect_child in tuple_rect_children
        ]

        if all(leaf_child is not None for leaf_child in list_children):
            bool_merge: bool
            color_merged: RgbColor
            bool_merge, color_merged = should_merge(
                self.obj_policy,
                *(leaf_child.color for leaf_child in list_children),
            )
            if bool_merge:
                return LeafData(color_merged, rect_region)

        for leaf_child in list_children:
            if leaf_child is not None:
                self._render_leaf(obj_pass, leaf_child)
        return None

    def _process_top_down(self, obj_pass: _FramePass, rect_region: Rect) -> None:
        bool_subdivide: bool
        color_region: RgbColor
        bool_subdivide, color_region = check_subdivision(
            self.obj_policy, obj_pass.surface_frame, rect_region
        )
        if bool_subdivide and min(rect_region.w, rect_region.h) > self.obj_params.int_min_size:
            for rect_child in split_quadrants(rect_region):
                self._process_top_down(obj_pass, rect_child)
        else:
            self._render_leaf(obj_pass, LeafData(color_region, rect_region))

    def _render_leaf(self, obj_pass: _FramePass, leaf_data: LeafData) -> None:
        """Paint background, then composite the tinted sprite over the leaf."""
        rect_bounds: Rect = leaf_data.rect_bounds
        if rect_bounds.w == 0 or rect_bounds.h == 0:
            return

        surface_sprite: PixelSurface = self.obj_sprite_cache.get(rect_bounds.w, rect_bounds.h)
        surface_frame: PixelSurface = obj_pass.surface_frame
        surface_frame.fill_rect(rect_bounds, self.obj_params.color_background)
        surface_frame.composite_over(
            surface_sprite.tint(leaf_data.color), rect_bounds.x, rect_bounds.y
        )
        obj_pass.int_leaf_count += 1
