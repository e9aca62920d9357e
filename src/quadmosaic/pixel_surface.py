"""Pixel buffers and the compositing primitives used to render quadtree leaves.

``PixelSurface`` wraps a contiguous ``uint8`` numpy buffer shaped
``(height, width, channels)``. All geometry uses ``Rect`` and all tint colors
use ``RgbColor`` so the engine never handles bare tuples for either.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image

logger_app = logging.getLogger(__name__)

SUPPORTED_CHANNEL_COUNTS: tuple[int, int] = (3, 4)

# Rec.709 luma weights applied to normalized RGB.
TUPLE_LUMINANCE_WEIGHTS: tuple[float, float, float] = (0.2126, 0.7152, 0.0722)


def round_half_up(array_values: np.ndarray) -> np.ndarray:
    """Round non-negative values to the nearest integer, halves rounding up."""
    array_rounded: np.ndarray = np.floor(array_values + 0.5)
    return array_rounded


def clamp_byte(float_value: float) -> int:
    """Round a scalar to the nearest integer and clamp it to ``[0, 255]``."""
    if float_value <= 0.0:
        return 0
    if float_value >= 255.0:
        return 255
    int_result: int = int(np.floor(float_value + 0.5))
    return int_result


@dataclass(frozen=True)
class Rect:
    """Axis-aligned integer region of a surface."""

    x: int
    y: int
    w: int
    h: int

    def __post_init__(self) -> None:
        if self.w < 0 or self.h < 0:
            raise ValueError(f"Rect dimensions must be >= 0, got {self.w}x{self.h}.")

    @property
    def int_area(self) -> int:
        return self.w * self.h

    def clipped(self, int_width: int, int_height: int) -> Rect:
        """Return the intersection of this rect with ``[0, w) x [0, h)``."""
        int_left: int = max(0, self.x)
        int_top: int = max(0, self.y)
        int_right: int = min(int_width, self.x + self.w)
        int_bottom: int = min(int_height, self.y + self.h)
        rect_result: Rect = Rect(
            int_left,
            int_top,
            max(0, int_right - int_left),
            max(0, int_bottom - int_top),
        )
        return rect_result


@dataclass(frozen=True)
class RgbColor:
    """Representative color of a region, stored as three bytes."""

    r: int
    g: int
    b: int

    def __post_init__(self) -> None:
        for int_channel in (self.r, self.g, self.b):
            if not 0 <= int_channel <= 255:
                raise ValueError(f"Color channel out of byte range: {int_channel}")

    @classmethod
    def gray(cls, int_value: int) -> RgbColor:
        """Build a neutral color with every channel set to ``int_value``."""
        return cls(int_value, int_value, int_value)

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.r, self.g, self.b)


class PixelSurface:
    """Owned, mutable raster of 3- or 4-channel byte pixels.

    Constructor Input:
    - ``int_width``/``int_height``: surface dimensions in pixels.
    - ``int_channels``: 3 (RGB, always opaque) or 4 (RGBA).
    - ``array_pixels``: optional existing ``uint8`` buffer to take ownership of.

    Output/Behavior:
    - ``resize_to``, ``crop``, ``tint`` return new surfaces.
    - ``fill_rect`` and ``composite_over`` mutate this surface in place.
    """

    def __init__(
        self,
        int_width: int,
        int_height: int,
        int_channels: int = 3,
        array_pixels: np.ndarray | None = None,
    ) -> None:
        if int_channels not in SUPPORTED_CHANNEL_COUNTS:
            raise ValueError(
                f"Unsupported channel count {int_channels}; expected 3 or 4."
            )
        if int_width < 0 or int_height < 0:
            raise ValueError(
                f"Surface dimensions must be >= 0, got {int_width}x{int_height}."
            )

        tuple_shape: tuple[int, int, int] = (int_height, int_width, int_channels)
        if array_pixels is None:
            array_pixels = np.zeros(tuple_shape, dtype=np.uint8)
        elif array_pixels.shape != tuple_shape or array_pixels.dtype != np.uint8:
            raise ValueError(
                f"Pixel buffer shape {array_pixels.shape}/{array_pixels.dtype} "
                f"does not match {tuple_shape}/uint8."
            )

        self.array_pixels: np.ndarray = np.ascontiguousarray(array_pixels)

    @property
    def int_width(self) -> int:
        return int(self.array_pixels.shape[1])

    @property
    def int_height(self) -> int:
        return int(self.array_pixels.shape[0])

    @property
    def int_channels(self) -> int:
        return int(self.array_pixels.shape[2])

    @property
    def bool_has_alpha(self) -> bool:
        return self.int_channels == 4

    @property
    def rect_bounds(self) -> Rect:
        return Rect(0, 0, self.int_width, self.int_height)

    def __repr__(self) -> str:
        return (
            f"PixelSurface({self.int_width}x{self.int_height}, "
            f"channels={self.int_channels})"
        )

    @classmethod
    def from_image(cls, image_input: Image.Image) -> PixelSurface:
        """Copy a Pillow image into a new surface (RGB or RGBA)."""
        if image_input.mode not in ("RGB", "RGBA"):
            str_target_mode: str = (
                "RGBA"
                if "A" in image_input.getbands() or "transparency" in image_input.info
                else "RGB"
            )
            image_input = image_input.convert(str_target_mode)

        array_pixels: np.ndarray = np.array(image_input, dtype=np.uint8)
        surface_result: PixelSurface = cls(
            image_input.width,
            image_input.height,
            array_pixels.shape[2],
            array_pixels,
        )
        return surface_result

    def to_image(self) -> Image.Image:
        """Return a Pillow image view of the current pixels."""
        # Pillow infers RGB or RGBA from the trailing channel axis.
        image_result: Image.Image = Image.fromarray(self.array_pixels)
        return image_result

    def copy(self) -> PixelSurface:
        return PixelSurface(
            self.int_width,
            self.int_height,
            self.int_channels,
            self.array_pixels.copy(),
        )

    def pixel(self, int_x: int, int_y: int) -> tuple[int, ...]:
        """Return one pixel's channel values; coordinates must be in bounds."""
        if not (0 <= int_x < self.int_width and 0 <= int_y < self.int_height):
            raise IndexError(
                f"Pixel ({int_x}, {int_y}) outside {self.int_width}x{self.int_height}."
            )
        tuple_pixel: tuple[int, ...] = tuple(
            int(int_value) for int_value in self.array_pixels[int_y, int_x]
        )
        return tuple_pixel

    def region(self, rect_region: Rect) -> np.ndarray:
        """Return a read-only view of the clipped pixels inside ``rect_region``."""
        rect_clip: Rect = rect_region.clipped(self.int_width, self.int_height)
        array_view: np.ndarray = self.array_pixels[
            rect_clip.y : rect_clip.y + rect_clip.h,
            rect_clip.x : rect_clip.x + rect_clip.w,
        ]
        return array_view

    def resize_to(self, int_width: int, int_height: int) -> PixelSurface:
        """Nearest-neighbour resample to ``int_width`` x ``int_height``.

        Source coordinates are ``floor(x * src_w / w)`` and
        ``floor(y * src_h / h)``, computed in integer arithmetic so the same
        target size always produces byte-identical output.
        """
        if int_width <= 0 or int_height <= 0:
            raise ValueError(
                f"Resize target must be positive, got {int_width}x{int_height}."
            )

        array_src_x: np.ndarray = (
            np.arange(int_width, dtype=np.int64) * self.int_width
        ) // int_width
        array_src_y: np.ndarray = (
            np.arange(int_height, dtype=np.int64) * self.int_height
        ) // int_height
        array_resized: np.ndarray = self.array_pixels[
            array_src_y[:, np.newaxis], array_src_x[np.newaxis, :]
        ]
        surface_result: PixelSurface = PixelSurface(
            int_width, int_height, self.int_channels, np.ascontiguousarray(array_resized)
        )
        return surface_result

    def crop(self, rect_region: Rect) -> PixelSurface:
        """Copy ``rect_region`` into a new surface; uncovered pixels stay zero."""
        surface_result: PixelSurface = PixelSurface(
            rect_region.w, rect_region.h, self.int_channels
        )
        rect_clip: Rect = rect_region.clipped(self.int_width, self.int_height)
        if rect_clip.int_area == 0:
            return surface_result

        int_offset_x: int = rect_clip.x - rect_region.x
        int_offset_y: int = rect_clip.y - rect_region.y
        surface_result.array_pixels[
            int_offset_y : int_offset_y + rect_clip.h,
            int_offset_x : int_offset_x + rect_clip.w,
        ] = self.region(rect_clip)
        return surface_result

    def tint(self, color_tint: RgbColor) -> PixelSurface:
        """Return a copy with each color channel scaled by ``channel / 255``.

        Uses ``value * channel // 255`` on widened integers. The alpha channel of
        an RGBA surface is copied through unchanged.
        """
        array_result: np.ndarray = self.array_pixels.copy()
        array_scale: np.ndarray = np.array(color_tint.as_tuple(), dtype=np.uint16)
        array_rgb: np.ndarray = array_result[..., :3].astype(np.uint16)
        array_result[..., :3] = (array_rgb * array_scale // 255).astype(np.uint8)
        surface_result: PixelSurface = PixelSurface(
            self.int_width, self.int_height, self.int_channels, array_result
        )
        return surface_result

    def fill_rect(self, rect_region: Rect, color_fill: RgbColor) -> PixelSurface:
        """Paint an opaque solid color into the clipped region, in place."""
        rect_clip: Rect = rect_region.clipped(self.int_width, self.int_height)
        if rect_clip.int_area == 0:
            return self

        array_target: np.ndarray = self.array_pixels[
            rect_clip.y : rect_clip.y + rect_clip.h,
            rect_clip.x : rect_clip.x + rect_clip.w,
        ]
        array_target[..., :3] = color_fill.as_tuple()
        if self.bool_has_alpha:
            array_target[..., 3] = 255
        return self

    def composite_over(
        self, surface_source: PixelSurface, int_x: int, int_y: int
    ) -> PixelSurface:
        """Alpha-blend ``surface_source`` onto this surface at ``(int_x, int_y)``.

        Behavior:
        - Clipped to the bounds of both surfaces.
        - Opaque source over opaque destination copies the source pixel.
        - Otherwise ``out_a = src_a + dst_a * (1 - src_a)``. Pixels whose
          ``out_a`` is below 0.01 are zeroed; the rest blend each channel as
          ``(src * src_a + dst * dst_a * (1 - src_a)) / out_a`` rounded to the
          nearest byte.
        - Surfaces without an alpha channel count as fully opaque.
        """
        int_src_left: int = max(0, -int_x)
        int_src_top: int = max(0, -int_y)
        int_src_right: int = min(surface_source.int_width, self.int_width - int_x)
        int_src_bottom: int = min(surface_source.int_height, self.int_height - int_y)
        if int_src_right <= int_src_left or int_src_bottom <= int_src_top:
            return self

        array_src: np.ndarray = surface_source.array_pixels[
            int_src_top:int_src_bottom, int_src_left:int_src_right
        ]
        array_dst: np.ndarray = self.array_pixels[
            int_src_top + int_y : int_src_bottom + int_y,
            int_src_left + int_x : int_src_right + int_x,
        ]

        tuple_region_shape: tuple[int, int] = array_dst.shape[:2]
        if surface_source.bool_has_alpha:
            array_src_alpha: np.ndarray = array_src[..., 3].astype(np.float64) / 255.0
        else:
            array_src_alpha = np.ones(tuple_region_shape, dtype=np.float64)
        if self.bool_has_alpha:
            array_dst_alpha: np.ndarray = array_dst[..., 3].astype(np.float64) / 255.0
        else:
            array_dst_alpha = np.ones(tuple_region_shape, dtype=np.float64)

        array_fast: np.ndarray = (array_src_alpha > 0.99) & (array_dst_alpha > 0.99)
        if array_fast.all():
            array_dst[..., :3] = array_src[..., :3]
            if self.bool_has_alpha:
                array_dst[..., 3] = (
                    array_src[..., 3] if surface_source.bool_has_alpha else 255
                )
            return self

        array_out_alpha: np.ndarray = array_src_alpha + array_dst_alpha * (
            1.0 - array_src_alpha
        )
        array_clear: np.ndarray = array_out_alpha < 0.01
        array_safe_alpha: np.ndarray = np.where(array_clear, 1.0, array_out_alpha)

        array_src_rgb: np.ndarray = array_src[..., :3].astype(np.float64) / 255.0
        array_dst_rgb: np.ndarray = array_dst[..., :3].astype(np.float64) / 255.0
        array_blend: np.ndarray = (
            array_src_rgb * array_src_alpha[..., np.newaxis]
            + array_dst_rgb
            * (array_dst_alpha * (1.0 - array_src_alpha))[..., np.newaxis]
        ) / array_safe_alpha[..., np.newaxis]
        array_blend_bytes: np.ndarray = np.clip(
            round_half_up(array_blend * 255.0), 0, 255
        ).astype(np.uint8)

        array_rgb_result: np.ndarray = np.where(
            array_fast[..., np.newaxis],
            array_src[..., :3],
            np.where(array_clear[..., np.newaxis], 0, array_blend_bytes),
        )

        if self.bool_has_alpha:
            array_fast_alpha: np.ndarray = (
                array_src[..., 3]
                if surface_source.bool_has_alpha
                else np.full(tuple_region_shape, 255, dtype=np.uint8)
            )
            array_blend_alpha: np.ndarray = np.clip(
                round_half_up(array_out_alpha * 255.0), 0, 255
            ).astype(np.uint8)
            array_alpha_result: np.ndarray = np.where(
                array_fast,
                array_fast_alpha,
                np.where(array_clear, 0, array_blend_alpha),
            )
            array_dst[..., 3] = array_alpha_result

        array_dst[..., :3] = array_rgb_result
        return self

    def rescale_luminance(self, float_low: float = 0.0, float_high: float = 1.0) -> PixelSurface:
        """Stretch the luminance range of this surface to ``[low, high]`` in place.

        Pixels darker than 0.01 luminance become black. Surfaces whose
        luminance spread is 0.01 or less are left untouched.
        """
        if self.int_channels < 3 or self.int_width == 0 or self.int_height == 0:
            return self

        array_rgb: np.ndarray = self.array_pixels[..., :3].astype(np.float64)
        array_luminance: np.ndarray = (
            array_rgb @ np.array(TUPLE_LUMINANCE_WEIGHTS, dtype=np.float64)
        ) / 255.0
        float_min: float = float(array_luminance.min())
        float_max: float = float(array_luminance.max())
        if float_max - float_min <= 0.01:
            logger_app.debug(
                "Skipping luminance rescale; luminance spread %.4f is too small.",
                float_max - float_min,
            )
            return self

        float_ratio: float = (float_high - float_low) / (float_max - float_min)
        array_target: np.ndarray = (array_luminance - float_min) * float_ratio
        array_dark: np.ndarray = array_luminance < 0.01
        array_gain: np.ndarray = np.where(
            array_dark, 0.0, array_target / np.where(array_dark, 1.0, array_luminance)
        )

        array_scaled: np.ndarray = np.floor(array_rgb * array_gain[..., np.newaxis])
        array_scaled += clamp_byte(255.0 * float_low)
        self.array_pixels[..., :3] = np.clip(array_scaled, 0, 255).astype(np.uint8)
        return self
