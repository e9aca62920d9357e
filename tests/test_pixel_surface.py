"""Tests for pixel buffer resize, tint, fill and alpha compositing."""

from __future__ import annotations

import numpy as np
from PIL import Image
import pytest

from quadmosaic.pixel_surface import PixelSurface
from quadmosaic.pixel_surface import Rect
from quadmosaic.pixel_surface import RgbColor
from quadmosaic.pixel_surface import clamp_byte


def build_gradient_surface(int_width: int, int_height: int, int_channels: int = 3) -> PixelSurface:
    """Build a surface whose pixels encode their own coordinates."""
    array_pixels = np.zeros((int_height, int_width, int_channels), dtype=np.uint8)
    array_pixels[..., 0] = np.arange(int_width, dtype=np.uint8)[np.newaxis, :]
    array_pixels[..., 1] = np.arange(int_height, dtype=np.uint8)[:, np.newaxis]
    array_pixels[..., 2] = 7
    if int_channels == 4:
        array_pixels[..., 3] = 255
    return PixelSurface(int_width, int_height, int_channels, array_pixels)


def test_resize_to_is_deterministic_for_same_target() -> None:
    """Resizing twice to the same size yields byte-identical buffers."""
    surface_source = build_gradient_surface(13, 9)
    surface_first = surface_source.resize_to(31, 17)
    surface_second = surface_source.resize_to(31, 17)
    assert surface_first is not surface_second
    assert np.array_equal(surface_first.array_pixels, surface_second.array_pixels)


def test_resize_to_uses_floor_nearest_neighbour_sampling() -> None:
    """Every target pixel samples floor(x * src_w / w), floor(y * src_h / h)."""
    surface_source = build_gradient_surface(10, 6)
    surface_resized = surface_source.resize_to(4, 4)
    for int_y in range(4):
        for int_x in range(4):
            tuple_pixel = surface_resized.pixel(int_x, int_y)
            assert tuple_pixel[0] == (int_x * 10) // 4
            assert tuple_pixel[1] == (int_y * 6) // 4


@pytest.mark.parametrize("tuple_size", [(0, 4), (4, 0), (-1, 3)])
def test_resize_to_rejects_empty_targets(tuple_size: tuple[int, int]) -> None:
    """Zero or negative resize targets are rejected."""
    surface_source = build_gradient_surface(4, 4)
    with pytest.raises(ValueError):
        surface_source.resize_to(*tuple_size)


def test_tint_scales_color_channels_and_keeps_alpha() -> None:
    """Tint multiplies each color channel by channel / 255 and copies alpha."""
    array_pixels = np.full((2, 2, 4), 200, dtype=np.uint8)
    array_pixels[0, 0, 3] = 17
    surface_source = PixelSurface(2, 2, 4, array_pixels)

    surface_tinted = surface_source.tint(RgbColor(255, 128, 0))

    assert surface_tinted.pixel(0, 0) == (200, 200 * 128 // 255, 0, 17)
    assert surface_tinted.pixel(1, 1) == (200, 100, 0, 200)
    assert surface_source.pixel(1, 1) == (200, 200, 200, 200)


def test_fill_rect_clips_to_bounds_and_sets_opaque_alpha() -> None:
    """Only the visible part of the rect is painted, fully opaque."""
    surface_target = PixelSurface(4, 4, 4)
    surface_target.fill_rect(Rect(2, -1, 5, 2), RgbColor(9, 8, 7))

    assert surface_target.pixel(2, 0) == (9, 8, 7, 255)
    assert surface_target.pixel(3, 0) == (9, 8, 7, 255)
    assert surface_target.pixel(1, 0) == (0, 0, 0, 0)
    assert surface_target.pixel(2, 1) == (0, 0, 0, 0)


def test_composite_over_fully_clipped_source_is_noop() -> None:
    """A source placed entirely outside the destination changes nothing."""
    surface_target = build_gradient_surface(8, 8)
    array_before = surface_target.array_pixels.copy()
    surface_source = PixelSurface(3, 3, 3)

    surface_target.composite_over(surface_source, 8, 0)
    surface_target.composite_over(surface_source, -3, -3)
    surface_target.composite_over(PixelSurface(0, 0, 3), 2, 2)

    assert np.array_equal(surface_target.array_pixels, array_before)


def test_composite_over_transparent_source_is_noop() -> None:
    """A fully transparent source leaves an opaque destination unchanged."""
    surface_target = build_gradient_surface(6, 5)
    array_before = surface_target.array_pixels.copy()
    surface_source = PixelSurface(6, 5, 4, np.full((5, 6, 4), 0, dtype=np.uint8))
    surface_source.array_pixels[..., :3] = 250

    surface_target.composite_over(surface_source, 0, 0)

    assert np.array_equal(surface_target.array_pixels, array_before)


def test_composite_over_opaque_source_copies_clipped_region() -> None:
    """An opaque source is copied verbatim into the overlapping area."""
    surface_target = PixelSurface(4, 4, 3)
    surface_source = PixelSurface(3, 3, 3, np.full((3, 3, 3), 77, dtype=np.uint8))

    surface_target.composite_over(surface_source, 2, -1)

    assert surface_target.pixel(2, 0) == (77, 77, 77)
    assert surface_target.pixel(3, 1) == (77, 77, 77)
    assert surface_target.pixel(1, 0) == (0, 0, 0)
    assert surface_target.pixel(2, 2) == (0, 0, 0)


def test_composite_over_blends_semi_transparent_pixels() -> None:
    """Half-transparent source blends with round-to-nearest byte results."""
    surface_target = PixelSurface(1, 1, 3, np.array([[[0, 0, 200]]], dtype=np.uint8))
    surface_source = PixelSurface(1, 1, 4, np.array([[[200, 100, 0, 128]]], dtype=np.uint8))

    surface_target.composite_over(surface_source, 0, 0)

    assert surface_target.pixel(0, 0) == (100, 50, 100)


def test_composite_over_transparent_onto_transparent_zeroes_pixel() -> None:
    """When the combined alpha is ~0 the destination pixel is cleared."""
    surface_target = PixelSurface(1, 1, 4, np.array([[[50, 60, 70, 0]]], dtype=np.uint8))
    surface_source = PixelSurface(1, 1, 4, np.array([[[10, 20, 30, 0]]], dtype=np.uint8))

    surface_target.composite_over(surface_source, 0, 0)

    assert surface_target.pixel(0, 0) == (0, 0, 0, 0)


def test_composite_over_accumulates_alpha_on_rgba_destination() -> None:
    """Output alpha is src_a + dst_a * (1 - src_a), rounded to a byte."""
    surface_target = PixelSurface(1, 1, 4, np.array([[[0, 0, 0, 255]]], dtype=np.uint8))
    surface_target.array_pixels[0, 0, 3] = 102
    surface_source = PixelSurface(1, 1, 4, np.array([[[255, 255, 255, 102]]], dtype=np.uint8))

    surface_target.composite_over(surface_source, 0, 0)

    float_src_a = 102 / 255.0
    float_out_a = float_src_a + float_src_a * (1.0 - float_src_a)
    assert surface_target.pixel(0, 0)[3] == clamp_byte(float_out_a * 255.0)
    assert surface_target.pixel(0, 0)[0] == clamp_byte(float_src_a / float_out_a * 255.0)


def test_crop_copies_region_and_zero_pads_outside() -> None:
    """Crop returns the requested size; pixels beyond the source stay zero."""
    surface_source = build_gradient_surface(5, 5)
    surface_crop = surface_source.crop(Rect(3, 3, 4, 4))

    assert (surface_crop.int_width, surface_crop.int_height) == (4, 4)
    assert surface_crop.pixel(0, 0) == (3, 3, 7)
    assert surface_crop.pixel(1, 1) == (4, 4, 7)
    assert surface_crop.pixel(2, 2) == (0, 0, 0)


def test_rescale_luminance_stretches_to_full_range() -> None:
    """The brightest pixel reaches full luminance; black stays black."""
    array_pixels = np.array([[[0, 0, 0], [128, 128, 128]]], dtype=np.uint8)
    surface_source = PixelSurface(2, 1, 3, array_pixels)

    surface_source.rescale_luminance()

    assert surface_source.pixel(0, 0) == (0, 0, 0)
    assert all(int_value >= 254 for int_value in surface_source.pixel(1, 0))


def test_rescale_luminance_leaves_flat_surfaces_untouched() -> None:
    """A surface without luminance spread is not modified."""
    surface_source = PixelSurface(3, 3, 3, np.full((3, 3, 3), 90, dtype=np.uint8))
    surface_source.rescale_luminance()
    assert surface_source.pixel(1, 1) == (90, 90, 90)


def test_from_image_converts_grayscale_and_keeps_alpha() -> None:
    """Grayscale images become RGB; images with alpha stay RGBA."""
    surface_gray = PixelSurface.from_image(Image.new("L", (3, 2), 42))
    surface_rgba = PixelSurface.from_image(Image.new("LA", (3, 2), (42, 100)))

    assert surface_gray.int_channels == 3
    assert surface_gray.pixel(2, 1) == (42, 42, 42)
    assert surface_rgba.int_channels == 4
    assert surface_rgba.pixel(0, 0) == (42, 42, 42, 100)
    assert surface_rgba.to_image().mode == "RGBA"


def test_surface_rejects_unsupported_channel_counts() -> None:
    """Only RGB and RGBA buffers are supported."""
    with pytest.raises(ValueError):
        PixelSurface(2, 2, 1)
