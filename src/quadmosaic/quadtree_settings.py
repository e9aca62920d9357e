"""Run configuration and per-engine decomposition parameters.

This module keeps validation of user-supplied settings in one place so that
configuration mistakes surface before any frame is decoded.
"""

from __future__ import annotations

import os
import string
from dataclasses import dataclass

from .pixel_surface import RgbColor

LIST_STR_STRATEGIES: list[str] = ["merge", "top_down"]


class ConfigurationError(ValueError):
    """Invalid run configuration; fatal before processing starts."""


def parse_hex_color(str_color: str) -> RgbColor:
    """Parse ``#rgb``/``#rrggbb`` (leading ``#`` optional) into ``RgbColor``.

    Short form scales each digit by 16, so ``#fff`` is ``(240, 240, 240)``.
    An empty string is black.
    """
    str_digits: str = str_color.strip()
    if str_digits.startswith("#"):
        str_digits = str_digits[1:]
    if not str_digits:
        return RgbColor(0, 0, 0)

    if any(str_char not in string.hexdigits for str_char in str_digits):
        raise ConfigurationError(f"Invalid hex color: '{str_color}'")

    if len(str_digits) == 3:
        list_int_channels: list[int] = [int(str_char, 16) * 16 for str_char in str_digits]
    elif len(str_digits) == 6:
        list_int_channels = [
            int(str_digits[int_index : int_index + 2], 16) for int_index in (0, 2, 4)
        ]
    else:
        raise ConfigurationError(
            f"Hex color must have 3 or 6 digits, got '{str_color}'."
        )

    color_result: RgbColor = RgbColor(*list_int_channels)
    return color_result


@dataclass(frozen=True)
class DecompositionParameters:
    """Per-engine decomposition settings.

    Inputs:
    - ``int_min_size``: smallest leaf edge; regions at or under it stop splitting.
    - ``color_background``: opaque fill painted under every leaf sprite.
    """

    int_min_size: int = 8
    color_background: RgbColor = RgbColor(0, 0, 0)

    def __post_init__(self) -> None:
        if self.int_min_size < 1:
            raise ConfigurationError(
                f"Minimum leaf size must be >= 1, got {self.int_min_size}."
            )


@dataclass
class RunSettings:
    """Validated settings for one batch run.

    Inputs:
    - ``str_anim_pattern``/``str_input_pattern``/``str_output_pattern``:
      ``str.format`` patterns taking the frame index.
    - ``int_repeat``: output frames each animation frame is held for.
    - ``int_anim_start``/``int_input_start``: first indices to probe.
    - ``int_out_height``: optional output height; frames are resized to an
      even height and aspect-preserving even width.
    - ``int_workers``: worker thread count.
    - ``str_strategy``: ``merge`` (bottom-up) or ``top_down``.
    - ``str_video_path``/``int_fps``: optional MP4 assembled from the outputs.
    """

    str_anim_pattern: str = "res/{}.png"
    str_input_pattern: str = "in/img_{}.png"
    str_output_pattern: str = "out/img_{}.png"
    int_repeat: int = 2
    int_anim_start: int = 0
    int_input_start: int = 1
    int_out_height: int | None = None
    int_workers: int = os.cpu_count() or 1
    str_strategy: str = "merge"
    str_video_path: str | None = None
    int_fps: int = 30

    def __post_init__(self) -> None:
        """Reject settings that would make the run meaningless."""
        for str_field_name in ("str_anim_pattern", "str_input_pattern", "str_output_pattern"):
            str_value: str = getattr(self, str_field_name).strip()
            if not str_value:
                raise ConfigurationError(f"{str_field_name} cannot be empty.")
            setattr(self, str_field_name, str_value)

        if self.int_repeat < 1:
            raise ConfigurationError(f"Repeat count must be >= 1, got {self.int_repeat}.")
        if self.int_workers < 1:
            raise ConfigurationError(f"Worker count must be >= 1, got {self.int_workers}.")
        if self.int_out_height is not None and self.int_out_height < 2:
            raise ConfigurationError(
                f"Output resolution must be >= 2, got {self.int_out_height}."
            )
        if self.int_fps < 1:
            raise ConfigurationError(f"FPS must be >= 1, got {self.int_fps}.")

        str_strategy: str = self.str_strategy.strip().lower()
        if str_strategy not in LIST_STR_STRATEGIES:
            raise ConfigurationError(
                f"Unknown strategy '{self.str_strategy}'; expected one of {LIST_STR_STRATEGIES}."
            )
        self.str_strategy = str_strategy
