"""Thread-safe cache of the leaf template resized to arbitrary cell sizes."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from .pixel_surface import PixelSurface

logger_app = logging.getLogger(__name__)


def pack_size_key(int_width: int, int_height: int) -> int:
    """Pack a ``(width, height)`` pair into one integer cache key."""
    int_key: int = (int_width << 32) | int_height
    return int_key


class SharedLock:
    """Reader/writer lock: many concurrent readers or one exclusive writer.

    Waiting writers block new readers so a steady stream of lookups cannot
    starve an insertion.
    """

    def __init__(self) -> None:
        self._condition: threading.Condition = threading.Condition(threading.Lock())
        self._int_active_readers: int = 0
        self._int_waiting_writers: int = 0
        self._bool_writer_active: bool = False

    def acquire_shared(self) -> None:
        with self._condition:
            while self._bool_writer_active or self._int_waiting_writers > 0:
                self._condition.wait()
            self._int_active_readers += 1

    def release_shared(self) -> None:
        with self._condition:
            self._int_active_readers -= 1
            if self._int_active_readers == 0:
                self._condition.notify_all()

    def acquire_exclusive(self) -> None:
        with self._condition:
            self._int_waiting_writers += 1
            try:
                while self._bool_writer_active or self._int_active_readers > 0:
                    self._condition.wait()
            finally:
                self._int_waiting_writers -= 1
            self._bool_writer_active = True

    def release_exclusive(self) -> None:
        with self._condition:
            self._bool_writer_active = False
            self._condition.notify_all()

    @contextmanager
    def shared(self) -> Iterator[None]:
        self.acquire_shared()
        try:
            yield
        finally:
            self.release_shared()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        self.acquire_exclusive()
        try:
            yield
        finally:
            self.release_exclusive()


class SpriteCache:
    """Memoize nearest-neighbour resizes of one template surface.

    Constructor Input:
    - ``surface_template``: leaf template every cached sprite is resized from.

    Output/Behavior:
    - ``get(w, h)`` returns the same ``PixelSurface`` object for equal sizes.
    - Lookups run under the shared side of a ``SharedLock``. A miss resizes
      outside the lock, then re-checks under the exclusive side and keeps
      whichever surface was inserted first.
    - Entries are never evicted; ``clear`` drops them all at engine teardown.
    - Returned surfaces are shared between threads and must not be mutated.
    """

    def __init__(self, surface_template: PixelSurface) -> None:
        self.surface_template: PixelSurface = surface_template
        self._lock: SharedLock = SharedLock()
        self._dict_sprites: dict[int, PixelSurface] = {}
        self.int_resize_count: int = 0

    def __len__(self) -> int:
        with self._lock.shared():
            return len(self._dict_sprites)

    def __contains__(self, tuple_size: tuple[int, int]) -> bool:
        int_key: int = pack_size_key(*tuple_size)
        with self._lock.shared():
            return int_key in self._dict_sprites

    def get(self, int_width: int, int_height: int) -> PixelSurface:
        """Return the template resized to ``int_width`` x ``int_height``."""
        if int_width <= 0 or int_height <= 0:
            raise ValueError(
                f"Sprite size must be positive, got {int_width}x{int_height}."
            )

        int_key: int = pack_size_key(int_width, int_height)
        with self._lock.shared():
            surface_cached: PixelSurface | None = self._dict_sprites.get(int_key)
        if surface_cached is not None:
            return surface_cached

        # Racing threads may both resize here; only the first insert is kept.
        surface_resized: PixelSurface = self.surface_template.resize_to(
            int_width, int_height
        )
        with self._lock.exclusive():
            surface_cached = self._dict_sprites.get(int_key)
            if surface_cached is None:
                self._dict_sprites[int_key] = surface_resized
                self.int_resize_count += 1
                surface_cached = surface_resized
                logger_app.debug(
                    "Cached leaf sprite %dx%d (%d sizes held).",
                    int_width,
                    int_height,
                    len(self._dict_sprites),
                )
        return surface_cached

    def clear(self) -> None:
        with self._lock.exclusive():
            self._dict_sprites.clear()
