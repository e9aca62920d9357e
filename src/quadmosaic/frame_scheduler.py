"""Concurrent rendering of output frames against shared per-animation-frame engines.

Each animation frame gets a ``QuadtreeBuilder`` that builds its
``QuadtreeEngine`` on first use and tears it down once every output frame
scheduled against it has finished. ``FrameResourceScheduler`` assigns output
frames to builders and runs them on a thread pool.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import as_completed
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

from tqdm import tqdm

from .frame_sequence import FrameJob
from .image_codec import decode_surface
from .image_codec import encode_surface
from .pixel_surface import PixelSurface
from .quadtree_engine import QuadtreeEngine
from .quadtree_settings import DecompositionParameters
from .subdivision_policy import SubdivisionPolicy

logger_app = logging.getLogger(__name__)

EngineFactory = Callable[[str], QuadtreeEngine]


class BuilderState(enum.Enum):
    UNBUILT = "unbuilt"
    BUILDING = "building"
    READY = "ready"
    DRAINING = "draining"
    DESTROYED = "destroyed"


def load_engine(
    str_anim_path: str,
    obj_params: DecompositionParameters,
    obj_policy: SubdivisionPolicy,
    str_strategy: str = "merge",
) -> QuadtreeEngine:
    """Decode an animation frame and build its engine.

    The leaf template's luminance is stretched to the full range so dark
    animation frames still tint to the region colors.
    """
    surface_leaf: PixelSurface = decode_surface(str_anim_path).rescale_luminance()
    obj_engine: QuadtreeEngine = QuadtreeEngine(
        surface_leaf, obj_params, obj_policy, str_strategy=str_strategy
    )
    logger_app.debug(
        "Built engine for %s (%dx%d leaf).",
        str_anim_path,
        surface_leaf.int_width,
        surface_leaf.int_height,
    )
    return obj_engine


def fit_output_height(surface_frame: PixelSurface, int_out_height: int) -> PixelSurface:
    """Resize to ``int_out_height`` keeping aspect; both dimensions rounded up to even."""
    int_height: int = int_out_height + (int_out_height % 2)
    int_width: int = max(1, surface_frame.int_width * int_height // surface_frame.int_height)
    int_width += int_width % 2
    surface_result: PixelSurface = surface_frame.resize_to(int_width, int_height)
    return surface_result


class QuadtreeBuilder:
    """Lazily built, use-counted owner of one animation frame's engine.

    Constructor Input:
    - ``str_anim_path``: animation frame the engine is built from.
    - ``func_engine_factory``: callable building a ``QuadtreeEngine`` from a path.

    Output/Behavior:
    - ``schedule_use`` is called on the submitting thread once per output frame.
    - ``acquire`` builds the engine on first call (exactly once) and returns it.
    - ``release`` is called once per scheduled use, after the task is done.
    - After ``close`` and once every scheduled use is released, the engine is
      released exactly once. All state changes happen under one lock.
    """

    def __init__(self, str_anim_path: str, func_engine_factory: EngineFactory) -> None:
        self.str_anim_path: str = str_anim_path
        self._func_engine_factory: EngineFactory = func_engine_factory
        self._lock: threading.Lock = threading.Lock()
        self._obj_engine: QuadtreeEngine | None = None
        self.state: BuilderState = BuilderState.UNBUILT
        self.int_scheduled_uses: int = 0
        self.int_completed_uses: int = 0
        self.int_build_count: int = 0
        self.int_teardown_count: int = 0
        self.bool_closed: bool = False

    @property
    def int_outstanding_uses(self) -> int:
        with self._lock:
            return self.int_scheduled_uses - self.int_completed_uses

    def schedule_use(self) -> None:
        with self._lock:
            if self.bool_closed:
                raise RuntimeError(
                    f"Cannot schedule more uses of {self.str_anim_path}; scheduling is closed."
                )
            self.int_scheduled_uses += 1

    def acquire(self) -> QuadtreeEngine:
        """Return the engine, building it if this is the first use."""
        with self._lock:
            if self.state is BuilderState.DESTROYED:
                raise RuntimeError(f"Engine for {self.str_anim_path} was already torn down.")
            if self._obj_engine is None:
                self.state = BuilderState.BUILDING
                try:
                    self._obj_engine = self._func_engine_factory(self.str_anim_path)
                except Exception:
                    self.state = BuilderState.UNBUILT
                    raise
                self.int_build_count += 1
                self.state = BuilderState.DRAINING if self.bool_closed else BuilderState.READY
            return self._obj_engine

    def release(self) -> None:
        """Record one finished use and tear down when nothing else will use the engine."""
        with self._lock:
            if self.int_completed_uses >= self.int_scheduled_uses:
                raise RuntimeError(
                    f"release() without a matching schedule_use() for {self.str_anim_path}."
                )
            self.int_completed_uses += 1
            self._teardown_if_drained()

    def close(self) -> None:
        """Signal that no further uses will be scheduled."""
        with self._lock:
            if self.bool_closed:
                return
            self.bool_closed = True
            if self.state is BuilderState.READY:
                self.state = BuilderState.DRAINING
            self._teardown_if_drained()

    def _teardown_if_drained(self) -> None:
        # Caller holds self._lock.
        if not self.bool_closed or self.int_completed_uses < self.int_scheduled_uses:
            return
        if self.state is BuilderState.DESTROYED:
            return

        if self._obj_engine is not None:
            self._obj_engine.release()
            self._obj_engine = None
            self.int_teardown_count += 1
            logger_app.debug("Released engine for %s.", self.str_anim_path)
        self.state = BuilderState.DESTROYED


@dataclass
class RunReport:
    """Outcome of a batch: indices of frames written and frames that failed."""

    list_int_succeeded: list[int] = field(default_factory=list)
    list_int_failed: list[int] = field(default_factory=list)

    @property
    def int_total(self) -> int:
        return len(self.list_int_succeeded) + len(self.list_int_failed)


class FrameResourceScheduler:
    """Assign output frames to animation-frame engines and render them concurrently.

    Constructor Input:
    - ``list_str_anim_paths``: ordered animation frames, one builder each.
    - ``int_repeat``: consecutive output frames that reuse one animation frame.
    - ``func_engine_factory``: builds an engine from an animation frame path.
    - ``int_out_height``: optional output height applied after rendering.

    Output/Behavior:
    - Assignment is round-robin over the animation, holding each frame for
      ``int_repeat`` outputs, and is decided on the submitting thread.
    - Task failures are logged and reported; they never stop other frames.
    """

    def __init__(
        self,
        list_str_anim_paths: list[str],
        int_repeat: int,
        func_engine_factory: EngineFactory,
        int_out_height: int | None = None,
    ) -> None:
        if not list_str_anim_paths:
            raise ValueError("At least one animation frame is required.")
        if int_repeat < 1:
            raise ValueError(f"Repeat count must be >= 1, got {int_repeat}.")

        self.list_builders: list[QuadtreeBuilder] = [
            QuadtreeBuilder(str_anim_path, func_engine_factory)
            for str_anim_path in list_str_anim_paths
        ]
        self.int_repeat: int = int_repeat
        self.int_out_height: int | None = int_out_height
        self._int_frame_index: int = 0
        self._int_repeat_index: int = 0
        self.bool_scheduling_closed: bool = False

    def assign_builder(self) -> QuadtreeBuilder:
        """Return the builder for the next output frame."""
        if self._int_repeat_index >= self.int_repeat:
            self._int_repeat_index = 0
            self._int_frame_index += 1
        if self._int_frame_index >= len(self.list_builders):
            self._int_frame_index = 0
        self._int_repeat_index += 1
        return self.list_builders[self._int_frame_index]

    def submit_frame(self, obj_executor: ThreadPoolExecutor, obj_job: FrameJob) -> Future[bool]:
        """Schedule one use of the assigned builder, then submit the frame task."""
        obj_builder: QuadtreeBuilder = self.assign_builder()
        obj_builder.schedule_use()
        try:
            obj_future: Future[bool] = obj_executor.submit(
                self.render_frame, obj_builder, obj_job
            )
        except RuntimeError:
            # The task never runs, so its use has to be released here.
            obj_builder.release()
            raise
        return obj_future

    def close_scheduling(self) -> None:
        """Tell every builder that no more output frames will reference it."""
        self.bool_scheduling_closed = True
        for obj_builder in self.list_builders:
            obj_builder.close()

    def render_frame(self, obj_builder: QuadtreeBuilder, obj_job: FrameJob) -> bool:
        """Task body: decode, render, resize, encode. Returns ``False`` on failure."""
        try:
            surface_frame: PixelSurface = decode_surface(obj_job.path_input)
            obj_engine: QuadtreeEngine = obj_builder.acquire()
            surface_result: PixelSurface = obj_engine.process_frame(surface_frame)
            if self.int_out_height is not None:
                surface_result = fit_output_height(surface_result, self.int_out_height)
            encode_surface(surface_result, obj_job.path_output)
            logger_app.debug("Wrote frame %d to %s", obj_job.int_index, obj_job.path_output)
            return True
        except Exception as exc_error:
            logger_app.error(
                "Frame %d (%s) failed. Context: %s",
                obj_job.int_index,
                obj_job.path_input,
                exc_error,
            )
            return False
        finally:
            obj_builder.release()

    def run(
        self,
        list_jobs: list[FrameJob],
        int_workers: int,
        bool_show_progress: bool = True,
    ) -> RunReport:
        """Render every job on a pool of ``int_workers`` threads and wait for all."""
        obj_report: RunReport = RunReport()
        dict_future_index: dict[Future[bool], int] = {}

        with ThreadPoolExecutor(
            max_workers=int_workers, thread_name_prefix="quadmosaic"
        ) as obj_executor:
            try:
                for obj_job in list_jobs:
                    obj_future: Future[bool] = self.submit_frame(obj_executor, obj_job)
                    dict_future_index[obj_future] = obj_job.int_index
            finally:
                self.close_scheduling()

            logger_app.info("Processing %d frames...", len(dict_future_index))
            for obj_done in tqdm(
                as_completed(dict_future_index),
                total=len(dict_future_index),
                desc="Rendering frames",
                unit="frame",
                disable=not bool_show_progress,
            ):
                int_index: int = dict_future_index[obj_done]
                if obj_done.result():
                    obj_report.list_int_succeeded.append(int_index)
                else:
                    obj_report.list_int_failed.append(int_index)

        obj_report.list_int_succeeded.sort()
        obj_report.list_int_failed.sort()
        return obj_report


def collect_output_paths(list_jobs: list[FrameJob], obj_report: RunReport) -> list[Path]:
    """Return output paths of successfully written frames in index order."""
    set_int_succeeded: set[int] = set(obj_report.list_int_succeeded)
    list_path_outputs: list[Path] = [
        obj_job.path_output for obj_job in list_jobs if obj_job.int_index in set_int_succeeded
    ]
    return list_path_outputs
