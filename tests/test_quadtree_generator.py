"""CLI tests for the quadtree frame renderer."""

from __future__ import annotations

import importlib.metadata
from pathlib import Path
import sys

from PIL import Image
import pytest

from quadmosaic import quadtree_generator
from quadmosaic.frame_scheduler import RunReport
from quadmosaic.quadtree_settings import DecompositionParameters
from quadmosaic.quadtree_settings import RunSettings
from quadmosaic.subdivision_policy import MonochromePolicy

from conftest import build_leaf_array


def raise_package_not_found(str_name: str) -> str:
    """Raise package not found for version lookup."""
    raise importlib.metadata.PackageNotFoundError(str_name)


def build_project_tree(path_root: Path, int_input_frames: int = 4) -> None:
    """Lay out res/ animation frames and in/ input frames under ``path_root``."""
    path_anim_dir = path_root / "res"
    path_input_dir = path_root / "in"
    path_anim_dir.mkdir()
    path_input_dir.mkdir()
    for int_index in range(2):
        Image.fromarray(build_leaf_array()).save(path_anim_dir / f"{int_index}.png")
    for int_index in range(1, int_input_frames + 1):
        image_frame = Image.new("RGB", (20, 20), (int_index * 40, 90, 200))
        for int_x in range(10):
            for int_y in range(20):
                image_frame.putpixel((int_x, int_y), (10, 30, 80))
        image_frame.save(path_input_dir / f"img_{int_index}.png")


def test_get_version_returns_unknown_when_package_not_installed(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Validate version fallback behavior when package metadata is unavailable."""
    monkeypatch.setattr(
        quadtree_generator.importlib.metadata, "version", raise_package_not_found
    )
    assert quadtree_generator.get_version() == "unknown"


def test_build_parser_defaults_match_classic_options() -> None:
    """Defaults match the documented command-line options."""
    obj_args = quadtree_generator.build_parser().parse_args([])
    assert obj_args.anim == "res/{}.png"
    assert obj_args.input == "in/img_{}.png"
    assert obj_args.output == "out/img_{}.png"
    assert obj_args.repeat == 2
    assert obj_args.mode == "color"
    assert obj_args.similarity == 16
    assert obj_args.min_size == 8
    assert obj_args.out_resolution is None
    assert obj_args.anim_start == 0
    assert obj_args.input_start == 1


def test_build_parser_bare_out_resolution_defaults_to_480() -> None:
    """``-p`` without a value selects 480 lines."""
    obj_args = quadtree_generator.build_parser().parse_args(["-p"])
    assert obj_args.out_resolution == 480


def test_main_renders_every_input_frame(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """The CLI writes one resized output per input frame."""
    build_project_tree(tmp_path)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(
        sys,
        "argv",
        ["quadmosaic", "--min-size", "4", "-p", "9", "--workers", "2", "-b", "#123"],
    )

    quadtree_generator.main()

    list_path_outputs = sorted((tmp_path / "out").glob("img_*.png"))
    assert [path_output.name for path_output in list_path_outputs] == [
        "img_1.png",
        "img_2.png",
        "img_3.png",
        "img_4.png",
    ]
    with Image.open(list_path_outputs[0]) as image_output:
        assert image_output.size == (10, 10)


def test_main_unknown_mode_exits(monkeypatch: pytest.MonkeyPatch) -> None:
    """An unknown mode is a configuration error and exits with code 1."""
    monkeypatch.setattr(sys, "argv", ["quadmosaic", "--mode", "sepia"])
    with pytest.raises(SystemExit) as obj_exc_info:
        quadtree_generator.main()
    assert obj_exc_info.value.code == 1


def test_main_invalid_min_size_exits(monkeypatch: pytest.MonkeyPatch) -> None:
    """A non-positive minimum size exits with code 1."""
    monkeypatch.setattr(sys, "argv", ["quadmosaic", "--min-size", "0"])
    with pytest.raises(SystemExit) as obj_exc_info:
        quadtree_generator.main()
    assert obj_exc_info.value.code == 1


def test_main_without_animation_frames_exits(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Missing animation frames abort the run with code 1."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "argv", ["quadmosaic"])
    with pytest.raises(SystemExit) as obj_exc_info:
        quadtree_generator.main()
    assert obj_exc_info.value.code == 1


def test_render_sequence_exports_video_of_written_frames(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Video export receives only successfully written frames, in order."""
    build_project_tree(tmp_path, int_input_frames=3)
    list_recorded_calls: list[tuple[list[Path], str, int]] = []

    def record_video(list_path_frames: list[Path], str_output_path: str, int_fps: int = 30) -> None:
        list_recorded_calls.append((list_path_frames, str_output_path, int_fps))

    import quadmosaic.video_export as video_export_module

    monkeypatch.setattr(video_export_module, "write_video", record_video)
    obj_settings = RunSettings(
        str_anim_pattern=str(tmp_path / "res" / "{}.png"),
        str_input_pattern=str(tmp_path / "in" / "img_{}.png"),
        str_output_pattern=str(tmp_path / "out" / "img_{}.png"),
        int_workers=2,
        str_video_path=str(tmp_path / "preview.mp4"),
        int_fps=12,
    )

    obj_report: RunReport = quadtree_generator.render_sequence(
        obj_settings,
        DecompositionParameters(int_min_size=4),
        MonochromePolicy(16),
        bool_show_progress=False,
    )

    assert obj_report.list_int_succeeded == [1, 2, 3]
    assert len(list_recorded_calls) == 1
    list_path_frames, str_output_path, int_fps = list_recorded_calls[0]
    assert [path_frame.name for path_frame in list_path_frames] == [
        "img_1.png",
        "img_2.png",
        "img_3.png",
    ]
    assert str_output_path == str(tmp_path / "preview.mp4")
    assert int_fps == 12
