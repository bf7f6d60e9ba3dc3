"""Tests for the OpenCV virtual cutter.

Validates:
    - Run/stop lifecycle and idempotent canvas allocation
    - Motion commands rejected (and side-effect free) while stopped
    - Coordinate transform, straight cuts, and curve subdivision
    - Tool width scaling and rejection of invalid widths
    - Snapshot overlay without mutating the device canvas
    - Persistence on stop, invalid targets, and persistence failures
    - Leak reporting on close
"""

from __future__ import annotations

import logging
from pathlib import Path

import cv2
import numpy as np
import pytest

from cutter_sim.configs.loader import (
    CurveConfig,
    DeviceConfig,
    ResolutionConfig,
)
from cutter_sim.device.base import CanvasNotAllocatedError, DeviceError
from cutter_sim.device.canvas import Allocated, Raster, Unallocated
from cutter_sim.device.cv_sim import CVSimDevice
from cutter_sim.geometry import Point


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def device():
    """Stopped device with no output target; canvas discarded on teardown."""
    dev = CVSimDevice("")
    yield dev
    dev.reset_canvas()


@pytest.fixture()
def running(device: CVSimDevice) -> CVSimDevice:
    assert device.start()
    return device


def _pixels(dev: CVSimDevice) -> np.ndarray:
    assert isinstance(dev.canvas, Allocated)
    return dev.canvas.raster.pixels


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_initial_state(self, device: CVSimDevice) -> None:
        assert not device.is_running
        assert device.current_position == Point(0.0, 0.0)
        assert device.tool_width_px == 1
        assert isinstance(device.canvas, Unallocated)
        assert device.last_error is None

    def test_start_allocates_blank_canvas(self, running: CVSimDevice) -> None:
        assert running.is_running
        px = _pixels(running)
        assert px.shape == (600, 600)
        assert px.dtype == np.uint8
        assert not px.any()

    def test_start_twice_keeps_canvas_and_position(self, running: CVSimDevice) -> None:
        running.move_to((0.0, 0.0))
        running.cut_to((1.0, 1.0))
        raster_before = running.canvas.raster
        drawn = _pixels(running).copy()

        assert running.start()

        assert running.canvas.raster is raster_before
        np.testing.assert_array_equal(_pixels(running), drawn)
        assert running.current_position == Point(100.0, 100.0)

    def test_stop_always_clears_running(self, running: CVSimDevice) -> None:
        assert running.stop()
        assert not running.is_running

    def test_stop_when_never_started(self, device: CVSimDevice) -> None:
        assert device.stop()
        assert isinstance(device.canvas, Unallocated)

    def test_get_dimensions(self, device: CVSimDevice) -> None:
        assert device.get_dimensions() == Point(6.0, 6.0)

    def test_get_dimensions_independent_of_canvas(self, running: CVSimDevice) -> None:
        running.stop()
        assert running.get_dimensions() == Point(6.0, 6.0)

    def test_session_context(self, tmp_path: Path) -> None:
        target = tmp_path / "session.png"
        dev = CVSimDevice(target)
        with dev.session():
            assert dev.is_running
            dev.cut_to((1.0, 1.0))
        assert not dev.is_running
        assert target.exists()

    def test_reset_canvas(self, running: CVSimDevice) -> None:
        running.cut_to((2.0, 2.0))
        running.reset_canvas()
        assert isinstance(running.canvas, Unallocated)
        running.start()
        assert not _pixels(running).any()


# ---------------------------------------------------------------------------
# Commands while stopped
# ---------------------------------------------------------------------------


class TestNotRunning:
    def test_move_rejected(self, device: CVSimDevice) -> None:
        assert device.move_to((1.0, 1.0)) is False
        assert device.last_error is DeviceError.NOT_RUNNING
        assert device.current_position == Point(0.0, 0.0)

    def test_cut_rejected(self, device: CVSimDevice) -> None:
        assert device.cut_to((1.0, 1.0)) is False
        assert device.last_error is DeviceError.NOT_RUNNING
        assert device.current_position == Point(0.0, 0.0)

    def test_curve_rejected(self, device: CVSimDevice) -> None:
        assert device.curve_to((1, 1), (2, 2), (3, 3), (4, 4)) is False
        assert device.last_error is DeviceError.NOT_RUNNING
        assert device.current_position == Point(0.0, 0.0)

    def test_rejected_after_stop_leaves_canvas(self, tmp_path: Path, monkeypatch) -> None:
        # A failed persist keeps the canvas allocated while stopped.
        def boom(self, target):
            raise RuntimeError("read-only")

        monkeypatch.setattr(Raster, "persist", boom)
        running = CVSimDevice(tmp_path / "keep.png")
        running.start()
        running.cut_to((1.0, 1.0))
        assert running.stop() is False
        before = _pixels(running).copy()
        pos = running.current_position

        assert not running.cut_to((5.0, 5.0))
        assert not running.curve_to((0, 0), (1, 5), (5, 1), (5, 5))

        np.testing.assert_array_equal(_pixels(running), before)
        assert running.current_position == pos
        running.reset_canvas()

    def test_success_clears_last_error(self, device: CVSimDevice) -> None:
        device.move_to((1.0, 1.0))
        device.start()
        assert device.move_to((1.0, 1.0))
        assert device.last_error is None


# ---------------------------------------------------------------------------
# Motion & cutting
# ---------------------------------------------------------------------------


class TestCutting:
    def test_move_does_not_draw(self, running: CVSimDevice) -> None:
        assert running.move_to((2.5, 1.0))
        assert running.current_position == Point(250.0, 100.0)
        assert not _pixels(running).any()

    def test_transform_uses_per_axis_scale(self) -> None:
        cfg = DeviceConfig(resolution=ResolutionConfig(dpi_x=50, dpi_y=200))
        dev = CVSimDevice("", cfg)
        assert dev.convert_to_internal((2.0, 3.0)) == Point(100.0, 600.0)

    def test_cut_diagonal(self, running: CVSimDevice) -> None:
        assert running.move_to((0.0, 0.0))
        assert running.cut_to((1.0, 1.0))
        assert running.current_position == Point(100.0, 100.0)

        px = _pixels(running)
        assert 0 < px[50, 50] <= 120
        assert px[10, 90] == 0
        assert px[300, 300] == 0
        assert px.max() <= 120

    def test_cut_without_canvas_tracks_position(self, running: CVSimDevice) -> None:
        running.reset_canvas()
        assert running.cut_to((1.0, 2.0))
        assert running.current_position == Point(100.0, 200.0)
        assert isinstance(running.canvas, Unallocated)

    def test_thickness_follows_tool_width(self, running: CVSimDevice) -> None:
        running.set_tool_width(0.2)  # 20 px
        running.move_to((1.0, 3.0))
        running.cut_to((5.0, 3.0))
        px = _pixels(running)
        assert px[300 - 8, 300] > 0
        assert px[300 + 8, 300] > 0
        assert px[300 - 20, 300] == 0

    def test_out_of_bounds_accepted(self, running: CVSimDevice) -> None:
        assert running.cut_to((10.0, -4.0))
        assert running.current_position == Point(1000.0, -400.0)

    def test_far_off_canvas_target_draws_visible_part(self, running: CVSimDevice) -> None:
        assert running.move_to((1.0, 3.0))
        assert running.cut_to((1e8, 3.0))
        assert running.current_position == Point(1e10, 300.0)

        px = _pixels(running)
        assert px[300, 100] > 0
        assert px[300, 599] > 0
        assert px[290, 300] == 0

    def test_cut_back_from_far_position(self, running: CVSimDevice) -> None:
        assert running.move_to((-1e9, -1e9))
        assert running.cut_to((3.0, 3.0))
        assert running.current_position == Point(300.0, 300.0)
        assert _pixels(running)[300, 300] > 0

    def test_curve_through_far_control_point(self, running: CVSimDevice) -> None:
        assert running.curve_to((1.0, 1.0), (1e9, 1.0), (1.0, 1e9), (5.0, 5.0))
        end = running.current_position
        assert end.x == pytest.approx(500.0)
        assert end.y == pytest.approx(500.0)

    def test_snapshot_with_far_position(self, running: CVSimDevice) -> None:
        assert running.move_to((1e8, -1e8))
        snap = running.snapshot()
        assert not snap.pixels.any()


class TestCurve:
    P = ((1.0, 1.0), (2.0, 4.0), (4.0, 0.0), (5.0, 3.0))

    def test_ends_at_last_control_point(self, running: CVSimDevice) -> None:
        assert running.curve_to(*self.P)
        end = running.current_position
        assert end.x == pytest.approx(500.0)
        assert end.y == pytest.approx(300.0)

    def test_one_move_then_twenty_cuts(self, running: CVSimDevice) -> None:
        moves: list[Point] = []
        cuts: list[Point] = []
        real_move, real_cut = running.move_to, running.cut_to

        def move(p):
            moves.append(p)
            return real_move(p)

        def cut(p):
            cuts.append(p)
            return real_cut(p)

        running.move_to = move  # type: ignore[method-assign]
        running.cut_to = cut  # type: ignore[method-assign]

        assert running.curve_to(*self.P)

        assert moves == [self.P[0]]
        assert len(cuts) == 20
        assert cuts[-1].x == pytest.approx(5.0)
        assert cuts[-1].y == pytest.approx(3.0)

    def test_segment_count_from_config(self) -> None:
        cfg = DeviceConfig(curve=CurveConfig(segments=5))
        dev = CVSimDevice("", cfg)
        count = 0
        real_cut = dev.cut_to

        def cut(p):
            nonlocal count
            count += 1
            return real_cut(p)

        dev.cut_to = cut  # type: ignore[method-assign]
        dev.start()
        dev.curve_to(*self.P)
        dev.reset_canvas()
        assert count == 5

    def test_curve_draws_from_first_control_point(self, running: CVSimDevice) -> None:
        running.move_to((5.5, 5.5))
        running.curve_to((1, 1), (1, 1), (2, 2), (2, 2))
        px = _pixels(running)
        assert px[150, 150] > 0
        # No stroke from the previous position to the curve start.
        assert px[400, 400] == 0

    def test_degenerate_curve_accepted(self, running: CVSimDevice) -> None:
        assert running.curve_to((2, 2), (2, 2), (2, 2), (2, 2))
        assert running.current_position == Point(200.0, 200.0)


# ---------------------------------------------------------------------------
# Tool width
# ---------------------------------------------------------------------------


class TestToolWidth:
    def test_half_inch_at_100_dpi(self, device: CVSimDevice) -> None:
        assert device.set_tool_width(0.5)
        assert device.tool_width_px == 50

    def test_rounds_half_up(self, device: CVSimDevice) -> None:
        assert device.set_tool_width(0.025)  # 2.5 px
        assert device.tool_width_px == 3

    def test_clamped_to_one(self, device: CVSimDevice) -> None:
        assert device.set_tool_width(0.001)
        assert device.tool_width_px == 1

    @pytest.mark.parametrize("width", [0.0, -0.5, float("nan"), float("inf")])
    def test_invalid_width_rejected(self, device: CVSimDevice, width: float) -> None:
        device.set_tool_width(0.1)
        assert device.set_tool_width(width) is False
        assert device.last_error is DeviceError.INVALID_TOOL_WIDTH
        assert device.tool_width_px == 10

    def test_geometric_mean_scale(self) -> None:
        cfg = DeviceConfig(resolution=ResolutionConfig(dpi_x=100, dpi_y=400))
        dev = CVSimDevice("", cfg)
        assert dev.set_tool_width(0.1)
        assert dev.tool_width_px == 20

    def test_allowed_while_stopped(self, device: CVSimDevice) -> None:
        assert not device.is_running
        assert device.set_tool_width(0.03)
        assert device.tool_width_px == 3


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


class TestSnapshot:
    def test_requires_canvas(self, device: CVSimDevice) -> None:
        with pytest.raises(CanvasNotAllocatedError):
            device.snapshot()

    def test_overlay_marker(self, running: CVSimDevice) -> None:
        running.move_to((3.0, 3.0))
        snap = running.snapshot()
        assert isinstance(snap, Raster)
        px = snap.pixels
        assert px[300, 300] == 250      # cross centre
        assert px[305, 305] == 250      # cross arm
        assert px[295, 305] == 250      # other arm
        assert px[300, 310] == 250      # circle
        assert px[300, 320] == 0

    def test_does_not_mutate_device(self, running: CVSimDevice) -> None:
        running.move_to((0.0, 0.0))
        running.cut_to((1.0, 1.0))
        before = _pixels(running).copy()
        pos = running.current_position

        snap = running.snapshot()
        snap.draw_line((0, 599), (599, 0), gray=255)

        np.testing.assert_array_equal(_pixels(running), before)
        assert running.current_position == pos
        assert running.is_running

    def test_unavailable_after_persisting_stop(self, tmp_path: Path) -> None:
        dev = CVSimDevice(tmp_path / "x.png")
        dev.start()
        dev.stop()
        with pytest.raises(CanvasNotAllocatedError):
            dev.snapshot()


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestPersistence:
    def test_stop_writes_image(self, tmp_path: Path) -> None:
        target = tmp_path / "out.png"
        dev = CVSimDevice(target)
        dev.start()
        dev.move_to((0.0, 0.0))
        dev.cut_to((1.0, 1.0))
        assert dev.stop()

        img = cv2.imread(str(target), cv2.IMREAD_UNCHANGED)
        assert img.shape == (600, 600)
        assert img.dtype == np.uint8
        assert img[50, 50] > 0
        assert isinstance(dev.canvas, Unallocated)

    def test_restart_after_stop_gives_fresh_canvas(self, tmp_path: Path) -> None:
        dev = CVSimDevice(tmp_path / "out.png")
        dev.start()
        dev.cut_to((1.0, 1.0))
        dev.stop()
        dev.start()
        assert not _pixels(dev).any()
        dev.reset_canvas()

    @pytest.mark.parametrize("target", ["", "a.pn"])
    def test_short_target_skips_persistence(
        self, tmp_path: Path, monkeypatch, target: str
    ) -> None:
        monkeypatch.chdir(tmp_path)
        dev = CVSimDevice(target)
        dev.start()
        dev.cut_to((1.0, 1.0))

        assert dev.stop() is True
        assert not dev.is_running
        assert isinstance(dev.canvas, Unallocated)
        assert list(tmp_path.iterdir()) == []

    def test_unsupported_suffix_skips_persistence(self, tmp_path: Path, caplog) -> None:
        target = tmp_path / "drawing.txt"
        dev = CVSimDevice(target)
        dev.start()
        with caplog.at_level(logging.WARNING, logger="cutter_sim.device.cv_sim"):
            assert dev.stop()
        assert not target.exists()
        assert "not a valid image filename" in caplog.text

    def test_persistence_failure_reported(self, tmp_path: Path, monkeypatch) -> None:
        def boom(self, target):
            raise RuntimeError("disk full")

        monkeypatch.setattr(Raster, "persist", boom)
        dev = CVSimDevice(tmp_path / "out.png")
        dev.start()
        dev.cut_to((1.0, 1.0))

        assert dev.stop() is False
        assert dev.last_error is DeviceError.PERSISTENCE_FAILED
        assert not dev.is_running
        # Canvas kept for a retry.
        assert isinstance(dev.canvas, Allocated)
        assert _pixels(dev).any()

        monkeypatch.undo()
        assert dev.stop() is True
        assert (tmp_path / "out.png").exists()

    def test_unwritable_target(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        dev = CVSimDevice(blocker / "out.png")
        dev.start()
        assert dev.stop() is False
        assert dev.last_error is DeviceError.PERSISTENCE_FAILED
        dev.reset_canvas()


# ---------------------------------------------------------------------------
# Leak reporting
# ---------------------------------------------------------------------------


class TestClose:
    def test_close_warns_on_unpersisted_canvas(self) -> None:
        dev = CVSimDevice("")
        dev.start()
        with pytest.warns(ResourceWarning, match="un-persisted canvas"):
            dev.close()
        assert isinstance(dev.canvas, Unallocated)
        assert not dev.is_running

    def test_close_after_stop_is_quiet(self, tmp_path: Path, recwarn) -> None:
        dev = CVSimDevice(tmp_path / "ok.png")
        dev.start()
        dev.stop()
        dev.close()
        assert not [w for w in recwarn if issubclass(w.category, ResourceWarning)]

    def test_context_manager_closes(self) -> None:
        with pytest.warns(ResourceWarning):
            with CVSimDevice("") as dev:
                dev.start()
        assert isinstance(dev.canvas, Unallocated)
