"""OpenCV-backed virtual cutter.

Simulates a plotting/cutting device by rasterizing every cut onto an
in-memory canvas, so path-planning code can be exercised and inspected
without hardware attached.

Lifecycle
---------
``Stopped`` (initial) → ``start()`` → ``Running`` → ``stop()`` → ``Stopped``.

``start`` allocates the canvas on first use; calling it again while
running keeps the existing canvas and tool position.  ``stop`` persists
the canvas to the output target (if the target is valid) and releases
it.  Motion commands issued while stopped return ``False`` and change
nothing.

Coordinates
-----------
Commands take logical units (inches).  The tool position is stored in
raster space (pixels), already multiplied by the configured resolution.

Threading
---------
Not thread-safe.  ``snapshot()`` returns an independent copy that can
be handed to a display thread while the owner keeps cutting.

Usage::

    from cutter_sim.device.cv_sim import CVSimDevice

    dev = CVSimDevice("out/cut.png")
    dev.start()
    dev.move_to((1.0, 1.0))
    dev.cut_to((2.0, 1.0))
    dev.curve_to((2, 1), (3, 1), (3, 2), (2, 2))
    preview = dev.snapshot()
    dev.stop()                    # writes out/cut.png
"""

from __future__ import annotations

import logging
import math
import warnings
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from cutter_sim.configs.loader import DeviceConfig
from cutter_sim.device.base import (
    CanvasNotAllocatedError,
    CutterDevice,
    DeviceError,
)
from cutter_sim.device.canvas import Allocated, CanvasSlot, Raster, Unallocated
from cutter_sim.geometry import (
    Point,
    PointLike,
    bezier_polyline,
    clip_segment,
    pixel,
    to_raster,
)

logger = logging.getLogger(__name__)


class CVSimDevice(CutterDevice):
    """Virtual cutter drawing onto an OpenCV raster.

    Parameters
    ----------
    output_target : str | Path
        Where ``stop()`` writes the canvas.  Only consulted on ``stop``;
        an invalid target (see ``OutputConfig``) skips persistence.
    config : DeviceConfig | None
        Device configuration.  ``None`` uses the built-in defaults
        (6 x 6 in at 100 dpi).
    """

    def __init__(
        self,
        output_target: str | Path = "",
        config: DeviceConfig | None = None,
    ) -> None:
        super().__init__()
        self._cfg = config if config is not None else DeviceConfig.default()
        self._output_target = output_target

        self._running = False
        self._canvas: CanvasSlot = Unallocated()
        self._position = Point(0.0, 0.0)
        self._tool_width_px = self._cfg.tool.default_width_px

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> DeviceConfig:
        return self._cfg

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def current_position(self) -> Point:
        """Tool position in raster space (pixels)."""
        return self._position

    @property
    def tool_width_px(self) -> int:
        return self._tool_width_px

    @property
    def canvas(self) -> CanvasSlot:
        """``Allocated(raster)`` or ``Unallocated()``."""
        return self._canvas

    @property
    def output_target(self) -> str | Path:
        return self._output_target

    def convert_to_internal(self, p: PointLike) -> Point:
        """Logical → raster coordinates."""
        r = self._cfg.resolution
        return to_raster(p, r.dpi_x, r.dpi_y)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Enter the running state, allocating a blank canvas if needed."""
        if isinstance(self._canvas, Unallocated):
            width, height = self._cfg.raster_size
            self._canvas = Allocated(Raster.blank(width, height))
            logger.info("Allocated %d x %d canvas", width, height)
        self._running = True
        logger.debug("Device started")
        return self._ok()

    def stop(self) -> bool:
        """Leave the running state, persisting and releasing the canvas.

        Returns
        -------
        bool
            ``False`` only if persistence was attempted and failed
            (``DeviceError.PERSISTENCE_FAILED``).  In that case the canvas
            stays allocated so a later ``stop`` can retry.
        """
        self._running = False

        if isinstance(self._canvas, Allocated):
            target = self._output_target
            if self._cfg.output.is_valid_target(target):
                try:
                    path = self._canvas.raster.persist(target)
                except (RuntimeError, OSError):
                    logger.error(
                        "Failed to persist canvas to %s; keeping canvas",
                        target, exc_info=True,
                    )
                    return self._fail(DeviceError.PERSISTENCE_FAILED)
                logger.info("Canvas persisted to %s", path)
            else:
                logger.warning(
                    "Output target %r is not a valid image filename; "
                    "discarding canvas", str(target),
                )
            self._canvas = Unallocated()

        logger.debug("Device stopped")
        return self._ok()

    def reset_canvas(self) -> None:
        """Discard the canvas; the next ``start`` allocates a fresh one."""
        if isinstance(self._canvas, Allocated):
            logger.info("Canvas reset")
        self._canvas = Unallocated()

    def close(self) -> None:
        """Decommission the device.

        An allocated canvas at this point was never persisted; it is
        reported as a leak (``ResourceWarning``) and released.
        """
        if isinstance(self._canvas, Allocated):
            logger.warning("Device closed with an un-persisted canvas")
            warnings.warn(
                f"{type(self).__name__} closed with an un-persisted canvas "
                f"(output target {str(self._output_target)!r})",
                ResourceWarning,
                stacklevel=2,
            )
        self._canvas = Unallocated()
        self._running = False

    def __enter__(self) -> CVSimDevice:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self) -> None:
        if isinstance(getattr(self, "_canvas", None), Allocated):
            warnings.warn(
                f"unclosed {type(self).__name__} with an un-persisted canvas",
                ResourceWarning,
                source=self,
            )

    @contextmanager
    def session(self) -> Iterator[CVSimDevice]:
        """``start()`` on entry, ``stop()`` on exit (even on error)."""
        self.start()
        try:
            yield self
        finally:
            self.stop()

    # ------------------------------------------------------------------
    # Motion
    # ------------------------------------------------------------------

    def move_to(self, p: PointLike) -> bool:
        """Travel to *p* without drawing."""
        if not self._running:
            logger.debug("move_to rejected: device not running")
            return self._fail(DeviceError.NOT_RUNNING)

        self._position = self.convert_to_internal(p)
        return self._ok()

    def cut_to(self, p: PointLike) -> bool:
        """Cut a straight line from the current position to *p*.

        The position is updated even when no canvas is allocated.  Targets
        off the canvas are accepted; only the visible part is drawn.
        """
        if not self._running:
            logger.debug("cut_to rejected: device not running")
            return self._fail(DeviceError.NOT_RUNNING)

        target = self.convert_to_internal(p)

        if isinstance(self._canvas, Allocated):
            raster = self._canvas.raster
            pad = float(self._tool_width_px + 1)
            visible = clip_segment(
                self._position,
                target,
                Point(-pad, -pad),
                Point(raster.width - 1 + pad, raster.height - 1 + pad),
            )
            if visible is not None:
                start, end = visible
                raster.draw_line(
                    pixel(start),
                    pixel(end),
                    gray=self._cfg.tool.cut_gray,
                    thickness=self._tool_width_px,
                    antialias=True,
                )

        self._position = target
        return self._ok()

    def curve_to(
        self,
        p0: PointLike,
        p1: PointLike,
        p2: PointLike,
        p3: PointLike,
    ) -> bool:
        """Cut a cubic Bézier as a fixed number of straight segments.

        Moves (without cutting) to *p0*, then cuts to each of
        ``config.curve.segments`` evenly spaced parameter steps, the last
        of which lands on *p3*.
        """
        if not self._running:
            logger.debug("curve_to rejected: device not running")
            return self._fail(DeviceError.NOT_RUNNING)

        points = bezier_polyline(p0, p1, p2, p3, segments=self._cfg.curve.segments)

        self.move_to(p0)
        for pt in points:
            self.cut_to(pt)

        return self._ok()

    # ------------------------------------------------------------------
    # Tool & geometry
    # ------------------------------------------------------------------

    def set_tool_width(self, width: float) -> bool:
        """Set the stroke thickness from a tool width in logical units.

        The width is scaled by the geometric mean of the two axis
        resolutions and rounded half-up, with a floor of 1 px.  Rejects
        non-positive or non-finite widths (``INVALID_TOOL_WIDTH``).
        """
        if not math.isfinite(width) or width <= 0:
            logger.debug("set_tool_width rejected: %r", width)
            return self._fail(DeviceError.INVALID_TOOL_WIDTH)

        width_px = int(abs(width) * self._cfg.resolution.mean_dpi + 0.5)
        self._tool_width_px = max(1, width_px)
        logger.debug("Tool width %.4g -> %d px", width, self._tool_width_px)
        return self._ok()

    def get_dimensions(self) -> Point:
        """Configured logical canvas size (independent of the live canvas)."""
        return Point(self._cfg.canvas.size_x, self._cfg.canvas.size_y)

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    def snapshot(self) -> Raster:
        """Copy of the canvas with the tool-position marker burned in.

        Leaves the device canvas untouched.

        Raises
        ------
        CanvasNotAllocatedError
            If no canvas exists (before ``start`` or after a persisted
            ``stop``).
        """
        if not isinstance(self._canvas, Allocated):
            raise CanvasNotAllocatedError("snapshot requires an allocated canvas; call start() first")

        m = self._cfg.marker
        image = self._canvas.raster.clone()
        h = m.cross_half_px

        # A marker further off-canvas than its own extent draws nothing.
        margin = float(max(m.radius_px + m.thickness_px, h + m.cross_thickness_px) + 1)
        x, y = pixel(Point(
            min(max(self._position.x, -margin), image.width + margin),
            min(max(self._position.y, -margin), image.height + margin),
        ))

        image.draw_circle((x, y), m.radius_px, m.gray, m.thickness_px)
        image.draw_line((x + h, y + h), (x - h, y - h), m.gray, m.cross_thickness_px, antialias=False)
        image.draw_line((x + h, y - h), (x - h, y + h), m.gray, m.cross_thickness_px, antialias=False)

        return image
