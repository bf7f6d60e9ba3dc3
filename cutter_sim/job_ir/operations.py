"""Job IR operations -- the vocabulary between path planning and a device.

Every device command is an immutable, slotted dataclass carrying
**logical** coordinates (inches).  A job is a flat ``list[Operation]``
replayed in order by ``cutter_sim.device.job_runner.JobRunner``.

Operations validate their own arguments on construction (finite
coordinates, positive tool width) so malformed jobs fail before any
device state is touched.  Geometry beyond that (bounds, degenerate
curves) is accepted as-is.
"""

from __future__ import annotations

import math
from abc import ABC
from dataclasses import dataclass
from typing import Sequence

from cutter_sim.geometry import Point, PointLike, as_point

Job = list["Operation"]
"""A complete job is a flat sequence of operations."""


def _check_finite(name: str, *values: float) -> None:
    for v in values:
        if not math.isfinite(v):
            raise ValueError(f"{name} coordinates must be finite, got {v!r}")


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Operation(ABC):
    """Base class for all job operations."""

    pass


# ---------------------------------------------------------------------------
# Motion operations
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MoveTo(Operation):
    """Travel without cutting.

    Parameters
    ----------
    x, y : float
        Target position in logical units.
    """

    x: float
    y: float

    def __post_init__(self) -> None:
        _check_finite("MoveTo", self.x, self.y)

    @property
    def point(self) -> Point:
        return Point(self.x, self.y)


@dataclass(frozen=True, slots=True)
class CutTo(Operation):
    """Straight cut from the current position.

    Parameters
    ----------
    x, y : float
        End-point in logical units.
    """

    x: float
    y: float

    def __post_init__(self) -> None:
        _check_finite("CutTo", self.x, self.y)

    @property
    def point(self) -> Point:
        return Point(self.x, self.y)


@dataclass(frozen=True, slots=True)
class CurveTo(Operation):
    """Cubic Bézier cut.

    Parameters
    ----------
    p0, p1, p2, p3 : Point
        Control points in logical units.  The device travels to *p0*
        first, so the curve need not start at the current position.
    """

    p0: Point
    p1: Point
    p2: Point
    p3: Point

    def __post_init__(self) -> None:
        for name in ("p0", "p1", "p2", "p3"):
            pt = as_point(getattr(self, name))
            _check_finite("CurveTo", pt.x, pt.y)
            # Frozen: coerce (x, y) tuples to Point in place.
            object.__setattr__(self, name, pt)

    @property
    def points(self) -> tuple[Point, Point, Point, Point]:
        return (self.p0, self.p1, self.p2, self.p3)


# ---------------------------------------------------------------------------
# Tool operations
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SetToolWidth(Operation):
    """Change stroke thickness.

    Parameters
    ----------
    width : float
        Tool width in logical units.  Must be positive.
    """

    width: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.width) or self.width <= 0:
            raise ValueError(f"SetToolWidth width must be > 0, got {self.width!r}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def polyline(points: Sequence[PointLike]) -> list[Operation]:
    """Build ``[MoveTo(first), CutTo(second), ..., CutTo(last)]``.

    Raises
    ------
    ValueError
        If fewer than 2 points are given.
    """
    if len(points) < 2:
        raise ValueError("Polyline requires at least 2 points")

    pts = [as_point(p) for p in points]
    ops: list[Operation] = [MoveTo(x=pts[0].x, y=pts[0].y)]
    ops.extend(CutTo(x=p.x, y=p.y) for p in pts[1:])
    return ops


def count_draw_segments(ops: Sequence[Operation], curve_segments: int = 20) -> int:
    """Number of straight segments a job will rasterize."""
    total = 0
    for op in ops:
        if isinstance(op, CutTo):
            total += 1
        elif isinstance(op, CurveTo):
            total += curve_segments
    return total
