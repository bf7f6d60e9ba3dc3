"""Planar geometry for the virtual cutter.

Provides:
    - ``Point``: immutable (x, y) value type
    - Logical ↔ raster coordinate conversion (independent per-axis scale)
    - Segment clipping to a pixel box before handing coordinates to OpenCV
    - Cubic Bézier polynomial coefficients, evaluation, and fixed-step
      flattening to a polyline

Two coordinate spaces are in play:

Logical
    Caller-facing units (inches).  Every command accepted by the device
    is expressed here.

Raster
    Pixel coordinates of the canvas, obtained by multiplying each axis by
    its resolution (dots per inch).  The device stores its tool position
    in this space.

Flattening is deliberately fixed-step (no curvature or chord-error
adaptivity): a curve always produces the same number of segments.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Sequence, Union

# ---------------------------------------------------------------------------
# Point
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Point:
    """Immutable 2-D coordinate pair.

    Used for both logical and raster coordinates; the space is implied by
    where the value is used, never stored on the point itself.
    """

    x: float
    y: float

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y


PointLike = Union[Point, Sequence[float]]
"""Anything accepted where a point is expected: ``Point`` or ``(x, y)``."""


def as_point(p: PointLike) -> Point:
    """Coerce a ``Point`` or ``(x, y)`` pair into a ``Point``."""
    if isinstance(p, Point):
        return p
    if len(p) != 2:
        raise ValueError(f"Point requires exactly 2 coordinates, got {len(p)}")
    return Point(float(p[0]), float(p[1]))


# ---------------------------------------------------------------------------
# Coordinate transform
# ---------------------------------------------------------------------------


def to_raster(p: PointLike, dpi_x: float, dpi_y: float) -> Point:
    """Convert a logical point to raster space.

    Parameters
    ----------
    p : PointLike
        Point in logical units (inches).
    dpi_x, dpi_y : float
        Raster units per logical unit on each axis.

    Returns
    -------
    Point
        ``(p.x * dpi_x, p.y * dpi_y)``
    """
    p = as_point(p)
    return Point(p.x * dpi_x, p.y * dpi_y)


def to_logical(p: PointLike, dpi_x: float, dpi_y: float) -> Point:
    """Inverse of ``to_raster``."""
    p = as_point(p)
    return Point(p.x / dpi_x, p.y / dpi_y)


def pixel(p: Point) -> tuple[int, int]:
    """Integer pixel coordinates for a drawing primitive (truncates toward 0)."""
    return int(p.x), int(p.y)


def clip_segment(
    a: Point,
    b: Point,
    lo: Point,
    hi: Point,
) -> tuple[Point, Point] | None:
    """Clip segment *a*-*b* to the axis-aligned box ``[lo, hi]``.

    Liang-Barsky in float space, so arbitrarily distant endpoints are
    reduced to coordinates a drawing primitive can take.  The part of the
    segment inside the box is unchanged.

    Returns
    -------
    tuple[Point, Point] | None
        Clipped endpoints, or ``None`` when the segment misses the box or
        an endpoint is not finite.
    """
    if not all(math.isfinite(v) for v in (a.x, a.y, b.x, b.y)):
        return None

    dx = b.x - a.x
    dy = b.y - a.y
    t0, t1 = 0.0, 1.0
    for p, q in (
        (-dx, a.x - lo.x),
        (dx, hi.x - a.x),
        (-dy, a.y - lo.y),
        (dy, hi.y - a.y),
    ):
        if p == 0.0:
            if q < 0.0:
                return None
            continue
        t = q / p
        if p < 0.0:
            if t > t1:
                return None
            t0 = max(t0, t)
        else:
            if t < t0:
                return None
            t1 = min(t1, t)

    start = a if t0 == 0.0 else Point(a.x + t0 * dx, a.y + t0 * dy)
    end = b if t1 == 1.0 else Point(a.x + t1 * dx, a.y + t1 * dy)
    return start, end


# ---------------------------------------------------------------------------
# Cubic Bézier
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CubicCoefficients:
    """Power-basis form of a cubic Bézier on one axis.

    ``f(t) = a*t**3 + b*t**2 + c*t + d`` with ``d`` the start coordinate.
    """

    a: float
    b: float
    c: float
    d: float

    def __call__(self, t: float) -> float:
        return self.a * t * t * t + self.b * t * t + self.c * t + self.d


def bezier_coefficients(
    p0: PointLike,
    p1: PointLike,
    p2: PointLike,
    p3: PointLike,
) -> tuple[CubicCoefficients, CubicCoefficients]:
    """Expand four control points into per-axis polynomial coefficients.

    For each axis ``c = 3(p1 - p0)``, ``b = 3(p2 - p1) - c`` and
    ``a = (p3 - p0) - c - b``.

    Returns
    -------
    tuple[CubicCoefficients, CubicCoefficients]
        ``(x_coefficients, y_coefficients)``
    """
    p0, p1, p2, p3 = (as_point(p) for p in (p0, p1, p2, p3))

    def axis(v0: float, v1: float, v2: float, v3: float) -> CubicCoefficients:
        c = 3.0 * (v1 - v0)
        b = 3.0 * (v2 - v1) - c
        a = (v3 - v0) - c - b
        return CubicCoefficients(a=a, b=b, c=c, d=v0)

    return (
        axis(p0.x, p1.x, p2.x, p3.x),
        axis(p0.y, p1.y, p2.y, p3.y),
    )


def bezier_point(
    coeffs: tuple[CubicCoefficients, CubicCoefficients],
    t: float,
) -> Point:
    """Evaluate a curve (as returned by ``bezier_coefficients``) at *t*."""
    cx, cy = coeffs
    return Point(cx(t), cy(t))


def bezier_polyline(
    p0: PointLike,
    p1: PointLike,
    p2: PointLike,
    p3: PointLike,
    segments: int = 20,
) -> list[Point]:
    """Flatten a cubic Bézier into ``segments`` equal parameter steps.

    Parameters
    ----------
    p0, p1, p2, p3 : PointLike
        Control points; the curve starts at *p0* and ends at *p3*.
    segments : int
        Number of line segments, default 20.

    Returns
    -------
    list[Point]
        ``segments`` points at ``t = i / segments`` for ``i = 1..segments``.
        The start point *p0* is **not** included: callers move there first
        and cut to each returned point in order.  The last point equals
        *p3* up to floating-point rounding.
    """
    if segments < 1:
        raise ValueError(f"segments must be >= 1, got {segments}")

    coeffs = bezier_coefficients(p0, p1, p2, p3)
    return [
        bezier_point(coeffs, i / segments)
        for i in range(1, segments + 1)
    ]
