"""Test pattern generators.

Each function returns a flat ``list[Operation]`` ready for
``JobRunner.run``.  All dimensions are in **logical units** (inches) on
the default 6 x 6 in canvas.

Common parameter:

    origin / center : tuple[float, float]
        Anchor of the pattern on the canvas.  Defaults centre the pattern
        on the default canvas.
"""

from __future__ import annotations

from cutter_sim.job_ir.operations import (
    CurveTo,
    MoveTo,
    Operation,
    SetToolWidth,
    polyline,
)

# Control-point distance for a quarter circle from cubic Béziers.
KAPPA = 0.5523

_CX = 3.0
_CY = 3.0


def square(
    size: float = 2.0,
    origin: tuple[float, float] = (_CX - 1.0, _CY - 1.0),
) -> list[Operation]:
    """Closed square -- verify axis scaling."""
    x0, y0 = origin
    return polyline([
        (x0, y0),
        (x0 + size, y0),
        (x0 + size, y0 + size),
        (x0, y0 + size),
        (x0, y0),
    ])


def cross(
    arm: float = 1.0,
    center: tuple[float, float] = (_CX, _CY),
) -> list[Operation]:
    """Plus sign made of two strokes -- verify straight cuts."""
    cx, cy = center
    return (
        polyline([(cx - arm, cy), (cx + arm, cy)])
        + polyline([(cx, cy - arm), (cx, cy + arm)])
    )


def circle(
    radius: float = 1.0,
    center: tuple[float, float] = (_CX, _CY),
) -> list[Operation]:
    """Circle from four cubic Béziers -- verify curve subdivision.

    Quadrants run counter-clockwise from the +X axis; each curve starts
    where the previous one ended.
    """
    cx, cy = center
    k = KAPPA * radius
    r = radius
    return [
        MoveTo(x=cx + r, y=cy),
        CurveTo((cx + r, cy), (cx + r, cy + k), (cx + k, cy + r), (cx, cy + r)),
        CurveTo((cx, cy + r), (cx - k, cy + r), (cx - r, cy + k), (cx - r, cy)),
        CurveTo((cx - r, cy), (cx - r, cy - k), (cx - k, cy - r), (cx, cy - r)),
        CurveTo((cx, cy - r), (cx + k, cy - r), (cx + r, cy - k), (cx + r, cy)),
    ]


def wave(
    length: float = 4.0,
    amplitude: float = 0.5,
    periods: int = 2,
    origin: tuple[float, float] = (_CX - 2.0, _CY),
) -> list[Operation]:
    """Chained S-curves along +X -- verify curve continuity."""
    if periods < 1:
        raise ValueError(f"periods must be >= 1, got {periods}")

    x0, y0 = origin
    step = length / periods
    ops: list[Operation] = []
    for i in range(periods):
        xa = x0 + i * step
        xb = xa + step
        ops.append(CurveTo(
            (xa, y0),
            (xa + step / 3.0, y0 - 2.0 * amplitude),
            (xa + 2.0 * step / 3.0, y0 + 2.0 * amplitude),
            (xb, y0),
        ))
    return ops


def test_card(tool_width: float | None = None) -> list[Operation]:
    """All basic patterns on one canvas (border, cross, circle, wave)."""
    ops: list[Operation] = []
    if tool_width is not None:
        ops.append(SetToolWidth(width=tool_width))
    ops += square(size=5.0, origin=(0.5, 0.5))
    ops += cross(arm=0.5, center=(1.5, 1.5))
    ops += circle(radius=0.75, center=(4.25, 1.75))
    ops += wave(length=4.0, amplitude=0.4, periods=2, origin=(1.0, 4.25))
    return ops


# Prevent pytest from collecting ``test_card`` when this module is imported
# into a test namespace.
test_card.__test__ = False  # type: ignore[attr-defined]


PATTERN_MAP = {
    "square": square,
    "cross": cross,
    "circle": circle,
    "wave": wave,
    "test-card": test_card,
}
