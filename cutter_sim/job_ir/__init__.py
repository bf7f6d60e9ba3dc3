"""Job intermediate representation: immutable device operations."""

from cutter_sim.job_ir.operations import (
    CurveTo,
    CutTo,
    Job,
    MoveTo,
    Operation,
    SetToolWidth,
    count_draw_segments,
    polyline,
)

__all__ = [
    "CurveTo",
    "CutTo",
    "Job",
    "MoveTo",
    "Operation",
    "SetToolWidth",
    "count_draw_segments",
    "polyline",
]
