"""Abstract cutter device interface.

Every device backend (the OpenCV simulator here, a serial-attached
cutter elsewhere) exposes the same boolean-result command set so that
path-planning code can drive any of them interchangeably.

Commands take points in **logical** units (inches).  A ``False`` return
means the command was rejected; the reason is available afterwards as
``device.last_error``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum

from cutter_sim.geometry import Point, PointLike

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class DeviceError(Enum):
    """Why the most recent device command returned ``False``."""

    NOT_RUNNING = "not_running"
    INVALID_TOOL_WIDTH = "invalid_tool_width"
    PERSISTENCE_FAILED = "persistence_failed"


class CanvasNotAllocatedError(RuntimeError):
    """Raised when a snapshot is requested before any canvas exists."""

    pass


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class CutterDevice(ABC):
    """Base class for all cutter devices."""

    def __init__(self) -> None:
        self.last_error: DeviceError | None = None

    def _fail(self, error: DeviceError) -> bool:
        self.last_error = error
        return False

    def _ok(self) -> bool:
        self.last_error = None
        return True

    @abstractmethod
    def start(self) -> bool:
        """Prepare the device for motion commands."""

    @abstractmethod
    def stop(self) -> bool:
        """Finish the current run."""

    @abstractmethod
    def move_to(self, p: PointLike) -> bool:
        """Travel to *p* without cutting."""

    @abstractmethod
    def cut_to(self, p: PointLike) -> bool:
        """Cut a straight line from the current position to *p*."""

    @abstractmethod
    def curve_to(
        self,
        p0: PointLike,
        p1: PointLike,
        p2: PointLike,
        p3: PointLike,
    ) -> bool:
        """Cut a cubic Bézier with control points *p0* .. *p3*."""

    @abstractmethod
    def set_tool_width(self, width: float) -> bool:
        """Set the tool width in logical units."""

    @abstractmethod
    def get_dimensions(self) -> Point:
        """Usable area in logical units as ``Point(width, height)``."""
