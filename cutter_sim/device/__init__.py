"""Device backends and the job runner that drives them."""

from cutter_sim.device.base import CanvasNotAllocatedError, CutterDevice, DeviceError
from cutter_sim.device.canvas import Allocated, Raster, Unallocated
from cutter_sim.device.cv_sim import CVSimDevice
from cutter_sim.device.job_runner import JobRunner, RunReport

__all__ = [
    "Allocated",
    "CVSimDevice",
    "CanvasNotAllocatedError",
    "CutterDevice",
    "DeviceError",
    "JobRunner",
    "Raster",
    "RunReport",
    "Unallocated",
]
