"""Job runner -- replays Job IR operations against a device.

Dispatches each operation to the matching ``CutterDevice`` command and
keeps a tally of what happened.  Device commands report failure through
their return value, so the runner never raises for a rejected command;
it only raises ``TypeError`` for an operation type it does not know.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from cutter_sim.device.base import CutterDevice, DeviceError
from cutter_sim.job_ir.operations import (
    CurveTo,
    CutTo,
    MoveTo,
    Operation,
    SetToolWidth,
)

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    """Outcome of one ``JobRunner.run`` call."""

    total_ops: int = 0
    executed_ops: int = 0
    failed_ops: int = 0
    errors: list[tuple[int, DeviceError | None]] = field(default_factory=list)
    stopped_cleanly: bool | None = None  # None when autostop is off

    @property
    def ok(self) -> bool:
        return self.failed_ops == 0 and self.stopped_cleanly is not False


class JobRunner:
    """Replay operation lists on a device.

    Parameters
    ----------
    device : CutterDevice
        Target device.
    stop_on_error : bool
        Abort the remaining operations after the first rejected one.
    """

    def __init__(self, device: CutterDevice, stop_on_error: bool = False) -> None:
        self._device = device
        self._stop_on_error = stop_on_error

    @property
    def device(self) -> CutterDevice:
        return self._device

    def execute(self, op: Operation) -> bool:
        """Dispatch a single operation.  Returns the device result."""
        dev = self._device
        if isinstance(op, MoveTo):
            return dev.move_to(op.point)
        if isinstance(op, CutTo):
            return dev.cut_to(op.point)
        if isinstance(op, CurveTo):
            return dev.curve_to(op.p0, op.p1, op.p2, op.p3)
        if isinstance(op, SetToolWidth):
            return dev.set_tool_width(op.width)
        raise TypeError(f"Unsupported operation: {type(op).__name__}")

    def run(
        self,
        ops: Sequence[Operation],
        *,
        autostart: bool = True,
        autostop: bool = True,
    ) -> RunReport:
        """Execute *ops* in order.

        Parameters
        ----------
        ops : Sequence[Operation]
            Operations to replay.
        autostart : bool
            Call ``device.start()`` first.
        autostop : bool
            Call ``device.stop()`` afterwards (also after an early abort).

        Returns
        -------
        RunReport
        """
        report = RunReport(total_ops=len(ops))

        if autostart:
            self._device.start()

        logger.info("Running job: %d operations", len(ops))

        try:
            for idx, op in enumerate(ops):
                report.executed_ops += 1
                if self.execute(op):
                    continue

                error = self._device.last_error
                report.failed_ops += 1
                report.errors.append((idx, error))
                logger.warning(
                    "Operation %d (%s) rejected: %s",
                    idx, type(op).__name__, error.value if error else "unknown",
                )
                if self._stop_on_error:
                    logger.warning("Aborting job after operation %d", idx)
                    break
        finally:
            if autostop:
                report.stopped_cleanly = self._device.stop()

        logger.info(
            "Job finished: %d/%d executed, %d failed",
            report.executed_ops, report.total_ops, report.failed_ops,
        )
        return report
