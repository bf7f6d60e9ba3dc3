"""Raster canvas and its drawing capability.

The simulated device never touches pixels itself; it goes through
``Raster``, a thin OpenCV-backed wrapper over a single-channel ``uint8``
buffer exposing exactly the primitives the device needs:

    draw_line, draw_circle, clone, zero_fill, encode, persist

Canvas ownership is explicit: a device holds either ``Unallocated()`` or
``Allocated(raster)``, never a bare ``None``.

Invariants:
    - Buffer shape is ``(height, width)``, dtype ``uint8``, C-contiguous
    - ``clone()`` never shares memory with the source
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import cv2
import numpy as np

from cutter_sim.utils import fs

logger = logging.getLogger(__name__)


class Raster:
    """Single-channel 8-bit image the device draws on.

    Parameters
    ----------
    pixels : np.ndarray
        ``(H, W)`` ``uint8`` buffer.  Taken by reference; use
        ``Raster.blank`` to allocate a fresh one.
    """

    def __init__(self, pixels: np.ndarray) -> None:
        if pixels.ndim != 2:
            raise ValueError(f"Raster must be single-channel (H, W), got {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise TypeError(f"Raster must be uint8, got {pixels.dtype}")
        self._pixels = np.ascontiguousarray(pixels)

    @classmethod
    def blank(cls, width: int, height: int) -> Raster:
        """Allocate a zero-filled (black) raster of ``width x height`` px."""
        return cls(np.zeros((height, width), dtype=np.uint8))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def pixels(self) -> np.ndarray:
        """Underlying buffer (live view, not a copy)."""
        return self._pixels

    @property
    def width(self) -> int:
        return self._pixels.shape[1]

    @property
    def height(self) -> int:
        return self._pixels.shape[0]

    @property
    def shape(self) -> tuple[int, int]:
        return self._pixels.shape

    def __array__(self, dtype=None, copy=None) -> np.ndarray:
        if dtype is not None:
            return self._pixels.astype(dtype)
        return self._pixels.copy() if copy else self._pixels

    # ------------------------------------------------------------------
    # Drawing primitives
    # ------------------------------------------------------------------

    def zero_fill(self) -> None:
        self._pixels.fill(0)

    def draw_line(
        self,
        start: tuple[int, int],
        end: tuple[int, int],
        gray: int,
        thickness: int = 1,
        antialias: bool = True,
    ) -> None:
        """Draw a straight line between two pixel coordinates."""
        cv2.line(
            self._pixels,
            start,
            end,
            int(gray),
            int(thickness),
            cv2.LINE_AA if antialias else cv2.LINE_8,
        )

    def draw_circle(
        self,
        center: tuple[int, int],
        radius: int,
        gray: int,
        thickness: int = 1,
    ) -> None:
        """Draw a circle outline centred on a pixel coordinate."""
        cv2.circle(self._pixels, center, int(radius), int(gray), int(thickness))

    def clone(self) -> Raster:
        """Deep copy; the result can be handed to another thread."""
        return Raster(self._pixels.copy())

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def encode(self, suffix: str = ".png") -> bytes:
        """Encode to an image file format chosen by *suffix* (e.g. ``.png``).

        Raises
        ------
        RuntimeError
            If OpenCV cannot encode the format.
        """
        try:
            ok, buf = cv2.imencode(suffix, self._pixels)
        except cv2.error as e:
            raise RuntimeError(f"Failed to encode raster as {suffix}: {e}") from e
        if not ok:
            raise RuntimeError(f"Failed to encode raster as {suffix}")
        return buf.tobytes()

    def persist(self, target: Union[str, Path]) -> Path:
        """Encode by file suffix and write atomically to *target*.

        Returns
        -------
        Path
            The written path.

        Raises
        ------
        RuntimeError
            If encoding or writing fails.
        """
        path = Path(target)
        data = self.encode(path.suffix or ".png")
        fs.atomic_write_bytes(path, data)
        logger.debug("Wrote %d bytes to %s", len(data), path)
        return path


# ---------------------------------------------------------------------------
# Canvas slot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Unallocated:
    """No canvas: before the first ``start`` or after a persisted ``stop``."""

    pass


@dataclass(frozen=True)
class Allocated:
    """Canvas in use by the current (or an un-persisted previous) run."""

    raster: Raster


CanvasSlot = Union[Unallocated, Allocated]
