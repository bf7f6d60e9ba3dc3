"""Configuration loader for the virtual cutter.

Loads and validates ``device.yaml`` into typed, frozen dataclasses.
Resolution, canvas size, stroke colours, curve subdivision and output
target rules all come from the config -- nothing is hardcoded in the
device.

Usage::

    from cutter_sim.configs.loader import load_config
    cfg = load_config()                      # default path
    cfg = load_config("/custom/device.yaml") # explicit path
    cfg = DeviceConfig.default()             # built-in defaults, no disk I/O
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from cutter_sim.utils.fs import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "device.yaml"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# ---------------------------------------------------------------------------
# Dataclasses -- mirror the YAML structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResolutionConfig:
    """Raster units per logical unit (dots per inch) on each axis."""

    dpi_x: float = 100.0
    dpi_y: float = 100.0

    @property
    def mean_dpi(self) -> float:
        """Geometric mean of the two axis resolutions."""
        return self.dpi_x * self.dpi_y / math.sqrt(self.dpi_x * self.dpi_y)


@dataclass(frozen=True)
class CanvasConfig:
    """Logical canvas size (inches)."""

    size_x: float = 6.0
    size_y: float = 6.0


@dataclass(frozen=True)
class ToolConfig:
    """Default stroke width and intensity."""

    default_width_px: int = 1
    cut_gray: int = 120


@dataclass(frozen=True)
class CurveConfig:
    """Fixed-step Bézier flattening."""

    segments: int = 20


@dataclass(frozen=True)
class MarkerConfig:
    """Tool-position overlay drawn on snapshots (circle plus an X)."""

    gray: int = 250
    radius_px: int = 10
    thickness_px: int = 2
    cross_half_px: int = 5
    cross_thickness_px: int = 1


@dataclass(frozen=True)
class OutputConfig:
    """Rules deciding whether an output target is worth persisting to.

    A target is valid when its string form is at least
    ``min_target_length`` characters long and, if ``allowed_suffixes`` is
    non-empty, its lower-cased suffix is one of them.
    """

    min_target_length: int = 5
    allowed_suffixes: tuple[str, ...] = (
        ".png", ".bmp", ".pgm", ".tif", ".tiff", ".jpg", ".jpeg",
    )

    def is_valid_target(self, target: str | Path | None) -> bool:
        """Return ``True`` if *target* looks like a real image filename."""
        if target is None:
            return False
        text = str(target)
        if len(text) < self.min_target_length:
            return False
        if self.allowed_suffixes:
            return Path(text).suffix.lower() in self.allowed_suffixes
        return True


@dataclass(frozen=True)
class DeviceConfig:
    """Top-level virtual device configuration."""

    resolution: ResolutionConfig = field(default_factory=ResolutionConfig)
    canvas: CanvasConfig = field(default_factory=CanvasConfig)
    tool: ToolConfig = field(default_factory=ToolConfig)
    curve: CurveConfig = field(default_factory=CurveConfig)
    marker: MarkerConfig = field(default_factory=MarkerConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def default(cls) -> DeviceConfig:
        """Built-in defaults: 6 x 6 in at 100 dpi, 20 segments per curve."""
        return cls()

    @property
    def raster_size(self) -> tuple[int, int]:
        """Canvas size in pixels as ``(width, height)``."""
        return (
            int(round(self.canvas.size_x * self.resolution.dpi_x)),
            int(round(self.canvas.size_y * self.resolution.dpi_y)),
        )


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    """Return a mapping section, empty if absent."""
    raw = data.get(name, {})
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(
            f"Section '{name}' must be a mapping, got {type(raw).__name__}"
        )
    return raw


def _parse_suffixes(raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str) or not isinstance(raw, (list, tuple)):
        raise ConfigError(
            f"output.allowed_suffixes must be a list, got {type(raw).__name__}"
        )
    suffixes = []
    for s in raw:
        s = str(s).lower()
        if not s.startswith("."):
            s = "." + s
        suffixes.append(s)
    return tuple(suffixes)


def _validate_config(cfg: DeviceConfig) -> None:
    """Cross-field validation.  Raises ``ConfigError`` on failure."""
    r = cfg.resolution
    c = cfg.canvas
    for name, value in (
        ("resolution.dpi_x", r.dpi_x),
        ("resolution.dpi_y", r.dpi_y),
        ("canvas.size_x", c.size_x),
        ("canvas.size_y", c.size_y),
    ):
        if not math.isfinite(value):
            raise ConfigError(f"{name} must be finite, got {value}")
    if not (math.isfinite(c.size_x * r.dpi_x) and math.isfinite(c.size_y * r.dpi_y)):
        raise ConfigError("Raster size overflows: canvas size x resolution is not finite")

    if r.dpi_x <= 0 or r.dpi_y <= 0:
        raise ConfigError(
            f"Resolution must be positive, got dpi_x={r.dpi_x}, dpi_y={r.dpi_y}"
        )

    if c.size_x <= 0 or c.size_y <= 0:
        raise ConfigError(
            f"Canvas size must be positive, got {c.size_x} x {c.size_y}"
        )

    if cfg.tool.default_width_px < 1:
        raise ConfigError(
            f"tool.default_width_px must be >= 1, got {cfg.tool.default_width_px}"
        )

    if cfg.curve.segments < 1:
        raise ConfigError(f"curve.segments must be >= 1, got {cfg.curve.segments}")

    for name, value in (
        ("tool.cut_gray", cfg.tool.cut_gray),
        ("marker.gray", cfg.marker.gray),
    ):
        if not 0 <= value <= 255:
            raise ConfigError(f"{name} must be in [0, 255], got {value}")

    m = cfg.marker
    for name, value in (
        ("marker.radius_px", m.radius_px),
        ("marker.thickness_px", m.thickness_px),
        ("marker.cross_half_px", m.cross_half_px),
        ("marker.cross_thickness_px", m.cross_thickness_px),
    ):
        if value < 1:
            raise ConfigError(f"{name} must be >= 1, got {value}")

    if cfg.output.min_target_length < 0:
        raise ConfigError(
            f"output.min_target_length must be >= 0, got {cfg.output.min_target_length}"
        )

    w, h = cfg.raster_size
    if w < 1 or h < 1:
        raise ConfigError(f"Raster size must be at least 1 x 1 px, got {w} x {h}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def config_from_dict(data: dict[str, Any]) -> DeviceConfig:
    """Build and validate a ``DeviceConfig`` from a parsed mapping.

    Missing sections and keys fall back to the built-in defaults.

    Raises
    ------
    ConfigError
        On wrong types or out-of-range values.
    """
    if not isinstance(data, dict):
        raise ConfigError(
            f"Configuration root must be a mapping, got {type(data).__name__}"
        )

    defaults = DeviceConfig.default()

    try:
        rd = _section(data, "resolution")
        resolution = ResolutionConfig(
            dpi_x=float(rd.get("dpi_x", defaults.resolution.dpi_x)),
            dpi_y=float(rd.get("dpi_y", defaults.resolution.dpi_y)),
        )

        cd = _section(data, "canvas")
        canvas = CanvasConfig(
            size_x=float(cd.get("size_x", defaults.canvas.size_x)),
            size_y=float(cd.get("size_y", defaults.canvas.size_y)),
        )

        td = _section(data, "tool")
        tool = ToolConfig(
            default_width_px=int(
                td.get("default_width_px", defaults.tool.default_width_px)
            ),
            cut_gray=int(td.get("cut_gray", defaults.tool.cut_gray)),
        )

        cvd = _section(data, "curve")
        curve = CurveConfig(
            segments=int(cvd.get("segments", defaults.curve.segments)),
        )

        md = _section(data, "marker")
        marker = MarkerConfig(
            gray=int(md.get("gray", defaults.marker.gray)),
            radius_px=int(md.get("radius_px", defaults.marker.radius_px)),
            thickness_px=int(md.get("thickness_px", defaults.marker.thickness_px)),
            cross_half_px=int(
                md.get("cross_half_px", defaults.marker.cross_half_px)
            ),
            cross_thickness_px=int(
                md.get("cross_thickness_px", defaults.marker.cross_thickness_px)
            ),
        )

        od = _section(data, "output")
        output = OutputConfig(
            min_target_length=int(
                od.get("min_target_length", defaults.output.min_target_length)
            ),
            allowed_suffixes=_parse_suffixes(
                od.get("allowed_suffixes", list(defaults.output.allowed_suffixes))
            ),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid configuration value: {exc}") from exc

    cfg = DeviceConfig(
        resolution=resolution,
        canvas=canvas,
        tool=tool,
        curve=curve,
        marker=marker,
        output=output,
    )
    _validate_config(cfg)
    return cfg


def load_config(path: str | Path | None = None) -> DeviceConfig:
    """Load and validate device configuration from YAML.

    Parameters
    ----------
    path : str | Path | None
        Path to ``device.yaml``.  ``None`` loads the default shipped
        alongside this module.

    Returns
    -------
    DeviceConfig
        Fully validated, frozen configuration object.

    Raises
    ------
    ConfigError
        If any field fails validation, the file is empty or is not valid
        YAML.
    FileNotFoundError
        If *path* does not exist.
    """
    path = DEFAULT_CONFIG_PATH if path is None else Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.info("Loading configuration from %s", path)

    try:
        data = load_yaml(path)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Malformed configuration file: {exc}") from exc
    if data is None:
        raise ConfigError(f"Empty configuration file: {path}")

    cfg = config_from_dict(data)
    w, h = cfg.raster_size
    logger.info(
        "Configuration loaded: canvas %.3g x %.3g in, %g x %g dpi (%d x %d px)",
        cfg.canvas.size_x, cfg.canvas.size_y,
        cfg.resolution.dpi_x, cfg.resolution.dpi_y, w, h,
    )
    return cfg
