"""Device configuration loading and validation."""

from cutter_sim.configs.loader import (
    CanvasConfig,
    ConfigError,
    CurveConfig,
    DeviceConfig,
    MarkerConfig,
    OutputConfig,
    ResolutionConfig,
    ToolConfig,
    config_from_dict,
    load_config,
)

__all__ = [
    "CanvasConfig",
    "ConfigError",
    "CurveConfig",
    "DeviceConfig",
    "MarkerConfig",
    "OutputConfig",
    "ResolutionConfig",
    "ToolConfig",
    "config_from_dict",
    "load_config",
]
