"""
Virtual Cutter Package.

Simulated xy plotting/cutting device.  Accepts motion and cutting
commands in logical (inch) coordinates, rasterizes every cut onto a
persistent OpenCV canvas, and writes the canvas to an image file when
the run stops.

Subpackages:
    device: Device interface, OpenCV simulator, raster canvas, job runner
    job_ir: Immutable operation vocabulary
    configs: Device configuration loading and validation
    utils: Filesystem and logging helpers
    scripts: Command-line entry points
"""

__version__ = "0.1.0"

__all__ = ["device", "job_ir", "configs", "utils", "geometry", "patterns"]
