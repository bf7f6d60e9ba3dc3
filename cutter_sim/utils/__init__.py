"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Atomic I/O and YAML loading (fs)
    - Command-line logging setup (logging_config)

No module in utils/ may import from upper layers (device, job_ir, etc.).

Convenience imports:
    from cutter_sim.utils import fs
    from cutter_sim.utils.logging_config import setup_logging
"""

from . import fs
from . import logging_config

from .logging_config import push_context, setup_logging

__all__ = [
    'fs',
    'logging_config',
    'setup_logging',
    'push_context',
]
