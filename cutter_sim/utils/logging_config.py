"""Root logging setup for the simulator command line.

Installs one stderr handler on the root logger.  Records are rendered
either as a readable line or as a JSON object, and both carry the fields
pushed with ``push_context`` (e.g. ``app``, ``pattern``).  Python warnings,
including the device's leaked-canvas ``ResourceWarning``, are routed into
the same stream.

Public API:
    setup_logging(log_level="INFO", context={"app": "run_sim"})
    push_context(pattern="square")
    pop_context(keys=["pattern"])
    install_excepthook()

Line formats:
    Human: 2026-10-19T13:45:12.345Z | INFO     | app=run_sim | Canvas persisted
    JSON: {"t":"2026-10-19T13:45:12.345+00:00","lvl":"INFO","app":"run_sim","msg":"..."}

Calling ``setup_logging`` again replaces the handler it installed earlier
and leaves handlers owned by the host application alone.
"""

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    'cutter_sim_log_context', default={}
)

_installed_handlers: List[logging.Handler] = []

_LEVEL_COLORS = {
    'DEBUG': '\033[36m',
    'INFO': '\033[32m',
    'WARNING': '\033[33m',
    'ERROR': '\033[31m',
    'CRITICAL': '\033[35m',
}
_RESET = '\033[0m'


class ContextFormatter(logging.Formatter):
    """Render records with the current context fields.

    Parameters
    ----------
    fmt_mode : str
        ``"human"`` or ``"json"``.
    use_color : bool
        Color the level name; only honoured when stderr is a terminal.
    """

    def __init__(self, fmt_mode: str = "human", use_color: bool = True):
        super().__init__()
        if fmt_mode not in ("human", "json"):
            raise ValueError(f"Unknown log format {fmt_mode!r}; use 'human' or 'json'")
        self.fmt_mode = fmt_mode
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        fields = _context.get()
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        if self.fmt_mode == "json":
            return self._as_json(record, stamp, fields)
        return self._as_line(record, stamp, fields)

    def _as_json(self, record: logging.LogRecord, stamp: datetime, fields: dict) -> str:
        payload = {
            't': stamp.isoformat(),
            'lvl': record.levelname,
            'name': record.name,
            'msg': record.getMessage(),
            **fields,
        }
        if record.exc_info:
            payload['exc'] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)

    def _as_line(self, record: logging.LogRecord, stamp: datetime, fields: dict) -> str:
        level = f"{record.levelname:8s}"
        if self.use_color:
            level = f"{_LEVEL_COLORS.get(record.levelname, '')}{level}{_RESET}"

        parts = [stamp.strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z', level]
        if fields:
            parts.append(' '.join(f"{k}={v}" for k, v in fields.items()))
        parts.append(record.getMessage())

        line = ' | '.join(parts)
        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


def setup_logging(
    log_level: str = "INFO",
    *,
    json: bool = False,
    color: bool = True,
    capture_warnings: bool = True,
    context: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Configure the root logger for a command-line run.

    Parameters
    ----------
    log_level : str
        "DEBUG", "INFO", "WARNING", "ERROR" or "CRITICAL".
    json : bool
        Emit one JSON object per line instead of the readable format.
    color : bool
        Color level names on a terminal, default True.
    capture_warnings : bool
        Route Python warnings through logging, default True.
    context : dict, optional
        Fields added to every record (see ``push_context``).

    Returns
    -------
    dict
        ``{"handlers": [...]}`` with the handlers installed by this call.
    """
    root = logging.getLogger()

    for handler in _installed_handlers:
        root.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    root.setLevel(getattr(logging, log_level.upper()))

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ContextFormatter("json" if json else "human", color))
    root.addHandler(handler)
    _installed_handlers.append(handler)

    if context:
        push_context(**context)

    if capture_warnings:
        logging.captureWarnings(True)
        logging.getLogger('py.warnings').setLevel(logging.WARNING)

    return {'handlers': list(_installed_handlers)}


def push_context(**fields: Any) -> None:
    """Add fields to every subsequent record (``app="run_sim"`` → ``app=run_sim``)."""
    _context.set({**_context.get(), **fields})


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Drop the named context fields, or all of them when *keys* is None."""
    if keys is None:
        _context.set({})
        return
    _context.set({k: v for k, v in _context.get().items() if k not in keys})


def install_excepthook() -> None:
    """Log uncaught exceptions (Ctrl+C excepted) at CRITICAL before exit."""
    def _hook(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        logging.getLogger(__name__).critical(
            "Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback)
        )

    sys.excepthook = _hook
