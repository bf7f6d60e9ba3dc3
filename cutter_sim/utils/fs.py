"""Atomic filesystem operations and YAML loading.

Provides:
    - Atomic writes: tmp file → fsync → rename (prevents partial reads)
    - YAML load with actionable parse errors
    - Directory creation with exist_ok semantics

A preview consumer polling the output directory must never observe a
half-written image, so every persisted canvas goes through
``atomic_write_bytes``.

All paths use pathlib.Path for cross-platform compatibility.

Usage:
    from cutter_sim.utils import fs
    fs.atomic_write_bytes("out/cut.png", png_bytes)
    data = fs.load_yaml("cutter_sim/configs/device.yaml")
"""

import os
from pathlib import Path
from typing import Any, Dict, Union

import yaml


def ensure_dir(p: Union[str, Path]) -> Path:
    """Create directory if it doesn't exist, return Path object.

    Parameters
    ----------
    p : Union[str, Path]
        Directory path

    Returns
    -------
    Path
        Path object (guaranteed to exist)
    """
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def atomic_write_bytes(
    path: Union[str, Path],
    data: bytes,
    tmp_suffix: str = ".tmp"
) -> None:
    """Write bytes to file atomically (tmp → fsync → rename).

    Parameters
    ----------
    path : Union[str, Path]
        Target file path
    data : bytes
        Data to write
    tmp_suffix : str
        Temporary file suffix, default ".tmp"

    Raises
    ------
    RuntimeError
        If the write or rename fails; the temporary file is removed.

    Notes
    -----
    Uses same directory for tmp file to ensure atomic rename on same filesystem.
    """
    path = Path(path)
    ensure_dir(path.parent)

    tmp_path = path.with_suffix(path.suffix + tmp_suffix)

    try:
        with open(tmp_path, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        # Atomic rename (overwrites existing file on POSIX)
        tmp_path.replace(path)
    except Exception as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise RuntimeError(f"Failed to write {path} atomically: {e}") from e


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load YAML file safely.

    Parameters
    ----------
    path : Union[str, Path]
        YAML file path

    Returns
    -------
    Dict[str, Any]
        Parsed YAML content (``None`` for an empty file)

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    yaml.YAMLError
        If YAML parsing fails
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e
