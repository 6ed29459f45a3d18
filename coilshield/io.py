from __future__ import annotations

from pathlib import Path

import numpy as np

from coilshield.errors import ConfigurationError
from coilshield.types import FloatArray


def load_cross_section(path: str | Path) -> FloatArray:
    """
    Load a coil cross-section point list from a text table.

    Whitespace or comma separated; one optional header row; the first two
    numeric columns are used. The loop is closed if the file does not repeat
    its first point.
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Cross-section file not found: {p}")

    text = p.read_text(encoding="utf-8")
    delimiter = "," if "," in text else None
    try:
        data = np.loadtxt(p, delimiter=delimiter, ndmin=2)
    except ValueError:
        data = np.loadtxt(p, delimiter=delimiter, ndmin=2, skiprows=1)

    if data.shape[1] < 2:
        raise ConfigurationError(f"{p} needs at least two columns, got {data.shape[1]}")
    geom = np.array(data[:, :2], dtype=np.float64)
    if geom.shape[0] >= 2 and not np.array_equal(geom[0], geom[-1]):
        geom = np.vstack([geom, geom[:1]])
    return geom


__all__ = ["load_cross_section"]
