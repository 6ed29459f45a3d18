from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
from numpy.typing import NDArray

from coilshield.montecarlo import RunStatistics
from coilshield.types import FloatArray


@dataclass(frozen=True)
class RunResults:
    positions: FloatArray
    directions: FloatArray
    energies_ev: FloatArray
    hit: NDArray[np.bool_]
    hit_unshielded: NDArray[np.bool_]
    failed: NDArray[np.bool_]
    coil_points: FloatArray
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RunBundle:
    name: str
    run_dir: Path
    results_path: Path
    meta_path: Path | None
    results: RunResults
    meta: dict[str, Any]
    statistics: RunStatistics | None


__all__ = ["RunBundle", "RunResults"]
