from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, cast

import numpy as np

from coilshield.montecarlo import MonteCarloConfig, MonteCarloResult, RunStatistics
from coilshield.run_types import RunBundle, RunResults
from coilshield.types import CoilArray, FloatArray

SCHEMA_VERSION = 1

_RESULTS_PRIMARY = "results.npz"
_META_PRIMARY = "meta.json"

_KNOWN_RESULT_KEYS = {
    "positions",
    "directions",
    "energies_ev",
    "hit",
    "hit_unshielded",
    "failed",
    "coil_points",
}


def _to_float_array(value: Any) -> FloatArray:
    return np.array(value, dtype=np.float64, copy=True)


def _load_json_dict(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {path}")
    return cast(dict[str, Any], data)


def geometry_summary(coil_array: CoilArray) -> dict[str, Any]:
    return dict(
        n_coils=int(coil_array.n_coils),
        radius=float(coil_array.radius),
        alternating=bool(coil_array.alternating),
        points_per_coil=int(coil_array.points_per_coil),
        n_panels=int(coil_array.n_panels),
    )


def write_run(
    out_dir: str | Path,
    result: MonteCarloResult,
    *,
    config: MonteCarloConfig,
    coil_array: CoilArray,
    name: str,
    description: str = "",
) -> tuple[Path, Path]:
    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)

    ics = result.initial_conditions
    results_path = out_path / _RESULTS_PRIMARY
    np.savez_compressed(
        results_path,
        positions=ics.positions,
        directions=ics.directions,
        energies_ev=ics.energies_ev,
        hit=result.hit,
        hit_unshielded=result.hit_unshielded,
        failed=result.failed,
        coil_points=coil_array.points,
    )

    meta = dict(
        schema_version=SCHEMA_VERSION,
        name=name,
        created_at=datetime.now(UTC).isoformat(),
        description=description,
        geometry=geometry_summary(coil_array),
        config=config.to_dict(),
        statistics=result.statistics.to_dict(),
    )
    meta_path = out_path / _META_PRIMARY
    with meta_path.open("w", encoding="utf-8") as handle:
        json.dump(meta, handle, indent=2)

    return results_path, meta_path


def _load_results(results_path: Path) -> RunResults:
    with np.load(results_path, allow_pickle=False) as data:
        missing = [k for k in ("positions", "hit", "hit_unshielded") if k not in data.files]
        if missing:
            raise KeyError(f"Missing required keys in {results_path}: {', '.join(missing)}")
        positions = _to_float_array(data["positions"]).reshape(-1, 3)
        n = positions.shape[0]
        hit = np.array(data["hit"], dtype=bool).reshape(-1)
        hit_0 = np.array(data["hit_unshielded"], dtype=bool).reshape(-1)
        if hit.size != n or hit_0.size != n:
            raise ValueError(f"hit arrays do not match {n} particles")
        if "failed" in data.files:
            failed = np.array(data["failed"], dtype=bool).reshape(-1)
        else:
            failed = np.zeros(n, dtype=bool)
        directions = (
            _to_float_array(data["directions"]).reshape(-1, 3)
            if "directions" in data.files
            else np.zeros((n, 3), dtype=np.float64)
        )
        energies = (
            _to_float_array(data["energies_ev"]).reshape(-1)
            if "energies_ev" in data.files
            else np.full(n, np.nan)
        )
        coil_points = (
            _to_float_array(data["coil_points"])
            if "coil_points" in data.files
            else np.zeros((0, 0, 3), dtype=np.float64)
        )
        extras: dict[str, Any] = {}
        for key in data.files:
            if key in _KNOWN_RESULT_KEYS:
                continue
            extras[key] = np.array(data[key], copy=True)

    return RunResults(
        positions=positions,
        directions=directions,
        energies_ev=energies,
        hit=hit,
        hit_unshielded=hit_0,
        failed=failed,
        coil_points=coil_points,
        extras=extras,
    )


def _statistics_from_meta(meta: dict[str, Any]) -> RunStatistics | None:
    raw = meta.get("statistics")
    if not isinstance(raw, dict):
        return None
    return RunStatistics(**raw)


def load_run(path: str | Path, *, name: str | None = None) -> RunBundle:
    run_path = Path(path).expanduser()

    if run_path.is_dir():
        run_dir = run_path
        results_path = run_dir / _RESULTS_PRIMARY
        if not results_path.is_file():
            raise FileNotFoundError(f"No {_RESULTS_PRIMARY} found in {run_dir}")
    elif run_path.is_file():
        if run_path.suffix != ".npz":
            raise ValueError(f"Expected .npz file or run directory, got {run_path}")
        results_path = run_path
        run_dir = run_path.parent
    else:
        raise FileNotFoundError(f"Run path not found: {run_path}")

    meta_candidate = run_dir / _META_PRIMARY
    meta_path = meta_candidate if meta_candidate.is_file() else None
    meta = _load_json_dict(meta_path) if meta_path is not None else {}
    results = _load_results(results_path)

    resolved_name = name
    if resolved_name is None:
        resolved_name = str(meta.get("name") or run_dir.name)

    return RunBundle(
        name=resolved_name,
        run_dir=run_dir,
        results_path=results_path,
        meta_path=meta_path,
        results=results,
        meta=meta,
        statistics=_statistics_from_meta(meta),
    )


__all__ = ["SCHEMA_VERSION", "geometry_summary", "write_run", "load_run"]
