from __future__ import annotations

import argparse
import json
import os
import statistics
from collections.abc import Callable
from dataclasses import dataclass
from time import perf_counter
from typing import Any

import numpy as np

from coilshield.field import evaluate_field_points
from coilshield.forces import compute_panel_forces
from coilshield.geom import build_coil_array, racetrack_cross_section
from coilshield.sampling import sample_initial_conditions
from coilshield.trajectory import InitialState, phase_span, run_trajectory
from coilshield.types import CoilArray, FieldContext


@dataclass(frozen=True)
class Preset:
    n_coils: int
    n_points: int
    n_field_points: int
    radius: float = 5.6
    r_major: float = 1.85
    aspect_ratio: float = 1.5
    current: float = 4e6


PRESETS: dict[str, Preset] = {
    "tiny": Preset(n_coils=4, n_points=17, n_field_points=256),
    "dev": Preset(n_coils=8, n_points=33, n_field_points=4096),
    "prod": Preset(n_coils=16, n_points=129, n_field_points=32768),
}


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Micro-benchmark kernels (field/forces/orbit)")
    parser.add_argument("--preset", choices=sorted(PRESETS.keys()), default="dev")
    parser.add_argument("--repeats", type=int, default=10)
    parser.add_argument("--out", type=str, default=None)
    return parser.parse_args()


def build_array(cfg: Preset) -> CoilArray:
    geom = racetrack_cross_section(cfg.r_major, cfg.aspect_ratio, cfg.n_points)
    return build_coil_array(geom, cfg.n_coils, cfg.radius)


def measure(fn: Callable[[], Any], repeats: int) -> dict[str, float]:
    if repeats < 1:
        raise ValueError("repeats must be >= 1")
    start = perf_counter()
    _ = fn()
    compile_ms = (perf_counter() - start) * 1000.0
    samples: list[float] = []
    for _ in range(repeats):
        start = perf_counter()
        _ = fn()
        samples.append((perf_counter() - start) * 1000.0)
    return {
        "compile_ms": float(compile_ms),
        "mean_ms": float(statistics.fmean(samples)),
        "median_ms": float(statistics.median(samples)),
        "min_ms": float(min(samples)),
    }


def run_bench(preset_name: str, repeats: int) -> dict[str, Any]:
    cfg = PRESETS[preset_name]
    rng = np.random.default_rng(0)
    arr = build_array(cfg)
    ctx = FieldContext.from_coil_array(arr, cfg.current)
    pts = rng.uniform(-2.0 * cfg.radius, 2.0 * cfg.radius, size=(cfg.n_field_points, 3))

    ics, _ = sample_initial_conditions(
        1,
        seed=0,
        sphere_radius=50.0,
        position_mode="random",
        direction_policy="inward",
        threshold=1.5,
        sampling=1.0,
        energy_mode="fixed",
        kinetic_energy_ev=1e8,
        energy_range_ev=(1e6, 1e9),
        spectral_index=1.0,
    )
    initial = InitialState(
        position=ics.positions[0],
        direction=ics.directions[0],
        kinetic_energy_ev=float(ics.energies_ev[0]),
    )
    span = phase_span(initial.kinetic_energy_ev, 100.0)

    def run_field() -> Any:
        return evaluate_field_points(pts, ctx)

    def run_forces() -> Any:
        return compute_panel_forces(ctx)

    def run_orbit() -> Any:
        return run_trajectory(initial, ctx, span=span)

    return {
        "preset": preset_name,
        "repeats": int(repeats),
        "config": {
            "n_coils": cfg.n_coils,
            "n_points": cfg.n_points,
            "n_panels": arr.n_panels,
            "n_field_points": cfg.n_field_points,
        },
        "field_at_points": measure(run_field, repeats),
        "panel_forces": measure(run_forces, repeats),
        "trajectory": measure(run_orbit, repeats),
    }


def print_summary(results: dict[str, Any]) -> None:
    cfg = results["config"]
    print(
        "preset={preset} repeats={repeats} n_coils={n_coils} n_panels={n_panels} "
        "field_points={n_field_points}".format(
            preset=results["preset"],
            repeats=results["repeats"],
            **cfg,
        )
    )
    print(f"{'name':<28} {'compile_ms':>11} {'mean_ms':>9} {'median_ms':>11} {'min_ms':>9}")
    for name in ("field_at_points", "panel_forces", "trajectory"):
        stats = results[name]
        print(
            f"{name:<28} {stats['compile_ms']:>11.3f} {stats['mean_ms']:>9.3f} "
            f"{stats['median_ms']:>11.3f} {stats['min_ms']:>9.3f}"
        )


def write_json(path: str, results: dict[str, Any]) -> None:
    out_dir = os.path.dirname(path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(results, f, ensure_ascii=False, indent=2)


def main() -> int:
    args = parse_args()
    results = run_bench(args.preset, args.repeats)
    print_summary(results)
    if args.out:
        write_json(args.out, results)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
