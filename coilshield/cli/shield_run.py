from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from time import perf_counter
from typing import cast

from coilshield.geom import build_coil_array, racetrack_cross_section
from coilshield.io import load_cross_section
from coilshield.montecarlo import MonteCarloConfig, run_monte_carlo
from coilshield.run_io import write_run
from coilshield.sampling import DirectionPolicy, EnergyMode, PositionMode
from coilshield.solvers.types import IVP_METHODS, IvpOptions
from coilshield.types import CoilArray, FloatArray

logger = logging.getLogger(__name__)


def _seed_arg(value: str) -> int | None:
    if value.lower() == "none":
        return None
    return int(value)


def add_geometry_args(ap: argparse.ArgumentParser) -> None:
    geo = ap.add_argument_group("geometry")
    geo.add_argument(
        "--cross-section",
        type=str,
        default=None,
        help="cross-section table (x z per row); overrides racetrack parameters",
    )
    geo.add_argument("--r-major", type=float, default=1.85, help="racetrack half-height [m]")
    geo.add_argument("--aspect-ratio", type=float, default=1.5, help="racetrack aspect ratio")
    geo.add_argument("--n-points", type=int, default=33, help="points per coil loop")
    geo.add_argument("--n-coils", type=int, default=8, help="number of coils")
    geo.add_argument("--radius", type=float, default=5.6, help="array radius [m]")
    geo.add_argument("--alternating", action="store_true", help="flip every other coil")
    geo.add_argument("--current", type=float, default=4e6, help="coil current [A]")


def add_log_level_arg(ap: argparse.ArgumentParser) -> None:
    ap.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING"],
        help="logging level",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(
        description="Monte Carlo shielding effectiveness of a toroidal coil array."
    )
    ap.add_argument("--out-dir", type=str, required=True, help="run output directory")
    ap.add_argument("--name", type=str, default=None, help="run name (default: out dir name)")
    ap.add_argument("--description", type=str, default="", help="free-form description")
    add_geometry_args(ap)

    mc = ap.add_argument_group("monte carlo")
    mc.add_argument("--n-particles", type=int, default=100)
    mc.add_argument("--energy-mode", choices=["fixed", "power-law"], default="fixed")
    mc.add_argument("--ke-ev", type=float, default=1e8, help="fixed kinetic energy [eV]")
    mc.add_argument("--e-min-ev", type=float, default=1e6)
    mc.add_argument("--e-max-ev", type=float, default=1e9)
    mc.add_argument("--spectral-index", type=float, default=1.0)
    mc.add_argument("--threshold", type=float, default=1.5, help="protected radius [m]")
    mc.add_argument(
        "--direction-policy",
        choices=["isotropic", "inward", "thresholded"],
        default="thresholded",
    )
    mc.add_argument("--sampling", type=float, default=2.0, help="cone widening factor")
    mc.add_argument("--position-mode", choices=["random", "grid"], default="random")
    mc.add_argument("--sphere-radius", type=float, default=50.0, help="launch sphere [m]")
    mc.add_argument("--seed", type=_seed_arg, default=10, help="integer seed or 'none'")
    mc.add_argument("--classical", action="store_true", help="non-relativistic motion")
    mc.add_argument("--workers", type=int, default=1)
    mc.add_argument("--min-distance", type=float, default=1e-9)

    ivp = ap.add_argument_group("integrator")
    ivp.add_argument("--method", choices=IVP_METHODS, default="RK45")
    ivp.add_argument("--rtol", type=float, default=1e-3)
    ivp.add_argument("--atol", type=float, default=1e-6)
    ivp.add_argument("--max-nfev", type=int, default=200_000)
    ivp.add_argument(
        "--fallback-method",
        action="append",
        choices=IVP_METHODS,
        default=[],
        help="solver tried after a failure (repeatable)",
    )

    ap.add_argument("--html", action="store_true", help="write trajectories.html (plotly)")
    add_log_level_arg(ap)
    return ap.parse_args(argv)


def _configure_logging(
    level: str, out_dir: Path, log_name: str = "shield.log"
) -> logging.FileHandler:
    out_dir.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(out_dir / log_name, mode="a", encoding="utf-8")
    stream_handler = logging.StreamHandler(stream=sys.stdout)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    file_handler.setFormatter(formatter)
    stream_handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[file_handler, stream_handler],
        force=True,
    )
    return file_handler


def config_from_args(args: argparse.Namespace) -> MonteCarloConfig:
    return MonteCarloConfig(
        current=float(args.current),
        energy_mode=cast(EnergyMode, args.energy_mode),
        kinetic_energy_ev=float(args.ke_ev),
        energy_range_ev=(float(args.e_min_ev), float(args.e_max_ev)),
        spectral_index=float(args.spectral_index),
        n_particles=int(args.n_particles),
        threshold=float(args.threshold),
        direction_policy=cast(DirectionPolicy, args.direction_policy),
        sampling=float(args.sampling),
        seed=args.seed,
        relativistic=not args.classical,
        position_mode=cast(PositionMode, args.position_mode),
        sphere_radius=float(args.sphere_radius),
        workers=int(args.workers),
        keep_trajectories=bool(args.html),
        ivp=IvpOptions(
            method=str(args.method),
            rtol=float(args.rtol),
            atol=float(args.atol),
            max_nfev=int(args.max_nfev),
            fallback_methods=tuple(args.fallback_method),
        ),
        min_distance=float(args.min_distance),
    )


def coil_array_from_args(args: argparse.Namespace) -> CoilArray:
    geom: FloatArray
    if args.cross_section:
        geom = load_cross_section(args.cross_section)
        logger.info("cross-section loaded: %s (%d points)", args.cross_section, geom.shape[0])
    else:
        geom = racetrack_cross_section(
            float(args.r_major), float(args.aspect_ratio), int(args.n_points)
        )
    return build_coil_array(geom, int(args.n_coils), float(args.radius), bool(args.alternating))


def run_shield(args: argparse.Namespace) -> int:
    out_dir = Path(args.out_dir)
    config = config_from_args(args)
    coil_array = coil_array_from_args(args)
    logger.info(
        "coil array: n_coils=%d radius=%.3f panels=%d alternating=%s",
        coil_array.n_coils,
        coil_array.radius,
        coil_array.n_panels,
        coil_array.alternating,
    )

    result = run_monte_carlo(coil_array, config)
    stats = result.statistics
    logger.info(
        "deflection_rate=%.4f parasitic_rate=%.4f", stats.deflection_rate, stats.parasitic_rate
    )

    t_save = perf_counter()
    results_path, meta_path = write_run(
        out_dir,
        result,
        config=config,
        coil_array=coil_array,
        name=args.name or out_dir.name,
        description=args.description,
    )
    logger.info("saved %s and %s in %.3fs", results_path, meta_path, perf_counter() - t_save)

    if args.html and result.trajectories is not None:
        from coilshield.viz3d import build_shield_figure

        fig = build_shield_figure(
            coil_array,
            result.trajectories,
            result.hit,
            sphere_radius=config.threshold,
        )
        html_path = out_dir / "trajectories.html"
        fig.write_html(str(html_path))
        logger.info("figure written: %s", html_path)
    return 0


def main() -> None:
    args = parse_args()
    out_dir = Path(args.out_dir)
    _configure_logging(args.log_level, out_dir)
    try:
        code = run_shield(args)
    except Exception as exc:
        logger.exception("Shielding run failed: %s", exc)
        sys.exit(1)
    raise SystemExit(code)


if __name__ == "__main__":
    main()
