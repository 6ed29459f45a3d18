from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import numpy as np

from coilshield.cli.shield_run import (
    _configure_logging,
    add_geometry_args,
    add_log_level_arg,
    coil_array_from_args,
)
from coilshield.forces import compute_hoop_forces, compute_panel_forces
from coilshield.run_io import geometry_summary
from coilshield.types import FieldContext

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Panel and net coil forces of a coil array.")
    ap.add_argument("--out-dir", type=str, required=True, help="output directory")
    add_geometry_args(ap)
    ap.add_argument(
        "--exclude-self-coil",
        action="store_true",
        help="omit every panel of a panel's own coil from its field",
    )
    ap.add_argument("--min-distance", type=float, default=1e-9)
    ap.add_argument("--no-npz", action="store_true", help="skip NPZ output")
    add_log_level_arg(ap)
    return ap.parse_args(argv)


def run_forces(args: argparse.Namespace) -> int:
    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    coil_array = coil_array_from_args(args)
    ctx = FieldContext.from_coil_array(
        coil_array, float(args.current), min_distance=float(args.min_distance)
    )
    logger.info(
        "forces: %d panels, current=%.3e A, exclude_self_coil=%s",
        ctx.n_panels,
        ctx.current,
        bool(args.exclude_self_coil),
    )

    panel_forces = compute_panel_forces(ctx, exclude_self_coil=bool(args.exclude_self_coil))
    coil_forces, hoop_mp = compute_hoop_forces(panel_forces, coil_array.points)

    # outward-positive radial component at each coil centre
    r_hat = hoop_mp / np.maximum(np.linalg.norm(hoop_mp, axis=1, keepdims=True), 1e-300)
    radial = np.sum(coil_forces * r_hat, axis=1)

    if not args.no_npz:
        np.savez_compressed(
            out_dir / "forces.npz",
            panel_midpoints=ctx.midpoints,
            panel_forces=panel_forces,
            coil_forces=coil_forces,
            hoop_midpoints=hoop_mp,
        )
    summary = dict(
        geometry=geometry_summary(coil_array),
        current=float(ctx.current),
        exclude_self_coil=bool(args.exclude_self_coil),
        coil_forces=coil_forces.tolist(),
        hoop_midpoints=hoop_mp.tolist(),
        radial_force=radial.tolist(),
        max_panel_force=float(np.max(np.linalg.norm(panel_forces, axis=1), initial=0.0)),
    )
    with (out_dir / "forces.json").open("w", encoding="utf-8") as handle:
        json.dump(summary, handle, indent=2)

    for k, (f, fr) in enumerate(zip(coil_forces, radial, strict=True)):
        logger.info("  coil %d: F=(%.4e, %.4e, %.4e) N radial=%.4e N", k, *f, fr)
    return 0


def main() -> None:
    args = parse_args()
    out_dir = Path(args.out_dir)
    _configure_logging(args.log_level, out_dir, "forces.log")
    try:
        code = run_forces(args)
    except Exception as exc:
        logger.exception("Force computation failed: %s", exc)
        sys.exit(1)
    raise SystemExit(code)


if __name__ == "__main__":
    main()
