from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import cast

import numpy as np

from coilshield.cli.shield_run import (
    _configure_logging,
    add_geometry_args,
    add_log_level_arg,
    coil_array_from_args,
)
from coilshield.types import FieldContext
from coilshield.viz2d import Backend, Plane, compute_field_map, plot_field_map

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="2D magnetic field map of a coil array.")
    ap.add_argument("--out-dir", type=str, required=True, help="output directory")
    add_geometry_args(ap)
    ap.add_argument("--plane", choices=["xy", "xz", "yz"], default="xz")
    ap.add_argument("--coord0", type=float, default=0.0, help="fixed coordinate [m]")
    ap.add_argument("--extent", type=float, default=10.0, help="half-width of the map [m]")
    ap.add_argument("--n", type=int, default=101, help="grid points per axis")
    ap.add_argument("--backend", choices=["numba", "jax"], default="numba")
    ap.add_argument("--prefix", type=str, default="field_map", help="output filename prefix")
    ap.add_argument("--no-png", action="store_true", help="skip PNG output")
    ap.add_argument("--no-npz", action="store_true", help="skip NPZ output")
    add_log_level_arg(ap)
    return ap.parse_args(argv)


def run_field_map(args: argparse.Namespace) -> int:
    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    coil_array = coil_array_from_args(args)
    ctx = FieldContext.from_coil_array(coil_array, float(args.current))
    plane = cast(Plane, args.plane)

    fmap = compute_field_map(
        ctx,
        plane=plane,
        coord0=float(args.coord0),
        extent=float(args.extent),
        n=int(args.n),
        backend=cast(Backend, args.backend),
    )
    logger.info(
        "field map %s: |B| min=%.4e max=%.4e T", plane, fmap.Bmag.min(), fmap.Bmag.max()
    )

    tag = f"{args.prefix}_{plane}"
    if not args.no_png:
        plot_field_map(fmap, coil_array=coil_array, path=out_dir / f"{tag}.png")
    if not args.no_npz:
        np.savez_compressed(
            out_dir / f"{tag}.npz",
            xs=fmap.xs,
            ys=fmap.ys,
            B=fmap.B,
            Bmag=fmap.Bmag,
            plane=str(fmap.plane),
            coord0=float(fmap.coord0),
        )
    return 0


def main() -> None:
    args = parse_args()
    out_dir = Path(args.out_dir)
    _configure_logging(args.log_level, out_dir, "field_map.log")
    try:
        code = run_field_map(args)
    except Exception as exc:
        logger.exception("Field map failed: %s", exc)
        sys.exit(1)
    raise SystemExit(code)


if __name__ == "__main__":
    main()
