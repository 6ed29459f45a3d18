from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import numpy as np

from coilshield.field import evaluate_field_points
from coilshield.types import CoilArray, FieldContext, FloatArray

Plane = Literal["xy", "xz", "yz"]
Backend = Literal["numba", "jax"]

_PLANE_AXES: dict[str, tuple[int, int, int]] = {
    "xy": (0, 1, 2),
    "xz": (0, 2, 1),
    "yz": (1, 2, 0),
}
_AXIS_NAMES = ("x", "y", "z")


@dataclass(frozen=True)
class FieldMap2D:
    xs: FloatArray
    ys: FloatArray
    B: FloatArray
    Bmag: FloatArray
    plane: Plane
    coord0: float

    @property
    def in_plane(self) -> tuple[FloatArray, FloatArray]:
        a, b, _ = _PLANE_AXES[self.plane]
        return self.B[:, :, a], self.B[:, :, b]


def _plane_axes(plane: str) -> tuple[int, int, int]:
    try:
        return _PLANE_AXES[plane]
    except KeyError:
        raise ValueError(f"Unsupported plane: {plane}") from None


def _build_plane_points(
    xs: FloatArray, ys: FloatArray, plane: Plane, coord0: float
) -> FloatArray:
    a, b, c = _plane_axes(plane)
    U, V = np.meshgrid(xs, ys, indexing="xy")
    pts = np.empty((U.size, 3), dtype=np.float64)
    pts[:, a] = U.reshape(-1)
    pts[:, b] = V.reshape(-1)
    pts[:, c] = coord0
    return pts


def compute_field_map(
    ctx: FieldContext,
    *,
    plane: Plane = "xz",
    coord0: float = 0.0,
    extent: float = 10.0,
    n: int = 101,
    backend: Backend = "numba",
) -> FieldMap2D:
    """
    Sample B on an n x n grid spanning [-extent, extent]^2 in ``plane``.

    Points closer than ``ctx.min_distance`` to a panel midpoint are clamped
    rather than raised, so grids crossing the coils stay finite.
    """
    if n < 2:
        raise ValueError("n must be >= 2")
    if not extent > 0.0:
        raise ValueError("extent must be > 0")
    _plane_axes(plane)

    xs = np.linspace(-extent, extent, n, dtype=np.float64)
    ys = np.linspace(-extent, extent, n, dtype=np.float64)
    pts = _build_plane_points(xs, ys, plane, coord0)

    if backend == "numba":
        B_flat = evaluate_field_points(pts, ctx)
    elif backend == "jax":
        from coilshield.autodiff import evaluate_field_points_jax

        B_flat = evaluate_field_points_jax(pts, ctx)
    else:
        raise ValueError(f"Unsupported backend: {backend}")

    B = np.asarray(B_flat, dtype=np.float64).reshape(ys.size, xs.size, 3)
    return FieldMap2D(
        xs=xs,
        ys=ys,
        B=B,
        Bmag=np.linalg.norm(B, axis=2),
        plane=plane,
        coord0=float(coord0),
    )


def coil_footprint(
    coil_array: CoilArray, plane: Plane, coord0: float, tol: float
) -> FloatArray:
    """In-plane coordinates of coil points lying within ``tol`` of the plane."""
    a, b, c = _plane_axes(plane)
    pts = coil_array.points.reshape(-1, 3)
    mask = np.abs(pts[:, c] - coord0) <= tol
    return np.column_stack([pts[mask, a], pts[mask, b]])


def plot_field_map(
    fmap: FieldMap2D,
    *,
    coil_array: CoilArray | None = None,
    path: str | Path | None = None,
    density: float = 1.2,
    ax: Any = None,
) -> Any:
    import matplotlib.pyplot as plt

    a, b, _ = _plane_axes(fmap.plane)
    owns_fig = ax is None
    if owns_fig:
        fig, ax = plt.subplots(1, 1, figsize=(6.0, 5.0))
    else:
        fig = ax.figure

    floor = np.finfo(np.float64).tiny
    logB = np.log10(np.maximum(fmap.Bmag, floor))
    im = ax.pcolormesh(fmap.xs, fmap.ys, logB, shading="auto", cmap="viridis")
    fig.colorbar(im, ax=ax, label="log10 |B| [T]")

    Bu, Bv = fmap.in_plane
    if np.any(np.hypot(Bu, Bv) > 0.0):
        ax.streamplot(fmap.xs, fmap.ys, Bu, Bv, color="w", linewidth=0.6, density=density)

    if coil_array is not None:
        step = float(fmap.xs[1] - fmap.xs[0])
        fp = coil_footprint(coil_array, fmap.plane, fmap.coord0, tol=step)
        if fp.size:
            ax.scatter(fp[:, 0], fp[:, 1], s=4, c="r", label="coil")

    ax.set_xlabel(f"{_AXIS_NAMES[a]} [m]")
    ax.set_ylabel(f"{_AXIS_NAMES[b]} [m]")
    ax.set_title(f"|B| ({fmap.plane}, {_AXIS_NAMES[_PLANE_AXES[fmap.plane][2]]}={fmap.coord0:g})")
    ax.set_aspect("equal", adjustable="box")
    ax.set_xlim(fmap.xs[0], fmap.xs[-1])
    ax.set_ylim(fmap.ys[0], fmap.ys[-1])

    if path is not None:
        fig.tight_layout()
        fig.savefig(Path(path), dpi=180)
        if owns_fig:
            plt.close(fig)
    return fig


__all__ = ["FieldMap2D", "compute_field_map", "coil_footprint", "plot_field_map"]
