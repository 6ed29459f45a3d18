from __future__ import annotations

from collections.abc import Sequence
from typing import Any, TypeAlias

import numpy as np
from numpy.typing import ArrayLike

from coilshield.trajectory import Trajectory
from coilshield.types import CoilArray, FloatArray

PlotlyFigure: TypeAlias = Any
SceneRanges: TypeAlias = tuple[tuple[float, float], tuple[float, float], tuple[float, float]]

HIT_COLOR = "red"
MISS_COLOR = "green"


def _require_plotly() -> Any:
    import importlib

    try:
        return importlib.import_module("plotly.graph_objects")
    except Exception as exc:  # pragma: no cover - import guard
        raise RuntimeError("plotly is required for viz3d (pip install plotly)") from exc


def compute_scene_ranges(
    points_list: Sequence[FloatArray], *, margin: float = 0.05
) -> SceneRanges:
    mins: list[FloatArray] = []
    maxs: list[FloatArray] = []
    for pts in points_list:
        if pts.size == 0:
            continue
        flat = pts.reshape(-1, 3)
        mins.append(np.min(flat, axis=0))
        maxs.append(np.max(flat, axis=0))
    if not mins:
        return ((-1.0, 1.0), (-1.0, 1.0), (-1.0, 1.0))

    min_all = np.min(np.stack(mins, axis=0), axis=0)
    max_all = np.max(np.stack(maxs, axis=0), axis=0)

    ranges: list[tuple[float, float]] = []
    for axis in range(3):
        lo = float(min_all[axis])
        hi = float(max_all[axis])
        span = hi - lo
        pad = 0.01 if span <= 0.0 else float(span * margin)
        ranges.append((lo - pad, hi + pad))
    return (ranges[0], ranges[1], ranges[2])


def _polylines(curves: Sequence[FloatArray]) -> tuple[FloatArray, FloatArray, FloatArray]:
    """Concatenate curves into one NaN-separated polyline per axis."""
    if not curves:
        empty = np.zeros(0, dtype=np.float64)
        return empty, empty, empty
    parts: list[FloatArray] = []
    gap = np.full((1, 3), np.nan)
    for c in curves:
        parts.append(np.asarray(c, dtype=np.float64).reshape(-1, 3))
        parts.append(gap)
    joined = np.concatenate(parts, axis=0)
    return joined[:, 0], joined[:, 1], joined[:, 2]


def sphere_wireframe(
    radius: float, *, n_lat: int = 7, n_lon: int = 12, n_seg: int = 48
) -> list[FloatArray]:
    t = np.linspace(0.0, 2.0 * np.pi, n_seg + 1)
    curves: list[FloatArray] = []
    for theta in np.linspace(0.0, np.pi, n_lat + 2)[1:-1]:
        r = radius * np.sin(theta)
        z = radius * np.cos(theta)
        curves.append(np.column_stack([r * np.cos(t), r * np.sin(t), np.full_like(t, z)]))
    half = np.linspace(0.0, np.pi, n_seg // 2 + 1)
    for phi in np.linspace(0.0, 2.0 * np.pi, n_lon, endpoint=False):
        curves.append(
            np.column_stack(
                [
                    radius * np.sin(half) * np.cos(phi),
                    radius * np.sin(half) * np.sin(phi),
                    radius * np.cos(half),
                ]
            )
        )
    return curves


def build_shield_figure(
    coil_array: CoilArray,
    trajectories: Sequence[Trajectory | FloatArray | None] = (),
    hits: ArrayLike | None = None,
    *,
    r_plot: float | None = None,
    sphere_radius: float | None = None,
    height: int | None = None,
) -> PlotlyFigure:
    """
    Coils as closed lines, trajectories coloured by outcome, and an optional
    wireframe of the protected sphere.

    ``r_plot`` clips the scene to a cube of that half-width.
    """
    go = _require_plotly()
    fig = go.Figure()

    cx, cy, cz = _polylines(list(coil_array.points))
    fig.add_trace(
        go.Scatter3d(
            x=cx, y=cy, z=cz, mode="lines", name="coils", line={"color": "#444", "width": 4}
        )
    )

    hit_arr = (
        np.zeros(len(trajectories), dtype=bool)
        if hits is None
        else np.asarray(hits, dtype=bool).reshape(-1)
    )
    if hit_arr.size != len(trajectories):
        raise ValueError(f"hits has {hit_arr.size} entries for {len(trajectories)} trajectories")

    hit_curves: list[FloatArray] = []
    miss_curves: list[FloatArray] = []
    for traj, h in zip(trajectories, hit_arr, strict=True):
        if traj is None:
            continue
        pts = traj.positions if isinstance(traj, Trajectory) else np.asarray(traj)
        (hit_curves if h else miss_curves).append(pts)

    for curves, color, label in (
        (hit_curves, HIT_COLOR, "hit"),
        (miss_curves, MISS_COLOR, "miss"),
    ):
        if not curves:
            continue
        x, y, z = _polylines(curves)
        fig.add_trace(
            go.Scatter3d(
                x=x, y=y, z=z, mode="lines", name=label, line={"color": color, "width": 2}
            )
        )

    if sphere_radius is not None and sphere_radius > 0.0:
        sx, sy, sz = _polylines(sphere_wireframe(sphere_radius))
        fig.add_trace(
            go.Scatter3d(
                x=sx,
                y=sy,
                z=sz,
                mode="lines",
                name="protected volume",
                line={"color": "#1f77b4", "width": 1},
                opacity=0.4,
            )
        )

    layout: dict[str, Any] = {
        "scene": {
            "aspectmode": "data",
            "xaxis": {"title": "x [m]"},
            "yaxis": {"title": "y [m]"},
            "zaxis": {"title": "z [m]"},
        },
        "margin": {"l": 0, "r": 0, "b": 0, "t": 30},
        "legend": {"orientation": "h"},
    }
    if r_plot is not None:
        rng = [-float(r_plot), float(r_plot)]
        layout["scene"]["aspectmode"] = "cube"
        layout["scene"]["xaxis"]["range"] = rng
        layout["scene"]["yaxis"]["range"] = rng
        layout["scene"]["zaxis"]["range"] = rng
    if height is not None:
        layout["height"] = height
    fig.update_layout(**layout)
    return fig


__all__ = [
    "compute_scene_ranges",
    "sphere_wireframe",
    "build_shield_figure",
]
