from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike

from coilshield.field import check_field_context
from coilshield.physics import panel_fields
from coilshield.types import FieldContext, FloatArray

__all__ = ["compute_panel_fields", "compute_panel_forces", "compute_hoop_forces"]


def compute_panel_fields(ctx: FieldContext, *, exclude_self_coil: bool = False) -> FloatArray:
    check_field_context(ctx)
    return panel_fields(
        ctx.midpoints,
        ctx.directions,
        ctx.factor,
        ctx.panels_per_coil,
        bool(exclude_self_coil),
        ctx.min_distance,
    )


def compute_panel_forces(ctx: FieldContext, *, exclude_self_coil: bool = False) -> FloatArray:
    """
    Lorentz force [N] on every panel, F_i = I * (dL_i x B_i).

    B_i excludes panel i itself, or every panel of its coil when
    ``exclude_self_coil`` is set. Rows align with ``ctx.midpoints``.
    """
    B = compute_panel_fields(ctx, exclude_self_coil=exclude_self_coil)
    return ctx.current * np.cross(ctx.directions, B)


def compute_hoop_forces(
    panel_forces: ArrayLike,
    coil_points: ArrayLike,
) -> tuple[FloatArray, FloatArray]:
    """
    Net force on each coil and the coil's reference midpoint.

    ``coil_points`` is (n_coils, P, 3), or (P, 3) for a single coil. The
    midpoint averages the P-1 unique boundary points.
    """
    pts = np.asarray(coil_points, dtype=np.float64)
    if pts.ndim == 2:
        pts = pts[None, :, :]
    if pts.ndim != 3 or pts.shape[2] != 3:
        raise ValueError(f"coil_points must have shape (n_coils, P, 3), got {pts.shape}")
    n_coils, P, _ = pts.shape
    M = P - 1
    if M < 1:
        raise ValueError("each coil needs at least 2 points")

    forces = np.asarray(panel_forces, dtype=np.float64).reshape(-1, 3)
    if forces.shape[0] != n_coils * M:
        raise ValueError(
            f"expected {n_coils * M} panel forces for {n_coils} coils, got {forces.shape[0]}"
        )

    hoop_mp = pts[:, :M, :].mean(axis=1)
    coil_forces = forces.reshape(n_coils, M, 3).sum(axis=1)
    return coil_forces, hoop_mp
