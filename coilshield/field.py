from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike

from coilshield.errors import ConfigurationError, NumericSingularityError
from coilshield.physics import field_at_point, field_at_points
from coilshield.types import Exclusion, FieldContext, FloatArray

__all__ = ["evaluate_field", "evaluate_field_points", "check_field_context"]


def check_field_context(ctx: FieldContext) -> None:
    if ctx.midpoints.shape != ctx.directions.shape or ctx.midpoints.ndim != 2:
        raise ConfigurationError("midpoints and directions must both have shape (N, 3)")
    if ctx.midpoints.shape[1] != 3:
        raise ConfigurationError(f"panels must be 3D, got shape {ctx.midpoints.shape}")
    if ctx.panels_per_coil < 1:
        raise ConfigurationError("panels_per_coil must be >= 1")
    if not ctx.min_distance > 0.0:
        raise ConfigurationError("min_distance must be > 0")


def evaluate_field(
    point: ArrayLike,
    ctx: FieldContext,
    exclude: Exclusion | None = None,
) -> FloatArray:
    """
    Magnetic field [T] at one point from every panel not covered by ``exclude``.

    Raises NumericSingularityError when the point lies within
    ``ctx.min_distance`` of an included panel midpoint.
    """
    check_field_context(ctx)
    x = np.asarray(point, dtype=np.float64).reshape(-1)
    if x.shape != (3,):
        raise ValueError(f"point must be a 3-vector, got shape {x.shape}")
    lo, hi = (exclude or Exclusion.none()).panel_range(ctx.panels_per_coil, ctx.n_panels)

    if ctx.n_panels:
        d2 = np.sum((ctx.midpoints - x[None, :]) ** 2, axis=1)
        d2[lo:hi] = np.inf
        j = int(np.argmin(d2))
        if d2[j] < ctx.min_distance**2:
            raise NumericSingularityError(
                f"field point {x.tolist()} coincides with midpoint of panel {j}"
            )

    bx, by, bz = field_at_point(
        float(x[0]),
        float(x[1]),
        float(x[2]),
        ctx.midpoints,
        ctx.directions,
        ctx.factor,
        lo,
        hi,
        ctx.min_distance,
    )
    return np.array([bx, by, bz], dtype=np.float64)


def evaluate_field_points(points: ArrayLike, ctx: FieldContext) -> FloatArray:
    """Field at many points; distances below the floor are clamped, not raised."""
    check_field_context(ctx)
    pts = np.ascontiguousarray(np.asarray(points, dtype=np.float64).reshape(-1, 3))
    return field_at_points(pts, ctx.midpoints, ctx.directions, ctx.factor, ctx.min_distance)
