from __future__ import annotations

import logging
import math
from collections.abc import Sequence

import numpy as np
from numpy.typing import ArrayLike

from coilshield.errors import ConfigurationError
from coilshield.types import CoilArray, FloatArray

__all__ = [
    "build_coil_array",
    "racetrack_cross_section",
    "circle_cross_section",
    "toroidal_angles",
]

logger = logging.getLogger(__name__)


def _as_cross_section(cross_section: ArrayLike | Sequence[Sequence[float]]) -> FloatArray:
    geom = np.asarray(cross_section, dtype=np.float64)
    if geom.ndim != 2 or geom.shape[1] != 2:
        raise ConfigurationError(f"cross-section must have shape (P, 2), got {geom.shape}")
    if geom.shape[0] < 2:
        raise ConfigurationError(
            f"cross-section needs at least 2 points to form a panel, got {geom.shape[0]}"
        )
    if not np.all(np.isfinite(geom)):
        raise ConfigurationError("cross-section contains non-finite coordinates")
    return np.ascontiguousarray(geom)


def toroidal_angles(n_coils: int, alternating: bool) -> FloatArray:
    """In-plane rotation of each coil; odd coils gain an extra pi in alternating mode."""
    k = np.arange(n_coils, dtype=np.float64)
    theta = 2.0 * np.pi * k / n_coils
    if alternating:
        theta = theta + np.pi * (np.arange(n_coils) % 2)
    return theta


def build_coil_array(
    cross_section: ArrayLike | Sequence[Sequence[float]],
    n_coils: int,
    radius: float,
    alternating: bool = False,
) -> CoilArray:
    """
    Place a closed 2D cross-section around the z axis as a toroidal array of coils.

    The cross-section's (u, v) coordinates map to the local poloidal plane
    (radial, z); coil k sits at toroidal angle 2*pi*k/n_coils, centred at
    ``radius`` from the axis.
    """
    geom = _as_cross_section(cross_section)
    if int(n_coils) < 1:
        raise ConfigurationError(f"n_coils must be >= 1, got {n_coils}")
    n_coils = int(n_coils)
    radius = float(radius)
    if not math.isfinite(radius):
        raise ConfigurationError("radius must be finite")
    if n_coils % 4 != 0:
        logger.warning("coil count should be divisible by four, got %d", n_coils)
    if not np.allclose(geom[0], geom[-1]):
        logger.warning("cross-section is not closed; first and last points differ")

    P = geom.shape[0]
    coil_local = np.column_stack([geom[:, 0], np.zeros(P), geom[:, 1]])

    dtheta = 2.0 * np.pi / n_coils
    theta_c = np.arange(n_coils, dtype=np.float64) * dtheta
    centers = radius * np.column_stack([np.cos(theta_c), np.sin(theta_c), np.zeros(n_coils)])

    ang = toroidal_angles(n_coils, bool(alternating))
    c = np.cos(ang)
    s = np.sin(ang)
    A = np.zeros((n_coils, 3, 3), dtype=np.float64)
    A[:, 0, 0] = c
    A[:, 0, 1] = -s
    A[:, 1, 0] = s
    A[:, 1, 1] = c
    A[:, 2, 2] = 1.0

    points = centers[:, None, :] + np.einsum("kij,pj->kpi", A, coil_local)

    dL = np.diff(points, axis=1)
    mp = points[:, :-1, :] + 0.5 * dL

    return CoilArray(
        cross_section=geom,
        n_coils=n_coils,
        radius=radius,
        alternating=bool(alternating),
        points=np.ascontiguousarray(points),
        midpoints=np.ascontiguousarray(mp.reshape(-1, 3)),
        directions=np.ascontiguousarray(dL.reshape(-1, 3)),
    )


def _rounded_rect_point(t: float, sx: float, sz: float, rc: float) -> tuple[float, float]:
    # counter-clockwise from the outboard mid-plane (sx + rc, 0)
    q = 0.5 * np.pi * rc
    pieces = (sz, q, 2.0 * sx, q, 2.0 * sz, q, 2.0 * sx, q, sz)
    seg = 0
    for seg, length in enumerate(pieces):
        if t <= length or seg == len(pieces) - 1:
            break
        t -= length
    if seg == 0:
        return sx + rc, t
    if seg == 2:
        return sx - t, sz + rc
    if seg == 4:
        return -sx - rc, sz - t
    if seg == 6:
        return -sx + t, -sz - rc
    if seg == 8:
        return sx + rc, -sz + t
    corner = {1: (sx, sz, 0.0), 3: (-sx, sz, 0.5), 5: (-sx, -sz, 1.0), 7: (sx, -sz, 1.5)}[seg]
    cx, cz, a0 = corner
    phi = a0 * np.pi + (t / rc if rc > 0.0 else 0.0)
    return cx + rc * math.cos(phi), cz + rc * math.sin(phi)


def racetrack_cross_section(r_major: float, aspect_ratio: float, n_points: int) -> FloatArray:
    """
    Closed stadium of half-height ``r_major`` and half-width ``r_major / aspect_ratio``.

    Points are equally spaced in arc length, start on the outboard mid-plane
    and the last point repeats the first, so the polyline is mirror symmetric
    about z = 0.
    """
    if r_major <= 0.0 or aspect_ratio <= 0.0:
        raise ConfigurationError("r_major and aspect_ratio must be > 0")
    if n_points < 4:
        raise ConfigurationError(f"n_points must be >= 4, got {n_points}")
    half_h = float(r_major)
    half_w = float(r_major) / float(aspect_ratio)
    rc = min(half_w, half_h)
    sx = half_w - rc
    sz = half_h - rc
    perimeter = 4.0 * (sx + sz) + 2.0 * np.pi * rc

    n_unique = n_points - 1
    out = np.empty((n_points, 2), dtype=np.float64)
    for i in range(n_unique):
        out[i] = _rounded_rect_point(perimeter * i / n_unique, sx, sz, rc)
    out[-1] = out[0]
    return out


def circle_cross_section(radius: float, n_points: int) -> FloatArray:
    if radius <= 0.0:
        raise ConfigurationError("radius must be > 0")
    if n_points < 4:
        raise ConfigurationError(f"n_points must be >= 4, got {n_points}")
    phi = np.linspace(0.0, 2.0 * np.pi, n_points, dtype=np.float64)
    out = radius * np.column_stack([np.cos(phi), np.sin(phi)])
    out[-1] = out[0]
    return out
