from __future__ import annotations

import math
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

import numpy as np
from numpy.typing import NDArray

F = TypeVar("F", bound=Callable[..., Any])
if TYPE_CHECKING:

    def njit(*args: Any, **kwargs: Any) -> Callable[[F], F]: ...

else:
    from numba import njit  # type: ignore[import-untyped]


@njit(cache=True, nogil=True)
def field_at_point(
    x: float,
    y: float,
    z: float,
    mp: NDArray[np.float64],
    dl: NDArray[np.float64],
    factor: float,
    lo: int,
    hi: int,
    min_distance: float,
) -> tuple[float, float, float]:
    """
    Midpoint Biot-Savart sum over panels, skipping indices in [lo, hi).

    Squared distances below min_distance**2 are clamped.
    """
    if factor == 0.0:
        return 0.0, 0.0, 0.0
    floor2 = min_distance * min_distance
    bx = 0.0
    by = 0.0
    bz = 0.0
    for j in range(mp.shape[0]):
        if j >= lo and j < hi:
            continue
        rx = x - mp[j, 0]
        ry = y - mp[j, 1]
        rz = z - mp[j, 2]
        r2 = rx * rx + ry * ry + rz * rz
        if r2 < floor2:
            r2 = floor2
        invr3 = 1.0 / (r2 * math.sqrt(r2))
        dx = dl[j, 0]
        dy = dl[j, 1]
        dz = dl[j, 2]
        bx += (dy * rz - dz * ry) * invr3
        by += (dz * rx - dx * rz) * invr3
        bz += (dx * ry - dy * rx) * invr3
    return factor * bx, factor * by, factor * bz


@njit(cache=True, nogil=True)
def field_at_points(
    pts: NDArray[np.float64],
    mp: NDArray[np.float64],
    dl: NDArray[np.float64],
    factor: float,
    min_distance: float,
) -> NDArray[np.float64]:
    M = pts.shape[0]
    out = np.zeros((M, 3), dtype=np.float64)
    for p in range(M):
        bx, by, bz = field_at_point(
            pts[p, 0], pts[p, 1], pts[p, 2], mp, dl, factor, 0, 0, min_distance
        )
        out[p, 0] = bx
        out[p, 1] = by
        out[p, 2] = bz
    return out


@njit(cache=True, nogil=True)
def panel_fields(
    mp: NDArray[np.float64],
    dl: NDArray[np.float64],
    factor: float,
    panels_per_coil: int,
    omit_coil: bool,
    min_distance: float,
) -> NDArray[np.float64]:
    """
    Field at every panel midpoint from all other panels (or all other coils).
    """
    n = mp.shape[0]
    out = np.zeros((n, 3), dtype=np.float64)
    for i in range(n):
        if omit_coil:
            lo = (i // panels_per_coil) * panels_per_coil
            hi = lo + panels_per_coil
        else:
            lo = i
            hi = i + 1
        bx, by, bz = field_at_point(mp[i, 0], mp[i, 1], mp[i, 2], mp, dl, factor, lo, hi, min_distance)
        out[i, 0] = bx
        out[i, 1] = by
        out[i, 2] = bz
    return out


@njit(cache=True, nogil=True)
def eom_relativistic(
    state: NDArray[np.float64],
    length_scale: float,
    mp: NDArray[np.float64],
    dl: NDArray[np.float64],
    factor: float,
    min_distance: float,
    charge_sign: float,
    inv_b_ref: float,
) -> NDArray[np.float64]:
    """
    d/ds of [x/R, p/(mc)] with s = omega0 * t.
    """
    px = state[3]
    py = state[4]
    pz = state[5]
    inv_gamma = 1.0 / math.sqrt(1.0 + px * px + py * py + pz * pz)
    vx = px * inv_gamma
    vy = py * inv_gamma
    vz = pz * inv_gamma
    bx, by, bz = field_at_point(
        state[0] * length_scale,
        state[1] * length_scale,
        state[2] * length_scale,
        mp,
        dl,
        factor,
        0,
        0,
        min_distance,
    )
    k = charge_sign * inv_b_ref
    out = np.empty(6, dtype=np.float64)
    out[0] = vx
    out[1] = vy
    out[2] = vz
    out[3] = k * (vy * bz - vz * by)
    out[4] = k * (vz * bx - vx * bz)
    out[5] = k * (vx * by - vy * bx)
    return out


@njit(cache=True, nogil=True)
def eom_classical(
    state: NDArray[np.float64],
    inv_omega: float,
    mp: NDArray[np.float64],
    dl: NDArray[np.float64],
    factor: float,
    min_distance: float,
    charge_sign: float,
    inv_b_ref: float,
) -> NDArray[np.float64]:
    """
    d/ds of [x, v] (SI units) with s = omega0 * t.
    """
    vx = state[3]
    vy = state[4]
    vz = state[5]
    bx, by, bz = field_at_point(state[0], state[1], state[2], mp, dl, factor, 0, 0, min_distance)
    k = charge_sign * inv_b_ref
    out = np.empty(6, dtype=np.float64)
    out[0] = vx * inv_omega
    out[1] = vy * inv_omega
    out[2] = vz * inv_omega
    out[3] = k * (vy * bz - vz * by)
    out[4] = k * (vz * bx - vx * bz)
    out[5] = k * (vx * by - vy * bx)
    return out


__all__ = [
    "field_at_point",
    "field_at_points",
    "panel_fields",
    "eom_relativistic",
    "eom_classical",
]
