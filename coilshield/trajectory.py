from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import ArrayLike

from coilshield.constants import B_REF_T, ELEMENTARY_CHARGE_C, SPEED_OF_LIGHT
from coilshield.errors import ConfigurationError, IntegrationFailure
from coilshield.field import check_field_context
from coilshield.physics import eom_classical, eom_relativistic
from coilshield.solvers.ivp import solve_ivp_budgeted
from coilshield.solvers.types import IvpOptions
from coilshield.types import PROTON, FieldContext, FloatArray, Species

__all__ = [
    "InitialState",
    "Trajectory",
    "speed_from_energy",
    "momentum_from_energy",
    "larmor_radius",
    "cyclotron_frequency",
    "phase_span",
    "initial_ode_state",
    "run_trajectory",
    "segment_intersects_sphere",
    "classify_hit",
]


@dataclass(frozen=True)
class InitialState:
    position: FloatArray
    direction: FloatArray
    kinetic_energy_ev: float
    species: Species = field(default=PROTON)


@dataclass(frozen=True)
class Trajectory:
    phase: FloatArray
    positions: FloatArray
    nfev: int
    method: str


def speed_from_energy(kinetic_energy_ev: ArrayLike, species: Species = PROTON) -> FloatArray:
    """Relativistic speed [m/s] for a kinetic energy in eV."""
    ke_j = np.asarray(kinetic_energy_ev, dtype=np.float64) * ELEMENTARY_CHARGE_C
    rest = species.mass_kg * SPEED_OF_LIGHT**2
    return SPEED_OF_LIGHT * np.sqrt(1.0 - (rest / (ke_j + rest)) ** 2)


def momentum_from_energy(kinetic_energy_ev: ArrayLike, species: Species = PROTON) -> FloatArray:
    """Momentum in units of mc, i.e. gamma * beta."""
    ke_j = np.asarray(kinetic_energy_ev, dtype=np.float64) * ELEMENTARY_CHARGE_C
    rest = species.mass_kg * SPEED_OF_LIGHT**2
    return np.sqrt((1.0 + ke_j / rest) ** 2 - 1.0)


def larmor_radius(species: Species = PROTON, b_ref: float = B_REF_T) -> float:
    return species.mass_kg * SPEED_OF_LIGHT / (abs(species.charge_c) * b_ref)


def cyclotron_frequency(species: Species = PROTON, b_ref: float = B_REF_T) -> float:
    return abs(species.charge_c) * b_ref / species.mass_kg


def phase_span(
    kinetic_energy_ev: float, distance: float, species: Species = PROTON
) -> tuple[float, float]:
    """Phase interval [0, omega0 * distance / v] for crossing ``distance`` at speed v(KE)."""
    if kinetic_energy_ev <= 0.0:
        raise ConfigurationError("kinetic energy must be > 0")
    v = float(speed_from_energy(kinetic_energy_ev, species))
    return 0.0, cyclotron_frequency(species) * float(distance) / v


def initial_ode_state(initial: InitialState, relativistic: bool) -> FloatArray:
    pos = np.asarray(initial.position, dtype=np.float64).reshape(3)
    direction = np.asarray(initial.direction, dtype=np.float64).reshape(3)
    norm = float(np.linalg.norm(direction))
    if not norm > 0.0:
        raise ConfigurationError("launch direction must be non-zero")
    if initial.kinetic_energy_ev <= 0.0:
        raise ConfigurationError("kinetic energy must be > 0")
    direction = direction / norm
    if relativistic:
        R = larmor_radius(initial.species)
        p_hat = float(momentum_from_energy(initial.kinetic_energy_ev, initial.species))
        return np.concatenate([pos / R, direction * p_hat])
    v = float(speed_from_energy(initial.kinetic_energy_ev, initial.species))
    return np.concatenate([pos, direction * v])


def run_trajectory(
    initial: InitialState,
    ctx: FieldContext,
    *,
    relativistic: bool = True,
    span: tuple[float, float],
    options: IvpOptions | None = None,
) -> Trajectory:
    """
    Integrate one particle through the field of ``ctx`` over the phase ``span``.

    The right-hand side closes over ``ctx``; nothing is shared between calls,
    so concurrent calls are safe. Positions come back in metres.

    Raises IntegrationFailure when the solver does not finish within its budget.
    """
    check_field_context(ctx)
    opts = options or IvpOptions()
    species = initial.species
    y0 = initial_ode_state(initial, relativistic)

    mp = ctx.midpoints
    dl = ctx.directions
    factor = ctx.factor
    floor = ctx.min_distance
    sign = math.copysign(1.0, species.charge_c)
    inv_b = 1.0 / B_REF_T

    if relativistic:
        R = larmor_radius(species)

        def rhs(s: float, y: FloatArray) -> FloatArray:
            return eom_relativistic(y, R, mp, dl, factor, floor, sign, inv_b)

    else:
        R = 1.0
        inv_omega = 1.0 / cyclotron_frequency(species)

        def rhs(s: float, y: FloatArray) -> FloatArray:
            return eom_classical(y, inv_omega, mp, dl, factor, floor, sign, inv_b)

    res = solve_ivp_budgeted(rhs, span, y0, opts)
    if not res.success:
        raise IntegrationFailure(res.message, nfev=res.nfev, method=res.method)

    return Trajectory(
        phase=res.t,
        positions=np.ascontiguousarray(res.y[:, :3] * R),
        nfev=res.nfev,
        method=res.method,
    )


def segment_intersects_sphere(a: ArrayLike, b: ArrayLike, radius: float) -> bool:
    """True when some point of segment ab lies within ``radius`` of the origin."""
    p = np.asarray(a, dtype=np.float64).reshape(3)
    d = np.asarray(b, dtype=np.float64).reshape(3) - p
    dd = float(np.dot(d, d))
    t = 0.0 if dd == 0.0 else min(1.0, max(0.0, -float(np.dot(p, d)) / dd))
    closest = p + t * d
    return bool(np.dot(closest, closest) <= radius * radius)


def classify_hit(trajectory: Trajectory | ArrayLike, threshold: float) -> bool:
    """
    Hit test on the trajectory segment around its closest approach to the origin.

    The nearest sample is paired with whichever neighbour is nearer (the only
    neighbour at either end) and that straight segment is tested against the
    sphere, so a dip below ``threshold`` between samples still counts.
    """
    if isinstance(trajectory, Trajectory):
        pts = trajectory.positions
    else:
        pts = np.asarray(trajectory, dtype=np.float64).reshape(-1, 3)
    n = pts.shape[0]
    if n == 0:
        raise ValueError("trajectory is empty")
    if n == 1:
        return segment_intersects_sphere(pts[0], pts[0], threshold)

    mags = np.linalg.norm(pts, axis=1)
    ind = int(np.argmin(mags))
    if ind == n - 1:
        other = ind - 1
    elif ind == 0:
        other = 1
    elif mags[ind + 1] < mags[ind - 1]:
        other = ind + 1
    else:
        other = ind - 1
    return segment_intersects_sphere(pts[ind], pts[other], threshold)
