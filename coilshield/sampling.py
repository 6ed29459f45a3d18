from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal

import numpy as np

from coilshield.constants import INWARD_CONE_MARGIN
from coilshield.errors import ConfigurationError
from coilshield.types import FloatArray

__all__ = [
    "DirectionPolicy",
    "PositionMode",
    "EnergyMode",
    "InitialConditions",
    "particle_generators",
    "sample_sphere_point",
    "sphere_grid_points",
    "sample_isotropic_direction",
    "sample_cone_direction",
    "cone_half_angle",
    "sample_power_law",
    "sample_initial_conditions",
]

DirectionPolicy = Literal["isotropic", "inward", "thresholded"]
PositionMode = Literal["random", "grid"]
EnergyMode = Literal["fixed", "power-law"]


@dataclass(frozen=True)
class InitialConditions:
    positions: FloatArray
    directions: FloatArray
    energies_ev: FloatArray

    @property
    def n(self) -> int:
        return int(self.positions.shape[0])


def particle_generators(
    n: int, seed: int | None
) -> tuple[list[np.random.Generator], int | list[int]]:
    """
    One independent generator per particle, derived from (seed, particle index).

    With ``seed=None`` fresh OS entropy is drawn; the entropy is returned so
    the run can be repeated.
    """
    ss = np.random.SeedSequence(seed)
    children = ss.spawn(n)
    entropy = ss.entropy
    if isinstance(entropy, (list, tuple)):
        entropy_out: int | list[int] = [int(e) for e in entropy]
    else:
        entropy_out = int(entropy)
    return [np.random.default_rng(child) for child in children], entropy_out


def _polar_unit_vector(u_theta: float, u_phi: float) -> FloatArray:
    theta = 2.0 * math.pi * u_theta
    phi = math.acos(2.0 * u_phi - 1.0)
    return np.array(
        [math.sin(phi) * math.cos(theta), math.sin(phi) * math.sin(theta), math.cos(phi)],
        dtype=np.float64,
    )


def sample_sphere_point(rng: np.random.Generator, radius: float) -> FloatArray:
    """Uniform point on a sphere by inverse-CDF polar sampling."""
    u = rng.random(2)
    return radius * _polar_unit_vector(float(u[0]), float(u[1]))


def sample_isotropic_direction(rng: np.random.Generator) -> FloatArray:
    u = rng.random(2)
    return _polar_unit_vector(float(u[0]), float(u[1]))


def sphere_grid_points(n_target: int, radius: float) -> FloatArray:
    """
    Latitude/longitude grid with ceil(sqrt(n_target)) divisions, duplicates removed.

    The number of points returned generally differs from ``n_target``.
    """
    if n_target <= 0:
        return np.zeros((0, 3), dtype=np.float64)
    n = int(math.ceil(math.sqrt(n_target)))
    lon = np.linspace(-math.pi, math.pi, n + 1)
    lat = np.linspace(-0.5 * math.pi, 0.5 * math.pi, n + 1)
    LON, LAT = np.meshgrid(lon, lat, indexing="xy")
    pts = np.column_stack(
        [
            (np.cos(LAT) * np.cos(LON)).ravel(),
            (np.cos(LAT) * np.sin(LON)).ravel(),
            np.sin(LAT).ravel(),
        ]
    )
    pts = np.unique(np.round(pts, 12) + 0.0, axis=0)
    return np.ascontiguousarray(pts * radius, dtype=np.float64)


def cone_half_angle(
    policy: DirectionPolicy, sphere_radius: float, threshold: float, sampling: float
) -> float:
    if policy == "inward":
        target = sphere_radius - INWARD_CONE_MARGIN
    elif policy == "thresholded":
        target = threshold * math.sqrt(sampling)
    else:
        raise ConfigurationError(f"policy {policy!r} has no cone")
    if not 0.0 < target < sphere_radius:
        raise ConfigurationError(
            f"sampling cone radius {target} must lie inside the launch sphere {sphere_radius}"
        )
    return math.asin(target / sphere_radius)


def sample_cone_direction(
    rng: np.random.Generator, axis: FloatArray, half_angle: float
) -> FloatArray:
    """Direction uniform in solid angle within ``half_angle`` of ``axis``."""
    w = np.asarray(axis, dtype=np.float64) / float(np.linalg.norm(axis))
    helper = np.array([1.0, 0.0, 0.0]) if abs(w[0]) < 0.9 else np.array([0.0, 1.0, 0.0])
    e1 = np.cross(w, helper)
    e1 /= np.linalg.norm(e1)
    e2 = np.cross(w, e1)

    u = rng.random(2)
    cos_a = 1.0 - float(u[0]) * (1.0 - math.cos(half_angle))
    sin_a = math.sqrt(max(0.0, 1.0 - cos_a * cos_a))
    phi = 2.0 * math.pi * float(u[1])
    return cos_a * w + sin_a * (math.cos(phi) * e1 + math.sin(phi) * e2)


def sample_power_law(
    rng: np.random.Generator, e_min: float, e_max: float, index: float
) -> float:
    """Inverse-CDF draw from dN/dE ~ E**-index on [e_min, e_max]."""
    u = float(rng.random())
    if abs(index - 1.0) < 1e-12:
        return e_min * (e_max / e_min) ** u
    g = 1.0 - index
    lo = e_min**g
    hi = e_max**g
    return (lo + u * (hi - lo)) ** (1.0 / g)


def sample_initial_conditions(
    n: int,
    *,
    seed: int | None,
    sphere_radius: float,
    position_mode: PositionMode,
    direction_policy: DirectionPolicy,
    threshold: float,
    sampling: float,
    energy_mode: EnergyMode,
    kinetic_energy_ev: float,
    energy_range_ev: tuple[float, float],
    spectral_index: float,
) -> tuple[InitialConditions, int | list[int]]:
    """
    Launch positions, unit directions and kinetic energies for a run.

    Each particle draws, in order, its position (random mode), direction and
    energy (power-law mode) from its own generator.
    """
    if position_mode == "grid":
        positions = sphere_grid_points(n, sphere_radius)
        n = positions.shape[0]
    elif position_mode == "random":
        positions = np.zeros((n, 3), dtype=np.float64)
    else:
        raise ConfigurationError(f"Unsupported position mode: {position_mode}")

    half_angle = 0.0
    if direction_policy != "isotropic":
        half_angle = cone_half_angle(direction_policy, sphere_radius, threshold, sampling)

    rngs, entropy = particle_generators(n, seed)
    directions = np.zeros((n, 3), dtype=np.float64)
    energies = np.full(n, float(kinetic_energy_ev), dtype=np.float64)
    e_min, e_max = energy_range_ev

    for i, rng in enumerate(rngs):
        if position_mode == "random":
            positions[i] = sample_sphere_point(rng, sphere_radius)
        if direction_policy == "isotropic":
            directions[i] = sample_isotropic_direction(rng)
        else:
            directions[i] = sample_cone_direction(rng, -positions[i], half_angle)
        if energy_mode == "power-law":
            energies[i] = sample_power_law(rng, e_min, e_max, spectral_index)

    return InitialConditions(positions=positions, directions=directions, energies_ev=energies), entropy
