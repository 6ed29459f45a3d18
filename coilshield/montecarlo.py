from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field, replace
from time import perf_counter
from typing import Any

import numpy as np
from numpy.typing import NDArray

from coilshield.constants import MIN_DISTANCE_DEFAULT, PARASITIC_EPS, SPHERE_RADIUS_DEFAULT
from coilshield.errors import ConfigurationError, IntegrationFailure
from coilshield.sampling import (
    DirectionPolicy,
    EnergyMode,
    InitialConditions,
    PositionMode,
    cone_half_angle,
    sample_initial_conditions,
)
from coilshield.solvers.types import IvpOptions
from coilshield.trajectory import (
    InitialState,
    Trajectory,
    classify_hit,
    phase_span,
    run_trajectory,
)
from coilshield.types import PROTON, CoilArray, FieldContext, Species

__all__ = [
    "MonteCarloConfig",
    "ParticleOutcome",
    "RunStatistics",
    "MonteCarloResult",
    "aggregate_outcomes",
    "simulate_particle",
    "run_monte_carlo",
]

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 1000

_DIRECTION_POLICIES = ("isotropic", "inward", "thresholded")
_POSITION_MODES = ("random", "grid")
_ENERGY_MODES = ("fixed", "power-law")


@dataclass(frozen=True)
class MonteCarloConfig:
    current: float = 1e6
    energy_mode: EnergyMode = "fixed"
    kinetic_energy_ev: float = 1e8
    energy_range_ev: tuple[float, float] = (1e6, 1e9)
    spectral_index: float = 1.0
    n_particles: int = 100
    threshold: float = 1.5
    direction_policy: DirectionPolicy = "thresholded"
    sampling: float = 2.0
    seed: int | None = 10
    relativistic: bool = True
    position_mode: PositionMode = "random"
    sphere_radius: float = SPHERE_RADIUS_DEFAULT
    workers: int = 1
    keep_trajectories: bool = False
    species: Species = PROTON
    ivp: IvpOptions = field(default_factory=IvpOptions)
    min_distance: float = MIN_DISTANCE_DEFAULT

    def __post_init__(self) -> None:
        if self.direction_policy not in _DIRECTION_POLICIES:
            raise ConfigurationError(f"Unsupported direction policy: {self.direction_policy}")
        if self.position_mode not in _POSITION_MODES:
            raise ConfigurationError(f"Unsupported position mode: {self.position_mode}")
        if self.energy_mode not in _ENERGY_MODES:
            raise ConfigurationError(f"Unsupported energy mode: {self.energy_mode}")
        if not math.isfinite(self.current):
            raise ConfigurationError("current must be finite")
        if self.n_particles < 0:
            raise ConfigurationError(f"n_particles must be >= 0, got {self.n_particles}")
        if not self.threshold > 0.0:
            raise ConfigurationError("threshold must be > 0")
        if not self.sphere_radius > self.threshold:
            raise ConfigurationError("sphere_radius must exceed threshold")
        if self.sampling < 1.0:
            raise ConfigurationError(f"sampling must be >= 1, got {self.sampling}")
        if self.energy_mode == "fixed" and not self.kinetic_energy_ev > 0.0:
            raise ConfigurationError("kinetic_energy_ev must be > 0")
        e_min, e_max = self.energy_range_ev
        if self.energy_mode == "power-law" and not 0.0 < e_min < e_max:
            raise ConfigurationError(f"invalid energy range: {self.energy_range_ev}")
        if self.workers < 1:
            raise ConfigurationError(f"workers must be >= 1, got {self.workers}")
        if not self.min_distance > 0.0:
            raise ConfigurationError("min_distance must be > 0")
        if self.direction_policy != "isotropic":
            cone_half_angle(
                self.direction_policy, self.sphere_radius, self.threshold, self.sampling
            )

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["energy_range_ev"] = list(self.energy_range_ev)
        out["ivp"]["fallback_methods"] = list(self.ivp.fallback_methods)
        return out


@dataclass(frozen=True)
class ParticleOutcome:
    index: int
    hit: bool
    hit_unshielded: bool
    failed: bool
    message: str = ""
    nfev: int = 0
    trajectory: Trajectory | None = None
    trajectory_unshielded: Trajectory | None = None


@dataclass(frozen=True)
class RunStatistics:
    n_requested: int
    n_particles: int
    n_failed: int
    n_baseline_hits: int
    n_deflected: int
    n_parasitic: int
    deflection_rate: float
    parasitic_rate: float
    rates_defined: bool
    seed_entropy: int | list[int] | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MonteCarloResult:
    statistics: RunStatistics
    initial_conditions: InitialConditions
    hit: NDArray[np.bool_]
    hit_unshielded: NDArray[np.bool_]
    failed: NDArray[np.bool_]
    trajectories: list[Trajectory | None] | None = None
    trajectories_unshielded: list[Trajectory | None] | None = None

    @property
    def deflection_rate(self) -> float:
        return self.statistics.deflection_rate

    @property
    def parasitic_rate(self) -> float:
        return self.statistics.parasitic_rate


def aggregate_outcomes(
    hit: NDArray[np.bool_],
    hit_unshielded: NDArray[np.bool_],
    failed: NDArray[np.bool_],
    *,
    n_requested: int,
    seed_entropy: int | list[int] | None = None,
) -> RunStatistics:
    """
    Count parasitic, deflected and baseline hits over particles that did not fail.

    deflection_rate is NaN (rates_defined False) when nothing hit unshielded.
    """
    ok = ~np.asarray(failed, dtype=bool)
    res = np.asarray(hit, dtype=bool) & ok
    res_0 = np.asarray(hit_unshielded, dtype=bool) & ok

    n_parasitic = int(np.sum(res & ~res_0))
    n_deflected = int(np.sum(~res & res_0))
    n_initial = int(np.sum(res_0))

    rates_defined = n_initial > 0
    defl_rate = (n_deflected - n_parasitic) / n_initial if rates_defined else float("nan")
    par_rate = n_parasitic / (n_deflected + PARASITIC_EPS)

    return RunStatistics(
        n_requested=int(n_requested),
        n_particles=int(ok.size),
        n_failed=int(np.sum(~ok)),
        n_baseline_hits=n_initial,
        n_deflected=n_deflected,
        n_parasitic=n_parasitic,
        deflection_rate=float(defl_rate),
        parasitic_rate=float(par_rate),
        rates_defined=rates_defined,
        seed_entropy=seed_entropy,
    )


def simulate_particle(
    index: int,
    ics: InitialConditions,
    ctx_on: FieldContext,
    ctx_off: FieldContext,
    config: MonteCarloConfig,
) -> ParticleOutcome:
    """Integrate one particle with the shield on and off and classify both runs."""
    initial = InitialState(
        position=ics.positions[index],
        direction=ics.directions[index],
        kinetic_energy_ev=float(ics.energies_ev[index]),
        species=config.species,
    )
    span = phase_span(initial.kinetic_energy_ev, 2.0 * config.sphere_radius, config.species)
    # samples no further apart than the threshold radius
    _, step_cap = phase_span(initial.kinetic_energy_ev, config.threshold, config.species)
    opts = replace(config.ivp, max_step=min(config.ivp.max_step, step_cap))
    try:
        traj = run_trajectory(
            initial, ctx_on, relativistic=config.relativistic, span=span, options=opts
        )
        traj_0 = run_trajectory(
            initial, ctx_off, relativistic=config.relativistic, span=span, options=opts
        )
    except IntegrationFailure as exc:
        logger.warning("particle %d skipped: integration failed (%s)", index, exc)
        return ParticleOutcome(
            index=index,
            hit=False,
            hit_unshielded=False,
            failed=True,
            message=str(exc),
            nfev=exc.nfev,
        )

    keep = config.keep_trajectories
    return ParticleOutcome(
        index=index,
        hit=classify_hit(traj, config.threshold),
        hit_unshielded=classify_hit(traj_0, config.threshold),
        failed=False,
        nfev=traj.nfev + traj_0.nfev,
        trajectory=traj if keep else None,
        trajectory_unshielded=traj_0 if keep else None,
    )


def _collect(outcomes: Iterable[ParticleOutcome], n: int) -> list[ParticleOutcome]:
    out: list[ParticleOutcome] = []
    for done, outcome in enumerate(outcomes, start=1):
        out.append(outcome)
        if done % PROGRESS_EVERY == 0:
            logger.info("  Completed %d runs out of %d", done, n)
    return out


def run_monte_carlo(coil_array: CoilArray, config: MonteCarloConfig) -> MonteCarloResult:
    """
    Shielding effectiveness of ``coil_array`` by Monte Carlo particle bombardment.

    Particles are independent; with ``config.workers > 1`` they run on a
    thread pool and give the same statistics as a sequential run.
    """
    ics, entropy = sample_initial_conditions(
        config.n_particles,
        seed=config.seed,
        sphere_radius=config.sphere_radius,
        position_mode=config.position_mode,
        direction_policy=config.direction_policy,
        threshold=config.threshold,
        sampling=config.sampling,
        energy_mode=config.energy_mode,
        kinetic_energy_ev=config.kinetic_energy_ev,
        energy_range_ev=config.energy_range_ev,
        spectral_index=config.spectral_index,
    )
    n = ics.n
    ctx_on = FieldContext.from_coil_array(
        coil_array, config.current, min_distance=config.min_distance
    )
    ctx_off = ctx_on.with_current(0.0)

    logger.info("========= Field Effectiveness =========")
    logger.info("  Testing field with N=%d runs (workers=%d)", n, config.workers)
    if config.seed is None:
        logger.info("  Unseeded run, entropy=%s", entropy)
    t0 = perf_counter()

    def one(i: int) -> ParticleOutcome:
        return simulate_particle(i, ics, ctx_on, ctx_off, config)

    if config.workers == 1 or n <= 1:
        outcomes = _collect((one(i) for i in range(n)), n)
    else:
        with ThreadPoolExecutor(max_workers=config.workers) as pool:
            outcomes = _collect(pool.map(one, range(n)), n)

    hit = np.array([o.hit for o in outcomes], dtype=bool)
    hit_0 = np.array([o.hit_unshielded for o in outcomes], dtype=bool)
    failed = np.array([o.failed for o in outcomes], dtype=bool)
    stats = aggregate_outcomes(
        hit, hit_0, failed, n_requested=config.n_particles, seed_entropy=entropy
    )

    logger.info(
        "  Done in %.3fs: baseline=%d deflected=%d parasitic=%d failed=%d",
        perf_counter() - t0,
        stats.n_baseline_hits,
        stats.n_deflected,
        stats.n_parasitic,
        stats.n_failed,
    )
    if stats.n_failed:
        logger.warning("%d of %d particles excluded after integration failure", stats.n_failed, n)
    if not stats.rates_defined:
        logger.warning("No particle hit with the shield off; deflection rate undefined")

    trajectories = None
    trajectories_0 = None
    if config.keep_trajectories:
        trajectories = [o.trajectory for o in outcomes]
        trajectories_0 = [o.trajectory_unshielded for o in outcomes]

    return MonteCarloResult(
        statistics=stats,
        initial_conditions=ics,
        hit=hit,
        hit_unshielded=hit_0,
        failed=failed,
        trajectories=trajectories,
        trajectories_unshielded=trajectories_0,
    )
