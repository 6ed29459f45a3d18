"""Toroidal coil-array radiation shield package."""

from coilshield.errors import (
    CoilShieldError,
    ConfigurationError,
    IntegrationFailure,
    NumericSingularityError,
)
from coilshield.field import evaluate_field, evaluate_field_points
from coilshield.forces import compute_hoop_forces, compute_panel_forces
from coilshield.geom import build_coil_array, circle_cross_section, racetrack_cross_section
from coilshield.montecarlo import MonteCarloConfig, MonteCarloResult, run_monte_carlo
from coilshield.trajectory import InitialState, Trajectory, classify_hit, run_trajectory
from coilshield.types import PROTON, CoilArray, Exclusion, FieldContext, Species

__all__ = [
    "CoilShieldError",
    "ConfigurationError",
    "IntegrationFailure",
    "NumericSingularityError",
    "evaluate_field",
    "evaluate_field_points",
    "compute_hoop_forces",
    "compute_panel_forces",
    "build_coil_array",
    "circle_cross_section",
    "racetrack_cross_section",
    "MonteCarloConfig",
    "MonteCarloResult",
    "run_monte_carlo",
    "InitialState",
    "Trajectory",
    "classify_hit",
    "run_trajectory",
    "PROTON",
    "CoilArray",
    "Exclusion",
    "FieldContext",
    "Species",
]
