from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol

from coilshield.errors import ConfigurationError
from coilshield.types import FloatArray

# method names accepted by scipy.integrate.solve_ivp
IVP_METHODS = ("RK23", "RK45", "DOP853", "Radau", "BDF", "LSODA")


class RhsFun(Protocol):
    """Return dy/dt for state y at time t."""

    def __call__(self, t: float, y: FloatArray) -> FloatArray: ...


@dataclass(frozen=True)
class IvpOptions:
    method: str = "RK45"
    rtol: float = 1e-3
    atol: float = 1e-6
    max_step: float = math.inf
    max_nfev: int = 200_000
    fallback_methods: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        for name in (self.method, *self.fallback_methods):
            if name not in IVP_METHODS:
                raise ConfigurationError(
                    f"Unsupported integration method: {name} (expected one of {IVP_METHODS})"
                )
        if not self.rtol > 0.0:
            raise ConfigurationError(f"rtol must be > 0, got {self.rtol}")
        if not self.atol > 0.0:
            raise ConfigurationError(f"atol must be > 0, got {self.atol}")
        if not self.max_step > 0.0:
            raise ConfigurationError(f"max_step must be > 0, got {self.max_step}")
        if self.max_nfev < 1:
            raise ConfigurationError(f"max_nfev must be >= 1, got {self.max_nfev}")


@dataclass
class IvpResult:
    t: FloatArray
    y: FloatArray
    nfev: int
    method: str
    success: bool
    message: str
