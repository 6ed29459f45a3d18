from __future__ import annotations


class CoilShieldError(Exception):
    """Base class for coilshield errors."""


class ConfigurationError(CoilShieldError, ValueError):
    """Malformed geometry or run configuration; raised before any simulation work."""


class NumericSingularityError(CoilShieldError, ArithmeticError):
    """Field requested at (or within the distance floor of) a source panel midpoint."""


class IntegrationFailure(CoilShieldError, RuntimeError):
    def __init__(self, message: str, *, nfev: int = 0, method: str | None = None) -> None:
        super().__init__(message)
        self.nfev = nfev
        self.method = method


__all__ = [
    "CoilShieldError",
    "ConfigurationError",
    "NumericSingularityError",
    "IntegrationFailure",
]
