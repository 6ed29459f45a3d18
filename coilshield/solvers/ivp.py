from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from scipy.integrate import solve_ivp

from coilshield.solvers.types import IvpOptions, IvpResult, RhsFun
from coilshield.types import FloatArray

logger = logging.getLogger(__name__)


class _BudgetExceeded(Exception):
    pass


@dataclass
class _CountingRhs:
    fun: RhsFun
    max_nfev: int
    nfev: int = 0

    def __call__(self, t: float, y: FloatArray) -> FloatArray:
        self.nfev += 1
        if self.nfev > self.max_nfev:
            raise _BudgetExceeded
        return self.fun(t, y)


def solve_ivp_budgeted(
    fun: RhsFun,
    t_span: tuple[float, float],
    y0: Sequence[float] | FloatArray,
    options: IvpOptions,
) -> IvpResult:
    """
    solve_ivp with a right-hand-side evaluation budget and method fallback.

    Returns an unsuccessful IvpResult (never raises) when every method fails,
    runs out of budget, or produces non-finite states.
    """
    y0_arr = np.array(y0, dtype=np.float64, copy=True)
    methods = (options.method, *options.fallback_methods)
    total_nfev = 0
    message = ""
    for method in methods:
        rhs = _CountingRhs(fun=fun, max_nfev=options.max_nfev)
        try:
            sol = solve_ivp(
                rhs,
                t_span,
                y0_arr,
                method=method,
                rtol=options.rtol,
                atol=options.atol,
                max_step=options.max_step,
            )
        except _BudgetExceeded:
            total_nfev += rhs.nfev
            message = f"{method}: exceeded {options.max_nfev} rhs evaluations"
            continue
        total_nfev += rhs.nfev
        if not sol.success:
            message = f"{method}: {sol.message}"
            continue
        if not np.all(np.isfinite(sol.y)):
            message = f"{method}: non-finite state"
            continue
        if method != methods[0]:
            logger.info("Integration fallback: %s succeeded after %s", method, message)
        return IvpResult(
            t=np.asarray(sol.t, dtype=np.float64),
            y=np.ascontiguousarray(sol.y.T, dtype=np.float64),
            nfev=total_nfev,
            method=method,
            success=True,
            message=str(sol.message),
        )

    return IvpResult(
        t=np.zeros(0, dtype=np.float64),
        y=np.zeros((0, y0_arr.size), dtype=np.float64),
        nfev=total_nfev,
        method=methods[-1],
        success=False,
        message=message,
    )


__all__ = ["solve_ivp_budgeted"]
