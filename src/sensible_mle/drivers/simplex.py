from __future__ import annotations

from typing import Any, Dict

import numpy as np
from scipy.optimize import minimize

from ..covariance import Trajectory
from ..estimate import Status
from ..objective import EvaluationContext
from ..util import format_vector
from .common import DriverResult, iteration_cap

MAX_ITERATIONS = 5000


class SimplexDriver:
    """Derivative-free Nelder-Mead search (scipy.optimize.minimize).

    The initial simplex is the start point plus ``step_size`` along each axis.
    Convergence is purely size-based: every vertex within ``tolerance`` of the
    best one in each coordinate. No scores are recorded, so this driver leaves
    the covariance trajectory empty.
    """

    name = "simplex"
    default_start = 0.0
    max_iterations = MAX_ITERATIONS
    records_trajectory = False

    def run(self, ctx: EvaluationContext, x0: np.ndarray) -> DriverResult:
        cfg = ctx.config
        step = float(cfg.step_size) if cfg.step_size else 1.0
        tol = float(cfg.tolerance) if cfg.tolerance else 1e-3
        cap = iteration_cap(ctx, self.max_iterations)

        x0 = np.asarray(x0, dtype=float).reshape((-1,))
        n = int(x0.shape[0])
        initial_simplex = np.vstack([x0, x0[None, :] + step * np.eye(n)])

        counter = {"iter": 0}

        def _report(intermediate_result: Any) -> None:
            counter["iter"] += 1
            if cfg.verbose:
                xk = np.asarray(intermediate_result.x, dtype=float)
                print(f"{counter['iter']:5d} {format_vector(xk)} f()={float(intermediate_result.fun):7.3f}")

        res = minimize(
            lambda v: ctx.objective(np.asarray(v, dtype=float)),
            x0,
            method="Nelder-Mead",
            callback=_report,
            options={
                "initial_simplex": initial_simplex,
                "xatol": tol,
                "fatol": np.inf,
                "maxiter": cap,
                "adaptive": False,
            },
        )

        nit = int(getattr(res, "nit", counter["iter"]) or 0)
        if res.status == 0:
            status = Status.CONVERGED
            if cfg.verbose:
                print(f"Optimum found at: {format_vector(res.x)} f()={float(res.fun):7.3f}")
        elif res.status in (1, 2):
            status = Status.MAX_ITERATIONS
        else:
            status = Status.FAILED

        stats: Dict[str, Any] = {
            "driver": self.name,
            "nfev": int(getattr(res, "nfev", 0) or 0),
            "fun": float(res.fun),
        }
        return DriverResult(
            flat=np.asarray(res.x, dtype=float),
            status=status,
            iterations=nit,
            message=str(res.message),
            trajectory=Trajectory(),
            stats=stats,
        )
