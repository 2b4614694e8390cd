from __future__ import annotations

from typing import Any, Dict

import numpy as np
from scipy.optimize import root

from ..covariance import Trajectory
from ..estimate import Status
from ..objective import EvaluationContext
from ..util import format_vector
from .common import DriverResult, iteration_cap

MAX_ITERATIONS_ROOT = 1000

DEFAULT_TOLERANCE = 1e-6

# Driver name -> scipy.optimize.root method
ROOT_METHODS = {
    "root_newton": "krylov",
    "root_broyden": "broyden1",
    "root_hybrid": "hybr",
    "root_hybrid_unscaled": "hybr",
}


class RootDriver:
    """Solve ``score(theta) = 0`` with ``scipy.optimize.root``.

    - ``root_newton``: inexact Newton steps (Newton-Krylov)
    - ``root_broyden``: Broyden's good method
    - ``root_hybrid``: Powell's hybrid method with automatic variable scaling
    - ``root_hybrid_unscaled``: the same without internal scaling

    A root of the score may be a saddle or a minimum of the likelihood; check
    the log-likelihood against another method when in doubt. Every evaluation
    records its score for the covariance estimate.
    """

    default_start = 0.0
    max_iterations = MAX_ITERATIONS_ROOT
    records_trajectory = True

    def __init__(self, name: str):
        if name not in ROOT_METHODS:
            raise ValueError(f"Unknown root-finding method {name!r}.")
        self.name = name
        self.method = ROOT_METHODS[name]

    def _options(self, n: int, tol: float, cap: int) -> Dict[str, Any]:
        if self.method == "hybr":
            opts: Dict[str, Any] = {"xtol": tol, "maxfev": cap}
            if self.name == "root_hybrid_unscaled":
                # A user-supplied diag switches MINPACK to fixed scaling.
                opts["diag"] = np.ones(n)
            return opts
        return {"fatol": tol, "maxiter": cap}

    def run(self, ctx: EvaluationContext, x0: np.ndarray) -> DriverResult:
        cfg = ctx.config
        tol = float(cfg.tolerance) if cfg.tolerance else DEFAULT_TOLERANCE
        cap = iteration_cap(ctx, self.max_iterations)
        trajectory = Trajectory()
        counter = {"evals": 0}

        def score(x: np.ndarray) -> np.ndarray:
            x = np.asarray(x, dtype=float).reshape((-1,))
            g = ctx.gradient(x)
            ll = -ctx.objective(x)
            counter["evals"] += 1
            if cfg.want_cov:
                trajectory.record(g, ll)
            if cfg.verbose:
                print(f"{counter['evals']:5d} {format_vector(x)}  ll={ll:10.5f} |score|={np.linalg.norm(g):.3g}")
            return g

        x0 = np.asarray(x0, dtype=float).reshape((-1,))
        with np.errstate(over="ignore", invalid="ignore"):
            res = root(score, x0, method=self.method, options=self._options(x0.shape[0], tol, cap))

        if res.success:
            status = Status.CONVERGED
        elif int(getattr(res, "status", 0)) == 2:
            status = Status.MAX_ITERATIONS
        else:
            status = Status.FAILED

        iterations = getattr(res, "nit", None)
        if iterations is None:
            iterations = getattr(res, "nfev", counter["evals"])

        stats: Dict[str, Any] = {
            "driver": self.name,
            "scipy_method": self.method,
            "evaluations": counter["evals"],
        }
        return DriverResult(
            flat=np.asarray(res.x, dtype=float).reshape((-1,)),
            status=status,
            iterations=int(iterations),
            message=str(res.message),
            trajectory=trajectory,
            stats=stats,
        )
