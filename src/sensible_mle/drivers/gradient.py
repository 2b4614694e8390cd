from __future__ import annotations

import warnings
from typing import Any, Callable, Dict, Literal, Optional, Tuple

import numpy as np
from scipy.optimize import line_search

from ..covariance import Trajectory
from ..estimate import Status
from ..objective import EvaluationContext
from ..util import format_vector
from .common import DriverResult, iteration_cap

MAX_ITERATIONS_W_D = 2500

DEFAULT_STEP = 0.05
DEFAULT_TOLERANCE = 1e-3

UpdateRule = Literal["fletcher_reeves", "polak_ribiere", "bfgs"]

_LineSearch = Tuple[Optional[float], np.ndarray, float, np.ndarray]


class GradientDriver:
    """Gradient descent on the negated log-likelihood with a Wolfe line search.

    The search direction comes from one of three update rules:

    - ``fletcher_reeves``: conjugate gradient, beta = |g_k|^2 / |g_{k-1}|^2
    - ``polak_ribiere``: conjugate gradient, beta = max(0, g_k.(g_k - g_{k-1}) / |g_{k-1}|^2)
    - ``bfgs``: quasi-Newton, inverse-Hessian secant update

    Each line search starts with a trial step of length ``step_size`` (then the
    length of the previous accepted step). When no step passes the Wolfe test,
    the search backtracks and takes any step that lowers the objective. A
    direction with no such step is retried once along steepest descent; a
    second failure ends the run with ``FAILED`` at the best point so far.
    Converged when the gradient norm drops below ``tolerance``.

    Where a constraint binds, the descent uses a numerical derivative of the
    penalized objective instead of the model score.
    """

    default_start = 0.1
    max_iterations = MAX_ITERATIONS_W_D
    records_trajectory = True

    def __init__(self, name: str, rule: UpdateRule):
        if rule not in ("fletcher_reeves", "polak_ribiere", "bfgs"):
            raise ValueError(f"Unknown update rule {rule!r}.")
        self.name = name
        self.rule = rule
        # Curvature condition: loose for quasi-Newton, tight for conjugate gradients.
        self.c2 = 0.9 if rule == "bfgs" else 0.1

    def run(self, ctx: EvaluationContext, x0: np.ndarray) -> DriverResult:
        cfg = ctx.config
        step = float(cfg.step_size) if cfg.step_size else DEFAULT_STEP
        tol = float(cfg.tolerance) if cfg.tolerance else DEFAULT_TOLERANCE
        cap = iteration_cap(ctx, self.max_iterations)
        trajectory = Trajectory()

        def f(x: np.ndarray) -> float:
            return ctx.objective(x)

        def fprime(x: np.ndarray) -> np.ndarray:
            # Inside the penalty region, differentiate the penalized objective.
            if ctx.penalty(x) > 0:
                return ctx.objective_gradient(x)
            return -ctx.gradient(x)

        x = np.array(x0, dtype=float).reshape((-1,))
        n = int(x.shape[0])
        fx = f(x)
        g = fprime(x)
        stats: Dict[str, Any] = {"driver": self.name, "rule": self.rule, "restarts": 0}

        if not (np.isfinite(fx) and np.all(np.isfinite(g))):
            return DriverResult(
                flat=x,
                status=Status.FAILED,
                iterations=0,
                message="objective or gradient not finite at the starting point",
                trajectory=trajectory,
                stats=stats,
            )
        if float(np.linalg.norm(g)) < tol:
            return DriverResult(
                flat=x,
                status=Status.CONVERGED,
                iterations=0,
                message="gradient below tolerance at the starting point",
                trajectory=trajectory,
                stats=stats,
            )

        p = -g
        h_inv = np.eye(n)
        trial = step
        # True while h_inv is the identity (first step, after a restart).
        fresh = True
        status = Status.MAX_ITERATIONS
        message = "maximum number of iterations reached"
        it = 0

        while it < cap:
            it += 1
            natural = self.rule == "bfgs" and not fresh
            alpha, x_new, f_new, g_new = self._line_search(
                f, fprime, x, p, g, fx, None if natural else trial
            )
            if alpha is None and not np.array_equal(p, -g):
                stats["restarts"] += 1
                p = -g
                h_inv = np.eye(n)
                fresh = True
                alpha, x_new, f_new, g_new = self._line_search(f, fprime, x, p, g, fx, trial)
            if alpha is None:
                status = Status.FAILED
                message = "no step along the search direction lowers the objective"
                break

            s = x_new - x
            y = g_new - g
            g_old = g
            x, fx, g = x_new, f_new, g_new
            moved = float(np.linalg.norm(s))
            trial = moved if moved > 0.0 else step

            if cfg.want_cov:
                trajectory.record(-g, -fx)

            gnorm = float(np.linalg.norm(g))
            if cfg.verbose:
                print(f"{it:5d} {format_vector(x)}  f()={fx:10.5f} |gradient|={gnorm:.3g}")
            if gnorm < tol:
                status = Status.CONVERGED
                message = "gradient below tolerance"
                if cfg.verbose:
                    print("Minimum found.")
                break

            if self.rule == "bfgs":
                h_inv = _bfgs_update(h_inv, s, y)
                fresh = False
                p = -h_inv @ g
            else:
                p = -g + _cg_beta(self.rule, g, g_old) * p
                if it % n == 0:
                    p = -g
            if not float(p @ g) < 0.0:
                p = -g
                h_inv = np.eye(n)
                fresh = True

        if status is Status.MAX_ITERATIONS and cfg.verbose:
            print("No minimum found within the iteration cap.")
        stats["fun"] = float(fx)
        stats["gradient_norm"] = float(np.linalg.norm(g))
        return DriverResult(
            flat=x,
            status=status,
            iterations=it,
            message=message,
            trajectory=trajectory,
            stats=stats,
        )

    def _line_search(
        self,
        f: Callable[[np.ndarray], float],
        fprime: Callable[[np.ndarray], np.ndarray],
        x: np.ndarray,
        p: np.ndarray,
        g: np.ndarray,
        fx: float,
        trial: Optional[float],
    ) -> _LineSearch:
        pnorm = float(np.linalg.norm(p))
        if not (pnorm > 0.0 and np.isfinite(pnorm)):
            return None, x, fx, g
        # Scale the direction so alpha = 1 is a step of length ``trial``;
        # quasi-Newton directions are used as they are.
        d = p if trial is None else p * (trial / pnorm)
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", message="The line search algorithm")
            with np.errstate(over="ignore", invalid="ignore"):
                alpha, _, _, f_new, _, _ = line_search(
                    f, fprime, x, d, gfk=g, old_fval=fx, c2=self.c2, maxiter=20
                )
        if alpha is not None:
            x_new = x + alpha * d
            if f_new is None:
                f_new = f(x_new)
            g_new = fprime(x_new)
            if np.isfinite(f_new) and np.all(np.isfinite(g_new)):
                return float(alpha), x_new, float(f_new), g_new

        alpha, f_new = _backtrack(f, x, d, fx)
        if alpha is None:
            return None, x, fx, g
        x_new = x + alpha * d
        g_new = fprime(x_new)
        if not np.all(np.isfinite(g_new)):
            return None, x, fx, g
        return alpha, x_new, f_new, g_new


def _backtrack(
    f: Callable[[np.ndarray], float],
    x: np.ndarray,
    d: np.ndarray,
    fx: float,
    shrink: float = 0.5,
    max_halvings: int = 40,
) -> Tuple[Optional[float], float]:
    """First step ``alpha = shrink**k`` along ``d`` that lowers ``f`` below ``fx``."""
    alpha = 1.0
    for _ in range(max_halvings):
        f_new = f(x + alpha * d)
        if np.isfinite(f_new) and f_new < fx:
            return alpha, float(f_new)
        alpha *= shrink
    return None, fx


def _cg_beta(rule: str, g: np.ndarray, g_old: np.ndarray) -> float:
    denom = float(g_old @ g_old)
    if denom <= 0.0:
        return 0.0
    if rule == "fletcher_reeves":
        return float(g @ g) / denom
    return max(0.0, float(g @ (g - g_old)) / denom)


def _bfgs_update(h_inv: np.ndarray, s: np.ndarray, y: np.ndarray) -> np.ndarray:
    sy = float(s @ y)
    if not sy > 1e-12:
        # Curvature condition failed; keep the previous approximation.
        return h_inv
    rho = 1.0 / sy
    eye = np.eye(h_inv.shape[0])
    a = eye - rho * np.outer(s, y)
    return a @ h_inv @ a.T + rho * np.outer(s, s)
