from __future__ import annotations

from typing import Any, Dict, Tuple

import numpy as np

from ..covariance import Trajectory
from ..estimate import Status
from ..objective import EvaluationContext
from ..params import pack
from ..util import format_vector
from .common import DriverResult, iteration_cap

MAX_TEMPERATURE_LEVELS = 100000


class AnnealingDriver:
    """Simulated annealing: a controlled random walk over the flat parameters.

    Early on, with a high temperature, the walk readily accepts worse points
    and can hop between local optima; as the temperature decays it settles
    into fine-tuning. The number of evaluations depends on the schedule, not
    on the function: ``iters_fixed_T`` proposals at each of the
    ``AnnealingSchedule.n_levels`` temperature levels.

    The best point ever visited is returned. Each accepted move records its
    score when covariance is requested.
    """

    name = "annealing"
    default_start = 1.0
    max_iterations = MAX_TEMPERATURE_LEVELS
    records_trajectory = True

    def run(self, ctx: EvaluationContext, x0: np.ndarray) -> DriverResult:
        cfg = ctx.config
        sched = cfg.annealing
        rng = cfg.random
        step = float(cfg.step_size) if cfg.step_size else 1.0
        cap = iteration_cap(ctx, self.max_iterations)
        trajectory = Trajectory()
        # Proposals are projected onto the feasible set in the step itself,
        # so the energy does not add penalties.
        energy_ctx = ctx.without_constraint()

        def energy(x: np.ndarray) -> float:
            return energy_ctx.objective(x)

        def record(x: np.ndarray, e: float) -> None:
            if cfg.want_cov:
                trajectory.record(energy_ctx.gradient(x), -e)

        x = np.array(x0, dtype=float).reshape((-1,))
        e = energy(x)
        record(x, e)
        best_x, best_e = x.copy(), e

        temperature = float(sched.t_initial)
        kb = float(sched.k)
        n_evals = 1
        levels = 0
        status = Status.MAX_ITERATIONS
        message = "maximum number of temperature levels reached"

        if cfg.verbose:
            print("#-level  #-evals  better accept reject  temperature     energy       best")

        while levels < cap:
            levels += 1
            n_accepts = n_rejects = n_eless = 0
            for _ in range(int(sched.iters_fixed_T)):
                new_x, new_e, tries = self._propose(ctx, rng, x, step, energy)
                n_evals += tries
                if not np.isfinite(new_e):
                    n_rejects += 1
                    continue
                if new_e <= best_e:
                    best_x, best_e = new_x.copy(), new_e
                if new_e < e:
                    x, e = new_x, new_e
                    n_eless += 1
                    record(x, e)
                elif rng.random() < _boltzmann(e, new_e, kb, temperature):
                    x, e = new_x, new_e
                    n_accepts += 1
                    record(x, e)
                else:
                    n_rejects += 1

            if cfg.verbose:
                line = (
                    f"{levels:7d}  {n_evals:7d}  {n_eless:6d} {n_accepts:6d} {n_rejects:6d}"
                    f"  {temperature:11.4g}  {e:10.4g}  {best_e:10.4g}"
                )
                if cfg.verbose > 1:
                    line += f"  {format_vector(x)}"
                print(line)

            temperature /= float(sched.mu_t)
            if temperature < float(sched.t_min):
                status = Status.CONVERGED
                message = "temperature reached t_min"
                break

        stats: Dict[str, Any] = {
            "driver": self.name,
            "evaluations": n_evals,
            "levels_planned": sched.n_levels,
            "temperature": temperature,
            "fun": float(best_e),
        }
        return DriverResult(
            flat=best_x,
            status=status,
            iterations=levels,
            message=message,
            trajectory=trajectory,
            stats=stats,
        )

    def _propose(
        self,
        ctx: EvaluationContext,
        rng: np.random.Generator,
        x: np.ndarray,
        step: float,
        energy: Any,
    ) -> Tuple[np.ndarray, float, int]:
        """Draw a move, redrawing up to ``n_tries`` times while the energy is not finite."""
        n_tries = int(ctx.config.annealing.n_tries)
        new_x, new_e = x, float("inf")
        for attempt in range(1, n_tries + 1):
            new_x = take_step(ctx, rng, x, step)
            new_e = energy(new_x)
            if np.isfinite(new_e):
                return new_x, new_e, attempt
        return new_x, new_e, n_tries


def take_step(
    ctx: EvaluationContext, rng: np.random.Generator, x: np.ndarray, step_size: float
) -> np.ndarray:
    """Random move with Manhattan length <= ``step_size``.

    Visit every dimension once in random order; shift each by a random sign
    times a uniform fraction of the step budget left, and shrink the budget
    by that fraction. The result is projected through the model constraint.
    """
    new = np.array(x, dtype=float)
    left = float(step_size)
    for dim in rng.permutation(new.shape[0]):
        sign = 1.0 if rng.random() > 0.5 else -1.0
        amt = float(rng.random())
        new[dim] += amt * left * sign
        left *= amt
    if ctx.use_constraint and ctx.model.constraint is not None:
        penalty, corrected = ctx.project(ctx.unpack(new))
        if penalty > 0:
            new = pack(corrected)
    return new


def _boltzmann(e: float, new_e: float, k: float, temperature: float) -> float:
    with np.errstate(over="ignore", invalid="ignore"):
        return float(np.exp(-(new_e - e) / (k * temperature)))
