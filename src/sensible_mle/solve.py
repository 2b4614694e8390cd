from __future__ import annotations

from typing import Any, Optional
from warnings import warn

import numpy as np

from .config import Configuration, Method
from .covariance import estimate_covariance
from .drivers import get_driver
from .drivers.common import starting_point
from .estimate import Estimate, Status
from .model import Model
from .objective import EvaluationContext
from .util import is_bounded, observation_count


def solve(dataset: Any, model: Model, config: Optional[Configuration] = None) -> Estimate:
    """Maximize ``model``'s likelihood over ``dataset``.

    Parameters
    ----------
    dataset : any
        Passed through untouched to the model's callbacks. A 2-D ndarray is
        taken to hold one observation per row when scaling the covariance.
    model : Model
        Must provide a log-likelihood or a density.
    config : Configuration, optional
        Method, starting point, step size, tolerance, annealing schedule, ...
        Defaults to ``Configuration()`` (Fletcher-Reeves conjugate gradient).

    Returns
    -------
    Estimate
        Always returned once iteration starts; inspect ``status`` before
        trusting the parameters.

    Raises
    ------
    ModelError
        If the model has neither a log-likelihood nor a density.
    ValueError
        If the starting point does not match the model's parameter count.

    Notes
    -----
    The covariance is built from the scores recorded along the search path
    (see :func:`~sensible_mle.covariance.estimate_covariance`). Annealing
    visits many points around the optimum and gives a usable estimate. The
    gradient and root-finding drivers record only a few points, close
    together, and their covariance is often singular or badly off; treat it
    as a rough indication at best. The simplex driver records nothing, and
    ``covariance_status`` is then ``"empty"`` without a warning.
    """
    config = Configuration() if config is None else config
    ctx = EvaluationContext.for_solve(model, dataset, config)
    driver = get_driver(config.method)
    x0 = starting_point(ctx, driver.default_start)

    result = driver.run(ctx, x0)

    parameters = ctx.unpack(result.flat)
    projected = False
    if ctx.use_constraint and model.constraint is not None:
        penalty, corrected = ctx.project(parameters)
        if penalty > 0:
            parameters, projected = corrected, True
    log_likelihood = ctx.loglike(parameters)

    cov = None
    cov_status = "not_requested"
    if config.want_cov:
        cov, cov_status = estimate_covariance(result.trajectory, observation_count(dataset))
        if cov is None and driver.records_trajectory:
            warn(
                f"solve: covariance unavailable for model {model.name!r} ({cov_status}).",
                UserWarning,
                stacklevel=2,
            )

    if result.status is not Status.CONVERGED:
        warn(
            f"solve: {config.method} did not converge for model {model.name!r} "
            f"after {result.iterations} iterations ({result.message}).",
            UserWarning,
            stacklevel=2,
        )

    stats = dict(result.stats)
    stats["trajectory_length"] = len(result.trajectory)
    stats["projected"] = projected
    return Estimate(
        parameters=parameters,
        log_likelihood=float(log_likelihood),
        status=result.status,
        config=config,
        model=model,
        dataset=dataset,
        covariance=cov,
        covariance_status=cov_status,
        iterations=int(result.iterations),
        message=result.message,
        stats=stats,
    )


def restart(
    estimate: Estimate, new_method: Optional[Method] = None, scale: float = 1.0
) -> Estimate:
    """Re-run the search from where ``estimate`` ended, and keep the better result.

    The new run starts at the previous parameters when those are bounded
    (finite, |x| <= 1e4), else at the previous starting point. Step size and
    tolerance are multiplied by ``scale``; ``new_method=None`` keeps the method.

    The new estimate is returned only if its parameters are bounded and its
    log-likelihood is strictly higher; otherwise ``estimate`` itself comes back.
    """
    if estimate.model is None:
        raise ValueError("restart needs an Estimate produced by solve (model is missing).")

    old = estimate.config
    flat = estimate.flat
    start = flat if is_bounded(flat) else old.starting_point
    config = old.scaled(scale).replace(
        method=old.method if new_method is None else new_method,
        starting_point=None if start is None else np.array(start, dtype=float),
    )

    candidate = solve(estimate.dataset, estimate.model, config)

    if is_bounded(candidate.flat) and candidate.log_likelihood > estimate.log_likelihood:
        return candidate
    return estimate
