from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import numpy as np
from scipy.special import logsumexp

__all__ = ["Trajectory", "estimate_covariance"]


@dataclass
class Trajectory:
    """Score vectors and log-likelihoods recorded during one solve call.

    Append-only. Entries with a non-finite log-likelihood are dropped on entry.
    """

    scores: List[np.ndarray] = field(default_factory=list)
    loglikes: List[float] = field(default_factory=list)

    def record(self, score: Any, loglike: float) -> bool:
        loglike = float(loglike)
        if not np.isfinite(loglike):
            return False
        self.scores.append(np.array(score, dtype=float).reshape((-1,)))
        self.loglikes.append(loglike)
        return True

    def __len__(self) -> int:
        return len(self.loglikes)

    def as_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        if not self.scores:
            return np.zeros((0, 0), dtype=float), np.zeros((0,), dtype=float)
        return np.vstack(self.scores), np.asarray(self.loglikes, dtype=float)


def importance_weights(loglikes: Any) -> np.ndarray:
    """Relative weight of each entry, 1 / (1 + sum_{k != j} exp(lp_k - lp_j)).

    Entries whose denominator overflows get a non-finite (inf) proportion and
    a weight of NaN so callers can skip them.
    """
    lp = np.asarray(loglikes, dtype=float).reshape((-1,))
    if lp.size == 0:
        return lp
    # sum_k exp(lp_k - lp_j) = exp(logsumexp(lp) - lp_j), the k == j term included.
    with np.errstate(over="ignore", invalid="ignore"):
        proportion = np.exp(logsumexp(lp) - lp)
        weights = np.where(np.isfinite(proportion), 1.0 / proportion, np.nan)
    return weights


def estimate_covariance(
    trajectory: Trajectory, n_obs: Optional[int] = None
) -> Tuple[Optional[np.ndarray], str]:
    """Covariance from the weighted outer product of recorded scores.

    Each score s_j enters the information estimate with its importance weight,
    ``I = n_obs * sum_j w_j s_j s_j^T`` (the ``n_obs`` factor only when known),
    and the covariance is ``inv(I)``.

    This is a heuristic. It approaches the inverse Fisher information only
    when the trajectory covers the neighbourhood of the optimum, as an
    annealing walk does. A descent path holds a handful of points close to
    the optimum, where the scores are near zero, so its estimate is
    unreliable: often singular, otherwise typically far too large.

    Returns ``(cov, status)`` where status is "ok", "empty" or "singular".
    """
    scores, lp = trajectory.as_arrays()
    if lp.size == 0:
        return None, "empty"

    weights = importance_weights(lp)
    keep = np.isfinite(weights)
    if not np.any(keep):
        return None, "empty"

    s = scores[keep]
    w = weights[keep]
    info = (s * w[:, None]).T @ s
    if n_obs is not None:
        info = info * float(n_obs)

    with np.errstate(divide="ignore", invalid="ignore"):
        cond = np.linalg.cond(info)
    if not np.isfinite(cond) or cond > 1.0 / np.finfo(float).eps:
        return None, "singular"
    try:
        cov = np.linalg.inv(info)
    except np.linalg.LinAlgError:
        return None, "singular"
    if not np.all(np.isfinite(cov)):
        return None, "singular"
    return cov, "ok"
