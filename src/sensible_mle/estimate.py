from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np
from scipy import stats as sps

from .config import Configuration
from .params import StructuredParameters, pack
from .util import observation_count

try:
    import uncertainties
except Exception:  # pragma: no cover - optional at import time
    uncertainties = None


class Status(str, Enum):
    CONVERGED = "converged"
    MAX_ITERATIONS = "max_iterations"
    FAILED = "failed"


@dataclass(frozen=True, eq=False)
class Estimate:
    """Result of one ``solve`` call.

    ``status`` tells whether to trust ``parameters``; a non-converged estimate
    still carries the best point the driver reached. ``covariance`` is None
    when it was not requested or could not be computed (see
    ``covariance_status``).

    Estimates compare by identity: two solves are never "equal", and
    ``restart`` signals a kept estimate by returning the same object.
    """

    parameters: StructuredParameters
    log_likelihood: float
    status: Status
    config: Configuration
    model: Any = None
    dataset: Any = None
    covariance: Optional[np.ndarray] = None
    covariance_status: str = "not_requested"
    iterations: int = 0
    message: str = ""
    # Driver-specific extras (evaluation counts, final temperature, ...)
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def converged(self) -> bool:
        return self.status is Status.CONVERGED

    @property
    def flat(self) -> np.ndarray:
        """Parameters as a flat vector (vector part, then row-major matrix)."""
        return pack(self.parameters)

    @property
    def stderr(self) -> Optional[np.ndarray]:
        """Square roots of the covariance diagonal, flat layout."""
        if self.covariance is None:
            return None
        d = np.diag(np.asarray(self.covariance, dtype=float))
        with np.errstate(invalid="ignore"):
            return np.sqrt(d)

    @property
    def u(self) -> Optional[Any]:
        """Correlated ``uncertainties`` values for the flat parameters, if available."""
        if uncertainties is None or self.covariance is None:
            return None
        try:
            return uncertainties.correlated_values(
                [float(v) for v in self.flat], np.asarray(self.covariance, dtype=float)
            )
        except Exception:
            return None

    @property
    def dof(self) -> Optional[int]:
        """Residual degrees of freedom, ``rows - parameters`` (at least 1).

        None when the dataset is not a 2-D data matrix; the tests then fall
        back to the Normal distribution.
        """
        n = observation_count(self.dataset)
        if n is None:
            return None
        return max(int(n) - int(self.parameters.size), 1)

    @property
    def t_stats(self) -> Optional[np.ndarray]:
        """Parameter / standard error, for the null hypothesis "parameter = 0"."""
        err = self.stderr
        if err is None:
            return None
        with np.errstate(divide="ignore", invalid="ignore"):
            return self.flat / err

    @property
    def p_values(self) -> Optional[np.ndarray]:
        """Two-tailed p-values of :attr:`t_stats` (Student t with :attr:`dof`)."""
        t = self.t_stats
        if t is None:
            return None
        df = self.dof
        dist = sps.norm if df is None else sps.t(df)
        return 2.0 * dist.sf(np.abs(t))

    def summary(self, digits: int = 4) -> str:
        """Return a human-readable summary string for the estimate."""
        name = getattr(self.model, "name", "model")
        lines = [
            f"Estimate(model={name!r}, method={self.config.method!r}, "
            f"status={self.status.value}, iterations={self.iterations})",
            f"  {'loglike':>12s}: {self.log_likelihood:.{digits}g}",
        ]
        err = self.stderr
        tvals = self.t_stats
        pvals = self.p_values
        for j, v in enumerate(self.flat):
            label = f"theta[{j}]"
            if err is None:
                lines.append(f"  {label:>12s}: {float(v):.{digits}g}")
            else:
                lines.append(
                    f"  {label:>12s}: {float(v):.{digits}g} ± {float(err[j]):.{digits}g}"
                    f"  (t={float(tvals[j]):.3g}, p={float(pvals[j]):.3g})"
                )
        if self.covariance is None and self.covariance_status not in ("ok", "not_requested"):
            lines.append(f"  covariance unavailable ({self.covariance_status})")
        return "\n".join(lines)
