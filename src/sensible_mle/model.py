from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Optional, Tuple

import numpy as np

from .errors import ModelError
from .params import ParameterShape, StructuredParameters

LogLikelihood = Callable[[StructuredParameters, Any], float]
Density = Callable[[StructuredParameters, Any], float]
Score = Callable[[StructuredParameters, Any], Any]
Constraint = Callable[[StructuredParameters, Any], Tuple[float, StructuredParameters]]


@dataclass(frozen=True)
class Model:
    """A model is a named capability set over structured parameters.

    Capabilities
    ------------
    log_likelihood(params, data) -> float
        Log-likelihood at ``params``. Preferred when present.
    density(params, data) -> float
        Likelihood (not logged). Used only when ``log_likelihood`` is absent;
        the engine works with ``log(density)``.
    score(params, data) -> array, optional
        Analytic gradient of the log-likelihood, flattened like ``pack(params)``.
        Numerical central differences are used when absent.
    constraint(params, data) -> (penalty, corrected), optional
        ``penalty`` is 0 for a feasible point; otherwise positive, with
        ``corrected`` a feasible projection of ``params``.

    Models are stateless: every call-specific setting lives in the
    Configuration handed to ``solve``.
    """

    name: str
    shape: ParameterShape
    log_likelihood: Optional[LogLikelihood] = None
    density: Optional[Density] = None
    score: Optional[Score] = None
    constraint: Optional[Constraint] = None

    # ---- constructors ----
    @staticmethod
    def from_loglike(
        func: LogLikelihood,
        *,
        vector_size: int = 0,
        rows: int = 0,
        cols: int = 0,
        name: Optional[str] = None,
    ) -> "Model":
        """Construct a Model from a log-likelihood function and a parameter shape."""
        return Model(
            name=name or getattr(func, "__name__", "model"),
            shape=ParameterShape(vector_size, rows, cols),
            log_likelihood=func,
        )

    @staticmethod
    def from_density(
        func: Density,
        *,
        vector_size: int = 0,
        rows: int = 0,
        cols: int = 0,
        name: Optional[str] = None,
    ) -> "Model":
        """Construct a Model from a (non-logged) likelihood function."""
        return Model(
            name=name or getattr(func, "__name__", "model"),
            shape=ParameterShape(vector_size, rows, cols),
            density=func,
        )

    # ---- builders (pure; return new model) ----
    def with_score(self, score: Optional[Score]) -> "Model":
        return replace(self, score=score)

    def with_constraint(self, constraint: Optional[Constraint]) -> "Model":
        return replace(self, constraint=constraint)

    def renamed(self, name: str) -> "Model":
        return replace(self, name=str(name))

    # ---- capabilities ----
    @property
    def has_likelihood(self) -> bool:
        return self.log_likelihood is not None or self.density is not None

    @property
    def has_score(self) -> bool:
        return self.score is not None

    @property
    def has_constraint(self) -> bool:
        return self.constraint is not None

    def validate(self) -> None:
        """Raise ModelError if the model cannot be optimized."""
        if not self.has_likelihood:
            raise ModelError(
                f"Model {self.name!r} has neither a log_likelihood nor a density function."
            )
        if self.shape.size == 0:
            raise ModelError(f"Model {self.name!r} has no parameters to estimate.")

    def loglike(self, params: StructuredParameters, data: Any) -> float:
        """Log-likelihood, taking the log of ``density`` when that is all we have."""
        if self.log_likelihood is not None:
            return float(self.log_likelihood(params, data))
        if self.density is not None:
            p = float(self.density(params, data))
            with np.errstate(divide="ignore", invalid="ignore"):
                return float(np.log(p))
        raise ModelError(
            f"Model {self.name!r} has neither a log_likelihood nor a density function."
        )
