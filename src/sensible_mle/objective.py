"""Objective and derivative shells around a Model.

Optimizers minimize, models report log-likelihoods, and constraints are
applied through penalties. The :class:`EvaluationContext` hides those three
details from the drivers: they only see ``objective(flat)`` (to minimize) and
``gradient(flat)`` (of the unnegated log-likelihood).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Tuple

import numpy as np

from .config import Configuration
from .errors import ModelError
from .model import Model
from .params import ParameterShape, StructuredParameters, pack, unpack

# Step for central-difference derivatives. Not user-tunable.
NUMERICAL_DIFF_STEP = 1e-5


@dataclass(frozen=True)
class EvaluationContext:
    """Everything an evaluation needs, bound once per solve call."""

    model: Model
    dataset: Any
    config: Configuration
    use_constraint: bool = True
    shape: ParameterShape = field(init=False)

    def __post_init__(self) -> None:
        self.model.validate()
        object.__setattr__(self, "shape", self.model.shape)

    @staticmethod
    def for_solve(model: Model, dataset: Any, config: Configuration) -> "EvaluationContext":
        return EvaluationContext(
            model=model,
            dataset=dataset,
            config=config,
            use_constraint=bool(config.use_constraint),
        )

    def without_constraint(self) -> "EvaluationContext":
        """Same context, but the objective skips the penalty step."""
        return EvaluationContext(
            model=self.model,
            dataset=self.dataset,
            config=self.config,
            use_constraint=False,
        )

    @property
    def size(self) -> int:
        return self.shape.size

    # ---- parameter layout ----
    def unpack(self, flat: Any) -> StructuredParameters:
        return unpack(flat, self.shape)

    def loglike(self, params: StructuredParameters) -> float:
        return self.model.loglike(params, self.dataset)

    def project(self, params: StructuredParameters) -> Tuple[float, StructuredParameters]:
        """Apply the model constraint: (penalty, corrected params).

        Feasible points (or models without a constraint) give (0, params).
        """
        if self.model.constraint is None:
            return 0.0, params
        penalty, corrected = self.model.constraint(params, self.dataset)
        penalty = float(penalty)
        if penalty > 0 and corrected is not None:
            if corrected.shape != self.shape:
                raise ModelError(
                    f"Constraint of model {self.model.name!r} returned parameters of shape "
                    f"{corrected.shape}, expected {self.shape}."
                )
            return penalty, corrected
        return penalty, params

    # ---- objective ----
    def penalty(self, flat: Any) -> float:
        """Constraint penalty at ``flat``; 0 when the constraint is off or absent."""
        if not self.use_constraint or self.model.constraint is None:
            return 0.0
        return self.project(self.unpack(flat))[0]

    def _value(self, flat: np.ndarray) -> float:
        params = self.unpack(flat)
        penalty, corrected = 0.0, params
        if self.use_constraint:
            penalty, corrected = self.project(params)
        if penalty > 0:
            return -self.loglike(corrected) + penalty
        return -self.loglike(params)

    def objective(self, flat: Any) -> float:
        """Negated log-likelihood plus constraint penalty, to be minimized.

        Non-finite values come back as +inf so every driver treats them as
        simply worse points.
        """
        flat = np.asarray(flat, dtype=float)
        out = self._value(flat)

        sink = self.config.trace
        if sink is not None:
            sink.append(self.config.trace_name, flat, -out)

        if not np.isfinite(out):
            return float("inf")
        return float(out)

    def objective_gradient(self, flat: Any) -> np.ndarray:
        """Central-difference gradient of :meth:`objective`, penalty included.

        Used by descent drivers where the constraint binds: there the model's
        score describes the corrected point, not the penalized surface being
        minimized. Evaluations made here are not traced.
        """
        flat = np.asarray(flat, dtype=float).reshape((-1,))
        h = NUMERICAL_DIFF_STEP
        out = np.empty_like(flat)
        work = flat.copy()
        for j in range(flat.shape[0]):
            x0 = flat[j]
            work[j] = x0 + h
            f_plus = self._value(work)
            work[j] = x0 - h
            f_minus = self._value(work)
            work[j] = x0
            out[j] = (f_plus - f_minus) / (2.0 * h)
        return out

    # ---- derivative ----
    def gradient(self, flat: Any) -> np.ndarray:
        """Gradient of the log-likelihood (not negated).

        Evaluated at the corrected point when the constraint binds. Uses the
        model's score when present, else central differences per dimension.
        """
        flat = np.asarray(flat, dtype=float).reshape((-1,))
        params = self.unpack(flat)
        if self.model.constraint is not None:
            penalty, corrected = self.project(params)
            if penalty > 0:
                params = corrected
                flat = pack(corrected)

        if self.model.score is not None:
            g = np.asarray(self.model.score(params, self.dataset), dtype=float).reshape((-1,))
            if g.shape != (self.size,):
                raise ModelError(
                    f"Score of model {self.model.name!r} returned {g.shape[0]} values, "
                    f"expected {self.size}."
                )
            return g
        return self.numerical_gradient(flat)

    def numerical_gradient(self, flat: Any) -> np.ndarray:
        flat = np.asarray(flat, dtype=float).reshape((-1,))
        h = NUMERICAL_DIFF_STEP
        out = np.empty_like(flat)
        work = flat.copy()
        for j in range(flat.shape[0]):
            x0 = flat[j]
            work[j] = x0 + h
            f_plus = self.loglike(self.unpack(work))
            work[j] = x0 - h
            f_minus = self.loglike(self.unpack(work))
            work[j] = x0
            out[j] = (f_plus - f_minus) / (2.0 * h)
        return out


def numerical_gradient(model: Model, flat: Any, dataset: Any) -> np.ndarray:
    """Central-difference gradient of ``model``'s log-likelihood at ``flat``."""
    ctx = EvaluationContext(model=model, dataset=dataset, config=Configuration())
    return ctx.numerical_gradient(flat)
