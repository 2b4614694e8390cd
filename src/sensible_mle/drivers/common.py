from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import numpy as np

from ..covariance import Trajectory
from ..estimate import Status
from ..objective import EvaluationContext


@dataclass(frozen=True)
class DriverResult:
    """Normalized result returned by any driver."""

    flat: np.ndarray  # final point, shape (P,)
    status: Status
    iterations: int
    message: str = ""
    trajectory: Trajectory = field(default_factory=Trajectory)
    stats: Dict[str, Any] = field(default_factory=dict)


class Driver(Protocol):
    """Driver protocol: minimize ``ctx.objective`` from a start point."""

    name: str
    default_start: float
    max_iterations: int
    # False for drivers that never produce a covariance trajectory.
    records_trajectory: bool

    def run(self, ctx: EvaluationContext, x0: np.ndarray) -> DriverResult: ...


def starting_point(ctx: EvaluationContext, fill: float) -> np.ndarray:
    """The configured starting point, or ``fill`` in every coordinate."""
    sp: Optional[np.ndarray] = ctx.config.starting_point
    if sp is None:
        return np.full((ctx.size,), float(fill), dtype=float)
    sp = np.array(sp, dtype=float).reshape((-1,))
    if sp.shape[0] != ctx.size:
        raise ValueError(
            f"starting_point has {sp.shape[0]} values; model {ctx.model.name!r} "
            f"has {ctx.size} parameters."
        )
    return sp


def iteration_cap(ctx: EvaluationContext, default: int) -> int:
    cap = ctx.config.max_iterations
    return int(default if cap is None else cap)
