from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Literal, Optional, Tuple

import numpy as np

Method = Literal[
    "simplex",
    "cg_fr",
    "cg_pr",
    "bfgs",
    "annealing",
    "root_newton",
    "root_broyden",
    "root_hybrid",
    "root_hybrid_unscaled",
]

METHODS = (
    "simplex",
    "cg_fr",
    "cg_pr",
    "bfgs",
    "annealing",
    "root_newton",
    "root_broyden",
    "root_hybrid",
    "root_hybrid_unscaled",
)

_DEFAULT_RNG: Optional[np.random.Generator] = None


def default_rng() -> np.random.Generator:
    """Process-wide generator, created on first use and reused afterwards.

    Pass ``Configuration(rng=np.random.default_rng(seed))`` for reproducible runs.
    """
    global _DEFAULT_RNG
    if _DEFAULT_RNG is None:
        _DEFAULT_RNG = np.random.default_rng()
    return _DEFAULT_RNG


@dataclass(frozen=True)
class AnnealingSchedule:
    """Simulated-annealing knobs.

    - n_tries: redraws allowed for a proposal whose energy is not finite
    - iters_fixed_T: proposals per temperature level
    - k: Boltzmann constant in the acceptance rule exp(-dE / (k T))
    - t_initial / t_min: starting and stopping temperatures
    - mu_t: cooling factor, T <- T / mu_t after each level
    """

    n_tries: int = 200
    iters_fixed_T: int = 200
    k: float = 1.0
    t_initial: float = 50.0
    mu_t: float = 1.002
    t_min: float = 0.5

    def __post_init__(self) -> None:
        if int(self.n_tries) < 1:
            raise ValueError("AnnealingSchedule.n_tries must be >= 1.")
        if int(self.iters_fixed_T) < 1:
            raise ValueError("AnnealingSchedule.iters_fixed_T must be >= 1.")
        if not float(self.k) > 0.0:
            raise ValueError("AnnealingSchedule.k must be > 0.")
        if not float(self.mu_t) > 1.0:
            raise ValueError("AnnealingSchedule.mu_t must be > 1 for the temperature to decay.")
        if not (float(self.t_initial) > 0.0 and float(self.t_min) > 0.0):
            raise ValueError("AnnealingSchedule temperatures must be > 0.")

    @property
    def n_levels(self) -> int:
        """Number of temperature levels the schedule runs through."""
        if self.t_initial < self.t_min:
            return 1
        return int(np.floor(np.log(self.t_initial / self.t_min) / np.log(self.mu_t))) + 1


@dataclass(frozen=True, eq=False)
class Configuration:
    """Settings for one ``solve`` call.

    step_size / tolerance of 0 select the driver's own default (the gradient
    driver uses 0.05 / 1e-3). ``starting_point=None`` selects the per-driver
    default start: zeros for simplex and the root finders, 0.1 for gradient
    methods, ones for annealing.
    """

    method: Method = "cg_fr"
    starting_point: Optional[np.ndarray] = None
    step_size: float = 1.0
    tolerance: float = 0.0
    verbose: int = 0
    want_cov: bool = True
    annealing: AnnealingSchedule = AnnealingSchedule()
    rng: Optional[np.random.Generator] = None
    use_constraint: bool = True
    max_iterations: Optional[int] = None
    # Optional append-only sink for the evaluated path (see sensible_mle.trace)
    trace: Optional[Any] = None
    trace_name: str = "mle_trace"

    def __post_init__(self) -> None:
        if self.method not in METHODS:
            raise ValueError(f"Unknown method {self.method!r}. Available: {METHODS}")
        if self.starting_point is not None:
            sp = np.array(self.starting_point, dtype=float).reshape((-1,))
            sp.setflags(write=False)
            object.__setattr__(self, "starting_point", sp)
        if not np.isfinite(self.step_size) or self.step_size < 0:
            raise ValueError("step_size must be finite and >= 0.")
        if not np.isfinite(self.tolerance) or self.tolerance < 0:
            raise ValueError("tolerance must be finite and >= 0.")
        if self.max_iterations is not None and int(self.max_iterations) < 1:
            raise ValueError("max_iterations must be >= 1 when given.")

    def _key(self) -> Tuple[Any, ...]:
        out = []
        for f in fields(self):
            v = getattr(self, f.name)
            if isinstance(v, np.ndarray):
                v = tuple(v.tolist())
            out.append(v)
        return tuple(out)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Configuration):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    @staticmethod
    def default(**kwargs: Any) -> "Configuration":
        return Configuration(**kwargs)

    def replace(self, **changes: Any) -> "Configuration":
        """Return a copy with fields replaced (validated again)."""
        return replace(self, **changes)

    def scaled(self, factor: float) -> "Configuration":
        """Multiply step size and tolerance by ``factor``."""
        factor = float(factor)
        return replace(
            self,
            step_size=self.step_size * factor,
            tolerance=self.tolerance * factor,
        )

    @property
    def random(self) -> np.random.Generator:
        return self.rng if self.rng is not None else default_rng()
