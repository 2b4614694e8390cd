"""Driver implementations + registry."""

from __future__ import annotations

from typing import Dict

from .annealing import AnnealingDriver
from .common import Driver, DriverResult
from .gradient import GradientDriver
from .roots import RootDriver
from .simplex import SimplexDriver

_DRIVERS: Dict[str, Driver] = {
    "simplex": SimplexDriver(),
    "cg_fr": GradientDriver("cg_fr", "fletcher_reeves"),
    "cg_pr": GradientDriver("cg_pr", "polak_ribiere"),
    "bfgs": GradientDriver("bfgs", "bfgs"),
    "annealing": AnnealingDriver(),
    "root_newton": RootDriver("root_newton"),
    "root_broyden": RootDriver("root_broyden"),
    "root_hybrid": RootDriver("root_hybrid"),
    "root_hybrid_unscaled": RootDriver("root_hybrid_unscaled"),
}


def get_driver(name: str) -> Driver:
    """Return a driver implementation by method name."""
    try:
        return _DRIVERS[name]
    except KeyError as e:
        raise ValueError(
            f"Unknown method {name!r}. Available: {tuple(_DRIVERS.keys())}"
        ) from e


AVAILABLE_DRIVERS = tuple(_DRIVERS.keys())

__all__ = ["AVAILABLE_DRIVERS", "Driver", "DriverResult", "get_driver"]
