from __future__ import annotations

from typing import Any, Optional

import numpy as np

# Parameters larger than this (in absolute value) are treated as divergent.
BOUNDED_LIMIT = 1e4


def is_bounded(values: Any, limit: float = BOUNDED_LIMIT) -> bool:
    """True if every entry is finite and |entry| <= limit."""
    a = np.asarray(values, dtype=float)
    if a.size == 0:
        return True
    return bool(np.all(np.isfinite(a)) and np.all(np.abs(a) <= float(limit)))


def observation_count(dataset: Any) -> Optional[int]:
    """Rows of a 2-D data matrix (one observation per row); None otherwise."""
    if isinstance(dataset, np.ndarray) and dataset.ndim == 2:
        return int(dataset.shape[0])
    return None


def format_vector(v: np.ndarray, digits: int = 3) -> str:
    return " ".join(f"{float(x):.{digits}e}" for x in np.asarray(v).reshape((-1,)))
