"""Missing-data handlers: listwise deletion and maximum-likelihood imputation."""

from __future__ import annotations

from typing import Any, Optional

import numpy as np
from scipy.stats import multivariate_normal

from .config import Configuration
from .estimate import Estimate
from .model import Model
from .params import StructuredParameters
from .solve import solve


def listwise_delete(data: Any) -> Optional[np.ndarray]:
    """Return a copy of ``data`` without the rows that contain a NaN.

    The input is left untouched. Returns None when every row has a NaN.
    """
    arr = np.asarray(data, dtype=float)
    if arr.ndim == 1:
        arr = arr[:, None]
    if arr.ndim != 2:
        raise ValueError(f"listwise_delete expects 1-D or 2-D data, got shape {arr.shape}.")
    keep = ~np.any(np.isnan(arr), axis=1)
    if not np.any(keep):
        return None
    return arr[keep].copy()


def ml_imputation(
    data: np.ndarray,
    mean: Any,
    cov: Any,
    config: Optional[Configuration] = None,
) -> Estimate:
    """Fill the NaN cells of ``data`` with their most likely values, in place.

    Rows are modelled as draws from a multivariate Normal with the given
    ``mean`` (one entry per column) and ``cov``. The missing cells form the
    parameter vector of a throwaway model that is maximized by simulated
    annealing; the optimum is written back into ``data``.

    Parameters
    ----------
    data : ndarray, shape (N, K), float
        Modified in place.
    mean : array-like, shape (K,)
    cov : array-like, shape (K, K)
    config : Configuration, optional
        Forced to ``method="annealing"``. Defaults to step size 2 and
        tolerance 0.2. Without a starting point, the column means are used.

    Returns
    -------
    Estimate
        The annealing estimate over the missing cells (row-major order).
    """
    if not isinstance(data, np.ndarray) or data.ndim != 2 or not np.issubdtype(data.dtype, np.floating):
        raise TypeError("ml_imputation needs a 2-D float ndarray to fill in place.")
    mean = np.asarray(mean, dtype=float).reshape((-1,))
    cov = np.asarray(cov, dtype=float)
    if mean.shape != (data.shape[1],) or cov.shape != (data.shape[1], data.shape[1]):
        raise ValueError(
            f"mean/cov shapes {mean.shape}/{cov.shape} do not match {data.shape[1]} columns."
        )

    rows, cols = np.nonzero(np.isnan(data))
    if rows.size == 0:
        raise ValueError("ml_imputation: data has no missing values.")

    # Only rows holding a missing cell change with the parameters.
    touched = np.unique(rows)
    local = np.searchsorted(touched, rows)
    block = data[touched].copy()
    dist = multivariate_normal(mean=mean, cov=cov, allow_singular=True)

    def loglike(params: StructuredParameters, _data: Any) -> float:
        filled = block.copy()
        filled[local, cols] = params.vector
        return float(np.sum(dist.logpdf(filled)))

    model = Model.from_loglike(
        loglike,
        vector_size=int(rows.size),
        name="Impute missing data via maximum likelihood",
    )

    if config is None:
        config = Configuration(method="annealing", step_size=2.0, tolerance=0.2)
    else:
        config = config.replace(method="annealing")
    if config.starting_point is None:
        config = config.replace(starting_point=mean[cols])

    est = solve(data, model, config)
    data[rows, cols] = est.parameters.vector
    return est
