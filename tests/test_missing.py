import numpy as np
import pytest

from sensible_mle import AnnealingSchedule, Configuration, listwise_delete, ml_imputation


def test_listwise_delete_drops_rows_with_nan():
    data = np.array([[1.0, 2.0], [np.nan, 3.0], [4.0, 5.0]])
    out = listwise_delete(data)
    np.testing.assert_array_equal(out, [[1.0, 2.0], [4.0, 5.0]])
    assert np.isnan(data[1, 0])
    out[0, 0] = 99.0
    assert data[0, 0] == 1.0


def test_listwise_delete_all_missing():
    assert listwise_delete([[np.nan, 1.0], [2.0, np.nan]]) is None


def test_listwise_delete_promotes_vectors():
    out = listwise_delete([1.0, np.nan, 3.0])
    assert out.shape == (2, 1)


def test_imputation_fills_conditional_mean():
    mean = np.zeros(2)
    cov = np.array([[1.0, 0.8], [0.8, 1.0]])
    data = np.array([[1.0, np.nan], [0.3, -0.2]])
    cfg = Configuration(
        method="simplex",
        step_size=2.0,
        annealing=AnnealingSchedule(iters_fixed_T=100, t_initial=2.0, mu_t=1.1, t_min=0.1),
        rng=np.random.default_rng(3),
        want_cov=False,
    )
    est = ml_imputation(data, mean, cov, cfg)

    assert est.config.method == "annealing"
    assert not np.any(np.isnan(data))
    assert data[1, 1] == -0.2
    # E[x2 | x1 = 1] = 0.8 under the given covariance.
    assert data[0, 1] == pytest.approx(0.8, abs=0.1)


def test_imputation_argument_checks():
    with pytest.raises(TypeError):
        ml_imputation([[1.0, np.nan]], np.zeros(2), np.eye(2))
    with pytest.raises(ValueError):
        ml_imputation(np.array([[1.0, np.nan]]), np.zeros(3), np.eye(2))
    with pytest.raises(ValueError, match="no missing"):
        ml_imputation(np.array([[1.0, 2.0]]), np.zeros(2), np.eye(2))
