import numpy as np
import pytest

from sensible_mle import (
    AnnealingSchedule,
    Configuration,
    Estimate,
    Model,
    ModelError,
    Status,
    StructuredParameters,
    default_rng,
)


def _estimate(cov=None):
    return Estimate(
        parameters=StructuredParameters(vector=[1.5], matrix=[[2.0]]),
        log_likelihood=-3.25,
        status=Status.CONVERGED,
        config=Configuration(method="bfgs"),
        covariance=cov,
        covariance_status="not_requested" if cov is None else "ok",
        iterations=7,
    )


def test_summary_lists_every_parameter():
    text = _estimate(np.diag([0.04, 0.09])).summary()
    assert "bfgs" in text
    assert "theta[0]" in text and "theta[1]" in text
    assert "±" in text
    np.testing.assert_allclose(_estimate(np.diag([0.04, 0.09])).stderr, [0.2, 0.3])


def test_summary_without_covariance():
    est = _estimate()
    assert est.stderr is None
    assert "±" not in est.summary()
    np.testing.assert_array_equal(est.flat, [1.5, 2.0])


def test_correlated_uncertainties():
    pytest.importorskip("uncertainties")
    cov = np.array([[0.04, 0.01], [0.01, 0.09]])
    a, b = _estimate(cov).u
    assert a.nominal_value == pytest.approx(1.5)
    assert b.std_dev == pytest.approx(0.3)
    assert (a - b).std_dev == pytest.approx(np.sqrt(0.04 + 0.09 - 0.02))
    assert _estimate().u is None


def test_configuration_defaults_and_validation():
    cfg = Configuration()
    assert cfg.method == "cg_fr"
    assert cfg.want_cov is True
    assert cfg.annealing == AnnealingSchedule()
    with pytest.raises(ValueError):
        Configuration(step_size=-1.0)
    with pytest.raises(ValueError):
        Configuration(tolerance=float("nan"))
    with pytest.raises(ValueError):
        Configuration(max_iterations=0)
    with pytest.raises(ValueError):
        AnnealingSchedule(mu_t=1.0)


def test_configuration_scaled_and_replace():
    cfg = Configuration(step_size=0.5, tolerance=1e-4, starting_point=[1.0, 2.0])
    s = cfg.scaled(10.0)
    assert s.step_size == pytest.approx(5.0)
    assert s.tolerance == pytest.approx(1e-3)
    assert cfg.step_size == 0.5
    assert cfg.replace(method="simplex").method == "simplex"
    with pytest.raises(ValueError):
        cfg.starting_point[0] = 3.0


def test_default_rng_is_shared():
    assert default_rng() is default_rng()
    assert Configuration().random is default_rng()
    rng = np.random.default_rng(0)
    assert Configuration(rng=rng).random is rng


def test_schedule_levels():
    assert AnnealingSchedule().n_levels == int(np.floor(np.log(100.0) / np.log(1.002))) + 1


def test_model_builders():
    model = Model.from_loglike(lambda p, d: 0.0, vector_size=2, name="flat")
    assert model.has_likelihood and not model.has_score and not model.has_constraint
    scored = model.with_score(lambda p, d: np.zeros(2))
    assert scored.has_score and not model.has_score
    assert model.renamed("other").name == "other"
    with pytest.raises(ModelError):
        Model.from_loglike(lambda p, d: 0.0, vector_size=0).validate()
    assert issubclass(ModelError, TypeError)


def test_t_stats_and_p_values_use_row_count():
    from scipy import stats

    est = Estimate(
        parameters=StructuredParameters(vector=[1.5, 0.1]),
        log_likelihood=-3.25,
        status=Status.CONVERGED,
        config=Configuration(),
        dataset=np.zeros((10, 3)),
        covariance=np.diag([0.04, 0.09]),
        covariance_status="ok",
    )
    assert est.dof == 8
    np.testing.assert_allclose(est.t_stats, [7.5, 0.1 / 0.3])
    np.testing.assert_allclose(est.p_values, 2.0 * stats.t.sf(np.abs(est.t_stats), 8))
    assert est.p_values[0] < 0.001 < 0.5 < est.p_values[1]
    text = est.summary()
    assert "t=7.5" in text and "p=" in text


def test_p_values_fall_back_to_normal_without_a_data_matrix():
    from scipy import stats

    est = _estimate(np.diag([0.04, 0.09]))
    assert est.dof is None
    np.testing.assert_allclose(est.p_values, 2.0 * stats.norm.sf([7.5, 2.0 / 0.3]))
    assert _estimate().t_stats is None and _estimate().p_values is None


def test_configurations_compare_by_value():
    a = Configuration(starting_point=[1.0, 2.0], method="bfgs")
    b = Configuration(starting_point=[1.0, 2.0], method="bfgs")
    assert a == b
    assert hash(a) == hash(b)
    assert len({a, b, Configuration()}) == 2
    assert a != a.replace(starting_point=[1.0, 3.0])
    assert a != a.replace(step_size=2.0)
    assert Configuration() != "cg_fr"


def test_estimates_compare_by_identity():
    est = _estimate(np.diag([0.04, 0.09]))
    twin = _estimate(np.diag([0.04, 0.09]))
    assert est == est
    assert est != twin
    assert len({est, twin}) == 2
