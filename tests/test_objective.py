import numpy as np
import pytest

from sensible_mle import Configuration, MemoryTraceSink, Model, ModelError, StructuredParameters
from sensible_mle.objective import NUMERICAL_DIFF_STEP, EvaluationContext, numerical_gradient


def quadratic(params, data):
    return -float(np.sum((params.vector - 3.0) ** 2))


def cap_at_one(params, data):
    x = params.vector
    excess = float(np.sum(np.clip(x - 1.0, 0.0, None)))
    if excess > 0:
        return excess, StructuredParameters(vector=np.minimum(x, 1.0))
    return 0.0, params


def _ctx(model, config=None, data=None):
    return EvaluationContext.for_solve(model, data, config or Configuration())


def test_objective_negates_loglike():
    ctx = _ctx(Model.from_loglike(quadratic, vector_size=1))
    assert ctx.objective(np.array([1.0])) == pytest.approx(4.0)
    assert ctx.objective(np.array([3.0])) == pytest.approx(0.0)


def test_density_models_use_log_density():
    def dens(params, data):
        return float(np.exp(-((params.vector[0] - 3.0) ** 2)))

    ctx = _ctx(Model.from_density(dens, vector_size=1))
    assert ctx.objective(np.array([1.0])) == pytest.approx(4.0)


def test_penalty_added_at_corrected_point():
    model = Model.from_loglike(quadratic, vector_size=1).with_constraint(cap_at_one)
    ctx = _ctx(model)
    # Feasible: plain negated likelihood.
    assert ctx.objective(np.array([0.5])) == pytest.approx(6.25)
    # Infeasible: -ll(1) + penalty(0.5)
    assert ctx.objective(np.array([1.5])) == pytest.approx(4.0 + 0.5)


def test_constraint_can_be_switched_off():
    model = Model.from_loglike(quadratic, vector_size=1).with_constraint(cap_at_one)
    ctx = _ctx(model, Configuration(use_constraint=False))
    assert ctx.objective(np.array([1.5])) == pytest.approx(2.25)


def test_non_finite_objective_is_worse_not_an_error():
    def bad(params, data):
        return float("nan")

    ctx = _ctx(Model.from_loglike(bad, vector_size=1))
    assert ctx.objective(np.array([0.0])) == float("inf")


def test_trace_records_point_and_loglike():
    sink = MemoryTraceSink()
    ctx = _ctx(
        Model.from_loglike(quadratic, vector_size=1),
        Configuration(trace=sink, trace_name="path"),
    )
    ctx.objective(np.array([1.0]))
    ctx.objective(np.array([2.0]))
    np.testing.assert_allclose(sink.to_array("path"), [[1.0, -4.0], [2.0, -1.0]])


def test_missing_likelihood_is_a_model_error():
    with pytest.raises(ModelError):
        _ctx(Model(name="empty", shape=Model.from_loglike(quadratic, vector_size=1).shape))


def test_numerical_gradient_matches_analytic():
    def ll(params, data):
        a, b = params.vector
        return float(-(a - 1.0) ** 2 - 3.0 * (b + 2.0) ** 2 + a * b)

    model = Model.from_loglike(ll, vector_size=2)
    x = np.array([0.3, -0.7])
    expected = np.array([-2.0 * (0.3 - 1.0) - 0.7, -6.0 * (-0.7 + 2.0) + 0.3])
    np.testing.assert_allclose(numerical_gradient(model, x, None), expected, atol=1e-6)
    assert NUMERICAL_DIFF_STEP == 1e-5


def test_analytic_score_is_preferred():
    calls = []

    def score(params, data):
        calls.append(params.vector.copy())
        return -2.0 * (params.vector - 3.0)

    model = Model.from_loglike(quadratic, vector_size=1).with_score(score)
    g = _ctx(model).gradient(np.array([1.0]))
    np.testing.assert_allclose(g, [4.0])
    assert len(calls) == 1


def test_gradient_evaluated_at_feasible_point():
    seen = []

    def score(params, data):
        seen.append(float(params.vector[0]))
        return -2.0 * (params.vector - 3.0)

    model = (
        Model.from_loglike(quadratic, vector_size=1)
        .with_score(score)
        .with_constraint(cap_at_one)
    )
    g = _ctx(model).gradient(np.array([2.5]))
    assert seen == [1.0]
    np.testing.assert_allclose(g, [4.0])


def test_score_of_wrong_length_is_rejected():
    model = Model.from_loglike(quadratic, vector_size=1).with_score(lambda p, d: [1.0, 2.0])
    with pytest.raises(ModelError):
        _ctx(model).gradient(np.array([0.0]))


def test_penalty_reports_constraint_excess():
    model = Model.from_loglike(quadratic, vector_size=1).with_constraint(cap_at_one)
    ctx = _ctx(model)
    assert ctx.penalty(np.array([0.5])) == 0.0
    assert ctx.penalty(np.array([1.75])) == pytest.approx(0.75)
    assert ctx.without_constraint().penalty(np.array([1.75])) == 0.0


def test_objective_gradient_follows_the_penalized_surface():
    sink = MemoryTraceSink()
    model = Model.from_loglike(quadratic, vector_size=1).with_constraint(cap_at_one)
    ctx = _ctx(model, Configuration(trace=sink))
    # objective(x) = 4 + (x - 1) for x > 1
    np.testing.assert_allclose(ctx.objective_gradient(np.array([1.5])), [1.0], atol=1e-6)
    # and -gradient of the log-likelihood where feasible
    np.testing.assert_allclose(ctx.objective_gradient(np.array([0.0])), [-6.0], atol=1e-6)
    assert len(sink) == 0
