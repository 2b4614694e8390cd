import numpy as np

from sensible_mle import Configuration, Model, StructuredParameters, restart, solve


def poisson_loglike(params, counts):
    lam = params.vector[0]
    if lam <= 0:
        return -np.inf
    return float(np.sum(counts * np.log(lam) - lam))


def positive_rate(params, counts):
    # Keep lambda >= 1e-6; the penalty grows with the distance to the boundary.
    lam = params.vector[0]
    if lam >= 1e-6:
        return 0.0, params
    return 1e-6 - lam, StructuredParameters(vector=[1e-6])


rng = np.random.default_rng(1)
counts = rng.poisson(4.2, size=100)

model = Model.from_loglike(poisson_loglike, vector_size=1, name="poisson").with_constraint(positive_rate)

est = solve(counts, model, Configuration(method="simplex", starting_point=[-3.0], want_cov=False))
print(est.summary())

better = restart(est, new_method="cg_pr", scale=0.1)
print("restart kept the first estimate" if better is est else better.summary())
print("closed form:", counts.mean())
