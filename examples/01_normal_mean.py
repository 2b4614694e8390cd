import numpy as np

from sensible_mle import Configuration, Model, solve


def normal_loglike(params, x):
    mu, log_sigma = params.vector
    var = np.exp(2.0 * log_sigma)
    n = x.shape[0]
    return -n * log_sigma - np.sum((x - mu) ** 2) / (2.0 * var) - 0.5 * n * np.log(2.0 * np.pi)


def normal_score(params, x):
    mu, log_sigma = params.vector
    var = np.exp(2.0 * log_sigma)
    return np.array([np.sum(x - mu) / var, -x.shape[0] + np.sum((x - mu) ** 2) / var])


rng = np.random.default_rng(0)
x = rng.normal(1.5, 0.7, size=300)

model = Model.from_loglike(normal_loglike, vector_size=2, name="normal").with_score(normal_score)

for method in ("cg_fr", "cg_pr", "bfgs", "simplex"):
    est = solve(x, model, Configuration(method=method, want_cov=False))
    print(est.summary())

print("closed form:", x.mean(), np.log(x.std()))
