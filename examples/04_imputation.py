import numpy as np

from sensible_mle import AnnealingSchedule, Configuration, listwise_delete, ml_imputation

rng = np.random.default_rng(4)
mean = np.array([1.0, -1.0, 0.5])
cov = np.array([[1.0, 0.6, 0.2], [0.6, 1.0, -0.3], [0.2, -0.3, 1.0]])
data = rng.multivariate_normal(mean, cov, size=8)
data[1, 2] = np.nan
data[5, 0] = np.nan
data[6, 1] = np.nan

print("complete rows:", listwise_delete(data).shape[0], "of", data.shape[0])

cfg = Configuration(
    step_size=2.0,
    annealing=AnnealingSchedule(iters_fixed_T=100, t_initial=2.0, mu_t=1.05, t_min=0.05),
    rng=np.random.default_rng(5),
    want_cov=False,
)
est = ml_imputation(data, mean, cov, cfg)
print(est.summary())
print(np.round(data, 3))
