import numpy as np
import matplotlib.pyplot as plt

from sensible_mle import AnnealingSchedule, Configuration, MemoryTraceSink, Model, plot_trace, solve


def bumpy(params, data):
    # Several local maxima; the global one sits near (2, -1).
    a, b = params.vector
    return -((a - 2.0) ** 2 + (b + 1.0) ** 2) + 0.8 * np.cos(3.0 * a) * np.cos(3.0 * b)


model = Model.from_loglike(bumpy, vector_size=2, name="bumpy")
sink = MemoryTraceSink()

cfg = Configuration(
    method="annealing",
    starting_point=[-3.0, 3.0],
    annealing=AnnealingSchedule(iters_fixed_T=40, t_initial=5.0, mu_t=1.1, t_min=0.05),
    rng=np.random.default_rng(2),
    trace=sink,
    trace_name="annealing",
    want_cov=False,
)
est = solve(None, model, cfg)
print(est.summary())
print("evaluations:", est.stats["evaluations"], "levels:", est.iterations)

fig, ax = plot_trace(sink, "annealing")
ax.plot(*est.flat, "r*", ms=12, label="best")
ax.legend()
plt.show()
