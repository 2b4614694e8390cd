import sqlite3

import numpy as np
import pytest

from sensible_mle import Configuration, MemoryTraceSink, Model, SQLiteTraceSink, plot_trace, solve


def quadratic(params, data):
    return -float(np.sum((params.vector - 3.0) ** 2))


def bowl(params, data):
    a, b = params.vector
    return -float((a - 1.0) ** 2 + 2.0 * (b + 0.5) ** 2)


def test_memory_sink_collects_every_evaluation():
    sink = MemoryTraceSink()
    model = Model.from_loglike(quadratic, vector_size=1)
    est = solve(None, model, Configuration(method="simplex", trace=sink, want_cov=False))

    path = sink.to_array("mle_trace")
    assert sink.names() == ("mle_trace",)
    assert path.shape[1] == 2
    assert path.shape[0] == len(sink) >= est.iterations
    np.testing.assert_allclose(path[:, 1], -((path[:, 0] - 3.0) ** 2))


def test_unknown_trace_name_is_empty():
    assert MemoryTraceSink().to_array("nothing").size == 0


def test_sqlite_sink_writes_a_table(tmp_path):
    db = tmp_path / "trace.db"
    model = Model.from_loglike(bowl, vector_size=2)
    with SQLiteTraceSink(db) as sink:
        solve(None, model, Configuration(method="cg_pr", trace=sink, trace_name="bowl", want_cov=False))
        rows = sink.to_array("bowl")

    assert rows.shape[1] == 3
    with sqlite3.connect(str(db)) as conn:
        cols = [r[1] for r in conn.execute("PRAGMA table_info(bowl)")]
        count = conn.execute("SELECT COUNT(*) FROM bowl").fetchone()[0]
    assert cols == ["beta0", "beta1", "ll"]
    assert count == rows.shape[0]


def test_sqlite_sink_rejects_bad_names_and_widths():
    sink = SQLiteTraceSink()
    with pytest.raises(ValueError, match="Invalid trace name"):
        sink.append("drop table; --", np.zeros(1), 0.0)
    sink.append("t", np.zeros(2), 0.0)
    with pytest.raises(ValueError):
        sink.append("t", np.zeros(3), 0.0)
    sink.close()


@pytest.mark.parametrize("size", [1, 2])
def test_plot_trace(size):
    matplotlib = pytest.importorskip("matplotlib")
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    sink = MemoryTraceSink()
    model = Model.from_loglike(quadratic if size == 1 else bowl, vector_size=size)
    solve(None, model, Configuration(method="simplex", trace=sink, want_cov=False))

    fig, ax = plot_trace(sink, "mle_trace")
    assert ax.get_xlabel() == "beta0"
    assert ax.get_title() == "mle_trace"
    assert len(ax.lines) == 1
    plt.close(fig)


def test_plot_trace_on_empty_sink():
    pytest.importorskip("matplotlib")
    with pytest.raises(ValueError, match="empty"):
        plot_trace(MemoryTraceSink(), "mle_trace")
