"""Recording the path of an ML search.

With ``Configuration(trace=sink, trace_name="path")`` every evaluation of the
objective appends ``(flat parameters, log-likelihood)`` to ``sink`` under
``"path"``. Plot the result with :func:`plot_trace` to see how the search
moved over the likelihood surface. Lines connecting the points only show the
order of evaluation, not values of the function in between.
"""

from __future__ import annotations

import re
import sqlite3
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union

import numpy as np

__all__ = ["TraceSink", "MemoryTraceSink", "SQLiteTraceSink", "plot_trace"]

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class TraceSink(Protocol):
    """Append-only log of evaluated points. The engine never reads it back."""

    def append(self, name: str, flat: np.ndarray, value: float) -> None: ...


class MemoryTraceSink:
    """Keep traced rows in memory, one list per trace name."""

    def __init__(self) -> None:
        self._rows: Dict[str, List[np.ndarray]] = {}

    def append(self, name: str, flat: np.ndarray, value: float) -> None:
        flat = np.asarray(flat, dtype=float).reshape((-1,))
        self._rows.setdefault(name, []).append(np.append(flat, float(value)))

    def names(self) -> Tuple[str, ...]:
        return tuple(self._rows.keys())

    def __len__(self) -> int:
        return sum(len(v) for v in self._rows.values())

    def to_array(self, name: str) -> np.ndarray:
        """Rows of ``[beta0, ..., beta{n-1}, ll]`` in evaluation order."""
        rows = self._rows.get(name)
        if not rows:
            return np.zeros((0, 0), dtype=float)
        return np.vstack(rows)


class SQLiteTraceSink:
    """Write traced rows to a SQLite table named after the trace.

    The table is created on first append with columns ``beta0 .. beta{n-1}, ll``.
    Writes are not committed per row; call :meth:`commit` (or use the sink as
    a context manager) to flush.
    """

    def __init__(self, path: Union[str, Any] = ":memory:") -> None:
        self.path = str(path)
        self.conn = sqlite3.connect(self.path)
        self._known: Dict[str, int] = {}

    def _ensure_table(self, name: str, width: int) -> None:
        if not _NAME_RE.match(name):
            raise ValueError(f"Invalid trace name {name!r}: use letters, digits and underscores.")
        known = self._known.get(name)
        if known is None:
            cols = ", ".join([f"beta{j} REAL" for j in range(width)] + ["ll REAL"])
            self.conn.execute(f"CREATE TABLE IF NOT EXISTS {name} ({cols})")
            self._known[name] = width
        elif known != width:
            raise ValueError(
                f"Trace {name!r} holds {known}-parameter rows; got {width} parameters."
            )

    def append(self, name: str, flat: np.ndarray, value: float) -> None:
        flat = np.asarray(flat, dtype=float).reshape((-1,))
        self._ensure_table(name, int(flat.shape[0]))
        marks = ", ".join(["?"] * (flat.shape[0] + 1))
        self.conn.execute(
            f"INSERT INTO {name} VALUES ({marks})",
            [float(v) for v in flat] + [float(value)],
        )

    def commit(self) -> None:
        self.conn.commit()

    def close(self) -> None:
        self.conn.commit()
        self.conn.close()

    def __enter__(self) -> "SQLiteTraceSink":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def to_array(self, name: str) -> np.ndarray:
        if not _NAME_RE.match(name):
            raise ValueError(f"Invalid trace name {name!r}.")
        rows = self.conn.execute(f"SELECT * FROM {name}").fetchall()
        if not rows:
            return np.zeros((0, 0), dtype=float)
        return np.asarray(rows, dtype=float)


def plot_trace(
    sink: Union[MemoryTraceSink, SQLiteTraceSink],
    name: str,
    *,
    ax: Optional[Any] = None,
    line_kwargs: Optional[Dict[str, Any]] = None,
) -> Tuple[Any, Any]:
    """Plot a traced search path on a Matplotlib Axes.

    One-parameter traces are drawn as ``ll`` against ``beta0``; traces with two
    or more parameters as ``beta1`` against ``beta0`` colored by ``ll``.
    """
    import matplotlib.pyplot as plt

    path = sink.to_array(name)
    if path.size == 0:
        raise ValueError(f"Trace {name!r} is empty.")

    if ax is None:
        fig, ax = plt.subplots()
    else:
        fig = ax.figure

    line_kwargs = dict(line_kwargs or {})
    line_kwargs.setdefault("linewidth", 0.5)
    line_kwargs.setdefault("marker", "o")
    line_kwargs.setdefault("markersize", 2)

    if path.shape[1] == 2:
        ax.plot(path[:, 0], path[:, 1], **line_kwargs)
        ax.set_xlabel("beta0")
        ax.set_ylabel("log-likelihood")
    else:
        line_kwargs.setdefault("color", "0.6")
        ax.plot(path[:, 0], path[:, 1], **line_kwargs)
        sc = ax.scatter(path[:, 0], path[:, 1], c=path[:, -1], s=8, zorder=3)
        fig.colorbar(sc, ax=ax, label="log-likelihood")
        ax.set_xlabel("beta0")
        ax.set_ylabel("beta1")
    ax.set_title(name)
    return fig, ax
