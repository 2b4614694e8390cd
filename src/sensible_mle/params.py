from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

__all__ = [
    "ParameterShape",
    "StructuredParameters",
    "pack",
    "unpack",
]


@dataclass(frozen=True)
class ParameterShape:
    """Shape descriptor: a fixed-length vector part plus a rows x cols matrix part."""

    vector_size: int = 0
    rows: int = 0
    cols: int = 0

    def __post_init__(self) -> None:
        for name in ("vector_size", "rows", "cols"):
            v = getattr(self, name)
            if int(v) != v or v < 0:
                raise ValueError(f"ParameterShape.{name} must be a non-negative int, got {v!r}.")
        if (self.rows == 0) != (self.cols == 0):
            raise ValueError("ParameterShape: rows and cols must both be zero or both positive.")

    @property
    def matrix_size(self) -> int:
        return int(self.rows) * int(self.cols)

    @property
    def size(self) -> int:
        """Length of the flat vector."""
        return int(self.vector_size) + self.matrix_size


@dataclass(frozen=True, eq=False)
class StructuredParameters:
    """A model's natural parameter layout.

    Either part may be absent (``None``); a zero-length part is stored as ``None``.
    Instances compare equal when both parts match exactly (bit-for-bit).
    """

    vector: Optional[np.ndarray] = None
    matrix: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        v = self.vector
        if v is not None:
            v = np.array(v, dtype=float).reshape((-1,))
            object.__setattr__(self, "vector", v if v.size else None)
        m = self.matrix
        if m is not None:
            m = np.array(m, dtype=float)
            if m.ndim != 2:
                raise ValueError(f"StructuredParameters.matrix must be 2-D, got shape {m.shape}.")
            object.__setattr__(self, "matrix", m if m.size else None)

    @property
    def shape(self) -> ParameterShape:
        vs = 0 if self.vector is None else int(self.vector.shape[0])
        rows, cols = (0, 0) if self.matrix is None else tuple(int(s) for s in self.matrix.shape)
        return ParameterShape(vs, rows, cols)

    @property
    def size(self) -> int:
        return self.shape.size

    def pack(self) -> np.ndarray:
        return pack(self)

    def copy(self) -> "StructuredParameters":
        return StructuredParameters(
            vector=None if self.vector is None else self.vector.copy(),
            matrix=None if self.matrix is None else self.matrix.copy(),
        )

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, StructuredParameters):
            return NotImplemented
        return _same(self.vector, other.vector) and _same(self.matrix, other.matrix)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        parts = []
        if self.vector is not None:
            parts.append(f"vector={np.array2string(self.vector, precision=6)}")
        if self.matrix is not None:
            parts.append(f"matrix={np.array2string(self.matrix, precision=6)}")
        return f"StructuredParameters({', '.join(parts)})"


def _same(a: Optional[np.ndarray], b: Optional[np.ndarray]) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return a.shape == b.shape and bool(np.array_equal(a, b))


def pack(params: StructuredParameters) -> np.ndarray:
    """Flatten: the vector part first, then the matrix part in row-major order."""
    pieces = []
    if params.vector is not None:
        pieces.append(params.vector)
    if params.matrix is not None:
        pieces.append(params.matrix.reshape((-1,)))
    if not pieces:
        return np.zeros((0,), dtype=float)
    return np.concatenate(pieces).astype(float, copy=True)


def unpack(flat: Any, shape: ParameterShape) -> StructuredParameters:
    """Exact inverse of :func:`pack` for the given shape.

    Raises ValueError when ``len(flat) != shape.size``.
    """
    flat = np.asarray(flat, dtype=float).reshape((-1,))
    if flat.shape[0] != shape.size:
        raise ValueError(
            f"Flat vector has length {flat.shape[0]}, expected {shape.size} "
            f"(vector_size={shape.vector_size}, rows={shape.rows}, cols={shape.cols})."
        )
    vs = int(shape.vector_size)
    vector = flat[:vs].copy() if vs else None
    matrix = flat[vs:].reshape((shape.rows, shape.cols)).copy() if shape.matrix_size else None
    return StructuredParameters(vector=vector, matrix=matrix)

