"""Vector spaces and the few vector operations the optimizers rely on.

Vectors are plain :class:`numpy.ndarray` objects.  A :class:`VectorSpace`
only records the shape and dtype that every vector of a problem shares, so
that optimizers and projectors can allocate work arrays and refuse vectors
that do not belong to the problem.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

Array = np.ndarray


class IncorrectSpaceError(ValueError):
    """Raised when a vector does not belong to the expected space."""


@dataclass(frozen=True)
class VectorSpace:
    """Real vector space of arrays with a fixed shape and dtype."""

    shape: Tuple[int, ...]
    dtype: np.dtype = np.dtype(np.float64)

    def __post_init__(self) -> None:
        shape = (self.shape,) if isinstance(self.shape, (int, np.integer)) else tuple(self.shape)
        if any(int(n) < 1 for n in shape):
            raise ValueError(f"all dimensions must be >= 1, got {shape}")
        dtype = np.dtype(self.dtype)
        if dtype.kind != "f":
            raise ValueError(f"only floating point spaces are supported, got {dtype}")
        object.__setattr__(self, "shape", tuple(int(n) for n in shape))
        object.__setattr__(self, "dtype", dtype)

    @classmethod
    def like(cls, x: Array) -> "VectorSpace":
        """Space of the arrays shaped like ``x``."""
        x = np.asarray(x)
        dtype = x.dtype if x.dtype.kind == "f" else np.dtype(np.float64)
        return cls(x.shape, dtype)

    @property
    def size(self) -> int:
        return int(np.prod(self.shape))

    def create(self, fill: float | None = None) -> Array:
        """Allocate a new vector, zero filled unless ``fill`` is given."""
        if fill is None:
            return np.zeros(self.shape, dtype=self.dtype)
        return np.full(self.shape, fill, dtype=self.dtype)

    def owns(self, x: object) -> bool:
        return isinstance(x, np.ndarray) and x.shape == self.shape and x.dtype == self.dtype

    def check(self, *vectors: object) -> None:
        """Raise :class:`IncorrectSpaceError` unless all vectors belong here."""
        for x in vectors:
            if not self.owns(x):
                if isinstance(x, np.ndarray):
                    found = f"array of shape {x.shape} and dtype {x.dtype}"
                else:
                    found = type(x).__name__
                raise IncorrectSpaceError(
                    f"expected array of shape {self.shape} and dtype {self.dtype}, got {found}"
                )


def dot(x: Array, y: Array) -> float:
    """Inner product of two vectors of the same space."""
    return float(np.vdot(x, y))


def norm2(x: Array) -> float:
    """Euclidean norm."""
    return float(np.linalg.norm(x.ravel()))


def norm_inf(x: Array) -> float:
    return float(np.max(np.abs(x))) if x.size else 0.0


def combine(alpha: float, x: Array, beta: float, y: Array, out: Array | None = None) -> Array:
    """Compute ``alpha*x + beta*y``.

    ``out`` may be ``x`` or ``y``; the combination is evaluated so that
    such aliasing is safe.
    """
    if out is None:
        return alpha * x + beta * y
    if x is y:
        np.multiply(x, alpha + beta, out=out)
        return out
    if out is y:
        # scale y first so that x is still intact when it is added
        if beta != 1.0:
            np.multiply(out, beta, out=out)
        if alpha != 0.0:
            out += alpha * x
        return out
    if alpha == 1.0:
        if out is not x:
            np.copyto(out, x)
    else:
        np.multiply(x, alpha, out=out)
    if beta != 0.0:
        out += beta * y
    return out


__all__ = [
    "Array",
    "IncorrectSpaceError",
    "VectorSpace",
    "combine",
    "dot",
    "norm2",
    "norm_inf",
]
