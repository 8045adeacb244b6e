"""Unconstrained reference problems of the MINPACK-1 test collection.

Each :class:`ReferenceProblem` bundles the objective, its analytic gradient,
the standard starting point and the known minimum.  They are the usual
benchmark for the optimizers of this package::

    >>> from rcopt.optimize.problems import get_problem
    >>> problem = get_problem("rosenbrock")
    >>> x = problem.initial_point(4)
    >>> round(problem.fun(x), 6)
    48.4

References:
    - Moré, Garbow & Hillstrom, "Testing unconstrained optimization
      software", ACM TOMS 7 (1981)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np

from ..space import Array, VectorSpace
from .solver import FunctionCost

TWO_PI = 2.0 * math.pi


def _helical_theta(x: Array) -> float:
    if x[0] > 0:
        return math.atan(x[1] / x[0]) / TWO_PI
    if x[0] < 0:
        return math.atan(x[1] / x[0]) / TWO_PI + 0.5
    return 0.25 if x[1] >= 0 else -0.25


def helical_valley(x: Array) -> float:
    r = math.hypot(x[0], x[1]) - 1.0
    t = x[2] - 10.0 * _helical_theta(x)
    return 100.0 * (t * t + r * r) + x[2] * x[2]


def helical_valley_grad(x: Array) -> Array:
    arg = x[0] * x[0] + x[1] * x[1]
    r = math.sqrt(arg)
    t = x[2] - 10.0 * _helical_theta(x)
    s = 10.0 * t / (TWO_PI * arg)
    return np.array(
        [
            200.0 * (x[0] - x[0] / r + x[1] * s),
            200.0 * (x[1] - x[1] / r - x[0] * s),
            2.0 * (100.0 * t + x[2]),
        ]
    )


def variably_dimensioned(x: Array) -> float:
    j = np.arange(1, x.size + 1)
    t1 = float(np.dot(j, x - 1.0))
    t = t1 * t1
    return float(np.sum((x - 1.0) ** 2)) + t * (1.0 + t)


def variably_dimensioned_grad(x: Array) -> Array:
    j = np.arange(1, x.size + 1)
    t1 = float(np.dot(j, x - 1.0))
    t = t1 * (1.0 + 2.0 * t1 * t1)
    return 2.0 * (x - 1.0 + j * t)


def _trigonometric_residuals(x: Array) -> Array:
    n = x.size
    j = np.arange(1, n + 1)
    c = np.cos(x)
    return (n + j) - np.sin(x) - c.sum() - j * c


def trigonometric(x: Array) -> float:
    t = _trigonometric_residuals(x)
    return float(np.dot(t, t))


def trigonometric_grad(x: Array) -> Array:
    j = np.arange(1, x.size + 1)
    s = np.sin(x)
    t = _trigonometric_residuals(x)
    return 2.0 * ((j * s - np.cos(x)) * t + s * t.sum())


def rosenbrock(x: Array) -> float:
    """Extended Rosenbrock function (pairs of the 2-D banana function)."""
    xo, xe = x[0::2], x[1::2]
    return float(np.sum((1.0 - xo) ** 2 + 100.0 * (xe - xo * xo) ** 2))


def rosenbrock_grad(x: Array) -> Array:
    xo, xe = x[0::2], x[1::2]
    g = np.empty_like(x, dtype=float)
    g[1::2] = 200.0 * (xe - xo * xo)
    g[0::2] = -2.0 * (xo * g[1::2] + 1.0 - xo)
    return g


def powell(x: Array) -> float:
    """Extended Powell singular function."""
    x1, x2, x3, x4 = x[0::4], x[1::4], x[2::4], x[3::4]
    return float(
        np.sum(
            (x1 + 10.0 * x2) ** 2
            + 5.0 * (x3 - x4) ** 2
            + (x2 - 2.0 * x3) ** 4
            + 10.0 * (x1 - x4) ** 4
        )
    )


def powell_grad(x: Array) -> Array:
    x1, x2, x3, x4 = x[0::4], x[1::4], x[2::4], x[3::4]
    t = x1 + 10.0 * x2
    s1 = 5.0 * (x3 - x4)
    s2 = 4.0 * (x2 - 2.0 * x3) ** 3
    s3 = 20.0 * (x1 - x4) ** 3
    g = np.empty_like(x, dtype=float)
    g[0::4] = 2.0 * (t + s3)
    g[1::4] = 20.0 * t + s2
    g[2::4] = 2.0 * (s1 - s2)
    g[3::4] = -2.0 * (s1 + s3)
    return g


_BEALE_Y = np.array([1.5, 2.25, 2.625])


def beale(x: Array) -> float:
    s = 1.0 - x[1] ** np.arange(1, 4)
    t = _BEALE_Y - x[0] * s
    return float(np.dot(t, t))


def beale_grad(x: Array) -> Array:
    s = 1.0 - x[1] ** np.arange(1, 4)
    t1, t2, t3 = _BEALE_Y - x[0] * s
    return np.array(
        [
            -2.0 * float(np.dot(s, (t1, t2, t3))),
            2.0 * x[0] * (t1 + x[1] * (2.0 * t2 + 3.0 * x[1] * t3)),
        ]
    )


def wood(x: Array) -> float:
    s1 = x[1] - x[0] * x[0]
    s3 = x[1] - 1.0
    t1 = x[3] - x[2] * x[2]
    t3 = x[3] - 1.0
    return (
        100.0 * s1 * s1
        + (1.0 - x[0]) ** 2
        + 90.0 * t1 * t1
        + (1.0 - x[2]) ** 2
        + 10.0 * (s3 + t3) ** 2
        + (s3 - t3) ** 2 / 10.0
    )


def wood_grad(x: Array) -> Array:
    s1 = x[1] - x[0] * x[0]
    s3 = x[1] - 1.0
    t1 = x[3] - x[2] * x[2]
    t3 = x[3] - 1.0
    return np.array(
        [
            -2.0 * (200.0 * x[0] * s1 + 1.0 - x[0]),
            200.0 * s1 + 20.2 * s3 + 19.8 * t3,
            -2.0 * (180.0 * x[2] * t1 + 1.0 - x[2]),
            180.0 * t1 + 20.2 * t3 + 19.8 * s3,
        ]
    )


@dataclass(frozen=True)
class ReferenceProblem:
    """An unconstrained test problem with its standard starting point.

    Attributes:
        name: Short identifier.
        fun: Objective function.
        grad: Analytic gradient.
        start: Standard starting point for a given number of variables.
        fmin: Known minimal value.
        dim: Default number of variables.
        multiple: Valid numbers of variables are multiples of this value.
        fixed: True when only ``dim`` variables are allowed.
        xmin: Known minimizer for a given number of variables, if any.
    """

    name: str
    fun: Callable[[Array], float]
    grad: Callable[[Array], Array]
    start: Callable[[int], Array]
    fmin: float
    dim: int
    multiple: int = 1
    fixed: bool = False
    xmin: Optional[Callable[[int], Array]] = None

    def check_dim(self, n: Optional[int] = None) -> int:
        if n is None:
            return self.dim
        if self.fixed and n != self.dim:
            raise ValueError(f"{self.name} requires n = {self.dim}, got {n}")
        if n < 1 or n % self.multiple != 0:
            raise ValueError(
                f"{self.name} requires n to be a positive multiple of {self.multiple}, got {n}"
            )
        return n

    def initial_point(self, n: Optional[int] = None, factor: float = 1.0) -> Array:
        """Standard starting point, optionally scaled by ``factor``."""
        n = self.check_dim(n)
        return factor * np.asarray(self.start(n), dtype=float)

    def minimizer(self, n: Optional[int] = None) -> Optional[Array]:
        if self.xmin is None:
            return None
        return np.asarray(self.xmin(self.check_dim(n)), dtype=float)

    def cost(self, n: Optional[int] = None) -> FunctionCost:
        """Cost function suitable for :class:`IterativeDifferentiableSolver`."""
        return FunctionCost(VectorSpace((self.check_dim(n),)), self.fun, self.grad)


def _rosenbrock_start(n: int) -> Array:
    x = np.empty(n)
    x[0::2] = -1.2
    x[1::2] = 1.0
    return x


PROBLEMS: Dict[str, ReferenceProblem] = {
    p.name: p
    for p in (
        ReferenceProblem(
            "helical_valley",
            helical_valley,
            helical_valley_grad,
            lambda n: np.array([-1.0, 0.0, 0.0]),
            0.0,
            dim=3,
            fixed=True,
            xmin=lambda n: np.array([1.0, 0.0, 0.0]),
        ),
        ReferenceProblem(
            "variably_dimensioned",
            variably_dimensioned,
            variably_dimensioned_grad,
            lambda n: 1.0 - np.arange(1, n + 1) / n,
            0.0,
            dim=10,
            xmin=np.ones,
        ),
        ReferenceProblem(
            "trigonometric",
            trigonometric,
            trigonometric_grad,
            lambda n: np.full(n, 1.0 / n),
            0.0,
            dim=10,
        ),
        ReferenceProblem(
            "rosenbrock",
            rosenbrock,
            rosenbrock_grad,
            _rosenbrock_start,
            0.0,
            dim=2,
            multiple=2,
            xmin=np.ones,
        ),
        ReferenceProblem(
            "powell",
            powell,
            powell_grad,
            lambda n: np.tile([3.0, -1.0, 0.0, 1.0], n // 4),
            0.0,
            dim=4,
            multiple=4,
            xmin=np.zeros,
        ),
        ReferenceProblem(
            "beale",
            beale,
            beale_grad,
            lambda n: np.array([1.0, 1.0]),
            0.0,
            dim=2,
            fixed=True,
            xmin=lambda n: np.array([3.0, 0.5]),
        ),
        ReferenceProblem(
            "wood",
            wood,
            wood_grad,
            lambda n: np.array([-3.0, -1.0, -3.0, -1.0]),
            0.0,
            dim=4,
            fixed=True,
            xmin=np.ones,
        ),
    )
}


def get_problem(name: str) -> ReferenceProblem:
    try:
        return PROBLEMS[name]
    except KeyError:
        raise ValueError(f"unknown problem {name!r}, expected one of {sorted(PROBLEMS)}") from None


__all__ = [
    "PROBLEMS",
    "ReferenceProblem",
    "beale",
    "beale_grad",
    "get_problem",
    "helical_valley",
    "helical_valley_grad",
    "powell",
    "powell_grad",
    "rosenbrock",
    "rosenbrock_grad",
    "trigonometric",
    "trigonometric_grad",
    "variably_dimensioned",
    "variably_dimensioned_grad",
    "wood",
    "wood_grad",
]
