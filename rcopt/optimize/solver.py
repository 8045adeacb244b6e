"""Driver looping the reverse-communication protocol against a cost function."""

from __future__ import annotations

import math
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

import numpy as np

from ..convex.core import ConvexSetProjector
from ..logging import get_logger
from ..space import Array, IncorrectSpaceError, VectorSpace, dot
from .core import OptimStatus, OptimTask, ReverseCommunicationOptimizer

logger = get_logger(__name__)


class DifferentiableCostFunction(ABC):
    """Cost function providing its value and gradient."""

    input_space: VectorSpace

    @abstractmethod
    def compute_cost_and_gradient(self, alpha: float, x: Array, gx: Array, clr: bool) -> float:
        """Return ``alpha*f(x)`` and store ``alpha*grad f(x)`` in ``gx``.

        Args:
            alpha: Scale applied to the cost and its gradient.
            x: Variables.
            gx: Gradient output.
            clr: Overwrite ``gx`` when true, add to it otherwise.
        """


class FunctionCost(DifferentiableCostFunction):
    """Cost function built from plain ``fun(x)`` and ``grad(x)`` callables."""

    def __init__(
        self,
        space: VectorSpace,
        fun: Callable[[Array], float],
        grad: Callable[[Array], Array],
    ) -> None:
        self.input_space = space
        self.fun = fun
        self.grad = grad

    def compute_cost_and_gradient(self, alpha: float, x: Array, gx: Array, clr: bool) -> float:
        if alpha == 0:
            if clr:
                gx.fill(0)
            return 0.0
        g = np.asarray(self.grad(x), dtype=gx.dtype).reshape(gx.shape)
        if clr:
            np.multiply(g, alpha, out=gx)
        else:
            gx += alpha * g
        return alpha * float(self.fun(x))


class QuadraticCost(DifferentiableCostFunction):
    """``f(x) = 0.5*<x, A.x> - <b, x>`` with ``A`` symmetric."""

    def __init__(self, A: Array, b: Array) -> None:
        A = np.asarray(A, dtype=float)
        b = np.asarray(b, dtype=float)
        if A.ndim != 2 or A.shape[0] != A.shape[1] or A.shape[0] != b.size:
            raise ValueError(f"incompatible shapes {A.shape} and {b.shape}")
        self.A = A
        self.b = b.ravel()
        self.input_space = VectorSpace((b.size,))

    def compute_cost_and_gradient(self, alpha: float, x: Array, gx: Array, clr: bool) -> float:
        ax = self.A @ x
        g = ax - self.b
        if clr:
            np.multiply(g, alpha, out=gx)
        else:
            gx += alpha * g
        return alpha * (0.5 * dot(x, ax) - dot(self.b, x))


class IterativeDifferentiableSolver:
    """Minimize a differentiable cost function with a reverse-communication optimizer.

    Args:
        cost: Cost function to minimize.
        optimizer: Optimizer working in the input space of ``cost``.
        projector: Projector applied to the initial variables, by default
            the projector of the optimizer if it has one.
        max_iter: Maximum number of iterations, negative for no limit.
        max_eval: Maximum number of evaluations, negative for no limit.
        save_best: Keep a copy of the best variables found so far.
        stepping: Return to the caller after every evaluation.

    Example:
        >>> import numpy as np
        >>> from rcopt.optimize import LBFGS, IterativeDifferentiableSolver, QuadraticCost
        >>> cost = QuadraticCost(np.diag([1.0, 4.0]), np.array([1.0, 2.0]))
        >>> solver = IterativeDifferentiableSolver(cost, LBFGS(cost.input_space))
        >>> x = np.zeros(2)
        >>> solver.solve(x).name
        'FINAL_X'
    """

    def __init__(
        self,
        cost: DifferentiableCostFunction,
        optimizer: ReverseCommunicationOptimizer,
        projector: Optional[ConvexSetProjector] = None,
        max_iter: int = 200,
        max_eval: int = -1,
        save_best: bool = False,
        stepping: bool = False,
    ) -> None:
        self._cost = None
        self._optimizer = None
        self.set_components(cost, optimizer)
        self.projector = projector
        self.max_iter = max_iter
        self.max_eval = max_eval
        self.save_best = save_best
        self.stepping = stepping
        self._fx = math.nan
        self._fx_best = math.inf
        self._x_best: Optional[Array] = None
        self._gx_best: Optional[Array] = None
        self._first_time = True
        self._update_pending = False
        self._elapsed = 0.0
        self.iterations = 0
        self.evaluations = 0
        self.restarts = 0

    def set_components(
        self, cost: DifferentiableCostFunction, optimizer: ReverseCommunicationOptimizer
    ) -> None:
        """Change the cost function and the optimizer; they must share their space."""
        if cost.input_space != optimizer.space:
            raise IncorrectSpaceError(
                "optimizer and cost function must operate on the same vector space"
            )
        if cost is not self._cost or optimizer is not self._optimizer:
            self._cost = cost
            self._optimizer = optimizer
            self.space = cost.input_space
            self._gx = self.space.create()
            self._update_pending = True

    @property
    def cost_function(self) -> DifferentiableCostFunction:
        return self._cost

    @property
    def optimizer(self) -> ReverseCommunicationOptimizer:
        return self._optimizer

    @property
    def max_iter(self) -> int:
        return self._max_iter

    @max_iter.setter
    def max_iter(self, value: int) -> None:
        self._max_iter = -1 if value < 0 else int(value)

    @property
    def max_eval(self) -> int:
        return self._max_eval

    @max_eval.setter
    def max_eval(self, value: int) -> None:
        self._max_eval = -1 if value < 0 else int(value)

    @property
    def cost(self) -> float:
        """Cost at the last evaluated variables."""
        return self._fx

    @property
    def gradient(self) -> Array:
        """Gradient at the last evaluated variables."""
        return self._gx

    @property
    def best_cost(self) -> float:
        return self._fx_best

    @property
    def best_solution(self) -> Optional[Array]:
        """Best variables so far, only available with ``save_best``."""
        return self._x_best

    @property
    def best_gradient(self) -> Optional[Array]:
        return self._gx_best

    @property
    def elapsed_time(self) -> float:
        """Seconds spent in the cost function."""
        return self._elapsed

    @property
    def task(self) -> OptimTask:
        return self._optimizer.task

    @property
    def status(self) -> OptimStatus:
        return self._optimizer.reason

    def get_message(self) -> str:
        return self._optimizer.get_message()

    def start(self, x: Array, reset: bool = True) -> OptimTask:
        """Start (or restart) the optimization from ``x``, modified in place."""
        self.space.check(x)
        if not self.save_best:
            self._x_best = None
            self._gx_best = None
        self._update_pending = False
        self._first_time = True
        if reset:
            self._elapsed = 0.0
            self.iterations = 0
            self.evaluations = 0
            self.restarts = 0
        projector = self.projector
        if projector is None:
            projector = getattr(self._optimizer, "projector", None)
        if projector is not None:
            projector.project_variables(x)
        task = self._optimizer.start()
        while task is OptimTask.COMPUTE_FG:
            task = self._compute_fg(x)
            if self.stepping:
                break
        return task

    def iterate(self, x: Array) -> OptimTask:
        """Proceed with the next iteration."""
        if self._update_pending:
            return self.start(x, reset=False)
        optimizer = self._optimizer
        task = optimizer.task
        if task in (OptimTask.ERROR, OptimTask.WARNING):
            return task
        if self._max_iter >= 0 and self.iterations >= self._max_iter:
            logger.warning("too many iterations (%d)", self.iterations)
            return optimizer.warn(OptimStatus.TOO_MANY_ITERATIONS)
        if task in (OptimTask.NEW_X, OptimTask.FINAL_X):
            task = optimizer.iterate(x, self._fx, self._gx)
        while task is OptimTask.COMPUTE_FG:
            task = self._compute_fg(x)
            if self.stepping:
                break
        if task in (OptimTask.NEW_X, OptimTask.FINAL_X):
            self.iterations += 1
            logger.debug("iteration %d: f = %.10g", self.iterations, self._fx)
        return task

    def solve(self, x: Array) -> OptimTask:
        """Iterate from ``x`` until convergence, a warning or an error."""
        task = self.start(x)
        while task in (OptimTask.NEW_X, OptimTask.COMPUTE_FG):
            task = self.iterate(x)
        return task

    def _compute_fg(self, x: Array) -> OptimTask:
        optimizer = self._optimizer
        if self._max_eval >= 0 and self.evaluations >= self._max_eval:
            logger.warning("too many evaluations (%d)", self.evaluations)
            return optimizer.warn(OptimStatus.TOO_MANY_EVALUATIONS)
        restarts = optimizer.restarts
        t0 = time.perf_counter()
        self._fx = self._cost.compute_cost_and_gradient(1.0, x, self._gx, True)
        self._elapsed += time.perf_counter() - t0
        self.evaluations += 1
        if self._first_time or self._fx < self._fx_best:
            if self.save_best:
                if self._x_best is None:
                    self._x_best = self.space.create()
                    self._gx_best = self.space.create()
                np.copyto(self._x_best, x)
                np.copyto(self._gx_best, self._gx)
            self._fx_best = self._fx
            self._first_time = False
        task = optimizer.iterate(x, self._fx, self._gx)
        self.restarts += max(0, optimizer.restarts - restarts)
        return task


__all__ = [
    "DifferentiableCostFunction",
    "FunctionCost",
    "IterativeDifferentiableSolver",
    "QuadraticCost",
]
