"""Generic line-search driven reverse-communication engine.

:class:`LineSearchOptimizer` implements the iterate / line-search cycle
shared by all the descent methods of this package.  What differs between
the methods is delegated to two collaborators:

* a :class:`DirectionProvider` computes the (anti-)search direction ``p``
  and the first step of each line search, and owns the storage of the
  previous iterate;
* an optional :class:`~rcopt.convex.BoundProjector` projects gradients,
  directions and trial points for bound constrained problems.

Trial points are ``x = x0 - alpha*p`` so ``p`` is an ascent direction and
the directional derivative along the search is ``-<p, g>``.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..convex.core import BoundProjector
from ..logging import get_logger
from ..space import Array, VectorSpace, combine, dot, norm2
from .core import (
    LineSearchStatus,
    OptimStatus,
    OptimTask,
    ReverseCommunicationOptimizer,
    check_tolerance,
    gradient_threshold,
)
from .line_search import LineSearch

logger = get_logger(__name__)


def initial_step(x: Array, pnorm: float, epsilon: float) -> float:
    """Length of a first step when no curvature information is available.

    The step moves the variables by a fraction ``epsilon`` of their norm, or
    has unit norm when ``x`` is zero or ``epsilon`` is not in (0, 1).
    """
    if 0 < epsilon < 1:
        xnorm = norm2(x)
        if xnorm > 0:
            return (xnorm / pnorm) * epsilon
    return 1.0 / pnorm


class DirectionProvider:
    """Strategy computing search directions for :class:`LineSearchOptimizer`."""

    def reset(self) -> None:
        """Forget all memory of previous iterations."""

    def update(self, x: Array, x0: Array, g: Array, g0: Array) -> None:
        """Account for a new iterate ``x`` accepted after ``x0``."""

    def storage(self) -> tuple[Array, Array]:
        """Arrays where the engine saves the previous iterate and gradient."""
        raise NotImplementedError

    def compute(
        self, opt: "LineSearchOptimizer", x: Array, f: float, g: Array
    ) -> Optional[OptimStatus]:
        """Set ``opt.p``, ``opt.dg0`` and ``opt.alpha`` for a new search.

        Returns:
            None on success, otherwise the reason of the failure.
        """
        raise NotImplementedError


class LineSearchOptimizer(ReverseCommunicationOptimizer):
    """Reverse-communication descent method with a line search.

    Args:
        space: Vector space of the variables.
        direction: Strategy computing search directions.
        line_search: One-dimensional search along the directions.
        projector: Optional box projector for bound constrained problems.
        gatol: Absolute gradient tolerance.
        grtol: Relative gradient tolerance.
        step_min: Lower step bound, relative to the first step of a search.
        step_max: Upper step bound, relative to the first step of a search.
    """

    def __init__(
        self,
        space: VectorSpace,
        direction: DirectionProvider,
        line_search: Optional[LineSearch],
        projector: Optional[BoundProjector] = None,
        gatol: float = 0.0,
        grtol: float = 1e-6,
        step_min: float = 1e-20,
        step_max: float = 1e20,
    ) -> None:
        super().__init__(space, gatol, grtol)
        if projector is not None:
            if not isinstance(projector, BoundProjector):
                raise ValueError("projector must be a BoundProjector")
            if projector.space != space:
                raise ValueError("projector and optimizer must share the same space")
        self.direction = direction
        self.line_search = line_search
        self.projector = projector
        self._stpmin = check_tolerance("step_min", step_min)
        self._stpmax = check_tolerance("step_max", step_max)
        if self._stpmin >= self._stpmax:
            raise ValueError(f"step_min ({step_min}) must be less than step_max ({step_max})")
        self.p = space.create()
        self.x0: Array = space.create()
        self.g0: Array = space.create()
        self._pg = space.create() if projector is not None else None
        self.f0 = 0.0
        self.alpha = 0.0
        self.dg0 = 0.0
        self.ginit = 0.0
        self.gnorm = 0.0
        self.starting = True

    @property
    def step_min(self) -> float:
        return self._stpmin

    @property
    def step_max(self) -> float:
        return self._stpmax

    def set_step_bounds(self, step_min: float, step_max: float) -> None:
        """Set the relative bounds of the line search steps."""
        step_min = check_tolerance("step_min", step_min)
        step_max = check_tolerance("step_max", step_max)
        if step_min >= step_max:
            raise ValueError(f"step_min ({step_min}) must be less than step_max ({step_max})")
        self._stpmin = step_min
        self._stpmax = step_max

    @property
    def gradient_threshold(self) -> float:
        return gradient_threshold(self.gatol, self.grtol, self.ginit)

    def start(self) -> OptimTask:
        self.iterations = 0
        self.evaluations = 0
        self.restarts = 0
        return self._begin()

    def restart(self) -> OptimTask:
        self.restarts += 1
        return self._begin()

    def _begin(self) -> OptimTask:
        self.direction.reset()
        if self.line_search is not None:
            self.line_search.reset()
        self.starting = True
        return self._success(OptimTask.COMPUTE_FG)

    def iterate(self, x: Array, f: float, g: Array) -> OptimTask:
        """Submit ``f(x)`` and ``g(x)`` and get the next task."""
        task = self._task
        if task is OptimTask.COMPUTE_FG:
            self.space.check(x, g)
            return self._on_compute_fg(x, f, g)
        if task is OptimTask.NEW_X or task is OptimTask.FINAL_X:
            self.space.check(x, g)
            return self._continue_from(x, f, g)
        return task

    def _on_compute_fg(self, x: Array, f: float, g: Array) -> OptimTask:
        self.evaluations += 1
        gw = self._working_gradient(x, g)
        if not self.starting:
            task = self._check_trial(x, f, g, gw)
            if task is not None:
                return task
            self.iterations += 1
        self.gnorm = norm2(gw)
        if self.evaluations == 1:
            self.ginit = self.gnorm
        if self.gnorm <= self.gradient_threshold:
            logger.debug(
                "%s converged after %d iterations (|g| = %g)",
                type(self).__name__,
                self.iterations,
                self.gnorm,
            )
            return self._success(OptimTask.FINAL_X)
        return self._success(OptimTask.NEW_X)

    def _working_gradient(self, x: Array, g: Array) -> Array:
        """Gradient used by the method: projected when there are bounds."""
        if self.projector is None:
            return g
        return self.projector.project_direction(x, g, True, self._pg)

    def _check_trial(self, x: Array, f: float, g: Array, gw: Array) -> Optional[OptimTask]:
        """Feed a trial point to the line search.

        Returns the task to report when the search goes on or fails, None
        when the trial point is accepted as the new iterate.
        """
        status = self.line_search.iterate(self.alpha, f, -dot(self.p, gw))
        if status is LineSearchStatus.SEARCH:
            self.alpha = self.line_search.step
            return self._next_step(x)
        if status is LineSearchStatus.CONVERGENCE:
            return None
        if status is LineSearchStatus.WARNING_ROUNDING_ERRORS_PREVENT_PROGRESS:
            logger.debug("rounding errors prevent progress, accepting step %g", self.alpha)
            return None
        logger.debug("line search failed: %s", status.name)
        return self._line_search_failure(status)

    def _continue_from(self, x: Array, f: float, g: Array) -> OptimTask:
        """Store the last correction pair and search along a new direction."""
        gw = self._working_gradient(x, g)
        if not self.starting:
            self.direction.update(x, self.x0, gw, self.g0)
        return self._new_search(x, f, g, gw)

    def _new_search(self, x: Array, f: float, g: Array, gw: Array) -> OptimTask:
        reason = self.direction.compute(self, x, f, gw)
        if reason is not None:
            return self._failure(reason)
        self._save_point(x, f, g, gw)
        self.starting = False
        return self._start_line_search(x)

    def _save_point(self, x: Array, f: float, g: Array, gw: Array) -> None:
        self.x0, self.g0 = self.direction.storage()
        np.copyto(self.x0, x)
        np.copyto(self.g0, gw)
        self.f0 = f

    def _start_line_search(self, x: Array) -> OptimTask:
        alpha = self.alpha
        status = self.line_search.start(
            self.f0, self.dg0, alpha, self._stpmin * alpha, self._stpmax * alpha
        )
        if status is not LineSearchStatus.SEARCH:
            return self._line_search_failure(status)
        self.alpha = self.line_search.step
        return self._next_step(x)

    def _next_step(self, x: Array) -> OptimTask:
        combine(1.0, self.x0, -self.alpha, self.p, out=x)
        if self.projector is not None:
            self.projector.project_variables(x)
        return self._success(OptimTask.COMPUTE_FG)


__all__ = ["DirectionProvider", "LineSearchOptimizer", "initial_step"]
