"""Limited-memory quasi-Newton methods (L-BFGS and its bound constrained variants).

All four methods run on :class:`~rcopt.optimize.engine.LineSearchOptimizer`
with an :class:`LBFGSDirection`; they differ in how bounds are handled:

* :class:`LBFGS` is unconstrained;
* :class:`VMLMB` projects the gradient and backtracks along the projected
  path ``P(x0 - alpha*p)``;
* :class:`BLMVM` memorizes projected gradient differences and uses an
  Armijo-like test along the projected path (Benson & More, 2001);
* :class:`LBFGSB` projects the gradient and the direction and runs a More &
  Thuente line search along the projected trial points.

Example
-------
>>> import numpy as np
>>> from rcopt.space import VectorSpace
>>> from rcopt.optimize import LBFGS, OptimTask
>>> A = np.diag([1.0, 10.0]); b = np.array([1.0, 1.0])
>>> opt = LBFGS(VectorSpace((2,)), m=3)
>>> x = np.zeros(2)
>>> task = opt.start()
>>> while task in (OptimTask.COMPUTE_FG, OptimTask.NEW_X):
...     task = opt.iterate(x, 0.5 * x @ A @ x - b @ x, A @ x - b)
>>> task is OptimTask.FINAL_X
True
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..convex.core import BoundProjector
from ..logging import get_logger
from ..space import Array, VectorSpace, combine, dot, norm2
from .core import OptimStatus, OptimTask, check_tolerance
from .engine import DirectionProvider, LineSearchOptimizer, initial_step
from .lbfgs_operator import InverseHessianApproximation, LBFGSOperator, Preconditioner
from .line_search import ArmijoLineSearch, LineSearch, MoreThuenteLineSearch

logger = get_logger(__name__)

_UNIT_STEP_RULES = (InverseHessianApproximation.NONE, InverseHessianApproximation.BY_USER)


class LBFGSDirection(DirectionProvider):
    """Search directions ``p = H.g`` from a limited-memory operator.

    A direction is accepted if ``-p`` is a sufficient descent direction,
    ``<p, g> >= delta*|p|*|g|`` (Zoutendijk); otherwise the memory is
    discarded and the direction recomputed with the initial approximation.
    If even that fails the preconditioner is not positive definite.

    Args:
        operator: The L-BFGS approximation of the inverse Hessian.
        delta: Sufficient descent threshold, in [0, 1).
        epsilon: Relative size of the first step when the memory is empty.
        project: Optional projector applied to the direction (as a gradient)
            before the descent test.
    """

    def __init__(
        self,
        operator: LBFGSOperator,
        delta: float,
        epsilon: float,
        project: Optional[BoundProjector] = None,
    ) -> None:
        self.operator = operator
        self.delta = delta
        self.epsilon = epsilon
        self.project = project

    @property
    def delta(self) -> float:
        return self._delta

    @delta.setter
    def delta(self, value: float) -> None:
        value = check_tolerance("delta", value)
        if value >= 1:
            raise ValueError(f"delta must lie in [0, 1), got {value}")
        self._delta = value

    @property
    def epsilon(self) -> float:
        return self._epsilon

    @epsilon.setter
    def epsilon(self, value: float) -> None:
        value = check_tolerance("epsilon", value)
        if value >= 1:
            raise ValueError(f"epsilon must lie in [0, 1), got {value}")
        self._epsilon = value

    def reset(self) -> None:
        self.operator.reset()

    def update(self, x: Array, x0: Array, g: Array, g0: Array) -> None:
        if not self.operator.update(x, x0, g, g0):
            logger.debug("skipping correction pair with non-positive curvature")

    def storage(self) -> tuple[Array, Array]:
        return self.operator.borrow_oldest()

    def descent_direction(
        self, opt: LineSearchOptimizer, x: Array, g: Array
    ) -> Optional[OptimStatus]:
        """Compute ``opt.p``, restarting the memory if it is not a descent direction."""
        H = self.operator
        gnorm = norm2(g)
        while True:
            H.apply(g, opt.p)
            if self.project is not None:
                self.project.project_gradient(x, opt.p, opt.p)
            pnorm = norm2(opt.p)
            pg = dot(opt.p, g)
            if pg > 0 and pg >= self._delta * pnorm * gnorm:
                opt.dg0 = -pg
                return None
            if H.mp < 1:
                return OptimStatus.BAD_PRECONDITIONER
            logger.debug("not a descent direction, restarting L-BFGS memory")
            H.reset()
            opt.restarts += 1

    def first_step(self, x: Array) -> float:
        H = self.operator
        if H.mp >= 1 or H.rule in _UNIT_STEP_RULES:
            return 1.0
        return initial_step(x, self._pnorm, self._epsilon)

    def compute(
        self, opt: LineSearchOptimizer, x: Array, f: float, g: Array
    ) -> Optional[OptimStatus]:
        reason = self.descent_direction(opt, x, g)
        if reason is None:
            self._pnorm = norm2(opt.p)
            opt.alpha = self.first_step(x)
        return reason


class _QuasiNewton(LineSearchOptimizer):
    """Shared construction and accessors of the L-BFGS family."""

    DELTA = 0.01
    EPSILON = 1e-3
    STPMIN = 1e-20
    STPMAX = 1e20

    def __init__(
        self,
        space: VectorSpace,
        m: int = 5,
        H0: Optional[Preconditioner] = None,
        line_search: Optional[LineSearch] = None,
        projector: Optional[BoundProjector] = None,
        gatol: float = 0.0,
        grtol: float = 1e-6,
        delta: Optional[float] = None,
        epsilon: Optional[float] = None,
        project_direction: bool = False,
    ) -> None:
        operator = LBFGSOperator(space, m, H0)
        direction = LBFGSDirection(
            operator,
            self.DELTA if delta is None else delta,
            self.EPSILON if epsilon is None else epsilon,
            projector if project_direction else None,
        )
        super().__init__(
            space,
            direction,
            line_search,
            projector=projector,
            gatol=gatol,
            grtol=grtol,
            step_min=self.STPMIN,
            step_max=self.STPMAX,
        )

    @property
    def operator(self) -> LBFGSOperator:
        return self.direction.operator

    @property
    def delta(self) -> float:
        """Sufficient descent threshold."""
        return self.direction.delta

    @delta.setter
    def delta(self, value: float) -> None:
        self.direction.delta = value

    @property
    def epsilon(self) -> float:
        """Relative size of the first step when there is no curvature memory."""
        return self.direction.epsilon

    @epsilon.setter
    def epsilon(self, value: float) -> None:
        self.direction.epsilon = value


def _require_projector(projector: Optional[BoundProjector], name: str) -> BoundProjector:
    if projector is None:
        raise ValueError(f"{name} requires a bound projector")
    return projector


class LBFGS(_QuasiNewton):
    """Unconstrained limited-memory BFGS (Nocedal & Wright, Algorithm 7.5).

    The default line search is More & Thuente's with ``ftol=1e-4``,
    ``gtol=0.9`` and ``xtol`` equal to the machine precision.
    """

    def __init__(
        self,
        space: VectorSpace,
        m: int = 5,
        H0: Optional[Preconditioner] = None,
        line_search: Optional[LineSearch] = None,
        gatol: float = 0.0,
        grtol: float = 1e-6,
    ) -> None:
        if line_search is None:
            line_search = MoreThuenteLineSearch(1e-4, 0.9, float(np.finfo(float).eps))
        super().__init__(space, m, H0, line_search, gatol=gatol, grtol=grtol)


class VMLMB(_QuasiNewton):
    """Variable metric limited memory method with bounds.

    The gradient is projected onto the feasible cone, the trial points are
    projected onto the box and the line search only backtracks along the
    chord ``x0 - P(x0 - alpha*p)``.
    """

    DELTA = 5e-2
    EPSILON = 0.0

    def __init__(
        self,
        space: VectorSpace,
        projector: BoundProjector,
        m: int = 5,
        H0: Optional[Preconditioner] = None,
        line_search: Optional[LineSearch] = None,
        gatol: float = 0.0,
        grtol: float = 1e-6,
    ) -> None:
        _require_projector(projector, "VMLMB")
        if line_search is None:
            line_search = ArmijoLineSearch()
        super().__init__(space, m, H0, line_search, projector, gatol=gatol, grtol=grtol)

    def _start_line_search(self, x: Array) -> OptimTask:
        H = self.operator
        combine(1.0, self.x0, -self.alpha, self.p, out=x)
        while True:
            self.projector.project_variables(x)
            s = self.x0 - x
            self.dg0 = -dot(s, self.g0)
            if self.dg0 < 0:
                break
            if self.dg0 == 0 and H.mp < 1:
                return self._success(OptimTask.FINAL_X)
            if H.mp >= 1:
                logger.debug("projected step is not a descent, restarting L-BFGS memory")
                H.reset()
                self.restarts += 1
                H.apply(self.g0, self.p)
                self.alpha = initial_step(self.x0, norm2(self.p), self.epsilon)
            else:
                self.alpha *= 0.5
            combine(1.0, self.x0, -self.alpha, self.p, out=x)
        np.copyto(self.p, s)
        status = self.line_search.start(self.f0, self.dg0, 1.0, self._stpmin, 1.0)
        if not status.is_searching:
            return self._line_search_failure(status)
        self.alpha = self.line_search.step
        return self._next_step(x)


class BLMVM(_QuasiNewton):
    """Bounded limited memory variable metric method (Benson & More, 2001).

    Correction pairs use projected gradients while the anti-search direction
    ``p = H.g`` is computed from the raw gradient; only its projection has to
    be a descent direction.  A trial point ``x = P(x0 - alpha*p)`` is accepted
    when ``f(x) <= f(x0) + sftol*<x - x0, g(x0)>``, otherwise ``alpha`` is
    halved.
    """

    SFTOL = 1e-2

    def __init__(
        self,
        space: VectorSpace,
        projector: BoundProjector,
        m: int = 5,
        H0: Optional[Preconditioner] = None,
        gatol: float = 0.0,
        grtol: float = 1e-6,
        sftol: float = SFTOL,
    ) -> None:
        _require_projector(projector, "BLMVM")
        super().__init__(space, m, H0, None, projector, gatol=gatol, grtol=grtol, delta=0.0)
        self.sftol = sftol
        self._graw0 = space.create()
        self._tmp = space.create()
        self._bounds = np.zeros(2)

    @property
    def sftol(self) -> float:
        """Sufficient decrease tolerance along the projected path."""
        return self._sftol

    @sftol.setter
    def sftol(self, value: float) -> None:
        value = float(value)
        if not 0 < value < 1:
            raise ValueError(f"sftol must lie in (0, 1), got {value}")
        self._sftol = value

    def _new_search(self, x: Array, f: float, g: Array, gw: Array) -> OptimTask:
        H = self.operator
        direction = self.direction
        while True:
            H.apply(g, self.p)
            self.projector.project_direction(x, self.p, True, self._tmp, self._bounds)
            if dot(self._tmp, g) > 0:
                pnorm = norm2(self.p)
                if H.mp >= 1 or H.rule in _UNIT_STEP_RULES:
                    alpha = 1.0
                else:
                    alpha = initial_step(x, pnorm, direction.epsilon)
                self.alpha = min(alpha, float(self._bounds[1]))
                break
            if H.mp < 1:
                return self._failure(OptimStatus.BAD_PRECONDITIONER)
            logger.debug("not a descent direction, restarting L-BFGS memory")
            H.reset()
            self.restarts += 1
        self._save_point(x, f, g, gw)
        np.copyto(self._graw0, g)
        self.starting = False
        return self._next_step(x)

    def _check_trial(self, x: Array, f: float, g: Array, gw: Array) -> Optional[OptimTask]:
        if f <= self.f0 + self._sftol * dot(x - self.x0, self._graw0):
            return None
        self.alpha *= 0.5
        return self._next_step(x)


class LBFGSB(_QuasiNewton):
    """L-BFGS with the gradient and the search direction projected on the bounds.

    The trial points ``P(x0 - alpha*p)`` are generated by a More & Thuente
    line search with a large maximum step.
    """

    STPMAX = 1e6

    def __init__(
        self,
        space: VectorSpace,
        projector: BoundProjector,
        m: int = 5,
        H0: Optional[Preconditioner] = None,
        line_search: Optional[LineSearch] = None,
        gatol: float = 0.0,
        grtol: float = 1e-6,
    ) -> None:
        _require_projector(projector, "LBFGSB")
        if line_search is None:
            line_search = MoreThuenteLineSearch(1e-4, 0.9, float(np.finfo(float).eps))
        super().__init__(
            space,
            m,
            H0,
            line_search,
            projector,
            gatol=gatol,
            grtol=grtol,
            project_direction=True,
        )


__all__ = ["BLMVM", "LBFGS", "LBFGSB", "LBFGSDirection", "VMLMB"]
