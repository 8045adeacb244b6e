"""Non-linear conjugate gradient methods.

The new search direction is ``d' = -g1 + beta*d`` where ``beta`` depends on
the chosen rule.  With the anti-search direction ``p = -d`` used by the
engine, the update reads ``p' = g1 + beta*p``.  Notations below:
``y = g1 - g0``, ``dg0 = <d, g0>``, ``dg1 = <d, g1>`` and ``dy = <d, y>``.

References:
    - Hager & Zhang, "A survey of nonlinear conjugate gradient methods",
      Pacific J. Optim. 2 (2006)
    - Shanno & Phua, "Remark on algorithm 500", ACM TOMS 6 (1980)
    - Nocedal & Wright, *Numerical Optimization* (2006), section 5.2
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from ..logging import get_logger
from ..space import Array, VectorSpace, combine, dot, norm2
from .core import OptimStatus, check_tolerance
from .engine import DirectionProvider, LineSearchOptimizer
from .line_search import LineSearch, MoreThuenteLineSearch

logger = get_logger(__name__)


class CGRule(Enum):
    """Formula giving ``beta`` in the direction update."""

    FLETCHER_REEVES = 1
    HESTENES_STIEFEL = 2
    POLAK_RIBIERE_POLYAK = 3
    FLETCHER = 4
    LIU_STOREY = 5
    DAI_YUAN = 6
    PERRY_SHANNO = 7
    HAGER_ZHANG = 8


@dataclass(frozen=True)
class CGMethod:
    """
    Selection of a conjugate gradient variant.

    Args:
        rule: Update formula for ``beta``.
        force_nonnegative_beta: Restart whenever ``beta < 0`` (Powell's
            modification, ``beta = max(beta, 0)``).
        rescale_initial_step: Choose the first step of a line search so that
            ``<alpha*d, g>`` is the same as for the previous search (Shanno &
            Phua) instead of reusing the previous step.
    """

    rule: CGRule = CGRule.HAGER_ZHANG
    force_nonnegative_beta: bool = False
    rescale_initial_step: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.rule, CGRule):
            raise ValueError(f"rule must be a CGRule, got {self.rule!r}")


class ConjugateGradientDirection(DirectionProvider):
    """Direction update of the non-linear conjugate gradient methods."""

    def __init__(self, space: VectorSpace, method: CGMethod, epsilon: float = 0.0) -> None:
        self.method = method
        self.epsilon = check_tolerance("epsilon", epsilon)
        self.fmin: Optional[float] = None
        self.beta = 0.0
        self._x0 = space.create()
        self._g0 = space.create()
        self._y = space.create()
        self._g0norm = 0.0

    def storage(self) -> tuple[Array, Array]:
        return self._x0, self._g0

    def compute(
        self, opt: LineSearchOptimizer, x: Array, f: float, g: Array
    ) -> Optional[OptimStatus]:
        g1norm = norm2(g)
        restart = opt.starting
        if not restart:
            restart = not self._update(opt, g, g1norm)
            if restart:
                logger.debug("%s update failed, restarting", self.method.rule.name)
            else:
                dg = -dot(opt.p, g)
                if dg >= -self.epsilon * norm2(opt.p) * g1norm:
                    logger.debug("not a descent direction, restarting")
                    restart = True
                else:
                    if self.method.rescale_initial_step:
                        opt.alpha *= opt.dg0 / dg
                    opt.dg0 = dg
        if restart:
            if not opt.starting:
                opt.restarts += 1
            self.beta = 0.0
            np.copyto(opt.p, g)
            opt.dg0 = -g1norm * g1norm
            if self.fmin is not None and self.fmin < f:
                opt.alpha = 2.0 * (self.fmin - f) / opt.dg0
            else:
                opt.alpha = 1.0 / g1norm
        self._g0norm = g1norm
        return None

    def _update(self, opt: LineSearchOptimizer, g1: Array, g1norm: float) -> bool:
        """Apply the update rule to ``opt.p``; False when a restart is needed."""
        p = opt.p
        g0 = opt.g0
        rule = self.method.rule
        if rule is CGRule.FLETCHER_REEVES:
            if self._g0norm <= 0:
                return False
            return self._apply(p, g1, (g1norm / self._g0norm) ** 2)
        if rule is CGRule.FLETCHER:
            if opt.dg0 == 0:
                return False
            return self._apply(p, g1, g1norm * (g1norm / -opt.dg0))

        y = np.subtract(g1, g0, out=self._y)
        if rule is CGRule.POLAK_RIBIERE_POLYAK:
            if self._g0norm <= 0:
                return False
            return self._apply(p, g1, dot(g1, y) / self._g0norm**2)
        if rule is CGRule.LIU_STOREY:
            if opt.dg0 == 0:
                return False
            return self._apply(p, g1, dot(g1, y) / -opt.dg0)

        dy = -dot(p, y)
        if dy == 0:
            return False
        if rule is CGRule.HESTENES_STIEFEL:
            return self._apply(p, g1, dot(g1, y) / dy)
        if rule is CGRule.DAI_YUAN:
            return self._apply(p, g1, g1norm * (g1norm / dy))
        dg1 = -dot(p, g1)
        if rule is CGRule.HAGER_ZHANG:
            r = norm2(y) / dy
            return self._apply(p, g1, dot(y, g1) / dy - 2.0 * r * r * dg1)
        # Perry & Shanno: p' = c1*g1 + c2*p + c3*y
        yy = dot(y, y)
        if yy <= 0:
            return False
        c1 = dy / yy
        c2 = dot(g1, y) / yy - 2.0 * dg1 / dy
        c3 = -dg1 / yy
        self.beta = c2 / c1
        p *= c2
        p += c1 * g1
        p += c3 * y
        return True

    def _apply(self, p: Array, g1: Array, beta: float) -> bool:
        if not math.isfinite(beta):
            return False
        if self.method.force_nonnegative_beta and beta < 0:
            logger.debug("negative beta (%g) with Powell's rule", beta)
            return False
        self.beta = beta
        if beta == 0:
            return False
        combine(1.0, g1, beta, p, out=p)
        return True


class NonLinearConjugateGradient(LineSearchOptimizer):
    """Non-linear conjugate gradient optimizer.

    Args:
        space: Vector space of the variables.
        method: Variant to use (default Hager & Zhang with Shanno & Phua
            initial step rescaling).
        line_search: Line search, More & Thuente with ``ftol=0.05``,
            ``gtol=0.1`` and ``xtol=1e-17`` by default.
        gatol: Absolute gradient tolerance.
        grtol: Relative gradient tolerance.
        epsilon: Restart unless ``<d, g> < -epsilon*|d|*|g|``.
        fmin: Optional lower bound of the objective, used to size the first
            step after a restart.
    """

    STPMIN = 1e-20
    STPMAX = 1e6

    def __init__(
        self,
        space: VectorSpace,
        method: CGMethod = CGMethod(),
        line_search: Optional[LineSearch] = None,
        gatol: float = 0.0,
        grtol: float = 1e-3,
        epsilon: float = 0.0,
        fmin: Optional[float] = None,
    ) -> None:
        if line_search is None:
            line_search = MoreThuenteLineSearch(0.05, 0.1, 1e-17)
        direction = ConjugateGradientDirection(space, method, epsilon)
        super().__init__(
            space,
            direction,
            line_search,
            gatol=gatol,
            grtol=grtol,
            step_min=self.STPMIN,
            step_max=self.STPMAX,
        )
        self.fmin = fmin

    @property
    def method(self) -> CGMethod:
        return self.direction.method

    @property
    def beta(self) -> float:
        """Last value of ``beta`` (0 after a restart)."""
        return self.direction.beta

    @property
    def fmin(self) -> Optional[float]:
        return self.direction.fmin

    @fmin.setter
    def fmin(self, value: Optional[float]) -> None:
        if value is not None:
            value = float(value)
            if math.isnan(value):
                raise ValueError("fmin must not be NaN")
        self.direction.fmin = value


__all__ = [
    "CGMethod",
    "CGRule",
    "ConjugateGradientDirection",
    "NonLinearConjugateGradient",
]
