"""Limited-memory approximation of the inverse Hessian.

The operator stores up to ``m`` correction pairs ``(s, y)`` with
``s = x1 - x0`` and ``y = g1 - g0`` in ring buffers and applies the BFGS
inverse Hessian approximation with Strang's two-loop recursion
(Nocedal & Wright, Algorithm 7.4).  The pair of logical offset ``k``
(``k = 1`` for the newest) lives in slot ``(mark - k) % m``.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Optional

import numpy as np

from ..space import Array, VectorSpace, combine, dot

Preconditioner = Callable[[Array], Array]


class InverseHessianApproximation(Enum):
    """Rule used to scale the initial inverse Hessian approximation."""

    NONE = 0
    BY_INITIAL_STS_OVER_STY = 1
    BY_INITIAL_STY_OVER_YTY = 2
    BY_STS_OVER_STY = 3
    BY_STY_OVER_YTY = 4
    BY_USER = 5


class LBFGSOperator:
    """Two-loop recursion L-BFGS operator.

    Args:
        space: Vector space of the variables.
        m: Number of correction pairs to memorize.
        H0: Optional preconditioner, a callable returning an approximation
            of the inverse Hessian applied to its argument.  It must be
            symmetric positive definite.
    """

    def __init__(self, space: VectorSpace, m: int, H0: Optional[Preconditioner] = None) -> None:
        if m < 1:
            raise ValueError(f"m must be >= 1, got {m}")
        self.space = space
        self.m = int(m)
        self.H0 = H0
        self._s = [space.create() for _ in range(self.m)]
        self._y = [space.create() for _ in range(self.m)]
        self._rho = np.zeros(self.m)
        self._beta = np.zeros(self.m)
        self._tmp = space.create()
        self.mp = 0
        self.mark = 0
        self._gamma = 1.0
        self.rule = (
            InverseHessianApproximation.NONE
            if H0 is not None
            else InverseHessianApproximation.BY_STY_OVER_YTY
        )

    @property
    def gamma(self) -> float:
        """Scale applied to the initial approximation."""
        return self._gamma

    def set_scale(self, value: float) -> None:
        """Fix the scale of the initial approximation (rule ``BY_USER``)."""
        if not value > 0:
            raise ValueError(f"scale must be strictly positive, got {value}")
        self._gamma = float(value)
        self.rule = InverseHessianApproximation.BY_USER

    def slot(self, k: int) -> int:
        """Ring buffer index of the pair at logical offset ``k``."""
        if k < 0 or k > self.mp:
            raise IndexError(f"offset {k} out of range [0, {self.mp}]")
        return (self.mark - k) % self.m

    def s(self, k: int) -> Array:
        """Step difference at logical offset ``k`` (0 is the slot to be overwritten)."""
        return self._s[self.slot(k)]

    def y(self, k: int) -> Array:
        """Gradient difference at logical offset ``k``."""
        return self._y[self.slot(k)]

    def rho(self, k: int) -> float:
        return float(self._rho[self.slot(k)])

    def reset(self) -> None:
        """Forget all the correction pairs."""
        self.mp = 0

    def borrow_oldest(self) -> tuple[Array, Array]:
        """Lend the slot the next :meth:`update` will fill.

        When the memory is full the oldest pair is dropped so that its
        storage can be used as scratch by the caller.  The returned arrays
        remain valid until the next call to :meth:`update`, which computes
        the new pair from them.
        """
        if self.mp == self.m:
            self.mp -= 1
        j = self.slot(0)
        return self._s[j], self._y[j]

    def apply(self, v: Array, dst: Optional[Array] = None) -> Array:
        """Compute ``dst = H.v`` where ``H`` approximates the inverse Hessian."""
        self.space.check(v)
        if dst is None:
            dst = self.space.create()
        else:
            self.space.check(dst)
        tmp = self._tmp
        np.copyto(tmp, v)
        for k in range(1, self.mp + 1):
            j = self.slot(k)
            if self._rho[j] > 0:
                self._beta[j] = self._rho[j] * dot(tmp, self._s[j])
                combine(1.0, tmp, -self._beta[j], self._y[j], out=tmp)
        if self.H0 is not None:
            np.copyto(dst, self.H0(tmp))
        else:
            np.copyto(dst, tmp)
        if self._gamma != 1.0:
            dst *= self._gamma
        for k in range(self.mp, 0, -1):
            j = self.slot(k)
            if self._rho[j] > 0:
                psi = self._beta[j] - self._rho[j] * dot(dst, self._y[j])
                if psi != 0:
                    combine(1.0, dst, psi, self._s[j], out=dst)
        return dst

    __call__ = apply

    def update(self, x1: Array, x0: Array, g1: Array, g0: Array) -> bool:
        """Memorize the correction pair ``(x1 - x0, g1 - g0)``.

        ``x0`` and ``g0`` may be the arrays lent by :meth:`borrow_oldest`.
        Pairs with non-positive curvature ``s.y <= 0`` are not stored and
        the memory is left untouched.

        Returns:
            Whether the pair was stored.
        """
        self.space.check(x1, x0, g1, g0)
        s = x1 - x0
        y = g1 - g0
        sty = dot(s, y)
        if not sty > 0:
            return False
        j = self.slot(0)
        np.copyto(self._s[j], s)
        np.copyto(self._y[j], y)
        self._rho[j] = 1.0 / sty
        rule = self.rule
        if rule is InverseHessianApproximation.BY_STY_OVER_YTY or (
            rule is InverseHessianApproximation.BY_INITIAL_STY_OVER_YTY and self.mark == 0
        ):
            self._gamma = sty / dot(y, y)
        elif rule is InverseHessianApproximation.BY_STS_OVER_STY or (
            rule is InverseHessianApproximation.BY_INITIAL_STS_OVER_STY and self.mark == 0
        ):
            self._gamma = dot(s, s) / sty
        self.mark += 1
        self.mp = min(self.mp + 1, self.m)
        return True


__all__ = ["InverseHessianApproximation", "LBFGSOperator", "Preconditioner"]
