"""Mutable box constraints with free-variable and step-limit queries."""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

from ..space import Array, VectorSpace
from .core import Bound, blocked_components, check_bounds, step_limits

DESCENT = 1
ASCENT = -1


class BoxedSet:
    """Feasible set ``lower <= x <= upper`` whose bounds can be changed.

    Each side is either unset, a scalar shared by all variables or an array
    of per-variable values, which gives 9 possible configurations reported
    by :attr:`kind`.  Directions carry an orientation: the variables move
    along ``x + orient*alpha*d`` with ``orient`` equal to :data:`DESCENT`
    (+1) or :data:`ASCENT` (-1).
    """

    def __init__(
        self,
        space: VectorSpace,
        lower: Optional[Bound] = None,
        upper: Optional[Bound] = None,
    ) -> None:
        self.space = space
        self._lower: Optional[Bound] = None
        self._upper: Optional[Bound] = None
        if lower is not None:
            self.set_lower(lower)
        if upper is not None:
            self.set_upper(upper)

    @property
    def lower(self) -> Bound:
        return -math.inf if self._lower is None else self._lower

    @property
    def upper(self) -> Bound:
        return math.inf if self._upper is None else self._upper

    @property
    def kind(self) -> tuple[str, str]:
        """Configuration of the ``(lower, upper)`` bounds."""
        return _kind(self._lower), _kind(self._upper)

    def set_lower(self, value: Bound) -> None:
        bound = self._convert(value)
        check_bounds(bound, self.upper)
        self._lower = None if np.ndim(bound) == 0 and bound == -math.inf else bound

    def set_upper(self, value: Bound) -> None:
        bound = self._convert(value)
        check_bounds(self.lower, bound)
        self._upper = None if np.ndim(bound) == 0 and bound == math.inf else bound

    def unset_lower(self) -> None:
        self._lower = None

    def unset_upper(self) -> None:
        self._upper = None

    def unset_bounds(self) -> None:
        self._lower = None
        self._upper = None

    def _convert(self, value: Bound) -> Bound:
        if np.ndim(value) == 0:
            return float(value)
        arr = np.array(value, dtype=self.space.dtype)
        if arr.shape != self.space.shape:
            raise ValueError(
                f"bound of shape {arr.shape} does not match variables of shape {self.space.shape}"
            )
        return arr

    def contains(self, x: Array) -> bool:
        self.space.check(x)
        return bool(np.all((x >= self.lower) & (x <= self.upper)))

    def project_variables(self, x: Array, xp: Optional[Array] = None) -> Array:
        """Clamp ``x`` into the box, in place when ``xp`` is omitted."""
        if xp is None:
            xp = x
        self.space.check(x, xp)
        np.clip(x, self.lower, self.upper, out=xp)
        return xp

    def project_direction(
        self, x: Array, d: Array, orient: int, dp: Optional[Array] = None
    ) -> Array:
        """Zero the components of ``d`` blocked by a bound at ``x``."""
        if dp is None:
            dp = self.space.create()
        self.space.check(x, d, dp)
        mask = blocked_components(x, _oriented(d, orient), self.lower, self.upper)
        if dp is not d:
            np.copyto(dp, d)
        dp[mask] = 0
        return dp

    def find_free_variables(
        self, x: Array, d: Array, orient: int, w: Optional[Array] = None
    ) -> Array:
        """Mask set to 1 for the variables free to move along ``d`` and 0 otherwise."""
        if w is None:
            w = self.space.create()
        self.space.check(x, d, w)
        mask = blocked_components(x, _oriented(d, orient), self.lower, self.upper)
        w[...] = np.where(mask, 0, 1)
        return w

    def find_step_limits(self, x: Array, d: Array, orient: int) -> tuple[float, float, float]:
        """Return ``(smin, smin_pos, smax)`` for the path ``proj(x + orient*alpha*d)``.

        For ``0 <= alpha <= smin`` no variable crosses a bound; ``smin_pos``
        is the smallest strictly positive such step and for ``alpha >= smax``
        the projected variables no longer change.  Without any bound all
        three values are infinite.
        """
        self.space.check(x, d)
        if self._lower is None and self._upper is None:
            return math.inf, math.inf, math.inf
        return step_limits(x, _oriented(d, orient), self.lower, self.upper)


def _kind(bound: Optional[Bound]) -> str:
    if bound is None:
        return "none"
    return "scalar" if np.ndim(bound) == 0 else "array"


def _oriented(d: Array, orient: int) -> Array:
    if orient > 0:
        return d
    if orient < 0:
        return -d
    raise ValueError("orient must be strictly positive (descent) or negative (ascent)")


__all__ = ["ASCENT", "DESCENT", "BoxedSet"]
