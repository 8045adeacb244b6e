"""
Projectors onto convex feasible sets.

A :class:`ConvexSetProjector` maps arbitrary variables onto a closed convex
set.  A :class:`BoundProjector` handles the special case of a box
``lower <= x <= upper`` and can also project search directions onto the
tangent cone of the box, which is what the bound-constrained quasi-Newton
methods need.

Directions follow the ``ascent`` convention: when ``ascent`` is true (e.g.
``d`` is a gradient) the variables move along ``x - alpha*d``, otherwise
along ``x + alpha*d``, with ``alpha >= 0``.

References:
    - Nocedal & Wright, *Numerical Optimization* (2006), section 16.7
    - Benson & More, "A limited memory variable metric method for bound
      constraint minimization" (2001)
"""

from __future__ import annotations

import math
from typing import Optional, Union

import numpy as np

from ..space import Array, VectorSpace

Bound = Union[float, Array]


def blocked_components(x: Array, v: Array, lower: Bound, upper: Bound) -> Array:
    """Mask of components that cannot move along ``x + alpha*v``."""
    return ((v < 0) & (x <= lower)) | ((v > 0) & (x >= upper))


def step_limits(x: Array, v: Array, lower: Bound, upper: Bound) -> tuple[float, float, float]:
    """Step lengths at which bounds are met along ``x + alpha*v``.

    Returns ``(smin, smin_pos, smax)``: the step of the first bound reached,
    the smallest strictly positive such step and the step after which no
    variable can move anymore.  Components with ``v == 0`` are ignored; if
    no component moves ``(inf, inf, 0)`` is returned.
    """
    dec = v < 0
    inc = v > 0
    with np.errstate(divide="ignore", invalid="ignore"):
        s_dec = np.broadcast_to(lower - x, x.shape)[dec] / v[dec]
        s_inc = np.broadcast_to(upper - x, x.shape)[inc] / v[inc]
    steps = np.concatenate((s_dec.ravel(), s_inc.ravel()))
    if steps.size == 0:
        return math.inf, math.inf, 0.0
    positive = steps[steps > 0]
    smin_pos = float(positive.min()) if positive.size else math.inf
    return float(steps.min()), smin_pos, float(steps.max())


def check_lower_bound(value: float) -> float:
    """Validate a scalar lower bound (``-inf`` means unbounded)."""
    value = float(value)
    if math.isnan(value) or value == math.inf:
        raise ValueError(f"invalid lower bound value {value}")
    return value


def check_upper_bound(value: float) -> float:
    """Validate a scalar upper bound (``+inf`` means unbounded)."""
    value = float(value)
    if math.isnan(value) or value == -math.inf:
        raise ValueError(f"invalid upper bound value {value}")
    return value


def check_bounds(lower: Bound, upper: Bound) -> None:
    """Validate a pair of (scalar or array) bounds."""
    lo = np.asarray(lower, dtype=float)
    up = np.asarray(upper, dtype=float)
    if np.isnan(lo).any() or (lo == np.inf).any():
        raise ValueError("lower bound contains NaN or +inf")
    if np.isnan(up).any() or (up == -np.inf).any():
        raise ValueError("upper bound contains NaN or -inf")
    if (lo > up).any():
        raise ValueError("lower bound must be less or equal upper bound")


class ConvexSetProjector:
    """Projection onto a closed convex set of a vector space.

    Subclasses implement :meth:`_project_variables`.  Public methods check
    that their arguments belong to :attr:`space` and raise
    :class:`~rcopt.space.IncorrectSpaceError` otherwise.
    """

    def __init__(self, space: VectorSpace) -> None:
        if not isinstance(space, VectorSpace):
            raise ValueError("space must be a VectorSpace")
        self.space = space

    def project_variables(self, x: Array, xp: Optional[Array] = None) -> Array:
        """Store the projection of ``x`` in ``xp`` (in place when omitted)."""
        if xp is None:
            xp = x
        self.space.check(x, xp)
        self._project_variables(x, xp)
        return xp

    def project_gradient(self, x: Array, g: Array, gp: Optional[Array] = None) -> Array:
        """Project the gradient ``g`` at ``x``.

        ``-gp`` is the steepest feasible descent direction.  For a general
        convex set ``gp`` must not be ``g``; box projectors accept in-place
        operation.
        """
        if gp is None:
            gp = self.space.create()
        self.space.check(x, g, gp)
        if gp is g and not isinstance(self, BoundProjector):
            raise ValueError("in-place gradient projection requires a BoundProjector")
        self._project_gradient(x, g, gp)
        return gp

    def project_direction(
        self, x: Array, d: Array, ascent: bool, dp: Optional[Array] = None
    ) -> Array:
        """Project the direction ``d`` onto the tangent cone of the set at ``x``."""
        raise NotImplementedError(f"{type(self).__name__} cannot project directions")

    def _project_variables(self, x: Array, xp: Array) -> None:
        raise NotImplementedError

    def _project_gradient(self, x: Array, g: Array, gp: Array) -> None:
        # gp = x - P(x - g), the projected gradient of the set
        self._project_variables(x - g, gp)
        np.subtract(x, gp, out=gp)


class BoundProjector(ConvexSetProjector):
    """Projector onto a box ``lower <= x <= upper``.

    Subclasses define the :attr:`lower` and :attr:`upper` bounds, each a
    scalar or an array of the shape of the variables, infinite when the
    side is unbounded.
    """

    lower: Bound = -math.inf
    upper: Bound = math.inf

    def project_direction(
        self,
        x: Array,
        d: Array,
        ascent: bool,
        dp: Optional[Array] = None,
        bounds: Optional[Array] = None,
    ) -> Array:
        """Project a direction onto the tangent cone of the box at ``x``.

        Components of ``d`` that would immediately push a variable through an
        active bound are zeroed.  ``dp`` may be ``d``.

        Args:
            x: Variables, in principle feasible.
            d: Direction to project.
            ascent: True if ``d`` is an ascent direction (the variables then
                move along ``x - alpha*d``).
            dp: Output array, a new one when omitted.
            bounds: Optional 2-element array receiving ``[step_min,
                step_max]``: the largest step that crosses no bound and the
                step beyond which no variable changes anymore.
        """
        if dp is None:
            dp = self.space.create()
        self.space.check(x, d, dp)
        if bounds is not None and np.size(bounds) != 2:
            raise ValueError("step bounds must be a 2-element array")
        v = -d if ascent else d
        mask = blocked_components(x, v, self.lower, self.upper)
        if dp is not d:
            np.copyto(dp, d)
        dp[mask] = 0
        if bounds is not None:
            v = -dp if ascent else dp
            smin, _, smax = step_limits(x, v, self.lower, self.upper)
            bounds[0] = smin
            bounds[1] = smax
        return dp

    def _project_variables(self, x: Array, xp: Array) -> None:
        np.clip(x, self.lower, self.upper, out=xp)

    def _project_gradient(self, x: Array, g: Array, gp: Array) -> None:
        if gp is not g:
            np.copyto(gp, g)
        gp[blocked_components(x, -g, self.lower, self.upper)] = 0

    def contains(self, x: Array) -> bool:
        self.space.check(x)
        return bool(np.all((x >= self.lower) & (x <= self.upper)))


__all__ = [
    "Bound",
    "BoundProjector",
    "ConvexSetProjector",
    "blocked_components",
    "check_bounds",
    "check_lower_bound",
    "check_upper_bound",
    "step_limits",
]
