"""Concrete box projectors.

``SimpleLowerBound``, ``SimpleUpperBound`` and ``SimpleBounds`` use scalar
bounds shared by all the variables; ``GeneralBounds`` accepts a scalar or
an array on each side.  All of them can be used in place (output argument
identical to the input one).
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

from ..space import VectorSpace
from .core import Bound, BoundProjector, check_bounds, check_lower_bound, check_upper_bound


class SimpleLowerBound(BoundProjector):
    """Variables bounded below by a single scalar."""

    def __init__(self, space: VectorSpace, lower: float) -> None:
        super().__init__(space)
        self.lower = check_lower_bound(lower)


class SimpleUpperBound(BoundProjector):
    """Variables bounded above by a single scalar."""

    def __init__(self, space: VectorSpace, upper: float) -> None:
        super().__init__(space)
        self.upper = check_upper_bound(upper)


class SimpleBounds(BoundProjector):
    """Variables in ``[lower, upper]`` with scalar bounds."""

    def __init__(self, space: VectorSpace, lower: float, upper: float) -> None:
        super().__init__(space)
        lower = check_lower_bound(lower)
        upper = check_upper_bound(upper)
        if lower > upper:
            raise ValueError(f"lower bound ({lower}) must be less or equal upper bound ({upper})")
        self.lower = lower
        self.upper = upper


class GeneralBounds(BoundProjector):
    """Box with scalar or per-variable bounds; ``None`` leaves a side free."""

    def __init__(
        self,
        space: VectorSpace,
        lower: Optional[Bound] = None,
        upper: Optional[Bound] = None,
    ) -> None:
        super().__init__(space)
        self.lower = self._convert(lower, -math.inf)
        self.upper = self._convert(upper, math.inf)
        check_bounds(self.lower, self.upper)

    def _convert(self, value: Optional[Bound], default: float) -> Bound:
        if value is None:
            return default
        if np.ndim(value) == 0:
            return float(value)
        arr = np.array(value, dtype=self.space.dtype)
        if arr.shape != self.space.shape:
            raise ValueError(
                f"bound of shape {arr.shape} does not match variables of shape {self.space.shape}"
            )
        return arr


def make_bounds(
    space: VectorSpace, lower: Optional[Bound] = None, upper: Optional[Bound] = None
) -> BoundProjector:
    """Build the simplest projector implementing the given bounds."""
    scalar_lower = lower is None or np.ndim(lower) == 0
    scalar_upper = upper is None or np.ndim(upper) == 0
    if not (scalar_lower and scalar_upper):
        return GeneralBounds(space, lower, upper)
    if upper is None and lower is not None:
        return SimpleLowerBound(space, lower)
    if lower is None and upper is not None:
        return SimpleUpperBound(space, upper)
    if lower is None and upper is None:
        return GeneralBounds(space)
    return SimpleBounds(space, lower, upper)


__all__ = [
    "GeneralBounds",
    "SimpleBounds",
    "SimpleLowerBound",
    "SimpleUpperBound",
    "make_bounds",
]
