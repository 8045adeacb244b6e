"""
Feasible sets and projectors used by the bound-constrained optimizers.

Example
-------
>>> import numpy as np
>>> from rcopt.space import VectorSpace
>>> from rcopt.convex import SimpleBounds
>>> proj = SimpleBounds(VectorSpace((3,)), 0.0, 1.0)
>>> proj.project_variables(np.array([-0.5, 0.5, 2.0]))
array([0. , 0.5, 1. ])
"""

from .bounds import (
    GeneralBounds,
    SimpleBounds,
    SimpleLowerBound,
    SimpleUpperBound,
    make_bounds,
)
from .boxed_set import ASCENT, DESCENT, BoxedSet
from .core import BoundProjector, ConvexSetProjector

__all__ = [
    "ASCENT",
    "BoundProjector",
    "BoxedSet",
    "ConvexSetProjector",
    "DESCENT",
    "GeneralBounds",
    "SimpleBounds",
    "SimpleLowerBound",
    "SimpleUpperBound",
    "make_bounds",
]
