"""Reverse-communication optimizers, line searches and their driver.

Example
-------
>>> import numpy as np
>>> from rcopt.optimize import LBFGS, OptimTask
>>> from rcopt.optimize.problems import rosenbrock, rosenbrock_grad
>>> from rcopt.space import VectorSpace
>>> opt = LBFGS(VectorSpace((2,)), m=5, grtol=1e-10)
>>> x = np.array([-1.2, 1.0])
>>> task = opt.start()
>>> while True:
...     if task is OptimTask.COMPUTE_FG:
...         f, g = rosenbrock(x), rosenbrock_grad(x)
...     elif task is not OptimTask.NEW_X:
...         break
...     task = opt.iterate(x, f, g)
>>> task.name
'FINAL_X'
>>> bool(np.allclose(x, 1.0, atol=1e-4))
True
"""

from .conjugate_gradient import (
    CGMethod,
    CGRule,
    ConjugateGradientDirection,
    NonLinearConjugateGradient,
)
from .core import (
    LineSearchStatus,
    OptimStatus,
    OptimTask,
    ReverseCommunicationOptimizer,
    gradient_threshold,
)
from .engine import DirectionProvider, LineSearchOptimizer, initial_step
from .lbfgs_operator import InverseHessianApproximation, LBFGSOperator
from .line_search import (
    ArmijoLineSearch,
    LineSearch,
    MoreThuenteLineSearch,
    NonmonotoneLineSearch,
    dcstep,
)
from .quasi_newton import BLMVM, LBFGS, LBFGSB, VMLMB, LBFGSDirection
from .solver import (
    DifferentiableCostFunction,
    FunctionCost,
    IterativeDifferentiableSolver,
    QuadraticCost,
)
from .utils import approx_grad, check_gradient

__all__ = [
    "ArmijoLineSearch",
    "BLMVM",
    "CGMethod",
    "CGRule",
    "ConjugateGradientDirection",
    "DifferentiableCostFunction",
    "DirectionProvider",
    "FunctionCost",
    "InverseHessianApproximation",
    "IterativeDifferentiableSolver",
    "LBFGS",
    "LBFGSB",
    "LBFGSDirection",
    "LBFGSOperator",
    "LineSearch",
    "LineSearchOptimizer",
    "LineSearchStatus",
    "MoreThuenteLineSearch",
    "NonLinearConjugateGradient",
    "NonmonotoneLineSearch",
    "OptimStatus",
    "OptimTask",
    "QuadraticCost",
    "ReverseCommunicationOptimizer",
    "VMLMB",
    "approx_grad",
    "check_gradient",
    "dcstep",
    "gradient_threshold",
    "initial_step",
]
