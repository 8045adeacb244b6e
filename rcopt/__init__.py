"""rcopt - reverse-communication numerical optimization on NumPy arrays."""

__version__ = "0.1.0"

# Feasible sets and projectors
from .convex import (
    ASCENT,
    DESCENT,
    BoundProjector,
    BoxedSet,
    ConvexSetProjector,
    GeneralBounds,
    SimpleBounds,
    SimpleLowerBound,
    SimpleUpperBound,
    make_bounds,
)

# Logging
from .logging import configure_logging, get_logger, set_log_level

# Optimizers, line searches and driver
from .optimize import (
    BLMVM,
    LBFGS,
    LBFGSB,
    VMLMB,
    ArmijoLineSearch,
    CGMethod,
    CGRule,
    DifferentiableCostFunction,
    FunctionCost,
    InverseHessianApproximation,
    IterativeDifferentiableSolver,
    LBFGSOperator,
    LineSearch,
    LineSearchStatus,
    MoreThuenteLineSearch,
    NonLinearConjugateGradient,
    NonmonotoneLineSearch,
    OptimStatus,
    OptimTask,
    QuadraticCost,
    ReverseCommunicationOptimizer,
    gradient_threshold,
)

# Vector spaces
from .space import IncorrectSpaceError, VectorSpace

__all__ = [
    "__version__",
    # convex
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
    # logging
    "configure_logging",
    "get_logger",
    "set_log_level",
    # optimize
    "ArmijoLineSearch",
    "BLMVM",
    "CGMethod",
    "CGRule",
    "DifferentiableCostFunction",
    "FunctionCost",
    "InverseHessianApproximation",
    "IterativeDifferentiableSolver",
    "LBFGS",
    "LBFGSB",
    "LBFGSOperator",
    "LineSearch",
    "LineSearchStatus",
    "MoreThuenteLineSearch",
    "NonLinearConjugateGradient",
    "NonmonotoneLineSearch",
    "OptimStatus",
    "OptimTask",
    "QuadraticCost",
    "ReverseCommunicationOptimizer",
    "VMLMB",
    "gradient_threshold",
    # space
    "IncorrectSpaceError",
    "VectorSpace",
]
