"""Task and status codes shared by the reverse-communication optimizers.

A reverse-communication optimizer never calls the objective function.  Each
call to :meth:`ReverseCommunicationOptimizer.start` or
:meth:`ReverseCommunicationOptimizer.iterate` returns an :class:`OptimTask`
telling the caller what to do next:

* ``COMPUTE_FG``: compute the function value and gradient at ``x`` and call
  ``iterate(x, f, g)``;
* ``NEW_X``: ``x`` is a new iterate (the caller may inspect it), call
  ``iterate`` again with the same ``x``, ``f`` and ``g``;
* ``FINAL_X``: ``x`` satisfies the convergence criterion;
* ``WARNING`` / ``ERROR``: the algorithm stopped, see ``reason``.

References:
    - Nocedal & Wright, *Numerical Optimization* (2006), chapters 3 and 7
"""

from __future__ import annotations

from enum import Enum, IntEnum

from ..logging import get_logger
from ..space import VectorSpace

logger = get_logger(__name__)


class OptimTask(Enum):
    """What the caller of an optimizer must do next."""

    ERROR = (-1, "An error has occurred.")
    COMPUTE_FG = (0, "Caller must compute f(x) and g(x).")
    NEW_X = (1, "A new iterate is available for inspection.")
    FINAL_X = (2, "Algorithm has converged, solution is available.")
    WARNING = (3, "Algorithm terminated with a warning.")
    COMPUTE_F = (4, "Caller must compute f(x) only.")
    PROJECT_V = (5, "Caller must project the search direction.")

    def __init__(self, code: int, description: str) -> None:
        self.code = code
        self.description = description

    @property
    def finished(self) -> bool:
        return self in (OptimTask.FINAL_X, OptimTask.WARNING, OptimTask.ERROR)


class OptimStatus(Enum):
    """Reason attached to a ``WARNING`` or ``ERROR`` task."""

    SUCCESS = "Success"
    INVALID_ARGUMENT = "Invalid argument"
    NOT_STARTED = "Line search not started"
    NOT_A_DESCENT = "Search direction is not a descent direction"
    STEP_CHANGED = "Step has been modified by the caller"
    STEP_OUTSIDE_BRACKET = "Step outside the bracket"
    STPMIN_GT_STPMAX = "Lower step bound larger than upper bound"
    STPMIN_LT_ZERO = "Minimal step length less than zero"
    STEP_LT_STPMIN = "Step lesser than lower bound"
    STEP_GT_STPMAX = "Step greater than upper bound"
    INITIAL_DERIVATIVE_GE_ZERO = "Initial directional derivative is not negative"
    ILLEGAL_VALUE = "Illegal (non finite) function value"
    XTOL_TEST_SATISFIED = "Relative width of the bracket is smaller than the tolerance"
    STEP_EQ_STPMAX = "Step at the upper bound"
    STEP_EQ_STPMIN = "Step at the lower bound"
    ROUNDING_ERRORS_PREVENT_PROGRESS = "Rounding errors prevent further progress"
    BAD_PRECONDITIONER = "Preconditioner is not positive definite"
    INFEASIBLE_BOUNDS = "Box set is infeasible"
    TOO_MANY_ITERATIONS = "Too many iterations"
    TOO_MANY_EVALUATIONS = "Too many evaluations"


class LineSearchStatus(IntEnum):
    """State of a line search; negative codes are errors, codes above 1 warnings."""

    ERROR_ILLEGAL_VALUE = -10
    ERROR_STP_CHANGED = -9
    ERROR_STP_OUTSIDE_BRACKET = -8
    ERROR_NOT_A_DESCENT = -7
    ERROR_STPMIN_GT_STPMAX = -6
    ERROR_STPMIN_LT_ZERO = -5
    ERROR_STP_LT_STPMIN = -4
    ERROR_STP_GT_STPMAX = -3
    ERROR_INITIAL_DERIVATIVE_GE_ZERO = -2
    ERROR_NOT_STARTED = -1
    SEARCH = 0
    CONVERGENCE = 1
    WARNING_ROUNDING_ERRORS_PREVENT_PROGRESS = 2
    WARNING_XTOL_TEST_SATISFIED = 3
    WARNING_STP_EQ_STPMAX = 4
    WARNING_STP_EQ_STPMIN = 5

    @property
    def is_error(self) -> bool:
        return self.value < 0

    @property
    def is_warning(self) -> bool:
        return self.value > 1

    @property
    def is_searching(self) -> bool:
        return self is LineSearchStatus.SEARCH

    @property
    def has_converged(self) -> bool:
        return self is LineSearchStatus.CONVERGENCE

    def to_optim_status(self) -> OptimStatus:
        return _LNSRCH_TO_OPTIM[self]

    @property
    def description(self) -> str:
        return self.to_optim_status().value


_LNSRCH_TO_OPTIM = {
    LineSearchStatus.ERROR_ILLEGAL_VALUE: OptimStatus.ILLEGAL_VALUE,
    LineSearchStatus.ERROR_STP_CHANGED: OptimStatus.STEP_CHANGED,
    LineSearchStatus.ERROR_STP_OUTSIDE_BRACKET: OptimStatus.STEP_OUTSIDE_BRACKET,
    LineSearchStatus.ERROR_NOT_A_DESCENT: OptimStatus.NOT_A_DESCENT,
    LineSearchStatus.ERROR_STPMIN_GT_STPMAX: OptimStatus.STPMIN_GT_STPMAX,
    LineSearchStatus.ERROR_STPMIN_LT_ZERO: OptimStatus.STPMIN_LT_ZERO,
    LineSearchStatus.ERROR_STP_LT_STPMIN: OptimStatus.STEP_LT_STPMIN,
    LineSearchStatus.ERROR_STP_GT_STPMAX: OptimStatus.STEP_GT_STPMAX,
    LineSearchStatus.ERROR_INITIAL_DERIVATIVE_GE_ZERO: OptimStatus.INITIAL_DERIVATIVE_GE_ZERO,
    LineSearchStatus.ERROR_NOT_STARTED: OptimStatus.NOT_STARTED,
    LineSearchStatus.SEARCH: OptimStatus.SUCCESS,
    LineSearchStatus.CONVERGENCE: OptimStatus.SUCCESS,
    LineSearchStatus.WARNING_ROUNDING_ERRORS_PREVENT_PROGRESS: (
        OptimStatus.ROUNDING_ERRORS_PREVENT_PROGRESS
    ),
    LineSearchStatus.WARNING_XTOL_TEST_SATISFIED: OptimStatus.XTOL_TEST_SATISFIED,
    LineSearchStatus.WARNING_STP_EQ_STPMAX: OptimStatus.STEP_EQ_STPMAX,
    LineSearchStatus.WARNING_STP_EQ_STPMIN: OptimStatus.STEP_EQ_STPMIN,
}


def gradient_threshold(gatol: float, grtol: float, ginit: float) -> float:
    """Gradient norm below which an iterate is considered converged."""
    return max(0.0, gatol, grtol * ginit)


def check_tolerance(name: str, value: float) -> float:
    """Validate a non-negative tolerance."""
    value = float(value)
    if not value >= 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    return value


def check_unit_interval(name: str, value: float) -> float:
    """Validate a parameter that must lie strictly inside (0, 1)."""
    value = float(value)
    if not 0 < value < 1:
        raise ValueError(f"{name} must lie in (0, 1), got {value}")
    return value


class ReverseCommunicationOptimizer:
    """Common state of the reverse-communication optimizers.

    Subclasses implement :meth:`start` and :meth:`iterate`; this base class
    keeps the task, the termination reason and the iteration, evaluation and
    restart counters.
    """

    def __init__(self, space: VectorSpace, gatol: float = 0.0, grtol: float = 1e-6) -> None:
        if not isinstance(space, VectorSpace):
            raise ValueError("space must be a VectorSpace")
        self.space = space
        self._gatol = check_tolerance("gatol", gatol)
        self._grtol = check_tolerance("grtol", grtol)
        self._task = OptimTask.ERROR
        self._reason = OptimStatus.NOT_STARTED
        self.iterations = 0
        self.evaluations = 0
        self.restarts = 0

    @property
    def gatol(self) -> float:
        """Absolute gradient tolerance."""
        return self._gatol

    @gatol.setter
    def gatol(self, value: float) -> None:
        self._gatol = check_tolerance("gatol", value)

    @property
    def grtol(self) -> float:
        """Gradient tolerance relative to the initial gradient norm."""
        return self._grtol

    @grtol.setter
    def grtol(self, value: float) -> None:
        self._grtol = check_tolerance("grtol", value)

    @property
    def task(self) -> OptimTask:
        return self._task

    @property
    def reason(self) -> OptimStatus:
        return self._reason

    def get_message(self, reason: OptimStatus | None = None) -> str:
        """Textual explanation of ``reason`` (default: the current one)."""
        if reason is None:
            reason = self._reason
        return reason.value

    def start(self) -> OptimTask:
        raise NotImplementedError

    def restart(self) -> OptimTask:
        raise NotImplementedError

    def iterate(self, x, f: float, g) -> OptimTask:
        raise NotImplementedError

    def warn(self, reason: OptimStatus) -> OptimTask:
        """Stop the algorithm with a ``WARNING`` task (e.g. a resource limit)."""
        return self._failure(reason, OptimTask.WARNING)

    def _success(self, task: OptimTask) -> OptimTask:
        self._reason = OptimStatus.SUCCESS
        self._task = task
        return task

    def _failure(self, reason: OptimStatus, task: OptimTask = OptimTask.ERROR) -> OptimTask:
        logger.debug("%s stopped: %s", type(self).__name__, reason.value)
        self._reason = reason
        self._task = task
        return task

    def _line_search_failure(self, status: LineSearchStatus) -> OptimTask:
        task = OptimTask.WARNING if status.is_warning else OptimTask.ERROR
        return self._failure(status.to_optim_status(), task)


__all__ = [
    "LineSearchStatus",
    "OptimStatus",
    "OptimTask",
    "ReverseCommunicationOptimizer",
    "check_tolerance",
    "check_unit_interval",
    "gradient_threshold",
]
