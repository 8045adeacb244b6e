"""Line searches written as reverse-communication state machines.

A line search approximately solves the one-dimensional problem

    min  phi(alpha) = f(x0 + alpha*d)    for alpha in [step_min, step_max]

without evaluating ``phi`` itself.  The caller starts the search with
``phi(0)``, ``phi'(0)`` and a first step, then repeatedly evaluates ``phi``
and ``phi'`` at :attr:`LineSearch.step` and feeds them back through
:meth:`LineSearch.iterate` until the returned status is no longer
``SEARCH``.

References:
    - Nocedal & Wright, *Numerical Optimization* (2006), chapter 3
    - Birgin, Martinez & Raydan, "Nonmonotone spectral projected gradient
      methods on convex sets", SIAM J. Optim. 10 (2000)
    - More & Thuente, "Line search algorithms with guaranteed sufficient
      decrease", ACM TOMS 20 (1994)
"""

from __future__ import annotations

import math

import numpy as np

from .core import LineSearchStatus, check_tolerance, check_unit_interval


class LineSearch:
    """Base class of the line-search state machines.

    Subclasses implement :meth:`_start_hook` and :meth:`_iterate_hook`, which
    update :attr:`_stp` and return the new status.
    """

    #: Whether the strategy uses the directional derivative of trial steps.
    use_derivative = True

    def __init__(self) -> None:
        self._stp = 0.0
        self._stpmin = 0.0
        self._stpmax = 0.0
        self.finit = 0.0
        self.ginit = 0.0
        self._status = LineSearchStatus.ERROR_NOT_STARTED

    @property
    def step(self) -> float:
        """Current trial step (the one the caller must evaluate next)."""
        return self._stp

    @property
    def step_min(self) -> float:
        return self._stpmin

    @property
    def step_max(self) -> float:
        return self._stpmax

    @property
    def status(self) -> LineSearchStatus:
        return self._status

    def converged(self) -> bool:
        return self._status is LineSearchStatus.CONVERGENCE

    def finished(self) -> bool:
        return self._status is not LineSearchStatus.SEARCH

    def reset(self) -> None:
        self._status = LineSearchStatus.ERROR_NOT_STARTED

    def start(
        self, f0: float, g0: float, step: float, step_min: float, step_max: float
    ) -> LineSearchStatus:
        """Start a new search along a descent direction.

        Args:
            f0: Function value at ``alpha = 0``.
            g0: Directional derivative at ``alpha = 0``, must be negative.
            step: First trial step.
            step_min: Smallest admissible step.
            step_max: Largest admissible step.

        Returns:
            ``SEARCH`` on success, an ``ERROR_*`` status otherwise.  In case of
            error :attr:`step` is left unchanged.
        """
        if step_min < 0:
            return self._set_status(LineSearchStatus.ERROR_STPMIN_LT_ZERO)
        if step_min > step_max:
            return self._set_status(LineSearchStatus.ERROR_STPMIN_GT_STPMAX)
        if step < step_min:
            return self._set_status(LineSearchStatus.ERROR_STP_LT_STPMIN)
        if step > step_max:
            return self._set_status(LineSearchStatus.ERROR_STP_GT_STPMAX)
        if not g0 < 0:
            return self._set_status(LineSearchStatus.ERROR_INITIAL_DERIVATIVE_GE_ZERO)
        if not math.isfinite(f0):
            return self._set_status(LineSearchStatus.ERROR_ILLEGAL_VALUE)
        self._stp = float(step)
        self._stpmin = float(step_min)
        self._stpmax = float(step_max)
        self.finit = float(f0)
        self.ginit = float(g0)
        self._status = LineSearchStatus.SEARCH
        return self._set_status(self._start_hook())

    def iterate(self, step: float, f: float, g: float) -> LineSearchStatus:
        """Submit ``phi(step)`` and ``phi'(step)`` and get the next status."""
        if self._status is not LineSearchStatus.SEARCH:
            return self._set_status(LineSearchStatus.ERROR_NOT_STARTED)
        if step != self._stp:
            return self._set_status(LineSearchStatus.ERROR_STP_CHANGED)
        if not math.isfinite(f):
            return self._set_status(LineSearchStatus.ERROR_ILLEGAL_VALUE)
        previous = self._stp
        status = self._iterate_hook(float(f), float(g))
        if status is LineSearchStatus.SEARCH:
            if self._stp > self._stpmax:
                if previous >= self._stpmax:
                    self._stp = previous
                    status = LineSearchStatus.WARNING_STP_EQ_STPMAX
                else:
                    self._stp = self._stpmax
            elif self._stp < self._stpmin:
                if previous <= self._stpmin:
                    self._stp = previous
                    status = LineSearchStatus.WARNING_STP_EQ_STPMIN
                else:
                    self._stp = self._stpmin
        return self._set_status(status)

    def _set_status(self, status: LineSearchStatus) -> LineSearchStatus:
        self._status = status
        return status

    def _start_hook(self) -> LineSearchStatus:
        return LineSearchStatus.SEARCH

    def _iterate_hook(self, f: float, g: float) -> LineSearchStatus:
        raise NotImplementedError


class ArmijoLineSearch(LineSearch):
    """Backtracking line search with Armijo's sufficient decrease rule.

    The step is multiplied by ``rho`` until ``f - f0 <= step*sigma*g0``.
    The best step seen so far is remembered: when the reduced step is worse
    than a previously tried larger one, the search returns to that step and
    accepts it without testing it again.
    """

    use_derivative = False

    SIGMA = 0.05
    RHO = 0.5

    def __init__(self, sigma: float = SIGMA, rho: float = RHO) -> None:
        super().__init__()
        self.sigma = sigma
        self.rho = rho
        self._best_step = 0.0
        self._best_func = 0.0
        self._bypass = False

    @property
    def sigma(self) -> float:
        """Sufficient decrease parameter."""
        return self._sigma

    @sigma.setter
    def sigma(self, value: float) -> None:
        self._sigma = check_unit_interval("sigma", value)

    @property
    def rho(self) -> float:
        """Backtracking gain."""
        return self._rho

    @rho.setter
    def rho(self, value: float) -> None:
        self._rho = check_unit_interval("rho", value)

    def _start_hook(self) -> LineSearchStatus:
        self._best_func = self.finit
        self._best_step = 0.0
        self._bypass = False
        return LineSearchStatus.SEARCH

    def _iterate_hook(self, f: float, g: float) -> LineSearchStatus:
        if self._bypass or f - self.finit <= self._stp * self._sigma * self.ginit:
            return LineSearchStatus.CONVERGENCE
        if f < self._best_func:
            self._best_step = self._stp
            self._best_func = f
            self._stp *= self._rho
        elif self._best_step > self._stp:
            self._bypass = True
            self._stp = self._best_step
        else:
            self._stp *= self._rho
        return LineSearchStatus.SEARCH


class NonmonotoneLineSearch(LineSearch):
    """Nonmonotone line search of Birgin, Martinez & Raydan (2000).

    Sufficient decrease is measured against the largest of the last ``m``
    initial function values rather than against the last one.  Rejected
    steps are replaced by a safeguarded quadratic interpolation.
    """

    use_derivative = False

    M = 10
    FTOL = 1e-4
    SIGMA1 = 0.1
    SIGMA2 = 0.9

    def __init__(
        self,
        m: int = M,
        ftol: float = FTOL,
        sigma1: float = SIGMA1,
        sigma2: float = SIGMA2,
    ) -> None:
        super().__init__()
        self._m = max(int(m), 1)
        self.ftol = ftol
        self.set_bounds(sigma1, sigma2)
        self._fsav = np.full(self._m, -np.inf)
        self._mp = 0
        self.fmax = -np.inf

    @property
    def m(self) -> int:
        """Number of previous function values remembered."""
        return self._m

    @property
    def ftol(self) -> float:
        return self._ftol

    @ftol.setter
    def ftol(self, value: float) -> None:
        self._ftol = check_unit_interval("ftol", value)

    @property
    def sigma1(self) -> float:
        return self._sigma1

    @property
    def sigma2(self) -> float:
        return self._sigma2

    def set_bounds(self, sigma1: float, sigma2: float) -> None:
        """Set the safeguard of the interpolated step, ``0 < sigma1 < sigma2 < 1``."""
        if not 0 < sigma1 < sigma2 < 1:
            raise ValueError(
                f"safeguard bounds must satisfy 0 < sigma1 < sigma2 < 1, got {sigma1}, {sigma2}"
            )
        self._sigma1 = float(sigma1)
        self._sigma2 = float(sigma2)

    def forget(self) -> None:
        """Clear the memory of previous function values."""
        self._fsav.fill(-np.inf)
        self._mp = 0

    def _start_hook(self) -> LineSearchStatus:
        self._fsav[self._mp % self._m] = self.finit
        self._mp += 1
        self.fmax = float(np.max(self._fsav[: min(self._mp, self._m)]))
        return LineSearchStatus.SEARCH

    def _iterate_hook(self, f: float, g: float) -> LineSearchStatus:
        stp = self._stp
        if f <= self.fmax + stp * self._ftol * self.ginit:
            return LineSearchStatus.CONVERGENCE
        if stp <= self._stpmin:
            self._stp = self._stpmin
            return LineSearchStatus.WARNING_STP_EQ_STPMIN
        q = -self.ginit * stp * stp
        r = 2.0 * (f - self.finit - stp * self.ginit)
        if r > 0 and self._sigma1 * r <= q <= self._sigma2 * r * stp:
            stp = q / r
        else:
            stp = 0.5 * (stp + self._stpmin)
        self._stp = max(stp, self._stpmin)
        if self._stp > 0:
            return LineSearchStatus.SEARCH
        return LineSearchStatus.WARNING_STP_EQ_STPMIN


class MoreThuenteLineSearch(LineSearch):
    """More & Thuente line search enforcing the strong Wolfe conditions.

    This is the MINPACK-2 ``dcsrch`` algorithm: a bracketing phase followed by
    safeguarded cubic or quadratic interpolation (:func:`dcstep`).  During the
    first stage a modified function ``psi(a) = phi(a) - phi(0) - ftol*a*phi'(0)``
    drives the interpolation.
    """

    XTRAPL = 1.1
    XTRAPU = 4.0

    FTOL = 1e-4
    GTOL = 0.9
    XTOL = float(np.finfo(float).eps)

    def __init__(self, ftol: float = FTOL, gtol: float = GTOL, xtol: float = XTOL) -> None:
        super().__init__()
        self._ftol = check_unit_interval("ftol", ftol)
        self.gtol = gtol
        self.xtol = xtol
        self.brackt = False
        self.stage = 0
        self.gtest = 0.0
        self.stx = self.fx = self.gx = 0.0
        self.sty = self.fy = self.gy = 0.0
        self.stmin = self.stmax = 0.0
        self.width = self.width1 = 0.0

    @property
    def ftol(self) -> float:
        """Sufficient decrease tolerance."""
        return self._ftol

    @ftol.setter
    def ftol(self, value: float) -> None:
        value = check_unit_interval("ftol", value)
        if not value < self._gtol:
            raise ValueError(f"ftol must be smaller than gtol = {self._gtol}, got {value}")
        self._ftol = value

    @property
    def gtol(self) -> float:
        """Curvature tolerance."""
        return self._gtol

    @gtol.setter
    def gtol(self, value: float) -> None:
        value = check_unit_interval("gtol", value)
        if not self._ftol < value:
            raise ValueError(f"gtol must be larger than ftol = {self._ftol}, got {value}")
        self._gtol = value

    @property
    def xtol(self) -> float:
        """Relative tolerance on the width of the bracket."""
        return self._xtol

    @xtol.setter
    def xtol(self, value: float) -> None:
        self._xtol = check_tolerance("xtol", value)

    def _start_hook(self) -> LineSearchStatus:
        self.brackt = False
        self.stage = 1
        self.gtest = self._ftol * self.ginit
        self.width = self._stpmax - self._stpmin
        self.width1 = 2.0 * self.width
        self.stx, self.fx, self.gx = 0.0, self.finit, self.ginit
        self.sty, self.fy, self.gy = 0.0, self.finit, self.ginit
        self.stmin = 0.0
        self.stmax = self._stp + self.XTRAPU * self._stp
        return LineSearchStatus.SEARCH

    def _iterate_hook(self, f: float, g: float) -> LineSearchStatus:
        stp = self._stp
        ftest = self.finit + stp * self.gtest
        if self.stage == 1 and f <= ftest and g >= 0:
            self.stage = 2

        status = LineSearchStatus.SEARCH
        if self.brackt and (stp <= self.stmin or stp >= self.stmax):
            status = LineSearchStatus.WARNING_ROUNDING_ERRORS_PREVENT_PROGRESS
        if self.brackt and self.stmax - self.stmin <= self._xtol * self.stmax:
            status = LineSearchStatus.WARNING_XTOL_TEST_SATISFIED
        if stp == self._stpmax and f <= ftest and g <= self.gtest:
            status = LineSearchStatus.WARNING_STP_EQ_STPMAX
        if stp == self._stpmin and (f > ftest or g >= self.gtest):
            status = LineSearchStatus.WARNING_STP_EQ_STPMIN
        if f <= ftest and abs(g) <= -self._gtol * self.ginit:
            status = LineSearchStatus.CONVERGENCE
        if status is not LineSearchStatus.SEARCH:
            return status

        if self.stage == 1 and self.fx >= f > ftest:
            # modified function psi
            gtest = self.gtest
            (self.stx, fxm, gxm, self.sty, fym, gym, stp, self.brackt) = dcstep(
                self.stx, self.fx - self.stx * gtest, self.gx - gtest,
                self.sty, self.fy - self.sty * gtest, self.gy - gtest,
                stp, f - stp * gtest, g - gtest,
                self.brackt, self.stmin, self.stmax,
            )
            self.fx = fxm + self.stx * gtest
            self.fy = fym + self.sty * gtest
            self.gx = gxm + gtest
            self.gy = gym + gtest
        else:
            (self.stx, self.fx, self.gx, self.sty, self.fy, self.gy, stp, self.brackt) = dcstep(
                self.stx, self.fx, self.gx,
                self.sty, self.fy, self.gy,
                stp, f, g,
                self.brackt, self.stmin, self.stmax,
            )

        if self.brackt:
            new_width = abs(self.sty - self.stx)
            if new_width >= 0.66 * self.width1:
                stp = self.stx + 0.5 * (self.sty - self.stx)
            self.width1 = self.width
            self.width = new_width

        if self.brackt:
            self.stmin = min(self.stx, self.sty)
            self.stmax = max(self.stx, self.sty)
        else:
            self.stmin = stp + self.XTRAPL * (stp - self.stx)
            self.stmax = stp + self.XTRAPU * (stp - self.stx)

        stp = min(max(stp, self._stpmin), self._stpmax)

        # no further progress possible, fall back on the best step
        if self.brackt and (
            stp <= self.stmin
            or stp >= self.stmax
            or self.stmax - self.stmin <= self._xtol * self.stmax
        ):
            stp = self.stx
        self._stp = stp
        return LineSearchStatus.SEARCH


def dcstep(stx, fx, dx, sty, fy, dy, stp, fp, dp, brackt, stpmin, stpmax):
    """Compute a safeguarded step and update the interval of uncertainty.

    ``stx`` is the step with the least function value so far, ``sty`` the
    other end of the interval and ``stp`` the current step with value ``fp``
    and derivative ``dp``.  If ``brackt`` is true a minimizer lies between
    ``stx`` and ``sty``.  The derivative at ``stx`` must be negative in the
    direction of ``stp``.  The new trial step is restricted to
    ``[stpmin, stpmax]``.

    Returns:
        The updated tuple ``(stx, fx, dx, sty, fy, dy, stp, brackt)``.
    """
    sgnd = dp * math.copysign(1.0, dx)

    if fp > fx:
        # Case 1: higher function value; the minimum is bracketed.
        theta = 3.0 * (fx - fp) / (stp - stx) + dx + dp
        s = max(abs(theta), abs(dx), abs(dp))
        gamma = s * math.sqrt(max(0.0, (theta / s) ** 2 - (dx / s) * (dp / s)))
        if stp < stx:
            gamma = -gamma
        p = (gamma - dx) + theta
        q = ((gamma - dx) + gamma) + dp
        r = p / q
        stpc = stx + r * (stp - stx)
        stpq = stx + ((dx / ((fx - fp) / (stp - stx) + dx)) / 2.0) * (stp - stx)
        if abs(stpc - stx) < abs(stpq - stx):
            stpf = stpc
        else:
            stpf = stpc + (stpq - stpc) / 2.0
        brackt = True
    elif sgnd < 0.0:
        # Case 2: derivatives of opposite sign; the minimum is bracketed.
        theta = 3.0 * (fx - fp) / (stp - stx) + dx + dp
        s = max(abs(theta), abs(dx), abs(dp))
        gamma = s * math.sqrt(max(0.0, (theta / s) ** 2 - (dx / s) * (dp / s)))
        if stp > stx:
            gamma = -gamma
        p = (gamma - dp) + theta
        q = ((gamma - dp) + gamma) + dx
        r = p / q
        stpc = stp + r * (stx - stp)
        stpq = stp + (dp / (dp - dx)) * (stx - stp)
        if abs(stpc - stp) > abs(stpq - stp):
            stpf = stpc
        else:
            stpf = stpq
        brackt = True
    elif abs(dp) < abs(dx):
        # Case 3: same sign and the magnitude of the derivative decreases.
        theta = 3.0 * (fx - fp) / (stp - stx) + dx + dp
        s = max(abs(theta), abs(dx), abs(dp))
        gamma = s * math.sqrt(max(0.0, (theta / s) ** 2 - (dx / s) * (dp / s)))
        if stp > stx:
            gamma = -gamma
        p = (gamma - dp) + theta
        q = (gamma + (dx - dp)) + gamma
        r = p / q
        if r < 0.0 and gamma != 0.0:
            stpc = stp + r * (stx - stp)
        elif stp > stx:
            stpc = stpmax
        else:
            stpc = stpmin
        stpq = stp + (dp / (dp - dx)) * (stx - stp)
        if brackt:
            stpf = stpc if abs(stpc - stp) < abs(stpq - stp) else stpq
            if stp > stx:
                stpf = min(stp + 0.66 * (sty - stp), stpf)
            else:
                stpf = max(stp + 0.66 * (sty - stp), stpf)
        else:
            stpf = stpc if abs(stpc - stp) > abs(stpq - stp) else stpq
            stpf = min(max(stpf, stpmin), stpmax)
    else:
        # Case 4: same sign and the magnitude of the derivative does not
        # decrease.
        if brackt:
            theta = 3.0 * (fp - fy) / (sty - stp) + dy + dp
            s = max(abs(theta), abs(dy), abs(dp))
            gamma = s * math.sqrt(max(0.0, (theta / s) ** 2 - (dy / s) * (dp / s)))
            if stp > sty:
                gamma = -gamma
            p = (gamma - dp) + theta
            q = ((gamma - dp) + gamma) + dy
            r = p / q
            stpf = stp + r * (sty - stp)
        elif stp > stx:
            stpf = stpmax
        else:
            stpf = stpmin

    if fp > fx:
        sty, fy, dy = stp, fp, dp
    else:
        if sgnd < 0.0:
            sty, fy, dy = stx, fx, dx
        stx, fx, dx = stp, fp, dp
    return stx, fx, dx, sty, fy, dy, stpf, brackt


__all__ = [
    "ArmijoLineSearch",
    "LineSearch",
    "MoreThuenteLineSearch",
    "NonmonotoneLineSearch",
    "dcstep",
]
