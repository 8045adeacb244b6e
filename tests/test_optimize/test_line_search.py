import math

import numpy as np
import pytest

from rcopt.optimize.core import LineSearchStatus, OptimStatus
from rcopt.optimize.line_search import (
    ArmijoLineSearch,
    MoreThuenteLineSearch,
    NonmonotoneLineSearch,
    dcstep,
)


def run_search(ls, phi, dphi, step, step_min=0.0, step_max=1e20, max_iter=100):
    """Run ``ls`` on the 1-D function ``phi``; return the final status and trial steps."""
    status = ls.start(phi(0.0), dphi(0.0), step, step_min, step_max)
    steps = []
    while status is LineSearchStatus.SEARCH and len(steps) < max_iter:
        stp = ls.step
        steps.append(stp)
        status = ls.iterate(stp, phi(stp), dphi(stp))
    return status, steps


def parabola(a):
    return (a - 1.0) ** 2


def parabola_deriv(a):
    return 2.0 * (a - 1.0)


@pytest.mark.parametrize(
    "args, expected",
    [
        ((1.0, -1.0, 1.0, -1.0, 2.0), LineSearchStatus.ERROR_STPMIN_LT_ZERO),
        ((1.0, -1.0, 1.0, 3.0, 2.0), LineSearchStatus.ERROR_STPMIN_GT_STPMAX),
        ((1.0, -1.0, 0.5, 1.0, 2.0), LineSearchStatus.ERROR_STP_LT_STPMIN),
        ((1.0, -1.0, 3.0, 1.0, 2.0), LineSearchStatus.ERROR_STP_GT_STPMAX),
        ((1.0, 0.0, 1.0, 0.0, 2.0), LineSearchStatus.ERROR_INITIAL_DERIVATIVE_GE_ZERO),
        ((1.0, 2.0, 1.0, 0.0, 2.0), LineSearchStatus.ERROR_INITIAL_DERIVATIVE_GE_ZERO),
        ((math.inf, -1.0, 1.0, 0.0, 2.0), LineSearchStatus.ERROR_ILLEGAL_VALUE),
    ],
)
def test_start_rejects_invalid_arguments(args, expected):
    ls = MoreThuenteLineSearch()
    assert ls.start(*args) is expected
    assert ls.status is expected
    assert ls.step == 0.0
    assert ls.status.is_error


def test_start_checks_stpmin_before_descent():
    ls = ArmijoLineSearch()
    assert ls.start(1.0, 1.0, 1.0, -1.0, 2.0) is LineSearchStatus.ERROR_STPMIN_LT_ZERO


def test_iterate_without_start():
    ls = ArmijoLineSearch()
    assert ls.iterate(1.0, 0.0, 0.0) is LineSearchStatus.ERROR_NOT_STARTED


def test_iterate_detects_changed_step():
    ls = MoreThuenteLineSearch()
    assert ls.start(1.0, -2.0, 0.5, 0.0, 10.0) is LineSearchStatus.SEARCH
    assert ls.iterate(0.6, 0.16, -0.8) is LineSearchStatus.ERROR_STP_CHANGED
    # once failed the search must be restarted
    assert ls.iterate(0.5, 0.25, -1.0) is LineSearchStatus.ERROR_NOT_STARTED


def test_iterate_rejects_non_finite_value():
    ls = ArmijoLineSearch()
    ls.start(1.0, -2.0, 1.0, 0.0, 10.0)
    assert ls.iterate(1.0, math.nan, 0.0) is LineSearchStatus.ERROR_ILLEGAL_VALUE
    assert ls.status.to_optim_status() is OptimStatus.ILLEGAL_VALUE


def test_status_classification():
    assert LineSearchStatus.SEARCH.is_searching
    assert LineSearchStatus.CONVERGENCE.has_converged
    assert not LineSearchStatus.CONVERGENCE.is_warning
    assert LineSearchStatus.WARNING_XTOL_TEST_SATISFIED.is_warning
    assert LineSearchStatus.ERROR_NOT_A_DESCENT.is_error
    assert all(s.description for s in LineSearchStatus)
    assert (
        LineSearchStatus.WARNING_ROUNDING_ERRORS_PREVENT_PROGRESS.to_optim_status()
        is OptimStatus.ROUNDING_ERRORS_PREVENT_PROGRESS
    )


def test_armijo_backtracks_by_rho():
    ls = ArmijoLineSearch(sigma=0.05, rho=0.5)
    status, steps = run_search(ls, parabola, parabola_deriv, 4.0)
    assert status is LineSearchStatus.CONVERGENCE
    assert steps == [4.0, 2.0, 1.0]
    assert ls.step == 1.0
    assert ls.converged() and ls.finished()


def test_armijo_returns_to_best_step_without_retesting():
    ls = ArmijoLineSearch(sigma=0.05, rho=0.5)
    assert ls.start(0.0, -1.0, 1.0, 0.0, 10.0) is LineSearchStatus.SEARCH
    # slight decrease, not sufficient: remembered as the best step
    assert ls.iterate(1.0, -0.01, 0.0) is LineSearchStatus.SEARCH
    assert ls.step == 0.5
    # worse than the best step: go back to it
    assert ls.iterate(0.5, 0.5, 0.0) is LineSearchStatus.SEARCH
    assert ls.step == 1.0
    # accepted whatever the value
    assert ls.iterate(1.0, 100.0, 0.0) is LineSearchStatus.CONVERGENCE


def test_armijo_stops_at_step_min():
    ls = ArmijoLineSearch()
    status, steps = run_search(ls, lambda a: 1.0 + a, lambda a: -1.0, 1.0, step_min=0.1)
    assert status is LineSearchStatus.WARNING_STP_EQ_STPMIN
    assert steps[-1] == pytest.approx(0.1)
    assert ls.step == pytest.approx(0.1)


@pytest.mark.parametrize("sigma, rho", [(0.0, 0.5), (1.0, 0.5), (0.1, 0.0), (0.1, 1.5)])
def test_armijo_parameters_validated(sigma, rho):
    with pytest.raises(ValueError):
        ArmijoLineSearch(sigma, rho)


def test_nonmonotone_reference_value_uses_memory():
    ls = NonmonotoneLineSearch(m=2)
    ls.start(5.0, -1.0, 1.0, 0.0, 10.0)
    assert ls.fmax == 5.0
    ls.start(3.0, -1.0, 1.0, 0.0, 10.0)
    assert ls.fmax == 5.0
    ls.start(1.0, -1.0, 1.0, 0.0, 10.0)
    assert ls.fmax == 3.0
    ls.forget()
    ls.start(2.0, -1.0, 1.0, 0.0, 10.0)
    assert ls.fmax == 2.0


def test_nonmonotone_accepts_increase_below_reference():
    ls = NonmonotoneLineSearch(m=5)
    ls.start(5.0, -1.0, 1.0, 0.0, 10.0)
    ls.start(3.0, -1.0, 1.0, 0.0, 10.0)
    assert ls.iterate(1.0, 4.5, 0.0) is LineSearchStatus.CONVERGENCE


def test_nonmonotone_quadratic_interpolation():
    ls = NonmonotoneLineSearch(m=1)
    status, steps = run_search(ls, parabola, parabola_deriv, 4.0)
    assert status is LineSearchStatus.CONVERGENCE
    assert steps == [4.0, 1.0]


def test_nonmonotone_interpolation_safeguard_is_relative_to_curvature():
    ls = NonmonotoneLineSearch(m=1)
    ls.start(0.0, -1.0, 10.0, 0.0, 100.0)
    # q = 100, r = 200: q/r = 0.5 lies in [sigma1, sigma2*step]
    assert ls.iterate(10.0, 90.0, 0.0) is LineSearchStatus.SEARCH
    assert ls.step == 0.5


def test_nonmonotone_bisects_outside_safeguard():
    ls = NonmonotoneLineSearch(m=1)
    ls.start(0.0, -1.0, 1.0, 0.0, 100.0)
    # q = 1, r = 22: q/r is below sigma1
    assert ls.iterate(1.0, 10.0, 0.0) is LineSearchStatus.SEARCH
    assert ls.step == 0.5


def test_nonmonotone_safeguard_parameters():
    with pytest.raises(ValueError):
        NonmonotoneLineSearch(sigma1=0.9, sigma2=0.1)
    with pytest.raises(ValueError):
        NonmonotoneLineSearch(ftol=0.0)


@pytest.mark.parametrize("step", [0.01, 0.3, 1.0, 5.0, 40.0])
def test_more_thuente_satisfies_strong_wolfe(step):
    def phi(a):
        return math.exp(a - 2.0) - a + 0.1 * a * a

    def dphi(a):
        return math.exp(a - 2.0) - 1.0 + 0.2 * a

    ftol, gtol = 1e-4, 0.9
    ls = MoreThuenteLineSearch(ftol, gtol)
    status, steps = run_search(ls, phi, dphi, step)
    assert status is LineSearchStatus.CONVERGENCE
    stp = ls.step
    assert phi(stp) <= phi(0.0) + ftol * stp * dphi(0.0)
    assert abs(dphi(stp)) <= gtol * abs(dphi(0.0))
    assert len(steps) < 20


def test_more_thuente_converges_at_first_trial_on_exact_minimum():
    ls = MoreThuenteLineSearch()
    status, steps = run_search(ls, parabola, parabola_deriv, 1.0)
    assert status is LineSearchStatus.CONVERGENCE
    assert steps == [1.0]


def test_more_thuente_tight_curvature_condition():
    ls = MoreThuenteLineSearch(ftol=1e-4, gtol=0.1)
    status, _ = run_search(ls, parabola, parabola_deriv, 0.01)
    assert status is LineSearchStatus.CONVERGENCE
    assert abs(parabola_deriv(ls.step)) <= 0.1 * 2.0


def test_more_thuente_unbounded_function_hits_step_max():
    ls = MoreThuenteLineSearch()
    status, steps = run_search(ls, lambda a: -a, lambda a: -1.0, 1.0, step_max=10.0)
    assert status is LineSearchStatus.WARNING_STP_EQ_STPMAX
    assert steps == [1.0, 5.0, 10.0]
    assert ls.step == 10.0
    assert status.is_warning


def test_more_thuente_increasing_function_hits_step_min():
    ls = MoreThuenteLineSearch()
    status, _ = run_search(
        ls, lambda a: 1.0 + a * a * 100.0 - 1e-3 * a, lambda a: 200.0 * a - 1e-3, 1.0, step_min=0.5
    )
    assert status is LineSearchStatus.WARNING_STP_EQ_STPMIN
    assert ls.step == 0.5


def test_more_thuente_extrapolation_stays_within_bounds():
    ls = MoreThuenteLineSearch()
    ls.start(0.0, -1.0, 1.0, 0.0, 3.0)
    ls.iterate(1.0, -1.0, -1.0)
    assert 1.0 < ls.step <= 3.0


def test_dcstep_higher_value_brackets_minimum():
    stx, fx, dx, sty, fy, dy, stp, brackt = dcstep(
        0.0, 0.0, -1.0, 0.0, 0.0, -1.0, 1.0, 1.0, 2.0, False, 0.0, 5.0
    )
    assert brackt
    assert (stx, fx, dx) == (0.0, 0.0, -1.0)
    assert (sty, fy, dy) == (1.0, 1.0, 2.0)
    # the cubic step is closer to stx than the quadratic one (0.25)
    assert stp == pytest.approx((math.sqrt(6.0) - 1.0) / (2.0 * math.sqrt(6.0) + 3.0))


def test_dcstep_opposite_derivatives_bracket_minimum():
    stx, fx, dx, sty, fy, dy, stp, brackt = dcstep(
        0.0, 0.0, -1.0, 0.0, 0.0, -1.0, 1.0, -0.5, 1.0, False, 0.0, 5.0
    )
    assert brackt
    assert (stx, fx, dx) == (1.0, -0.5, 1.0)
    assert (sty, fy, dy) == (0.0, 0.0, -1.0)
    assert 0.0 < stp < 1.0


def test_dcstep_extrapolates_when_derivative_does_not_decrease():
    *_, stp, brackt = dcstep(0.0, 0.0, -1.0, 0.0, 0.0, -1.0, 1.0, -2.0, -1.5, False, 1.1, 5.0)
    assert not brackt
    assert stp == 5.0


def test_dcstep_linear_function_extrapolates():
    # linear function: derivatives at both ends are equal
    *_, stp, brackt = dcstep(0.0, 0.0, -1.0, 0.0, 0.0, -1.0, 1.0, -1.0, -1.0, False, 1.1, 5.0)
    assert np.isfinite(stp)
    assert not brackt


def test_failed_start_keeps_previous_step():
    ls = MoreThuenteLineSearch()
    run_search(ls, parabola, parabola_deriv, 0.5)
    step = ls.step
    assert ls.start(0.0, 0.5, 2.0, 0.0, 10.0) is LineSearchStatus.ERROR_INITIAL_DERIVATIVE_GE_ZERO
    assert ls.step == step


@pytest.mark.parametrize("f0, g0, h", [(0.0, -1.0, 1.0), (3.0, -10.0, 0.1), (-2.0, -0.5, 50.0)])
def test_armijo_on_convex_quadratic_model(f0, g0, h):
    def phi(a):
        return f0 + a * g0 + 0.5 * a * a * h

    sigma = 0.05
    ls = ArmijoLineSearch(sigma=sigma)
    status, steps = run_search(ls, phi, lambda a: g0 + a * h, 1e3)
    assert status is LineSearchStatus.CONVERGENCE
    assert len(steps) < 60
    assert phi(ls.step) <= f0 + ls.step * sigma * g0


@pytest.mark.parametrize("f0, g0, h", [(0.0, -1.0, 1.0), (3.0, -10.0, 0.1), (-2.0, -0.5, 50.0)])
@pytest.mark.parametrize("step", [1e-3, 1.0, 1e3])
def test_more_thuente_on_convex_quadratic_model(f0, g0, h, step):
    def phi(a):
        return f0 + a * g0 + 0.5 * a * a * h

    def dphi(a):
        return g0 + a * h

    ftol, gtol = 1e-3, 0.5
    ls = MoreThuenteLineSearch(ftol, gtol)
    status, _ = run_search(ls, phi, dphi, step)
    assert status is LineSearchStatus.CONVERGENCE
    assert phi(ls.step) <= f0 + ls.step * ftol * g0
    assert abs(dphi(ls.step)) <= gtol * abs(g0)


@pytest.mark.parametrize(
    "ftol, gtol",
    [(2.0, 5.0), (0.0, 0.9), (1e-4, 1.0), (0.5, 0.1), (0.3, 0.3), (float("nan"), 0.9)],
)
def test_more_thuente_tolerances_validated(ftol, gtol):
    with pytest.raises(ValueError):
        MoreThuenteLineSearch(ftol, gtol)


def test_more_thuente_tolerance_setters():
    ls = MoreThuenteLineSearch(ftol=1e-4, gtol=0.9)
    ls.gtol = 0.1
    ls.ftol = 0.05
    assert (ls.ftol, ls.gtol) == (0.05, 0.1)
    with pytest.raises(ValueError):
        ls.gtol = 0.01
    with pytest.raises(ValueError):
        ls.ftol = 0.2
    with pytest.raises(ValueError):
        ls.xtol = -1.0
    assert (ls.ftol, ls.gtol) == (0.05, 0.1)
