import numpy as np
import pytest

from rcopt.optimize import (
    CGMethod,
    CGRule,
    NonLinearConjugateGradient,
    OptimTask,
)
from rcopt.optimize.problems import rosenbrock, rosenbrock_grad
from rcopt.space import VectorSpace


def well_conditioned_quadratic(rng, n):
    q, _ = np.linalg.qr(rng.standard_normal((n, n)))
    A = q @ np.diag(np.linspace(1.0, 10.0, n)) @ q.T
    b = rng.standard_normal(n)
    return A, b


@pytest.mark.parametrize("rule", list(CGRule))
def test_every_rule_solves_a_quadratic(rng, drive, rule):
    n = 5
    A, b = well_conditioned_quadratic(rng, n)
    opt = NonLinearConjugateGradient(VectorSpace(n), CGMethod(rule), grtol=1e-6)
    x = np.zeros(n)
    task, _ = drive(
        opt, lambda x: 0.5 * x @ A @ x - b @ x, lambda x: A @ x - b, x, max_evals=2000
    )
    assert task is OptimTask.FINAL_X
    assert np.linalg.norm(A @ x - b) <= 1e-5


@pytest.mark.parametrize("force", [False, True])
def test_hager_zhang_rosenbrock(drive, force):
    method = CGMethod(CGRule.HAGER_ZHANG, force_nonnegative_beta=force)
    opt = NonLinearConjugateGradient(VectorSpace(2), method, grtol=1e-6)
    x = np.array([-1.2, 1.0])
    task, _ = drive(opt, rosenbrock, rosenbrock_grad, x)
    assert task is OptimTask.FINAL_X
    assert np.allclose(x, 1.0, atol=1e-3)


def _first_search(opt, g0, g1):
    """Run a first line search accepting the trial point where the gradient is ``g1``."""
    x = np.zeros(2)
    assert opt.start() is OptimTask.COMPUTE_FG
    assert opt.iterate(x, 10.0, g0) is OptimTask.NEW_X
    assert opt.iterate(x, 10.0, g0) is OptimTask.COMPUTE_FG
    # the trial gradient is almost orthogonal to the direction: strong Wolfe holds
    assert opt.iterate(x, 9.0, g1) is OptimTask.NEW_X
    return x


def test_powell_rule_restarts_on_negative_beta():
    g0 = np.array([1.0, 0.0])
    g1 = np.array([0.05, 0.1])
    method = CGMethod(CGRule.POLAK_RIBIERE_POLYAK, force_nonnegative_beta=True)
    opt = NonLinearConjugateGradient(VectorSpace(2), method)
    x = _first_search(opt, g0, g1)
    assert opt.restarts == 0
    assert opt.iterate(x, 9.0, g1) is OptimTask.COMPUTE_FG
    assert opt.restarts == 1
    assert opt.beta == 0.0
    assert np.array_equal(opt.p, g1)
    assert opt.dg0 == pytest.approx(-(g1 @ g1))


def test_negative_beta_kept_without_powell_rule():
    g0 = np.array([1.0, 0.0])
    g1 = np.array([0.05, 0.1])
    method = CGMethod(CGRule.POLAK_RIBIERE_POLYAK, rescale_initial_step=False)
    opt = NonLinearConjugateGradient(VectorSpace(2), method)
    x = _first_search(opt, g0, g1)
    alpha = opt.alpha
    assert opt.iterate(x, 9.0, g1) is OptimTask.COMPUTE_FG
    beta = g1 @ (g1 - g0) / (g0 @ g0)
    assert beta < 0
    assert opt.restarts == 0
    assert opt.beta == pytest.approx(beta)
    assert np.allclose(opt.p, g1 + beta * g0)
    # without rescaling the previous step is reused
    assert opt.alpha == pytest.approx(alpha)


def test_first_step_from_fmin():
    opt = NonLinearConjugateGradient(VectorSpace(2), fmin=0.0)
    x = np.array([1.0, 2.0])
    g = np.array([2.0, 4.0])
    f = 5.0
    opt.start()
    opt.iterate(x, f, g)
    assert opt.iterate(x, f, g) is OptimTask.COMPUTE_FG
    assert opt.alpha == pytest.approx(2.0 * f / (g @ g))
    assert np.allclose(x, [1.0, 2.0] - opt.alpha * g)


def test_first_step_without_fmin():
    opt = NonLinearConjugateGradient(VectorSpace(2))
    x = np.array([1.0, 2.0])
    g = np.array([3.0, 4.0])
    opt.start()
    opt.iterate(x, 5.0, g)
    opt.iterate(x, 5.0, g)
    assert opt.alpha == pytest.approx(0.2)
    assert opt.fmin is None


def test_fmin_above_function_value_is_ignored():
    opt = NonLinearConjugateGradient(VectorSpace(2), fmin=10.0)
    x = np.array([1.0, 2.0])
    g = np.array([3.0, 4.0])
    opt.start()
    opt.iterate(x, 5.0, g)
    opt.iterate(x, 5.0, g)
    assert opt.alpha == pytest.approx(0.2)


def test_fmin_must_be_a_number():
    with pytest.raises(ValueError):
        NonLinearConjugateGradient(VectorSpace(2), fmin=float("nan"))


def test_method_validation():
    with pytest.raises(ValueError):
        CGMethod(3)
    method = CGMethod()
    assert method.rule is CGRule.HAGER_ZHANG
    assert not method.force_nonnegative_beta
    assert method.rescale_initial_step


def test_default_parameters():
    opt = NonLinearConjugateGradient(VectorSpace(3))
    assert opt.grtol == 1e-3
    assert opt.gatol == 0.0
    assert opt.method == CGMethod()
    assert opt.step_max == 1e6
