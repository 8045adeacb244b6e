"""
Example: Reverse-communication optimization with rcopt

This example walks through the main pieces of the package: driving an
optimizer by hand, letting IterativeDifferentiableSolver run the loop,
comparing methods on the MINPACK-1 reference problems and solving a bound
constrained problem.
"""

import numpy as np

from rcopt import (
    BLMVM,
    LBFGS,
    LBFGSB,
    VMLMB,
    CGMethod,
    CGRule,
    IterativeDifferentiableSolver,
    MoreThuenteLineSearch,
    NonLinearConjugateGradient,
    OptimTask,
    QuadraticCost,
    SimpleBounds,
    VectorSpace,
)
from rcopt.optimize.problems import PROBLEMS, rosenbrock, rosenbrock_grad


def example_manual_loop():
    """Example: The caller owns the function evaluations."""
    print("=" * 60)
    print("Example 1: Reverse Communication - Rosenbrock")
    print("=" * 60)

    opt = LBFGS(VectorSpace(2), m=5, grtol=1e-8)
    x = np.array([-1.2, 1.0])
    task = opt.start()
    while task in (OptimTask.COMPUTE_FG, OptimTask.NEW_X):
        if task is OptimTask.COMPUTE_FG:
            f = rosenbrock(x)
            g = rosenbrock_grad(x)
        task = opt.iterate(x, f, g)

    print(f"Task: {task.name} ({opt.get_message()})")
    print(f"Solution: x = {x}")
    print(f"Iterations: {opt.iterations}, evaluations: {opt.evaluations}")
    print()


def example_line_search():
    """Example: A line search on its own."""
    print("=" * 60)
    print("Example 2: More & Thuente Line Search")
    print("=" * 60)

    # phi(a) = (a - 3)^2, phi(0) = 9, phi'(0) = -6
    ls = MoreThuenteLineSearch(ftol=1e-3, gtol=0.1)
    status = ls.start(9.0, -6.0, 1.0, 0.0, 100.0)
    while status.is_searching:
        a = ls.step
        status = ls.iterate(a, (a - 3.0) ** 2, 2.0 * (a - 3.0))
    print(f"Status: {status.name}")
    print(f"Accepted step: {ls.step:.6f}")
    print()


def example_reference_problems():
    """Example: L-BFGS and conjugate gradient on the MINPACK-1 problems."""
    print("=" * 60)
    print("Example 3: MINPACK-1 Reference Problems")
    print("=" * 60)

    print(f"{'problem':<22}{'method':<8}{'task':<10}{'iter':>6}{'eval':>7}{'f(x)':>14}")
    for name, problem in PROBLEMS.items():
        n = problem.dim
        space = VectorSpace(n)
        methods = {
            "L-BFGS": LBFGS(space, m=5, gatol=1e-6, grtol=0.0),
            "CG-HZ": NonLinearConjugateGradient(
                space, CGMethod(CGRule.HAGER_ZHANG), gatol=1e-6, grtol=0.0
            ),
        }
        for label, optimizer in methods.items():
            solver = IterativeDifferentiableSolver(problem.cost(n), optimizer, max_iter=2000)
            x = problem.initial_point(n)
            task = solver.solve(x)
            print(
                f"{name:<22}{label:<8}{task.name:<10}"
                f"{solver.iterations:>6}{solver.evaluations:>7}{solver.cost:>14.6e}"
            )
    print()


def example_bound_constrained():
    """Example: Box constrained least squares."""
    print("=" * 60)
    print("Example 4: Bound Constrained Quadratic")
    print("=" * 60)

    # Minimize 0.5 * ||x - target||_A^2 subject to 0 <= x <= 1
    rng = np.random.default_rng(0)
    n = 8
    q, _ = np.linalg.qr(rng.standard_normal((n, n)))
    A = q @ np.diag(np.linspace(1.0, 20.0, n)) @ q.T
    target = 2.0 * rng.standard_normal(n)
    cost = QuadraticCost(A, A @ target)
    space = cost.input_space
    bounds = SimpleBounds(space, 0.0, 1.0)

    for cls in (VMLMB, BLMVM, LBFGSB):
        solver = IterativeDifferentiableSolver(cost, cls(space, bounds, grtol=1e-8))
        x = np.full(n, 0.5)
        task = solver.solve(x)
        print(f"{cls.__name__:<6} task={task.name:<8} f={solver.cost:.8f} "
              f"evaluations={solver.evaluations}")
        print(f"       feasible: {bounds.contains(x)}, active bounds: "
              f"{int(np.sum((x == 0.0) | (x == 1.0)))}")
    print()


if __name__ == "__main__":
    print("\n" + "=" * 60)
    print("rcopt - Reverse-Communication Optimization Examples")
    print("=" * 60 + "\n")

    example_manual_loop()
    example_line_search()
    example_reference_problems()
    example_bound_constrained()

    print("=" * 60)
    print("All examples completed successfully!")
    print("=" * 60)
