"""Pytest configuration and shared fixtures for rcopt tests.

This module provides:
- Deterministic RNG fixtures for numpy
- Small helpers to drive the reverse-communication optimizers
"""

import os
from typing import Callable, Tuple

import numpy as np
import pytest

from rcopt.optimize import OptimTask


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG for tests.

    Uses seed from TEST_RNG_SEED environment variable (default: 0).
    This ensures tests are reproducible while allowing override for debugging.

    Returns:
        A seeded numpy.random.Generator instance.
    """
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    return np.random.default_rng(seed)


@pytest.fixture(scope="function", autouse=True)
def set_random_seeds() -> None:
    """Auto-use fixture to set the legacy numpy global seed."""
    np.random.seed(int(os.environ.get("TEST_RNG_SEED", "0")))


def run_optimizer(
    opt,
    fun: Callable[[np.ndarray], float],
    grad: Callable[[np.ndarray], np.ndarray],
    x: np.ndarray,
    max_evals: int = 5000,
) -> Tuple[OptimTask, int]:
    """Drive ``opt`` until it stops; return the final task and evaluation count."""
    task = opt.start()
    evals = 0
    f = g = None
    while True:
        if task is OptimTask.COMPUTE_FG:
            if evals >= max_evals:
                break
            f = fun(x)
            g = grad(x)
            evals += 1
        elif task is not OptimTask.NEW_X:
            break
        task = opt.iterate(x, f, g)
    return task, evals


@pytest.fixture
def drive():
    """Expose :func:`run_optimizer` to test modules."""
    return run_optimizer
