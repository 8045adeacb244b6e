"""Finite-difference helpers for checking analytic gradients.

These utilities avoid any dependency on SciPy and provide deterministic,
pure NumPy implementations suitable for small to medium scale problems.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from ..logging import get_logger
from ..space import Array

logger = get_logger(__name__)

Objective = Callable[[Array], float]
Gradient = Callable[[Array], Array]


def approx_grad(
    fun: Objective, x: Array, eps: float = 1e-6, return_evals: bool = False
) -> Array | tuple[Array, int]:
    """Compute a central-difference gradient approximation.

    Parameters
    ----------
    fun:
        Objective function returning a scalar given x.
    x:
        Point where the gradient is approximated.
    eps:
        Perturbation size for finite differences.
    """
    if eps <= 0:
        raise ValueError("eps must be positive")
    x = np.asarray(x, dtype=float).copy()
    grad = np.zeros_like(x, dtype=float)
    flat = x.reshape(-1)
    gflat = grad.reshape(-1)
    evals = 0
    for i in range(flat.size):
        xi = flat[i]
        flat[i] = xi + eps
        f_plus = fun(x)
        flat[i] = xi - eps
        f_minus = fun(x)
        flat[i] = xi
        evals += 2
        gflat[i] = (f_plus - f_minus) / (2.0 * eps)
    if return_evals:
        return grad, evals
    return grad


def check_gradient(
    fun: Objective,
    grad: Gradient,
    x: Array,
    eps: float = 1e-6,
    rtol: float = 1e-5,
    atol: float = 1e-8,
) -> float:
    """Compare an analytic gradient with central differences.

    Returns the largest relative discrepancy
    ``|g - g_fd| / max(|g|, |g_fd|, atol/rtol)`` (max norms).  Raises
    ``ValueError`` when it exceeds ``rtol``.
    """
    x = np.asarray(x, dtype=float)
    g = np.asarray(grad(x), dtype=float).reshape(x.shape)
    g_fd = approx_grad(fun, x, eps)
    scale = max(np.max(np.abs(g), initial=0.0), np.max(np.abs(g_fd), initial=0.0), atol / rtol)
    err = float(np.max(np.abs(g - g_fd), initial=0.0)) / scale
    logger.debug("gradient check: relative error %.3e", err)
    if err > rtol:
        raise ValueError(
            f"analytic gradient differs from finite differences (relative error {err:.3e})"
        )
    return err


__all__ = ["Gradient", "Objective", "approx_grad", "check_gradient"]
