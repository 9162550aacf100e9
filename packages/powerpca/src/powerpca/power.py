"""
Power iteration: dominant eigenpair of a symmetric matrix.

Repeated multiply-and-normalize from a fixed starting vector. Stops when
successive unit iterates differ by less than tol, or after max_iter
steps. Hitting the cap is not an error: the last iterate is returned with
converged=False. decompose() reports unconverged pairs it keeps.

The eigenvalue is the Rayleigh quotient x.T @ M @ x of the returned unit
vector, so it carries the sign of the dominant eigenvalue.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

import numpy as np

from powerpca.config import SolverConfig
from powerpca.matrix import frobenius_norm, matvec, normalize, rayleigh_quotient, worker_pool
from powerpca.pairs import EigenPair

logger = logging.getLogger(__name__)

StepCallback = Callable[[int, np.ndarray, float], None]


def starting_vector(matrix: np.ndarray, config: Optional[SolverConfig] = None) -> Optional[np.ndarray]:
    """
    Deterministic unit start vector for power iteration.

    All-ones (normalized) unless M nearly annihilates it (image smaller than
    start_rtol * ||M||), in which case the standard basis vector e_j with
    the largest image (column of M) is used. Returns None when M is
    numerically zero.
    """
    config = config or SolverConfig()
    n = matrix.shape[0]

    matrix_norm = frobenius_norm(matrix)
    if matrix_norm < config.null_tol:
        return None

    ones = np.full(n, 1.0 / np.sqrt(n))
    if frobenius_norm(matrix @ ones) >= config.start_rtol * matrix_norm:
        return ones

    # M @ e_j is column j
    j = int(np.argmax(np.sum(np.square(matrix), axis=0)))
    basis = np.zeros(n)
    basis[j] = 1.0
    return basis


def power_iteration(
    matrix: np.ndarray,
    config: Optional[SolverConfig] = None,
    callback: Optional[StepCallback] = None,
    pool: Optional[ThreadPoolExecutor] = None,
) -> EigenPair:
    """
    Approximate the largest-magnitude eigenpair of a symmetric matrix.

    Parameters
    ----------
    matrix : np.ndarray
        (n, n) symmetric matrix. Not validated here; decompose() checks.
    config : SolverConfig, optional
        tol, max_iter, null_tol, start_rtol and matvec threading.
        Defaults if None.
    callback : callable, optional
        Called as callback(step, x, delta) after every inner step, with
        step counting from 1. Never called more than max_iter times.
    pool : ThreadPoolExecutor, optional
        Reused for row-block products when config.n_workers > 1. If None
        and threading is on, a pool is created for this call.

    Returns
    -------
    EigenPair with n_iter (inner steps performed) and converged flag.
    A numerically zero matrix yields eigenvalue 0 with the normalized
    all-ones vector.
    """
    config = config or SolverConfig()
    n = matrix.shape[0]

    x = starting_vector(matrix, config)
    if x is None:
        return EigenPair(0.0, np.full(n, 1.0 / np.sqrt(n)), n_iter=0, converged=True)

    if pool is None and config.n_workers > 1:
        with worker_pool(config.n_workers) as own_pool:
            return power_iteration(matrix, config, callback, own_pool)

    converged = False
    delta = np.inf
    n_iter = 0

    for step in range(1, config.max_iter + 1):
        n_iter = step
        y = matvec(matrix, x, config.n_workers, config.min_rows_per_worker, pool)
        x_new, norm = normalize(y)

        if norm < config.null_tol:
            # x is annihilated: it already lies in the null space
            delta = 0.0
            converged = True
            if callback is not None:
                callback(step, x, delta)
            break

        delta = frobenius_norm(x - x_new)
        x = x_new

        if callback is not None:
            callback(step, x, delta)

        if delta < config.tol:
            converged = True
            break

    eigenvalue = rayleigh_quotient(matrix, x)

    if not converged:
        logger.debug(
            f"Power iteration hit max_iter={config.max_iter} without converging "
            f"(last delta={delta:.3e}, tol={config.tol:.1e}, eigenvalue={eigenvalue:.6g})"
        )

    return EigenPair(eigenvalue, x, n_iter=n_iter, converged=converged)
