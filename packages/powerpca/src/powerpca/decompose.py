"""
Ordered eigendecomposition by power iteration with deflation.

For a symmetric n x n matrix, runs n rounds of:
    solve (dominant eigenpair) → keep or discard → deflate.

Pairs with eigenvalue below the discard threshold are null-space
directions: dropped without reserving a slot, but still deflated so every
round looks the same. Later pairs inherit the approximation error of the
earlier deflations; that is the price of the method.

The working copy is private to decompose() and deflated in place.
"""

import logging
from typing import List, Optional

import numpy as np

from powerpca.config import SolverConfig
from powerpca.deflate import deflate
from powerpca.errors import AsymmetricInputError, NonSquareInputError
from powerpca.matrix import as_matrix, asymmetry, is_square, is_symmetric, worker_pool
from powerpca.pairs import EigenDecomposition, EigenPair
from powerpca.power import StepCallback, power_iteration

logger = logging.getLogger(__name__)


def check_symmetric(matrix, config: Optional[SolverConfig] = None) -> np.ndarray:
    """Coerce and validate decompose() input. Raises on non-square or asymmetric."""
    config = config or SolverConfig()
    matrix = as_matrix(matrix)

    if not is_square(matrix):
        raise NonSquareInputError(matrix.shape)

    if not is_symmetric(matrix, rtol=config.symmetry_rtol, atol=config.symmetry_atol):
        raise AsymmetricInputError(asymmetry(matrix))

    return matrix


def decompose(
    matrix,
    config: Optional[SolverConfig] = None,
    callback: Optional[StepCallback] = None,
) -> EigenDecomposition:
    """
    Eigendecompose a symmetric matrix.

    Parameters
    ----------
    matrix : array-like
        (n, n) symmetric matrix, e.g. a covariance matrix.
    config : SolverConfig, optional
        Solver tolerances and the discard threshold.
    callback : callable, optional
        Forwarded to every power_iteration() call.

    Returns
    -------
    EigenDecomposition with 0..n pairs, eigenvalues descending.

    Raises
    ------
    NonSquareInputError, AsymmetricInputError
    """
    config = config or SolverConfig()
    working = check_symmetric(matrix, config).copy()
    n = working.shape[0]

    kept: List[EigenPair] = []
    n_discarded = 0

    with worker_pool(config.n_workers) as pool:
        for index in range(n):
            pair = power_iteration(working, config, callback, pool)

            if pair.eigenvalue < config.discard_threshold:
                n_discarded += 1
                logger.debug(
                    f"Round {index}: discarded eigenvalue {pair.eigenvalue:.3e} "
                    f"(threshold {config.discard_threshold:.1e})"
                )
            else:
                if not pair.converged:
                    logger.warning(
                        f"Round {index}: eigenvalue {pair.eigenvalue:.6g} kept without "
                        f"converging in max_iter={config.max_iter} steps"
                    )
                kept.append(pair)

            deflate(working, pair, inplace=True)

    # Stable: equal eigenvalues keep extraction order. Only reorders when a
    # start vector orthogonal to the dominant axis surfaced a smaller one first.
    kept.sort(key=lambda p: p.eigenvalue, reverse=True)

    logger.debug(f"Decomposed {n}x{n} matrix: kept {len(kept)}, discarded {n_discarded}")

    return EigenDecomposition(dimension=n, pairs=tuple(kept), n_discarded=n_discarded)
