"""
Projection onto eigenvector axes and variance analysis.

project():            (m, n) data @ (n, k) eigenvectors → (m, k) scores.
column_variance():    sample variance (ddof=1) of each projected axis.
explained_variance(): per-axis variance / total, sums to 1.
"""

import numpy as np

from powerpca.matrix import as_matrix, matmul
from powerpca.pairs import EigenDecomposition


def project(matrix, decomposition: EigenDecomposition) -> np.ndarray:
    """
    Project data onto the decomposition's eigenvectors.

    Parameters
    ----------
    matrix : array-like
        (m, n) normalized data, same n as the decomposed matrix.
    decomposition : EigenDecomposition
        k ordered eigenpairs.

    Returns
    -------
    np.ndarray
        (m, k) projected data. k == 0 gives an (m, 0) array.
    """
    matrix = as_matrix(matrix)
    if matrix.shape[1] != decomposition.dimension:
        raise ValueError(
            f"Data has {matrix.shape[1]} columns but decomposition has dimension "
            f"{decomposition.dimension}"
        )
    return matmul(matrix, decomposition.eigenvectors)


def column_variance(projected) -> np.ndarray:
    """Sample variance of each column. Fewer than 2 rows → zeros."""
    projected = np.asarray(projected, dtype=np.float64)
    if projected.ndim != 2:
        raise ValueError(f"Expected a 2-D projected matrix, got {projected.ndim}-D input")
    m, k = projected.shape
    if k == 0:
        return np.zeros(0)
    if m < 2:
        return np.zeros(k)
    return np.var(projected, axis=0, ddof=1)


def explained_variance(projected) -> np.ndarray:
    """
    Proportion of variance explained by each projected axis.

    Ordered like the eigenpairs (so non-increasing for a decomposition
    of the data's own covariance); not re-sorted here. Degenerate input
    (no columns, fewer than 2 rows, zero total variance) gives zeros.
    """
    variances = column_variance(projected)
    total = float(np.sum(variances))
    if total <= 0.0:
        return np.zeros_like(variances)
    return variances / total


def cumulative_variance(ratios) -> np.ndarray:
    """Running sum of explained-variance ratios."""
    return np.cumsum(np.asarray(ratios, dtype=np.float64))
