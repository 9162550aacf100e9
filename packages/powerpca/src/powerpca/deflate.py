"""
Rank-1 deflation.

M - λ·e·eᵗ removes the eigenpair (λ, e) from M's spectrum so the next
power iteration converges to the next-largest eigenvalue.
"""

import numpy as np

from powerpca.matrix import outer, scale
from powerpca.pairs import EigenPair


def deflate(matrix: np.ndarray, pair: EigenPair, inplace: bool = False) -> np.ndarray:
    """
    Return M - λ·e·eᵗ for pair (λ, e).

    With inplace=True the subtraction is written into `matrix` and the
    same array is returned. Only use that on a private working copy.
    """
    e = pair.eigenvector
    if matrix.shape != (e.shape[0], e.shape[0]):
        raise ValueError(
            f"Cannot deflate {matrix.shape} matrix with eigenvector of length {e.shape[0]}"
        )

    update = scale(outer(e, e), pair.eigenvalue)
    if inplace:
        matrix -= update
        return matrix
    return matrix - update
