"""
Eigenvector sign continuity across windows.

An eigenvector is only defined up to sign. When the same analysis runs on
consecutive windows, PC1 at window t+1 should point the same way as at
window t so loadings and projections can be compared.

Method: dot product with the previous window's vector. If negative, flip.
"""

from typing import Optional

from powerpca.pairs import EigenDecomposition, EigenPair


def align_signs(
    current: EigenDecomposition,
    reference: Optional[EigenDecomposition],
) -> EigenDecomposition:
    """
    Flip eigenvectors of `current` that point against `reference`.

    Pairs are matched by position. Extra pairs on either side, or a
    reference of different dimension, are left alone.
    """
    if reference is None or reference.dimension != current.dimension:
        return current

    aligned = []
    for i, pair in enumerate(current):
        if i < len(reference) and float(pair.eigenvector @ reference[i].eigenvector) < 0:
            pair = EigenPair(
                pair.eigenvalue,
                -pair.eigenvector,
                n_iter=pair.n_iter,
                converged=pair.converged,
            )
        aligned.append(pair)

    return EigenDecomposition(
        dimension=current.dimension,
        pairs=tuple(aligned),
        n_discarded=current.n_discarded,
    )
