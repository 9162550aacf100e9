"""
Eigenpair containers.

EigenPair is produced by one power-iteration solve and never mutated.
EigenDecomposition is the ordered, filtered set the decomposer returns.
"""

from dataclasses import dataclass, field
from typing import Iterator, Tuple

import numpy as np


@dataclass(frozen=True, eq=False)
class EigenPair:
    """(eigenvalue, unit eigenvector) plus solver diagnostics."""
    eigenvalue: float
    eigenvector: np.ndarray
    n_iter: int = 0
    converged: bool = True

    def __post_init__(self):
        vector = np.array(self.eigenvector, dtype=np.float64).reshape(-1)
        vector.setflags(write=False)
        object.__setattr__(self, 'eigenvector', vector)
        object.__setattr__(self, 'eigenvalue', float(self.eigenvalue))

    @property
    def dimension(self) -> int:
        return self.eigenvector.shape[0]


@dataclass(frozen=True, eq=False)
class EigenDecomposition:
    """
    Ordered eigenpairs of an n x n symmetric matrix.

    Sorted by descending eigenvalue. Holds between 0 and n pairs; pairs
    whose eigenvalue fell below the discard threshold are not included.
    """
    dimension: int
    pairs: Tuple[EigenPair, ...] = field(default_factory=tuple)
    n_discarded: int = 0

    def __post_init__(self):
        object.__setattr__(self, 'pairs', tuple(self.pairs))
        for pair in self.pairs:
            if pair.dimension != self.dimension:
                raise ValueError(
                    f"Eigenvector length {pair.dimension} does not match dimension {self.dimension}"
                )

    def __len__(self) -> int:
        return len(self.pairs)

    def __iter__(self) -> Iterator[EigenPair]:
        return iter(self.pairs)

    def __getitem__(self, index) -> EigenPair:
        return self.pairs[index]

    @property
    def eigenvalues(self) -> np.ndarray:
        """(k,) eigenvalues, descending."""
        return np.array([p.eigenvalue for p in self.pairs], dtype=np.float64)

    @property
    def eigenvectors(self) -> np.ndarray:
        """(n, k) matrix with eigenvectors as columns, in order."""
        if not self.pairs:
            return np.zeros((self.dimension, 0))
        return np.column_stack([p.eigenvector for p in self.pairs])

    @property
    def n_unconverged(self) -> int:
        return sum(1 for p in self.pairs if not p.converged)

    @property
    def is_empty(self) -> bool:
        return not self.pairs
