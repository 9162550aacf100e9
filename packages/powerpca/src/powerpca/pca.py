"""
Principal Component Analysis on top of the power-iteration decomposer.

Orchestration only: normalize → covariance → decompose → project →
variance metrics. The eigen math lives in decompose/power/deflate.

Column standardization is normally done upstream; standardize() is here
for callers (and the CLI) that start from raw columns.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from powerpca.config import SolverConfig
from powerpca.continuity import align_signs
from powerpca.decompose import decompose
from powerpca.matrix import as_matrix, matmul, transpose
from powerpca.pairs import EigenDecomposition
from powerpca.project import cumulative_variance, explained_variance, project

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

def zscore_params(matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Per-column mean and std. Constant columns get std 1."""
    mean = np.nanmean(matrix, axis=0)
    std = np.nanstd(matrix, axis=0)
    std[std < 1e-15] = 1.0  # constant columns → zero after centering
    return mean, std


def standardize(matrix) -> np.ndarray:
    """Per-column z-score (axis=0). Constant columns → 0, non-finite → 0."""
    matrix = np.asarray(matrix, dtype=np.float64)
    mean, std = zscore_params(matrix)
    result = (matrix - mean) / std
    return np.nan_to_num(result, nan=0.0, posinf=0.0, neginf=0.0)


def covariance_matrix(matrix) -> np.ndarray:
    """
    Sample covariance XᵗX / (m - 1) of an already-centered (m, n) matrix.

    Symmetrized exactly so decompose() never rejects it over rounding.
    """
    matrix = as_matrix(matrix)
    m = matrix.shape[0]
    if m < 2:
        raise ValueError(f"Need at least 2 rows for a covariance matrix, got {m}")
    cov = matmul(transpose(matrix), matrix) / (m - 1)
    return (cov + cov.T) / 2.0


def effective_dimension(eigenvalues) -> float:
    """Participation ratio (Σλ)² / Σλ². 0 for an empty or all-zero spectrum."""
    eigenvalues = np.abs(np.asarray(eigenvalues, dtype=np.float64))
    total = float(np.sum(eigenvalues))
    if total < 1e-30:
        return 0.0
    p = eigenvalues / total
    return float(np.sum(p) ** 2 / np.sum(p ** 2))


def truncate(decomposition: EigenDecomposition, n_components: Optional[int]) -> EigenDecomposition:
    """Keep the first n_components pairs. None keeps everything."""
    if n_components is None or n_components >= len(decomposition):
        return decomposition
    if n_components < 0:
        raise ValueError(f"n_components must be non-negative, got {n_components}")
    return EigenDecomposition(
        dimension=decomposition.dimension,
        pairs=decomposition.pairs[:n_components],
        n_discarded=decomposition.n_discarded,
    )


# ---------------------------------------------------------------------------
# Estimator
# ---------------------------------------------------------------------------

class PrincipalComponents:
    """
    fit/transform wrapper.

    Attributes after fit():
        mean_, scale_                 : per-column normalization (zeros/ones if standardize=False)
        decomposition_                : EigenDecomposition of the covariance matrix
        components_                   : (n_features, k) eigenvectors as columns
        eigenvalues_                  : (k,)
        explained_variance_ratio_     : (k,)
    """

    def __init__(
        self,
        n_components: Optional[int] = None,
        standardize: bool = True,
        config: Optional[SolverConfig] = None,
    ):
        self.n_components = n_components
        self.standardize = standardize
        self.config = config or SolverConfig()

        self.mean_ = None
        self.scale_ = None
        self.decomposition_ = None
        self.components_ = None
        self.eigenvalues_ = None
        self.explained_variance_ratio_ = None

    def _normalize(self, X: np.ndarray) -> np.ndarray:
        return (X - self.mean_) / self.scale_

    def fit(self, X) -> 'PrincipalComponents':
        X = as_matrix(X)
        if self.standardize:
            self.mean_, self.scale_ = zscore_params(X)
        else:
            self.mean_ = np.zeros(X.shape[1])
            self.scale_ = np.ones(X.shape[1])

        Z = self._normalize(X)
        decomposition = decompose(covariance_matrix(Z), self.config)
        self.decomposition_ = truncate(decomposition, self.n_components)

        self.components_ = self.decomposition_.eigenvectors
        self.eigenvalues_ = self.decomposition_.eigenvalues
        self.explained_variance_ratio_ = explained_variance(project(Z, self.decomposition_))
        return self

    def transform(self, X) -> np.ndarray:
        if self.decomposition_ is None:
            raise RuntimeError("PrincipalComponents not fitted. Call fit() first.")
        X = as_matrix(X)
        return project(self._normalize(X), self.decomposition_)

    def fit_transform(self, X) -> np.ndarray:
        return self.fit(X).transform(X)


# ---------------------------------------------------------------------------
# Dict-returning entry points
# ---------------------------------------------------------------------------

def compute_pca(
    data_matrix,
    standardize_columns: bool = True,
    min_rows: int = 2,
    max_components: Optional[int] = None,
    config: Optional[SolverConfig] = None,
) -> Dict[str, Any]:
    """
    Run PCA on an (n_rows, n_features) matrix.

    Rows with any NaN/inf are dropped first.

    Returns
    -------
    dict with:
        eigenvalues : np.ndarray, descending, null space removed
        explained_ratio : np.ndarray, per-axis variance share of projected data
        cumulative_variance : np.ndarray
        total_variance : float, trace of the covariance matrix
        retained_variance : float, sum of retained eigenvalues
        effective_dim : float, participation ratio
        decomposition : EigenDecomposition
        components : np.ndarray, (n_features, k)
        projected : np.ndarray, (n_valid, k)
        n_rows : int, valid rows used
        n_features : int
        n_components : int
        n_discarded : int
        n_unconverged : int
    """
    data_matrix = np.asarray(data_matrix, dtype=np.float64)
    if data_matrix.ndim == 1:
        data_matrix = data_matrix.reshape(1, -1)

    D = data_matrix.shape[1]

    valid_mask = np.all(np.isfinite(data_matrix), axis=1)
    n_valid = int(valid_mask.sum())
    if n_valid < max(min_rows, 2):
        logger.info(f"PCA skipped: {n_valid} valid rows (need {max(min_rows, 2)})")
        return _empty_result(D)

    matrix = data_matrix[valid_mask]
    if standardize_columns:
        matrix = standardize(matrix)

    cov = covariance_matrix(matrix)
    decomposition = truncate(decompose(cov, config), max_components)
    projected = project(matrix, decomposition)

    eigenvalues = decomposition.eigenvalues
    ratios = explained_variance(projected)

    return {
        'eigenvalues': eigenvalues,
        'explained_ratio': ratios,
        'cumulative_variance': cumulative_variance(ratios),
        'total_variance': float(np.trace(cov)),
        'retained_variance': float(np.sum(eigenvalues)),
        'effective_dim': effective_dimension(eigenvalues),
        'decomposition': decomposition,
        'components': decomposition.eigenvectors,
        'projected': projected,
        'n_rows': n_valid,
        'n_features': D,
        'n_components': len(decomposition),
        'n_discarded': decomposition.n_discarded,
        'n_unconverged': decomposition.n_unconverged,
    }


def compute_pca_batch(
    matrices: List[np.ndarray],
    window_indices: List[int],
    standardize_columns: bool = True,
    max_components: Optional[int] = None,
    enforce_continuity: bool = True,
    config: Optional[SolverConfig] = None,
) -> List[Dict[str, Any]]:
    """
    PCA for a sequence of windows.

    Each result gets an 'I' key for its window index. With
    enforce_continuity, eigenvector signs follow the previous window and
    components/projected are recomputed from the aligned decomposition.
    """
    results = []
    prev = None

    for matrix, win_idx in zip(matrices, window_indices):
        result = compute_pca(
            matrix,
            standardize_columns=standardize_columns,
            max_components=max_components,
            config=config,
        )
        result['I'] = win_idx

        decomposition = result['decomposition']
        if enforce_continuity and decomposition is not None:
            aligned = align_signs(decomposition, prev)
            if aligned is not decomposition:
                # a sign flip on an axis flips that column of the scores
                signs = np.sign(np.sum(aligned.eigenvectors * decomposition.eigenvectors, axis=0))
                result['decomposition'] = aligned
                result['components'] = aligned.eigenvectors
                result['projected'] = result['projected'] * signs
            prev = aligned

        results.append(result)

    return results


def _empty_result(D: int) -> Dict[str, Any]:
    """Result for insufficient data."""
    return {
        'eigenvalues': np.zeros(0),
        'explained_ratio': np.zeros(0),
        'cumulative_variance': np.zeros(0),
        'total_variance': np.nan,
        'retained_variance': np.nan,
        'effective_dim': np.nan,
        'decomposition': None,
        'components': None,
        'projected': None,
        'n_rows': 0,
        'n_features': D,
        'n_components': 0,
        'n_discarded': 0,
        'n_unconverged': 0,
    }
