"""
Flatten PCA results to parquet-ready rows and polars frames.

compute_pca returns arrays (eigenvalues, explained_ratio) and matrices
(components, projected). This module turns them into scalar rows for a
per-window table, or into long/wide frames for the reporting stage.
"""

from typing import Any, Dict, List, Optional

import numpy as np
import polars as pl


def flatten_result(
    result: Dict[str, Any],
    max_components: int = 5,
    include_loadings: bool = False,
) -> Dict[str, float]:
    """
    Flatten a compute_pca() result dict to scalar key-value pairs.

    Parameters
    ----------
    result : dict
        Output from compute_pca().
    max_components : int
        Number of eigenvalues/ratios to include.
    include_loadings : bool
        If True, include flattened loadings of the top 3 components.

    Returns
    -------
    dict of {str: float} suitable for a parquet row.
    """
    row = {}

    if 'I' in result:
        row['I'] = result['I']

    for key in ['total_variance', 'retained_variance', 'effective_dim',
                'n_rows', 'n_features', 'n_components', 'n_discarded',
                'n_unconverged']:
        val = result.get(key)
        if val is not None:
            row[key] = int(val) if isinstance(val, (int, np.integer)) else float(val)

    eigenvalues = result.get('eigenvalues')
    explained = result.get('explained_ratio')
    cumulative = result.get('cumulative_variance')

    # Fixed width: missing components are NaN so every row has the same columns
    for i in range(max_components):
        row[f'eigenvalue_{i}'] = _at(eigenvalues, i)
        row[f'explained_ratio_{i}'] = _at(explained, i)
        row[f'cumulative_variance_{i}'] = _at(cumulative, i)

    if include_loadings and result.get('components') is not None:
        components = result['components']  # (n_features, k)
        n_pcs = min(3, components.shape[1])
        for pc_i in range(n_pcs):
            for feat_j in range(components.shape[0]):
                row[f'pc{pc_i}_feat{feat_j}'] = float(components[feat_j, pc_i])

    return row


def _at(values: Optional[np.ndarray], i: int) -> float:
    if values is None or i >= len(values):
        return float('nan')
    return float(values[i])


def flatten_batch(
    results: list,
    max_components: int = 5,
    include_loadings: bool = False,
) -> list:
    """Flatten a list of compute_pca results."""
    return [flatten_result(r, max_components, include_loadings) for r in results]


def to_frame(rows: List[Dict[str, Any]]) -> pl.DataFrame:
    """Rows from flatten_batch() as a polars DataFrame."""
    return pl.DataFrame(rows)


def projected_frame(projected: np.ndarray, prefix: str = 'PC') -> pl.DataFrame:
    """(m, k) projected data as a frame with columns PC1..PCk."""
    projected = np.asarray(projected, dtype=np.float64)
    return pl.DataFrame({
        f'{prefix}{j + 1}': projected[:, j] for j in range(projected.shape[1])
    })


def variance_summary(result: Dict[str, Any]) -> pl.DataFrame:
    """One row per retained component: eigenvalue, explained ratio, cumulative."""
    eigenvalues = result.get('eigenvalues')
    if eigenvalues is None:
        eigenvalues = np.zeros(0)
    k = len(eigenvalues)
    return pl.DataFrame(
        {
            'component': [f'PC{j + 1}' for j in range(k)],
            'eigenvalue': [float(v) for v in eigenvalues],
            'explained_ratio': [float(v) for v in result['explained_ratio'][:k]],
            'cumulative_variance': [float(v) for v in result['cumulative_variance'][:k]],
        },
        schema={
            'component': pl.Utf8,
            'eigenvalue': pl.Float64,
            'explained_ratio': pl.Float64,
            'cumulative_variance': pl.Float64,
        },
    )
