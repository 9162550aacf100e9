"""
Dense matrix / vector primitives.

Thin layer over numpy: coercion with shape checks, products, norms and
symmetry tests. Matrix-vector products can be split into contiguous row
blocks on a thread pool; blocks are reassembled in row order so the result
does not depend on scheduling.
"""

from concurrent.futures import ThreadPoolExecutor
from contextlib import nullcontext
from typing import Optional, Tuple

import numpy as np


def as_matrix(values, copy: bool = False) -> np.ndarray:
    """Coerce to a finite 2-D float64 array with at least one row and column."""
    matrix = np.array(values, dtype=np.float64) if copy else np.asarray(values, dtype=np.float64)
    if matrix.ndim != 2:
        raise ValueError(f"Expected a 2-D matrix, got {matrix.ndim}-D input")
    if matrix.shape[0] < 1 or matrix.shape[1] < 1:
        raise ValueError(f"Matrix must have at least one row and column, got shape {matrix.shape}")
    if not np.all(np.isfinite(matrix)):
        raise ValueError("Matrix contains NaN or infinite entries")
    return matrix


def is_square(matrix: np.ndarray) -> bool:
    return matrix.ndim == 2 and matrix.shape[0] == matrix.shape[1]


def asymmetry(matrix: np.ndarray) -> float:
    """Largest absolute deviation between M and M.T."""
    return float(np.max(np.abs(matrix - matrix.T)))


def is_symmetric(matrix: np.ndarray, rtol: float = 1e-5, atol: float = 1e-8) -> bool:
    if not is_square(matrix):
        return False
    return bool(np.allclose(matrix, matrix.T, rtol=rtol, atol=atol))


def _row_blocks(n_rows: int, n_workers: int, min_rows: int) -> list:
    """Contiguous (start, stop) row ranges, at most n_workers of them."""
    n_blocks = max(1, min(n_workers, n_rows // max(min_rows, 1)))
    edges = np.linspace(0, n_rows, n_blocks + 1).astype(int)
    return [(int(a), int(b)) for a, b in zip(edges[:-1], edges[1:]) if b > a]


def worker_pool(n_workers: int):
    """ThreadPoolExecutor for n_workers > 1, otherwise a context yielding None."""
    if n_workers <= 1:
        return nullcontext(None)
    return ThreadPoolExecutor(max_workers=n_workers)


def matvec(
    matrix: np.ndarray,
    vector: np.ndarray,
    n_workers: int = 1,
    min_rows_per_worker: int = 64,
    pool: Optional[ThreadPoolExecutor] = None,
) -> np.ndarray:
    """
    Matrix-vector product M @ x.

    With n_workers > 1 and enough rows, each worker computes the dot
    products for its own row block. No shared accumulator is written
    concurrently; blocks are concatenated in order afterwards. Pass a
    pool from worker_pool() to reuse threads across many products.
    """
    if matrix.shape[1] != vector.shape[0]:
        raise ValueError(
            f"Shape mismatch: matrix {matrix.shape} @ vector ({vector.shape[0]},)"
        )

    blocks = _row_blocks(matrix.shape[0], n_workers, min_rows_per_worker)
    if n_workers <= 1 or len(blocks) <= 1:
        return matrix @ vector

    def _block(rows):
        return matrix[rows[0]:rows[1]] @ vector

    if pool is not None:
        return np.concatenate(list(pool.map(_block, blocks)))
    with ThreadPoolExecutor(max_workers=len(blocks)) as own_pool:
        return np.concatenate(list(own_pool.map(_block, blocks)))


def matmul(left: np.ndarray, right: np.ndarray) -> np.ndarray:
    if left.shape[1] != right.shape[0]:
        raise ValueError(f"Shape mismatch: {left.shape} @ {right.shape}")
    return left @ right


def transpose(matrix: np.ndarray) -> np.ndarray:
    return matrix.T


def scale(matrix: np.ndarray, factor: float) -> np.ndarray:
    return matrix * float(factor)


def frobenius_norm(values: np.ndarray) -> float:
    """Frobenius norm (Euclidean norm for vectors)."""
    return float(np.sqrt(np.sum(np.square(values))))


def normalize(vector: np.ndarray) -> Tuple[np.ndarray, float]:
    """Unit vector and the original norm. A zero vector is returned unchanged."""
    norm = frobenius_norm(vector)
    if norm == 0.0:
        return vector.copy(), 0.0
    return vector / norm, norm


def outer(left: np.ndarray, right: np.ndarray) -> np.ndarray:
    return np.outer(left, right)


def rayleigh_quotient(matrix: np.ndarray, vector: np.ndarray) -> float:
    """x.T @ M @ x / (x.T @ x)."""
    denom = float(vector @ vector)
    if denom == 0.0:
        return 0.0
    return float(vector @ (matrix @ vector)) / denom
