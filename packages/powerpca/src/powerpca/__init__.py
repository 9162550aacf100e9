"""
powerpca: ordered eigendecomposition by power iteration with deflation,
and PCA built on it.

Input: a symmetric matrix (typically the covariance of z-scored data).
Output: eigenpairs sorted by descending eigenvalue, null space removed;
projections and explained-variance ratios.

No general-purpose eigensolver is used: each eigenpair comes from power
iteration on the matrix with all earlier eigenpairs deflated out.
"""

from powerpca.config import CONFIG, SolverConfig, load_config
from powerpca.errors import AsymmetricInputError, InputShapeError, NonSquareInputError
from powerpca.pairs import EigenDecomposition, EigenPair
from powerpca.power import power_iteration
from powerpca.deflate import deflate
from powerpca.decompose import decompose
from powerpca.project import (
    column_variance,
    cumulative_variance,
    explained_variance,
    project,
)
from powerpca.continuity import align_signs
from powerpca.pca import (
    PrincipalComponents,
    compute_pca,
    compute_pca_batch,
    covariance_matrix,
    standardize,
)
from powerpca.flatten import flatten_batch, flatten_result

__all__ = [
    'CONFIG',
    'SolverConfig',
    'load_config',
    'InputShapeError',
    'NonSquareInputError',
    'AsymmetricInputError',
    'EigenPair',
    'EigenDecomposition',
    'power_iteration',
    'deflate',
    'decompose',
    'project',
    'column_variance',
    'explained_variance',
    'cumulative_variance',
    'align_signs',
    'PrincipalComponents',
    'compute_pca',
    'compute_pca_batch',
    'covariance_matrix',
    'standardize',
    'flatten_result',
    'flatten_batch',
]
