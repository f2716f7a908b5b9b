"""
Core Data Structures for Patchwork GP

- errors: Error taxonomy (configuration, precondition, shape, numerical)
- distribution: Joint and marginal Gaussian distributions
- dataset: Regression datasets, Grouped containers, group-by
- linalg: LDLT factorization used for every covariance solve
"""

from .dataset import (
    Grouped,
    RegressionDataset,
    as_feature_matrix,
    group_indices,
)
from .distribution import (
    JointDistribution,
    MarginalDistribution,
)
from .errors import (
    ConfigurationError,
    NumericalError,
    PatchworkError,
    PreconditionError,
    ShapeMismatchError,
)
from .linalg import LDLT

__all__ = [
    "LDLT",
    # Errors
    "ConfigurationError",
    # Dataset
    "Grouped",
    # Distributions
    "JointDistribution",
    "MarginalDistribution",
    "NumericalError",
    "PatchworkError",
    "PreconditionError",
    "RegressionDataset",
    "ShapeMismatchError",
    "as_feature_matrix",
    "group_indices",
]
