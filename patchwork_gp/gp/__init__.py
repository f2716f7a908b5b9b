"""
Gaussian Process Module for Patchwork GP

- kernels: Covariance functions (SE, SE-ARD, Matérn)
- exact_gp: Single-group exact GP, fit once per group
- features: Group and boundary features
- caller: Covariance dispatch over group and boundary features
- block: Block matrix algebra over Grouped partitions
- schur: Schur complement (Woodbury) solver coupling the groups
- patchwork_gp: The patchwork model, its grouping functions and fit state

Usage:
    >>> from patchwork_gp.gp import IntervalPatchworkFunctions, PatchworkGP, SquaredExponential
    >>>
    >>> gp = PatchworkGP(SquaredExponential(lengthscales=1.0), IntervalPatchworkFunctions(width=5.0))
    >>> gp.fit(X, y)
    >>>
    >>> joint = gp.predict_joint(X_test)
    >>> mean, cov = joint.mean, joint.covariance
"""

from .block import (
    block_accumulate,
    block_inner_product,
    block_product,
    block_solve,
)
from .caller import (
    covariance_matrix,
    feature_kind,
    patchwork_covariance,
    patchwork_sign,
    sign_matrix,
)
from .exact_gp import (
    ExactGP,
    GPPrediction,
)
from .features import (
    BoundaryFeature,
    GroupFeature,
    as_boundary_feature,
    as_boundary_features,
    as_group_feature,
    as_group_features,
    as_group_features_from_grouped,
    build_boundary_features,
)
from .kernels import (
    RBF,
    # Base class
    Kernel,
    # Matérn kernels
    Matern32,
    Matern52,
    ProductKernel,
    # SE kernels
    SquaredExponential,
    SquaredExponentialARD,
    StationaryKernel,
    # Composite kernels
    SumKernel,
    create_matern_kernel,
)
from .patchwork_gp import (
    FunctionalPatchworkFunctions,
    IntervalPatchworkFunctions,
    PatchworkFunctions,
    PatchworkGP,
    PatchworkGPFit,
    patchwork_predict,
    validate_patchwork_functions,
)
from .schur import SchurComplementSolver

__all__ = [
    "RBF",
    # Features
    "BoundaryFeature",
    # Exact GP
    "ExactGP",
    # Patchwork
    "FunctionalPatchworkFunctions",
    "GPPrediction",
    "GroupFeature",
    "IntervalPatchworkFunctions",
    # Kernels
    "Kernel",
    "Matern32",
    "Matern52",
    "PatchworkFunctions",
    "PatchworkGP",
    "PatchworkGPFit",
    "ProductKernel",
    # Solver
    "SchurComplementSolver",
    "SquaredExponential",
    "SquaredExponentialARD",
    "StationaryKernel",
    "SumKernel",
    "as_boundary_feature",
    "as_boundary_features",
    "as_group_feature",
    "as_group_features",
    "as_group_features_from_grouped",
    # Block algebra
    "block_accumulate",
    "block_inner_product",
    "block_product",
    "block_solve",
    "build_boundary_features",
    # Dispatch
    "covariance_matrix",
    "create_matern_kernel",
    "feature_kind",
    "patchwork_covariance",
    "patchwork_predict",
    "patchwork_sign",
    "sign_matrix",
    "validate_patchwork_functions",
]
