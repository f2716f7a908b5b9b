"""
Patchwork GP

Large-scale Gaussian Process regression with Patchwork Kriging: the data
is split into groups, one exact GP is fit per group, and the group models
are stitched into one consistent posterior by constraining them to agree
along group boundaries.

Modules:
    core: Distributions, datasets and Grouped containers, LDLT, errors
    gp: Kernels, single-group GP, covariance dispatch, block algebra,
        Schur complement solver and the patchwork model
    utils: Configuration loading and stage profiling
"""

__version__ = "0.1.0"
__author__ = "Patchwork GP Team"

# Convenience imports
from . import core, gp, utils
from .core import JointDistribution, MarginalDistribution
from .gp import (
    FunctionalPatchworkFunctions,
    IntervalPatchworkFunctions,
    PatchworkGP,
)
from .utils import PatchworkGPConfig

__all__ = [
    "FunctionalPatchworkFunctions",
    "IntervalPatchworkFunctions",
    "JointDistribution",
    "MarginalDistribution",
    "PatchworkGP",
    "PatchworkGPConfig",
    "core",
    "gp",
    "utils",
]
