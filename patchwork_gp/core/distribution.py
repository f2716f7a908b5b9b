"""
Gaussian Distributions

Containers for the output of GP predictions:

- JointDistribution: mean vector and dense covariance matrix
- MarginalDistribution: mean vector and per-element variance

A covariance, when present, must be square with one row per mean element.
Two distributions only compare equal when they use the same covariance
representation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from .errors import ShapeMismatchError


@dataclass(eq=False)
class MarginalDistribution:
    """Independent Gaussian per element (diagonal covariance)."""

    mean: NDArray  # (N,)
    variance: NDArray  # (N,)

    def __post_init__(self) -> None:
        self.mean = np.asarray(self.mean, dtype=float).reshape(-1)
        self.variance = np.asarray(self.variance, dtype=float).reshape(-1)
        if self.variance.shape != self.mean.shape:
            raise ShapeMismatchError(
                f"variance has {self.variance.shape[0]} elements, mean has {self.mean.shape[0]}"
            )

    @property
    def size(self) -> int:
        return self.mean.shape[0]

    @property
    def std(self) -> NDArray:
        return np.sqrt(np.maximum(self.variance, 0.0))

    def get_diagonal(self, i: int) -> float:
        return float(self.variance[i])

    def subset(self, indices: Sequence[int]) -> "MarginalDistribution":
        idx = np.asarray(indices, dtype=int)
        return MarginalDistribution(self.mean[idx], self.variance[idx])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MarginalDistribution):
            return False
        return np.array_equal(self.mean, other.mean) and np.array_equal(self.variance, other.variance)

    def __len__(self) -> int:
        return self.size


@dataclass(eq=False)
class JointDistribution:
    """
    Multivariate Gaussian with a dense covariance.

    Example:
        >>> dist = JointDistribution(np.zeros(3), np.eye(3))
        >>> dist.marginal().variance
        array([1., 1., 1.])
    """

    mean: NDArray  # (N,)
    covariance: NDArray  # (N, N)

    def __post_init__(self) -> None:
        self.mean = np.asarray(self.mean, dtype=float).reshape(-1)
        self.covariance = np.atleast_2d(np.asarray(self.covariance, dtype=float))
        if self.mean.shape[0] == 0 and self.covariance.size == 0:
            self.covariance = np.zeros((0, 0))
        rows, cols = self.covariance.shape
        if rows != cols:
            raise ShapeMismatchError(f"covariance must be square, got {self.covariance.shape}")
        if rows != self.mean.shape[0]:
            raise ShapeMismatchError(f"covariance is {rows}x{cols} but mean has {self.mean.shape[0]} elements")

    @property
    def size(self) -> int:
        return self.mean.shape[0]

    def get_diagonal(self, i: int) -> float:
        return float(self.covariance[i, i])

    def marginal(self) -> MarginalDistribution:
        return MarginalDistribution(self.mean.copy(), np.diag(self.covariance).copy())

    def subset(self, indices: Sequence[int]) -> "JointDistribution":
        """Distribution of the selected elements (symmetric subset of the covariance)."""
        idx = np.asarray(indices, dtype=int)
        return JointDistribution(self.mean[idx], self.covariance[np.ix_(idx, idx)])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, JointDistribution):
            return False
        return np.array_equal(self.mean, other.mean) and np.array_equal(self.covariance, other.covariance)

    def __len__(self) -> int:
        return self.size
