"""
Exact Gaussian Process Regression

Single-group GP used by the patchwork model: one ExactGP is fit per group
and its training covariance factorization is reused at prediction time.

The GP models:
    y = f(x) + ε,  ε ~ N(0, sigma²_n)
    f ~ GP(0, k(x, x'))

Posterior predictive:
    μ(x*) = k(x*, X) [K + sigma²_n I]^{-1} y
    Σ(x*) = k(x*, x*) - k(x*, X) [K + sigma²_n I]^{-1} k(X, x*)

The prior mean is zero and targets are not normalized: the patchwork model
stitches several of these together and they must share one prior.

Reference:
    Rasmussen, C. E., & Williams, C. K. I. (2006). Gaussian Processes
    for Machine Learning. MIT Press. Chapter 2.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from ..core.dataset import RegressionDataset, as_feature_matrix
from ..core.distribution import JointDistribution, MarginalDistribution
from ..core.errors import PreconditionError
from ..core.linalg import LDLT
from .kernels import Kernel


@dataclass
class GPPrediction:
    """Container for GP predictions."""

    mean: NDArray  # Posterior mean (N,)
    variance: NDArray  # Posterior variance (N,)
    std: NDArray  # Posterior std (N,)

    @property
    def confidence_bounds(self) -> Tuple[NDArray, NDArray]:
        """95% confidence bounds."""
        return self.mean - 1.96 * self.std, self.mean + 1.96 * self.std

    @classmethod
    def from_marginal(cls, marginal: MarginalDistribution) -> "GPPrediction":
        variance = np.maximum(marginal.variance, 0.0)
        return cls(mean=marginal.mean, variance=variance, std=np.sqrt(variance))


class ExactGP:
    """
    Exact Gaussian Process Regression.

    Complexity: O(N³) for training, O(N²) per prediction

    Example:
        >>> kernel = SquaredExponential(lengthscales=0.5)
        >>> gp = ExactGP(kernel, noise_variance=0.01)
        >>> gp.fit(X_train, y_train)
        >>> pred = gp.predict(X_test)
        >>> print(pred.mean, pred.std)
    """

    def __init__(
        self,
        kernel: Kernel,
        noise_variance: float = 1e-4,
    ):
        """
        Initialize Exact GP.

        Args:
            kernel: Covariance function
            noise_variance: Observation noise sigma²_n
        """
        if noise_variance < 0:
            raise ValueError("Noise variance must be non-negative")
        self.kernel = kernel
        self.noise_variance = noise_variance

        # Training data (set by fit())
        self.X_train: Optional[NDArray] = None
        self.y_train: Optional[NDArray] = None
        self.n_train: int = 0

        # Cached computations (set by fit())
        self._train_covariance: Optional[LDLT] = None
        self._alpha: Optional[NDArray] = None  # (K + sigma²I)^{-1} y
        self._log_marginal_likelihood: Optional[float] = None

    def fit(self, X: NDArray, y: NDArray) -> "ExactGP":
        """
        Fit GP to training data.

        Factorizes K + sigma²I once. The factorization is kept and exposed as
        train_covariance so callers can reuse it.

        Args:
            X: Training inputs (N, D)
            y: Training targets (N,)

        Returns:
            self (for chaining)
        """
        dataset = RegressionDataset(X, y)
        if len(dataset) == 0:
            raise PreconditionError("cannot fit a GP without training data")

        self.X_train = dataset.features.copy()
        self.y_train = dataset.targets.copy()
        self.n_train = len(dataset)

        K_noise = self.kernel(self.X_train, self.X_train) + self.noise_variance * np.eye(self.n_train)
        self._train_covariance = LDLT(K_noise, name="training covariance")
        self._alpha = self._train_covariance.solve(self.y_train)

        self._compute_log_marginal_likelihood()

        return self

    def fit_dataset(self, dataset: RegressionDataset) -> "ExactGP":
        return self.fit(dataset.features, dataset.targets)

    def _compute_log_marginal_likelihood(self) -> None:
        """
        log p(y|X) = -0.5 y^T (K + sigma²I)^{-1} y - 0.5 log|K + sigma²I| - n/2 log(2π)
        """
        data_fit = -0.5 * np.dot(self.y_train, self._alpha)
        complexity = -0.5 * self._train_covariance.log_determinant()
        constant = -0.5 * self.n_train * np.log(2 * np.pi)

        self._log_marginal_likelihood = data_fit + complexity + constant

    @property
    def is_fitted(self) -> bool:
        return self._train_covariance is not None

    @property
    def train_covariance(self) -> LDLT:
        """Factorization of K(X_train, X_train) + sigma²I."""
        self._check_fitted()
        return self._train_covariance

    @property
    def log_marginal_likelihood(self) -> float:
        """Log marginal likelihood of the training data."""
        if self._log_marginal_likelihood is None:
            raise RuntimeError("Must call fit() before accessing log_marginal_likelihood")
        return self._log_marginal_likelihood

    def _check_fitted(self) -> None:
        if self._train_covariance is None:
            raise RuntimeError("Must call fit() before predict()")

    def predict_joint(self, X: NDArray) -> JointDistribution:
        """
        Joint posterior of the latent function at X.

        Args:
            X: Test inputs (M, D)

        Returns:
            JointDistribution with mean (M,) and covariance (M, M)
        """
        self._check_fitted()
        X = as_feature_matrix(X)

        K_star = self.kernel(X, self.X_train)  # (M, N)
        mean = K_star @ self._alpha

        # Σ* = K** - K* (K + sigma²I)^{-1} K*^T
        cov = self.kernel(X, X) - K_star @ self._train_covariance.solve(K_star.T)
        return JointDistribution(mean, cov)

    def predict_marginal(self, X: NDArray) -> MarginalDistribution:
        """Per-point posterior mean and variance at X."""
        self._check_fitted()
        X = as_feature_matrix(X)

        K_star = self.kernel(X, self.X_train)
        mean = K_star @ self._alpha
        # sigma²* = k** - k*^T (K + sigma²I)^{-1} k*
        variance = self.kernel.diagonal(X) - np.sum(K_star.T * self._train_covariance.solve(K_star.T), axis=0)
        return MarginalDistribution(mean, variance)

    def predict(self, X: NDArray) -> GPPrediction:
        """
        Predict at test points.

        Args:
            X: Test inputs (M, D)

        Returns:
            GPPrediction with mean, variance, std
        """
        return GPPrediction.from_marginal(self.predict_marginal(X))

    def __repr__(self) -> str:
        return f"ExactGP(kernel={self.kernel}, noise_variance={self.noise_variance:.6f}, n_train={self.n_train})"
