"""
Kernel Functions for Gaussian Processes

Covariance functions over raw feature batches:
- Squared Exponential, isotropic and with Automatic Relevance Determination
- Matérn 3/2 and 5/2 with ARD
- Kernel composition (sum, product)

All kernels take feature matrices (N, D). A 1-D array is read as N
one-dimensional features. The patchwork covariance dispatch (see caller.py)
evaluates these kernels on the raw features wrapped inside group and
boundary features.

Reference:
    Rasmussen, C. E., & Williams, C. K. I. (2006). Gaussian Processes
    for Machine Learning. MIT Press. Chapter 4.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Union

import numpy as np
from numpy.typing import NDArray

from ..core.dataset import as_feature_matrix

# =============================================================================
# Base Kernel Class
# =============================================================================


class Kernel(ABC):
    """
    Abstract base class for kernel functions.

    All kernels implement:
    - __call__(X1, X2): Compute kernel matrix K(X1, X2)
    - diagonal(X): Compute diagonal k(xᵢ, xᵢ) efficiently

    Kernels must be symmetric: K(X1, X2) == K(X2, X1)ᵀ.
    """

    @abstractmethod
    def __call__(
        self,
        X1: NDArray,
        X2: Optional[NDArray] = None,
    ) -> NDArray:
        """
        Compute kernel matrix.

        Args:
            X1: First set of points (N1, D)
            X2: Second set of points (N2, D). If None, compute K(X1, X1).

        Returns:
            Kernel matrix (N1, N2)
        """

    @abstractmethod
    def diagonal(self, X: NDArray) -> NDArray:
        """
        Compute diagonal of kernel matrix k(xᵢ, xᵢ).

        Args:
            X: Input points (N, D)

        Returns:
            Diagonal values (N,)
        """

    def __add__(self, other: "Kernel") -> "SumKernel":
        """Add two kernels: k(x,x') = k1(x,x') + k2(x,x')"""
        return SumKernel(self, other)

    def __mul__(self, other: "Kernel") -> "ProductKernel":
        """Multiply two kernels: k(x,x') = k1(x,x') * k2(x,x')"""
        return ProductKernel(self, other)


# =============================================================================
# Stationary Kernels
# =============================================================================


class StationaryKernel(Kernel):
    """
    Kernel depending only on the scaled distance between inputs.

        k(x, x') = σ² g(r²),  r² = Σᵢ (xᵢ - x'ᵢ)² / lᵢ²

    Subclasses provide the profile g. A scalar lengthscale is shared by
    every input dimension; an array gives one lengthscale per dimension.
    """

    def __init__(
        self,
        signal_variance: float = 1.0,
        lengthscales: Union[float, NDArray] = 1.0,
    ):
        if signal_variance <= 0:
            raise ValueError("Signal variance must be positive")
        lengthscales = np.asarray(lengthscales, dtype=float)
        if np.any(lengthscales <= 0):
            raise ValueError("Lengthscales must be positive")

        self._signal_variance = float(signal_variance)
        self._lengthscales = lengthscales

    @property
    def signal_variance(self) -> float:
        """Signal variance σ²."""
        return self._signal_variance

    @property
    def lengthscales(self) -> NDArray:
        return self._lengthscales

    def _scaled_distance_sq(self, X1: NDArray, X2: NDArray) -> NDArray:
        """Squared scaled Euclidean distance (N1, N2), clipped at zero."""
        X1_scaled = X1 / self._lengthscales
        X2_scaled = X2 / self._lengthscales

        # ||x1 - x2||² = ||x1||² + ||x2||² - 2 * x1·x2
        X1_sq = np.sum(X1_scaled**2, axis=1, keepdims=True)
        X2_sq = np.sum(X2_scaled**2, axis=1, keepdims=True)
        dist_sq = X1_sq + X2_sq.T - 2 * X1_scaled @ X2_scaled.T

        return np.maximum(dist_sq, 0.0)

    @abstractmethod
    def _profile(self, dist_sq: NDArray) -> NDArray:
        """Correlation as a function of the squared scaled distance."""

    def __call__(
        self,
        X1: NDArray,
        X2: Optional[NDArray] = None,
    ) -> NDArray:
        X1 = as_feature_matrix(X1)
        X2 = X1 if X2 is None else as_feature_matrix(X2)
        return self._signal_variance * self._profile(self._scaled_distance_sq(X1, X2))

    def diagonal(self, X: NDArray) -> NDArray:
        # Constant for stationary kernels
        return np.full(as_feature_matrix(X).shape[0], self._signal_variance)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(σ²={self._signal_variance:.4f}, l={self._lengthscales})"


class SquaredExponential(StationaryKernel):
    """
    Squared Exponential (RBF) kernel.

    k(x, x') = σ² exp(-0.5 r²)

    Example:
        >>> kernel = SquaredExponential(signal_variance=1.0, lengthscales=2.0)
        >>> K = kernel(np.linspace(0, 1, 5))  # (5, 5)
    """

    def _profile(self, dist_sq: NDArray) -> NDArray:
        return np.exp(-0.5 * dist_sq)


class SquaredExponentialARD(SquaredExponential):
    """
    SE kernel with one lengthscale per input dimension.

    ARD lets the GP decide which features are relevant: a long
    lengthscale flattens the response along that dimension.
    """

    def __init__(
        self,
        input_dim: int,
        signal_variance: float = 1.0,
        lengthscales: Optional[NDArray] = None,
    ):
        if lengthscales is None:
            lengthscales = np.ones(input_dim)
        lengthscales = np.asarray(lengthscales, dtype=float).flatten()
        if len(lengthscales) != input_dim:
            raise ValueError(f"Expected {input_dim} lengthscales, got {len(lengthscales)}")
        super().__init__(signal_variance, lengthscales)
        self.input_dim = input_dim


# Alias for convenience
RBF = SquaredExponential


class Matern32(StationaryKernel):
    """
    Matérn 3/2 kernel.

    k(x, x') = σ² (1 + √3 r) exp(-√3 r)

    Once differentiable, rougher than SE.
    """

    def _profile(self, dist_sq: NDArray) -> NDArray:
        sqrt3_r = np.sqrt(3.0 * dist_sq)
        return (1 + sqrt3_r) * np.exp(-sqrt3_r)


class Matern52(StationaryKernel):
    """
    Matérn 5/2 kernel.

    k(x, x') = σ² (1 + √5 r + 5r²/3) exp(-√5 r)
    """

    def _profile(self, dist_sq: NDArray) -> NDArray:
        sqrt5_r = np.sqrt(5.0 * dist_sq)
        return (1 + sqrt5_r + 5 * dist_sq / 3) * np.exp(-sqrt5_r)


# =============================================================================
# Composite Kernels
# =============================================================================


class SumKernel(Kernel):
    """Sum of two kernels: k(x,x') = k1(x,x') + k2(x,x')"""

    def __init__(self, k1: Kernel, k2: Kernel):
        self.k1 = k1
        self.k2 = k2

    def __call__(
        self,
        X1: NDArray,
        X2: Optional[NDArray] = None,
    ) -> NDArray:
        return self.k1(X1, X2) + self.k2(X1, X2)

    def diagonal(self, X: NDArray) -> NDArray:
        return self.k1.diagonal(X) + self.k2.diagonal(X)

    def __repr__(self) -> str:
        return f"SumKernel({self.k1}, {self.k2})"


class ProductKernel(Kernel):
    """Product of two kernels: k(x,x') = k1(x,x') * k2(x,x')"""

    def __init__(self, k1: Kernel, k2: Kernel):
        self.k1 = k1
        self.k2 = k2

    def __call__(
        self,
        X1: NDArray,
        X2: Optional[NDArray] = None,
    ) -> NDArray:
        return self.k1(X1, X2) * self.k2(X1, X2)

    def diagonal(self, X: NDArray) -> NDArray:
        return self.k1.diagonal(X) * self.k2.diagonal(X)

    def __repr__(self) -> str:
        return f"ProductKernel({self.k1}, {self.k2})"


# =============================================================================
# Factory Functions
# =============================================================================


def create_matern_kernel(
    nu: float = 2.5,
    signal_variance: float = 1.0,
    lengthscales: Union[float, NDArray] = 1.0,
) -> Kernel:
    """
    Create Matérn kernel.

    Args:
        nu: Smoothness parameter (1.5 or 2.5)
        signal_variance: Signal variance
        lengthscales: Scalar or per-dimension lengthscales

    Returns:
        Matern kernel (32 or 52)
    """
    if nu in (1.5, 3 / 2):
        return Matern32(signal_variance, lengthscales)
    elif nu in (2.5, 5 / 2):
        return Matern52(signal_variance, lengthscales)
    else:
        raise ValueError(f"Unsupported nu={nu}. Use 1.5 (Matern32) or 2.5 (Matern52)")
