"""
Symmetric Indefinite Factorization

LDLT wraps scipy's Bunch-Kaufman decomposition

    A = L D Lᵀ,  D block diagonal with 1x1 and 2x2 pivots

and is used for every covariance factorization in the package: per-group
training covariances, the boundary covariance C_bb and the Schur
complement S_bb. Unlike a Cholesky factorization it does not require
strict positive definiteness to factorize, but a solve with a singular
pivot is refused with NumericalError instead of producing inf/NaN.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from numpy.typing import NDArray
from scipy.linalg import ldl, solve_triangular

from .errors import NumericalError, ShapeMismatchError


def _pivot_blocks(d: NDArray) -> Tuple[NDArray, NDArray, NDArray]:
    """
    Invert the block diagonal D and collect its eigenvalues.

    Returns:
        inv_diag: Diagonal of D⁻¹ (n,)
        inv_sub: Sub-diagonal of D⁻¹ (n-1,)
        eigenvalues: Eigenvalues of every pivot block (n,)
    """
    n = d.shape[0]
    inv_diag = np.zeros(n)
    inv_sub = np.zeros(max(n - 1, 0))
    eigenvalues = np.zeros(n)

    i = 0
    while i < n:
        if i + 1 < n and d[i + 1, i] != 0.0:
            a, b, c = d[i, i], d[i + 1, i], d[i + 1, i + 1]
            det = a * c - b * b
            eigenvalues[i : i + 2] = np.linalg.eigvalsh(d[i : i + 2, i : i + 2])
            if det != 0.0:
                inv_diag[i] = c / det
                inv_diag[i + 1] = a / det
                inv_sub[i] = -b / det
            else:
                eigenvalues[i : i + 2] = (0.0, a + c)
            i += 2
        else:
            eigenvalues[i] = d[i, i]
            if d[i, i] != 0.0:
                inv_diag[i] = 1.0 / d[i, i]
            i += 1

    return inv_diag, inv_sub, eigenvalues


class LDLT:
    """
    LDLᵀ factorization of a symmetric matrix.

    Example:
        >>> A = np.array([[4.0, 1.0], [1.0, 3.0]])
        >>> ldlt = LDLT(A)
        >>> np.allclose(A @ ldlt.solve(np.ones(2)), np.ones(2))
        True
    """

    def __init__(self, A: NDArray, name: str = "matrix", rtol: float = 0.0):
        """
        Factorize A.

        Args:
            A: Symmetric matrix (n, n)
            name: Label used in error messages (e.g. "C_bb")
            rtol: Relative pivot tolerance. Pivots with
                  |λ| <= max(rtol * max|λ|, smallest positive float) make
                  the matrix singular. The default only rejects pivots
                  that vanish, so ill-conditioned semi-definite matrices
                  still factorize.
        """
        A = np.atleast_2d(np.asarray(A, dtype=float))
        if A.shape[0] != A.shape[1]:
            raise ShapeMismatchError(f"{name} must be square, got {A.shape}")
        if not np.all(np.isfinite(A)):
            raise NumericalError(f"{name} contains non-finite entries")

        self.name = name
        self.n = A.shape[0]

        if self.n == 0:
            lu, d, perm = np.zeros((0, 0)), np.zeros((0, 0)), np.zeros(0, dtype=int)
        else:
            lu, d, perm = ldl(A, lower=True, hermitian=True)
        # lu[perm] is unit lower triangular
        self._L = lu[perm]
        self._perm = perm
        self._inv_diag, self._inv_sub, self._eigenvalues = _pivot_blocks(d)

        scale = np.max(np.abs(self._eigenvalues)) if self.n > 0 else 0.0
        threshold = max(rtol * scale, np.finfo(float).tiny)
        self._singular = self.n > 0 and (scale == 0.0 or np.min(np.abs(self._eigenvalues)) <= threshold)

    @property
    def rows(self) -> int:
        return self.n

    @property
    def is_singular(self) -> bool:
        return bool(self._singular)

    @property
    def pivot_eigenvalues(self) -> NDArray:
        """Eigenvalues of D, which share their signs with those of A."""
        return self._eigenvalues.copy()

    def log_determinant(self) -> float:
        """log|det A|."""
        self._check_solvable()
        return float(np.sum(np.log(np.abs(self._eigenvalues))))

    def _check_solvable(self) -> None:
        if self._singular:
            raise NumericalError(
                f"{self.name} is singular (smallest pivot "
                f"{np.min(np.abs(self._eigenvalues)):.3e}, largest {np.max(np.abs(self._eigenvalues)):.3e})"
            )

    def _apply_d_inverse(self, z: NDArray) -> NDArray:
        inv_diag = self._inv_diag if z.ndim == 1 else self._inv_diag[:, None]
        inv_sub = self._inv_sub if z.ndim == 1 else self._inv_sub[:, None]
        w = inv_diag * z
        w[:-1] += inv_sub * z[1:]
        w[1:] += inv_sub * z[:-1]
        return w

    def solve(self, b: NDArray) -> NDArray:
        """
        Solve A x = b.

        Args:
            b: Right hand side (n,) or (n, k)

        Returns:
            x with the same shape as b
        """
        self._check_solvable()
        b = np.asarray(b, dtype=float)
        if b.shape[0] != self.n:
            raise ShapeMismatchError(f"cannot solve {self.name} ({self.n}x{self.n}) against {b.shape[0]} rows")
        if self.n == 0:
            return b.copy()

        # L z = b  <=>  L[perm] z = b[perm]
        z = solve_triangular(self._L, b[self._perm], lower=True, unit_diagonal=True)
        w = self._apply_d_inverse(z)
        # Lᵀ x = w  <=>  L[perm]ᵀ x[perm] = w
        y = solve_triangular(self._L, w, lower=True, unit_diagonal=True, trans="T")
        x = np.empty_like(y)
        x[self._perm] = y
        return x

    def __repr__(self) -> str:
        return f"LDLT(name={self.name!r}, n={self.n})"
