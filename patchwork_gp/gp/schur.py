"""
Schur Complement Solver

Couples the independent group models through the boundary constraints.
With

    A = C_dd   block diagonal training covariance (one block per group)
    B = C_bb   covariance of the boundary pseudo-observations
    C = C_db   covariance between each group's training data and all boundaries

the covariance of the training data conditioned on the boundaries is
A - C B⁻¹ Cᵀ. Its inverse follows from the Woodbury identity

    (A - C B⁻¹ Cᵀ)⁻¹ rhs = A⁻¹ rhs + A⁻¹ C S⁻¹ Cᵀ A⁻¹ rhs
    S = B - Cᵀ A⁻¹ C                                   (Schur complement S_bb)

so only the per-group factorizations of A and one factorization of the small
S_bb are ever needed.
"""

from __future__ import annotations

from concurrent.futures import Executor
from typing import Optional

from numpy.typing import NDArray

from ..core.dataset import Grouped
from ..core.linalg import LDLT
from .block import block_inner_product, block_solve


class SchurComplementSolver:
    """
    Applies (C_dd - C_db C_bb⁻¹ C_bd)⁻¹ to grouped right hand sides.

    Example:
        >>> solver = SchurComplementSolver(C_dd, C_db, C_bb)
        >>> information = solver.solve(targets)  # Grouped[key, (n_i,)]
    """

    def __init__(
        self,
        C_dd: Grouped,
        C_db: Grouped,
        C_bb: NDArray,
        executor: Optional[Executor] = None,
        rtol: float = 0.0,
    ):
        """
        Factorize the Schur complement.

        Args:
            C_dd: Grouped factorizations of the per-group training covariance
            C_db: Grouped covariance between group training features and
                  boundary features (n_i, n_b)
            C_bb: Boundary covariance (n_b, n_b)
            executor: Optional executor for per-group work
            rtol: Relative pivot tolerance of the S_bb factorization
        """
        self.C_dd = C_dd
        self.C_db = C_db
        self.executor = executor

        C_dd_inv_C_db = block_solve(C_dd, C_db, executor)
        # S_bb = C_bb - C_bdᵀ C_dd⁻¹ C_db
        self.S_bb = C_bb - block_inner_product(C_db, C_dd_inv_C_db, executor)
        self.S_bb_ldlt = LDLT(self.S_bb, name="S_bb", rtol=rtol)

    def solve(self, rhs: Grouped) -> Grouped:
        """
        Woodbury solve of a grouped right hand side.

        Args:
            rhs: Grouped blocks (n_i,) or (n_i, k) keyed like C_dd

        Returns:
            Grouped solution with the same keys and shapes as rhs
        """
        Ai_rhs = block_solve(self.C_dd, rhs, self.executor)

        # S⁻¹ Cᵀ A⁻¹ rhs
        SiCtAi_rhs = self.S_bb_ldlt.solve(block_inner_product(self.C_db, Ai_rhs, self.executor))

        CSiCtAi_rhs = self.C_db.apply(lambda C_db_i: C_db_i @ SiCtAi_rhs, self.executor)
        correction = block_solve(self.C_dd, CSiCtAi_rhs, self.executor)

        return correction.apply_items(lambda key, block: block + Ai_rhs[key])
