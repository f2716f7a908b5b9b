"""
Block Matrix Algebra over Grouped Partitions

Patchwork GP never materializes the block diagonal training covariance.
Instead every matrix that is partitioned by group lives in a
Grouped[key, matrix] and these helpers perform the block operations:

    block_product(A, B)        = [A_0, ..., A_n] · [B_0; ...; B_n] = Σᵢ Aᵢ Bᵢ
    block_inner_product(A, B)  = [A_0; ...; A_n]ᵀ · [B_0; ...; B_n] = Σᵢ Aᵢᵀ Bᵢ
    block_solve(A, B)          = diag(A_0, ..., A_n)⁻¹ · [B_0; ...; B_n]

Per-key terms are independent and may be computed on an executor. The
reduction always runs in canonical key order so results do not depend on
the number of workers.
"""

from __future__ import annotations

from concurrent.futures import Executor
from typing import Callable, Optional

import numpy as np
from numpy.typing import NDArray

from ..core.dataset import Grouped
from ..core.errors import PreconditionError, ShapeMismatchError


def _check_same_keys(lhs: Grouped, rhs: Grouped) -> None:
    if lhs.keys() != rhs.keys():
        raise ShapeMismatchError(f"grouped operands have different keys: {lhs.keys()} vs {rhs.keys()}")


def block_accumulate(
    lhs: Grouped,
    rhs: Grouped,
    apply_function: Callable[[NDArray, NDArray], NDArray],
    executor: Optional[Executor] = None,
) -> NDArray:
    """
    Sum of apply_function over matching blocks.

        Σ_key apply_function(lhs[key], rhs[key])

    Args:
        lhs: Grouped blocks
        rhs: Grouped blocks with the same keys
        apply_function: Maps one pair of blocks to an array; every key must
                        produce the same shape
        executor: Optional executor for the per-key terms

    Returns:
        The accumulated array
    """
    _check_same_keys(lhs, rhs)
    if len(lhs) == 0:
        raise PreconditionError("block_accumulate needs at least one group")

    terms = lhs.apply_items(lambda key, x: np.asarray(apply_function(x, rhs[key])), executor)

    output = None
    for key, term in terms.items():
        if output is None:
            output = term.copy()
        elif term.shape != output.shape:
            raise ShapeMismatchError(f"block {key!r} produced shape {term.shape}, expected {output.shape}")
        else:
            output += term
    return output


def _matmul(x: NDArray, y: NDArray) -> NDArray:
    if x.shape[-1] != y.shape[0]:
        raise ShapeMismatchError(f"cannot multiply blocks of shape {x.shape} and {y.shape}")
    return x @ y


def block_product(lhs: Grouped, rhs: Grouped, executor: Optional[Executor] = None) -> NDArray:
    """
    Product of a horizontally partitioned lhs with a vertically partitioned rhs.

        [x_0, ..., x_n] · [y_0; ...; y_n] = Σᵢ xᵢ yᵢ
    """
    return block_accumulate(lhs, rhs, _matmul, executor)


def block_inner_product(lhs: Grouped, rhs: Grouped, executor: Optional[Executor] = None) -> NDArray:
    """
    Inner product of two vertically partitioned matrices.

        [x_0; ...; x_n]ᵀ · [y_0; ...; y_n] = Σᵢ xᵢᵀ yᵢ
    """
    return block_accumulate(lhs, rhs, lambda x, y: _matmul(x.T, y), executor)


def block_solve(lhs: Grouped, rhs: Grouped, executor: Optional[Executor] = None) -> Grouped:
    """
    Block diagonal solve.

    Applies lhs[key]⁻¹ to rhs[key] for every key, where lhs holds
    factorizations exposing solve(). There is no coupling between groups.

    Args:
        lhs: Grouped factorizations (e.g. LDLT)
        rhs: Grouped right hand sides with the same keys

    Returns:
        Grouped solutions, keyed like rhs
    """
    _check_same_keys(lhs, rhs)
    return rhs.apply_items(lambda key, y: lhs[key].solve(y), executor)
