"""Unit tests for block algebra and the Schur complement solver."""

from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from patchwork_gp.core import LDLT, Grouped, PreconditionError, ShapeMismatchError
from patchwork_gp.gp import (
    SchurComplementSolver,
    block_accumulate,
    block_inner_product,
    block_product,
    block_solve,
)


def _spd(rng, n):
    M = rng.normal(size=(n, n))
    return M @ M.T + n * np.eye(n)


@pytest.fixture
def blocks(rng):
    """Column partitioned x (3 x n_i) and row partitioned y (n_i x 2)."""
    sizes = {"a": 2, "b": 3, "c": 4}
    x = Grouped({key: rng.normal(size=(3, n)) for key, n in sizes.items()})
    y = Grouped({key: rng.normal(size=(n, 2)) for key, n in sizes.items()})
    return x, y


class TestBlockAlgebra:
    def test_product_matches_dense(self, blocks):
        x, y = blocks

        dense = np.hstack(x.values()) @ np.vstack(y.values())
        np.testing.assert_allclose(block_product(x, y), dense)

    def test_inner_product_matches_dense(self, blocks):
        _, y = blocks

        dense = np.vstack(y.values())
        np.testing.assert_allclose(block_inner_product(y, y), dense.T @ dense)

    def test_vector_inner_product(self):
        a = Grouped({0: np.array([1.0, 2.0]), 1: np.array([3.0])})

        assert float(block_inner_product(a, a)) == pytest.approx(14.0)

    def test_accumulate(self, blocks):
        x, _ = blocks

        total = block_accumulate(x, x, lambda u, v: u.sum(axis=1) + v.sum(axis=1))
        np.testing.assert_allclose(total, 2 * np.hstack(x.values()).sum(axis=1))

    def test_accumulate_does_not_modify_blocks(self):
        a = Grouped({0: np.ones(2), 1: np.ones(2)})

        block_accumulate(a, a, lambda u, v: u)
        np.testing.assert_array_equal(a[0], np.ones(2))

    def test_key_mismatch(self, blocks):
        x, y = blocks

        with pytest.raises(ShapeMismatchError):
            block_product(x, Grouped({"a": y["a"], "b": y["b"]}))

    def test_inconsistent_term_shapes(self):
        a = Grouped({0: np.ones(2), 1: np.ones(3)})

        with pytest.raises(ShapeMismatchError):
            block_accumulate(a, a, lambda u, v: u)

    def test_block_shape_mismatch(self):
        lhs = Grouped({0: np.ones((2, 3))})
        rhs = Grouped({0: np.ones((2, 2))})

        with pytest.raises(ShapeMismatchError):
            block_product(lhs, rhs)

    def test_empty(self):
        with pytest.raises(PreconditionError):
            block_accumulate(Grouped(), Grouped(), lambda u, v: u)

    def test_solve_is_block_diagonal(self, rng, blocks):
        _, y = blocks
        A = Grouped({key: _spd(rng, block.shape[0]) for key, block in y.items()})
        factors = A.apply(LDLT)

        solution = block_solve(factors, y)

        for key in y:
            np.testing.assert_allclose(A[key] @ solution[key], y[key])

    def test_executor_gives_same_result(self, blocks):
        x, y = blocks

        serial = block_product(x, y)
        with ThreadPoolExecutor(max_workers=3) as executor:
            parallel = block_product(x, y, executor)

        np.testing.assert_array_equal(serial, parallel)


class TestSchurComplementSolver:
    @pytest.fixture
    def system(self, rng):
        sizes = {0: 3, 1: 4, 2: 2}
        n_b = 2
        A = Grouped({key: _spd(rng, n) for key, n in sizes.items()})
        C = Grouped({key: 0.3 * rng.normal(size=(n, n_b)) for key, n in sizes.items()})
        B = _spd(rng, n_b)
        return A, C, B

    @staticmethod
    def _dense(A, C, B):
        sizes = [block.shape[0] for block in A.values()]
        dense_A = np.zeros((sum(sizes), sum(sizes)))
        offset = 0
        for block, n in zip(A.values(), sizes):
            dense_A[offset : offset + n, offset : offset + n] = block
            offset += n
        dense_C = np.vstack(C.values())
        return dense_A - dense_C @ np.linalg.solve(B, dense_C.T)

    def test_matches_dense_solve(self, system, rng):
        A, C, B = system
        rhs = Grouped({key: rng.normal(size=block.shape[0]) for key, block in A.items()})

        solver = SchurComplementSolver(A.apply(LDLT), C, B)
        solution = solver.solve(rhs)

        expected = np.linalg.solve(self._dense(A, C, B), np.concatenate(rhs.values()))
        np.testing.assert_allclose(np.concatenate(solution.values()), expected, rtol=1e-8, atol=1e-10)

    def test_matrix_right_hand_side(self, system, rng):
        A, C, B = system
        rhs = Grouped({key: rng.normal(size=(block.shape[0], 3)) for key, block in A.items()})

        solution = SchurComplementSolver(A.apply(LDLT), C, B).solve(rhs)

        for key in rhs:
            assert solution[key].shape == rhs[key].shape
        expected = np.linalg.solve(self._dense(A, C, B), np.vstack(rhs.values()))
        np.testing.assert_allclose(np.vstack(solution.values()), expected, rtol=1e-8, atol=1e-10)

    def test_schur_complement(self, system):
        A, C, B = system

        solver = SchurComplementSolver(A.apply(LDLT), C, B)

        expected = B - sum(C[key].T @ np.linalg.solve(A[key], C[key]) for key in A)
        np.testing.assert_allclose(solver.S_bb, expected)
