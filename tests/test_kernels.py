"""Unit tests for kernel functions."""

import numpy as np
import pytest

from patchwork_gp.gp import (
    Matern32,
    Matern52,
    ProductKernel,
    SquaredExponential,
    SquaredExponentialARD,
    SumKernel,
    create_matern_kernel,
)


class TestKernels:
    @pytest.mark.parametrize("kernel_cls", [SquaredExponential, Matern32, Matern52])
    def test_symmetric_with_signal_variance_on_diagonal(self, kernel_cls, rng):
        kernel = kernel_cls(signal_variance=2.0, lengthscales=0.7)
        X = rng.normal(size=(6, 2))

        K = kernel(X)

        np.testing.assert_allclose(K, K.T)
        np.testing.assert_allclose(np.diag(K), 2.0)
        np.testing.assert_allclose(kernel.diagonal(X), 2.0)

    def test_squared_exponential_value(self):
        kernel = SquaredExponential(signal_variance=1.5, lengthscales=2.0)

        assert kernel(np.array([[0.0]]), np.array([[1.0]]))[0, 0] == pytest.approx(1.5 * np.exp(-0.125))

    def test_vector_input_is_one_dimensional(self, kernel):
        assert kernel(np.array([0.0, 1.0, 2.0])).shape == (3, 3)

    def test_ard_lengthscales(self):
        kernel = SquaredExponentialARD(input_dim=2, lengthscales=[1.0, 1e6])

        # Second dimension is irrelevant
        K = kernel(np.array([[0.0, 0.0]]), np.array([[0.0, 5.0]]))
        assert K[0, 0] == pytest.approx(1.0)

    def test_ard_dimension_check(self):
        with pytest.raises(ValueError):
            SquaredExponentialARD(input_dim=3, lengthscales=[1.0, 1.0])

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            SquaredExponential(signal_variance=0.0)
        with pytest.raises(ValueError):
            Matern52(lengthscales=-1.0)

    def test_composition(self, kernel):
        X = np.linspace(0, 1, 4)
        other = Matern32()

        assert isinstance(kernel + other, SumKernel)
        assert isinstance(kernel * other, ProductKernel)
        np.testing.assert_allclose((kernel + other)(X), kernel(X) + other(X))
        np.testing.assert_allclose((kernel * other).diagonal(X), np.ones(4))

    def test_matern_factory(self):
        assert isinstance(create_matern_kernel(1.5), Matern32)
        assert isinstance(create_matern_kernel(2.5), Matern52)
        with pytest.raises(ValueError):
            create_matern_kernel(0.5)
