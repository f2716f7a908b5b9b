"""Unit tests for the single-group exact GP."""

import numpy as np
import pytest

from patchwork_gp.core import JointDistribution, PreconditionError, RegressionDataset
from patchwork_gp.gp import ExactGP


@pytest.fixture
def fitted(kernel):
    X = np.linspace(0, 4, 9)
    y = np.sin(X)
    return ExactGP(kernel, noise_variance=1e-6).fit(X, y), X, y


class TestExactGP:
    def test_interpolates_training_data(self, fitted):
        gp, X, y = fitted

        pred = gp.predict(X)

        np.testing.assert_allclose(pred.mean, y, atol=1e-4)
        assert np.all(pred.std < 1e-2)

    def test_reverts_to_prior_far_away(self, fitted):
        gp, _, _ = fitted

        pred = gp.predict(np.array([100.0]))

        assert pred.mean[0] == pytest.approx(0.0, abs=1e-8)
        assert pred.variance[0] == pytest.approx(1.0)

    def test_marginal_matches_joint_diagonal(self, fitted):
        gp, _, _ = fitted
        X_test = np.array([0.25, 1.7, 3.3, 6.0])

        joint = gp.predict_joint(X_test)
        marginal = gp.predict_marginal(X_test)

        assert isinstance(joint, JointDistribution)
        np.testing.assert_allclose(marginal.mean, joint.mean)
        np.testing.assert_allclose(marginal.variance, np.diag(joint.covariance), atol=1e-10)

    def test_log_marginal_likelihood(self, kernel):
        X = np.array([0.0, 0.5, 2.0])
        y = np.array([0.3, -0.1, 0.8])
        gp = ExactGP(kernel, noise_variance=0.1).fit(X, y)

        K = kernel(X) + 0.1 * np.eye(3)
        expected = -0.5 * y @ np.linalg.solve(K, y) - 0.5 * np.linalg.slogdet(K)[1] - 1.5 * np.log(2 * np.pi)
        assert gp.log_marginal_likelihood == pytest.approx(expected)

    def test_train_covariance_is_reusable(self, fitted, kernel):
        gp, X, _ = fitted

        K = kernel(X) + 1e-6 * np.eye(len(X))
        b = np.arange(len(X), dtype=float)
        np.testing.assert_allclose(K @ gp.train_covariance.solve(b), b, atol=1e-8)

    def test_fit_dataset(self, kernel):
        dataset = RegressionDataset(np.array([0.0, 1.0]), np.array([1.0, 2.0]))

        gp = ExactGP(kernel).fit_dataset(dataset)

        assert gp.is_fitted
        assert gp.n_train == 2

    def test_fit_copies_training_data(self, kernel):
        X = np.array([[0.0], [1.0]])
        gp = ExactGP(kernel).fit(X, np.zeros(2))

        X[0, 0] = 10.0
        assert gp.X_train[0, 0] == 0.0

    def test_predict_before_fit(self, kernel):
        with pytest.raises(RuntimeError):
            ExactGP(kernel).predict(np.zeros(1))

    def test_empty_training_data(self, kernel):
        with pytest.raises(PreconditionError):
            ExactGP(kernel).fit(np.zeros((0, 1)), np.zeros(0))

    def test_negative_noise(self, kernel):
        with pytest.raises(ValueError):
            ExactGP(kernel, noise_variance=-1.0)

    def test_confidence_bounds(self, fitted):
        gp, _, _ = fitted

        pred = gp.predict(np.array([100.0]))
        lower, upper = pred.confidence_bounds

        assert lower[0] == pytest.approx(-1.96)
        assert upper[0] == pytest.approx(1.96)
