"""Unit tests for the patchwork covariance dispatch."""

import numpy as np
import pytest

from patchwork_gp.gp import (
    BoundaryFeature,
    GroupFeature,
    covariance_matrix,
    feature_kind,
    patchwork_covariance,
    patchwork_sign,
    sign_matrix,
)

X = 0.0
Y = 0.5


@pytest.fixture
def k(kernel):
    """k(X, Y) for the shared unit SE kernel."""
    return float(kernel(np.array([[X]]), np.array([[Y]]))[0, 0])


class TestDispatchTable:
    def test_raw_raw(self, kernel, k):
        assert patchwork_covariance(kernel, [X], [Y]) == pytest.approx(k)

    def test_group_group(self, kernel, k):
        assert patchwork_covariance(kernel, GroupFeature("a", [X]), GroupFeature("a", [Y])) == pytest.approx(k)
        assert patchwork_covariance(kernel, GroupFeature("a", [X]), GroupFeature("b", [Y])) == 0.0

    @pytest.mark.parametrize(
        "key, expected",
        [("a", 1.0), ("b", -1.0), ("c", 0.0)],
    )
    def test_group_boundary(self, kernel, k, key, expected):
        group = GroupFeature(key, [X])
        boundary = BoundaryFeature("a", "b", [Y])

        assert patchwork_covariance(kernel, group, boundary) == pytest.approx(expected * k)
        assert patchwork_covariance(kernel, boundary, group) == pytest.approx(expected * k)

    @pytest.mark.parametrize(
        "lhs, rhs, expected",
        [
            ("a", "b", 2.0),
            ("b", "a", -2.0),
            ("a", "c", 1.0),
            ("c", "b", 1.0),
            ("c", "a", -1.0),
            ("b", "c", -1.0),
            ("c", "d", 0.0),
        ],
    )
    def test_boundary_boundary(self, kernel, k, lhs, rhs, expected):
        x = BoundaryFeature("a", "b", [X])
        y = BoundaryFeature(lhs, rhs, [Y])

        assert patchwork_sign(x, y) == expected
        assert patchwork_covariance(kernel, x, y) == pytest.approx(expected * k)

    def test_raw_with_tagged(self, kernel):
        with pytest.raises(TypeError):
            patchwork_covariance(kernel, [X], GroupFeature("a", [Y]))
        with pytest.raises(TypeError):
            patchwork_covariance(kernel, BoundaryFeature("a", "b", [X]), [Y])

    def test_feature_kind(self):
        assert feature_kind(np.zeros(1)) == "raw"
        assert feature_kind(GroupFeature(0, [X])) == "group"
        assert feature_kind(BoundaryFeature(0, 1, [X])) == "boundary"


class TestDispatchProperties:
    @pytest.fixture
    def features(self):
        keys = ["a", "b", "c"]
        features = [GroupFeature(key, [0.3 * i]) for i, key in enumerate(keys)]
        for i, lhs in enumerate(keys):
            for rhs in keys[i + 1 :]:
                features.append(BoundaryFeature(lhs, rhs, [0.7]))
                features.append(BoundaryFeature(rhs, lhs, [1.1]))
        return features

    def test_symmetry(self, kernel, features):
        for x in features:
            for y in features:
                assert patchwork_covariance(kernel, x, y) == pytest.approx(patchwork_covariance(kernel, y, x))

    def test_swapping_boundary_sides_negates(self, kernel, features):
        for y in features:
            forward = patchwork_covariance(kernel, BoundaryFeature("a", "b", [0.2]), y)
            reverse = patchwork_covariance(kernel, BoundaryFeature("b", "a", [0.2]), y)
            assert reverse == pytest.approx(-forward)

    def test_matrix_matches_pairwise(self, kernel, features):
        K = covariance_matrix(kernel, features, features)

        expected = np.array([[patchwork_covariance(kernel, x, y) for y in features] for x in features])
        np.testing.assert_allclose(K, expected)
        np.testing.assert_allclose(K, K.T)

    def test_sign_matrix_matches_pairwise(self, features):
        expected = np.array([[patchwork_sign(x, y) for y in features] for x in features])
        np.testing.assert_array_equal(sign_matrix(features, features), expected)


class TestCovarianceMatrix:
    def test_raw_batches(self, kernel):
        X1 = np.linspace(0, 1, 4).reshape(-1, 1)
        X2 = np.linspace(0, 2, 3).reshape(-1, 1)

        np.testing.assert_allclose(covariance_matrix(kernel, X1, X2), kernel(X1, X2))

    def test_mixed_batches(self, kernel):
        with pytest.raises(TypeError):
            covariance_matrix(kernel, np.zeros((2, 1)), [GroupFeature(0, [0.0])])

    def test_empty(self, kernel):
        K = covariance_matrix(kernel, [], [GroupFeature(0, [0.0])])

        assert K.shape == (0, 1)

    def test_groups_are_uncorrelated(self, kernel):
        xs = [GroupFeature(0, [0.0]), GroupFeature(1, [0.0])]

        np.testing.assert_allclose(covariance_matrix(kernel, xs, xs), np.eye(2))
