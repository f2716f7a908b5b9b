"""
Group and Boundary Features

Tagged features consumed by the patchwork covariance dispatch:

- GroupFeature(key, feature): the latent function of group `key` at `feature`
- BoundaryFeature(lhs, rhs, feature): the difference

      f_lhs(feature) - f_rhs(feature)

  used as a pseudo-observation (fixed to zero) that forces two otherwise
  independent group models to agree along their shared boundary.

Reference:
    Park, C., & Apley, D. (2018). Patchwork Kriging for large-scale Gaussian
    process regression. JMLR 19(1), 269-311.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Hashable, List, Sequence

import numpy as np
from numpy.typing import NDArray

from ..core.dataset import Grouped, as_feature_matrix
from ..core.errors import PreconditionError


def _as_row(feature: Any) -> NDArray:
    row = np.asarray(feature, dtype=float).reshape(-1)
    row.setflags(write=False)
    return row


@dataclass(frozen=True, eq=False)
class GroupFeature:
    """A raw feature tagged with the group it belongs to."""

    key: Hashable
    feature: NDArray

    def __post_init__(self) -> None:
        object.__setattr__(self, "feature", _as_row(self.feature))


@dataclass(frozen=True, eq=False)
class BoundaryFeature:
    """
    Pseudo-observation of f_lhs(feature) - f_rhs(feature).

    Swapping lhs and rhs negates every covariance involving the feature.
    """

    lhs: Hashable
    rhs: Hashable
    feature: NDArray

    def __post_init__(self) -> None:
        if self.lhs == self.rhs:
            raise PreconditionError(f"boundary feature needs two distinct groups, got {self.lhs!r} twice")
        object.__setattr__(self, "feature", _as_row(self.feature))


def as_group_feature(key: Hashable, feature: Any) -> GroupFeature:
    return GroupFeature(key, feature)


def as_group_features(key: Hashable, features: NDArray) -> List[GroupFeature]:
    """Tag every row of a feature batch with the same group key."""
    return [GroupFeature(key, f) for f in as_feature_matrix(features)]


def as_group_features_from_grouped(grouped_features: Grouped) -> List[GroupFeature]:
    """Flatten Grouped[key, features] in canonical key order."""
    group_features: List[GroupFeature] = []
    for key, features in grouped_features.items():
        group_features.extend(as_group_features(key, features))
    return group_features


def as_boundary_feature(lhs: Hashable, rhs: Hashable, feature: Any) -> BoundaryFeature:
    return BoundaryFeature(lhs, rhs, feature)


def as_boundary_features(lhs: Hashable, rhs: Hashable, features: Sequence) -> List[BoundaryFeature]:
    if len(features) == 0:
        return []
    return [BoundaryFeature(lhs, rhs, f) for f in as_feature_matrix(features)]


def build_boundary_features(
    boundary: Callable[[Hashable, Hashable], Sequence],
    keys: Sequence[Hashable],
) -> List[BoundaryFeature]:
    """
    Boundary features between every pair of groups.

    For keys[i], keys[j] with i < j, every raw feature returned by
    boundary(keys[i], keys[j]) becomes BoundaryFeature(keys[i], keys[j], f).
    Pairs that share no boundary may return an empty sequence, but at least
    one pair must produce a feature.

    Args:
        boundary: Returns the raw features on the boundary of two groups
        keys: Group keys, in canonical order

    Returns:
        Boundary features ordered by (i, j) and then by boundary position
    """
    boundary_features: List[BoundaryFeature] = []
    for i in range(len(keys)):
        for j in range(i + 1, len(keys)):
            boundary_features.extend(as_boundary_features(keys[i], keys[j], boundary(keys[i], keys[j])))

    if not boundary_features:
        raise PreconditionError(f"no boundary features between any of the {len(keys)} groups")
    return boundary_features
