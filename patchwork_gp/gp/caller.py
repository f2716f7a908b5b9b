"""
Patchwork Covariance Dispatch

Extends a kernel k over raw features to group and boundary features.
A GroupFeature is f_key(x) and a BoundaryFeature is f_lhs(x) - f_rhs(x),
with independent group functions f_i sharing the prior k. Covariances
therefore expand bilinearly:

    x \\ y            | Group(ky)              | Boundary(yl, yr)
    ------------------+------------------------+-------------------------------
    Group(kx)         | k if kx == ky else 0   | +k if kx == yl, -k if kx == yr
    Boundary(xl, xr)  | (symmetric)            | +2k same pair, -2k reversed pair,
                      |                        | +k one shared side, -k one crossed
                      |                        | side, 0 no shared key

Two raw features fall back to k itself. Mixing raw and tagged features has
no meaning and raises TypeError.

patchwork_covariance evaluates one pair by case analysis. covariance_matrix
builds whole matrices with a single vectorized kernel call multiplied by
the matching sign matrix.
"""

from __future__ import annotations

from typing import Any, Dict, Hashable, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from .features import BoundaryFeature, GroupFeature
from .kernels import Kernel

_RAW = "raw"
_GROUP = "group"
_BOUNDARY = "boundary"


def feature_kind(x: Any) -> str:
    """Classify a feature as raw, group or boundary."""
    if isinstance(x, GroupFeature):
        return _GROUP
    if isinstance(x, BoundaryFeature):
        return _BOUNDARY
    return _RAW


def _raw_covariance(kernel: Kernel, x: Any, y: Any) -> float:
    x = np.asarray(x, dtype=float).reshape(1, -1)
    y = np.asarray(y, dtype=float).reshape(1, -1)
    return float(kernel(x, y)[0, 0])


def _group_boundary_sign(group: GroupFeature, boundary: BoundaryFeature) -> float:
    if group.key == boundary.lhs:
        return 1.0
    if group.key == boundary.rhs:
        return -1.0
    return 0.0


def _boundary_boundary_sign(x: BoundaryFeature, y: BoundaryFeature) -> float:
    if x.lhs == y.lhs and x.rhs == y.rhs:
        return 2.0
    if x.lhs == y.rhs and x.rhs == y.lhs:
        return -2.0
    if x.lhs == y.lhs or x.rhs == y.rhs:
        return 1.0
    if x.lhs == y.rhs or x.rhs == y.lhs:
        return -1.0
    return 0.0


def patchwork_sign(x: Any, y: Any) -> float:
    """
    Multiplier applied to k(x.feature, y.feature) for two tagged features.

    Raises:
        TypeError: if either argument is a raw feature
    """
    kinds = (feature_kind(x), feature_kind(y))

    if kinds == (_GROUP, _GROUP):
        return 1.0 if x.key == y.key else 0.0
    if kinds == (_GROUP, _BOUNDARY):
        return _group_boundary_sign(x, y)
    if kinds == (_BOUNDARY, _GROUP):
        return _group_boundary_sign(y, x)
    if kinds == (_BOUNDARY, _BOUNDARY):
        return _boundary_boundary_sign(x, y)

    raise TypeError(f"no patchwork covariance between {kinds[0]} and {kinds[1]} features")


def patchwork_covariance(kernel: Kernel, x: Any, y: Any) -> float:
    """
    Covariance between two (possibly tagged) features.

    Args:
        kernel: Covariance function over raw features
        x: Raw feature, GroupFeature or BoundaryFeature
        y: Raw feature, GroupFeature or BoundaryFeature

    Returns:
        cov(x, y), symmetric in its arguments
    """
    if feature_kind(x) == _RAW and feature_kind(y) == _RAW:
        return _raw_covariance(kernel, x, y)

    sign = patchwork_sign(x, y)
    if sign == 0.0:
        return 0.0
    return sign * _raw_covariance(kernel, x.feature, y.feature)


# =============================================================================
# Vectorized Covariance Matrices
# =============================================================================


def _encode(features: Sequence, codes: Dict[Hashable, int], missing: int) -> Tuple[NDArray, NDArray]:
    """
    Integer codes of the positive and negative side of every feature.

    A GroupFeature has no negative side and gets `missing`, which must
    differ between the two operands so that absent sides never match.
    """
    positive = np.empty(len(features), dtype=int)
    negative = np.empty(len(features), dtype=int)
    for i, f in enumerate(features):
        kind = feature_kind(f)
        if kind == _GROUP:
            positive[i] = codes.setdefault(f.key, len(codes))
            negative[i] = missing
        elif kind == _BOUNDARY:
            positive[i] = codes.setdefault(f.lhs, len(codes))
            negative[i] = codes.setdefault(f.rhs, len(codes))
        else:
            raise TypeError("cannot mix raw features with group or boundary features")
    return positive, negative


def sign_matrix(xs: Sequence, ys: Sequence) -> NDArray:
    """
    patchwork_sign for every pair of tagged features, as a (len(xs), len(ys)) matrix.

    Each feature is the signed sum e_positive - e_negative of group indicators,
    so the sign is the bilinear expansion of those indicators.
    """
    codes: Dict[Hashable, int] = {}
    x_pos, x_neg = _encode(xs, codes, missing=-1)
    y_pos, y_neg = _encode(ys, codes, missing=-2)

    def matches(a: NDArray, b: NDArray) -> NDArray:
        return (a[:, None] == b[None, :]).astype(float)

    return matches(x_pos, y_pos) - matches(x_pos, y_neg) - matches(x_neg, y_pos) + matches(x_neg, y_neg)


def _is_raw_batch(features: Any) -> bool:
    return isinstance(features, np.ndarray)


def covariance_matrix(kernel: Kernel, xs: Any, ys: Any) -> NDArray:
    """
    Covariance matrix between two feature collections.

    Args:
        kernel: Covariance function over raw features
        xs: Raw feature matrix (N, D) or sequence of tagged features
        ys: Raw feature matrix (M, D) or sequence of tagged features

    Returns:
        Covariance matrix (N, M)
    """
    if _is_raw_batch(xs) and _is_raw_batch(ys):
        return kernel(xs, ys)
    if _is_raw_batch(xs) or _is_raw_batch(ys):
        raise TypeError("cannot mix raw features with group or boundary features")

    if len(xs) == 0 or len(ys) == 0:
        return np.zeros((len(xs), len(ys)))

    signs = sign_matrix(xs, ys)
    X = np.vstack([f.feature for f in xs])
    Y = np.vstack([f.feature for f in ys])
    return signs * kernel(X, Y)
