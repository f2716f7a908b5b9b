"""
Datasets and Grouped Containers

Patchwork GP splits everything it touches by group key: training data,
per-group models, per-group covariance blocks. This module provides:

- as_feature_matrix: coerce raw feature batches to (N, D) arrays
- Grouped: ordered mapping from group key to value, kept in canonical
  (sorted) key order so that containers built independently line up
- group_indices: partition row indices of a feature batch by a grouping function
- RegressionDataset: features with matching targets, with group_by()

Per-key work in Grouped.apply / Grouped.apply_items can be handed to a
concurrent.futures executor. Results are always collected in key order.
"""

from __future__ import annotations

from collections.abc import Mapping
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from .errors import ConfigurationError, PreconditionError, ShapeMismatchError


def as_feature_matrix(X: Union[NDArray, Sequence]) -> NDArray:
    """
    Coerce a batch of raw features to a 2-D float array.

    A 1-D input of length N is read as N one-dimensional features,
    so as_feature_matrix([0.0, 1.0]) has shape (2, 1).

    Args:
        X: Features (N,) or (N, D)

    Returns:
        Feature matrix (N, D)
    """
    X = np.asarray(X, dtype=float)
    if X.ndim == 0:
        return X.reshape(1, 1)
    if X.ndim == 1:
        return X.reshape(-1, 1)
    if X.ndim != 2:
        raise ShapeMismatchError(f"features must be 1-D or 2-D, got {X.ndim} dimensions")
    return X


def _run_per_key(fn: Callable, arguments: List[Tuple], executor: Optional[Executor]) -> List[Any]:
    if executor is None:
        return [fn(*args) for args in arguments]
    return list(executor.map(fn, *zip(*arguments))) if arguments else []


class Grouped(Mapping):
    """
    Read-only mapping from group key to value in canonical key order.

    Keys must be hashable and mutually comparable. Every Grouped built from
    the same key set iterates in the same order, which is what lets block
    operations zip them together.

    Example:
        >>> g = Grouped({"b": 2, "a": 1})
        >>> g.keys()
        ['a', 'b']
        >>> g.apply(lambda v: v * 10).values()
        [10, 20]
    """

    def __init__(self, items: Union[Mapping, Iterable[Tuple[Hashable, Any]]] = ()):
        data = dict(items.items() if isinstance(items, Mapping) else items)
        try:
            order = sorted(data)
        except TypeError as e:
            raise ConfigurationError(f"group keys must be mutually comparable: {e}") from e
        self._data: Dict[Hashable, Any] = {key: data[key] for key in order}

    def __getitem__(self, key: Hashable) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def keys(self) -> List:  # type: ignore[override]
        return list(self._data.keys())

    def values(self) -> List:  # type: ignore[override]
        return list(self._data.values())

    def items(self) -> List[Tuple]:  # type: ignore[override]
        return list(self._data.items())

    def apply(self, fn: Callable[[Any], Any], executor: Optional[Executor] = None) -> "Grouped":
        """Apply fn(value) to every group."""
        values = _run_per_key(fn, [(v,) for v in self._data.values()], executor)
        return Grouped(zip(self._data.keys(), values))

    def apply_items(self, fn: Callable[[Any, Any], Any], executor: Optional[Executor] = None) -> "Grouped":
        """Apply fn(key, value) to every group."""
        values = _run_per_key(fn, list(self._data.items()), executor)
        return Grouped(zip(self._data.keys(), values))

    def __repr__(self) -> str:
        return f"Grouped(keys={self.keys()})"


def group_indices(X: NDArray, grouper: Callable[[NDArray], Hashable]) -> Grouped:
    """
    Partition the rows of X by group key.

    Args:
        X: Feature matrix (N, D)
        grouper: Maps one raw feature (D,) to its group key

    Returns:
        Grouped mapping key -> row indices (ascending, so input order is
        preserved inside every group)
    """
    buckets: Dict[Hashable, List[int]] = {}
    for i, feature in enumerate(X):
        key = grouper(feature)
        try:
            hash(key)
        except TypeError as e:
            raise ConfigurationError(f"group key {key!r} is not hashable") from e
        buckets.setdefault(key, []).append(i)
    return Grouped((key, np.asarray(idx, dtype=int)) for key, idx in buckets.items())


@dataclass(eq=False)
class RegressionDataset:
    """Training features (N, D) with one target per feature."""

    features: NDArray
    targets: NDArray

    def __post_init__(self) -> None:
        self.features = as_feature_matrix(self.features)
        self.targets = np.asarray(self.targets, dtype=float).reshape(-1)
        if self.features.shape[0] != self.targets.shape[0]:
            raise ShapeMismatchError(
                f"{self.features.shape[0]} features but {self.targets.shape[0]} targets"
            )

    def __len__(self) -> int:
        return self.features.shape[0]

    def subset(self, indices: Sequence[int]) -> "RegressionDataset":
        idx = np.asarray(indices, dtype=int)
        return RegressionDataset(self.features[idx], self.targets[idx])

    def group_by(self, grouper: Callable[[NDArray], Hashable]) -> Grouped:
        """
        Split into one dataset per group key.

        Every row lands in exactly one group.
        """
        if len(self) == 0:
            raise PreconditionError("cannot group an empty dataset")
        return group_indices(self.features, grouper).apply(self.subset)
