"""
Patchwork Gaussian Process

Large-scale GP regression by partitioning the training data into groups,
fitting one exact GP per group, and stitching the group models together by
requiring their predictions to agree along group boundaries.

Fit only partitions the data and fits the group models. Everything else
happens at predict time:

    1. One group only: delegate to that group's GP.
    2. Build boundary features between every pair of groups.
    3. C_bb (boundaries), C_dd (cached per-group factorizations),
       C_db (group training data vs boundaries).
    4. S_bb = C_bb - C_dbᵀ C_dd⁻¹ C_db, factorized once.
    5. Woodbury solve of the training targets (information vector).
    6. Route every query to its nearest existing group.
    7. Cross term C_df - C_db C_bb⁻¹ C_bf between training data and queries,
       conditioned on the boundaries.
    8. mean = crossᵀ information
       cov  = C_ff - C_fb C_bb⁻¹ C_bf - crossᵀ solve(cross)

The result is the exact joint posterior of a GP fit on all data with the
boundary differences observed to be zero, computed without ever forming
the full N x N covariance.

Reference:
    Park, C., & Apley, D. (2018). Patchwork Kriging for large-scale Gaussian
    process regression. JMLR 19(1), 269-311.
"""

from __future__ import annotations

import inspect
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Iterator, List, Optional, Protocol, Sequence

import numpy as np
from numpy.typing import NDArray

from ..core.dataset import Grouped, RegressionDataset, as_feature_matrix, group_indices
from ..core.distribution import JointDistribution, MarginalDistribution
from ..core.errors import ConfigurationError, NumericalError, PreconditionError
from ..core.linalg import LDLT
from ..utils.config import PatchworkGPConfig
from ..utils.profiler import Profiler
from .block import block_inner_product
from .caller import covariance_matrix
from .exact_gp import ExactGP, GPPrediction
from .features import as_group_features, as_group_features_from_grouped, build_boundary_features
from .kernels import Kernel
from .schur import SchurComplementSolver

logger = logging.getLogger(__name__)

# =============================================================================
# Grouping Functions
# =============================================================================


class PatchworkFunctions(Protocol):
    """
    Capability interface the caller supplies to define the partition.

    group:
        Maps one raw feature to its group key.
    boundary:
        Raw features on the boundary between two groups, where the two group
        models are constrained to agree. May be empty for groups that do not
        touch.
    nearest_group:
        Given the keys of all fitted groups and the natural group of a query,
        returns the group that should predict it. Must return the query key
        itself when it exists.
    """

    def group(self, feature: NDArray) -> Hashable: ...

    def boundary(self, lhs: Hashable, rhs: Hashable) -> Sequence: ...

    def nearest_group(self, groups: List[Hashable], query: Hashable) -> Hashable: ...


_REQUIRED_FUNCTIONS = {"group": 1, "boundary": 2, "nearest_group": 2}


def validate_patchwork_functions(functions: Any) -> None:
    """
    Check that a grouping bundle provides group, boundary and nearest_group.

    Raises:
        ConfigurationError: if an operation is missing, not callable, or
            cannot be called with the expected number of arguments
    """
    for name, n_args in _REQUIRED_FUNCTIONS.items():
        method = getattr(functions, name, None)
        if method is None:
            raise ConfigurationError(f"{type(functions).__name__} does not define {name}()")
        if not callable(method):
            raise ConfigurationError(f"{type(functions).__name__}.{name} is not callable")
        try:
            signature = inspect.signature(method)
        except (TypeError, ValueError):
            # Some builtins expose no signature
            continue
        try:
            signature.bind(*([None] * n_args))
        except TypeError as e:
            raise ConfigurationError(f"{name}() must accept {n_args} positional argument(s): {e}") from e


class _CheckedPatchworkFunctions:
    """Wraps a grouping bundle and rejects return values of the wrong kind."""

    def __init__(self, functions: Any):
        validate_patchwork_functions(functions)
        self.functions = functions

    def group(self, feature: NDArray) -> Hashable:
        return self.functions.group(feature)

    def boundary(self, lhs: Hashable, rhs: Hashable) -> Sequence:
        features = self.functions.boundary(lhs, rhs)
        if features is None or isinstance(features, (str, bytes)) or not hasattr(features, "__len__"):
            raise ConfigurationError(
                f"boundary({lhs!r}, {rhs!r}) must return a sequence of features, got {type(features).__name__}"
            )
        return features

    def nearest_group(self, groups: List[Hashable], query: Hashable) -> Hashable:
        nearest = self.functions.nearest_group(groups, query)
        if nearest not in groups:
            raise ConfigurationError(f"nearest_group returned {nearest!r} which is not one of the fitted groups")
        return nearest


@dataclass
class FunctionalPatchworkFunctions:
    """
    Grouping bundle built from three plain callables.

    Example:
        >>> functions = FunctionalPatchworkFunctions(
        ...     group=lambda f: int(f[0] >= 5.0),
        ...     boundary=lambda a, b: [5.0],
        ...     nearest_group=lambda groups, key: key if key in groups else groups[0],
        ... )
    """

    group: Callable[[NDArray], Hashable]
    boundary: Callable[[Hashable, Hashable], Sequence]
    nearest_group: Callable[[List[Hashable], Hashable], Hashable]


class IntervalPatchworkFunctions:
    """
    Groups one-dimensional features into fixed-width intervals.

    Group k covers [origin + k * width, origin + (k + 1) * width). Adjacent
    intervals share their common edge as a single boundary point;
    non-adjacent intervals have no boundary. Queries from intervals without
    training data go to the closest fitted interval.
    """

    def __init__(self, width: float, origin: float = 0.0):
        if width <= 0:
            raise ValueError("Interval width must be positive")
        self.width = width
        self.origin = origin

    def group(self, feature: NDArray) -> int:
        return int(np.floor((float(np.asarray(feature).reshape(-1)[0]) - self.origin) / self.width))

    def boundary(self, lhs: int, rhs: int) -> List[float]:
        if abs(lhs - rhs) != 1:
            return []
        return [self.origin + max(lhs, rhs) * self.width]

    def nearest_group(self, groups: List[int], query: int) -> int:
        return min(groups, key=lambda g: (abs(g - query), g))


# =============================================================================
# Fit State
# =============================================================================


@dataclass
class PatchworkGPFit:
    """Trained state: one fitted ExactGP per group."""

    fit_models: Grouped

    @property
    def groups(self) -> List[Hashable]:
        return self.fit_models.keys()


# =============================================================================
# Prediction
# =============================================================================


def _train_group_features(fit_models: Grouped) -> Grouped:
    return fit_models.apply_items(lambda key, model: as_group_features(key, model.X_train))


def patchwork_predict(
    kernel: Kernel,
    functions: Any,
    fit_models: Grouped,
    X: NDArray,
    executor: Optional[Executor] = None,
    profiler: Optional[Profiler] = None,
    pivot_rtol: float = 0.0,
) -> JointDistribution:
    """
    Joint posterior of the stitched model at X.

    Args:
        kernel: Covariance function shared by every group
        functions: Grouping bundle (group, boundary, nearest_group)
        fit_models: Grouped fitted ExactGP per group
        X: Query features (M, D)
        executor: Optional executor for per-group work
        profiler: Optional profiler receiving per-stage timings
        pivot_rtol: Relative pivot tolerance for C_bb and S_bb

    Returns:
        JointDistribution over X, row i describing X[i]
    """

    def stage(name: str):
        return profiler.time(name) if profiler is not None else nullcontext()

    X = as_feature_matrix(X)
    if len(fit_models) == 0:
        raise PreconditionError("patchwork model has no groups")
    if X.shape[0] == 0:
        return JointDistribution(np.zeros(0), np.zeros((0, 0)))

    if len(fit_models) == 1:
        return fit_models.values()[0].predict_joint(X)

    keys = fit_models.keys()

    with stage("predict/boundary"):
        boundary_features = build_boundary_features(functions.boundary, keys)
        C_bb = covariance_matrix(kernel, boundary_features, boundary_features)
        C_bb_ldlt = LDLT(C_bb, name="C_bb", rtol=pivot_rtol)
        if C_bb_ldlt.is_singular:
            raise NumericalError(
                "boundary covariance C_bb is singular; check boundary() for duplicate or redundant points"
            )

    logger.debug("Predicting %d queries across %d groups with %d boundary features", X.shape[0], len(keys), len(boundary_features))

    train_features = _train_group_features(fit_models)

    with stage("predict/schur"):
        C_dd = fit_models.apply(lambda model: model.train_covariance)
        C_db = train_features.apply(lambda features: covariance_matrix(kernel, features, boundary_features), executor)
        solver = SchurComplementSolver(C_dd, C_db, C_bb, executor, rtol=pivot_rtol)

        targets = fit_models.apply(lambda model: model.y_train)
        information = solver.solve(targets)

    with stage("predict/route"):
        query_indices = group_indices(X, lambda f: functions.nearest_group(keys, functions.group(f)))
        group_features = as_group_features_from_grouped(query_indices.apply(lambda idx: X[idx]))
        order = np.concatenate(query_indices.values())

    with stage("predict/cross"):
        C_fb = covariance_matrix(kernel, group_features, boundary_features)
        C_fb_bb_inv = C_bb_ldlt.solve(C_fb.T).T

        def cross_block(key: Hashable, features: List) -> NDArray:
            # Covariance with the queries, conditional on the boundaries
            block = covariance_matrix(kernel, features, group_features)
            return block - C_db[key] @ C_fb_bb_inv.T

        cross = train_features.apply_items(cross_block, executor)
        C_dd_inv_cross = solver.solve(cross)

    with stage("predict/assemble"):
        mean = block_inner_product(cross, information, executor)
        explained = block_inner_product(cross, C_dd_inv_cross, executor)
        cov = covariance_matrix(kernel, group_features, group_features) - C_fb_bb_inv @ C_fb.T - explained
        cov = 0.5 * (cov + cov.T)

        # Assembled in query-group order, reported in the caller's order
        output_mean = np.empty_like(mean)
        output_mean[order] = mean
        output_cov = np.empty_like(cov)
        output_cov[np.ix_(order, order)] = cov

    return JointDistribution(output_mean, output_cov)


# =============================================================================
# Model
# =============================================================================


class PatchworkGP:
    """
    Patchwork Kriging model.

    Example:
        >>> kernel = SquaredExponential(signal_variance=1.0, lengthscales=1.0)
        >>> functions = IntervalPatchworkFunctions(width=5.0)
        >>> gp = PatchworkGP(kernel, functions, PatchworkGPConfig(noise_variance=0.01))
        >>> gp.fit(X_train, y_train)
        >>> joint = gp.predict_joint(X_test)
        >>> print(joint.mean, np.diag(joint.covariance))
    """

    def __init__(
        self,
        kernel: Kernel,
        functions: PatchworkFunctions,
        config: Optional[PatchworkGPConfig] = None,
    ):
        """
        Initialize the patchwork GP.

        Args:
            kernel: Covariance function shared by every group
            functions: Grouping bundle, validated immediately
            config: Configuration options

        Raises:
            ConfigurationError: if functions lacks group, boundary or nearest_group
        """
        self.kernel = kernel
        self.functions = _CheckedPatchworkFunctions(functions)
        self.config = config or PatchworkGPConfig()
        self.profiler = Profiler()

        self._fit: Optional[PatchworkGPFit] = None

    @contextmanager
    def _executor(self) -> Iterator[Optional[Executor]]:
        if self.config.n_workers > 1:
            with ThreadPoolExecutor(max_workers=self.config.n_workers) as executor:
                yield executor
        else:
            yield None

    def _stage(self, name: str):
        return self.profiler.time(name) if self.config.profile else nullcontext()

    def _log_profile(self) -> None:
        if self.config.profile:
            logger.debug("%s", self.profiler.report())

    def _fit_group(self, dataset: RegressionDataset) -> ExactGP:
        return ExactGP(self.kernel, noise_variance=self.config.noise_variance).fit_dataset(dataset)

    def fit(self, X: NDArray, y: NDArray) -> "PatchworkGP":
        """
        Partition the data and fit one GP per group.

        No boundary work happens here, so later predictions are free to
        use any boundary resolution.

        Args:
            X: Training inputs (N, D)
            y: Training targets (N,)

        Returns:
            self (for chaining)
        """
        dataset = RegressionDataset(X, y)
        if len(dataset) == 0:
            raise PreconditionError("cannot fit a patchwork GP without training data")

        with self._stage("fit/group"):
            grouped = dataset.group_by(self.functions.group)

        logger.debug(
            "Fitting %d groups (sizes %s)",
            len(grouped),
            {key: len(group) for key, group in grouped.items()},
        )

        with self._executor() as executor, self._stage("fit/models"):
            fit_models = grouped.apply(self._fit_group, executor)

        self._fit = PatchworkGPFit(fit_models)
        self._log_profile()
        return self

    def from_fit_models(self, fit_models: Grouped) -> "PatchworkGP":
        """
        Use already fitted per-group GPs as the trained state.

        Args:
            fit_models: Grouped fitted ExactGP, keyed by group

        Returns:
            self (for chaining)
        """
        fit_models = fit_models if isinstance(fit_models, Grouped) else Grouped(fit_models)
        if len(fit_models) == 0:
            raise PreconditionError("need at least one fitted group")
        for key, model in fit_models.items():
            if not model.is_fitted:
                raise PreconditionError(f"model for group {key!r} has not been fit")
        self._fit = PatchworkGPFit(fit_models)
        return self

    @property
    def is_fitted(self) -> bool:
        return self._fit is not None

    def get_fit(self) -> PatchworkGPFit:
        if self._fit is None:
            raise RuntimeError("Must call fit() before get_fit()")
        return self._fit

    def predict_joint(self, X: NDArray) -> JointDistribution:
        """
        Joint posterior mean and covariance at X.

        Queries are assembled group by group, but the result is reported
        in the order of X rather than in query-group order.

        Args:
            X: Query features (M, D)

        Returns:
            JointDistribution, row i describing X[i]
        """
        if self._fit is None:
            raise RuntimeError("Must call fit() before predict()")

        with self._executor() as executor:
            joint = patchwork_predict(
                self.kernel,
                self.functions,
                self._fit.fit_models,
                X,
                executor=executor,
                profiler=self.profiler if self.config.profile else None,
                pivot_rtol=self.config.pivot_rtol,
            )
        self._log_profile()
        return joint

    def predict_marginal(self, X: NDArray) -> MarginalDistribution:
        return self.predict_joint(X).marginal()

    def predict(self, X: NDArray) -> GPPrediction:
        """
        Predict at test points.

        Args:
            X: Query features (M, D)

        Returns:
            GPPrediction with mean, variance, std
        """
        return GPPrediction.from_marginal(self.predict_marginal(X))

    def __repr__(self) -> str:
        groups = len(self._fit.fit_models) if self._fit is not None else 0
        return f"PatchworkGP(kernel={self.kernel}, n_groups={groups})"
