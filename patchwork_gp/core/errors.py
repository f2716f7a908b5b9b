"""
Error Types for Patchwork GP

All failures are local and synchronous. Nothing is retried: a fit or predict
call either completes or raises one of these.

- ConfigurationError: the grouping bundle is unusable (missing operation,
  wrong arity, incompatible return value). Raised as early as possible,
  normally at model construction.
- PreconditionError: a call received inputs it cannot work with (empty
  group set, no boundary features between several groups, ...).
- ShapeMismatchError: operands of a block operation disagree in keys or
  dimensions.
- NumericalError: a factorization (C_bb, S_bb or a per-group training
  covariance) is not solvable.
"""

from __future__ import annotations

import numpy as np


class PatchworkError(Exception):
    """Base class for all patchwork GP errors."""


class ConfigurationError(PatchworkError, TypeError):
    """Grouping functions are missing or return incompatible values."""


class PreconditionError(PatchworkError, ValueError):
    """Inputs to a fit or predict call violate a precondition."""


class ShapeMismatchError(PatchworkError, ValueError):
    """Block operands have mismatched keys or dimensions."""


class NumericalError(PatchworkError, np.linalg.LinAlgError):
    """A covariance factorization failed or is singular."""
