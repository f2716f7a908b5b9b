"""
Configuration Loading

Reads PatchworkGPConfig from YAML files or plain mappings:

    # patchwork.yaml
    noise_variance: 0.01
    n_workers: 4
    profile: false
    pivot_rtol: 0.0

Unknown keys are rejected so that typos do not silently fall back to
defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Union

import yaml

from ..core.errors import ConfigurationError


@dataclass
class PatchworkGPConfig:
    """Configuration for the patchwork GP."""

    # Observation noise added to every group's training covariance
    noise_variance: float = 1e-4

    # Threads used for per-group fits and per-group block operations
    n_workers: int = 1

    # Record per-stage timings in PatchworkGP.profiler
    profile: bool = False

    # Relative pivot tolerance for the boundary factorizations (C_bb, S_bb);
    # 0 only rejects pivots that vanish
    pivot_rtol: float = 0.0


def config_from_dict(values: Mapping[str, Any]) -> PatchworkGPConfig:
    """
    Build a config from a mapping.

    Raises:
        ConfigurationError: on unknown keys or invalid values
    """
    if not isinstance(values, Mapping):
        raise ConfigurationError(f"config must be a mapping, got {type(values).__name__}")

    known = {f.name for f in fields(PatchworkGPConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigurationError(f"unknown config keys: {unknown}")

    config = PatchworkGPConfig(**values)

    if config.noise_variance < 0:
        raise ConfigurationError("noise_variance must be non-negative")
    if int(config.n_workers) < 1:
        raise ConfigurationError("n_workers must be at least 1")
    if config.pivot_rtol < 0:
        raise ConfigurationError("pivot_rtol must be non-negative")
    return config


def load_config(path: Union[str, Path]) -> PatchworkGPConfig:
    """Load a PatchworkGPConfig from a YAML file. An empty file gives the defaults."""
    with open(path) as f:
        values = yaml.safe_load(f)
    return config_from_dict(values or {})
