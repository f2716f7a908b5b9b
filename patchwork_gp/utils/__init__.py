"""
Utilities Module for Patchwork GP

- config: PatchworkGPConfig and YAML loading
- profiler: Stage timing for fit and predict
"""

from .config import (
    PatchworkGPConfig,
    config_from_dict,
    load_config,
)
from .profiler import (
    Profiler,
    Timer,
    TimingResult,
)

__all__ = [
    # Config
    "PatchworkGPConfig",
    # Profiler
    "Profiler",
    "Timer",
    "TimingResult",
    "config_from_dict",
    "load_config",
]
