"""
Stage Profiler

Wall-clock timing of the fit and predict stages of the patchwork model:
grouping, per-group fits, boundary construction, Schur complement
factorization, cross terms and assembly. Enabled with
PatchworkGPConfig(profile=True); timings are then available from
PatchworkGP.profiler and are logged at debug level after every call.
"""

from __future__ import annotations

import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Deque, Dict, Optional

import numpy as np


@dataclass
class TimingResult:
    """Result from a timing measurement."""

    name: str
    mean_ms: float
    std_ms: float
    min_ms: float
    max_ms: float
    n_calls: int
    total_ms: float


class Timer:
    """Context manager for timing code blocks."""

    def __init__(self, name: str = ""):
        self.name = name
        self.elapsed_ms = 0.0
        self._start = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000


class _ProfiledTimer(Timer):
    """Timer that records to profiler."""

    def __init__(self, name: str, profiler: "Profiler"):
        super().__init__(name)
        self._profiler = profiler

    def __exit__(self, *args) -> None:
        super().__exit__(*args)
        self._profiler.record(self.name, self.elapsed_ms)


class Profiler:
    """
    Collects timings per named stage.

    Only the most recent max_samples timings of each stage are kept.

    Example:
        >>> profiler = Profiler()
        >>>
        >>> with profiler.time("predict/schur"):
        >>>     solver = SchurComplementSolver(C_dd, C_db, C_bb)
        >>>
        >>> print(profiler.report())
    """

    def __init__(self, max_samples: int = 1000):
        if max_samples < 1:
            raise ValueError("max_samples must be at least 1")
        self.max_samples = max_samples
        self._timings: Dict[str, Deque[float]] = defaultdict(lambda: deque(maxlen=self.max_samples))

    def time(self, name: str) -> _ProfiledTimer:
        """Create timer context for named operation."""
        return _ProfiledTimer(name, self)

    def record(self, name: str, elapsed_ms: float) -> None:
        """Record a timing measurement."""
        self._timings[name].append(elapsed_ms)

    def get_stats(self, name: str) -> Optional[TimingResult]:
        """Get timing statistics for named operation."""
        if len(self._timings.get(name, [])) == 0:
            return None

        times = np.array(self._timings[name])

        return TimingResult(
            name=name,
            mean_ms=float(np.mean(times)),
            std_ms=float(np.std(times)),
            min_ms=float(np.min(times)),
            max_ms=float(np.max(times)),
            n_calls=len(times),
            total_ms=float(np.sum(times)),
        )

    def get_all_stats(self) -> Dict[str, TimingResult]:
        """Get statistics for all tracked stages."""
        return {name: self.get_stats(name) for name in self._timings if self._timings[name]}

    def report(self) -> str:
        """Generate timing report."""
        lines = ["Patchwork GP Timing", "=" * 50]

        stats = self.get_all_stats()

        if not stats:
            lines.append("No timing data recorded")
            return "\n".join(lines)

        total_time = sum(s.total_ms for s in stats.values())

        for name, stat in sorted(stats.items(), key=lambda x: x[1].total_ms, reverse=True):
            pct = stat.total_ms / total_time * 100 if total_time > 0 else 0
            lines.append(f"{name:24s}: {stat.mean_ms:8.2f} ms ({pct:5.1f}%) [n={stat.n_calls}]")

        lines.append("=" * 50)
        lines.append(f"Total tracked time: {total_time:.2f} ms")

        return "\n".join(lines)

    def reset(self) -> None:
        """Reset all timing data."""
        self._timings.clear()
