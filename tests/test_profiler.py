"""Unit tests for stage timing."""

import pytest

from patchwork_gp.utils import Profiler, Timer


class TestProfiler:
    def test_timer_measures_elapsed_time(self):
        with Timer("block") as timer:
            sum(range(1000))

        assert timer.elapsed_ms >= 0.0

    def test_stats(self):
        profiler = Profiler()
        for elapsed in [1.0, 2.0, 3.0]:
            profiler.record("predict/schur", elapsed)

        stats = profiler.get_stats("predict/schur")

        assert stats.n_calls == 3
        assert stats.mean_ms == pytest.approx(2.0)
        assert stats.total_ms == pytest.approx(6.0)
        assert profiler.get_stats("missing") is None

    def test_keeps_most_recent_samples(self):
        profiler = Profiler(max_samples=3)
        for elapsed in range(10):
            profiler.record("fit/models", float(elapsed))

        stats = profiler.get_stats("fit/models")

        assert stats.n_calls == 3
        assert stats.min_ms == 7.0

    def test_reset(self):
        profiler = Profiler()
        with profiler.time("predict/route"):
            pass

        profiler.reset()

        assert profiler.get_all_stats() == {}
        assert "No timing data recorded" in profiler.report()

    def test_invalid_max_samples(self):
        with pytest.raises(ValueError):
            Profiler(max_samples=0)
