"""Tests for the parallel experiment runner.

Covers budget splitting, deterministic seeding and both worker backends.
"""

import logging
import threading

import numpy as np
import pytest

from stochastic_experiments.exceptions import EmptySampleError
from stochastic_experiments.parallel_executor import (
    ExperimentRunner,
    PerformanceMetrics,
    draw_worker_seeds,
    run_experiment,
)


# Module-level experiments for pickling
def _uniform_experiment(parameters, rng):
    """One uniform draw scaled by the parameter."""
    return parameters * rng.random()


def _vector_experiment(parameters, rng):
    """Indicator vector of a draw below each threshold."""
    draw = rng.random()
    return np.array([float(draw < p) for p in parameters])


class _Counter:
    """Thread-safe trial counter used as experiment parameters."""

    def __init__(self):
        self.count = 0
        self._lock = threading.Lock()

    def increment(self):
        with self._lock:
            self.count += 1


def _counting_experiment(counter, rng):
    counter.increment()
    return 1.0


class TestBudgetSplitting:
    """Test how the sample budget is divided across workers."""

    def test_divisible_budget(self):
        counter = _Counter()
        runner = ExperimentRunner(n_workers=4)
        result = runner.run(_counting_experiment, counter, 100, np.random.default_rng(0))

        assert result == 1.0
        assert counter.count == 100
        assert runner.performance_metrics.total_items == 100
        assert runner.performance_metrics.dropped_items == 0

    def test_remainder_is_dropped(self, caplog):
        """101 samples on 4 workers run 100 trials and log the drop."""
        counter = _Counter()
        runner = ExperimentRunner(n_workers=4)
        with caplog.at_level(logging.WARNING, logger="stochastic_experiments"):
            runner.run(_counting_experiment, counter, 101, np.random.default_rng(0))

        assert counter.count == 100
        assert runner.performance_metrics.dropped_items == 1
        assert "Dropping 1 of 101 samples" in caplog.text

    def test_fewer_samples_than_workers(self):
        with pytest.raises(EmptySampleError):
            ExperimentRunner(n_workers=4).run(
                _uniform_experiment, 1.0, 3, np.random.default_rng(0)
            )

    def test_zero_samples(self):
        with pytest.raises(EmptySampleError):
            run_experiment(_uniform_experiment, 1.0, 0, 2, np.random.default_rng(0))

    def test_zero_workers(self):
        with pytest.raises(ZeroDivisionError):
            run_experiment(_uniform_experiment, 1.0, 10, 0, np.random.default_rng(0))

    def test_run_samples_length(self):
        samples = ExperimentRunner(n_workers=3).run_samples(
            _uniform_experiment, 1.0, 10, np.random.default_rng(0)
        )
        assert len(samples) == 9


class TestSeeding:
    """Test reproducibility of parallel runs."""

    def test_draw_worker_seeds(self):
        seeds = draw_worker_seeds(np.random.default_rng(4), 8)

        assert len(seeds) == 8
        assert all(0 <= seed < 2**64 for seed in seeds)
        assert seeds == draw_worker_seeds(np.random.default_rng(4), 8)

    def test_same_seed_bit_identical(self):
        first = run_experiment(_uniform_experiment, 1.0, 10_000, 8, np.random.default_rng(4))
        second = run_experiment(_uniform_experiment, 1.0, 10_000, 8, np.random.default_rng(4))
        assert first == second

    def test_integer_root_seed(self):
        first = run_experiment(_uniform_experiment, 1.0, 1000, 4, 11)
        second = run_experiment(_uniform_experiment, 1.0, 1000, 4, np.random.default_rng(11))
        assert first == second

    def test_different_seed_differs(self):
        first = run_experiment(_uniform_experiment, 1.0, 1000, 4, np.random.default_rng(1))
        second = run_experiment(_uniform_experiment, 1.0, 1000, 4, np.random.default_rng(2))
        assert first != second

    def test_root_generator_is_advanced(self):
        """Only the worker seeds are drawn from the root generator."""
        root = np.random.default_rng(3)
        expected = np.random.default_rng(3)
        draw_worker_seeds(expected, 4)

        run_experiment(_uniform_experiment, 1.0, 40, 4, root)
        assert root.random() == expected.random()

    def test_workers_use_seeded_streams(self):
        """Samples equal the concatenated draws of each seeded worker."""
        seeds = draw_worker_seeds(np.random.default_rng(5), 2)
        expected = []
        for seed in seeds:
            worker_rng = np.random.default_rng(seed)
            expected.extend(worker_rng.random() for _ in range(3))

        samples = ExperimentRunner(n_workers=2).run_samples(
            _uniform_experiment, 1.0, 6, np.random.default_rng(5)
        )
        assert samples == expected


class TestExperimentRunner:
    """Test runner behaviour."""

    def test_mean_estimate(self):
        result = run_experiment(_uniform_experiment, 2.0, 20_000, 4, np.random.default_rng(0))
        assert result == pytest.approx(1.0, abs=0.03)

    def test_vector_samples(self):
        result = run_experiment(
            _vector_experiment, (0.25, 0.75), 20_000, 4, np.random.default_rng(0)
        )
        np.testing.assert_allclose(result, [0.25, 0.75], atol=0.02)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown backend"):
            ExperimentRunner(n_workers=2, backend="gpu")

    def test_default_workers(self):
        assert ExperimentRunner().n_workers >= 1

    def test_progress_bar(self):
        result = run_experiment(
            _uniform_experiment, 1.0, 100, 2, np.random.default_rng(0), progress_bar=True
        )
        assert 0.0 <= result <= 1.0

    def test_experiment_error_propagates(self):
        def failing(parameters, rng):
            raise RuntimeError("trial failed")

        with pytest.raises(RuntimeError, match="trial failed"):
            run_experiment(failing, None, 10, 2, np.random.default_rng(0))

    def test_process_backend_matches_threads(self):
        threaded = run_experiment(_uniform_experiment, 1.0, 400, 2, np.random.default_rng(9))
        processes = run_experiment(
            _uniform_experiment, 1.0, 400, 2, np.random.default_rng(9), backend="process"
        )
        assert processes == threaded

    def test_performance_report(self):
        runner = ExperimentRunner(n_workers=2)
        runner.run(_uniform_experiment, 1.0, 1001, np.random.default_rng(0))
        report = runner.get_performance_report()

        assert "Performance Summary" in report
        assert "Dropped Trials: 1/1001" in report
        assert runner.performance_metrics.memory_peak > 0

    def test_context_manager_keeps_one_pool(self):
        """Inside ``with`` runs share a pool that is shut down on exit."""
        expected = run_experiment(_uniform_experiment, 1.0, 400, 2, np.random.default_rng(9))

        with ExperimentRunner(n_workers=2) as runner:
            assert runner._executor is None
            first = runner.run(_uniform_experiment, 1.0, 400, np.random.default_rng(9))
            pool = runner._executor
            assert pool is not None
            second = runner.run(_uniform_experiment, 1.0, 400, np.random.default_rng(9))
            assert runner._executor is pool

        assert first == second == expected
        assert runner._executor is None
        with pytest.raises(RuntimeError):
            pool.submit(_uniform_experiment, 1.0, np.random.default_rng(0))

    def test_pool_not_kept_outside_context(self):
        runner = ExperimentRunner(n_workers=2)
        runner.run(_uniform_experiment, 1.0, 10, np.random.default_rng(0))
        assert runner._executor is None

    def test_context_manager_zero_workers(self):
        with ExperimentRunner(n_workers=0) as runner:
            with pytest.raises(ZeroDivisionError):
                runner.run(_uniform_experiment, 1.0, 10, np.random.default_rng(0))


def test_performance_metrics_defaults():
    metrics = PerformanceMetrics()
    assert metrics.total_items == 0
    assert "Dropped" not in metrics.summary()
