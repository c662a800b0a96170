"""Parallel execution engine for Monte Carlo experiments.

An experiment is a function ``experiment(parameters, rng) -> sample`` that
runs one randomized trial. :class:`ExperimentRunner` fans a fixed trial
budget out over a pool of workers and averages the results.

Reproducibility comes from the seeding scheme: one 64-bit seed per worker
is drawn from the caller's root generator on the calling thread, before any
work is submitted. Each worker then builds its own PCG64 generator from its
seed, so the same root seed, worker count and sample budget always give the
same samples in the same order, whatever the thread scheduling.

Example:
    >>> import numpy as np
    >>> from stochastic_experiments.parallel_executor import ExperimentRunner
    >>> def coin(parameters, rng):
    ...     return float(rng.random() < parameters["p"])
    >>> runner = ExperimentRunner(n_workers=4)
    >>> estimate = runner.run(coin, {"p": 0.3}, 10_000, np.random.default_rng(0))
"""

from concurrent.futures import (
    Executor,
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    as_completed,
)
from dataclasses import dataclass
import logging
import time
from typing import Any, Callable, List, Literal, Optional, TypeVar, Union

import numpy as np
import psutil
from tqdm import tqdm

from .sample import mean

logger = logging.getLogger(__name__)

S = TypeVar("S")
P = TypeVar("P")
Experiment = Callable[[Any, np.random.Generator], Any]
RootRng = Union[np.random.Generator, int, None]
Backend = Literal["thread", "process"]

_SEED_BOUND = 2**64


@dataclass
class PerformanceMetrics:
    """Performance metrics for one parallel run."""

    total_time: float = 0.0
    seeding_time: float = 0.0
    computation_time: float = 0.0
    reduction_time: float = 0.0
    memory_peak: int = 0
    items_per_second: float = 0.0
    total_items: int = 0
    dropped_items: int = 0
    n_workers: int = 0

    def summary(self) -> str:
        """Generate performance summary.

        Returns:
            str: Formatted performance summary
        """
        lines = [
            f"Performance Summary\n",
            f"{'='*50}\n",
            f"Total Time: {self.total_time:.2f}s\n",
            f"Seeding: {self.seeding_time:.4f}s\n",
            f"Computation: {self.computation_time:.2f}s\n",
            f"Reduction: {self.reduction_time:.2f}s\n",
            f"Workers: {self.n_workers}\n",
            f"Peak Memory: {self.memory_peak / 1024**2:.1f} MB\n",
            f"Throughput: {self.items_per_second:.0f} trials/s\n",
        ]

        if self.dropped_items > 0:
            lines.append(
                f"Dropped Trials: {self.dropped_items}/{self.total_items + self.dropped_items}\n"
            )

        return "".join(lines)


def draw_worker_seeds(root_rng: np.random.Generator, n_workers: int) -> List[int]:
    """Draw one 64-bit seed per worker from the root generator.

    Must be called on a single thread before any worker starts: this is the
    only step that consumes the root generator.

    Args:
        root_rng: Root generator; advanced by ``n_workers`` draws.
        n_workers: Number of seeds to draw.

    Returns:
        List[int]: Seeds in worker order.
    """
    seeds = root_rng.integers(0, _SEED_BOUND, size=n_workers, dtype=np.uint64)
    return [int(seed) for seed in seeds]


def _run_worker(experiment: Experiment, parameters: Any, seed: int, n_trials: int) -> List[Any]:
    """Run ``n_trials`` trials on a private generator (runs in a worker).

    Module-level so the process backend can pickle it.

    Args:
        experiment: Trial function
        parameters: Read-only experiment parameters
        seed: Seed of this worker's generator
        n_trials: Number of trials to run

    Returns:
        List[Any]: One sample per trial, in trial order.
    """
    rng = np.random.default_rng(seed)
    return [experiment(parameters, rng) for _ in range(n_trials)]


class ExperimentRunner:
    """Parallel runner for Monte Carlo experiments.

    Splits a trial budget evenly across workers (integer division: up to
    ``n_workers - 1`` trials are dropped), seeds each worker from the root
    generator and averages all samples.

    The thread backend shares ``parameters`` between workers, which must
    therefore treat them as read-only. The process backend pickles the
    experiment and its parameters, so both must be module-level objects.

    Used as a context manager, the runner keeps one worker pool alive across
    runs and shuts it down on exit. Outside a ``with`` block every run
    starts and stops its own pool.
    """

    def __init__(
        self,
        n_workers: Optional[int] = None,
        backend: Backend = "thread",
        progress_bar: bool = False,
        monitor_performance: bool = True,
    ):
        """Initialize the runner.

        Args:
            n_workers: Number of parallel workers (None for the logical CPU count)
            backend: ``"thread"`` or ``"process"``
            progress_bar: Show a progress bar over finished workers
            monitor_performance: Record memory usage after each run
        """
        if n_workers is None:
            n_workers = psutil.cpu_count(logical=True) or 1
        if backend not in ("thread", "process"):
            raise ValueError(f"Unknown backend: {backend}. Choose from: ['thread', 'process']")
        self.n_workers = n_workers
        self.backend = backend
        self.progress_bar = progress_bar
        self.monitor_performance = monitor_performance
        self.performance_metrics = PerformanceMetrics()
        self._executor: Optional[Executor] = None
        self._keep_executor = False

    def run(
        self,
        experiment: Callable[[P, np.random.Generator], S],
        parameters: P,
        n_samples: int,
        root_rng: RootRng = None,
    ) -> S:
        """Run the experiment and return the mean sample.

        Args:
            experiment: Trial function ``(parameters, rng) -> sample``
            parameters: Experiment parameters shared by every trial
            n_samples: Total trial budget
            root_rng: Root generator (or seed) used only to draw worker seeds

        Returns:
            Mean of all samples.

        Raises:
            EmptySampleError: If no trial runs (``n_samples < n_workers``).
            ZeroDivisionError: If the runner has zero workers.
        """
        samples = self.run_samples(experiment, parameters, n_samples, root_rng)

        reduce_start = time.perf_counter()
        result = mean(samples)
        self.performance_metrics.reduction_time = time.perf_counter() - reduce_start
        self.performance_metrics.total_time += self.performance_metrics.reduction_time
        return result

    def run_samples(
        self,
        experiment: Callable[[P, np.random.Generator], S],
        parameters: P,
        n_samples: int,
        root_rng: RootRng = None,
    ) -> List[S]:
        """Run the experiment and return every sample.

        Samples are flattened in worker order, each worker's samples in the
        order they were drawn.

        Args:
            experiment: Trial function ``(parameters, rng) -> sample``
            parameters: Experiment parameters shared by every trial
            n_samples: Total trial budget
            root_rng: Root generator (or seed) used only to draw worker seeds

        Returns:
            List of ``(n_samples // n_workers) * n_workers`` samples.
        """
        start_time = time.perf_counter()
        self.performance_metrics = PerformanceMetrics(n_workers=self.n_workers)

        n_per_worker = n_samples // self.n_workers
        dropped = n_samples - n_per_worker * self.n_workers
        if dropped:
            logger.warning(
                "Dropping %d of %d samples: budget is not divisible by %d workers",
                dropped,
                n_samples,
                self.n_workers,
            )

        seeding_start = time.perf_counter()
        seeds = draw_worker_seeds(np.random.default_rng(root_rng), self.n_workers)
        self.performance_metrics.seeding_time = time.perf_counter() - seeding_start

        logger.debug(
            f"Running {n_per_worker} trials on each of {self.n_workers} "
            f"{self.backend} workers"
        )

        comp_start = time.perf_counter()
        worker_results = self._execute_parallel(experiment, parameters, seeds, n_per_worker)
        self.performance_metrics.computation_time = time.perf_counter() - comp_start

        samples: List[S] = []
        for chunk in worker_results:
            samples.extend(chunk)

        self.performance_metrics.total_items = len(samples)
        self.performance_metrics.dropped_items = dropped
        self.performance_metrics.total_time = time.perf_counter() - start_time
        if self.performance_metrics.total_time > 0:
            self.performance_metrics.items_per_second = (
                len(samples) / self.performance_metrics.total_time
            )

        if self.monitor_performance:
            self._update_memory_metrics()

        return samples

    def _create_executor(self) -> Executor:
        if self.backend == "process":
            return ProcessPoolExecutor(max_workers=self.n_workers)
        return ThreadPoolExecutor(max_workers=self.n_workers, thread_name_prefix="experiment")

    def _execute_parallel(
        self,
        experiment: Experiment,
        parameters: Any,
        seeds: List[int],
        n_per_worker: int,
    ) -> List[List[Any]]:
        """Execute every worker and collect results in seed order.

        Args:
            experiment: Trial function
            parameters: Shared parameters
            seeds: One seed per worker
            n_per_worker: Trials per worker

        Returns:
            List[List[Any]]: Samples of each worker, in seed order.
        """
        if self._executor is not None:
            return self._collect(self._executor, experiment, parameters, seeds, n_per_worker)

        executor = self._create_executor()
        if self._keep_executor:
            self._executor = executor
            return self._collect(executor, experiment, parameters, seeds, n_per_worker)

        with executor:
            return self._collect(executor, experiment, parameters, seeds, n_per_worker)

    def _collect(
        self,
        executor: Executor,
        experiment: Experiment,
        parameters: Any,
        seeds: List[int],
        n_per_worker: int,
    ) -> List[List[Any]]:
        futures: List[Future] = [
            executor.submit(_run_worker, experiment, parameters, seed, n_per_worker)
            for seed in seeds
        ]

        if self.progress_bar:
            pbar = tqdm(total=len(futures), desc="Running workers")
            for _ in as_completed(futures):
                pbar.update(1)
            pbar.close()

        # Ordered collection keeps the reduction independent of scheduling
        return [future.result() for future in futures]

    def _update_memory_metrics(self):
        """Update memory usage metrics."""
        mem_info = psutil.Process().memory_info()
        self.performance_metrics.memory_peak = max(
            self.performance_metrics.memory_peak, mem_info.rss
        )

    def get_performance_report(self) -> str:
        """Get performance report.

        Returns:
            str: Formatted performance report
        """
        return self.performance_metrics.summary()

    def shutdown(self):
        """Shut down the kept worker pool, if any."""
        if self._executor is not None:
            logger.debug("Shutting down %s worker pool", self.backend)
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self):
        """Context manager entry; the first run starts a pool that is kept."""
        self._keep_executor = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit; shuts the kept pool down."""
        self._keep_executor = False
        self.shutdown()


def run_experiment(
    experiment: Callable[[P, np.random.Generator], S],
    parameters: P,
    n_samples: int,
    n_workers: int,
    root_rng: RootRng = None,
    backend: Backend = "thread",
    progress_bar: bool = False,
) -> S:
    """Run an experiment in parallel and return its mean sample.

    Args:
        experiment: Trial function ``(parameters, rng) -> sample``
        parameters: Experiment parameters
        n_samples: Total trial budget
        n_workers: Number of workers
        root_rng: Root generator (or seed) used to draw worker seeds
        backend: ``"thread"`` or ``"process"``
        progress_bar: Show progress bar

    Returns:
        Mean sample.
    """
    with ExperimentRunner(
        n_workers=n_workers, backend=backend, progress_bar=progress_bar
    ) as runner:
        return runner.run(experiment, parameters, n_samples, root_rng)
