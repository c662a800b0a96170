"""Compare a Monte Carlo estimate against a closed-form prediction.

:func:`test_theory` is the entry point used by every experiment: it runs the
experiment in parallel, evaluates the theory function once, and returns both
values with the elapsed wall-clock time::

    result = test_theory(experiment, theory, parameters, 1_000_000, 8,
                         np.random.default_rng(4))
    theory_value, empirical = result.parts()
    print(result.summary())
"""

from dataclasses import dataclass
import logging
import time
from typing import Any, Callable, Generic, Tuple, TypeVar
import warnings

import numpy as np

from ._warnings import DataQualityWarning
from .config import HarnessConfig
from .parallel_executor import Backend, ExperimentRunner, RootRng
from .sample import is_finite_sample

logger = logging.getLogger(__name__)

S = TypeVar("S")
P = TypeVar("P")


@dataclass(frozen=True)
class TestTheoryResult(Generic[S]):
    """Theory and empirical mean of one harness run.

    Attributes:
        theory: Value returned by the theory function.
        empirical: Mean of the experiment's samples.
        elapsed: Wall-clock seconds for the whole run, theory included.
    """

    __test__ = False

    theory: S
    empirical: S
    elapsed: float

    def parts(self) -> Tuple[S, S]:
        """Return ``(theory, empirical)``."""
        return self.theory, self.empirical

    def ratio(self) -> Any:
        """Theory divided by the empirical mean (element-wise for arrays)."""
        with np.errstate(divide="ignore", invalid="ignore"):
            return np.divide(self.theory, self.empirical)

    def relative_error(self) -> Any:
        """``|empirical - theory| / |theory|`` (element-wise for arrays)."""
        theory = np.asarray(self.theory, dtype=float)
        empirical = np.asarray(self.empirical, dtype=float)
        with np.errstate(divide="ignore", invalid="ignore"):
            error = np.abs(empirical - theory) / np.abs(theory)
        return float(error) if error.ndim == 0 else error

    def summary(self) -> str:
        """Generate a short report of the run."""
        return (
            f"Theory vs Experiment\n"
            f"{'='*50}\n"
            f"Theory: {self.theory}\n"
            f"Empirical: {self.empirical}\n"
            f"Ratio: {self.ratio()}\n"
            f"Elapsed: {self.elapsed:.3f}s\n"
        )


def test_theory(
    experiment: Callable[[P, np.random.Generator], S],
    theory: Callable[[P], S],
    parameters: P,
    samples: int,
    workers: int,
    root_rng: RootRng,
    backend: Backend = "thread",
    progress_bar: bool = False,
) -> TestTheoryResult[S]:
    """Estimate an expectation by simulation and compare it with theory.

    Args:
        experiment: Trial function ``(parameters, rng) -> sample``.
        theory: Pure function ``parameters -> expected sample``, evaluated
            once on the calling thread.
        parameters: Parameters shared by experiment and theory.
        samples: Total trial budget; ``samples % workers`` trials are dropped.
        workers: Number of parallel workers.
        root_rng: Root generator (or seed) from which worker seeds are drawn.
        backend: ``"thread"`` or ``"process"`` worker pool.
        progress_bar: Show a tqdm bar while workers finish.

    Returns:
        TestTheoryResult with theory, empirical mean and elapsed seconds.

    Raises:
        EmptySampleError: If fewer samples than workers are requested.
    """
    start = time.perf_counter()
    with ExperimentRunner(
        n_workers=workers, backend=backend, progress_bar=progress_bar
    ) as runner:
        empirical = runner.run(experiment, parameters, samples, root_rng)
    theoretical = theory(parameters)
    elapsed = time.perf_counter() - start

    if not is_finite_sample(empirical):
        warnings.warn(
            f"Empirical mean of {getattr(experiment, '__name__', experiment)} is not finite: "
            f"{empirical}",
            DataQualityWarning,
            stacklevel=2,
        )

    logger.info(
        "Ran %d samples on %d workers in %.3fs",
        runner.performance_metrics.total_items,
        workers,
        elapsed,
    )
    return TestTheoryResult(theory=theoretical, empirical=empirical, elapsed=elapsed)


test_theory.__test__ = False  # type: ignore[attr-defined]


def run_from_config(
    experiment: Callable[[P, np.random.Generator], S],
    theory: Callable[[P], S],
    parameters: P,
    config: HarnessConfig,
) -> TestTheoryResult[S]:
    """Run :func:`test_theory` with settings from a :class:`HarnessConfig`.

    The configuration is validated first, so a sample budget smaller than
    the worker count fails before any work starts.
    """
    config.validate()
    return test_theory(
        experiment,
        theory,
        parameters,
        config.n_samples,
        config.resolved_workers(),
        config.root_rng(),
        backend=config.backend,
        progress_bar=config.progress_bar,
    )
