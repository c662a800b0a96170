"""Stochastic Experiments"""

from ._version import __version__

# Use lazy imports so `import stochastic_experiments` stays cheap
# Modules are imported only when one of their names is accessed

__all__ = [
    "__version__",
    "BirthDeathTransitions",
    "ContinuousMarkovProcess",
    "ContinuousMarkovTransitions",
    "EmptySampleError",
    "ExperimentRunner",
    "HarnessConfig",
    "InvalidStateError",
    "MarkovQueueRates",
    "MatrixTransitions",
    "TestTheoryResult",
    "mean",
    "run_experiment",
    "setup_logging",
    "test_theory",
]


def __getattr__(name):
    """Lazy import modules on first attribute access."""
    if name in [
        "BirthDeathTransitions",
        "ContinuousMarkovTransitions",
        "MarkovQueueRates",
        "MatrixTransitions",
    ]:
        from .transitions import (
            BirthDeathTransitions,
            ContinuousMarkovTransitions,
            MarkovQueueRates,
            MatrixTransitions,
        )

        return locals()[name]
    elif name == "ContinuousMarkovProcess":
        from .markov_process import ContinuousMarkovProcess

        return ContinuousMarkovProcess
    elif name == "EmptySampleError" or name == "InvalidStateError":
        from .exceptions import EmptySampleError, InvalidStateError

        return locals()[name]
    elif name == "ExperimentRunner" or name == "run_experiment":
        from .parallel_executor import ExperimentRunner, run_experiment

        return locals()[name]
    elif name == "HarnessConfig" or name == "setup_logging":
        from .config import HarnessConfig, setup_logging

        return locals()[name]
    elif name == "TestTheoryResult" or name == "test_theory":
        from .harness import TestTheoryResult, test_theory

        return locals()[name]
    elif name == "mean":
        from .sample import mean

        return mean
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
