"""Bundled theory/experiment pairs.

Each entry of :data:`EXPERIMENTS` names an experiment function, the theory
function that predicts its mean, and the pydantic model holding their
parameters. The CLI runs entries by name::

    stochastic-experiments run mmc_wait --samples 1000000 --workers 8
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Type

import numpy as np
from pydantic import BaseModel

from .chains import (
    FailureChainParameters,
    OccupancyParameters,
    ctmc_occupancy_experiment,
    ctmc_occupancy_theory,
    failure_chain_experiment,
    failure_chain_theory,
)
from .diffusions import (
    CrossingParameters,
    DoublingParameters,
    brownian_crossing_experiment,
    brownian_crossing_theory,
    gbm_doubling_experiment,
    gbm_doubling_theory,
)
from .queueing import (
    MMCWaitParameters,
    RepairReturnParameters,
    mmc_wait_experiment,
    mmc_wait_theory,
    repair_return_experiment,
    repair_return_theory,
)


@dataclass(frozen=True)
class ExperimentSpec:
    """One registered experiment.

    Attributes:
        experiment: Trial function ``(parameters, rng) -> sample``.
        theory: Prediction of the mean sample.
        parameters_cls: Pydantic model of the parameters; its defaults are
            the standard case.
        description: One-line summary shown by ``list``.
    """

    experiment: Callable[[Any, np.random.Generator], Any]
    theory: Callable[[Any], Any]
    parameters_cls: Type[BaseModel]
    description: str

    def parameters(self, **overrides: Any) -> BaseModel:
        """Build validated parameters from the defaults and ``overrides``."""
        return self.parameters_cls(**overrides)


EXPERIMENTS: Dict[str, ExperimentSpec] = {
    "mmc_wait": ExperimentSpec(
        mmc_wait_experiment,
        mmc_wait_theory,
        MMCWaitParameters,
        "Mean wait in an M/M/c queue against Erlang C",
    ),
    "repair_return": ExperimentSpec(
        repair_return_experiment,
        repair_return_theory,
        RepairReturnParameters,
        "Time until a repaired machine restarts, four-state chain",
    ),
    "ctmc_occupancy": ExperimentSpec(
        ctmc_occupancy_experiment,
        ctmc_occupancy_theory,
        OccupancyParameters,
        "Time-average occupancy against the stationary distribution",
    ),
    "failure_chain": ExperimentSpec(
        failure_chain_experiment,
        failure_chain_theory,
        FailureChainParameters,
        "Failed component count after a number of days",
    ),
    "brownian_crossing": ExperimentSpec(
        brownian_crossing_experiment,
        brownian_crossing_theory,
        CrossingParameters,
        "Brownian motion crossing a rising line",
    ),
    "gbm_doubling": ExperimentSpec(
        gbm_doubling_experiment,
        gbm_doubling_theory,
        DoublingParameters,
        "Geometric Brownian motion reaching twice its start",
    ),
}


def get_experiment(name: str) -> ExperimentSpec:
    """Look up a registered experiment.

    Raises:
        KeyError: If ``name`` is not registered.
    """
    try:
        return EXPERIMENTS[name]
    except KeyError:
        raise KeyError(
            f"Unknown experiment: {name}. Choose from: {sorted(EXPERIMENTS)}"
        ) from None


__all__ = [
    "EXPERIMENTS",
    "ExperimentSpec",
    "get_experiment",
    "CrossingParameters",
    "DoublingParameters",
    "FailureChainParameters",
    "MMCWaitParameters",
    "OccupancyParameters",
    "RepairReturnParameters",
]
