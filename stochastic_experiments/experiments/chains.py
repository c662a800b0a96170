"""Experiments on generator-matrix and discrete-time chains."""

from typing import List

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator
from scipy import stats

from ..markov_process import ContinuousMarkovProcess
from ..theory import discrete_transient_distribution, stationary_distribution
from ..transitions import MatrixTransitions

DEFAULT_GENERATOR: List[List[float]] = [
    [-1.0, 0.5, 0.5, 0.0],
    [0.25, -0.75, 0.25, 0.25],
    [0.0, 1.0, -2.0, 1.0],
    [0.5, 0.0, 0.5, -1.0],
]


class OccupancyParameters(BaseModel):
    """Chain whose long-run occupancy is measured.

    Attributes:
        generator: Generator matrix, rows summing to zero.
        start_state: State at time 0.
        horizon: Length of each observed path.
    """

    model_config = ConfigDict(frozen=True)

    generator: List[List[float]] = Field(default_factory=lambda: [row[:] for row in DEFAULT_GENERATOR])
    start_state: int = Field(default=0, ge=0)
    horizon: float = Field(default=200.0, gt=0)

    @field_validator("generator")
    @classmethod
    def _check_square(cls, value: List[List[float]]) -> List[List[float]]:
        if not value or any(len(row) != len(value) for row in value):
            raise ValueError("generator must be a non-empty square matrix")
        return value


def ctmc_occupancy_experiment(parameters: OccupancyParameters, rng: np.random.Generator) -> np.ndarray:
    """Fraction of ``[0, horizon]`` spent in each state along one path.

    An absorbing state holds the path until the horizon.
    """
    transitions = MatrixTransitions(parameters.generator)
    process = ContinuousMarkovProcess(transitions, parameters.start_state)
    horizon = parameters.horizon
    occupancy = np.zeros(transitions.n_states)

    while process.time < horizon and not process.is_absorbed:
        state, entered = process.state, process.time
        process.step(rng)
        left = horizon if process.is_absorbed else min(process.time, horizon)
        occupancy[state] += left - entered

    return occupancy / horizon


def ctmc_occupancy_theory(parameters: OccupancyParameters) -> np.ndarray:
    return stationary_distribution(parameters.generator)


class FailureChainParameters(BaseModel):
    """Daily count of failed components.

    Each day every failed component is repaired with probability ``p`` and
    new failures arrive as Poisson(``mu * (1 - p)``). Once ``capacity``
    components are down the system stops and the count is frozen.

    Attributes:
        mu: Mean failures per day before repair.
        p: Same-day repair probability.
        capacity: Count at which the system stops.
        start_state: Failed components on day 0.
        days: Number of days simulated.
        target: Count whose probability on the final day is estimated.
    """

    model_config = ConfigDict(frozen=True)

    mu: float = Field(default=4.0, gt=0)
    p: float = Field(default=0.5, ge=0, le=1)
    capacity: int = Field(default=10, ge=1)
    start_state: int = Field(default=0, ge=0)
    days: int = Field(default=10, ge=0)
    target: int = Field(default=4, ge=0)

    def transition_matrix(self) -> np.ndarray:
        """One-day transition matrix on ``0..capacity``.

        Moving from ``k`` to ``l`` failures means ``h`` of the ``k`` stay
        broken and ``l - h`` new failures arrive, summed over ``h``.
        """
        a = self.capacity
        kept = 1.0 - self.p
        new_failures = stats.poisson.pmf(np.arange(a), self.mu * kept)
        matrix = np.zeros((a + 1, a + 1))
        for k in range(a):
            still_broken = stats.binom.pmf(np.arange(k + 1), k, kept)
            for l in range(a):
                h = np.arange(min(k, l) + 1)
                matrix[k, l] = float(np.sum(still_broken[h] * new_failures[l - h]))
            matrix[k, a] = max(0.0, 1.0 - matrix[k, :a].sum())
        matrix[a, a] = 1.0
        return matrix


def failure_chain_experiment(parameters: FailureChainParameters, rng: np.random.Generator) -> float:
    """Indicator that the failure count equals ``target`` after ``days`` days."""
    state = parameters.start_state
    kept = 1.0 - parameters.p
    for _ in range(parameters.days):
        if state >= parameters.capacity:
            break
        state = int(rng.poisson(parameters.mu * kept)) + int(rng.binomial(state, kept))
    state = min(state, parameters.capacity)
    return 1.0 if state == parameters.target else 0.0


def failure_chain_theory(parameters: FailureChainParameters) -> float:
    start = min(parameters.start_state, parameters.capacity)
    distribution = discrete_transient_distribution(
        parameters.transition_matrix(), start, parameters.days
    )
    if parameters.target > parameters.capacity:
        return 0.0
    return float(distribution[parameters.target])
