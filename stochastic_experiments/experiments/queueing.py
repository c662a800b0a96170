"""Queueing experiments driven by :class:`ContinuousMarkovProcess`.

Both experiments observe a chain at a uniformly random time far from the
start, which approximates a draw from the stationary distribution.
"""

from typing import List

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..markov_process import ContinuousMarkovProcess
from ..theory import first_entry_survival, mmc_expected_wait, stationary_distribution
from ..transitions import MarkovQueueRates, MatrixTransitions


class MMCWaitParameters(BaseModel):
    """M/M/c queue observed by an arriving customer.

    Attributes:
        arrival_rate: Poisson arrival rate.
        service_rate: Per-server service rate.
        servers: Number of servers.
        min_run_time: Start of the observation window.
        max_run_time: End of the observation window.
        start_state: Customers present at time 0.
        sample_wait: Draw the Erlang waiting time instead of returning its
            conditional mean.
    """

    model_config = ConfigDict(frozen=True)

    arrival_rate: float = Field(default=1.2, gt=0)
    service_rate: float = Field(default=1.0, gt=0)
    servers: int = Field(default=2, ge=1)
    min_run_time: float = Field(default=50.0, ge=0)
    max_run_time: float = Field(default=100.0, gt=0)
    start_state: int = Field(default=0, ge=0)
    sample_wait: bool = False

    @model_validator(mode="after")
    def _check_window(self) -> "MMCWaitParameters":
        if self.max_run_time <= self.min_run_time:
            raise ValueError("max_run_time must exceed min_run_time")
        return self


def mmc_wait_experiment(parameters: MMCWaitParameters, rng: np.random.Generator) -> float:
    """Waiting time of a customer arriving at a random instant.

    By PASTA an arrival sees the queue length ``n`` at a random time. With
    ``c`` busy servers it waits for ``n - c + 1`` departures at rate
    ``c * mu``.
    """
    rates = MarkovQueueRates(parameters.arrival_rate, parameters.service_rate, parameters.servers)
    process = ContinuousMarkovProcess(rates, parameters.start_state)
    sample_time = rng.uniform(parameters.min_run_time, parameters.max_run_time)
    queue_length = process.run_until(sample_time, rng)

    departures_needed = queue_length - parameters.servers + 1
    if departures_needed <= 0:
        return 0.0
    departure_rate = parameters.servers * parameters.service_rate
    if parameters.sample_wait:
        return float(rng.gamma(departures_needed, 1.0 / departure_rate))
    return departures_needed / departure_rate


def mmc_wait_theory(parameters: MMCWaitParameters) -> float:
    """Erlang C mean waiting time."""
    return mmc_expected_wait(parameters.arrival_rate, parameters.service_rate, parameters.servers)


class RepairReturnParameters(BaseModel):
    """Machine alternating between two working modes and a two-stage repair.

    States: 0 and 1 are working modes failing at ``lambda1`` and
    ``lambda2``; 2 is the first repair stage and 3 the second, each
    finished at rate ``mu``. After repair the machine restarts in mode 0
    with probability ``p1``.

    Attributes:
        time: Threshold on the time until the machine next starts working.
    """

    model_config = ConfigDict(frozen=True)

    lambda1: float = Field(default=0.0916667, gt=0)
    lambda2: float = Field(default=0.916667, gt=0)
    p1: float = Field(default=0.5, ge=0, le=1)
    mu: float = Field(default=1.0, gt=0)
    min_run_time: float = Field(default=1000.0, ge=0)
    max_run_time: float = Field(default=2000.0, gt=0)
    time: float = Field(default=8.0, ge=0)

    @classmethod
    def from_p1(cls, p1: float, **kwargs) -> "RepairReturnParameters":
        """Failure rates derived from the mode-0 restart probability."""
        lambda1 = (1.0 + 9.0 * p1) / 60.0
        return cls(lambda1=lambda1, lambda2=10.0 * lambda1, p1=p1, **kwargs)

    @property
    def p2(self) -> float:
        return 1.0 - self.p1

    def generator(self) -> np.ndarray:
        """Generator matrix of the four-state chain."""
        l1, l2, mu = self.lambda1, self.lambda2, self.mu
        return np.array(
            [
                [-l1, 0.0, l1, 0.0],
                [0.0, -l2, l2, 0.0],
                [0.0, 0.0, -mu, mu],
                [mu * self.p1, mu * self.p2, 0.0, -mu],
            ]
        )


WORKING_STATES: List[int] = [0, 1]


def repair_return_experiment(parameters: RepairReturnParameters, rng: np.random.Generator) -> float:
    """Indicator that the next restart after a random instant is later than ``time``."""
    start_state = 0 if rng.random() < parameters.p1 else 1
    process = ContinuousMarkovProcess(MatrixTransitions(parameters.generator()), start_state)

    sample_time = rng.uniform(parameters.min_run_time, parameters.max_run_time)
    while process.time < sample_time:
        process.step(rng)
    while process.state not in WORKING_STATES:
        process.step(rng)

    return 1.0 if process.time - sample_time > parameters.time else 0.0


def repair_return_theory(parameters: RepairReturnParameters) -> float:
    """First-entry survival from the stationary distribution."""
    generator = parameters.generator()
    return first_entry_survival(
        generator, stationary_distribution(generator), WORKING_STATES, parameters.time
    )
