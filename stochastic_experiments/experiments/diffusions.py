"""Boundary-crossing experiments on discretized diffusions.

Paths are simulated on a fixed grid, so a crossing between grid points is
missed and the estimates sit slightly below their continuous-time values.
A smaller ``step_size`` shrinks the gap at a proportional cost in time.
"""

import math

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from ..stochastic_processes import GeometricBrownianMotion
from ..theory import brownian_crossing_probability, gbm_hitting_probability

_BLOCK = 1024


class CrossingParameters(BaseModel):
    """Brownian motion against the line ``intercept + slope * t``.

    Attributes:
        give_up_gap: Paths this far below the line are counted as never
            crossing.
    """

    model_config = ConfigDict(frozen=True)

    intercept: float = Field(default=1.0, gt=0)
    slope: float = Field(default=1.0, gt=0)
    step_size: float = Field(default=1e-3, gt=0)
    give_up_gap: float = Field(default=5.0, gt=0)


def brownian_crossing_experiment(parameters: CrossingParameters, rng: np.random.Generator) -> float:
    """Indicator that a standard Brownian path crosses the line.

    Increments are drawn in blocks; the first grid point above the line or
    at least ``give_up_gap`` below it decides the trial.
    """
    dt = parameters.step_size
    scale = math.sqrt(dt)
    position = 0.0
    steps_done = 0
    while True:
        path = position + np.cumsum(rng.standard_normal(_BLOCK) * scale)
        times = (steps_done + np.arange(1, _BLOCK + 1)) * dt
        gap = parameters.intercept + parameters.slope * times - path

        crossed = np.flatnonzero(gap < 0)
        gave_up = np.flatnonzero(gap >= parameters.give_up_gap)
        first_cross = crossed[0] if crossed.size else _BLOCK
        first_give_up = gave_up[0] if gave_up.size else _BLOCK
        if first_cross < first_give_up:
            return 1.0
        if first_give_up < _BLOCK:
            return 0.0

        position = float(path[-1])
        steps_done += _BLOCK


def brownian_crossing_theory(parameters: CrossingParameters) -> float:
    return brownian_crossing_probability(parameters.intercept, parameters.slope)


class DoublingParameters(BaseModel):
    """GBM watched until it doubles or the clock runs out.

    Attributes:
        alpha: Drift of ``dS / S``.
        std_dev: Volatility ``sigma``.
        stop_time: Paths that have not doubled by this time count as failures.
    """

    model_config = ConfigDict(frozen=True)

    start_value: float = Field(default=1.0, gt=0)
    alpha: float = Field(default=0.0)
    std_dev: float = Field(default=1.0, gt=0)
    level_ratio: float = Field(default=2.0, gt=1)
    step_size: float = Field(default=0.01, gt=0)
    stop_time: float = Field(default=20.0, gt=0)


def gbm_doubling_experiment(parameters: DoublingParameters, rng: np.random.Generator) -> float:
    """Indicator that the GBM reaches ``level_ratio`` times its start."""
    process = GeometricBrownianMotion(
        parameters.start_value, parameters.alpha, parameters.std_dev**2
    )
    level = parameters.level_ratio * parameters.start_value
    while process.time < parameters.stop_time:
        if process.step(parameters.step_size, rng) >= level:
            return 1.0
    return 0.0


def gbm_doubling_theory(parameters: DoublingParameters) -> float:
    """Infinite-horizon hitting probability; an upper bound for finite ``stop_time``."""
    return gbm_hitting_probability(parameters.alpha, parameters.std_dev**2, parameters.level_ratio)
