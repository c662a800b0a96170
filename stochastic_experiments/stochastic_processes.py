"""Diffusion path generators.

This module provides Brownian motion, geometric Brownian motion and the
Ornstein-Uhlenbeck process as step-by-step path generators. Unlike the
Markov chain engine, time is advanced by a caller-chosen step ``dt``; the
random draws come from the generator passed to :meth:`DiffusionProcess.step`,
so a process can be driven by a worker's private stream.
"""

from abc import ABC, abstractmethod
import logging
import math

import numpy as np
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class DiffusionConfig(BaseModel):
    """Parameters shared by the diffusion processes.

    Attributes:
        start_value: Value of the process at time 0.
        drift: Drift parameter (alpha for GBM, unused by OU).
        volatility: Diffusion coefficient.
    """

    start_value: float = Field(default=0.0, description="Initial value")
    drift: float = Field(default=0.0, description="Drift rate")
    volatility: float = Field(default=1.0, ge=0, description="Volatility (standard deviation)")


class DiffusionProcess(ABC):
    """Abstract base class for diffusion path generators.

    Tracks the current value and elapsed time; concrete classes implement
    :meth:`_advance` with an exact transition over ``dt``.
    """

    def __init__(self, start_value: float = 0.0):
        """Initialize the process.

        Args:
            start_value: Value at time 0
        """
        self._value = float(start_value)
        self._time = 0.0
        logger.debug(f"Initialized {self.__class__.__name__} at {start_value}")

    @property
    def value(self) -> float:
        """Current value of the process."""
        return self._value

    @property
    def time(self) -> float:
        """Elapsed time."""
        return self._time

    @abstractmethod
    def _advance(self, dt: float, rng: np.random.Generator) -> float:
        """Return the value ``dt`` after the current one."""
        ...

    def step(self, dt: float, rng: np.random.Generator) -> float:
        """Advance the process by ``dt``.

        Args:
            dt: Time step, must be positive
            rng: Generator supplying the normal draws

        Returns:
            New value of the process

        Raises:
            ValueError: If ``dt`` is not positive
        """
        if not dt > 0:
            raise ValueError(f"Time step must be positive, got {dt}")
        self._value = self._advance(dt, rng)
        self._time += dt
        return self._value


class BrownianMotion(DiffusionProcess):
    """Standard Brownian motion ``W(t)`` with ``W(0) = start_value``."""

    def _advance(self, dt: float, rng: np.random.Generator) -> float:
        return self._value + float(rng.standard_normal()) * math.sqrt(dt)


class GeometricBrownianMotion(DiffusionProcess):
    """Geometric Brownian motion using the exact lognormal solution.

    dS = alpha*S*dt + sigma*S*dW, so that

    S(t) = S0 * exp((alpha - sigma^2/2)*t + sigma*W(t))

    The value is recomputed from the running Brownian motion at every step
    rather than multiplied up, which keeps rounding from accumulating over
    long paths.
    """

    def __init__(self, start_value: float, alpha: float, variance: float):
        """Initialize GBM.

        Args:
            start_value: S0, must be positive
            alpha: Drift of dS/S
            variance: sigma^2, must be non-negative
        """
        if start_value <= 0:
            raise ValueError(f"start_value must be positive, got {start_value}")
        if variance < 0:
            raise ValueError(f"variance must be non-negative, got {variance}")
        super().__init__(start_value)
        self.start_value = float(start_value)
        self.log_drift = alpha - 0.5 * variance
        self.std_dev = math.sqrt(variance)
        self._base_motion = BrownianMotion()

    def _advance(self, dt: float, rng: np.random.Generator) -> float:
        w = self._base_motion.step(dt, rng)
        t = self._time + dt
        return self.start_value * math.exp(self.log_drift * t + self.std_dev * w)


class OrnsteinUhlenbeckProcess(DiffusionProcess):
    """Ornstein-Uhlenbeck mean-reverting process.

    dX = kappa*(theta - X)*dt + sigma*dW

    Stepped with the exact Gaussian transition, so any ``dt`` is valid.
    """

    def __init__(self, x0: float, kappa: float, theta: float, sigma: float):
        """Initialize the OU process.

        Args:
            x0: Initial value
            kappa: Speed of mean reversion, must be positive
            theta: Long-run mean
            sigma: Volatility, must be non-negative
        """
        if kappa <= 0:
            raise ValueError(f"kappa must be positive, got {kappa}")
        if sigma < 0:
            raise ValueError(f"sigma must be non-negative, got {sigma}")
        super().__init__(x0)
        self.x0 = float(x0)
        self.kappa = kappa
        self.theta = theta
        self.sigma = sigma

    def _advance(self, dt: float, rng: np.random.Generator) -> float:
        decay = math.exp(-self.kappa * dt)
        variance = self.sigma**2 / (2 * self.kappa) * (1 - decay**2)
        mean = self.theta + (self._value - self.theta) * decay
        return mean + math.sqrt(variance) * float(rng.standard_normal())

    def theoretical_mean(self, t: float) -> float:
        """E[X(t)] given X(0) = x0."""
        return self.theta + (self.x0 - self.theta) * math.exp(-self.kappa * t)

    def theoretical_variance(self, t: float) -> float:
        """Var[X(t)] given X(0) = x0."""
        return self.sigma**2 / (2 * self.kappa) * (1 - math.exp(-2 * self.kappa * t))


def create_diffusion(process_type: str, config: DiffusionConfig, **kwargs) -> DiffusionProcess:
    """Factory function to create diffusion processes.

    Args:
        process_type: Type of process ("brownian", "gbm", "ornstein_uhlenbeck")
        config: Start value, drift and volatility
        **kwargs: Extra OU parameters ``kappa`` and ``theta``

    Returns:
        DiffusionProcess instance

    Raises:
        ValueError: If process_type is not recognized
    """
    process_type_lower = process_type.lower()
    if process_type_lower in ("brownian", "wiener"):
        process: DiffusionProcess = BrownianMotion(config.start_value)
    elif process_type_lower in ("gbm", "geometric_brownian"):
        process = GeometricBrownianMotion(
            config.start_value, config.drift, config.volatility**2
        )
    elif process_type_lower in ("ou", "ornstein_uhlenbeck", "mean_reverting"):
        process = OrnsteinUhlenbeckProcess(
            config.start_value,
            kwargs.get("kappa", 1.0),
            kwargs.get("theta", 0.0),
            config.volatility,
        )
    else:
        raise ValueError(
            f"Unknown process type: {process_type}. "
            "Choose from: ['brownian', 'gbm', 'ornstein_uhlenbeck']"
        )

    logger.info(f"Created {process.__class__.__name__} with volatility={config.volatility:.3f}")
    return process
