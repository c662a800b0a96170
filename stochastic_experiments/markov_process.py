"""Continuous-time Markov process driver.

:class:`ContinuousMarkovProcess` steps any
:class:`~stochastic_experiments.transitions.ContinuousMarkovTransitions`
model forward one jump at a time, accumulating elapsed time and latching an
absorbed flag once the model reports that no further transition exists.

Experiments typically loop until a time horizon::

    process = ContinuousMarkovProcess(MarkovQueueRates(1.2, 1.0, 2), start_state=0)
    while process.time < horizon:
        process.step(rng)

Such loops only terminate on absorbing chains if the caller also checks
:attr:`ContinuousMarkovProcess.is_absorbed`; :meth:`ContinuousMarkovProcess.run_until`
does both.
"""

import logging
from typing import Generic, TypeVar

import numpy as np

from .transitions import ContinuousMarkovTransitions

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=ContinuousMarkovTransitions)


class ContinuousMarkovProcess(Generic[M]):
    """Mutable simulation state of one continuous-time Markov chain.

    The process starts at ``start_state`` at time 0 and is only changed by
    :meth:`step`. After absorption, state and time are frozen.

    Attributes:
        transitions: Transition model owned by this process.
    """

    def __init__(self, transitions: M, start_state: int = 0):
        """Initialize the process.

        Args:
            transitions: Transition model. The process takes ownership of it.
            start_state: Initial non-negative discrete state.

        Raises:
            ValueError: If ``start_state`` is negative.
        """
        if start_state < 0:
            raise ValueError(f"start_state must be non-negative, got {start_state}")
        self.transitions = transitions
        self._state = int(start_state)
        self._time = 0.0
        self._absorbed = False

    @property
    def state(self) -> int:
        """Current discrete state."""
        return self._state

    @property
    def time(self) -> float:
        """Time elapsed since the start of the process."""
        return self._time

    @property
    def is_absorbed(self) -> bool:
        """Whether the process has reached a state with no way out."""
        return self._absorbed

    def step(self, rng: np.random.Generator) -> None:
        """Perform one jump, or latch absorption if none is possible.

        Args:
            rng: Generator supplying the random draws.
        """
        if self._absorbed:
            return
        transition = self.transitions.next_transition(self._state, rng)
        if transition is None:
            self._absorbed = True
            logger.debug(f"Process absorbed in state {self._state} at t={self._time:.4f}")
            return
        next_state, holding_time = transition
        self._state = next_state
        self._time += holding_time

    def run_until(self, horizon: float, rng: np.random.Generator) -> int:
        """Step until the clock passes ``horizon`` or the chain absorbs.

        Args:
            horizon: Time at which to observe the process.
            rng: Generator supplying the random draws.

        Returns:
            State occupied at ``horizon``: the state held just before the
            jump that crossed it, or the absorbing state.
        """
        observed = self._state
        while self._time < horizon and not self._absorbed:
            observed = self._state
            self.step(rng)
        if self._absorbed:
            return self._state
        return observed

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(state={self._state}, time={self._time:.6g}, "
            f"absorbed={self._absorbed})"
        )
