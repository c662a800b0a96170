"""Transition models for continuous-time Markov chains.

A transition model answers one question: given the current discrete state,
how long until the next jump and where does it go? Two families are
provided:

* Birth/death models, which only move to ``state + 1`` or ``state - 1`` and
  describe the chain through a ``(birth_rate, death_rate)`` pair per state.
  :class:`MarkovQueueRates` is the M/M/c queue instance.
* :class:`MatrixTransitions`, which takes a full generator matrix and
  precomputes per-row cumulative jump probabilities once at construction.

Both expose :meth:`ContinuousMarkovTransitions.next_transition`, which
returns ``None`` when the chain has no outgoing transition (absorption).
New models plug into :class:`~stochastic_experiments.markov_process.ContinuousMarkovProcess`
by implementing that single method.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
import math
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from .exceptions import InvalidStateError

logger = logging.getLogger(__name__)

Transition = Tuple[int, float]
MatrixLike = Union[np.ndarray, Sequence[Sequence[float]]]


class ContinuousMarkovTransitions(ABC):
    """Abstract transition capability of a continuous-time Markov chain."""

    @abstractmethod
    def next_transition(self, from_state: int, rng: np.random.Generator) -> Optional[Transition]:
        """Draw the next jump out of ``from_state``.

        Args:
            from_state: Current discrete state.
            rng: Generator supplying the random draws.

        Returns:
            ``(next_state, holding_time)``, or ``None`` if ``from_state`` has
            no outgoing transition.
        """
        ...


class BirthDeathTransitions(ContinuousMarkovTransitions):
    """Base class for birth/death chains.

    Subclasses only describe rates through :meth:`probability_tuple`; the
    sampling step is shared. The holding time is drawn first, then a single
    uniform decides between birth and death, so a given generator state
    always produces the same jump.
    """

    @abstractmethod
    def probability_tuple(self, from_state: int) -> Tuple[float, float]:
        """Return ``(birth_rate, death_rate)`` for ``from_state``."""
        ...

    def next_transition(self, from_state: int, rng: np.random.Generator) -> Optional[Transition]:
        """Draw the next birth or death.

        Never returns ``None``: birth/death models have no built-in
        absorption.

        Raises:
            ValueError: If both rates are zero at ``from_state``.
        """
        birth_rate, death_rate = self.probability_tuple(from_state)
        total_rate = birth_rate + death_rate
        if not total_rate > 0:
            raise ValueError(
                f"State {from_state} has total rate {total_rate}; "
                "birth/death models need a positive rate in every reachable state"
            )

        holding_time = float(rng.exponential(1.0 / total_rate))
        if rng.random() < birth_rate / total_rate:
            next_state = from_state + 1
        else:
            next_state = from_state - 1
        return next_state, holding_time


@dataclass(frozen=True)
class MarkovQueueRates(BirthDeathTransitions):
    """Birth/death rates of an M/M/c queue with an unbounded waiting room.

    Customers arrive at ``arrival_rate``; each of the ``num_units`` servers
    completes work at ``service_rate``, so the death rate in state ``n`` is
    ``service_rate * min(n, num_units)``.

    Attributes:
        arrival_rate: Poisson arrival rate (lambda).
        service_rate: Per-server exponential service rate (mu).
        num_units: Number of servers (c).
    """

    arrival_rate: float
    service_rate: float
    num_units: int = 1

    def __post_init__(self):
        """Validate rates and server count.

        Raises:
            ValueError: If a rate is not a positive finite number or there
                are no servers.
        """
        if not (math.isfinite(self.arrival_rate) and self.arrival_rate > 0):
            raise ValueError(f"arrival_rate must be positive, got {self.arrival_rate}")
        if not (math.isfinite(self.service_rate) and self.service_rate > 0):
            raise ValueError(f"service_rate must be positive, got {self.service_rate}")
        if self.num_units < 1:
            raise ValueError(
                f"num_units must be at least 1, got {self.num_units}. "
                "A queue needs at least one service unit."
            )

    @property
    def traffic_intensity(self) -> float:
        """Server utilisation ``lambda / (c * mu)``."""
        return self.arrival_rate / (self.num_units * self.service_rate)

    def probability_tuple(self, from_state: int) -> Tuple[float, float]:
        birth_rate = self.arrival_rate
        death_rate = self.service_rate * min(from_state, self.num_units)
        return birth_rate, death_rate


class MatrixTransitions(ContinuousMarkovTransitions):
    """Transitions driven by a full generator matrix.

    Off-diagonal entry ``(i, j)`` is the jump rate from ``i`` to ``j``; the
    diagonal is read as the negated total outgoing rate of the row. At
    construction every row with a non-zero total rate is turned into a row
    of cumulative jump probabilities (diagonal zeroed, row divided by its
    total rate, running sum). Rows whose total rate is exactly zero are kept
    as-is and mark absorbing states.

    State ``n_states`` is accepted as a terminal sentinel and always absorbs;
    anything larger raises :class:`~stochastic_experiments.exceptions.InvalidStateError`.

    Example:
        Two-state chain that leaves state 0 at rate 2 and never leaves 1::

            transitions = MatrixTransitions([[-2.0, 2.0], [0.0, 0.0]])
            transitions.next_transition(1, rng)  # None
    """

    def __init__(self, transitions: MatrixLike):
        """Precompute total rates and cumulative rows.

        Args:
            transitions: Square generator matrix. It is copied, never
                modified in place.

        Raises:
            ValueError: If the matrix is not two-dimensional and square,
                contains non-finite entries, a positive diagonal or a
                negative off-diagonal rate.
        """
        matrix = np.array(transitions, dtype=np.float64)
        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
            raise ValueError(f"Transition matrix must be square, got shape {matrix.shape}")
        if not np.all(np.isfinite(matrix)):
            raise ValueError("Transition matrix must contain only finite rates")

        total_rates = -np.diag(matrix).copy()
        for k, total_rate in enumerate(total_rates):
            off_diagonal = np.delete(matrix[k], k)
            if np.any(off_diagonal < 0):
                raise ValueError(
                    f"Row {k} has a negative jump rate {float(off_diagonal.min())}"
                )
            if total_rate < 0:
                raise ValueError(
                    f"Row {k} has positive diagonal {-total_rate}; "
                    "the diagonal must be the negated total outgoing rate"
                )

        cumulative_rows = matrix
        for k, total_rate in enumerate(total_rates):
            if total_rate == 0.0:
                continue
            row = cumulative_rows[k]
            row[k] = 0.0
            row /= total_rate
            cumulative_rows[k] = np.cumsum(row)

        self._total_rates = total_rates
        self._cumulative_rows = cumulative_rows
        self._total_rates.setflags(write=False)
        self._cumulative_rows.setflags(write=False)

        logger.debug(
            f"Initialized MatrixTransitions with {self.n_states} states, "
            f"{int(np.sum(total_rates == 0.0))} absorbing"
        )

    @classmethod
    def from_rates(cls, rates: MatrixLike) -> "MatrixTransitions":
        """Build from off-diagonal rates, deriving the diagonal.

        Args:
            rates: Square matrix of jump rates; its diagonal is ignored.

        Returns:
            MatrixTransitions whose generator diagonal is the negated row sum.
        """
        matrix = np.array(rates, dtype=np.float64)
        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
            raise ValueError(f"Transition matrix must be square, got shape {matrix.shape}")
        np.fill_diagonal(matrix, 0.0)
        np.fill_diagonal(matrix, -matrix.sum(axis=1))
        return cls(matrix)

    @property
    def n_states(self) -> int:
        """Number of regular states (the terminal sentinel is ``n_states``)."""
        return len(self._total_rates)

    @property
    def total_rates(self) -> np.ndarray:
        """Total outgoing rate of every state (read-only view)."""
        return self._total_rates

    @property
    def cumulative_rows(self) -> np.ndarray:
        """Cumulative jump probabilities per row (read-only view)."""
        return self._cumulative_rows

    @property
    def generator(self) -> np.ndarray:
        """Reconstruct the generator matrix from the precomputed rows.

        Absorbing rows were never transformed and are returned as given.
        """
        n = self.n_states
        generator = np.zeros((n, n))
        for k in range(n):
            total_rate = self._total_rates[k]
            if total_rate == 0.0:
                generator[k] = self._cumulative_rows[k]
                continue
            probabilities = np.diff(self._cumulative_rows[k], prepend=0.0)
            generator[k] = probabilities * total_rate
            generator[k, k] = -total_rate
        return generator

    def is_absorbing(self, state: int) -> bool:
        """Whether ``state`` has no outgoing transition."""
        self._check_state(state)
        return state == self.n_states or self._total_rates[state] == 0.0

    def _check_state(self, state: int) -> None:
        if state < 0 or state > self.n_states:
            raise InvalidStateError(state, self.n_states)

    def next_transition(self, from_state: int, rng: np.random.Generator) -> Optional[Transition]:
        """Draw the next jump using the precomputed cumulative row.

        The next state is the first column whose cumulative probability is
        strictly greater than a uniform draw. If rounding leaves the row
        total just below the draw, the last column is used.

        Raises:
            InvalidStateError: If ``from_state`` exceeds ``n_states``.
        """
        self._check_state(from_state)
        if from_state == self.n_states:
            return None
        total_rate = self._total_rates[from_state]
        if total_rate == 0.0:
            return None

        holding_time = float(rng.exponential(1.0 / total_rate))
        draw = rng.random()
        cumulative = self._cumulative_rows[from_state]
        above = cumulative > draw
        if above.any():
            next_state = int(np.argmax(above))
        else:
            next_state = self.n_states - 1
        return next_state, holding_time

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(n_states={self.n_states})"
