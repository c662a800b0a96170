"""Discrete-event queue simulators.

These simulate a multi-server queue event by event rather than through a
generator matrix, which allows non-exponential arrival and service times.
Inter-arrival and service distributions are passed as samplers: callables
taking a :class:`numpy.random.Generator` and returning a positive float,
e.g. ``lambda rng: rng.gamma(2.0, 0.5)``.
"""

from abc import ABC, abstractmethod
import heapq
import logging
import math
from typing import Callable, List, Optional

import numpy as np

logger = logging.getLogger(__name__)

Sampler = Callable[[np.random.Generator], float]


def exponential_sampler(rate: float) -> Sampler:
    """Sampler of exponential times with the given rate."""
    if rate <= 0:
        raise ValueError(f"rate must be positive, got {rate}")
    scale = 1.0 / rate
    return lambda rng: float(rng.exponential(scale))


def _check_units(num_units: Optional[int]) -> int:
    """Map ``None`` (unlimited servers) to 0 and reject an explicit 0."""
    if num_units is None:
        return 0
    if num_units == 0:
        raise ValueError(
            "A queue system must contain at least one service unit. Use `None` for infinite."
        )
    return num_units


class QueueSystem(ABC):
    """Common interface of the queue simulators."""

    @property
    @abstractmethod
    def time(self) -> float:
        """Current simulation time."""

    @property
    @abstractmethod
    def queue_length(self) -> int:
        """Customers in the system, in service or waiting."""

    @abstractmethod
    def step(self, rng: np.random.Generator) -> None:
        """Advance to the next event (arrival or departure)."""

    @abstractmethod
    def step_t(self, delta_t: float, rng: np.random.Generator) -> None:
        """Advance the clock by ``delta_t``, processing every event on the way."""

    @abstractmethod
    def add_arrival(self, rng: np.random.Generator) -> None:
        """Insert one extra customer at the current time."""

    @staticmethod
    def _check_delta(time: float, delta_t: float) -> None:
        if delta_t < 0:
            raise ValueError(
                f"Cannot step backwards in time. Current time: {time}, requested step: {delta_t}"
            )


class GeneralQueueSystem(QueueSystem):
    """G/G/c queue with arbitrary arrival and service samplers.

    Service completion times of customers in service are kept in a heap.
    """

    def __init__(
        self,
        num_units: Optional[int],
        arrival_sampler: Sampler,
        service_sampler: Sampler,
        start_length: int,
        rng: np.random.Generator,
    ):
        """Initialize the queue.

        Args:
            num_units: Number of servers, ``None`` for one per customer
            arrival_sampler: Inter-arrival time sampler
            service_sampler: Service time sampler
            start_length: Customers present at time 0
            rng: Generator for the initial draws
        """
        self.num_units = _check_units(num_units)
        self.arrival_sampler = arrival_sampler
        self.service_sampler = service_sampler
        self._length = start_length
        self._time = 0.0
        self._next_arrival_time = arrival_sampler(rng)
        self._departures: List[float] = []
        self._fill_servers(rng)
        logger.debug(
            f"Initialized GeneralQueueSystem with {num_units or 'unlimited'} units, "
            f"{start_length} customers"
        )

    @property
    def time(self) -> float:
        return self._time

    @property
    def queue_length(self) -> int:
        return self._length

    def _fill_servers(self, rng: np.random.Generator) -> None:
        """Start service for waiting customers while a server is free."""
        busy_limit = self._length if self.num_units == 0 else min(self._length, self.num_units)
        while len(self._departures) < busy_limit:
            heapq.heappush(self._departures, self._time + self.service_sampler(rng))

    def step(self, rng: np.random.Generator) -> None:
        if self._departures and self._departures[0] < self._next_arrival_time:
            self._time = heapq.heappop(self._departures)
            self._length -= 1
            self._fill_servers(rng)
        else:
            self._time = self._next_arrival_time
            self._next_arrival_time = self._time + self.arrival_sampler(rng)
            self._length += 1
            self._fill_servers(rng)

    def step_t(self, delta_t: float, rng: np.random.Generator) -> None:
        self._check_delta(self._time, delta_t)
        target = self._time + delta_t
        while True:
            next_departure = self._departures[0] if self._departures else math.inf
            next_event = min(next_departure, self._next_arrival_time)
            if next_event > target:
                break
            self.step(rng)
        self._time = target

    def add_arrival(self, rng: np.random.Generator) -> None:
        self._length += 1
        self._fill_servers(rng)


class MarkovServiceQueueSystem(QueueSystem):
    """G/M/c queue: general arrivals, exponential services.

    Only the next departure time is tracked. With ``n`` busy servers the
    time to the next departure is exponential with rate ``n * service_rate``,
    and when a server becomes busy the pending departure time is rescaled
    instead of redrawn.
    """

    def __init__(
        self,
        num_units: Optional[int],
        arrival_sampler: Sampler,
        service_rate: float,
        start_length: int,
        rng: np.random.Generator,
    ):
        """Initialize the queue.

        Args:
            num_units: Number of servers, ``None`` for one per customer
            arrival_sampler: Inter-arrival time sampler
            service_rate: Per-server exponential service rate
            start_length: Customers present at time 0
            rng: Generator for the initial draws
        """
        if service_rate <= 0:
            raise ValueError(f"service_rate must be positive, got {service_rate}")
        self.num_units = _check_units(num_units)
        self.arrival_sampler = arrival_sampler
        self.service_rate = service_rate
        self._length = start_length
        self._time = 0.0
        self._next_arrival_time = arrival_sampler(rng)
        if start_length > 0:
            self._next_service_time = float(
                rng.exponential(1.0 / (self._busy_units(start_length) * service_rate))
            )
        else:
            self._next_service_time = math.inf
        logger.debug(
            f"Initialized MarkovServiceQueueSystem with {num_units or 'unlimited'} units, "
            f"service_rate={service_rate}"
        )

    @property
    def time(self) -> float:
        return self._time

    @property
    def queue_length(self) -> int:
        return self._length

    def _busy_units(self, length: int) -> int:
        return length if self.num_units == 0 else min(length, self.num_units)

    def _depart(self, rng: np.random.Generator) -> None:
        self._length -= 1
        if self._length > 0:
            rate = self.service_rate * self._busy_units(self._length)
            self._next_service_time += float(rng.exponential(1.0 / rate))
        else:
            self._next_service_time = math.inf

    def _arrive(self, rng: np.random.Generator) -> None:
        self._next_arrival_time += self.arrival_sampler(rng)
        self.add_arrival(rng)

    def step(self, rng: np.random.Generator) -> None:
        if self._next_service_time < self._next_arrival_time:
            self._time = self._next_service_time
            self._depart(rng)
        else:
            self._time = self._next_arrival_time
            self._arrive(rng)

    def step_t(self, delta_t: float, rng: np.random.Generator) -> None:
        self._check_delta(self._time, delta_t)
        target = self._time + delta_t
        while min(self._next_arrival_time, self._next_service_time) <= target:
            self.step(rng)
        self._time = target

    def add_arrival(self, rng: np.random.Generator) -> None:
        if self._length == 0:
            self._next_service_time = self._time + float(rng.exponential(1.0 / self.service_rate))
        elif self.num_units == 0 or self._length < self.num_units:
            busy = self._busy_units(self._length)
            remaining = self._next_service_time - self._time
            self._next_service_time = self._time + remaining * busy / (busy + 1)
        self._length += 1
