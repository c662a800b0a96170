"""Tests for the discrete-event queue simulators."""

import numpy as np
import pytest

from stochastic_experiments.queue_system import (
    GeneralQueueSystem,
    MarkovServiceQueueSystem,
    exponential_sampler,
)


def _long_run_mean_length(queue, rng, horizon=10_000.0, dt=1.0):
    """Average queue length sampled on a regular grid after a burn-in."""
    queue.step_t(200.0, rng)
    lengths = []
    for _ in range(int(horizon / dt)):
        queue.step_t(dt, rng)
        lengths.append(queue.queue_length)
    return float(np.mean(lengths))


def test_exponential_sampler(rng):
    sampler = exponential_sampler(4.0)
    draws = [sampler(rng) for _ in range(20_000)]
    assert np.mean(draws) == pytest.approx(0.25, rel=0.03)


def test_exponential_sampler_invalid():
    with pytest.raises(ValueError):
        exponential_sampler(0.0)


@pytest.mark.parametrize("queue_cls", [GeneralQueueSystem, MarkovServiceQueueSystem])
def test_zero_units_rejected(queue_cls, rng):
    service = exponential_sampler(1.0) if queue_cls is GeneralQueueSystem else 1.0
    with pytest.raises(ValueError, match="at least one service unit"):
        queue_cls(0, exponential_sampler(1.0), service, 0, rng)


class TestGeneralQueueSystem:
    """Test the G/G/c simulator."""

    def test_step_moves_time_forward(self, rng):
        queue = GeneralQueueSystem(2, exponential_sampler(1.0), exponential_sampler(1.0), 0, rng)
        previous = 0.0
        for _ in range(100):
            queue.step(rng)
            assert queue.time >= previous
            assert queue.queue_length >= 0
            previous = queue.time

    def test_step_t_lands_on_target(self, rng):
        queue = GeneralQueueSystem(1, exponential_sampler(1.0), exponential_sampler(2.0), 3, rng)
        queue.step_t(2.5, rng)
        assert queue.time == 2.5

    def test_negative_step(self, rng):
        queue = GeneralQueueSystem(1, exponential_sampler(1.0), exponential_sampler(2.0), 0, rng)
        with pytest.raises(ValueError, match="backwards"):
            queue.step_t(-1.0, rng)

    def test_add_arrival(self, rng):
        queue = GeneralQueueSystem(1, exponential_sampler(1.0), exponential_sampler(2.0), 0, rng)
        queue.add_arrival(rng)
        assert queue.queue_length == 1

    def test_mm1_mean_length(self, rng):
        """M/M/1 with rho = 0.5 holds rho / (1 - rho) = 1 customer on average."""
        queue = GeneralQueueSystem(1, exponential_sampler(1.0), exponential_sampler(2.0), 0, rng)
        assert _long_run_mean_length(queue, rng) == pytest.approx(1.0, rel=0.15)

    def test_unlimited_servers(self, rng):
        """M/M/inf holds lambda / mu customers on average."""
        queue = GeneralQueueSystem(None, exponential_sampler(3.0), exponential_sampler(1.0), 0, rng)
        assert _long_run_mean_length(queue, rng) == pytest.approx(3.0, rel=0.1)


class TestMarkovServiceQueueSystem:
    """Test the G/M/c simulator."""

    def test_empty_start_has_no_departure(self, rng):
        queue = MarkovServiceQueueSystem(1, exponential_sampler(1.0), 2.0, 0, rng)
        queue.step(rng)
        assert queue.queue_length == 1

    def test_invalid_service_rate(self, rng):
        with pytest.raises(ValueError):
            MarkovServiceQueueSystem(1, exponential_sampler(1.0), 0.0, 0, rng)

    def test_step_t_lands_on_target(self, rng):
        queue = MarkovServiceQueueSystem(2, exponential_sampler(1.0), 1.0, 2, rng)
        queue.step_t(4.0, rng)
        assert queue.time == 4.0
        assert queue.queue_length >= 0

    def test_add_arrival_when_idle(self, rng):
        queue = MarkovServiceQueueSystem(2, exponential_sampler(0.001), 1.0, 0, rng)
        queue.add_arrival(rng)
        assert queue.queue_length == 1
        queue.step(rng)
        assert queue.queue_length == 0

    def test_mm2_mean_length(self, rng):
        """M/M/2 with lambda = 1.2, mu = 1: L = L_q + lambda / mu = 0.675 + 1.2."""
        queue = MarkovServiceQueueSystem(2, exponential_sampler(1.2), 1.0, 0, rng)
        assert _long_run_mean_length(queue, rng, horizon=20_000.0) == pytest.approx(1.875, rel=0.15)

    def test_matches_general_simulator(self, rng):
        """Both simulators agree on an M/M/3 queue."""
        markov = MarkovServiceQueueSystem(3, exponential_sampler(2.0), 1.0, 0, rng)
        general = GeneralQueueSystem(3, exponential_sampler(2.0), exponential_sampler(1.0), 0, rng)
        assert _long_run_mean_length(markov, rng) == pytest.approx(
            _long_run_mean_length(general, rng), rel=0.15
        )
