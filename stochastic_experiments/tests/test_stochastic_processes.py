"""Tests for the diffusion path generators."""

import math

import numpy as np
import pytest

from stochastic_experiments.stochastic_processes import (
    BrownianMotion,
    DiffusionConfig,
    GeometricBrownianMotion,
    OrnsteinUhlenbeckProcess,
    create_diffusion,
)


class TestBrownianMotion:
    """Test standard Brownian motion."""

    def test_step_updates_time(self, rng):
        motion = BrownianMotion(1.0)
        motion.step(0.5, rng)
        motion.step(0.25, rng)
        assert motion.time == pytest.approx(0.75)

    @pytest.mark.parametrize("dt", [0.0, -1.0])
    def test_invalid_step(self, rng, dt):
        with pytest.raises(ValueError):
            BrownianMotion().step(dt, rng)

    def test_terminal_distribution(self, rng):
        """W(1) built from 10 steps is N(0, 1)."""
        finals = []
        for _ in range(5000):
            motion = BrownianMotion()
            for _ in range(10):
                motion.step(0.1, rng)
            finals.append(motion.value)
        assert np.mean(finals) == pytest.approx(0.0, abs=0.05)
        assert np.var(finals) == pytest.approx(1.0, rel=0.06)


class TestGeometricBrownianMotion:
    """Test GBM."""

    def test_invalid_construction(self):
        with pytest.raises(ValueError):
            GeometricBrownianMotion(0.0, 0.1, 0.04)
        with pytest.raises(ValueError):
            GeometricBrownianMotion(1.0, 0.1, -0.04)

    def test_deterministic_without_volatility(self, rng):
        process = GeometricBrownianMotion(2.0, 0.1, 0.0)
        for _ in range(10):
            process.step(0.1, rng)
        assert process.value == pytest.approx(2.0 * math.exp(0.1))

    def test_positive(self, rng):
        process = GeometricBrownianMotion(1.0, -0.5, 4.0)
        for _ in range(100):
            assert process.step(0.1, rng) > 0

    def test_mean(self, rng):
        """E[S(t)] = S0 exp(alpha t)."""
        finals = []
        for _ in range(4000):
            process = GeometricBrownianMotion(1.0, 0.2, 0.04)
            process.step(1.0, rng)
            finals.append(process.value)
        assert np.mean(finals) == pytest.approx(math.exp(0.2), rel=0.02)


class TestOrnsteinUhlenbeck:
    """Test the mean-reverting process."""

    def test_invalid_construction(self):
        with pytest.raises(ValueError):
            OrnsteinUhlenbeckProcess(0.0, 0.0, 0.0, 1.0)
        with pytest.raises(ValueError):
            OrnsteinUhlenbeckProcess(0.0, 1.0, 0.0, -1.0)

    def test_theoretical_moments(self):
        process = OrnsteinUhlenbeckProcess(2.0, 0.5, 1.0, 0.3)
        assert process.theoretical_mean(0.0) == pytest.approx(2.0)
        assert process.theoretical_mean(100.0) == pytest.approx(1.0)
        assert process.theoretical_variance(100.0) == pytest.approx(0.09)

    def test_empirical_moments(self, rng):
        t = 1.5
        finals = []
        for _ in range(5000):
            process = OrnsteinUhlenbeckProcess(2.0, 0.5, 1.0, 0.3)
            for _ in range(3):
                process.step(0.5, rng)
            finals.append(process.value)
        reference = OrnsteinUhlenbeckProcess(2.0, 0.5, 1.0, 0.3)
        assert np.mean(finals) == pytest.approx(reference.theoretical_mean(t), abs=0.01)
        assert np.var(finals) == pytest.approx(reference.theoretical_variance(t), rel=0.07)


class TestFactory:
    """Test create_diffusion."""

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("brownian", BrownianMotion),
            ("Wiener", BrownianMotion),
            ("gbm", GeometricBrownianMotion),
            ("ou", OrnsteinUhlenbeckProcess),
            ("mean_reverting", OrnsteinUhlenbeckProcess),
        ],
    )
    def test_create(self, name, expected):
        config = DiffusionConfig(start_value=1.0, drift=0.05, volatility=0.2)
        assert isinstance(create_diffusion(name, config), expected)

    def test_ou_kwargs(self):
        process = create_diffusion("ou", DiffusionConfig(), kappa=2.0, theta=3.0)
        assert process.kappa == 2.0
        assert process.theta == 3.0

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown process type"):
            create_diffusion("levy", DiffusionConfig())
