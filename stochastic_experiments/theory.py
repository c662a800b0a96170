"""Closed-form and linear-algebra predictions for the bundled experiments.

These functions are the ``theory`` half of a theory/experiment pair. They
are deterministic and cheap compared to the simulations they check.
"""

import logging
import math
from typing import Iterable, Sequence, Union

import numpy as np
from scipy import linalg

logger = logging.getLogger(__name__)

MatrixLike = Union[np.ndarray, Sequence[Sequence[float]]]


def _check_mmc(arrival_rate: float, service_rate: float, servers: int) -> None:
    if arrival_rate <= 0 or service_rate <= 0:
        raise ValueError("arrival_rate and service_rate must be positive")
    if servers < 1:
        raise ValueError(f"servers must be at least 1, got {servers}")
    if arrival_rate >= servers * service_rate:
        raise ValueError(
            f"Queue is unstable: arrival_rate {arrival_rate} >= "
            f"servers * service_rate {servers * service_rate}"
        )


def erlang_c(arrival_rate: float, service_rate: float, servers: int) -> float:
    """Probability that an arriving customer has to wait in an M/M/c queue.

    Args:
        arrival_rate: Poisson arrival rate (lambda).
        service_rate: Per-server service rate (mu).
        servers: Number of servers (c).

    Returns:
        Erlang C probability.

    Raises:
        ValueError: If the queue is not stable (``lambda >= c * mu``).
    """
    _check_mmc(arrival_rate, service_rate, servers)
    offered_load = arrival_rate / service_rate
    rho = offered_load / servers

    # a^k / k! accumulated iteratively to stay finite for large c
    term = 1.0
    partial_sum = 0.0
    for k in range(servers):
        partial_sum += term
        term *= offered_load / (k + 1)
    waiting_term = term / (1.0 - rho)
    return waiting_term / (partial_sum + waiting_term)


def mmc_expected_wait(arrival_rate: float, service_rate: float, servers: int) -> float:
    """Mean time an arriving customer spends waiting before service (W_q)."""
    probability_wait = erlang_c(arrival_rate, service_rate, servers)
    return probability_wait / (servers * service_rate - arrival_rate)


def mmc_expected_queue_length(arrival_rate: float, service_rate: float, servers: int) -> float:
    """Mean number of customers waiting (L_q = lambda * W_q)."""
    return arrival_rate * mmc_expected_wait(arrival_rate, service_rate, servers)


def stationary_distribution(generator: MatrixLike) -> np.ndarray:
    """Stationary distribution of an irreducible continuous-time chain.

    Solves ``pi Q = 0`` together with ``sum(pi) = 1`` in the least-squares
    sense.

    Args:
        generator: Square generator matrix (rows sum to zero).

    Returns:
        Probability vector ``pi``.
    """
    q = np.asarray(generator, dtype=float)
    if q.ndim != 2 or q.shape[0] != q.shape[1]:
        raise ValueError(f"Generator must be square, got shape {q.shape}")
    n = q.shape[0]
    system = np.vstack([q.T, np.ones(n)])
    rhs = np.zeros(n + 1)
    rhs[-1] = 1.0
    pi, *_ = linalg.lstsq(system, rhs)
    pi = np.clip(pi, 0.0, None)
    pi = pi / pi.sum()
    logger.debug(f"Stationary distribution residual {float(np.abs(pi @ q).max()):.2e}")
    return pi


def transient_distribution(generator: MatrixLike, start_state: int, t: float) -> np.ndarray:
    """State distribution at time ``t`` starting from ``start_state``.

    Computes ``p0 expm(Q t)``.
    """
    q = np.asarray(generator, dtype=float)
    p0 = np.zeros(q.shape[0])
    p0[start_state] = 1.0
    return p0 @ linalg.expm(q * t)


def discrete_transient_distribution(
    transition_matrix: MatrixLike, start_state: int, steps: int
) -> np.ndarray:
    """Distribution of a discrete-time chain after ``steps`` steps."""
    p = np.asarray(transition_matrix, dtype=float)
    distribution = np.zeros(p.shape[0])
    distribution[start_state] = 1.0
    for _ in range(steps):
        distribution = distribution @ p
    return distribution


def first_entry_survival(
    generator: MatrixLike,
    initial: Sequence[float],
    targets: Iterable[int],
    t: float,
) -> float:
    """Probability that no jump into ``targets`` happens within ``t``.

    Starting inside the target set does not count as an entry; only a jump
    that lands in the set does. Jumps into the set are redirected to an
    extra absorbing state and its mass at ``t`` is read off with
    ``expm``.

    Args:
        generator: Generator of the chain.
        initial: Initial distribution over the chain's states.
        targets: States whose entry is being timed.
        t: Time horizon.

    Returns:
        ``P(T > t)`` for the first-entry time ``T``.
    """
    q = np.asarray(generator, dtype=float)
    n = q.shape[0]
    target_set = sorted(set(targets))

    augmented = np.zeros((n + 1, n + 1))
    augmented[:n, :n] = q
    for j in target_set:
        redirected = q[:, j].copy()
        redirected[j] = 0.0
        augmented[:n, n] += redirected
        augmented[:n, j] -= redirected
    p0 = np.append(np.asarray(initial, dtype=float), 0.0)
    distribution = p0 @ linalg.expm(augmented * t)
    return float(1.0 - distribution[n])


def brownian_crossing_probability(intercept: float, slope: float) -> float:
    """Probability that standard Brownian motion ever crosses ``a + b t``.

    Valid for ``a > 0`` and ``b > 0``: ``exp(-2 a b)``.
    """
    if intercept <= 0 or slope <= 0:
        raise ValueError("intercept and slope must be positive")
    return math.exp(-2.0 * intercept * slope)


def gbm_hitting_probability(alpha: float, variance: float, level_ratio: float = 2.0) -> float:
    """Probability that a GBM ever reaches ``level_ratio`` times its start.

    The log of ``S`` is a Brownian motion with drift
    ``nu = alpha - variance / 2``. It reaches ``ln(level_ratio)`` with
    certainty when ``nu >= 0``, otherwise with probability
    ``level_ratio ** (2 nu / variance)``.

    Args:
        alpha: Drift of ``dS / S``.
        variance: Squared volatility.
        level_ratio: Target level relative to the start value, above 1.
    """
    if variance <= 0:
        raise ValueError(f"variance must be positive, got {variance}")
    if level_ratio <= 1:
        raise ValueError(f"level_ratio must exceed 1, got {level_ratio}")
    nu = alpha - 0.5 * variance
    if nu >= 0:
        return 1.0
    return level_ratio ** (2.0 * nu / variance)
