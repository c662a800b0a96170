"""Generic mean reduction over experiment samples.

A *sample* is whatever one trial returns: a float, a numpy scalar, or a
fixed-shape numpy array. Anything closed under ``+`` and division by a
float can be averaged with :func:`mean`.
"""

from typing import Any, Iterable, Protocol, TypeVar, runtime_checkable

import numpy as np

from .exceptions import EmptySampleError


@runtime_checkable
class Sample(Protocol):
    """Structural type of a reducible trial outcome."""

    def __add__(self, other: Any) -> Any:
        ...

    def __truediv__(self, other: float) -> Any:
        ...


S = TypeVar("S")


def mean(values: Iterable[S]) -> S:
    """Average samples in iteration order.

    Values are summed left to right, so the result is reproducible for a
    fixed ordering, and the sum is divided by the count.

    Args:
        values: Non-empty iterable of samples of one type.

    Returns:
        The mean sample.

    Raises:
        EmptySampleError: If ``values`` is empty.
        TypeError: If the first value does not support ``+`` and ``/``.
    """
    iterator = iter(values)
    try:
        total = next(iterator)
    except StopIteration:
        raise EmptySampleError("Cannot take the mean of zero samples") from None

    if not isinstance(total, Sample):
        raise TypeError(
            f"Samples must support addition and division by a float, "
            f"got {type(total).__name__}"
        )

    count = 1
    for value in iterator:
        total = total + value  # type: ignore[operator]
        count += 1
    return total / float(count)  # type: ignore[operator,no-any-return]


def is_finite_sample(value: Any) -> bool:
    """Whether every component of a sample is finite."""
    try:
        return bool(np.all(np.isfinite(value)))
    except TypeError:
        return True
