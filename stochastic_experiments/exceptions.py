"""Exceptions raised by the stochastic_experiments package.

Construction-time precondition failures (non-square generator matrices,
non-positive rates) are plain :class:`ValueError` instances raised by the
constructors themselves. The classes here cover the conditions callers may
want to catch by type.
"""

from typing import List


class StochasticExperimentsError(Exception):
    """Base class for package errors."""


class InvalidStateError(StochasticExperimentsError, ValueError):
    """A transition was requested from a state outside the model.

    Attributes:
        state: The offending state.
        max_state: Largest state the model accepts.
    """

    def __init__(self, state: int, max_state: int) -> None:
        self.state = state
        self.max_state = max_state
        super().__init__(f"Invalid state {state}. Maximum state is {max_state}")


class EmptySampleError(StochasticExperimentsError, ValueError):
    """Raised when averaging an empty collection of samples.

    A zero sample budget or a budget smaller than the worker count leaves
    nothing to average. There is no meaningful default mean, so this is
    treated as a caller error.
    """


class ConfigurationError(StochasticExperimentsError):
    """Raised when configuration validation finds critical issues.

    Attributes:
        issues: List of specific configuration problems found.

    Examples:
        Catching and inspecting issues::

            try:
                config.validate()
            except ConfigurationError as e:
                for issue in e.issues:
                    print(f"  - {issue}")
    """

    def __init__(self, issues: List[str]) -> None:
        self.issues = issues
        bullet_list = "\n".join(f"  - {issue}" for issue in issues)
        super().__init__(
            f"Configuration has {len(issues)} critical "
            f"{'issue' if len(issues) == 1 else 'issues'}:\n{bullet_list}"
        )
