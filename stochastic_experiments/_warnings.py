"""Custom warning classes for the stochastic_experiments package.

These warning classes allow users to programmatically filter, suppress,
or capture warnings using Python's standard ``warnings`` module.

Example:
    Silence configuration warnings in a batch of runs::

        import warnings
        from stochastic_experiments._warnings import ConfigurationWarning

        warnings.filterwarnings("ignore", category=ConfigurationWarning)

    Capture data-quality warnings raised by the harness::

        with warnings.catch_warnings(record=True) as w:
            warnings.simplefilter("always", DataQualityWarning)
            # ... run experiment ...
            bad_runs = [x for x in w if issubclass(x.category, DataQualityWarning)]
"""


class StochasticExperimentsWarning(UserWarning):
    """Base class for all stochastic_experiments warnings."""


class ConfigurationWarning(StochasticExperimentsWarning):
    """Unusual but legal harness configuration.

    Raised during config validation, e.g. when more workers are requested
    than there are logical CPUs, or when the sample budget does not divide
    evenly across workers and the remainder will be dropped.
    """


class DataQualityWarning(StochasticExperimentsWarning):
    """Runtime data-quality observations.

    Raised when an experiment produces a non-finite empirical mean, which
    usually means a trial returned ``inf`` or ``nan``.
    """
