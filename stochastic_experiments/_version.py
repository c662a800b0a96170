"""Version information for stochastic_experiments."""

__version__ = "0.3.0"
