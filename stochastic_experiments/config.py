"""Configuration models for harness runs.

Uses Pydantic v2 models for validation and PyYAML for file loading, so a
run can be described in a small YAML file::

    n_samples: 1000000
    n_workers: 8
    seed: 4
    logging:
      level: DEBUG

and loaded with :meth:`HarnessConfig.from_yaml`.
"""

import logging
from pathlib import Path
import sys
from typing import Any, Dict, List, Literal, Optional
import warnings

import numpy as np
from pydantic import BaseModel, Field
import psutil
import yaml

from ._warnings import ConfigurationWarning
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "stochastic_experiments"


class LoggingConfig(BaseModel):
    """Logging configuration.

    Controls logging behavior including level, output destinations,
    and message formatting.
    """

    enabled: bool = Field(default=True, description="Enable logging")
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    log_file: Optional[str] = Field(
        default=None, description="Log file path (None=no file logging)"
    )
    console_output: bool = Field(default=True, description="Log to console")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure the package logger.

    Replaces any handlers previously installed on the package logger.

    Args:
        config: Logging settings. Defaults to :class:`LoggingConfig`.
    """
    config = config or LoggingConfig()
    if not config.enabled:
        return

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(getattr(logging, config.level))
    package_logger.handlers.clear()

    formatter = logging.Formatter(config.format)

    if config.console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        package_logger.addHandler(console_handler)

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    logger.debug(f"Logging configured at level {config.level}")


class HarnessConfig(BaseModel):
    """Settings for one theory-versus-experiment run.

    Attributes:
        n_samples: Total trial budget, split evenly across workers.
        n_workers: Worker count; ``None`` uses the logical CPU count.
        seed: Seed of the root generator from which worker seeds are drawn.
        progress_bar: Show a tqdm bar while workers finish.
        backend: ``"thread"`` or ``"process"`` worker pool.
        logging: Logging settings applied by the CLI.
    """

    n_samples: int = Field(default=100_000, gt=0, description="Total number of trials")
    n_workers: Optional[int] = Field(
        default=None, ge=1, description="Number of workers (None for auto)"
    )
    seed: int = Field(default=0, ge=0, description="Root generator seed")
    progress_bar: bool = Field(default=False, description="Show progress bar")
    backend: Literal["thread", "process"] = Field(
        default="thread", description="Worker pool implementation"
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "HarnessConfig":
        """Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file.

        Returns:
            HarnessConfig with validated parameters.

        Raises:
            FileNotFoundError: If config file doesn't exist.
            ValueError: If the file does not hold a mapping at the top level.
            ValidationError: If configuration is invalid.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(
                f"Configuration file {path} must contain a mapping, got {type(data).__name__}"
            )

        # Remove private anchors if present
        data = {k: v for k, v in data.items() if not k.startswith("_")}

        return cls(**data)

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], base_config: Optional["HarnessConfig"] = None
    ) -> "HarnessConfig":
        """Create config from dictionary, optionally overriding a base config.

        Args:
            data: Dictionary with configuration parameters. ``None`` values
                are ignored so unset CLI options keep the base value.
            base_config: Optional base configuration to override.

        Returns:
            HarnessConfig with the overrides applied.
        """
        overrides = {k: v for k, v in data.items() if v is not None}
        if base_config is None:
            return cls(**overrides)
        merged = base_config.model_dump()
        merged.update(overrides)
        return cls(**merged)

    def to_yaml(self, path: Path) -> None:
        """Write the configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.model_dump(), f, sort_keys=False)

    def resolved_workers(self) -> int:
        """Worker count with ``None`` replaced by the logical CPU count."""
        if self.n_workers is not None:
            return self.n_workers
        return psutil.cpu_count(logical=True) or 1

    def root_rng(self) -> np.random.Generator:
        """Fresh root generator seeded from :attr:`seed`."""
        return np.random.default_rng(self.seed)

    def validate(self) -> List[str]:  # type: ignore[override]
        """Check the configuration for suspicious or unusable settings.

        Returns:
            Warnings about legal but surprising settings.

        Raises:
            ConfigurationError: If no trial would run.
        """
        issues: List[str] = []
        warnings_found: List[str] = []
        n_workers = self.resolved_workers()

        if self.n_samples < n_workers:
            issues.append(
                f"n_samples ({self.n_samples}) is smaller than n_workers ({n_workers}); "
                "every worker would run zero trials"
            )
        elif self.n_samples % n_workers:
            warnings_found.append(
                f"{self.n_samples % n_workers} of {self.n_samples} samples will be dropped "
                f"because the budget does not divide evenly across {n_workers} workers"
            )

        logical_cpus = psutil.cpu_count(logical=True) or 1
        if n_workers > logical_cpus:
            warnings_found.append(
                f"n_workers ({n_workers}) exceeds the {logical_cpus} logical CPUs available"
            )

        if issues:
            raise ConfigurationError(issues)
        for message in warnings_found:
            warnings.warn(message, ConfigurationWarning, stacklevel=2)
        return warnings_found
