"""Tests for harness configuration and logging setup."""

import logging
from unittest.mock import patch

import numpy as np
from pydantic import ValidationError
import pytest
import yaml

from stochastic_experiments._warnings import ConfigurationWarning
from stochastic_experiments.config import (
    PACKAGE_LOGGER,
    HarnessConfig,
    LoggingConfig,
    setup_logging,
)
from stochastic_experiments.exceptions import ConfigurationError


class TestHarnessConfig:
    """Test HarnessConfig validation and loading."""

    def test_defaults(self):
        config = HarnessConfig()

        assert config.n_samples == 100_000
        assert config.n_workers is None
        assert config.backend == "thread"
        assert config.logging.level == "INFO"

    @pytest.mark.parametrize(
        "field, value",
        [("n_samples", 0), ("n_workers", 0), ("seed", -1), ("backend", "gpu")],
    )
    def test_invalid_fields(self, field, value):
        with pytest.raises(ValidationError):
            HarnessConfig(**{field: value})

    def test_yaml_round_trip(self, tmp_path):
        path = tmp_path / "configs" / "run.yaml"
        config = HarnessConfig(n_samples=5000, n_workers=3, seed=4, logging=LoggingConfig(level="DEBUG"))
        config.to_yaml(path)

        assert HarnessConfig.from_yaml(path) == config

    def test_from_yaml_ignores_private_keys(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text(
            yaml.safe_dump({"_defaults": {"n_samples": 1}, "n_samples": 64, "seed": 2}),
            encoding="utf-8",
        )
        config = HarnessConfig.from_yaml(path)

        assert config.n_samples == 64
        assert config.seed == 2

    def test_from_yaml_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            HarnessConfig.from_yaml(tmp_path / "missing.yaml")

    @pytest.mark.parametrize("content, kind", [("- 1\n- 2\n", "list"), ("42\n", "int")])
    def test_from_yaml_rejects_non_mapping(self, tmp_path, content, kind):
        path = tmp_path / "run.yaml"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ValueError, match=f"must contain a mapping, got {kind}"):
            HarnessConfig.from_yaml(path)

    def test_from_dict_overrides_base(self):
        base = HarnessConfig(n_samples=5000, seed=4)
        config = HarnessConfig.from_dict({"seed": 9, "n_workers": None}, base_config=base)

        assert config.n_samples == 5000
        assert config.seed == 9
        assert config.n_workers is None

    def test_resolved_workers(self):
        assert HarnessConfig(n_workers=3).resolved_workers() == 3
        with patch("stochastic_experiments.config.psutil.cpu_count", return_value=6):
            assert HarnessConfig().resolved_workers() == 6

    def test_root_rng(self):
        config = HarnessConfig(seed=4)
        assert config.root_rng().random() == np.random.default_rng(4).random()

    def test_validate_clean(self):
        with patch("stochastic_experiments.config.psutil.cpu_count", return_value=8):
            assert HarnessConfig(n_samples=800, n_workers=8).validate() == []

    def test_validate_remainder_warns(self):
        with patch("stochastic_experiments.config.psutil.cpu_count", return_value=8):
            with pytest.warns(ConfigurationWarning, match="will be dropped"):
                found = HarnessConfig(n_samples=801, n_workers=8).validate()
        assert len(found) == 1

    def test_validate_oversubscription_warns(self):
        with patch("stochastic_experiments.config.psutil.cpu_count", return_value=2):
            with pytest.warns(ConfigurationWarning, match="exceeds"):
                HarnessConfig(n_samples=800, n_workers=8).validate()

    def test_validate_too_few_samples(self):
        with pytest.raises(ConfigurationError) as exc_info:
            HarnessConfig(n_samples=3, n_workers=4).validate()
        assert len(exc_info.value.issues) == 1
        assert "zero trials" in str(exc_info.value)


class TestSetupLogging:
    """Test logger configuration."""

    def teardown_method(self):
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        for handler in package_logger.handlers:
            handler.close()
        package_logger.handlers.clear()
        package_logger.setLevel(logging.NOTSET)

    def test_console_handler(self):
        setup_logging(LoggingConfig(level="DEBUG"))
        package_logger = logging.getLogger(PACKAGE_LOGGER)

        assert package_logger.level == logging.DEBUG
        assert len(package_logger.handlers) == 1

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        setup_logging(LoggingConfig(log_file=str(log_file), console_output=False))
        logging.getLogger("stochastic_experiments.test").info("hello")

        for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
            handler.flush()
        assert "hello" in log_file.read_text(encoding="utf-8")

    def test_disabled(self):
        setup_logging(LoggingConfig(enabled=False))
        assert logging.getLogger(PACKAGE_LOGGER).handlers == []

    def test_repeated_setup_replaces_handlers(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger(PACKAGE_LOGGER).handlers) == 1
