"""Tests for configuration management (src/workflow_builder/config.py).

Coverage targets:
- Default values
- Environment variable loading with WORKFLOW_BUILDER_ prefix
- .env file parsing
- Field constraints
- Settings flowing into validation and optimization
"""

from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from workflow_builder.__main__ import configure_logging
from workflow_builder.api.builders import WorkflowBuilder
from workflow_builder.config import BuilderSettings


class TestBuilderSettingsDefaults:
    """Test default configuration values."""

    def test_defaults_when_no_env(self) -> None:
        """Test settings load with expected defaults when no env vars are set."""
        settings = BuilderSettings(_env_file=None)

        assert settings.log_level == "INFO"
        assert settings.log_format == "console"
        assert settings.long_timeout_threshold_ms == 300000
        assert settings.default_step_timeout_ms == 30000
        assert settings.cache_ttl_ms == 3600000
        assert settings.max_recommended_timeout_ms == 120000


class TestBuilderSettingsEnvVars:
    """Test environment variable loading."""

    def test_loads_from_env_vars(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test values come from WORKFLOW_BUILDER_ prefixed env vars."""
        monkeypatch.setenv("WORKFLOW_BUILDER_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("WORKFLOW_BUILDER_CACHE_TTL_MS", "600000")
        monkeypatch.setenv("WORKFLOW_BUILDER_LONG_TIMEOUT_THRESHOLD_MS", "1000")

        settings = BuilderSettings(_env_file=None)

        assert settings.log_level == "DEBUG"
        assert settings.cache_ttl_ms == 600000
        assert settings.long_timeout_threshold_ms == 1000

    def test_env_vars_case_insensitive(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test env var names are matched case-insensitively."""
        monkeypatch.setenv("workflow_builder_log_format", "json")

        assert BuilderSettings(_env_file=None).log_format == "json"

    def test_loads_from_env_file(self, tmp_path: Path) -> None:
        """Test values are read from a .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text("WORKFLOW_BUILDER_DEFAULT_STEP_TIMEOUT_MS=45000\n")

        settings = BuilderSettings(_env_file=env_file)

        assert settings.default_step_timeout_ms == 45000

    def test_env_var_overrides_env_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test env vars take priority over the .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text("WORKFLOW_BUILDER_CACHE_TTL_MS=1000\n")
        monkeypatch.setenv("WORKFLOW_BUILDER_CACHE_TTL_MS", "2000")

        assert BuilderSettings(_env_file=env_file).cache_ttl_ms == 2000

    def test_non_positive_values_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test thresholds must be positive."""
        monkeypatch.setenv("WORKFLOW_BUILDER_DEFAULT_STEP_TIMEOUT_MS", "0")

        with pytest.raises(PydanticValidationError):
            BuilderSettings(_env_file=None)


class TestSettingsUsage:
    """Test settings reach validation, optimization and logging."""

    def test_env_threshold_used_by_validate(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the long-timeout threshold from the environment is honoured."""
        monkeypatch.setenv("WORKFLOW_BUILDER_LONG_TIMEOUT_THRESHOLD_MS", "5000")
        builder = WorkflowBuilder("wf", "Workflow").add_feature_step(
            "s", "S", "f", "op", timeout=6000
        )

        result = builder.validate(BuilderSettings(_env_file=None))

        assert len(result.warnings) == 1

    def test_default_step_timeout_used_by_optimize(self) -> None:
        """Test the default step timeout feeds current timeout reporting."""
        settings = BuilderSettings(_env_file=None, default_step_timeout_ms=12345)
        builder = WorkflowBuilder("wf", "Workflow").add_feature_step("s", "S", "f", "op")

        optimized = builder.optimize(settings)

        assert optimized.optimizations.performance.timeout_optimization[0].current_timeout == 12345

    @pytest.mark.parametrize("log_format", ["json", "console"])
    def test_configure_logging(self, log_format: str) -> None:
        """Test structlog can be configured for either renderer."""
        configure_logging(BuilderSettings(_env_file=None, log_format=log_format))
