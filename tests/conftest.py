"""Pytest configuration and shared fixtures for workflow-builder tests.

Provides fixtures for:
- Test fixtures (valid/invalid workflow definitions)
- Prebuilt builders for common graph shapes
- Settings isolated from the developer's environment
"""

import os
from pathlib import Path

import pytest

from workflow_builder.api.builders import WorkflowBuilder
from workflow_builder.config import BuilderSettings

# ============================================================================
# Environment Isolation
# ============================================================================


@pytest.fixture(autouse=True)
def clean_builder_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove WORKFLOW_BUILDER_ env vars so tests see default settings."""
    for key in list(os.environ.keys()):
        if key.startswith("WORKFLOW_BUILDER_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def settings() -> BuilderSettings:
    """Default settings, ignoring any .env file in the working directory."""
    return BuilderSettings(_env_file=None)


# ============================================================================
# Fixture Paths
# ============================================================================


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def valid_fixtures_dir(fixtures_dir: Path) -> Path:
    """Return the path to valid test fixtures."""
    return fixtures_dir / "valid"


@pytest.fixture
def invalid_fixtures_dir(fixtures_dir: Path) -> Path:
    """Return the path to invalid test fixtures."""
    return fixtures_dir / "invalid"


@pytest.fixture
def independent_steps_file(valid_fixtures_dir: Path) -> Path:
    """Path to the A/B/C workflow (C depends on A)."""
    return valid_fixtures_dir / "independent-steps.yaml"


@pytest.fixture
def nested_file(valid_fixtures_dir: Path) -> Path:
    """Path to the JSON workflow with parallel, conditional and sequential steps."""
    return valid_fixtures_dir / "nested.json"


@pytest.fixture
def long_timeout_file(valid_fixtures_dir: Path) -> Path:
    """Path to a valid workflow whose only step has a 10 minute timeout."""
    return valid_fixtures_dir / "long-timeout.yaml"


@pytest.fixture
def cycle_file(invalid_fixtures_dir: Path) -> Path:
    """Path to a workflow with the cycle a -> c -> b -> a."""
    return invalid_fixtures_dir / "cycle.yaml"


@pytest.fixture
def missing_dependency_file(invalid_fixtures_dir: Path) -> Path:
    """Path to a workflow depending on a step that does not exist."""
    return invalid_fixtures_dir / "missing-dependency.yaml"


@pytest.fixture
def duplicate_ids_file(invalid_fixtures_dir: Path) -> Path:
    """Path to a workflow reusing a step id inside a parallel block."""
    return invalid_fixtures_dir / "duplicate-ids.yaml"


# ============================================================================
# Builders
# ============================================================================


@pytest.fixture
def independent_builder() -> WorkflowBuilder:
    """A and B have no dependencies, C depends on A."""
    return (
        WorkflowBuilder("independent", "Independent Steps")
        .add_feature_step("A", "Step A", "collector", "collect", {"source": "db"})
        .add_feature_step("B", "Step B", "collector", "collect", {"source": "api"})
        .add_feature_step("C", "Step C", "analyzer", "analyze", {"data": "{{A.result}}"})
        .add_dependency("C", "A")
    )


@pytest.fixture
def nested_builder() -> WorkflowBuilder:
    """Collect, then a parallel block of two analyses, then a conditional gate."""
    return (
        WorkflowBuilder("nested", "Nested Workflow")
        .add_feature_step("collect", "Collect", "data-collector", "collect", {"source": "db"})
        .add_parallel_step(
            "analyze",
            "Analyze",
            [
                {
                    "type": "feature-call",
                    "id": "patterns",
                    "name": "Patterns",
                    "feature": "pattern-analyzer",
                    "operation": "detailed_analysis",
                },
                {
                    "type": "feature-call",
                    "id": "trends",
                    "name": "Trends",
                    "feature": "trend-analyzer",
                    "operation": "analyze",
                },
            ],
            dependencies=["collect"],
        )
        .add_conditional_step(
            "gate",
            "Gate",
            {"type": "exists", "field": "patterns.result"},
            if_true=[
                {
                    "type": "feature-call",
                    "id": "report",
                    "name": "Report",
                    "feature": "reporter",
                    "operation": "render",
                }
            ],
            dependencies=["analyze"],
        )
    )
