"""Workflow builder - declarative workflow graphs with validation and optimization analysis."""

from workflow_builder.api import BuildError, WorkflowBuilder

# Version (managed in pyproject.toml)
__version__ = "0.1.0"

__all__ = ["BuildError", "WorkflowBuilder", "__version__"]
