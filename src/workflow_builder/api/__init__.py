"""Programmatic API for assembling workflow graphs.

Example:
    >>> from workflow_builder.api import WorkflowBuilder
    >>> builder = (
    ...     WorkflowBuilder("weekly-plan", "Weekly Plan")
    ...     .add_feature_step("profile", "Profile", "profile-store", "fetch", {})
    ...     .add_feature_step("plan", "Plan", "planner", "detailed_plan",
    ...                       {"profile": "{{profile.result}}"})
    ...     .add_dependency("plan", "profile")
    ... )
    >>> builder.validate().valid
    True
"""

from workflow_builder.api.builders import WorkflowBuilder
from workflow_builder.api.exceptions import (
    BuildError,
    DuplicateStepError,
    StepNotFoundError,
    TemplateNotFoundError,
    TemplateParameterError,
)

__all__ = [
    "BuildError",
    "DuplicateStepError",
    "StepNotFoundError",
    "TemplateNotFoundError",
    "TemplateParameterError",
    "WorkflowBuilder",
]
