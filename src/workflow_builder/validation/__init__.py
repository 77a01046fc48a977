"""Structural validation of workflow graphs."""

from workflow_builder.validation.cycles import detect_cycles, format_cycle
from workflow_builder.validation.rules import (
    ValidationRule,
    WorkflowValidator,
    check_cycles,
    check_dependencies,
    check_feature_steps,
    check_parallelization,
    check_parameter_templates,
    check_timeouts,
    default_rules,
    has_unclosed_placeholder,
)

__all__ = [
    "ValidationRule",
    "WorkflowValidator",
    "check_cycles",
    "check_dependencies",
    "check_feature_steps",
    "check_parallelization",
    "check_parameter_templates",
    "check_timeouts",
    "default_rules",
    "detect_cycles",
    "format_cycle",
    "has_unclosed_placeholder",
]
