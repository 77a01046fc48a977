"""Structural validation rules for workflow graphs.

Each rule is a pure function ``(WorkflowConfig) -> RuleResult``. Rules never
see or mutate each other's output; ``WorkflowValidator`` runs them in a fixed
order against a snapshot and concatenates their findings.

Rule order:
    1. Dependency existence (errors)
    2. Cycle detection (errors)
    3. Timeout sanity (warnings, low-impact optimizations)
    4. Feature-step completeness (errors)
    5. Parameter template well-formedness (errors)
    6. Parallelization opportunity (high-impact optimizations)
"""

from collections.abc import Callable, Iterator, Sequence
from functools import partial
from typing import Any

import structlog

from workflow_builder.config import BuilderSettings
from workflow_builder.graph import (
    find_independent_groups,
    index_steps,
    iter_steps,
    iter_steps_with_fallbacks,
)
from workflow_builder.types import (
    FeatureStep,
    OptimizationSuggestion,
    RuleResult,
    ValidationError,
    ValidationResult,
    ValidationWarning,
    WorkflowConfig,
)
from workflow_builder.validation.cycles import detect_cycles, format_cycle

logger = structlog.get_logger(__name__)

ValidationRule = Callable[[WorkflowConfig], RuleResult]

# Effective timeouts above 5 minutes are flagged
LONG_TIMEOUT_THRESHOLD_MS = 300000


def check_dependencies(config: WorkflowConfig) -> RuleResult:
    """Report dependencies on ids that are not a step anywhere in the graph.

    The lookup is flat across all nesting levels, so a step nested inside a
    parallel block may depend on any other step of the workflow.
    """
    result = RuleResult()
    known_ids = set(index_steps(config.steps))

    for step in iter_steps(config.steps):
        for dep_id in step.dependencies:
            if dep_id not in known_ids:
                result.errors.append(
                    ValidationError(
                        message=f"Step '{step.id}' depends on non-existent step '{dep_id}'",
                        step_id=step.id,
                        field="dependencies",
                    )
                )

    return result


def check_cycles(config: WorkflowConfig) -> RuleResult:
    """Report one error per dependency cycle."""
    result = RuleResult()

    for cycle in detect_cycles(config.steps):
        result.errors.append(
            ValidationError(
                message=f"Circular dependency detected: {format_cycle(cycle)}",
                step_id=cycle[0],
                field="dependencies",
            )
        )

    return result


def check_timeouts(
    config: WorkflowConfig, max_timeout_ms: int = LONG_TIMEOUT_THRESHOLD_MS
) -> RuleResult:
    """Warn on very long effective timeouts; suggest explicit timeouts where missing.

    The effective timeout of a step is its own override, or the workflow
    default when it has none.

    Args:
        config: Workflow snapshot
        max_timeout_ms: Effective timeouts above this value produce a warning

    Returns:
        RuleResult with warnings and low-impact reliability suggestions
    """
    result = RuleResult()

    for step in iter_steps(config.steps):
        effective = step.timeout if step.timeout is not None else config.timeout

        if effective is not None and effective > max_timeout_ms:
            result.warnings.append(
                ValidationWarning(
                    message=f"Step '{step.id}' has very long timeout ({effective}ms)",
                    step_id=step.id,
                    severity="medium",
                )
            )

        if step.timeout is None:
            result.optimizations.append(
                OptimizationSuggestion(
                    message=f"Consider setting explicit timeout for step '{step.id}'",
                    impact="low",
                    category="reliability",
                    implementation=f"builder.set_timeout('{step.id}', <milliseconds>)",
                )
            )

    return result


def check_feature_steps(config: WorkflowConfig) -> RuleResult:
    """Require feature and operation names on every feature step (fallbacks included)."""
    result = RuleResult()

    for step in iter_steps_with_fallbacks(config.steps):
        if not isinstance(step, FeatureStep):
            continue

        if not step.feature:
            result.errors.append(
                ValidationError(
                    message=f"Feature step '{step.id}' missing feature name",
                    step_id=step.id,
                    field="feature",
                )
            )

        if not step.operation:
            result.errors.append(
                ValidationError(
                    message=f"Feature step '{step.id}' missing operation name",
                    step_id=step.id,
                    field="operation",
                )
            )

    return result


def has_unclosed_placeholder(text: str) -> bool:
    """Return True if some ``{{`` has no ``}}`` after it.

    This is a linear scan, not a parser: each opening marker is paired with
    the next closing marker and scanning resumes after it.
    """
    position = 0
    while True:
        start = text.find("{{", position)
        if start == -1:
            return False
        end = text.find("}}", start + 2)
        if end == -1:
            return True
        position = end + 2


def iter_string_values(value: Any) -> Iterator[str]:
    """Yield every string leaf of a params value (dict values and list items)."""
    if isinstance(value, str):
        yield value
    elif isinstance(value, list):
        for item in value:
            yield from iter_string_values(item)
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_string_values(item)


def check_parameter_templates(config: WorkflowConfig) -> RuleResult:
    """Report feature steps with a param string containing an unclosed ``{{``.

    Each string value is scanned on its own so that braces belonging to the
    surrounding structure never close a marker.
    """
    result = RuleResult()

    for step in iter_steps_with_fallbacks(config.steps):
        if not isinstance(step, FeatureStep) or step.params is None:
            continue

        if any(has_unclosed_placeholder(text) for text in iter_string_values(step.params)):
            result.errors.append(
                ValidationError(
                    message=f"Step '{step.id}' has malformed parameter templates",
                    step_id=step.id,
                    field="params",
                )
            )

    return result


def check_parallelization(config: WorkflowConfig) -> RuleResult:
    """Suggest grouping mutually independent top-level steps under a parallel step.

    Top-level steps never nest inside each other, so only dependency edges
    separate them. One suggestion is emitted per group of two or more.
    """
    result = RuleResult()

    for group in find_independent_groups(list(config.steps)):
        if len(group) < 2:
            continue
        ids = ", ".join(step.id for step in group)
        result.optimizations.append(
            OptimizationSuggestion(
                message=f"Consider parallelizing {len(group)} independent steps: {ids}",
                impact="high",
                category="performance",
                implementation="Group independent steps in parallel execution block",
            )
        )

    return result


def default_rules(settings: BuilderSettings | None = None) -> list[ValidationRule]:
    """Return the standard rule pipeline in execution order."""
    threshold = (
        settings.long_timeout_threshold_ms if settings is not None else LONG_TIMEOUT_THRESHOLD_MS
    )
    return [
        check_dependencies,
        check_cycles,
        partial(check_timeouts, max_timeout_ms=threshold),
        check_feature_steps,
        check_parameter_templates,
        check_parallelization,
    ]


class WorkflowValidator:
    """Runs an ordered list of rules and merges their findings.

    Example:
        >>> result = WorkflowValidator().validate(builder.build())
        >>> result.valid
        True
    """

    def __init__(
        self,
        settings: BuilderSettings | None = None,
        rules: Sequence[ValidationRule] | None = None,
    ):
        """Initialize validator.

        Args:
            settings: Optional settings providing rule thresholds
            rules: Optional custom rule list (replaces the default pipeline)
        """
        self.rules = list(rules) if rules is not None else default_rules(settings)

    def validate(self, config: WorkflowConfig) -> ValidationResult:
        """Validate a workflow snapshot.

        Args:
            config: Workflow snapshot to inspect

        Returns:
            ValidationResult; ``valid`` is False iff any rule produced an error
        """
        result = ValidationResult()

        for rule in self.rules:
            found = rule(config)
            result.errors.extend(found.errors)
            result.warnings.extend(found.warnings)
            result.optimizations.extend(found.optimizations)

        result.valid = not result.errors

        logger.debug(
            "workflow_validated",
            workflow_id=config.id,
            valid=result.valid,
            errors=len(result.errors),
            warnings=len(result.warnings),
            optimizations=len(result.optimizations),
        )
        return result
