"""Fluent builder API for programmatic workflow construction.

The builder is the single mutable owner of a workflow's step list. Steps are
added through the ``add_*_step`` methods and afterwards changed only through
``add_dependency``, ``add_fallback``, ``set_timeout`` and ``set_retries``.
``build()`` returns an immutable snapshot that never shares state with the
builder.

Design Principles:
1. **Fail fast on misuse**: unknown step ids and duplicate ids raise BuildError
   at the offending call
2. **Defer structural checks**: dependency targets may be added later (forward
   references); missing targets, cycles and malformed templates are reported
   by ``validate()``, never raised
3. **Flat graph**: edges are step ids resolved through an index, nested
   children included

Example:
    >>> from workflow_builder import WorkflowBuilder
    >>> config = (
    ...     WorkflowBuilder("plan-workout", "Plan Workout")
    ...     .add_feature_step("profile", "Load Profile", "profile-store", "fetch", {})
    ...     .add_feature_step("plan", "Generate Plan", "planner", "detailed_plan",
    ...                       {"profile": "{{profile.result}}"})
    ...     .add_dependency("plan", "profile")
    ...     .set_timeout("plan", 45000)
    ...     .build()
    ... )
"""

from __future__ import annotations

import copy
import difflib
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from workflow_builder.api.exceptions import BuildError, DuplicateStepError, StepNotFoundError
from workflow_builder.graph import index_steps, iter_steps
from workflow_builder.types import (
    BaseStep,
    Condition,
    ConditionalStep,
    FeatureStep,
    ParallelStep,
    RetryPolicy,
    SequentialStep,
    ValidationResult,
    WorkflowConfig,
    parse_step,
)

if TYPE_CHECKING:
    from workflow_builder.config import BuilderSettings
    from workflow_builder.templates.exporter import WorkflowTemplate
    from workflow_builder.types import OptimizedWorkflowConfig

logger = structlog.get_logger(__name__)

StepInput = BaseStep | Mapping[str, Any]


class WorkflowBuilder:
    """Incremental builder for workflow graphs.

    All mutating methods return self for fluent chaining. ``build()`` returns a
    WorkflowConfig snapshot; ``validate()`` and ``optimize()`` analyze the
    current snapshot.

    The builder is not safe for concurrent mutation; snapshots are.

    Example:
        >>> builder = (
        ...     WorkflowBuilder("analysis", "Analysis")
        ...     .add_feature_step("a", "A", "collector", "collect", {"source": "db"})
        ...     .add_feature_step("b", "B", "analyzer", "analysis", {"data": "{{a.result}}"})
        ...     .add_dependency("b", "a")
        ... )
        >>> builder.validate().valid
        True
    """

    def __init__(
        self,
        id: str,
        name: str,
        description: str | None = None,
        timeout: int | None = None,
        retry_policy: RetryPolicy | Mapping[str, Any] | None = None,
        metadata: Mapping[str, Any] | None = None,
    ):
        """Initialize builder with workflow metadata.

        Args:
            id: Workflow identifier
            name: Workflow display name
            description: Optional workflow description
            timeout: Default step timeout in milliseconds
            retry_policy: Default retry policy (model or mapping)
            metadata: Opaque key/value metadata

        Raises:
            BuildError: If timeout or retry policy is invalid
        """
        if timeout is not None and timeout <= 0:
            raise BuildError(f"Workflow timeout must be > 0, got {timeout}")

        self.id = id
        self.name = name
        self.description = description
        self.timeout = timeout
        self.metadata: dict[str, Any] = dict(metadata or {})
        self._steps: list[BaseStep] = []

        if retry_policy is None or isinstance(retry_policy, RetryPolicy):
            self.retry_policy = retry_policy
        else:
            try:
                self.retry_policy = RetryPolicy.model_validate(dict(retry_policy))
            except PydanticValidationError as e:
                raise BuildError(f"Invalid retry policy: {e}") from e

        logger.debug("workflow_builder_created", workflow_id=id, name=name)

    # ===== Step construction =====

    def add_feature_step(
        self,
        id: str,
        name: str,
        feature: str | None,
        operation: str | None,
        params: Any = None,
        *,
        dependencies: list[str] | None = None,
        timeout: int | None = None,
        retries: int | None = None,
        fallback: StepInput | None = None,
    ) -> WorkflowBuilder:
        """Add a feature invocation step.

        Missing ``feature`` or ``operation`` names are accepted here and reported
        by ``validate()``.

        Args:
            id: Unique step identifier
            name: Display label
            feature: Feature to call
            operation: Operation within the feature
            params: Parameters; values may contain ``{{placeholder}}`` markers
            dependencies: Ids of steps this step depends on
            timeout: Step timeout override in milliseconds
            retries: Step retry count override
            fallback: Alternate step (model or mapping)

        Returns:
            Self for method chaining

        Raises:
            DuplicateStepError: If the id is already used
            BuildError: If a field value is invalid

        Example:
            >>> builder.add_feature_step("fetch", "Fetch", "profile-store", "fetch",
            ...                          {"user": "{{userId}}"}, timeout=10000)
        """
        step = self._make_step(
            FeatureStep,
            id=id,
            name=name,
            feature=feature,
            operation=operation,
            params=params,
            dependencies=dependencies,
            timeout=timeout,
            retries=retries,
            fallback=fallback,
        )
        self._add_step(step)
        logger.debug("feature_step_added", step_id=id, feature=feature, operation=operation)
        return self

    def add_parallel_step(
        self,
        id: str,
        name: str,
        steps: Iterable[StepInput],
        *,
        dependencies: list[str] | None = None,
        timeout: int | None = None,
        retries: int | None = None,
        fallback: StepInput | None = None,
    ) -> WorkflowBuilder:
        """Add a step whose children run independently of each other.

        Args:
            id: Unique step identifier
            name: Display label
            steps: Child steps (models or mappings)
            dependencies: Ids of steps this step depends on
            timeout: Step timeout override in milliseconds
            retries: Step retry count override
            fallback: Alternate step (model or mapping)

        Returns:
            Self for method chaining

        Raises:
            DuplicateStepError: If this id or any child id is already used
            BuildError: If a child definition is invalid
        """
        step = self._make_step(
            ParallelStep,
            id=id,
            name=name,
            parallel=self._parse_children(id, steps),
            dependencies=dependencies,
            timeout=timeout,
            retries=retries,
            fallback=fallback,
        )
        self._add_step(step)
        logger.debug("parallel_step_added", step_id=id, children=len(step.children()))
        return self

    def add_sequential_step(
        self,
        id: str,
        name: str,
        steps: Iterable[StepInput],
        *,
        dependencies: list[str] | None = None,
        timeout: int | None = None,
        retries: int | None = None,
        fallback: StepInput | None = None,
    ) -> WorkflowBuilder:
        """Add a step whose children run one after another.

        Args:
            id: Unique step identifier
            name: Display label
            steps: Child steps in execution order (models or mappings)
            dependencies: Ids of steps this step depends on
            timeout: Step timeout override in milliseconds
            retries: Step retry count override
            fallback: Alternate step (model or mapping)

        Returns:
            Self for method chaining

        Raises:
            DuplicateStepError: If this id or any child id is already used
            BuildError: If a child definition is invalid
        """
        step = self._make_step(
            SequentialStep,
            id=id,
            name=name,
            sequential=self._parse_children(id, steps),
            dependencies=dependencies,
            timeout=timeout,
            retries=retries,
            fallback=fallback,
        )
        self._add_step(step)
        logger.debug("sequential_step_added", step_id=id, children=len(step.children()))
        return self

    def add_conditional_step(
        self,
        id: str,
        name: str,
        condition: Condition | Mapping[str, Any],
        if_true: Iterable[StepInput],
        if_false: Iterable[StepInput] | None = None,
        *,
        dependencies: list[str] | None = None,
        timeout: int | None = None,
        retries: int | None = None,
        fallback: StepInput | None = None,
    ) -> WorkflowBuilder:
        """Add a step that branches on a condition.

        Args:
            id: Unique step identifier
            name: Display label
            condition: Condition (model or mapping with type/field/value)
            if_true: Steps to run when the condition holds
            if_false: Steps to run otherwise (may be empty)
            dependencies: Ids of steps this step depends on
            timeout: Step timeout override in milliseconds
            retries: Step retry count override
            fallback: Alternate step (model or mapping)

        Returns:
            Self for method chaining

        Raises:
            DuplicateStepError: If this id or any branch step id is already used
            BuildError: If the condition or a branch step is invalid

        Example:
            >>> builder.add_conditional_step(
            ...     "gate", "Experience Gate",
            ...     {"type": "equals", "field": "profile.level", "value": "beginner"},
            ...     if_true=[{"type": "feature-call", "id": "intro", "name": "Intro",
            ...               "feature": "planner", "operation": "intro_plan"}],
            ... )
        """
        step = self._make_step(
            ConditionalStep,
            id=id,
            name=name,
            condition=condition,
            if_true=self._parse_children(id, if_true),
            if_false=self._parse_children(id, if_false or []),
            dependencies=dependencies,
            timeout=timeout,
            retries=retries,
            fallback=fallback,
        )
        self._add_step(step)
        logger.debug("conditional_step_added", step_id=id)
        return self

    def add_step(self, step: StepInput) -> WorkflowBuilder:
        """Add a step of any variant from a model or a tagged mapping.

        Used by loaders and template instantiation; the variant is selected by
        the ``type`` tag.

        Raises:
            DuplicateStepError: If any id in the step is already used
            BuildError: If the definition does not match a step variant
        """
        try:
            parsed = parse_step(step)
        except PydanticValidationError as e:
            raise BuildError(f"Invalid step definition: {e}") from e
        self._add_step(parsed)
        logger.debug("step_added", step_id=parsed.id, step_type=parsed.type)
        return self

    # ===== Step mutation =====

    def add_dependency(self, step_id: str, depends_on: str | Iterable[str]) -> WorkflowBuilder:
        """Declare that a step depends on one or more other steps.

        Dependency targets are not checked here, so a step may depend on one
        that is added later. Targets that never appear are reported by
        ``validate()``.

        Args:
            step_id: Id of the dependent step (must exist)
            depends_on: Id or ids of the steps it depends on

        Returns:
            Self for method chaining

        Raises:
            StepNotFoundError: If ``step_id`` does not exist
        """
        step = self._find_step(step_id)
        targets = [depends_on] if isinstance(depends_on, str) else list(depends_on)
        step.dependencies = [*step.dependencies, *targets]

        logger.debug("dependency_added", step_id=step_id, depends_on=targets)
        return self

    def add_fallback(self, step_id: str, fallback: StepInput) -> WorkflowBuilder:
        """Attach an alternate step used when the primary is unavailable.

        Raises:
            StepNotFoundError: If ``step_id`` does not exist
            BuildError: If the fallback definition is invalid
        """
        step = self._find_step(step_id)
        try:
            step.fallback = parse_step(fallback)
        except PydanticValidationError as e:
            raise BuildError(f"Invalid fallback for step '{step_id}': {e}") from e

        logger.debug("fallback_added", step_id=step_id, fallback_id=step.fallback.id)
        return self

    def set_timeout(self, step_id: str, timeout: int) -> WorkflowBuilder:
        """Override the timeout (milliseconds) of a step.

        Raises:
            StepNotFoundError: If ``step_id`` does not exist
            BuildError: If timeout is not positive
        """
        step = self._find_step(step_id)
        if timeout <= 0:
            raise BuildError(f"Timeout for step '{step_id}' must be > 0, got {timeout}")
        step.timeout = timeout

        logger.debug("timeout_set", step_id=step_id, timeout=timeout)
        return self

    def set_retries(self, step_id: str, retries: int) -> WorkflowBuilder:
        """Override the retry count of a step.

        Raises:
            StepNotFoundError: If ``step_id`` does not exist
            BuildError: If retries is negative
        """
        step = self._find_step(step_id)
        if retries < 0:
            raise BuildError(f"Retries for step '{step_id}' must be >= 0, got {retries}")
        step.retries = retries

        logger.debug("retries_set", step_id=step_id, retries=retries)
        return self

    # ===== Snapshot and analysis =====

    def build(self) -> WorkflowConfig:
        """Return an immutable snapshot of the current workflow.

        The snapshot holds deep copies of all steps; later builder calls do not
        affect it and changes to it never reach the builder.

        Returns:
            WorkflowConfig snapshot
        """
        return WorkflowConfig(
            id=self.id,
            name=self.name,
            description=self.description,
            steps=tuple(step.model_copy(deep=True) for step in self._steps),
            timeout=self.timeout,
            retry_policy=(
                self.retry_policy.model_copy(deep=True) if self.retry_policy is not None else None
            ),
            metadata=copy.deepcopy(self.metadata),
        )

    def validate(self, settings: BuilderSettings | None = None) -> ValidationResult:
        """Run the structural validation rules against the current snapshot.

        Findings are returned, never raised.

        Args:
            settings: Optional settings overriding rule thresholds

        Returns:
            ValidationResult (``valid`` is False iff any error was found)
        """
        from workflow_builder.validation.rules import WorkflowValidator

        return WorkflowValidator(settings).validate(self.build())

    def optimize(self, settings: BuilderSettings | None = None) -> OptimizedWorkflowConfig:
        """Validate, then derive optimization recommendations for the current snapshot.

        Args:
            settings: Optional settings for defaults, TTLs and caps

        Returns:
            OptimizedWorkflowConfig
        """
        from workflow_builder.optimization.analyzer import WorkflowOptimizer

        return WorkflowOptimizer(settings).optimize(self.build())

    def export_as_template(self) -> WorkflowTemplate:
        """Turn the current workflow into a reusable parameterized template.

        Returns:
            WorkflowTemplate whose ``create(params)`` yields a new builder
        """
        from workflow_builder.templates.exporter import export_template

        return export_template(self.build())

    # ===== Alternate constructors =====

    @classmethod
    def from_config(cls, config: WorkflowConfig) -> WorkflowBuilder:
        """Create a builder pre-populated from a snapshot.

        Raises:
            DuplicateStepError: If the snapshot contains duplicate ids
        """
        builder = cls(
            id=config.id,
            name=config.name,
            description=config.description,
            timeout=config.timeout,
            retry_policy=config.retry_policy,
            metadata=config.metadata,
        )
        for step in config.steps:
            builder.add_step(step)
        return builder

    @classmethod
    def from_template(
        cls, template_name: str, params: Mapping[str, Any] | None = None
    ) -> WorkflowBuilder:
        """Create a builder from a predefined template.

        Args:
            template_name: Registered template name (e.g. ``basic-feature``)
            params: Template parameter values

        Raises:
            TemplateNotFoundError: If the template is not registered
            TemplateParameterError: If required parameters are missing
        """
        from workflow_builder.templates.presets import create_from_template

        return create_from_template(template_name, params or {})

    # ===== Internals =====

    def _make_step(self, model: type[BaseStep], **fields: Any) -> BaseStep:
        """Construct a step model, dropping unset options and wrapping validation errors."""
        values = {k: v for k, v in fields.items() if v is not None}
        if "fallback" in values:
            values["fallback"] = self._parse_fallback(fields["id"], values["fallback"])
        try:
            return model.model_validate(values)
        except PydanticValidationError as e:
            raise BuildError(f"Invalid step '{fields['id']}': {e}") from e

    def _parse_children(self, parent_id: str, steps: Iterable[StepInput]) -> list[BaseStep]:
        try:
            return [parse_step(child) for child in steps]
        except PydanticValidationError as e:
            raise BuildError(f"Invalid child step in '{parent_id}': {e}") from e

    def _parse_fallback(self, step_id: str, fallback: StepInput) -> BaseStep:
        try:
            return parse_step(fallback)
        except PydanticValidationError as e:
            raise BuildError(f"Invalid fallback for step '{step_id}': {e}") from e

    def _add_step(self, step: BaseStep) -> None:
        """Append a step after checking every id it introduces is unused."""
        existing = set(index_steps(self._steps))
        seen: set[str] = set()

        for node in iter_steps([step]):
            if node.id in existing or node.id in seen:
                raise DuplicateStepError(
                    f"Step ID '{node.id}' already exists. Each step must have a unique ID.",
                    node.id,
                )
            seen.add(node.id)

        self._steps.append(step)

    def _find_step(self, step_id: str) -> BaseStep:
        """Look up a step by id at any nesting level, suggesting close matches on failure.

        Raises:
            StepNotFoundError: If no step has this id
        """
        index = index_steps(self._steps)
        step = index.get(step_id)
        if step is not None:
            return step

        suggestions = difflib.get_close_matches(step_id, index.keys(), n=3, cutoff=0.6)
        msg = f"Step '{step_id}' not found."
        if suggestions:
            msg += f" Did you mean: {', '.join(repr(s) for s in suggestions)}?"
        raise StepNotFoundError(msg, step_id)
