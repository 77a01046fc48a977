"""Type definitions for the workflow builder.

All workflow graphs, validation findings, and optimization reports use
Pydantic v2 models so that definitions loaded from YAML/JSON and graphs
assembled in code share one typed representation.

Key Models:
    Step: Discriminated union of FeatureStep, ParallelStep, SequentialStep
        and ConditionalStep (tagged by ``type``)
    WorkflowConfig: Immutable snapshot produced by WorkflowBuilder.build()
    ValidationResult: Errors, warnings and optimization suggestions
    OptimizedWorkflowConfig: Snapshot annotated with optimization analysis
"""

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class StepType(str, Enum):
    """Supported step variants.

    The value is the ``type`` tag used in serialized workflow definitions.
    """

    FEATURE = "feature-call"  # Leaf invocation of a feature operation
    PARALLEL = "parallel"  # Independent children executed concurrently
    SEQUENTIAL = "sequential"  # Children executed one after another
    CONDITIONAL = "conditional"  # Branch on a boolean condition


class ConditionType(str, Enum):
    """Comparison applied by a conditional step."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    EXISTS = "exists"


Impact = Literal["low", "medium", "high"]
Severity = Literal["low", "medium", "high"]
Category = Literal["performance", "reliability", "maintainability"]


class Condition(BaseModel):
    """Boolean condition evaluated by the executor against workflow context."""

    type: ConditionType
    field: str  # Dotted path into the workflow context
    value: Any = None


class RetryPolicy(BaseModel):
    """Default retry policy handed to the executor (never enforced here)."""

    max_attempts: int = Field(default=3, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    initial_delay: int = Field(default=1000, ge=0)  # ms
    max_delay: int = Field(default=10000, ge=0)  # ms
    retryable_errors: list[str] | None = None


# ===== Step Model =====


class BaseStep(BaseModel):
    """Fields shared by every step variant.

    Attributes:
        id: Unique identifier within the owning workflow
        name: Display label (not used for identity)
        dependencies: Ids of steps that must exist in the same graph
        timeout: Per-step timeout override in milliseconds
        retries: Per-step retry count override
        fallback: Alternate step used when this step's capability is unavailable
    """

    id: str
    name: str
    dependencies: list[str] = Field(default_factory=list)
    timeout: int | None = Field(default=None, gt=0)
    retries: int | None = Field(default=None, ge=0)
    fallback: "Step | None" = None

    def children(self) -> list["Step"]:
        """Return directly nested steps (empty for leaf steps)."""
        return []


class FeatureStep(BaseStep):
    """Leaf invocation: ``feature`` + ``operation`` with a parameter mapping.

    ``feature`` and ``operation`` may be missing so that incomplete steps can be
    assembled and reported by validation instead of failing construction.
    Param values may contain ``{{placeholder}}`` markers.
    """

    type: Literal[StepType.FEATURE] = StepType.FEATURE
    feature: str | None = None
    operation: str | None = None
    params: Any = None


class ParallelStep(BaseStep):
    """Children executed independently of each other."""

    type: Literal[StepType.PARALLEL] = StepType.PARALLEL
    parallel: list["Step"] = Field(default_factory=list)

    def children(self) -> list["Step"]:
        return list(self.parallel)


class SequentialStep(BaseStep):
    """Children executed one after another."""

    type: Literal[StepType.SEQUENTIAL] = StepType.SEQUENTIAL
    sequential: list["Step"] = Field(default_factory=list)

    def children(self) -> list["Step"]:
        return list(self.sequential)


class ConditionalStep(BaseStep):
    """Runs ``if_true`` when the condition holds, otherwise ``if_false``."""

    type: Literal[StepType.CONDITIONAL] = StepType.CONDITIONAL
    condition: Condition
    if_true: list["Step"] = Field(default_factory=list)
    if_false: list["Step"] = Field(default_factory=list)

    def children(self) -> list["Step"]:
        return [*self.if_true, *self.if_false]


Step = Annotated[
    FeatureStep | ParallelStep | SequentialStep | ConditionalStep,
    Field(discriminator="type"),
]

for _model in (BaseStep, FeatureStep, ParallelStep, SequentialStep, ConditionalStep):
    _model.model_rebuild()

STEP_ADAPTER: TypeAdapter[Any] = TypeAdapter(Step)


def parse_step(data: Any) -> FeatureStep | ParallelStep | SequentialStep | ConditionalStep:
    """Validate a raw mapping (or step instance) into the matching step variant."""
    if isinstance(data, BaseStep):
        return data.model_copy(deep=True)  # type: ignore[return-value]
    return STEP_ADAPTER.validate_python(data)


# ===== Workflow Configuration =====


class WorkflowConfig(BaseModel):
    """Immutable snapshot of a workflow graph.

    Produced by ``WorkflowBuilder.build()``. Steps are deep copies held in a
    tuple, so a snapshot can be shared read-only without reaching back into
    the builder that produced it.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str | None = None
    steps: tuple[Step, ...] = ()
    timeout: int | None = Field(default=None, gt=0)  # Default step timeout in ms
    retry_policy: RetryPolicy | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# ===== Validation Findings =====


class ValidationError(BaseModel):
    """Finding that makes the workflow structurally incorrect."""

    type: Literal["error"] = "error"
    message: str
    step_id: str | None = None
    field: str | None = None


class ValidationWarning(BaseModel):
    """Non-fatal risk signal."""

    type: Literal["warning"] = "warning"
    message: str
    step_id: str | None = None
    severity: Severity = "medium"


class OptimizationSuggestion(BaseModel):
    """Advisory recommendation derived from static analysis."""

    type: Literal["optimization"] = "optimization"
    message: str
    impact: Impact
    category: Category
    implementation: str | None = None


class RuleResult(BaseModel):
    """Findings produced by a single validation rule."""

    errors: list[ValidationError] = Field(default_factory=list)
    warnings: list[ValidationWarning] = Field(default_factory=list)
    optimizations: list[OptimizationSuggestion] = Field(default_factory=list)


class ValidationResult(RuleResult):
    """Combined findings of all rules. ``valid`` is true iff there are no errors."""

    valid: bool = True


# ===== Optimization Analysis =====


class ParallelizationInfo(BaseModel):
    """Group of mutually independent steps that could run concurrently."""

    step_ids: list[str]
    estimated_speedup: float
    complexity: Impact


class CachingInfo(BaseModel):
    """Caching recommendation for a feature step."""

    step_id: str
    cache_key: str
    ttl: int  # ms
    impact: Impact = "medium"


class TimeoutInfo(BaseModel):
    """Timeout recommendation for a step."""

    step_id: str
    current_timeout: int
    recommended_timeout: int
    reasoning: str


class FallbackStrategy(BaseModel):
    type: str
    description: str
    implementation: str


class FallbackInfo(BaseModel):
    step_id: str
    recommended_fallback: FallbackStrategy
    impact: Impact


class RetryStrategy(BaseModel):
    type: str = "exponential-backoff"
    base_delay: int = 1000  # ms
    multiplier: float = 2.0
    max_delay: int = 10000  # ms


class RetryInfo(BaseModel):
    step_id: str
    current_retries: int
    recommended_retries: int
    strategy: RetryStrategy


class HealthCheckInfo(BaseModel):
    step_id: str
    check_type: str
    frequency: str
    impact: Impact


class PerformanceOptimizations(BaseModel):
    parallelization: list[ParallelizationInfo] = Field(default_factory=list)
    caching: list[CachingInfo] = Field(default_factory=list)
    timeout_optimization: list[TimeoutInfo] = Field(default_factory=list)


class ReliabilityOptimizations(BaseModel):
    fallbacks: list[FallbackInfo] = Field(default_factory=list)
    retries: list[RetryInfo] = Field(default_factory=list)
    health_checks: list[HealthCheckInfo] = Field(default_factory=list)


class WorkflowOptimizations(BaseModel):
    """Optimization analysis attached to an optimized workflow.

    Attributes:
        applied: High and medium impact suggestions from validation
        performance: Parallelization, caching and timeout analysis
        reliability: Fallback, retry and health-check analysis
        validation: Validation result the analysis was derived from
    """

    applied: list[OptimizationSuggestion] = Field(default_factory=list)
    performance: PerformanceOptimizations = Field(default_factory=PerformanceOptimizations)
    reliability: ReliabilityOptimizations = Field(default_factory=ReliabilityOptimizations)
    validation: ValidationResult = Field(default_factory=ValidationResult)


class OptimizedWorkflowConfig(WorkflowConfig):
    """Workflow snapshot returned by ``optimize()``."""

    optimizations: WorkflowOptimizations
