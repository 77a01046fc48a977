"""Optimization analysis for workflow graphs.

Derives advisory structures from a validated snapshot:

1. Parallelization groups: mutually independent top-level steps with an
   idealized fan-out speedup estimate
2. Caching candidates: every complete feature step, keyed by
   ``feature-operation`` (policy is pluggable)
3. Timeout recommendations: computed recursively from step shape and
   operation complexity
4. Reliability recommendations: fallbacks, retry counts and health checks

Nothing here mutates the workflow. The returned OptimizedWorkflowConfig
carries the original snapshot plus the analysis.
"""

from collections.abc import Callable

import structlog

from workflow_builder.config import BuilderSettings
from workflow_builder.graph import find_independent_groups, iter_steps
from workflow_builder.types import (
    BaseStep,
    CachingInfo,
    ConditionalStep,
    FallbackInfo,
    FallbackStrategy,
    FeatureStep,
    HealthCheckInfo,
    Impact,
    OptimizationSuggestion,
    OptimizedWorkflowConfig,
    ParallelizationInfo,
    ParallelStep,
    PerformanceOptimizations,
    ReliabilityOptimizations,
    RetryInfo,
    RetryStrategy,
    SequentialStep,
    StepType,
    TimeoutInfo,
    WorkflowConfig,
    WorkflowOptimizations,
)
from workflow_builder.validation.rules import WorkflowValidator

logger = structlog.get_logger(__name__)

FEATURE_BASE_TIMEOUT_MS = 15000
PARALLEL_MARGIN_MS = 5000
CONDITIONAL_DEFAULT_TIMEOUT_MS = 30000

# Substring of the operation name -> timeout multiplier (multipliers compose)
COMPLEXITY_MULTIPLIERS: dict[str, float] = {
    "comprehensive": 2.0,
    "detailed": 1.5,
    "analysis": 1.3,
}

AUTO_APPLIED_IMPACTS: frozenset[str] = frozenset({"high", "medium"})

CachePolicy = Callable[[FeatureStep], CachingInfo | None]


def ttl_cache_policy(ttl_ms: int) -> CachePolicy:
    """Build the default cache policy: key on ``feature-operation`` with a fixed TTL.

    Feature steps missing either name are not cacheable.

    Args:
        ttl_ms: TTL to recommend for every cacheable step

    Returns:
        Cache policy callable
    """

    def policy(step: FeatureStep) -> CachingInfo | None:
        if not step.feature or not step.operation:
            return None
        return CachingInfo(
            step_id=step.id,
            cache_key=f"{step.feature}-{step.operation}",
            ttl=ttl_ms,
            impact="medium",
        )

    return policy


def complexity_multiplier(operation: str | None) -> float:
    """Return the timeout multiplier implied by an operation name."""
    multiplier = 1.0
    if not operation:
        return multiplier
    for marker, factor in COMPLEXITY_MULTIPLIERS.items():
        if marker in operation:
            multiplier *= factor
    return multiplier


def parallelization_complexity(size: int) -> Impact:
    if size <= 2:
        return "low"
    if size <= 4:
        return "medium"
    return "high"


class WorkflowOptimizer:
    """Derives optimization recommendations from a workflow snapshot.

    Example:
        >>> optimized = WorkflowOptimizer().optimize(builder.build())
        >>> [group.step_ids for group in optimized.optimizations.performance.parallelization]
        [['fetch-profile', 'fetch-history']]
    """

    def __init__(
        self,
        settings: BuilderSettings | None = None,
        cache_policy: CachePolicy | None = None,
        validator: WorkflowValidator | None = None,
    ):
        """Initialize optimizer.

        Args:
            settings: Settings providing default timeouts, TTL and caps
            cache_policy: Custom caching policy (defaults to ttl_cache_policy)
            validator: Validator to run first (defaults to the standard pipeline)
        """
        self.settings = settings or BuilderSettings()
        self.cache_policy = cache_policy or ttl_cache_policy(self.settings.cache_ttl_ms)
        self.validator = validator or WorkflowValidator(self.settings)

    def optimize(self, config: WorkflowConfig) -> OptimizedWorkflowConfig:
        """Validate the snapshot, then attach performance and reliability analysis.

        Only high and medium impact suggestions from validation are listed as
        applied; low impact ones remain available on the embedded validation
        result.

        Args:
            config: Workflow snapshot

        Returns:
            OptimizedWorkflowConfig with the original fields plus ``optimizations``
        """
        validation = self.validator.validate(config)

        performance = PerformanceOptimizations(
            parallelization=self.find_parallelization(config),
            caching=self.find_caching(config),
            timeout_optimization=self.recommend_timeouts(config),
        )
        reliability = ReliabilityOptimizations(
            fallbacks=self.recommend_fallbacks(config),
            retries=self.recommend_retries(config),
            health_checks=self.recommend_health_checks(config),
        )
        applied = self.select_applied(validation.optimizations)

        logger.info(
            "workflow_optimized",
            workflow_id=config.id,
            valid=validation.valid,
            applied=len(applied),
            parallel_groups=len(performance.parallelization),
            cache_candidates=len(performance.caching),
        )

        fields = {name: getattr(config, name) for name in WorkflowConfig.model_fields}
        return OptimizedWorkflowConfig(
            **fields,
            optimizations=WorkflowOptimizations(
                applied=applied,
                performance=performance,
                reliability=reliability,
                validation=validation,
            ),
        )

    @staticmethod
    def select_applied(
        suggestions: list[OptimizationSuggestion],
    ) -> list[OptimizationSuggestion]:
        """Keep suggestions whose impact is high enough to apply automatically."""
        return [s for s in suggestions if s.impact in AUTO_APPLIED_IMPACTS]

    # ===== Performance =====

    def _timeout_or_default(self, step: BaseStep) -> int:
        return step.timeout if step.timeout is not None else self.settings.default_step_timeout_ms

    def estimate_speedup(self, steps: list[BaseStep]) -> float:
        """Idealized fan-out speedup: sum of member timeouts over the longest one."""
        timeouts = [self._timeout_or_default(step) for step in steps]
        return sum(timeouts) / max(timeouts)

    def find_parallelization(self, config: WorkflowConfig) -> list[ParallelizationInfo]:
        opportunities = []
        for group in find_independent_groups(list(config.steps)):
            if len(group) < 2:
                continue
            opportunities.append(
                ParallelizationInfo(
                    step_ids=[step.id for step in group],
                    estimated_speedup=self.estimate_speedup(group),
                    complexity=parallelization_complexity(len(group)),
                )
            )
        return opportunities

    def find_caching(self, config: WorkflowConfig) -> list[CachingInfo]:
        opportunities = []
        for step in iter_steps(config.steps):
            if not isinstance(step, FeatureStep):
                continue
            info = self.cache_policy(step)
            if info is not None:
                opportunities.append(info)
        return opportunities

    def recommend_timeout(self, step: BaseStep) -> int:
        """Recommended timeout in ms for a step, derived recursively from its shape.

        - feature: 15000 ms scaled by the operation complexity multiplier, capped
        - parallel: slowest child plus a 5000 ms margin
        - sequential: sum of children
        - conditional: the slower of the two branches (30000 ms if both are empty)
        """
        if isinstance(step, FeatureStep):
            raw = FEATURE_BASE_TIMEOUT_MS * complexity_multiplier(step.operation)
            return round(min(raw, self.settings.max_recommended_timeout_ms))
        if isinstance(step, ParallelStep):
            slowest = max((self.recommend_timeout(child) for child in step.parallel), default=0)
            return slowest + PARALLEL_MARGIN_MS
        if isinstance(step, SequentialStep):
            return sum(self.recommend_timeout(child) for child in step.sequential)
        if isinstance(step, ConditionalStep):
            if not step.if_true and not step.if_false:
                return CONDITIONAL_DEFAULT_TIMEOUT_MS
            return max(
                sum(self.recommend_timeout(child) for child in step.if_true),
                sum(self.recommend_timeout(child) for child in step.if_false),
            )
        raise TypeError(f"Unsupported step type: {type(step).__name__}")

    def recommend_timeouts(self, config: WorkflowConfig) -> list[TimeoutInfo]:
        recommendations = []
        for step in iter_steps(config.steps):
            if step.timeout is not None:
                current = step.timeout
            elif config.timeout is not None:
                current = config.timeout
            else:
                current = self.settings.default_step_timeout_ms
            recommendations.append(
                TimeoutInfo(
                    step_id=step.id,
                    current_timeout=current,
                    recommended_timeout=self.recommend_timeout(step),
                    reasoning=(
                        f"Optimized based on {StepType(step.type).value} step characteristics "
                        "and operation complexity"
                    ),
                )
            )
        return recommendations

    # ===== Reliability =====

    def recommend_fallbacks(self, config: WorkflowConfig) -> list[FallbackInfo]:
        recommendations = []
        for step in iter_steps(config.steps):
            if not isinstance(step, FeatureStep) or step.fallback is not None:
                continue
            recommendations.append(
                FallbackInfo(
                    step_id=step.id,
                    recommended_fallback=FallbackStrategy(
                        type="template",
                        description=f"Template-based fallback for {step.operation}",
                        implementation=(
                            f"Use pre-defined template for {step.feature} {step.operation}"
                        ),
                    ),
                    impact="high" if step.dependencies else "medium",
                )
            )
        return recommendations

    @staticmethod
    def recommended_retries(step: BaseStep) -> int:
        if isinstance(step, FeatureStep):
            return 3 if step.operation and "critical" in step.operation else 2
        return 1

    def recommend_retries(self, config: WorkflowConfig) -> list[RetryInfo]:
        return [
            RetryInfo(
                step_id=step.id,
                current_retries=step.retries or 0,
                recommended_retries=self.recommended_retries(step),
                strategy=RetryStrategy(),
            )
            for step in iter_steps(config.steps)
        ]

    def recommend_health_checks(self, config: WorkflowConfig) -> list[HealthCheckInfo]:
        return [
            HealthCheckInfo(
                step_id=step.id,
                check_type="dependency-health",
                frequency="before-execution",
                impact="medium",
            )
            for step in iter_steps(config.steps)
            if isinstance(step, FeatureStep)
        ]
