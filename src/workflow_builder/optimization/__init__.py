"""Optimization analysis for workflow graphs."""

from workflow_builder.optimization.analyzer import (
    CachePolicy,
    WorkflowOptimizer,
    complexity_multiplier,
    parallelization_complexity,
    ttl_cache_policy,
)

__all__ = [
    "CachePolicy",
    "WorkflowOptimizer",
    "complexity_multiplier",
    "parallelization_complexity",
    "ttl_cache_policy",
]
