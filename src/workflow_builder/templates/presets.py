"""Predefined workflow templates.

Provides ready-made templates for common workflow shapes so callers can
start from a known-good graph instead of assembling every step by hand.

Available templates:
- basic-feature: a single feature call with a timeout
- comprehensive-analysis: data collection, three analyses in parallel,
  then a synthesis step
"""

from collections.abc import Mapping
from typing import Any

from workflow_builder.api.builders import WorkflowBuilder
from workflow_builder.api.exceptions import TemplateNotFoundError
from workflow_builder.templates.exporter import TemplateParameter, WorkflowTemplate
from workflow_builder.types import StepType


def _basic_feature(params: Mapping[str, Any]) -> WorkflowBuilder:
    feature = params["featureName"]
    timeout = params["timeout"]
    return WorkflowBuilder(
        id=params["workflowId"],
        name=params["workflowName"],
        timeout=timeout,
    ).add_feature_step(
        "main-step",
        f"Execute {feature}",
        feature,
        params["operation"],
        "{{params}}",
        timeout=timeout,
    )


def _analysis_step(id: str, name: str, feature: str, operation: str) -> dict[str, Any]:
    return {
        "type": StepType.FEATURE.value,
        "id": id,
        "name": name,
        "feature": feature,
        "operation": operation,
        "params": {"data": "{{data-collection.result}}"},
    }


def _comprehensive_analysis(params: Mapping[str, Any]) -> WorkflowBuilder:
    analysis_type = params["analysisType"]
    return (
        WorkflowBuilder(
            id=f"comprehensive-{analysis_type}-analysis",
            name=f"Comprehensive {analysis_type} Analysis",
            timeout=120000,
        )
        .add_feature_step(
            "data-collection",
            "Collect Data",
            "data-collector",
            "collect",
            {"source": params["dataSource"]},
        )
        .add_parallel_step(
            "parallel-analysis",
            "Parallel Analysis",
            [
                _analysis_step(
                    "analyze-patterns", "Pattern Analysis", "pattern-analyzer", "analyze"
                ),
                _analysis_step("analyze-trends", "Trend Analysis", "trend-analyzer", "analyze"),
                _analysis_step(
                    "analyze-anomalies", "Anomaly Detection", "anomaly-detector", "detect"
                ),
            ],
        )
        .add_feature_step(
            "synthesize-results",
            "Synthesize Results",
            "result-synthesizer",
            "synthesize",
            {
                "patterns": "{{analyze-patterns.result}}",
                "trends": "{{analyze-trends.result}}",
                "anomalies": "{{analyze-anomalies.result}}",
            },
        )
        .add_dependency("parallel-analysis", "data-collection")
        .add_dependency("synthesize-results", "parallel-analysis")
    )


WORKFLOW_TEMPLATES: dict[str, WorkflowTemplate] = {
    "basic-feature": WorkflowTemplate(
        name="Basic Feature Workflow",
        description="Simple single-feature workflow template",
        parameters=[
            TemplateParameter(name="featureName", description="Name of the feature to call"),
            TemplateParameter(name="operation", description="Operation to perform"),
            TemplateParameter(
                name="timeout",
                type="number",
                description="Timeout in milliseconds",
                required=False,
                default=30000,
            ),
            TemplateParameter(
                name="workflowId",
                description="Workflow identifier",
                required=False,
                default="basic-feature",
            ),
            TemplateParameter(
                name="workflowName",
                description="Workflow display name",
                required=False,
                default="Basic Feature Workflow",
            ),
        ],
        factory=_basic_feature,
    ),
    "comprehensive-analysis": WorkflowTemplate(
        name="Comprehensive Analysis Workflow",
        description="Multi-step analysis workflow with parallel processing",
        parameters=[
            TemplateParameter(name="analysisType", description="Type of analysis to perform"),
            TemplateParameter(name="dataSource", description="Source of data to analyze"),
        ],
        factory=_comprehensive_analysis,
    ),
}


def get_template(name: str) -> WorkflowTemplate:
    """Look up a predefined template.

    Raises:
        TemplateNotFoundError: If no template has this name
    """
    template = WORKFLOW_TEMPLATES.get(name)
    if template is None:
        available = ", ".join(sorted(WORKFLOW_TEMPLATES))
        raise TemplateNotFoundError(f"Template '{name}' not found. Available: {available}")
    return template


def create_from_template(name: str, params: Mapping[str, Any]) -> WorkflowBuilder:
    """Instantiate a predefined template by name.

    Raises:
        TemplateNotFoundError: If no template has this name
        TemplateParameterError: If required parameters are missing
    """
    return get_template(name).create(params)


def list_templates() -> list[tuple[str, WorkflowTemplate]]:
    """Return registered templates sorted by name."""
    return sorted(WORKFLOW_TEMPLATES.items())
