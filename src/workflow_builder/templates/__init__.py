"""Workflow templates: export, instantiation and predefined templates."""

from workflow_builder.templates.exporter import (
    TemplateParameter,
    WorkflowTemplate,
    export_template,
    extract_parameters,
    resolve_parameters,
    substitute_text,
    substitute_value,
)
from workflow_builder.templates.presets import (
    WORKFLOW_TEMPLATES,
    create_from_template,
    get_template,
    list_templates,
)

__all__ = [
    "WORKFLOW_TEMPLATES",
    "TemplateParameter",
    "WorkflowTemplate",
    "create_from_template",
    "export_template",
    "extract_parameters",
    "get_template",
    "list_templates",
    "resolve_parameters",
    "substitute_text",
    "substitute_value",
]
