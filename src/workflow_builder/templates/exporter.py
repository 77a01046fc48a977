"""Template export and instantiation via ``{{name}}`` placeholder substitution.

A template is a workflow snapshot plus the list of parameters found in it.
Instantiating a template substitutes supplied values for every placeholder
occurrence and returns a new WorkflowBuilder; it never mutates an existing
graph.

Placeholder rules:
    - Syntax is ``{{name}}`` where name is a word (letters, digits, underscore)
    - Step result references such as ``{{fetch-data.result}}`` are not
      parameters and are left untouched
    - Matching is case-sensitive and there is no escape syntax for a literal
      ``{{``
    - Inside step params, a string that is exactly one placeholder takes the
      supplied value as-is (type preserved); everywhere else values are
      stringified
"""

import json
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import BaseModel

from workflow_builder.api.builders import WorkflowBuilder
from workflow_builder.api.exceptions import BuildError, TemplateParameterError
from workflow_builder.graph import iter_steps_with_fallbacks
from workflow_builder.types import FeatureStep, WorkflowConfig

logger = structlog.get_logger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")


class TemplateParameter(BaseModel):
    """Parameter accepted by a workflow template."""

    name: str
    type: str = "string"  # "string" or "number"
    description: str = ""
    required: bool = True
    default: Any = None


TemplateFactory = Callable[[Mapping[str, Any]], WorkflowBuilder]


@dataclass
class WorkflowTemplate:
    """Reusable, parameterized workflow.

    Attributes:
        name: Template display name
        description: What the template builds
        parameters: Parameters in first-seen order
        factory: Callable building a WorkflowBuilder from resolved parameters
    """

    name: str
    description: str
    parameters: list[TemplateParameter] = field(default_factory=list)
    factory: TemplateFactory | None = None

    def create(self, params: Mapping[str, Any] | None = None) -> WorkflowBuilder:
        """Instantiate the template.

        Args:
            params: Parameter values; unknown names are ignored

        Returns:
            New WorkflowBuilder populated with substituted steps

        Raises:
            TemplateParameterError: If a required parameter has no value
            BuildError: If the template has no factory or a value cannot be coerced
        """
        if self.factory is None:
            raise BuildError(f"Template '{self.name}' has no factory")

        resolved = resolve_parameters(self.parameters, params or {})
        logger.debug("template_instantiated", template=self.name, params=sorted(resolved))
        return self.factory(resolved)


def find_placeholders(text: str) -> list[str]:
    """Return placeholder names in order of appearance (duplicates kept)."""
    return PLACEHOLDER_PATTERN.findall(text)


def extract_parameters(config: WorkflowConfig) -> list[TemplateParameter]:
    """Collect template parameters from a workflow snapshot.

    Step params (all graph nodes and their fallbacks) are scanned first, then
    the workflow id, name and description. Each name appears once, in
    first-seen order.

    Args:
        config: Workflow snapshot

    Returns:
        Parameters, all marked required
    """
    parameters: list[TemplateParameter] = []
    seen: set[str] = set()

    def collect(text: str, context: str) -> None:
        for name in find_placeholders(text):
            if name in seen:
                continue
            seen.add(name)
            parameters.append(
                TemplateParameter(name=name, description=f"Parameter used in {context}")
            )

    for step in iter_steps_with_fallbacks(config.steps):
        if isinstance(step, FeatureStep) and step.params is not None:
            collect(json.dumps(step.params, default=str), f"step {step.id}")

    collect(config.id, "workflow id")
    collect(config.name, "workflow name")
    if config.description:
        collect(config.description, "workflow description")

    return parameters


def _coerce(parameter: TemplateParameter, value: Any) -> Any:
    if parameter.type != "number" or not isinstance(value, str):
        return value
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError as e:
        raise BuildError(
            f"Template parameter '{parameter.name}' must be a number, got {value!r}"
        ) from e


def resolve_parameters(
    parameters: list[TemplateParameter], supplied: Mapping[str, Any]
) -> dict[str, Any]:
    """Merge supplied values with defaults and check required parameters.

    Args:
        parameters: Declared template parameters
        supplied: Caller-supplied values

    Returns:
        Resolved values (supplied values plus defaults)

    Raises:
        TemplateParameterError: If required parameters are missing
    """
    resolved = dict(supplied)
    missing: list[str] = []

    for parameter in parameters:
        if parameter.name in resolved:
            resolved[parameter.name] = _coerce(parameter, resolved[parameter.name])
        elif parameter.default is not None:
            resolved[parameter.name] = parameter.default
        elif parameter.required:
            missing.append(parameter.name)

    if missing:
        raise TemplateParameterError(
            f"Missing required template parameter(s): {', '.join(missing)}", missing
        )

    return resolved


def substitute_text(text: str, params: Mapping[str, Any]) -> str:
    """Replace every known ``{{name}}`` in text with ``str(value)``; leave unknown ones."""

    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        return str(params[name]) if name in params else match.group(0)

    return PLACEHOLDER_PATTERN.sub(replace, text)


def substitute_value(value: Any, params: Mapping[str, Any], keep_type: bool = False) -> Any:
    """Recursively substitute placeholders in strings, lists and dict values.

    Args:
        value: Value to substitute into
        params: Parameter values
        keep_type: Replace a whole-placeholder string with the raw value

    Returns:
        New value with placeholders substituted
    """
    if isinstance(value, str):
        if keep_type:
            match = PLACEHOLDER_PATTERN.fullmatch(value)
            if match and match.group(1) in params:
                return params[match.group(1)]
        return substitute_text(value, params)
    if isinstance(value, list):
        return [substitute_value(item, params, keep_type) for item in value]
    if isinstance(value, dict):
        return {
            key: substitute_value(item, params, keep_type or key == "params")
            for key, item in value.items()
        }
    return value


def export_template(config: WorkflowConfig) -> WorkflowTemplate:
    """Turn a workflow snapshot into a template.

    Args:
        config: Workflow snapshot (captured; later builder changes do not affect it)

    Returns:
        WorkflowTemplate whose parameters are the placeholders found in the snapshot
    """
    parameters = extract_parameters(config)
    step_data = [step.model_dump(mode="json") for step in config.steps]

    def factory(params: Mapping[str, Any]) -> WorkflowBuilder:
        builder = WorkflowBuilder(
            id=substitute_text(config.id, params),
            name=substitute_text(config.name, params),
            description=(
                substitute_text(config.description, params) if config.description else None
            ),
            timeout=config.timeout,
            retry_policy=config.retry_policy,
            metadata=config.metadata,
        )
        for data in step_data:
            builder.add_step(substitute_value(data, params))
        return builder

    logger.debug(
        "template_exported",
        workflow_id=config.id,
        parameters=[p.name for p in parameters],
    )

    return WorkflowTemplate(
        name=config.name,
        description=config.description or "",
        parameters=parameters,
        factory=factory,
    )
