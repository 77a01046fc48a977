"""YAML/JSON loader for workflow definitions.

Handles loading and parsing workflow definition files and assembling them
into a WorkflowBuilder, plus writing snapshots back out.

Loading Flow:
    1. Check the file exists and is within the size limit
    2. Parse YAML (ruamel.yaml, safe mode) or JSON
    3. Validate the top-level shape with Pydantic
    4. Add every step through the builder (duplicate ids are rejected)

Structural problems (missing dependency targets, cycles, malformed
templates) are not load errors; they are reported by ``validate()``.

Supported Formats:
    - .yaml, .yml: Parsed with ruamel.yaml (safe mode)
    - .json: Parsed with standard json module
"""

import io
import json
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML

from workflow_builder.api.builders import WorkflowBuilder
from workflow_builder.api.exceptions import BuildError
from workflow_builder.types import RetryPolicy, WorkflowConfig

logger = structlog.get_logger(__name__)

# Maximum definition file size to prevent memory exhaustion
MAX_DEFINITION_SIZE_BYTES = 10 * 1024 * 1024  # 10MB

YAML_SUFFIXES = {".yaml", ".yml"}


class LoadError(Exception):
    """Raised when a workflow definition cannot be loaded or parsed."""

    pass


class WorkflowDefinition(BaseModel):
    """Top-level shape of a workflow definition file.

    Steps stay raw here; each is validated into its variant when added to
    the builder so that errors name the offending step.
    """

    id: str
    name: str
    description: str | None = None
    timeout: int | None = Field(default=None, gt=0)
    retry_policy: RetryPolicy | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    steps: list[dict[str, Any]] = Field(default_factory=list)


def _validate_file_path(file_path: Path) -> None:
    """Validate file exists and is not too large.

    Raises:
        LoadError: If file doesn't exist or is too large
    """
    if not file_path.exists():
        raise LoadError(f"Workflow file not found: {file_path}")

    file_size = file_path.stat().st_size
    if file_size > MAX_DEFINITION_SIZE_BYTES:
        size_mb = file_size / (1024 * 1024)
        max_mb = MAX_DEFINITION_SIZE_BYTES / (1024 * 1024)
        raise LoadError(
            f"Workflow file too large: {size_mb:.1f}MB exceeds maximum of {max_mb:.0f}MB"
        )


def _parse_file_content(file_path: Path, content: str) -> dict[str, Any]:
    """Parse file content based on extension.

    Raises:
        LoadError: If parsing fails or format unsupported
    """
    suffix = file_path.suffix.lower()
    try:
        if suffix in YAML_SUFFIXES:
            yaml = YAML(typ="safe", pure=True)
            data = yaml.load(content)
        elif suffix == ".json":
            data = json.loads(content)
        else:
            raise LoadError(f"Unsupported file extension: {suffix}. Use .yaml, .yml, or .json")
    except LoadError:
        raise
    except Exception as e:
        raise LoadError(f"Failed to parse {file_path}: {e}") from e

    if not isinstance(data, dict):
        raise LoadError(f"Workflow definition must be a dictionary/object, got {type(data)}")

    return data


def builder_from_dict(data: dict[str, Any]) -> WorkflowBuilder:
    """Assemble a builder from a parsed workflow definition.

    Args:
        data: Parsed definition

    Returns:
        WorkflowBuilder populated with the definition's steps

    Raises:
        LoadError: If the definition shape is invalid or a step cannot be added
    """
    try:
        definition = WorkflowDefinition.model_validate(data)
    except PydanticValidationError as e:
        raise LoadError(f"Invalid workflow definition: {e}") from e

    try:
        builder = WorkflowBuilder(
            id=definition.id,
            name=definition.name,
            description=definition.description,
            timeout=definition.timeout,
            retry_policy=definition.retry_policy,
            metadata=definition.metadata,
        )
        for step in definition.steps:
            builder.add_step(step)
    except BuildError as e:
        raise LoadError(f"Failed to assemble workflow '{definition.id}': {e}") from e

    return builder


def load_workflow(file_path: str | Path) -> WorkflowBuilder:
    """Load a workflow definition from YAML or JSON.

    Args:
        file_path: Path to the definition (.yaml, .yml, or .json)

    Returns:
        WorkflowBuilder ready for validate(), optimize() or build()

    Raises:
        LoadError: If the file cannot be read, parsed, or assembled
    """
    file_path = Path(file_path)
    logger.debug("load_workflow_start", file_path=str(file_path))

    _validate_file_path(file_path)

    try:
        content = file_path.read_text(encoding="utf-8")
    except Exception as e:
        raise LoadError(f"Failed to read {file_path}: {e}") from e

    data = _parse_file_content(file_path, content)
    builder = builder_from_dict(data)

    logger.debug("workflow_loaded", workflow_id=builder.id, file_path=str(file_path))
    return builder


def dump_workflow(config: WorkflowConfig, file_path: str | Path) -> Path:
    """Write a workflow snapshot (optimized or not) as YAML or JSON by extension.

    Args:
        config: Snapshot to write
        file_path: Destination (.yaml, .yml, or .json)

    Returns:
        The path written

    Raises:
        LoadError: If the extension is unsupported or the write fails
    """
    file_path = Path(file_path)
    suffix = file_path.suffix.lower()
    data = config.model_dump(mode="json", exclude_none=True)

    if suffix in YAML_SUFFIXES:
        yaml = YAML(typ="safe", pure=True)
        yaml.default_flow_style = False
        buffer = io.StringIO()
        yaml.dump(data, buffer)
        content = buffer.getvalue()
    elif suffix == ".json":
        content = json.dumps(data, indent=2) + "\n"
    else:
        raise LoadError(f"Unsupported file extension: {suffix}. Use .yaml, .yml, or .json")

    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise LoadError(f"Failed to write {file_path}: {e}") from e

    logger.debug("workflow_written", workflow_id=config.id, file_path=str(file_path))
    return file_path


def parse_variables(var_args: list[str]) -> dict[str, str]:
    """Parse --var arguments into a dictionary.

    Args:
        var_args: List of "key=value" strings from CLI

    Returns:
        Dictionary of variables

    Raises:
        LoadError: If a variable is malformed
    """
    variables = {}

    for var in var_args:
        if "=" not in var:
            raise LoadError(f"Invalid variable format: {var}. Expected key=value")

        key, value = var.split("=", 1)
        key = key.strip()

        if not key:
            raise LoadError(f"Empty variable key in: {var}")

        variables[key] = value.strip()

    return variables
