"""Loader module for YAML/JSON workflow definitions."""

from workflow_builder.loader.yaml_loader import (
    LoadError,
    builder_from_dict,
    dump_workflow,
    load_workflow,
    parse_variables,
)

__all__ = [
    "LoadError",
    "builder_from_dict",
    "dump_workflow",
    "load_workflow",
    "parse_variables",
]
