"""Main entry point for the workflow-builder CLI.

This module provides the Typer-based command-line interface for checking
and analysing workflow definitions. It handles definition loading,
structural validation, optimization analysis, and template instantiation.

Commands:
    validate: Validate a workflow definition (errors, warnings, optimizations)
    optimize: Run optimization analysis and print or write the result
    params: List template parameters found in a definition
    templates: List predefined templates
    instantiate: Create a workflow from a predefined template
    version: Show CLI version

Key Design:
    - Definitions are loaded through the builder so duplicate ids fail early
    - Structural findings are reported, never raised
    - Exit with structured error codes for different failure modes
"""

import logging
import sys
import traceback
from typing import Annotated, Any

import structlog
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from workflow_builder import __version__
from workflow_builder.api import BuildError, WorkflowBuilder
from workflow_builder.config import BuilderSettings
from workflow_builder.exit_codes import (
    EX_INVALID,
    EX_IO,
    EX_OK,
    EX_SCHEMA,
    EX_UNKNOWN,
    EX_USAGE,
)
from workflow_builder.loader import LoadError, dump_workflow, load_workflow, parse_variables
from workflow_builder.templates import list_templates
from workflow_builder.types import OptimizedWorkflowConfig, ValidationResult, WorkflowConfig

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def configure_logging(settings: BuilderSettings) -> None:
    """Configure structlog from settings.

    Log output goes to stderr so JSON printed on stdout stays parseable.
    """
    min_level = LEVELS.get(settings.log_level.upper(), logging.INFO)

    def filter_by_level_processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        """Filter log events by level."""
        event_level = LEVELS.get(event_dict.get("level", "info").upper(), logging.INFO)
        if event_level < min_level:
            raise structlog.DropEvent
        return event_dict

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer(colors=True)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            filter_by_level_processor,  # type: ignore[list-item]
            renderer,
        ],
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


settings = BuilderSettings()
configure_logging(settings)

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="workflow-builder",
    help="Validate and analyse declarative workflow graphs",
    add_completion=False,
    pretty_exceptions_enable=False,
)
console = Console()


def _load_or_exit(workflow_file: str, verbose: bool) -> WorkflowBuilder:
    """Load a definition, exiting with EX_SCHEMA when it cannot be loaded."""
    if verbose:
        console.print(f"[dim]Loading: {workflow_file}[/dim]")
    try:
        return load_workflow(workflow_file)
    except LoadError as e:
        console.print(f"[red]Failed to load workflow:[/red]\n{escape(str(e))}")
        sys.exit(EX_SCHEMA)


def _unexpected_error(e: Exception, verbose: bool) -> None:
    console.print(f"\n[red]Unexpected error:[/red] {escape(str(e))}")
    if verbose:
        console.print(traceback.format_exc())
    sys.exit(EX_UNKNOWN)


def _display_validation(result: ValidationResult) -> None:
    """Print validation findings as tables."""
    if result.errors:
        table = Table(title=f"Errors ({len(result.errors)})")
        table.add_column("Step", style="cyan", no_wrap=True)
        table.add_column("Field", style="yellow")
        table.add_column("Message", style="red")
        for error in result.errors:
            table.add_row(error.step_id or "-", error.field or "-", error.message)
        console.print(table)

    if result.warnings:
        table = Table(title=f"Warnings ({len(result.warnings)})")
        table.add_column("Step", style="cyan", no_wrap=True)
        table.add_column("Severity", style="yellow")
        table.add_column("Message")
        for warning in result.warnings:
            table.add_row(warning.step_id or "-", warning.severity, warning.message)
        console.print(table)

    if result.optimizations:
        table = Table(title=f"Optimizations ({len(result.optimizations)})")
        table.add_column("Impact", style="magenta")
        table.add_column("Category", style="blue")
        table.add_column("Message")
        for suggestion in result.optimizations:
            table.add_row(suggestion.impact, suggestion.category, suggestion.message)
        console.print(table)


def _display_optimizations(optimized: OptimizedWorkflowConfig) -> None:
    """Print a summary of the optimization analysis."""
    analysis = optimized.optimizations
    performance = analysis.performance
    reliability = analysis.reliability

    console.print(f"[bold]Workflow:[/bold] {optimized.name} ({optimized.id})")
    if not analysis.validation.valid:
        console.print(
            f"[yellow]Workflow has {len(analysis.validation.errors)} validation error(s); "
            "run 'validate' for details[/yellow]"
        )

    if analysis.applied:
        table = Table(title="Applied Optimizations")
        table.add_column("Impact", style="magenta")
        table.add_column("Category", style="blue")
        table.add_column("Message")
        for suggestion in analysis.applied:
            table.add_row(suggestion.impact, suggestion.category, suggestion.message)
        console.print(table)

    groups = performance.parallelization
    if groups:
        table = Table(title="Parallelization Groups")
        table.add_column("Steps", style="cyan")
        table.add_column("Speedup", style="green")
        table.add_column("Complexity", style="yellow")
        for group in groups:
            table.add_row(
                ", ".join(group.step_ids), f"{group.estimated_speedup:.2f}x", group.complexity
            )
        console.print(table)

    if performance.timeout_optimization:
        table = Table(title="Timeout Recommendations")
        table.add_column("Step", style="cyan", no_wrap=True)
        table.add_column("Current (ms)", justify="right")
        table.add_column("Recommended (ms)", justify="right", style="green")
        for info in performance.timeout_optimization:
            table.add_row(info.step_id, str(info.current_timeout), str(info.recommended_timeout))
        console.print(table)

    console.print(f"  Cache candidates: {len(performance.caching)}")
    console.print(f"  Fallback recommendations: {len(reliability.fallbacks)}")
    console.print(f"  Retry recommendations: {len(reliability.retries)}")
    console.print(f"  Health checks: {len(reliability.health_checks)}")


def _write_or_exit(config: WorkflowConfig, out: str) -> None:
    try:
        path = dump_workflow(config, out)
    except LoadError as e:
        console.print(f"[red]Failed to write output:[/red] {escape(str(e))}")
        sys.exit(EX_IO)
    console.print(f"[green]OK Workflow written:[/green] {path}")


@app.command()
def version() -> None:
    """Show the version of workflow-builder."""
    console.print(f"workflow-builder version {__version__}")


@app.command()
def validate(
    workflow_file: Annotated[str, typer.Argument(help="Path to workflow YAML/JSON file")],
    strict: Annotated[
        bool, typer.Option("--strict", help="Treat warnings as validation failures")
    ] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Print the result as JSON")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose output")] = False,
) -> None:
    """Validate a workflow definition.

    Checks dependency targets, cycles, timeouts, feature step completeness,
    parameter templates, and reports parallelization opportunities.

    Exit Codes:
        EX_OK (0): No errors (and no warnings under --strict)
        EX_SCHEMA (3): Definition could not be loaded
        EX_INVALID (4): Validation reported errors (or warnings under --strict)
        EX_UNKNOWN (70): Unexpected error
    """
    try:
        builder = _load_or_exit(workflow_file, verbose)
        result = builder.validate(settings)
        failed = not result.valid or (strict and bool(result.warnings))

        if json_output:
            console.print_json(result.model_dump_json())
        else:
            _display_validation(result)
            if failed:
                console.print(f"[red]Validation failed:[/red] {builder.name}")
            else:
                console.print(f"[green]OK Workflow is valid:[/green] {builder.name}")
            console.print(
                f"  Errors: {len(result.errors)}  Warnings: {len(result.warnings)}  "
                f"Optimizations: {len(result.optimizations)}"
            )

        sys.exit(EX_INVALID if failed else EX_OK)

    except Exception as e:
        _unexpected_error(e, verbose)


@app.command()
def optimize(
    workflow_file: Annotated[str, typer.Argument(help="Path to workflow YAML/JSON file")],
    json_output: Annotated[
        bool, typer.Option("--json", help="Print the optimized workflow as JSON")
    ] = False,
    out: Annotated[
        str | None, typer.Option("--out", help="Write the optimized workflow to a file")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose output")] = False,
) -> None:
    """Run optimization analysis on a workflow definition.

    Exit Codes:
        EX_OK (0): Analysis completed
        EX_SCHEMA (3): Definition could not be loaded
        EX_IO (12): Output could not be written
        EX_UNKNOWN (70): Unexpected error
    """
    try:
        builder = _load_or_exit(workflow_file, verbose)
        optimized = builder.optimize(settings)

        if out:
            _write_or_exit(optimized, out)
        elif json_output:
            console.print_json(optimized.model_dump_json(exclude_none=True))
        else:
            _display_optimizations(optimized)

        sys.exit(EX_OK)

    except Exception as e:
        _unexpected_error(e, verbose)


@app.command()
def params(
    workflow_file: Annotated[str, typer.Argument(help="Path to workflow YAML/JSON file")],
) -> None:
    """List the template parameters ({{name}} placeholders) found in a workflow."""
    builder = _load_or_exit(workflow_file, False)
    template = builder.export_as_template()

    if not template.parameters:
        console.print("[dim]No template parameters found[/dim]")
        sys.exit(EX_OK)

    table = Table(title=f"Template Parameters ({len(template.parameters)})")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Type", style="yellow")
    table.add_column("Found In")
    for parameter in template.parameters:
        table.add_row(parameter.name, parameter.type, parameter.description)
    console.print(table)
    sys.exit(EX_OK)


@app.command()
def templates() -> None:
    """List the predefined workflow templates."""
    table = Table(title="Predefined Templates")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Description", style="green")
    table.add_column("Parameters")

    for name, template in list_templates():
        parameters = ", ".join(
            p.name if p.required else f"{p.name} (default: {p.default})"
            for p in template.parameters
        )
        table.add_row(name, template.description, parameters)

    console.print(table)
    sys.exit(EX_OK)


@app.command()
def instantiate(
    template_name: Annotated[str, typer.Argument(help="Predefined template name")],
    var: Annotated[
        list[str] | None, typer.Option("--var", help="Template parameter (key=value)")
    ] = None,
    out: Annotated[
        str | None, typer.Option("--out", help="Write the workflow to a YAML/JSON file")
    ] = None,
) -> None:
    """Create a workflow from a predefined template.

    Exit Codes:
        EX_OK (0): Workflow created
        EX_USAGE (2): Bad --var, unknown template or missing parameters
        EX_IO (12): Output could not be written
    """
    try:
        variables = parse_variables(var or [])
        config = WorkflowBuilder.from_template(template_name, variables).build()
    except (LoadError, BuildError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(EX_USAGE)

    logger.debug("template_cli_instantiated", template=template_name, workflow_id=config.id)

    if out:
        _write_or_exit(config, out)
    else:
        console.print_json(config.model_dump_json(exclude_none=True))
    sys.exit(EX_OK)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
