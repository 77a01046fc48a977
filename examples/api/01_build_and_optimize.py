"""Example: Building, validating and optimizing a workflow programmatically.

Demonstrates the fluent builder API for a small training-plan workflow:
two independent fetches, a conditional gate with a fallback, and a final
plan step. The graph is validated, analyzed for optimizations, exported
as a template and instantiated again with different parameters.

Usage:
    uv run python examples/api/01_build_and_optimize.py
"""

from rich.console import Console

from workflow_builder.api import WorkflowBuilder

console = Console()


def main() -> None:
    """Build, validate and optimize a workflow using the builder API."""
    builder = (
        WorkflowBuilder(
            "weekly-plan-{{userId}}",
            "Weekly Plan",
            description="Builds a weekly training plan for one user",
            timeout=60000,
        )
        # Independent roots: candidates for a parallel group
        .add_feature_step(
            "profile",
            "Load Profile",
            "profile-store",
            "fetch",
            {"user": "{{userId}}"},
            timeout=10000,
        )
        .add_feature_step(
            "history",
            "Load History",
            "activity-store",
            "fetch_recent",
            {"user": "{{userId}}", "days": "{{days}}"},
            timeout=20000,
        )
        .add_conditional_step(
            "gate",
            "Experience Gate",
            {"type": "equals", "field": "profile.level", "value": "beginner"},
            if_true=[
                {
                    "type": "feature-call",
                    "id": "intro-plan",
                    "name": "Intro Plan",
                    "feature": "planner",
                    "operation": "intro_plan",
                    "params": {"profile": "{{profile.result}}"},
                }
            ],
            if_false=[
                {
                    "type": "feature-call",
                    "id": "full-plan",
                    "name": "Full Plan",
                    "feature": "planner",
                    "operation": "comprehensive_plan",
                    "params": {"history": "{{history.result}}"},
                    "fallback": {
                        "type": "feature-call",
                        "id": "full-plan-cached",
                        "name": "Cached Plan",
                        "feature": "plan-cache",
                        "operation": "latest",
                    },
                }
            ],
        )
        .add_dependency("gate", ["profile", "history"])
        .set_retries("gate", 2)
    )

    result = builder.validate()
    console.print(f"[bold]Valid:[/bold] {result.valid}")
    for warning in result.warnings:
        console.print(f"  [yellow]warning[/yellow] {warning.message}")
    for suggestion in result.optimizations:
        console.print(f"  [cyan]{suggestion.impact}[/cyan] {suggestion.message}")

    optimized = builder.optimize()
    performance = optimized.optimizations.performance
    for group in performance.parallelization:
        console.print(
            f"Parallel group {', '.join(group.step_ids)} "
            f"(speedup {group.estimated_speedup:.2f}x)"
        )
    for info in performance.timeout_optimization:
        console.print(
            f"Timeout {info.step_id}: {info.current_timeout}ms -> {info.recommended_timeout}ms"
        )

    template = builder.export_as_template()
    console.print(f"Template parameters: {[p.name for p in template.parameters]}")

    config = template.create({"userId": "u-42", "days": 14}).build()
    console.print(f"Instantiated workflow: [green]{config.id}[/green]")


if __name__ == "__main__":
    main()
