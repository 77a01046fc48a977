"""Graph helpers shared by the builder, validator and optimizer.

Workflows are kept as a flat, id-keyed arena: edges are step ids, never
object references. Nested children of composite steps (parallel,
sequential, conditional branches) are graph nodes in their own right;
fallback steps are alternates and are not indexed.
"""

from collections.abc import Iterable, Iterator, Sequence

from workflow_builder.types import BaseStep


def iter_steps(steps: Iterable[BaseStep]) -> Iterator[BaseStep]:
    """Yield every graph node in pre-order (parent before its children)."""
    for step in steps:
        yield step
        yield from iter_steps(step.children())


def iter_steps_with_fallbacks(steps: Iterable[BaseStep]) -> Iterator[BaseStep]:
    """Yield every graph node followed by its fallback chain (and nested fallbacks)."""
    for step in iter_steps(steps):
        yield step
        if step.fallback is not None:
            yield from iter_steps_with_fallbacks([step.fallback])


def index_steps(steps: Iterable[BaseStep]) -> dict[str, BaseStep]:
    """Map step id to step for every graph node.

    On duplicate ids the first node in pre-order wins.
    """
    index: dict[str, BaseStep] = {}
    for step in iter_steps(steps):
        index.setdefault(step.id, step)
    return index


def has_edge(first: BaseStep, second: BaseStep) -> bool:
    """Return True if either step declares a dependency on the other."""
    return second.id in first.dependencies or first.id in second.dependencies


def find_independent_groups(steps: Sequence[BaseStep]) -> list[list[BaseStep]]:
    """Greedily partition steps into groups with no dependency edges between members.

    Steps are visited in declaration order. Each unprocessed step opens a group
    and pulls in every later unprocessed step that has no edge to or from any
    member collected so far. Every step lands in exactly one group, so groups of
    size one are returned too; callers filter on size.

    The result depends only on the input order, so repeated calls on the same
    snapshot return identical groups.

    Args:
        steps: Steps to partition (typically the top-level steps of a workflow)

    Returns:
        Groups in discovery order
    """
    groups: list[list[BaseStep]] = []
    processed: set[str] = set()

    for start in steps:
        if start.id in processed:
            continue

        group = [start]
        processed.add(start.id)

        for candidate in steps:
            if candidate.id in processed:
                continue
            # Checked against every member, not only the step that opened the group
            if any(has_edge(member, candidate) for member in group):
                continue
            group.append(candidate)
            processed.add(candidate.id)

        groups.append(group)

    return groups
