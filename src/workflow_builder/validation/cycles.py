"""Dependency cycle detection.

Three-color depth-first search over declared dependencies: a step is
*unvisited*, *on the current path* (``recursion_stack``) or *done*
(``visited``). Reaching a dependency that is still on the current path
closes a cycle.
"""

from collections.abc import Iterable, Iterator

import structlog

from workflow_builder.graph import index_steps, iter_steps
from workflow_builder.types import BaseStep

logger = structlog.get_logger(__name__)


def detect_cycles(steps: Iterable[BaseStep]) -> list[list[str]]:
    """Find dependency cycles as ordered step-id chains.

    Each chain starts at the first step of the cycle on the DFS path and ends
    with that id repeated, e.g. ``["a", "b", "c", "a"]`` for
    a → b → c → a. Chains are reported in discovery order, which is not
    necessarily the shortest or lexicographically smallest rotation.

    DFS is started from every unvisited step in declaration order. Each
    top-level search records at most one cycle, so disjoint cycles are found
    by the searches started from their own unvisited roots. Dependencies on
    unknown ids are treated as leaves.

    Args:
        steps: Top-level workflow steps (nested children are included)

    Returns:
        List of cycles, each a list of step ids
    """
    nodes = list(iter_steps(steps))
    index = index_steps(nodes)

    visited: set[str] = set()
    recursion_stack: set[str] = set()
    path: list[str] = []
    cycles: list[list[str]] = []

    def enter(step_id: str) -> Iterator[str]:
        visited.add(step_id)
        recursion_stack.add(step_id)
        path.append(step_id)
        step = index.get(step_id)
        return iter(step.dependencies if step is not None else ())

    def dfs(root_id: str, found: list[list[str]]) -> None:
        # Explicit stack of dependency iterators; chains may exceed the recursion limit
        stack = [enter(root_id)]
        while stack:
            dep_id = next(stack[-1], None)
            if dep_id is None:
                stack.pop()
                recursion_stack.discard(path.pop())
                continue

            if dep_id in recursion_stack:
                if not found:
                    start = path.index(dep_id)
                    found.append([*path[start:], dep_id])
                continue

            if dep_id in visited:
                continue

            stack.append(enter(dep_id))

    for node in nodes:
        if node.id in visited:
            continue
        found: list[list[str]] = []
        dfs(node.id, found)
        cycles.extend(found)

    if cycles:
        logger.debug("dependency_cycles_detected", count=len(cycles), cycles=cycles)

    return cycles


def format_cycle(cycle: list[str]) -> str:
    """Render a cycle as ``a -> b -> c -> a``."""
    return " -> ".join(cycle)
