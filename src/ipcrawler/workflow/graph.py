"""Dependency graph leveling for workflows.

Workflows reference each other in ``requires`` by logical name, which is
the workflow key without its ``{tool}_`` prefix. Every workflow is given a
level one above the highest level of its requirements; levels are then
split into buckets by parallel group.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping

from ipcrawler.core.errors import GraphError
from ipcrawler.core.logging import get_logger
from ipcrawler.workflow.models import Workflow

LOGGER = get_logger(__name__)

SEQUENTIAL_GROUP = "_sequential_"


def logical_name(key: str) -> str:
    """Strip the tool prefix from a workflow key.

    ``nmap_port-discovery`` becomes ``port-discovery``. Keys without an
    underscore are their own logical name.
    """
    _, sep, rest = key.partition("_")
    return rest if sep and rest else key


@dataclass
class ExecutionLevel:
    """Workflows that may start once every earlier level has finished.

    ``groups`` maps a parallel group name, or SEQUENTIAL_GROUP, to the keys
    of its members.
    """

    level: int
    groups: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def sequential(self) -> List[str]:
        return self.groups.get(SEQUENTIAL_GROUP, [])

    @property
    def parallel_groups(self) -> Dict[str, List[str]]:
        return {name: keys for name, keys in self.groups.items() if name != SEQUENTIAL_GROUP}

    @property
    def workflow_keys(self) -> List[str]:
        keys = list(self.sequential)
        for members in self.parallel_groups.values():
            keys.extend(members)
        return keys


class _Mark(Enum):
    VISITING = 1
    VISITED = 2


def compute_levels(workflows: Mapping[str, Workflow]) -> Dict[str, int]:
    """Compute the level of every workflow key.

    Raises:
        GraphError: On duplicate logical names, unknown requirements or
            dependency cycles.
    """
    by_name: Dict[str, str] = {}
    for key in sorted(workflows):
        name = logical_name(key)
        if name in by_name:
            raise GraphError(
                f"workflows {by_name[name]} and {key} share the logical name {name}",
                workflow=name,
            )
        by_name[name] = key

    marks: Dict[str, _Mark] = {}
    levels: Dict[str, int] = {}

    def visit(name: str, required_by: str = "") -> int:
        mark = marks.get(name)
        if mark is _Mark.VISITING:
            raise GraphError(f"circular dependency detected involving {name}", workflow=name)
        if mark is _Mark.VISITED:
            return levels[name]

        key = by_name.get(name)
        if key is None:
            message = f"workflow {name} not found"
            if required_by:
                message += f" (required by {required_by})"
            raise GraphError(message, workflow=name)

        marks[name] = _Mark.VISITING
        level = 0
        for dep in workflows[key].requires:
            level = max(level, visit(dep, required_by=name) + 1)
        marks[name] = _Mark.VISITED
        levels[name] = level
        return level

    for key in sorted(workflows):
        visit(logical_name(key))

    return {by_name[name]: level for name, level in levels.items()}


def build_levels(workflows: Mapping[str, Workflow]) -> List[ExecutionLevel]:
    """Arrange workflows into execution levels.

    Within a level, sequential workflows and the members of each named
    group are sorted by key, and named groups are sorted by name.

    Args:
        workflows: Mapping of workflow key to Workflow.

    Returns:
        Non-empty levels in ascending order.

    Raises:
        GraphError: If the dependency graph cannot be resolved.
    """
    key_levels = compute_levels(workflows)

    buckets: Dict[int, Dict[str, List[str]]] = {}
    for key in sorted(key_levels):
        group = workflows[key].parallel_group or SEQUENTIAL_GROUP
        buckets.setdefault(key_levels[key], {}).setdefault(group, []).append(key)

    result: List[ExecutionLevel] = []
    for level in sorted(buckets):
        groups = buckets[level]
        ordered: Dict[str, List[str]] = {}
        if SEQUENTIAL_GROUP in groups:
            ordered[SEQUENTIAL_GROUP] = groups[SEQUENTIAL_GROUP]
        for name in sorted(g for g in groups if g != SEQUENTIAL_GROUP):
            ordered[name] = groups[name]
        result.append(ExecutionLevel(level=len(result), groups=ordered))

    for execution_level in result:
        LOGGER.debug(f"Level {execution_level.level}: {execution_level.groups}")

    return result
