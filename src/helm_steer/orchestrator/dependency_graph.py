"""Dependency graph for ordering release operations."""

from typing import Dict, List, Set
from dataclasses import dataclass, field

from helm_steer.orchestrator.reconciler import ReleaseChange
from helm_steer.utils.errors import DependencyCycleError


@dataclass
class DependencyNode:
    """Node in the dependency graph."""

    name: str  # `namespace.release`
    change: ReleaseChange
    dependencies: Set[str] = field(default_factory=set)  # Node names this node depends on

    @classmethod
    def from_change(cls, change: ReleaseChange) -> "DependencyNode":
        """Build a node from an action-tagged release."""
        return cls(
            name=change.key,
            change=change,
            dependencies=set(change.release.namespaced_dependencies)
        )


class DependencyGraph:
    """Directed graph of release dependencies."""

    def __init__(self):
        """Initialize empty dependency graph."""
        self.nodes: Dict[str, DependencyNode] = {}

    def add_change(self, change: ReleaseChange) -> None:
        """Add an action-tagged release to the graph.

        Args:
            change: Release change to add; replaces a node with the same name
        """
        node = DependencyNode.from_change(change)
        self.nodes[node.name] = node

    def get_dependencies(self, name: str) -> Set[str]:
        """Get direct dependencies of a node that are part of the graph.

        Args:
            name: Node name

        Returns:
            Set of node names
        """
        if name not in self.nodes:
            return set()
        return {dep for dep in self.nodes[name].dependencies if dep in self.nodes}

    def get_dependents(self, name: str) -> Set[str]:
        """Get direct dependents of a node.

        Args:
            name: Node name

        Returns:
            Set of node names that depend on this node
        """
        return {
            node_name for node_name, node in self.nodes.items()
            if name in node.dependencies
        }

    def resolve_rounds(self) -> List[List[str]]:
        """Group nodes into rounds; a round only depends on earlier rounds.

        Dependencies naming nodes outside the graph count as satisfied: the
        release is either unchanged or not in scope. Nodes inside a round
        are sorted by name.

        Returns:
            List of rounds, each a sorted list of node names

        Raises:
            DependencyCycleError: If the remaining nodes all wait on each other
        """
        unresolved = {name: self.get_dependencies(name) for name in self.nodes}
        rounds = []

        while unresolved:
            ready = sorted(name for name, deps in unresolved.items() if not deps)

            if not ready:
                remaining = {
                    name: sorted(deps) for name, deps in sorted(unresolved.items())
                }
                cycle_str = ", ".join(
                    f"{name} -> [{', '.join(deps)}]" for name, deps in remaining.items()
                )
                raise DependencyCycleError(
                    f"Circular dependency found: {cycle_str}",
                    unresolved=remaining,
                    suggestions=['Remove one of the `depends` entries forming the cycle']
                )

            rounds.append(ready)
            for name in ready:
                del unresolved[name]
            for deps in unresolved.values():
                deps.difference_update(ready)

        return rounds

    def resolve(self) -> List[ReleaseChange]:
        """Order the changes so every dependency comes before its dependents.

        Returns:
            Changes in a total order consistent with the dependencies

        Raises:
            DependencyCycleError: If the graph contains a cycle
        """
        return [
            self.nodes[name].change
            for round_names in self.resolve_rounds()
            for name in round_names
        ]

    def has_node(self, name: str) -> bool:
        """Check if a node exists in the graph."""
        return name in self.nodes

    def size(self) -> int:
        """Get the number of nodes in the graph."""
        return len(self.nodes)

    def is_empty(self) -> bool:
        """Check if the graph is empty."""
        return len(self.nodes) == 0

    @classmethod
    def from_changes(cls, changes: List[ReleaseChange]) -> "DependencyGraph":
        """Build a graph from action-tagged releases."""
        graph = cls()
        for change in changes:
            graph.add_change(change)
        return graph
