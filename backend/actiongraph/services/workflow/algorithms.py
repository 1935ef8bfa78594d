"""Graph algorithms for workflow validation and scheduling.

This module provides the graph algorithms the validator and the scheduler
rely on:
- Cycle detection using iterative DFS with path tracking
- Topological sort using Kahn's algorithm, grouped into levels
- Forward reachability (what the entrypoint leads to)
- Ancestor and descendant closures

Every algorithm visits nodes in the graph's insertion order, so results are
identical across processes for the same definition.

Time Complexity: O(V + E) for all algorithms.
Space Complexity: O(V + E) for all algorithms.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Hashable, Iterable
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from actiongraph.services.workflow.graph import Graph

NodeId = TypeVar("NodeId", bound=Hashable)


class GraphAlgorithms:
    """Collection of graph algorithms for workflow DAGs.

    Example:
        >>> graph = Graph[str]()
        >>> graph.add_edge("a", "b")
        >>> graph.add_edge("b", "a")
        >>> GraphAlgorithms.detect_cycle(graph)
        ['a', 'b', 'a']
    """

    @staticmethod
    def detect_cycle(graph: Graph[NodeId]) -> list[NodeId] | None:
        """Detect a cycle using iterative DFS with path tracking.

        Iterative so that long action chains cannot hit the recursion limit.

        Args:
            graph: The graph to check for cycles.

        Returns:
            Nodes forming the cycle (first node repeated at the end) if one
            exists, None otherwise.

        Example:
            >>> graph.add_edge(a, b)
            >>> graph.add_edge(b, c)
            >>> graph.add_edge(c, a)
            >>> GraphAlgorithms.detect_cycle(graph)
            [a, b, c, a]
        """
        visited: set[NodeId] = set()
        on_path: set[NodeId] = set()

        for root in graph.nodes:
            if root in visited:
                continue

            path: list[NodeId] = [root]
            stack: list[list[NodeId]] = [graph.get_successors(root)]
            visited.add(root)
            on_path.add(root)

            while stack:
                pending = stack[-1]
                if not pending:
                    stack.pop()
                    on_path.discard(path.pop())
                    continue

                neighbor = pending.pop(0)
                if neighbor in on_path:
                    cycle_start = path.index(neighbor)
                    return [*path[cycle_start:], neighbor]
                if neighbor in visited:
                    continue

                visited.add(neighbor)
                on_path.add(neighbor)
                path.append(neighbor)
                stack.append(graph.get_successors(neighbor))

        return None

    @staticmethod
    def topological_sort_levels(graph: Graph[NodeId]) -> list[list[NodeId]] | None:
        """Kahn's algorithm for level-based topological sort.

        Groups nodes by execution level where nodes at the same level can
        execute in parallel. Each level is ordered by insertion order.

        Args:
            graph: The graph to sort.

        Returns:
            List of levels, or None if the graph contains a cycle.

        Example:
            >>> graph.add_edge(a, b)
            >>> graph.add_edge(a, c)
            >>> graph.add_edge(b, d)
            >>> graph.add_edge(c, d)
            >>> GraphAlgorithms.topological_sort_levels(graph)
            [[a], [b, c], [d]]
        """
        in_degree: dict[NodeId, int] = {node: graph.get_in_degree(node) for node in graph.nodes}
        current = [node for node in graph.nodes if in_degree[node] == 0]

        levels: list[list[NodeId]] = []
        placed = 0

        while current:
            levels.append(current)
            placed += len(current)
            released: set[NodeId] = set()
            for node in current:
                for successor in graph.get_successors(node):
                    in_degree[successor] -= 1
                    if in_degree[successor] == 0:
                        released.add(successor)
            current = graph.sort_by_position(released)

        if placed != graph.node_count:
            return None
        return levels

    @staticmethod
    def find_reachable_from(graph: Graph[NodeId], start_nodes: Iterable[NodeId]) -> set[NodeId]:
        """Find every node reachable from the start nodes (inclusive) using BFS.

        Args:
            graph: The graph to analyze.
            start_nodes: Starting nodes (typically the entrypoint).

        Returns:
            Set of reachable node IDs, including the start nodes.
        """
        reachable: set[NodeId] = set()
        queue: deque[NodeId] = deque(node for node in start_nodes if node in graph)

        while queue:
            current = queue.popleft()
            if current in reachable:
                continue
            reachable.add(current)
            for successor in graph.get_successors(current):
                if successor not in reachable:
                    queue.append(successor)

        return reachable

    @staticmethod
    def find_ancestors(graph: Graph[NodeId], nodes: Iterable[NodeId]) -> set[NodeId]:
        """Find every node with a path into any of the given nodes (exclusive)."""
        ancestors: set[NodeId] = set()
        queue: deque[NodeId] = deque()
        for node in nodes:
            queue.extend(graph.get_predecessors(node))

        while queue:
            current = queue.popleft()
            if current in ancestors:
                continue
            ancestors.add(current)
            queue.extend(graph.get_predecessors(current))

        return ancestors

    @staticmethod
    def find_descendants(graph: Graph[NodeId], nodes: Iterable[NodeId]) -> set[NodeId]:
        """Find every node reachable from the given nodes (exclusive)."""
        start = list(nodes)
        reachable = GraphAlgorithms.find_reachable_from(
            graph,
            (successor for node in start for successor in graph.get_successors(node)),
        )
        return reachable


__all__ = [
    "GraphAlgorithms",
]
