"""Ordered directed graph for workflow dependency analysis.

This module provides a directed graph whose node and edge iteration order is
the insertion order. The scheduler's decisions must be reproducible from the
definition alone, so every traversal built on this graph visits nodes in the
order the workflow definition declared them.

Time Complexity:
- Node/Edge addition: O(1)
- Successor/predecessor lookup: O(1)

Space Complexity: O(V + E)
"""

from collections.abc import Hashable, Iterable, Iterator
from typing import Generic, TypeVar

NodeId = TypeVar("NodeId", bound=Hashable)


class Graph(Generic[NodeId]):
    """Directed graph with insertion-ordered nodes and edges.

    Maintains forward and reverse adjacency for efficient predecessor and
    successor lookups. Adding the same edge twice is a no-op, since an action
    may reference the same producer from several parameters.

    Type Parameters:
        NodeId: Hashable type used as node identifier (action refs).

    Example:
        >>> graph = Graph[str]()
        >>> graph.add_edge("scan", "report")
        >>> graph.get_successors("scan")
        ['report']
    """

    __slots__ = ("_adjacency", "_edge_count", "_nodes", "_reverse_adjacency")

    def __init__(self) -> None:
        """Initialize an empty directed graph."""
        # dicts double as ordered sets
        self._nodes: dict[NodeId, int] = {}
        self._adjacency: dict[NodeId, dict[NodeId, None]] = {}
        self._reverse_adjacency: dict[NodeId, dict[NodeId, None]] = {}
        self._edge_count: int = 0

    @property
    def node_count(self) -> int:
        """Get the number of nodes in the graph."""
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        """Get the number of distinct edges in the graph."""
        return self._edge_count

    @property
    def nodes(self) -> list[NodeId]:
        """Nodes in insertion order."""
        return list(self._nodes)

    def add_node(self, node_id: NodeId) -> None:
        """Add a node to the graph.

        If the node already exists, this is a no-op and its position in the
        iteration order is unchanged.

        Args:
            node_id: The identifier for the node to add.
        """
        if node_id not in self._nodes:
            self._nodes[node_id] = len(self._nodes)
            self._adjacency[node_id] = {}
            self._reverse_adjacency[node_id] = {}

    def add_edge(self, source: NodeId, target: NodeId) -> None:
        """Add a directed edge from source to target.

        Both nodes are added to the graph if they don't exist.

        Args:
            source: The source node ID.
            target: The target node ID.
        """
        self.add_node(source)
        self.add_node(target)
        if target in self._adjacency[source]:
            return
        self._adjacency[source][target] = None
        self._reverse_adjacency[target][source] = None
        self._edge_count += 1

    def has_edge(self, source: NodeId, target: NodeId) -> bool:
        """Check if an edge exists from source to target."""
        return target in self._adjacency.get(source, {})

    def position(self, node_id: NodeId) -> int:
        """Insertion index of a node.

        Raises:
            KeyError: If the node is not in the graph.
        """
        return self._nodes[node_id]

    def get_successors(self, node_id: NodeId) -> list[NodeId]:
        """Get successor nodes in edge insertion order.

        Returns:
            List of successor node IDs. Empty list if node has no successors.
        """
        return list(self._adjacency.get(node_id, ()))

    def get_predecessors(self, node_id: NodeId) -> list[NodeId]:
        """Get predecessor nodes in edge insertion order.

        Returns:
            List of predecessor node IDs. Empty list if node has no predecessors.
        """
        return list(self._reverse_adjacency.get(node_id, ()))

    def get_in_degree(self, node_id: NodeId) -> int:
        """Get the number of incoming edges for a node."""
        return len(self._reverse_adjacency.get(node_id, ()))

    def get_out_degree(self, node_id: NodeId) -> int:
        """Get the number of outgoing edges for a node."""
        return len(self._adjacency.get(node_id, ()))

    def sort_by_position(self, node_ids: Iterable[NodeId]) -> list[NodeId]:
        """Order arbitrary nodes by insertion index."""
        return sorted(node_ids, key=self._nodes.__getitem__)

    def copy(self) -> "Graph[NodeId]":
        """Create a copy with independent adjacency (same ordering).

        Returns:
            A new Graph instance with the same nodes and edges.
        """
        new_graph = Graph[NodeId]()
        new_graph._nodes = dict(self._nodes)
        new_graph._adjacency = {k: dict(v) for k, v in self._adjacency.items()}
        new_graph._reverse_adjacency = {
            k: dict(v) for k, v in self._reverse_adjacency.items()
        }
        new_graph._edge_count = self._edge_count
        return new_graph

    def __contains__(self, node_id: object) -> bool:
        """Check if a node exists in the graph."""
        return node_id in self._nodes

    def __iter__(self) -> Iterator[NodeId]:
        """Iterate nodes in insertion order."""
        return iter(self._nodes)

    def __len__(self) -> int:
        """Get the number of nodes in the graph."""
        return len(self._nodes)

    def __repr__(self) -> str:
        """Return string representation of the graph."""
        return f"Graph(nodes={self.node_count}, edges={self.edge_count})"
