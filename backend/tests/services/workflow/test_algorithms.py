"""Tests for graph algorithms.

Covers cycle detection, level-based topological sort and the reachability
closures the validator uses to decide which actions a run schedules.
"""

from actiongraph.services.workflow.algorithms import GraphAlgorithms
from actiongraph.services.workflow.graph import Graph


def _graph(*edges: tuple[str, str], nodes: list[str] | None = None) -> Graph[str]:
    graph = Graph[str]()
    for node in nodes or []:
        graph.add_node(node)
    for source, target in edges:
        graph.add_edge(source, target)
    return graph


class TestCycleDetection:
    """Tests for detect_cycle."""

    def test_acyclic_graph_has_no_cycle(self) -> None:
        """Test a diamond reports no cycle."""
        graph = _graph(("a", "b"), ("a", "c"), ("b", "d"), ("c", "d"))
        assert GraphAlgorithms.detect_cycle(graph) is None

    def test_simple_cycle_path(self) -> None:
        """Test a three-node cycle is reported with its path closed."""
        graph = _graph(("a", "b"), ("b", "c"), ("c", "a"))
        assert GraphAlgorithms.detect_cycle(graph) == ["a", "b", "c", "a"]

    def test_self_loop(self) -> None:
        """Test a self-referencing node is a cycle."""
        graph = _graph(("a", "a"))
        assert GraphAlgorithms.detect_cycle(graph) == ["a", "a"]

    def test_cycle_not_reachable_from_first_node(self) -> None:
        """Test cycles are found in any component."""
        graph = _graph(("x", "y"), ("p", "q"), ("q", "p"))
        assert GraphAlgorithms.detect_cycle(graph) == ["p", "q", "p"]

    def test_long_chain_does_not_recurse(self) -> None:
        """Test a chain far deeper than the recursion limit."""
        graph = Graph[int]()
        for i in range(5000):
            graph.add_edge(i, i + 1)
        assert GraphAlgorithms.detect_cycle(graph) is None

        graph.add_edge(5000, 0)
        cycle = GraphAlgorithms.detect_cycle(graph)
        assert cycle is not None
        assert cycle[0] == cycle[-1]
        assert len(cycle) == 5002


class TestTopologicalSortLevels:
    """Tests for topological_sort_levels."""

    def test_diamond_levels(self) -> None:
        """Test a diamond yields three levels."""
        graph = _graph(("a", "b"), ("a", "c"), ("b", "d"), ("c", "d"))
        assert GraphAlgorithms.topological_sort_levels(graph) == [["a"], ["b", "c"], ["d"]]

    def test_level_order_follows_insertion(self) -> None:
        """Test nodes within a level keep definition order, not edge order."""
        graph = _graph(("root", "z"), ("root", "m"), nodes=["root", "m", "z"])
        assert GraphAlgorithms.topological_sort_levels(graph) == [["root"], ["m", "z"]]

    def test_cycle_returns_none(self) -> None:
        """Test a cyclic graph cannot be sorted."""
        graph = _graph(("a", "b"), ("b", "a"))
        assert GraphAlgorithms.topological_sort_levels(graph) is None

    def test_empty_graph(self) -> None:
        """Test an empty graph has no levels."""
        assert GraphAlgorithms.topological_sort_levels(Graph[str]()) == []


class TestReachability:
    """Tests for reachability, ancestor and descendant closures."""

    def test_reachable_includes_start(self) -> None:
        """Test forward reachability is inclusive of the start nodes."""
        graph = _graph(("a", "b"), ("b", "c"), ("x", "c"))
        assert GraphAlgorithms.find_reachable_from(graph, ["a"]) == {"a", "b", "c"}

    def test_unknown_start_is_ignored(self) -> None:
        """Test starting from a node not in the graph reaches nothing."""
        graph = _graph(("a", "b"))
        assert GraphAlgorithms.find_reachable_from(graph, ["missing"]) == set()

    def test_ancestors_exclusive(self) -> None:
        """Test ancestors exclude the nodes themselves."""
        graph = _graph(("a", "b"), ("b", "c"), ("x", "c"))
        assert GraphAlgorithms.find_ancestors(graph, ["c"]) == {"a", "b", "x"}

    def test_descendants_exclusive(self) -> None:
        """Test descendants exclude the nodes themselves."""
        graph = _graph(("a", "b"), ("b", "c"))
        assert GraphAlgorithms.find_descendants(graph, ["a"]) == {"b", "c"}
