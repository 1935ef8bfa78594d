"""Tests for ExecutionState and ResultStore."""

import pytest

from actiongraph.models.enums import ActionStatus
from actiongraph.schemas.workflow import Action
from actiongraph.services.workflow.exceptions import IllegalTransitionError, ResultOverwriteError
from actiongraph.services.workflow.state import ExecutionState, ResultStore


@pytest.fixture
def state() -> ExecutionState:
    actions = [
        Action(ref="a", component_id="x"),
        Action(ref="b", component_id="y"),
        Action(ref="island", component_id="z"),
    ]
    return ExecutionState(actions, scheduled=["a", "b"])


class TestExecutionState:
    """Tests for the action status table."""

    def test_initial_state(self, state: ExecutionState) -> None:
        """Test every action starts pending, indexed in definition order."""
        assert [s.ref for s in state] == ["a", "b", "island"]
        assert state.handle("b") == 1
        assert state["island"].scheduled is False
        assert set(state.statuses.values()) == {ActionStatus.PENDING}
        assert len(state) == 3
        assert "a" in state
        assert "ghost" not in state

    def test_lifecycle_and_attempts(self, state: ExecutionState) -> None:
        """Test the full pending -> succeeded path with a retry."""
        state.transition("a", ActionStatus.READY)
        state.transition("a", ActionStatus.RUNNING)
        assert state["a"].attempt == 1

        state.transition("a", ActionStatus.FAILED)
        assert state["a"].terminal_sequence == 1

        state.transition("a", ActionStatus.RUNNING)
        assert state["a"].attempt == 2
        assert state["a"].terminal_sequence is None

        state.transition("a", ActionStatus.SUCCEEDED)
        assert state["a"].terminal_sequence == 2
        assert state.statuses["a"] == ActionStatus.SUCCEEDED

    def test_terminal_sequence_orders_completions(self, state: ExecutionState) -> None:
        """Test logical time increases across actions."""
        state.transition("b", ActionStatus.SKIPPED)
        state.transition("a", ActionStatus.SKIPPED)

        assert state["b"].terminal_sequence < state["a"].terminal_sequence

    @pytest.mark.parametrize(
        ("path", "illegal"),
        [
            ([], ActionStatus.RUNNING),
            ([ActionStatus.READY], ActionStatus.SKIPPED),
            ([ActionStatus.SKIPPED], ActionStatus.READY),
            (
                [ActionStatus.READY, ActionStatus.RUNNING, ActionStatus.SUCCEEDED],
                ActionStatus.RUNNING,
            ),
        ],
    )
    def test_illegal_transitions(self, state: ExecutionState, path, illegal) -> None:
        """Test moves outside the lifecycle are rejected."""
        for status in path:
            state.transition("a", status)

        with pytest.raises(IllegalTransitionError) as exc_info:
            state.transition("a", illegal)
        assert exc_info.value.requested == str(illegal)

    def test_statuses_view_is_read_only(self, state: ExecutionState) -> None:
        """Test collaborators cannot write through the status view."""
        with pytest.raises(TypeError):
            state.statuses["a"] = ActionStatus.SUCCEEDED  # type: ignore[index]

    def test_queries_ignore_unscheduled(self, state: ExecutionState) -> None:
        """Test status queries and completion only consider scheduled actions."""
        assert state.refs_with_status(ActionStatus.PENDING) == ["a", "b"]
        assert state.refs_with_status(ActionStatus.PENDING, scheduled_only=False) == [
            "a",
            "b",
            "island",
        ]

        state.transition("a", ActionStatus.SKIPPED)
        state.transition("b", ActionStatus.SKIPPED)
        assert state.all_terminal is True

    def test_records(self, state: ExecutionState) -> None:
        """Test the per-action table mirrors the state."""
        state.transition("a", ActionStatus.SKIPPED)
        state["a"].skip_reason = "upstream 'x' failed"

        records = state.to_records()
        assert list(records) == ["a", "b", "island"]
        assert records["a"].status == ActionStatus.SKIPPED
        assert records["a"].skip_reason == "upstream 'x' failed"
        assert records["island"].scheduled is False


class TestResultStore:
    """Tests for the append-only output store."""

    def test_record_and_view(self) -> None:
        """Test outputs are readable through the view."""
        store = ResultStore()
        store.record("a", {"x": 1})

        assert store.view == {"a": {"x": 1}}
        assert "a" in store
        assert len(store) == 1

    def test_overwrite_rejected(self) -> None:
        """Test an output can be recorded only once."""
        store = ResultStore()
        store.record("a", 1)
        with pytest.raises(ResultOverwriteError):
            store.record("a", 2)
        assert store.view["a"] == 1

    def test_view_is_read_only(self) -> None:
        """Test the view rejects writes."""
        store = ResultStore()
        with pytest.raises(TypeError):
            store.view["a"] = 1  # type: ignore[index]
