"""Tests for workflow definition schemas."""

import pytest
from pydantic import ValidationError

from actiongraph.models.enums import JoinStrategy
from actiongraph.schemas.workflow import Action, NodeMetadata, WorkflowDefinition


class TestActionSchema:
    """Test Action parsing and validation."""

    def test_camel_case_input(self) -> None:
        """Test that compiler output in camelCase is accepted."""
        action = Action.model_validate(
            {
                "ref": "scan",
                "componentId": "security.nmap",
                "dependsOn": ["start"],
                "inputMappings": {"target": {"sourceRef": "start", "sourceHandle": "host"}},
                "maxAttempts": 3,
                "timeoutSeconds": 30,
            }
        )

        assert action.component_id == "security.nmap"
        assert action.depends_on == ("start",)
        assert action.input_mappings["target"].source_handle == "host"
        assert action.max_attempts == 3
        assert action.timeout_seconds == 30

    def test_snake_case_input(self) -> None:
        """Test that field names are accepted as well as aliases."""
        action = Action(ref="scan", component_id="security.nmap")
        assert action.params == {}
        assert action.max_attempts == 1

    def test_dump_uses_camel_case(self) -> None:
        """Test that by_alias dumps round-trip the compiler format."""
        dumped = Action(ref="scan", component_id="x").model_dump(by_alias=True)
        assert "componentId" in dumped
        assert "maxAttempts" in dumped

    @pytest.mark.parametrize("ref", ["a.b", "a b", "{{a}}", "a[0]", ""])
    def test_invalid_refs(self, ref: str) -> None:
        """Test that refs must be addressable in reference expressions."""
        with pytest.raises(ValidationError):
            Action(ref=ref, component_id="x")

    @pytest.mark.parametrize("attempts", [0, 11])
    def test_max_attempts_bounds(self, attempts: int) -> None:
        """Test that retry attempts are bounded."""
        with pytest.raises(ValidationError):
            Action(ref="a", component_id="x", max_attempts=attempts)

    def test_non_positive_timeout_rejected(self) -> None:
        """Test that timeouts must be positive."""
        with pytest.raises(ValidationError):
            Action(ref="a", component_id="x", timeout_seconds=0)

    def test_actions_are_immutable(self) -> None:
        """Test that definitions cannot change during a run."""
        action = Action(ref="a", component_id="x")
        with pytest.raises(ValidationError):
            action.ref = "b"  # type: ignore[misc]


class TestWorkflowDefinition:
    """Test WorkflowDefinition parsing."""

    def test_bare_entrypoint_string(self) -> None:
        """Test that the entrypoint may be given as a ref string."""
        definition = WorkflowDefinition.model_validate(
            {"entrypoint": "start", "actions": [{"ref": "start", "componentId": "x"}]}
        )
        assert definition.entrypoint.ref == "start"

    def test_lookup_helpers(self) -> None:
        """Test ref listing, action lookup and metadata defaults."""
        definition = WorkflowDefinition.model_validate(
            {
                "entrypoint": {"ref": "start"},
                "actions": [
                    {"ref": "start", "componentId": "x"},
                    {"ref": "w1", "componentId": "y"},
                ],
                "nodes": {"w1": {"groupId": "g", "joinStrategy": "race"}},
            }
        )

        assert definition.refs == ["start", "w1"]
        assert definition.get_action("w1").component_id == "y"
        assert definition.get_action("missing") is None
        assert definition.metadata_for("w1").join_strategy == JoinStrategy.RACE
        assert definition.metadata_for("start") == NodeMetadata()

    def test_unknown_join_strategy_rejected(self) -> None:
        """Test that only all, any and race are valid joins."""
        with pytest.raises(ValidationError):
            NodeMetadata.model_validate({"joinStrategy": "first"})
