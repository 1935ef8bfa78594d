"""Parameter resolution for ready actions.

The resolver turns an action's parsed params into concrete values using the
outputs recorded so far. It never mutates the result store, so resolving the
same action twice against an unchanged store yields equal results.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from actiongraph.core.config import Settings, get_settings
from actiongraph.models.enums import ActionStatus
from actiongraph.services.workflow.exceptions import (
    UnresolvedProducerError,
    UnresolvedReferenceWarning,
)
from actiongraph.services.workflow.references import (
    ListValue,
    LiteralValue,
    ObjectValue,
    ParamValue,
    PathSegment,
    ReferencePath,
    ReferenceValue,
    TemplateValue,
)

if TYPE_CHECKING:
    from actiongraph.schemas.workflow import Action
    from actiongraph.services.workflow.topology import WorkflowTopology

logger = logging.getLogger(__name__)

_MISSING = object()

# First path segment that addresses the whole output
OUTPUT_SEGMENT = "output"


@dataclass(frozen=True)
class ResolvedParams:
    """Concrete params for one dispatch.

    Attributes:
        params: Resolved parameter values.
        warnings: Human-readable warnings, one per unresolved reference.
        unresolved: Structured form of the same warnings.
    """

    params: dict[str, Any]
    warnings: list[str] = field(default_factory=list)
    unresolved: list[UnresolvedReferenceWarning] = field(default_factory=list)


def lookup_path(output: Any, path: Sequence[PathSegment]) -> Any:
    """Follow a field path through an output.

    Returns the ``_MISSING`` sentinel when any segment is absent.
    """
    if path and path[0] == OUTPUT_SEGMENT:
        if not (isinstance(output, Mapping) and OUTPUT_SEGMENT in output):
            path = path[1:]

    current = output
    for segment in path:
        if isinstance(current, Mapping):
            if segment in current:
                current = current[segment]
            elif isinstance(segment, int) and str(segment) in current:
                current = current[str(segment)]
            else:
                return _MISSING
        elif isinstance(current, (list, tuple)):
            if isinstance(segment, str):
                if not segment.isdigit():
                    return _MISSING
                segment = int(segment)
            if not 0 <= segment < len(current):
                return _MISSING
            current = current[segment]
        else:
            return _MISSING
    return current


def render_text(value: Any) -> str:
    """Text form of a value embedded in a template string."""
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, (Mapping, list, tuple, bool)):
        return json.dumps(value, default=str)
    return str(value)


class ParameterResolver:
    """Resolves parsed params against recorded outputs.

    Example:
        >>> resolver = ParameterResolver(topology)
        >>> resolved = resolver.resolve(action, store.view, statuses=state.statuses)
        >>> resolved.params
        {'target': '10.0.0.1'}
    """

    def __init__(self, topology: WorkflowTopology, settings: Settings | None = None) -> None:
        self.topology = topology
        self.settings = settings or topology.settings or get_settings()

    def resolve(
        self,
        action: Action,
        results: Mapping[str, Any],
        *,
        runtime_inputs: Mapping[str, Any] | None = None,
        is_entrypoint: bool = False,
        excused: frozenset[str] = frozenset(),
        statuses: Mapping[str, ActionStatus] | None = None,
    ) -> ResolvedParams:
        """Resolve every param of an action.

        Args:
            action: Action being dispatched.
            results: Outputs of succeeded actions.
            runtime_inputs: Run inputs, applied only to the entrypoint.
            is_entrypoint: Whether the action is the run's entrypoint.
            excused: Producers a join gate allowed to still be in flight.
            statuses: Current action statuses; tells failed and skipped
                      producers apart from unfinished ones.

        Returns:
            ResolvedParams with values, warnings and structured warnings.

        Raises:
            UnresolvedProducerError: A referenced producer has not finished
                and is not excused.
        """
        unresolved: list[UnresolvedReferenceWarning] = []
        params: dict[str, Any] = {}

        for name, value in self.topology.params(action.ref).items():
            params[name] = self._resolve_value(
                action.ref, name, value, results, statuses, excused, unresolved
            )

        if is_entrypoint and runtime_inputs is not None:
            if action.component_id == self.settings.GRAPH_INPUT_COMPONENT_ID:
                params[self.settings.RUNTIME_INPUTS_KEY] = dict(runtime_inputs)
            else:
                params = {**params, **runtime_inputs}

        for warning in unresolved:
            logger.warning(
                f"[{action.ref}] {warning.message}",
                extra={"context": {"action_ref": action.ref, "reason": warning.reason}},
            )

        return ResolvedParams(
            params=params,
            warnings=[warning.message for warning in unresolved],
            unresolved=unresolved,
        )

    def _resolve_value(
        self,
        ref: str,
        target: str,
        value: ParamValue,
        results: Mapping[str, Any],
        statuses: Mapping[str, ActionStatus] | None,
        excused: frozenset[str],
        unresolved: list[UnresolvedReferenceWarning],
    ) -> Any:
        match value:
            case LiteralValue(value=literal):
                return literal
            case ReferenceValue(reference=reference):
                return self._resolve_reference(
                    ref, target, reference, results, statuses, excused, unresolved
                )
            case TemplateValue(parts=parts):
                return "".join(
                    render_text(
                        self._resolve_reference(
                            ref, target, part, results, statuses, excused, unresolved
                        )
                    )
                    if isinstance(part, ReferencePath)
                    else part
                    for part in parts
                )
            case ObjectValue(entries=entries):
                return {
                    key: self._resolve_value(
                        ref, f"{target}.{key}", entry, results, statuses, excused, unresolved
                    )
                    for key, entry in entries
                }
            case ListValue(items=items):
                return [
                    self._resolve_value(
                        ref, f"{target}[{i}]", item, results, statuses, excused, unresolved
                    )
                    for i, item in enumerate(items)
                ]

    def _resolve_reference(
        self,
        ref: str,
        target: str,
        reference: ReferencePath,
        results: Mapping[str, Any],
        statuses: Mapping[str, ActionStatus] | None,
        excused: frozenset[str],
        unresolved: list[UnresolvedReferenceWarning],
    ) -> Any:
        producer = reference.ref
        if producer in results:
            found = lookup_path(results[producer], reference.path)
            if found is not _MISSING:
                return found
            reason = "missing_field"
        else:
            status = statuses.get(producer) if statuses is not None else None
            if status == ActionStatus.FAILED:
                reason = "upstream_failed"
            elif status == ActionStatus.SKIPPED:
                reason = "upstream_skipped"
            elif producer in excused:
                reason = "not_completed"
            else:
                raise UnresolvedProducerError(ref, producer)

        unresolved.append(
            UnresolvedReferenceWarning(
                target=target,
                source_ref=producer,
                source_path=reference.dotted_path,
                reason=reason,
            )
        )
        return None


__all__ = [
    "OUTPUT_SEGMENT",
    "ParameterResolver",
    "ResolvedParams",
    "lookup_path",
    "render_text",
]
