"""Parameter value parsing.

Action params arrive as plain JSON values. Before a run they are parsed once
into a small typed tree so the resolver never re-inspects raw strings:

- ``LiteralValue``: passed through unchanged
- ``ReferenceValue``: ``{{ref.path}}`` as a whole string, or a bare
  ``ref.path`` string whose first segment names an action
- ``TemplateValue``: a string with one or more embedded ``{{...}}``
- ``ObjectValue`` / ``ListValue``: containers of the above
"""

from __future__ import annotations

import re
from collections.abc import Collection, Iterator, Mapping
from dataclasses import dataclass
from typing import Any, TypeAlias

TEMPLATE_PATTERN = re.compile(r"\{\{\s*([^{}]*?)\s*\}\}")
_PATH_TOKEN = re.compile(r"(?:^|\.)([^.\[\]\s]+)|\[(\d+)\]")

PathSegment: TypeAlias = str | int


@dataclass(frozen=True, slots=True)
class ReferencePath:
    """A parsed reference expression.

    Attributes:
        ref: Referenced action.
        path: Field path inside the referenced output; empty for the whole
              output.
        expression: Source text, used in warnings.
    """

    ref: str
    path: tuple[PathSegment, ...]
    expression: str

    @property
    def dotted_path(self) -> str:
        """Path rendered back to ``a.b[0]`` form."""
        rendered = ""
        for segment in self.path:
            rendered += f"[{segment}]" if isinstance(segment, int) else f".{segment}"
        return rendered.removeprefix(".")


@dataclass(frozen=True, slots=True)
class LiteralValue:
    value: Any


@dataclass(frozen=True, slots=True)
class ReferenceValue:
    reference: ReferencePath


@dataclass(frozen=True, slots=True)
class TemplateValue:
    parts: tuple[str | ReferencePath, ...]


@dataclass(frozen=True, slots=True)
class ObjectValue:
    entries: tuple[tuple[str, ParamValue], ...]


@dataclass(frozen=True, slots=True)
class ListValue:
    items: tuple[ParamValue, ...]


ParamValue: TypeAlias = LiteralValue | ReferenceValue | TemplateValue | ObjectValue | ListValue


def parse_expression(expression: str) -> ReferencePath:
    """Parse ``ref.field[0].name`` into a ReferencePath.

    Raises:
        ValueError: If the expression is empty or not a path.
    """
    text = expression.strip()
    segments: list[PathSegment] = []
    position = 0
    for match in _PATH_TOKEN.finditer(text):
        if match.start() != position:
            break
        name, index = match.groups()
        segments.append(int(index) if index is not None else name)
        position = match.end()

    if not segments or position != len(text) or not isinstance(segments[0], str):
        raise ValueError(f"Invalid reference expression: {expression!r}")

    ref, *path = segments
    return ReferencePath(ref=ref, path=tuple(path), expression=text)


def _parse_string(raw: str, known_refs: Collection[str]) -> ParamValue:
    matches = list(TEMPLATE_PATTERN.finditer(raw))

    if not matches:
        # bare `ref.path`; a lone ref name stays a literal
        if "{" in raw or raw.strip() != raw:
            return LiteralValue(raw)
        try:
            reference = parse_expression(raw)
        except ValueError:
            return LiteralValue(raw)
        if reference.ref in known_refs and reference.path:
            return ReferenceValue(reference)
        return LiteralValue(raw)

    if len(matches) == 1 and matches[0].span() == (0, len(raw)):
        try:
            return ReferenceValue(parse_expression(matches[0].group(1)))
        except ValueError:
            return LiteralValue(raw)

    parts: list[str | ReferencePath] = []
    cursor = 0
    for match in matches:
        try:
            reference = parse_expression(match.group(1))
        except ValueError:
            continue
        if match.start() > cursor:
            parts.append(raw[cursor : match.start()])
        parts.append(reference)
        cursor = match.end()
    if cursor < len(raw):
        parts.append(raw[cursor:])

    if not any(isinstance(part, ReferencePath) for part in parts):
        return LiteralValue(raw)
    return TemplateValue(tuple(parts))


def parse_value(raw: Any, known_refs: Collection[str]) -> ParamValue:
    """Parse a raw param value into a ParamValue tree.

    Args:
        raw: JSON-like value from the definition.
        known_refs: Refs of the workflow; only used to recognise bare paths.

    Example:
        >>> parse_value("{{scan.hosts}}", {"scan"})
        ReferenceValue(reference=ReferencePath(ref='scan', path=('hosts',), ...))
    """
    match raw:
        case str():
            return _parse_string(raw, known_refs)
        case Mapping():
            return ObjectValue(
                tuple((str(key), parse_value(value, known_refs)) for key, value in raw.items())
            )
        case list() | tuple():
            return ListValue(tuple(parse_value(item, known_refs) for item in raw))
        case _:
            return LiteralValue(raw)


def iter_references(value: ParamValue) -> Iterator[ReferencePath]:
    """Yield every reference in a value tree, depth-first in source order."""
    match value:
        case LiteralValue():
            return
        case ReferenceValue(reference=reference):
            yield reference
        case TemplateValue(parts=parts):
            for part in parts:
                if isinstance(part, ReferencePath):
                    yield part
        case ObjectValue(entries=entries):
            for _, entry in entries:
                yield from iter_references(entry)
        case ListValue(items=items):
            for item in items:
                yield from iter_references(item)


def collect_references(params: Mapping[str, ParamValue]) -> list[ReferencePath]:
    """All references found in parsed params, in param order."""
    return [reference for value in params.values() for reference in iter_references(value)]


__all__ = [
    "TEMPLATE_PATTERN",
    "ListValue",
    "LiteralValue",
    "ObjectValue",
    "ParamValue",
    "PathSegment",
    "ReferencePath",
    "ReferenceValue",
    "TemplateValue",
    "collect_references",
    "iter_references",
    "parse_expression",
    "parse_value",
]
