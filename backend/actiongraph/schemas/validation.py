"""Pydantic schemas for definition validation results.

The validator raises on blocking errors; a valid definition yields a
TopologyResult, which is also the payload stored in the validation cache.
"""

from __future__ import annotations

from pydantic import Field

from actiongraph.schemas.base import BaseSchema


class TopologyLevel(BaseSchema):
    """Actions that can run in parallel once every earlier level is done."""

    level: int = Field(..., ge=0, description="Execution level (0-indexed)")
    refs: list[str] = Field(default_factory=list, description="Refs in this level")


class TopologyResult(BaseSchema):
    """Topology analysis of a valid definition.

    Attributes:
        fingerprint: SHA-256 of the canonical definition JSON.
        levels: Kahn levels, each in definition order.
        scheduled: Refs the scheduler will run, in definition order.
        unreachable: Refs neither reachable from the entrypoint nor
                     feeding anything that is.
        max_parallelism: Size of the widest level.
    """

    fingerprint: str
    levels: list[TopologyLevel] = Field(default_factory=list)
    scheduled: list[str] = Field(default_factory=list)
    unreachable: list[str] = Field(default_factory=list)
    max_parallelism: int = Field(default=0, ge=0)


__all__ = [
    "TopologyLevel",
    "TopologyResult",
]
