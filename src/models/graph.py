"""Knowledge graph models.

The :class:`KnowledgeGraph` is produced once per "generate graph" action
from the current chunk set.  Node ids are opaque strings chosen by the graph
extraction capability; edges reference them by id.  Edges pointing at
unknown ids are tolerated here and dropped later by the graph builder.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GraphNode(BaseModel):
    """A vertex: one entity (person, organization, location, concept...)."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    # Free-form category from the model, e.g. "Person", "Organization".
    type: str = ""


class GraphEdge(BaseModel):
    """A relationship between two nodes, referenced by id."""

    model_config = ConfigDict(frozen=True)

    source: str
    target: str
    relation: str = ""


class KnowledgeGraph(BaseModel):
    model_config = ConfigDict(frozen=True)

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.nodes
