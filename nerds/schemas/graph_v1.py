from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .thought_log import ThoughtLogged


class Vertex(BaseModel):
    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    name: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)

    @field_validator("name", "label", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class Edge(BaseModel):
    # "from" is a keyword, so the field is aliased.
    model_config = ConfigDict(extra="ignore", validate_assignment=True, populate_by_name=True)

    label: str = Field(..., min_length=1)
    source: str = Field(..., alias="from", min_length=1)
    target: str = Field(..., alias="to", min_length=1)


class GraphResultV1(ThoughtLogged):
    vertices: List[Vertex] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)

    def vertex_names(self) -> set[str]:
        return {v.name for v in self.vertices}

    def dangling_edges(self) -> List[Edge]:
        """Edges whose endpoints are not among the returned vertices."""
        names = self.vertex_names()
        return [e for e in self.edges if e.source not in names or e.target not in names]


__all__ = ["Vertex", "Edge", "GraphResultV1"]
