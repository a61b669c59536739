"""Pydantic models for the structured outputs nerds return."""

from .thought_log import ThoughtLogged
from .revisions_v1 import ProposedEdit, ProposedRevisionsV1
from .findings_v1 import FindingsV1
from .graph_v1 import Edge, GraphResultV1, Vertex

__all__ = [
    "ThoughtLogged",
    "ProposedEdit",
    "ProposedRevisionsV1",
    "FindingsV1",
    "Edge",
    "GraphResultV1",
    "Vertex",
]
