"""Glue between concept-extraction nerds and an external vector store.

The store itself is not part of this package: callers pass a query function
``(concept, top_k) -> matches`` and, optionally, an upsert function. Scores
are interpreted according to ``higher_is_closer``: similarity scores (cosine)
keep matches above the threshold, distance scores keep matches below it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence, Union

from pydantic import BaseModel, Field

from nerds.tools import Tool, make_tool

_LOGGER = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.2
DEFAULT_TOP_K = 5


@dataclass(frozen=True)
class Match:
    id: str
    score: float


MatchLike = Union[Match, Mapping[str, Any]]
QueryFn = Callable[[str, int], Sequence[MatchLike]]
UpsertFn = Callable[[Sequence[str]], int]


def _as_match(item: MatchLike) -> Match:
    if isinstance(item, Match):
        return item
    return Match(id=str(item["id"]), score=float(item.get("score") or 0.0))


def filter_matches(
    matches: Iterable[MatchLike],
    threshold: float = DEFAULT_THRESHOLD,
    *,
    higher_is_closer: bool = True,
) -> List[str]:
    """Return ids of matches close enough to count as the same concept.

    ``higher_is_closer=True`` keeps ``score > threshold``; ``False`` keeps
    ``score < threshold``. Matches exactly at the threshold are dropped.
    """

    kept: List[str] = []
    for item in matches:
        match = _as_match(item)
        close = match.score > threshold if higher_is_closer else match.score < threshold
        if close:
            kept.append(match.id)
    return kept


def find_existing_concepts(
    concepts: Iterable[str],
    query_fn: QueryFn,
    *,
    threshold: float = DEFAULT_THRESHOLD,
    higher_is_closer: bool = True,
    top_k: int = DEFAULT_TOP_K,
) -> Dict[str, List[str]]:
    found: Dict[str, List[str]] = {}
    for concept in concepts:
        matches = query_fn(concept, top_k)
        found[concept] = filter_matches(matches, threshold, higher_is_closer=higher_is_closer)
    _LOGGER.debug("canonicalised %d concepts", len(found))
    return found


class ConceptsInput(BaseModel):
    concepts: List[str] = Field(..., min_length=1)


def build_canonizer_tool(
    query_fn: QueryFn,
    *,
    threshold: float = DEFAULT_THRESHOLD,
    higher_is_closer: bool = True,
    top_k: int = DEFAULT_TOP_K,
    name: str = "existing_concept_finder",
) -> Tool:
    """Expose an external vector query as a tool for concept-extraction nerds."""

    def _find(concepts: List[str]) -> Dict[str, List[str]]:
        return find_existing_concepts(
            concepts,
            query_fn,
            threshold=threshold,
            higher_is_closer=higher_is_closer,
            top_k=top_k,
        )

    return make_tool(
        name,
        "Given some list of concepts, returns a map where each concept passed in is associated "
        "with a list of zero or more existing concepts that may be used instead.",
        _find,
        ConceptsInput,
    )


def build_concept_store_tool(upsert_fn: UpsertFn, *, name: str = "add_concepts_to_store") -> Tool:
    def _add(concepts: List[str]) -> int:
        return int(upsert_fn(concepts))

    return make_tool(
        name,
        "Updates the vector store to include a new list of concepts. "
        "Returns the number of concepts added to the store.",
        _add,
        ConceptsInput,
    )


__all__ = [
    "Match",
    "ConceptsInput",
    "filter_matches",
    "find_existing_concepts",
    "build_canonizer_tool",
    "build_concept_store_tool",
]
