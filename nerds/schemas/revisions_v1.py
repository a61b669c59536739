from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .thought_log import ThoughtLogged


class ProposedEdit(BaseModel):
    """One proposed replacement against a (line-numbered) source text."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    line_number: int = Field(..., ge=1)
    existing_text: str
    proposed_replacement: str
    reasoning: str
    multiple_matches: Optional[bool] = None
    confidence: float = Field(..., ge=0.0, le=1.0)


class ProposedRevisionsV1(ThoughtLogged):
    proposed_edits: List[ProposedEdit] = Field(default_factory=list)


__all__ = ["ProposedEdit", "ProposedRevisionsV1"]
