from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ._helpers import coerce_string_list


class ThoughtLogged(BaseModel):
    """Base for every structured result: an ordered log of model reasoning."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    thought_log: List[str] = Field(default_factory=list)

    @field_validator("thought_log", mode="before")
    @classmethod
    def _clean_thoughts(cls, value: object) -> List[str]:
        return coerce_string_list(value)


__all__ = ["ThoughtLogged"]
