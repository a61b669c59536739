from __future__ import annotations

from typing import List

from pydantic import Field, field_validator

from ._helpers import coerce_string_list
from .thought_log import ThoughtLogged


class FindingsV1(ThoughtLogged):
    findings: List[str] = Field(default_factory=list)

    @field_validator("findings", mode="before")
    @classmethod
    def _clean_findings(cls, value: object) -> List[str]:
        return coerce_string_list(value)


__all__ = ["FindingsV1"]
