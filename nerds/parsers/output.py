from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, Type, Union

from pydantic import BaseModel, ValidationError

from nerds.errors import ParseError

from .format_instructions import compile_format_instructions
from .json_utils import extract_json_object, validate_payload



@dataclass(frozen=True)
class StructuredOutputParser:
    """Expects a single JSON object described by ``schema_text``.

    When ``model`` is given the parsed object is validated into it; otherwise
    ``parse`` returns the plain dict.
    """

    schema_text: str
    model: Optional[Type[BaseModel]] = None
    mode: str = field(default="structured", init=False)

    @property
    def is_structured(self) -> bool:
        return True

    def format_instructions(self) -> str:
        return compile_format_instructions(self.schema_text, "structured")

    def parse(self, text: str) -> Any:
        result, _ = self.parse_with_warnings(text)
        return result

    def parse_with_warnings(self, text: str) -> Tuple[Any, List[str]]:
        data = extract_json_object(text)
        if self.model is None:
            return data, []
        try:
            return validate_payload(data, self.model)
        except ValidationError as exc:
            reason = f"schema validation failed for {self.model.__name__}: {exc.error_count()} error(s)\n{exc}"
            raise ParseError(reason, raw_text=text) from exc


@dataclass(frozen=True)
class FreeformOutputParser:
    """Expects Markdown prose, optionally following ``outline``."""

    outline: Optional[str] = None
    mode: str = field(default="freeform", init=False)

    @property
    def is_structured(self) -> bool:
        return False

    def format_instructions(self) -> str:
        return compile_format_instructions(self.outline, "freeform")

    def parse(self, text: str) -> str:
        result, _ = self.parse_with_warnings(text)
        return result

    def parse_with_warnings(self, text: str) -> Tuple[str, List[str]]:
        cleaned = (text or "").strip()
        if not cleaned:
            raise ParseError("empty completion", raw_text=text)
        return cleaned, []


OutputParser = Union[StructuredOutputParser, FreeformOutputParser]


__all__ = ["StructuredOutputParser", "FreeformOutputParser", "OutputParser"]
