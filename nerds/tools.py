from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Type

from pydantic import BaseModel, ValidationError

from nerds.errors import ToolExecutionError

_LOGGER = logging.getLogger(__name__)
_UNSAFE_NAME_RE = re.compile(r"[\s\-:+\"'<>\[\]{}()=?!,|\\/#&*^%$@`~.]+")


def safe_identifier(text: str) -> str:
    """Collapse punctuation and whitespace runs into single underscores."""

    cleaned = _UNSAFE_NAME_RE.sub("_", (text or "").strip())
    return re.sub(r"_+", "_", cleaned).strip("_")


@dataclass(frozen=True)
class Tool:
    """A callable exposed to an agent loop.

    ``args_model`` validates the arguments the model sends; its JSON schema is
    what providers see. ``func`` receives the validated fields as keyword
    arguments and may return any JSON-serialisable value.
    """

    name: str
    description: str
    args_model: Type[BaseModel]
    func: Callable[..., Any]

    @property
    def input_schema(self) -> Dict[str, Any]:
        schema = self.args_model.model_json_schema()
        schema.pop("title", None)
        return schema

    def invoke(self, arguments: Mapping[str, Any] | str | None) -> str:
        payload = _coerce_arguments(arguments)
        try:
            validated = self.args_model.model_validate(payload)
        except ValidationError as exc:
            raise ToolExecutionError(self.name, f"invalid arguments: {exc}") from exc
        _LOGGER.info("tool %s invoked", self.name)
        try:
            result = self.func(**validated.model_dump(exclude_none=True))
        except ToolExecutionError:
            raise
        except Exception as exc:
            raise ToolExecutionError(self.name, str(exc)) from exc
        return result if isinstance(result, str) else json.dumps(result, indent=2, default=str)


def _coerce_arguments(arguments: Mapping[str, Any] | str | None) -> Dict[str, Any]:
    if arguments is None:
        return {}
    if isinstance(arguments, str):
        text = arguments.strip()
        if not text:
            return {}
        try:
            loaded = json.loads(text)
        except json.JSONDecodeError:
            # ReAct models often send a bare string for single-field tools.
            return {"input": text}
        if isinstance(loaded, dict):
            return loaded
        return {"input": loaded if isinstance(loaded, str) else json.dumps(loaded)}
    return dict(arguments)


class NerdToolInput(BaseModel):
    input: str
    runtime_instructions: Optional[str] = None


def make_tool(
    name: str,
    description: str,
    func: Callable[..., Any],
    args_model: Type[BaseModel],
) -> Tool:
    return Tool(name=safe_identifier(name) or "tool", description=description, args_model=args_model, func=func)


def find_tool(tools: tuple[Tool, ...] | list[Tool], name: str) -> Tool:
    wanted = (name or "").strip()
    for tool in tools:
        if tool.name == wanted:
            return tool
    raise ToolExecutionError(wanted or "<missing>", "no tool with this name is available")


__all__ = ["Tool", "NerdToolInput", "make_tool", "find_tool", "safe_identifier"]
