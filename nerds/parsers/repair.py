from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional

from nerds.errors import ParseError
from nerds.prompts.prompt_builder import load_prompt_text
from nerds.provider.base import ChatAdapter, ChatMessage, GenerationOptions
from nerds.provider.context import ProviderContext
from nerds.telemetry import timed

from .json_utils import NO_BOUNDARIES_REASON
from .output import OutputParser

_LOGGER = logging.getLogger(__name__)
_RAW_LOG_LIMIT = 4000
_REPAIR_FIELD_RE = re.compile(r"\{(format_instructions|completion|error)\}")

# (broken completion, format instructions, parse error reason) -> new raw text
RepairFn = Callable[[str, str, str], str]


class ExtractionState(str, Enum):
    RAW_RECEIVED = "RAW_RECEIVED"
    DELIMITED = "DELIMITED"
    DELIMITED_FAILED = "DELIMITED_FAILED"
    REPAIR_ATTEMPTED = "REPAIR_ATTEMPTED"
    PARSED = "PARSED"
    FAILED = "FAILED"


@dataclass
class ExtractionOutcome:
    result: Any
    raw_text: str
    states: List[ExtractionState] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    repaired_text: Optional[str] = None

    @property
    def repaired(self) -> bool:
        return self.repaired_text is not None


class OutputRepairer:
    """One secondary model call that rewrites a malformed completion."""

    def __init__(
        self,
        adapter: ChatAdapter,
        options: GenerationOptions,
        context: Optional[ProviderContext] = None,
    ) -> None:
        self.adapter = adapter
        self.options = options
        self.context = context

    def build_messages(self, completion: str, format_instructions: str, error: str) -> List[ChatMessage]:
        values = {"format_instructions": format_instructions, "completion": completion, "error": error}
        user = _REPAIR_FIELD_RE.sub(lambda m: values[m.group(1)], load_prompt_text("repair_user_v1.md"))
        return [
            ChatMessage(role="system", content=load_prompt_text("repair_v1.md")),
            ChatMessage(role="user", content=user),
        ]

    def __call__(self, completion: str, format_instructions: str, error: str) -> str:
        messages = self.build_messages(completion, format_instructions, error)
        with timed("repair", {"model": self.options.model_name}):
            turn = self.adapter(messages, self.options, context=self.context)
        return turn.text


def _fail(outcome: ExtractionOutcome, reason: str) -> ParseError:
    outcome.states.append(ExtractionState.FAILED)
    _LOGGER.warning(
        "output extraction failed: %s; raw=%s", reason, outcome.raw_text[:_RAW_LOG_LIMIT]
    )
    return ParseError(reason, raw_text=outcome.raw_text)


def extract_with_repair(
    raw_text: str,
    parser: OutputParser,
    repair: Optional[RepairFn] = None,
    *,
    repair_without_boundaries: bool = False,
) -> ExtractionOutcome:
    """Parse ``raw_text`` with ``parser``, repairing structured output at most once.

    Freeform output is never repaired. Structured text with no ``{`` at all is
    not repaired unless ``repair_without_boundaries`` is set. Failures raise
    ``ParseError`` carrying the original raw text.
    """

    raw_text = raw_text or ""
    outcome = ExtractionOutcome(result=None, raw_text=raw_text, states=[ExtractionState.RAW_RECEIVED])

    if not parser.is_structured:
        try:
            outcome.result, outcome.warnings = parser.parse_with_warnings(raw_text)
        except ParseError as exc:
            raise _fail(outcome, exc.reason) from exc
        outcome.states.append(ExtractionState.PARSED)
        return outcome

    if "{" not in raw_text and not repair_without_boundaries:
        outcome.states.append(ExtractionState.DELIMITED_FAILED)
        raise _fail(outcome, NO_BOUNDARIES_REASON)

    try:
        outcome.result, outcome.warnings = parser.parse_with_warnings(raw_text)
    except ParseError as first:
        outcome.states.append(ExtractionState.DELIMITED_FAILED)
        if repair is None:
            raise _fail(outcome, first.reason) from first
        reason = first.reason
    else:
        outcome.states.extend([ExtractionState.DELIMITED, ExtractionState.PARSED])
        return outcome

    outcome.states.append(ExtractionState.REPAIR_ATTEMPTED)
    _LOGGER.warning("structured output failed to parse (%s); attempting one repair", reason.splitlines()[0])
    repaired = repair(raw_text, parser.format_instructions(), reason)
    outcome.repaired_text = repaired
    try:
        outcome.result, warnings = parser.parse_with_warnings(repaired)
    except ParseError as second:
        raise _fail(outcome, f"repair failed: {second.reason}") from second
    outcome.warnings = ["output_repaired", *warnings]
    outcome.states.append(ExtractionState.PARSED)
    return outcome


__all__ = [
    "ExtractionOutcome",
    "ExtractionState",
    "OutputRepairer",
    "RepairFn",
    "extract_with_repair",
]
