"""Output parsers: format instructions in, typed results out."""

from .descriptors import (
    CODE_SNIPPET_OUTLINE,
    FINDINGS_SCHEMA,
    GRAPH_SCHEMA,
    REVISIONS_SCHEMA,
    SUMMARY_OUTLINE,
)
from .format_instructions import compile_format_instructions
from .output import FreeformOutputParser, OutputParser, StructuredOutputParser
from .repair import ExtractionOutcome, ExtractionState, OutputRepairer, extract_with_repair
from nerds.schemas import FindingsV1, GraphResultV1, ProposedRevisionsV1


def revisions_parser() -> StructuredOutputParser:
    return StructuredOutputParser(REVISIONS_SCHEMA, ProposedRevisionsV1)


def findings_parser() -> StructuredOutputParser:
    return StructuredOutputParser(FINDINGS_SCHEMA, FindingsV1)


def graph_parser() -> StructuredOutputParser:
    return StructuredOutputParser(GRAPH_SCHEMA, GraphResultV1)


def markdown_parser() -> FreeformOutputParser:
    return FreeformOutputParser()


def code_snippet_parser() -> FreeformOutputParser:
    return FreeformOutputParser(CODE_SNIPPET_OUTLINE)


def summary_parser() -> FreeformOutputParser:
    return FreeformOutputParser(SUMMARY_OUTLINE)


BUILTIN_PARSERS = {
    "revisions": revisions_parser,
    "findings": findings_parser,
    "graph": graph_parser,
    "markdown": markdown_parser,
    "code_snippet": code_snippet_parser,
    "summary": summary_parser,
}


def get_builtin_parser(name: str) -> OutputParser:
    try:
        factory = BUILTIN_PARSERS[(name or "").strip().lower()]
    except KeyError as exc:
        raise ValueError(f"Unknown output kind '{name}' (expected one of {', '.join(sorted(BUILTIN_PARSERS))})") from exc
    return factory()


__all__ = [
    "BUILTIN_PARSERS",
    "CODE_SNIPPET_OUTLINE",
    "FINDINGS_SCHEMA",
    "GRAPH_SCHEMA",
    "REVISIONS_SCHEMA",
    "SUMMARY_OUTLINE",
    "ExtractionOutcome",
    "ExtractionState",
    "FreeformOutputParser",
    "OutputParser",
    "OutputRepairer",
    "StructuredOutputParser",
    "compile_format_instructions",
    "extract_with_repair",
    "get_builtin_parser",
    "findings_parser",
    "graph_parser",
    "revisions_parser",
    "markdown_parser",
    "code_snippet_parser",
    "summary_parser",
]
