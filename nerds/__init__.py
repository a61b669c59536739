"""Reusable LLM agent specifications bound to OpenAI, Anthropic or Gemini."""

from nerds.errors import (
    AgentIterationLimitError,
    NerdError,
    ParseError,
    ProviderNotFoundError,
    ToolExecutionError,
    UnsupportedPlatformError,
    UpstreamProviderError,
)
from nerds.nerd import BoundNerd, ModelBinding, NerdSpec, bind_nerd, spec_from_config
from nerds.parsers import (
    FreeformOutputParser,
    StructuredOutputParser,
    findings_parser,
    graph_parser,
    revisions_parser,
)
from nerds.preprocessors import line_number_inserter
from nerds.provider.context import ProviderContext
from nerds.tools import Tool, make_tool

__all__ = [
    "AgentIterationLimitError",
    "BoundNerd",
    "FreeformOutputParser",
    "ModelBinding",
    "NerdError",
    "NerdSpec",
    "ParseError",
    "ProviderContext",
    "ProviderNotFoundError",
    "StructuredOutputParser",
    "Tool",
    "ToolExecutionError",
    "UnsupportedPlatformError",
    "UpstreamProviderError",
    "bind_nerd",
    "findings_parser",
    "graph_parser",
    "line_number_inserter",
    "make_tool",
    "revisions_parser",
    "spec_from_config",
]
