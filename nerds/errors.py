from __future__ import annotations

from typing import Optional

__all__ = [
    "NerdError",
    "ParseError",
    "UnsupportedPlatformError",
    "ToolExecutionError",
    "UpstreamProviderError",
    "AgentIterationLimitError",
    "ProviderNotFoundError",
]


class NerdError(RuntimeError):
    """Base class for every error raised by the nerds library."""


class ParseError(NerdError):
    """Raised when model output cannot be coerced into the expected shape.

    ``raw_text`` always holds the text that was first handed to the parser, even
    when the failure happened on a repaired completion.
    """

    def __init__(self, reason: str, raw_text: Optional[str] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.raw_text = raw_text


class UnsupportedPlatformError(NerdError):
    """Raised at bind time when a nerd is bound to a provider it does not allow."""

    def __init__(self, provider: str, allowed: frozenset[str]) -> None:
        allowed_text = ", ".join(sorted(allowed)) or "none"
        super().__init__(f"Provider '{provider}' is not allowed for this nerd (allowed: {allowed_text})")
        self.provider = provider
        self.allowed = allowed


class ToolExecutionError(NerdError):
    """Raised when a tool's own function fails during an agent loop."""

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name


class UpstreamProviderError(NerdError):
    """Raised when the provider call itself fails (network, auth, rate limit)."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider} request failed: {message}")
        self.provider = provider


class AgentIterationLimitError(NerdError):
    """Raised when a tool-using agent loop exceeds its iteration bound."""

    def __init__(self, max_iterations: int) -> None:
        super().__init__(f"Agent stopped after {max_iterations} iterations without a final answer")
        self.max_iterations = max_iterations


class ProviderNotFoundError(NerdError, ValueError):
    """Raised when no adapter or capability record matches a provider/model alias."""
