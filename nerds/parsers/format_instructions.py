from __future__ import annotations

from typing import Literal, Optional

from nerds.prompts.prompt_builder import load_prompt_text

OutputMode = Literal["structured", "freeform"]


def compile_format_instructions(schema_text: Optional[str], mode: OutputMode) -> str:
    """Return the instruction block appended to every prompt for a parser.

    Pure function of its arguments. Structured mode requires ``schema_text``;
    freeform mode treats it as an optional Markdown outline.
    """

    if mode == "structured":
        schema = (schema_text or "").strip()
        if not schema:
            raise ValueError("structured format instructions need a schema descriptor")
        return f"{load_prompt_text('format_structured_v1.md')}\n\n{schema}"
    if mode == "freeform":
        base = load_prompt_text("format_freeform_v1.md")
        outline = (schema_text or "").strip()
        if not outline:
            return base
        return f"{base}\n\nYou should implement the following structure in your final output:\n{outline}"
    raise ValueError(f"unknown output mode: {mode!r}")


__all__ = ["OutputMode", "compile_format_instructions"]
