from __future__ import annotations

import pytest

from nerds.parsers import (
    FINDINGS_SCHEMA,
    GRAPH_SCHEMA,
    REVISIONS_SCHEMA,
    SUMMARY_OUTLINE,
    compile_format_instructions,
    findings_parser,
    summary_parser,
)


def test_structured_instructions_are_deterministic():
    first = compile_format_instructions(FINDINGS_SCHEMA, "structured")
    second = compile_format_instructions(FINDINGS_SCHEMA, "structured")
    assert first == second
    assert findings_parser().format_instructions() == first


@pytest.mark.parametrize("schema", [FINDINGS_SCHEMA, REVISIONS_SCHEMA, GRAPH_SCHEMA])
def test_structured_instructions_embed_schema_verbatim(schema: str):
    text = compile_format_instructions(schema, "structured")
    assert text.endswith(schema)
    assert "thought_log" in text
    assert text.count("'{'") >= 2 and text.count("'}'") >= 2
    assert "Output Schema:" in text
    assert "code fence" in text


def test_structured_mode_requires_schema():
    with pytest.raises(ValueError):
        compile_format_instructions("  ", "structured")


def test_freeform_without_outline_asks_for_markdown():
    text = compile_format_instructions(None, "freeform")
    assert "markdown" in text.lower()
    assert "chain of thought" in text.lower()
    assert "following structure" not in text


def test_freeform_with_outline_appends_it():
    text = summary_parser().format_instructions()
    assert "You should implement the following structure in your final output:" in text
    assert text.endswith(SUMMARY_OUTLINE)


def test_unknown_mode_is_rejected():
    with pytest.raises(ValueError):
        compile_format_instructions(FINDINGS_SCHEMA, "yaml")  # type: ignore[arg-type]
