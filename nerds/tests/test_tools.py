from __future__ import annotations

from typing import List

import pytest
from pydantic import BaseModel

from nerds.errors import ToolExecutionError
from nerds.tools import NerdToolInput, find_tool, make_tool, safe_identifier


class _ListInput(BaseModel):
    items: List[str]


def test_safe_identifier_collapses_punctuation():
    assert safe_identifier("Typo Nerd: v2!") == "Typo_Nerd_v2"
    assert safe_identifier("a--b  c") == "a_b_c"
    assert safe_identifier("") == ""


def test_invoke_accepts_dict_and_json_string():
    tool = make_tool("count", "Count items.", lambda items: len(items), _ListInput)
    assert tool.invoke({"items": ["a", "b"]}) == "2"
    assert tool.invoke('{"items": ["a"]}') == "1"


def test_invoke_wraps_bare_strings_as_input():
    tool = make_tool("echo", "Echo.", lambda input, runtime_instructions=None: input.upper(), NerdToolInput)
    assert tool.invoke("hello") == "HELLO"
    assert tool.invoke('"quoted"') == "QUOTED"


def test_invoke_serialises_non_string_results():
    tool = make_tool("pairs", "Pairs.", lambda items: {i: len(i) for i in items}, _ListInput)
    assert tool.invoke({"items": ["ab"]}) == '{\n  "ab": 2\n}'


def test_invalid_arguments_raise_tool_error():
    tool = make_tool("count", "Count.", lambda items: len(items), _ListInput)
    with pytest.raises(ToolExecutionError) as excinfo:
        tool.invoke({"wrong": 1})
    assert excinfo.value.tool_name == "count"


def test_tool_exceptions_are_wrapped():
    def _fail(items):
        raise KeyError("gone")

    tool = make_tool("fail", "Fails.", _fail, _ListInput)
    with pytest.raises(ToolExecutionError) as excinfo:
        tool.invoke({"items": []})
    assert isinstance(excinfo.value.__cause__, KeyError)


def test_input_schema_has_no_title():
    tool = make_tool("count", "Count.", lambda items: len(items), _ListInput)
    assert "title" not in tool.input_schema
    assert tool.input_schema["properties"]["items"]["type"] == "array"


def test_find_tool():
    tool = make_tool("count", "Count.", lambda items: len(items), _ListInput)
    assert find_tool((tool,), " count ") is tool
    with pytest.raises(ToolExecutionError):
        find_tool((tool,), "other")
