from .prompt_builder import (
    MessageTemplate,
    PromptTemplate,
    PromptTemplateError,
    build_nerd_prompt,
    build_react_instructions,
    build_tool_calling_instructions,
    load_prompt_text,
)

__all__ = [
    "MessageTemplate",
    "PromptTemplate",
    "PromptTemplateError",
    "build_nerd_prompt",
    "build_react_instructions",
    "build_tool_calling_instructions",
    "load_prompt_text",
]
