from __future__ import annotations

from typing import Callable, Iterable

Preprocessor = Callable[[str], str]


def line_number_inserter(text: str) -> str:
    """Prefix each line with a zero-padded 1-based number and ``|<tab>``.

    The width is the digit count of the total number of lines, so a 3-line
    input gets ``1|\\t`` and an 11-line input gets ``01|\\t``.
    """

    lines = text.split("\n")
    width = len(str(len(lines)))
    return "\n".join(f"{str(i + 1).zfill(width)}|\t{line}" for i, line in enumerate(lines))


def apply_preprocessors(text: str, preprocessors: Iterable[Preprocessor]) -> str:
    for preprocess in preprocessors:
        text = preprocess(text)
    return text


__all__ = ["Preprocessor", "line_number_inserter", "apply_preprocessors"]
