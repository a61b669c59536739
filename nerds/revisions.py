from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

from nerds.schemas import ProposedEdit, ProposedRevisionsV1

_LINE_PREFIX_RE = re.compile(r"^\d+\|\t", re.MULTILINE)


def strip_line_numbers(text: str) -> str:
    """Undo ``line_number_inserter``."""

    return _LINE_PREFIX_RE.sub("", text)


@dataclass(frozen=True)
class EditCheck:
    edit: ProposedEdit
    occurrences: int
    on_line: bool

    @property
    def matched(self) -> bool:
        return self.occurrences > 0

    @property
    def ambiguous(self) -> bool:
        """Several matches without the model saying so."""
        return self.occurrences > 1 and not self.edit.multiple_matches


def _line(text: str, line_number: int) -> Optional[str]:
    lines = text.split("\n")
    if 1 <= line_number <= len(lines):
        return lines[line_number - 1]
    return None


def check_edits(source: str, result: ProposedRevisionsV1) -> List[EditCheck]:
    """Report, per edit, whether ``existing_text`` matches the source exactly.

    ``source`` may be line-numbered or plain; numbering is stripped first.
    """

    plain = strip_line_numbers(source)
    checks: List[EditCheck] = []
    for edit in result.proposed_edits:
        needle = edit.existing_text
        occurrences = plain.count(needle) if needle else 0
        line = _line(plain, edit.line_number)
        on_line = bool(needle) and line is not None and needle in line
        checks.append(EditCheck(edit=edit, occurrences=occurrences, on_line=on_line))
    return checks


def apply_edits(source: str, result: ProposedRevisionsV1, *, min_confidence: float = 0.0) -> str:
    """Apply exact-match edits at or above ``min_confidence`` to the plain source.

    Edits flagged ``multiple_matches`` replace every occurrence; others
    replace the first. Unmatched edits are skipped.
    """

    text = strip_line_numbers(source)
    for check in check_edits(text, result):
        edit = check.edit
        if not check.matched or edit.confidence < min_confidence:
            continue
        count = -1 if edit.multiple_matches else 1
        text = text.replace(edit.existing_text, edit.proposed_replacement, count)
    return text


__all__ = ["EditCheck", "apply_edits", "check_edits", "strip_line_numbers"]
