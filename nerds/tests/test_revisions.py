from __future__ import annotations

from nerds.preprocessors import line_number_inserter
from nerds.revisions import apply_edits, check_edits, strip_line_numbers
from nerds.schemas import ProposedRevisionsV1
from nerds.tests._samples import SAMPLE_DOC, make_edit, make_revisions


def _result(*edits) -> ProposedRevisionsV1:
    return ProposedRevisionsV1.model_validate(make_revisions(*edits))


def test_strip_line_numbers_undoes_inserter():
    assert strip_line_numbers(line_number_inserter(SAMPLE_DOC)) == SAMPLE_DOC


def test_check_edits_against_numbered_source():
    numbered = line_number_inserter(SAMPLE_DOC)
    checks = check_edits(numbered, _result(make_edit(), make_edit(existing_text="cat", line_number=3)))
    assert checks[0].matched and checks[0].on_line and checks[0].occurrences == 1
    assert not checks[1].matched


def test_check_edits_flags_unannounced_multiple_matches():
    source = "the the\nthe"
    checks = check_edits(source, _result(make_edit(line_number=1, existing_text="the")))
    assert checks[0].occurrences == 3
    assert checks[0].ambiguous
    announced = check_edits(source, _result(make_edit(line_number=1, existing_text="the", multiple_matches=True)))
    assert not announced[0].ambiguous


def test_edit_on_wrong_line_is_reported():
    checks = check_edits(SAMPLE_DOC, _result(make_edit(line_number=1)))
    assert checks[0].matched and not checks[0].on_line


def test_apply_edits_respects_confidence():
    result = _result(make_edit(), make_edit(existing_text="lazy", proposed_replacement="sleepy", confidence=0.1))
    assert apply_edits(SAMPLE_DOC, result, min_confidence=0.5) == SAMPLE_DOC.replace("brwon", "brown")
    assert "sleepy" in apply_edits(line_number_inserter(SAMPLE_DOC), result)
