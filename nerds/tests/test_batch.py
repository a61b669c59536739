from __future__ import annotations

from pathlib import Path

import pytest

from nerds.batch import bind_models, render_report, run_batch, run_models
from nerds.config import BatchConfig, NerdConfig, NerdsSettings
from nerds.errors import UpstreamProviderError
from nerds.nerd import NerdSpec, bind_nerd
from nerds.parsers import findings_parser
from nerds.provider.mock import ScriptedChat
from nerds.tests._samples import dumps, make_findings
from nerds.tools import NerdToolInput, make_tool


def _spec(**overrides) -> NerdSpec:
    fields = dict(name="Finder Nerd", purpose="Find things.", parser=findings_parser())
    fields.update(overrides)
    return NerdSpec(**fields)


def _binder(replies: dict[str, list]):
    def _bind(spec, model, **kwargs):
        kwargs.pop("mock", None)
        return bind_nerd(spec, model, adapter=ScriptedChat(replies.get(model, [])), **kwargs)

    return _bind


def test_one_model_failure_does_not_abort_the_others():
    replies = {
        "gpt-4o": [dumps(make_findings("gpt"))],
        "claude-3-opus": [UpstreamProviderError("anthropic", "overloaded")],
        "gemini-1.5-pro": [dumps(make_findings("gemini"))],
    }
    bound = bind_models(_spec(), list(replies), binder=_binder(replies))
    outcomes = run_models(bound, "text", max_workers=3)
    assert [o.model for o in outcomes] == ["gpt-4o", "claude-3-opus", "gemini-1.5-pro"]
    assert outcomes[0].result.findings == ["gpt"]
    assert not outcomes[1].ok and "overloaded" in outcomes[1].error
    assert outcomes[2].result.findings == ["gemini"]


def test_bind_failures_become_error_outcomes():
    tool = make_tool("t", "T.", lambda input, runtime_instructions=None: input, NerdToolInput)
    spec = _spec(tools=(tool,))
    bound = bind_models(spec, ["gemini-1.5-pro", "gpt-4o"], binder=_binder({"gpt-4o": ["{}"]}))
    outcomes = run_models(bound, "text", max_workers=1)
    assert "UnsupportedPlatformError" in outcomes[0].error
    assert outcomes[1].ok


def test_render_report_layout():
    replies = {"gpt-4o": [dumps(make_findings("a"))], "claude-3-opus": [RuntimeError("boom")]}
    outcomes = run_models(bind_models(_spec(), list(replies), binder=_binder(replies)), "Doc body", max_workers=1)
    report = render_report("Finder Nerd", "doc.md", "Doc body", outcomes)
    assert report.startswith("---\ntitle: Output of Finder Nerd against doc.md\n")
    assert "Doc body\n\n### Operation Results:" in report
    assert "#### gpt-4o (openai):\n```json\n" in report
    assert "[Error running claude-3-opus: RuntimeError: boom]" in report


def test_run_batch_writes_one_report_per_file(tmp_path: Path):
    src = tmp_path / "sources"
    src.mkdir()
    (src / "one.md").write_text("first")
    (src / "two.md").write_text("second")
    (src / "skip.txt").write_text("ignored")
    cfg = BatchConfig(
        nerd=NerdConfig(name="Finder Nerd", purpose="Find things."),
        input_dir=str(src),
        output_dir=str(tmp_path / "out"),
        models=["gpt-4o", "claude-3-opus"],
    )
    reports = run_batch(_spec(), cfg, mock=True, settings=NerdsSettings(batch_workers=2))
    assert [r.source.name for r in reports] == ["one.md", "two.md"]
    for report in reports:
        assert report.report_path.exists()
        assert report.report_path.parent.parent.name == "Finder_Nerd"
        assert all(o.ok for o in report.outcomes)
        assert "### Operation Results:" in report.report_path.read_text()


def test_run_batch_requires_input_dir(tmp_path: Path):
    cfg = BatchConfig(nerd=NerdConfig(name="N", purpose="P"), input_dir=str(tmp_path / "missing"))
    with pytest.raises(FileNotFoundError):
        run_batch(_spec(), cfg, mock=True)


def test_unexpected_bind_errors_stay_per_model():
    def _binder_with_broken_config(spec, model, **kwargs):
        if model == "claude-3-opus":
            raise OSError("capability file unreadable")
        return _binder({"gpt-4o": [dumps(make_findings("gpt"))]})(spec, model, **kwargs)

    bound = bind_models(_spec(), ["claude-3-opus", "gpt-4o"], binder=_binder_with_broken_config)
    outcomes = run_models(bound, "text", max_workers=1)
    assert outcomes[0].error == "OSError: capability file unreadable"
    assert outcomes[1].result.findings == ["gpt"]
