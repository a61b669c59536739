from __future__ import annotations

import concurrent.futures as _fut
import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel

from nerds.config import BatchConfig, NerdsSettings, load_settings
from nerds.nerd import BoundNerd, NerdSpec, bind_nerd
from nerds.provider.context import ProviderContext
from nerds.tools import safe_identifier

_LOGGER = logging.getLogger(__name__)

Binder = Callable[..., BoundNerd]


@dataclass
class ModelOutcome:
    model: str
    provider: Optional[str] = None
    result: Any = None
    error: Optional[str] = None
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class FileReport:
    source: Path
    outcomes: List[ModelOutcome] = field(default_factory=list)
    report_path: Optional[Path] = None


def format_result(result: Any) -> tuple[str, str]:
    """Return (fence language, text) for a parsed result."""

    if isinstance(result, BaseModel):
        return "json", result.model_dump_json(indent=2, by_alias=True)
    if isinstance(result, (dict, list)):
        return "json", json.dumps(result, indent=2, default=str)
    return "markdown", str(result)


def _invoke_one(model: str, bound: BoundNerd, text: str, runtime_instructions: str) -> ModelOutcome:
    start = time.perf_counter()
    outcome = ModelOutcome(model=model, provider=bound.binding.provider)
    try:
        outcome.result = bound.invoke(text, runtime_instructions)
    except Exception as exc:
        outcome.error = f"{type(exc).__name__}: {exc}"
        _LOGGER.warning("batch: %s failed on %s: %s", bound.spec.name, outcome.model, exc)
    outcome.elapsed_ms = int((time.perf_counter() - start) * 1000)
    return outcome


def run_models(
    bound_by_model: Dict[str, BoundNerd | ModelOutcome],
    text: str,
    *,
    runtime_instructions: str = "",
    max_workers: int = 3,
) -> List[ModelOutcome]:
    """Invoke every bound nerd on ``text``; one model's failure never stops the others.

    Entries that are already a ModelOutcome (bind failures) pass through.
    Results come back in the order of ``bound_by_model``.
    """

    results: Dict[str, ModelOutcome] = {}
    pending = {m: b for m, b in bound_by_model.items() if isinstance(b, BoundNerd)}
    for model, entry in bound_by_model.items():
        if isinstance(entry, ModelOutcome):
            results[model] = entry

    if max_workers > 1 and len(pending) > 1:
        with _fut.ThreadPoolExecutor(max_workers=max_workers) as ex:
            futures = {ex.submit(_invoke_one, m, b, text, runtime_instructions): m for m, b in pending.items()}
            for fut in _fut.as_completed(futures):
                results[futures[fut]] = fut.result()
    else:
        for model, bound in pending.items():
            results[model] = _invoke_one(model, bound, text, runtime_instructions)

    return [results[m] for m in bound_by_model]


def render_report(nerd_name: str, filename: str, text: str, outcomes: Sequence[ModelOutcome]) -> str:
    lines = [
        "---",
        f"title: Output of {nerd_name} against {filename}",
        f"description: Results of running the {nerd_name} nerd against a source text file. "
        f"The source text is included, followed by the output of the same nerd against {len(outcomes)} models.",
        "---",
        "",
        text.rstrip(),
        "",
        "### Operation Results:",
        f"This operation generated results by running the {nerd_name} nerd against the source text "
        f"using {len(outcomes)} different LLMs. The results are as follows:",
    ]
    for outcome in outcomes:
        lines.extend(["", f"#### {outcome.model} ({outcome.provider or 'unknown'}):"])
        if outcome.ok:
            lang, body = format_result(outcome.result)
        else:
            lang, body = "text", f"[Error running {outcome.model}: {outcome.error}]"
        lines.extend([f"```{lang}", body, "```"])
    return "\n".join(lines) + "\n"


def bind_models(
    spec: NerdSpec,
    models: Sequence[str],
    *,
    binder: Binder = bind_nerd,
    **bind_kwargs: Any,
) -> Dict[str, BoundNerd | ModelOutcome]:
    """Bind ``spec`` once per model; bind failures become error outcomes."""

    bound: Dict[str, BoundNerd | ModelOutcome] = {}
    for model in models:
        try:
            bound[model] = binder(spec, model, **bind_kwargs)
        except Exception as exc:
            _LOGGER.warning("batch: cannot bind %s to %s: %s", spec.name, model, exc)
            bound[model] = ModelOutcome(model=model, error=f"{type(exc).__name__}: {exc}")
    return bound


def run_batch(
    spec: NerdSpec,
    cfg: BatchConfig,
    *,
    binder: Binder = bind_nerd,
    context: Optional[ProviderContext] = None,
    mock: Optional[bool] = None,
    settings: Optional[NerdsSettings] = None,
) -> List[FileReport]:
    """Run ``spec`` against every matching file, across ``cfg.models``.

    Writes one Markdown report per input file under
    ``<output_dir>/<nerd>/<timestamp ms>/`` and returns the per-file outcomes.
    """

    settings = settings or load_settings()
    input_dir = Path(cfg.input_dir)
    if not input_dir.is_dir():
        raise FileNotFoundError(f"input directory not found: {input_dir}")
    files = sorted(p for p in input_dir.glob(cfg.pattern) if p.is_file())
    models = list(cfg.models or [])
    workers = int(cfg.max_workers or settings.batch_workers)

    out_dir = Path(cfg.output_dir) / (safe_identifier(spec.name) or "nerd") / str(int(time.time() * 1000))
    out_dir.mkdir(parents=True, exist_ok=True)

    bound = bind_models(spec, models, binder=binder, context=context, mock=mock, settings=settings)
    _LOGGER.info("batch: running %s against %d files with %d models", spec.name, len(files), len(models))

    reports: List[FileReport] = []
    for path in files:
        text = path.read_text(encoding="utf-8")
        outcomes = run_models(bound, text, runtime_instructions=cfg.runtime_instructions, max_workers=workers)
        report_path = out_dir / path.name
        report_path.write_text(render_report(spec.name, path.name, text, outcomes), encoding="utf-8")
        reports.append(FileReport(source=path, outcomes=outcomes, report_path=report_path))
    return reports


__all__ = [
    "FileReport",
    "ModelOutcome",
    "bind_models",
    "format_result",
    "render_report",
    "run_batch",
    "run_models",
]
