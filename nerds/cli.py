from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from nerds.batch import format_result, run_batch
from nerds.config import NerdConfig, _normalize_models, load_batch_config, load_nerd_config
from nerds.errors import NerdError
from nerds.nerd import bind_nerd, spec_from_config
from nerds.parsers import BUILTIN_PARSERS
from nerds.provider.config import load_provider_capabilities
from nerds.provider.registry import list_registered_providers
from nerds.provider.utils import infer_provider_from_model

app = typer.Typer(help="Nerds: reusable LLM agent specifications")
console = Console()

_KEY_ENV = {
    "openai": ("OPENAI_API_KEY",),
    "anthropic": ("ANTHROPIC_API_KEY",),
    "google": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
}


@app.callback()
def _root_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log nerd activity (prompt hashes, timings)"),
):
    """Nerds CLI root."""
    load_dotenv()
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
            force=True,
        )


def _missing_key(model: str) -> Optional[str]:
    provider = infer_provider_from_model(model)
    names = _KEY_ENV.get(provider or "", ())
    if names and not any(os.getenv(name) for name in names):
        return names[0]
    return None


def _placeholder_config(output: str) -> NerdConfig:
    return NerdConfig(
        name="PreviewNerd",
        purpose="Preview how a nerd prompt is compiled.",
        do_list=["Follow the output instructions exactly."],
        output=output,
    )


@app.command("prompt")
def cmd_prompt(
    config: Optional[Path] = typer.Option(None, exists=True, dir_okay=False, help="Nerd YAML/JSON description"),
    output: str = typer.Option("findings", help=f"Built-in output kind: {', '.join(sorted(BUILTIN_PARSERS))}"),
    model: str = typer.Option("gpt-4o", "--model", "-m", help="Model to compile the prompt for"),
    input_text: str = typer.Option("<input>", "--input-text", help="Sample input to substitute"),
    instructions: str = typer.Option("", help="Query-time instructions to substitute"),
):
    """Print the compiled message sequence for a nerd (no model call)."""
    cfg = load_nerd_config(config) if config else _placeholder_config(output)
    try:
        spec = spec_from_config(cfg)
        bound = bind_nerd(spec, model, mock=True)
    except (NerdError, ValueError) as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(1)
    for message in bound.render(input_text, instructions):
        typer.echo(f"=== {message.role} ===")
        typer.echo(message.content)
        typer.echo("")


@app.command("run")
def cmd_run(
    config: Path = typer.Option(..., exists=True, dir_okay=False, help="Nerd YAML/JSON description"),
    input_path: Path = typer.Option(..., "--input", "-i", exists=True, dir_okay=False, help="Source text file"),
    model: str = typer.Option("gpt-4o", "--model", "-m", help="Model to bind the nerd to"),
    instructions: str = typer.Option("", help="Query-time instructions for this run"),
    out: Optional[Path] = typer.Option(None, help="Write the parsed result to this file"),
    mock: bool = typer.Option(False, help="Use deterministic mock provider (no network) for smoke tests"),
):
    """Invoke a nerd once against a file and print the parsed result."""
    use_mock = mock or os.getenv("NERDS_MOCK") == "1"
    if not use_mock:
        missing = _missing_key(model)
        if missing:
            typer.echo(f"ERROR: {missing} not set (required for live runs)", err=True)
            raise typer.Exit(1)

    cfg = load_nerd_config(config)
    text = input_path.read_text(encoding="utf-8")
    try:
        bound = bind_nerd(spec_from_config(cfg), model, mock=use_mock)
        result = bound.invoke(text, instructions)
    except NerdError as exc:
        typer.echo(f"ERROR: {type(exc).__name__}: {exc}", err=True)
        raise typer.Exit(1)

    _, body = format_result(result)
    if out:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(body, encoding="utf-8")
        typer.echo(f"Wrote {out}")
    else:
        typer.echo(body)


@app.command("batch")
def cmd_batch(
    config: Path = typer.Option(..., exists=True, dir_okay=False, help="Batch YAML/JSON config"),
    model_name: List[str] = typer.Option(None, "--model", "-m", help="Override models to run (repeatable)"),
    input_dir: Optional[Path] = typer.Option(None, help="Override input directory"),
    output_dir: Optional[Path] = typer.Option(None, help="Override output directory"),
    mock: bool = typer.Option(False, help="Use deterministic mock provider (no network) for smoke tests"),
):
    """Run a nerd against every file in a directory across several models."""
    cfg = load_batch_config(config)
    override_models = _normalize_models(model_name)
    if override_models:
        cfg.models = override_models
    if input_dir:
        cfg.input_dir = str(input_dir)
    if output_dir:
        cfg.output_dir = str(output_dir)

    try:
        spec = spec_from_config(cfg.nerd)
        reports = run_batch(spec, cfg, mock=mock or None)
    except (NerdError, FileNotFoundError) as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(1)

    table = Table(title=f"{spec.name} batch summary")
    table.add_column("File", style="bold")
    table.add_column("Model")
    table.add_column("Status")
    table.add_column("ms", justify="right")
    failures = 0
    for report in reports:
        for outcome in report.outcomes:
            status = "[green]ok[/green]" if outcome.ok else f"[red]{outcome.error}[/red]"
            failures += 0 if outcome.ok else 1
            table.add_row(report.source.name, outcome.model, status, str(outcome.elapsed_ms))
    console.print(table)
    if reports and reports[0].report_path is not None:
        typer.echo(f"Reports written to {reports[0].report_path.parent}")
    typer.echo(json.dumps({"files": len(reports), "failures": failures}))


@app.command("models")
def cmd_models():
    """List registered providers, aliases and capability records."""
    caps = load_provider_capabilities()
    aliases = list_registered_providers()
    table = Table(title="Providers")
    table.add_column("Provider", style="bold")
    table.add_column("Aliases")
    table.add_column("Default model")
    table.add_column("Native tools")
    table.add_column("JSON mode")
    for provider in sorted(set(caps) | set(aliases)):
        record = caps.get(provider)
        table.add_row(
            provider,
            ", ".join(aliases.get(provider, [])),
            record.default_model if record else "-",
            str(record.supports_tools) if record else "-",
            str(record.supports_json_mode) if record else "-",
        )
    console.print(table)


if __name__ == "__main__":  # pragma: no cover
    app()
