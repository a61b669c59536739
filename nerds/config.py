from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional
import os
import json
import yaml

DEFAULT_BATCH_MODELS = ["gpt-4o", "claude-3-opus-20240229", "gemini-1.5-pro-latest"]


@dataclass(frozen=True)
class NerdsSettings:
    repair_model: str = "gpt-4o"
    max_iterations: int = 15
    batch_workers: int = 3
    mock: bool = False
    # Unset means each provider's capability default.
    default_temperature: Optional[float] = None


@dataclass
class NerdConfig:
    """User-authored nerd description, as read from YAML/JSON by the CLI."""

    name: str
    purpose: str
    as_tool_description: str = ""
    do_list: List[str] = field(default_factory=list)
    do_not_list: List[str] = field(default_factory=list)
    strategy: Optional[str] = None
    additional_notes: Optional[str] = None
    output: str = "findings"  # findings | revisions | graph | markdown | code_snippet | summary
    number_lines: bool = False


@dataclass
class BatchConfig:
    nerd: NerdConfig
    input_dir: str = "sources"
    output_dir: str = "script_output"
    pattern: str = "*.md"
    models: Optional[List[str]] = None
    runtime_instructions: str = ""
    max_workers: Optional[int] = None


def load_settings() -> NerdsSettings:
    """Read process settings from the environment at call time."""
    temperature = os.getenv("NERDS_TEMPERATURE")
    return NerdsSettings(
        repair_model=os.getenv("NERDS_REPAIR_MODEL", "gpt-4o"),
        max_iterations=int(os.getenv("NERDS_MAX_ITERATIONS", "15")),
        batch_workers=int(os.getenv("NERDS_BATCH_WORKERS", "3")),
        mock=os.getenv("NERDS_MOCK", "0") == "1",
        default_temperature=float(temperature) if temperature else None,
    )


def _read_mapping(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    data = yaml.safe_load(p.read_text()) if p.suffix in {".yaml", ".yml"} else json.loads(p.read_text())
    if not isinstance(data, dict):
        raise ValueError(f"{p} must contain a mapping at the top level")
    return data


def load_nerd_config(path: str | Path) -> NerdConfig:
    data = _read_mapping(path)
    if "nerd" in data and isinstance(data["nerd"], dict):
        data = data["nerd"]
    return _nerd_config_from_dict(data)


def load_batch_config(path: str | Path) -> BatchConfig:
    data = _read_mapping(path)
    nerd_raw = data.pop("nerd", None)
    if not isinstance(nerd_raw, dict):
        raise ValueError("batch config requires a 'nerd' mapping")
    cfg = BatchConfig(nerd=_nerd_config_from_dict(nerd_raw), **data)
    cfg.models = _normalize_models(cfg.models) or list(DEFAULT_BATCH_MODELS)
    return cfg


def _nerd_config_from_dict(data: dict[str, Any]) -> NerdConfig:
    cfg = NerdConfig(**data)
    cfg.do_list = [str(x).strip() for x in cfg.do_list or [] if x is not None and str(x).strip()]
    cfg.do_not_list = [str(x).strip() for x in cfg.do_not_list or [] if x is not None and str(x).strip()]
    if not cfg.as_tool_description:
        cfg.as_tool_description = cfg.purpose
    return cfg


def _normalize_models(raw: Any) -> Optional[List[str]]:
    if raw is None:
        return None
    if isinstance(raw, str):
        values = [raw]
    elif isinstance(raw, (list, tuple, set)):
        values = list(raw)
    else:
        return None

    normalized: List[str] = []
    for item in values:
        if item is None:
            continue
        text = str(item).strip()
        if not text or text in normalized:
            continue
        normalized.append(text)
    return normalized or None
