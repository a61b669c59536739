from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, FrozenSet, Iterable, Optional, Sequence, Tuple

from pydantic import BaseModel

from nerds.agents import DEFAULT_MAX_ITERATIONS, Agent, ModelCall, SimpleAgent, select_agent
from nerds.config import NerdConfig, NerdsSettings, load_settings
from nerds.errors import ProviderNotFoundError, UnsupportedPlatformError
from nerds.parsers import OutputParser, get_builtin_parser
from nerds.parsers.repair import ExtractionOutcome, OutputRepairer, extract_with_repair
from nerds.preprocessors import Preprocessor, apply_preprocessors, line_number_inserter
from nerds.prompts.prompt_builder import PromptTemplate, build_nerd_prompt
from nerds.provider.base import ChatAdapter, ChatMessage, ChatTurn, GenerationOptions
from nerds.provider.config import ProviderCapabilities, get_capabilities
from nerds.provider.context import ProviderContext
from nerds.provider.factory import get_chat_adapter
from nerds.provider.utils import infer_provider_from_model, normalize_provider, strip_provider_prefix
from nerds.telemetry import prompt_sha256, timed
from nerds.tools import NerdToolInput, Tool, make_tool

_LOGGER = logging.getLogger(__name__)

ALL_PLATFORMS: FrozenSet[str] = frozenset({"openai", "anthropic", "google"})
TOOL_PLATFORMS: FrozenSet[str] = frozenset({"openai", "anthropic"})
JSON_MIME_TYPE = "application/json"

ResultSink = Callable[[Any], None]


@dataclass(frozen=True)
class NerdSpec:
    """Immutable description of a nerd, independent of any model.

    Lists are stored as tuples. ``allowed_platforms`` defaults to every
    provider for tool-less nerds and to OpenAI and Anthropic for nerds with
    tools.
    """

    name: str
    purpose: str
    parser: OutputParser
    do_list: Tuple[str, ...] = ()
    do_not_list: Tuple[str, ...] = ()
    strategy: Optional[str] = None
    additional_notes: Optional[str] = None
    as_tool_description: str = ""
    tools: Tuple[Tool, ...] = ()
    input_preprocessors: Tuple[Preprocessor, ...] = ()
    allowed_platforms: Optional[FrozenSet[str]] = None
    max_iterations: int = DEFAULT_MAX_ITERATIONS

    def __post_init__(self) -> None:
        if not (self.name or "").strip():
            raise ValueError("NerdSpec.name must be non-empty")
        if not (self.purpose or "").strip():
            raise ValueError("NerdSpec.purpose must be non-empty")
        if self.max_iterations < 1:
            raise ValueError("NerdSpec.max_iterations must be >= 1")
        object.__setattr__(self, "do_list", tuple(self.do_list))
        object.__setattr__(self, "do_not_list", tuple(self.do_not_list))
        object.__setattr__(self, "tools", tuple(self.tools))
        object.__setattr__(self, "input_preprocessors", tuple(self.input_preprocessors))
        if self.allowed_platforms is not None:
            normalized = frozenset(normalize_provider(p) or "" for p in self.allowed_platforms) - {""}
            object.__setattr__(self, "allowed_platforms", normalized)
        if not self.as_tool_description:
            object.__setattr__(self, "as_tool_description", self.purpose)

    @property
    def platforms(self) -> FrozenSet[str]:
        if self.allowed_platforms is not None:
            return self.allowed_platforms
        return TOOL_PLATFORMS if self.tools else ALL_PLATFORMS

    def bind(self, model: str, **kwargs: Any) -> "BoundNerd":
        return bind_nerd(self, model, **kwargs)


@dataclass(frozen=True)
class ModelBinding:
    provider: str
    logical_model: str
    api_model: str
    options: GenerationOptions


def resolve_binding(
    model: str,
    *,
    provider: Optional[str] = None,
    temperature: Optional[float] = None,
) -> Tuple[ModelBinding, ProviderCapabilities]:
    """Resolve a model name (optionally ``provider:model``) against capability records."""

    provider_id = normalize_provider(provider) or infer_provider_from_model(model)
    if not provider_id:
        raise ProviderNotFoundError(f"Cannot infer a provider for model '{model}'; pass provider=")
    caps = get_capabilities(provider_id)
    logical = strip_provider_prefix(model) or caps.default_model
    api_model = caps.resolve_api_model(logical)
    options = GenerationOptions(
        model_name=api_model,
        temperature=caps.default_temperature if temperature is None else float(temperature),
        max_output_tokens=caps.max_output_tokens,
    )
    return ModelBinding(provider=provider_id, logical_model=logical, api_model=api_model, options=options), caps


class BoundNerd:
    """A nerd bound to one model: compiled prompt, agent kind and adapters."""

    def __init__(
        self,
        spec: NerdSpec,
        binding: ModelBinding,
        agent: Agent,
        template: PromptTemplate,
        adapter: ChatAdapter,
        *,
        repairer: Optional[OutputRepairer] = None,
        context: Optional[ProviderContext] = None,
        result_sinks: Sequence[ResultSink] = (),
        repair_without_boundaries: bool = False,
    ) -> None:
        self.spec = spec
        self.binding = binding
        self.agent = agent
        self.template = template
        self.adapter = adapter
        self.repairer = repairer
        self.context = context
        self.result_sinks: Tuple[ResultSink, ...] = tuple(result_sinks)
        self.repair_without_boundaries = repair_without_boundaries
        self._runner: Optional[ModelCall] = None

    def __repr__(self) -> str:
        return (
            f"BoundNerd(name={self.spec.name!r}, provider={self.binding.provider!r}, "
            f"model={self.binding.api_model!r}, agent={self.agent.kind!r})"
        )

    @property
    def runner(self) -> ModelCall:
        if self._runner is None:
            self._runner = self._build_runner()
        return self._runner

    def _build_runner(self) -> ModelCall:
        binding = self.binding
        log_ctx = {"nerd": self.spec.name, "provider": binding.provider, "model": binding.api_model}

        def _call(
            messages: Sequence[ChatMessage],
            *,
            tools: Optional[Sequence[Tool]] = None,
            stop: Tuple[str, ...] = (),
        ) -> ChatTurn:
            options = replace(binding.options, stop=tuple(stop)) if stop else binding.options
            digest = prompt_sha256(m.content for m in messages)
            _LOGGER.info(
                "invoking nerd=%s provider=%s model=%s prompt_sha256=%s",
                self.spec.name,
                binding.provider,
                binding.api_model,
                digest,
            )
            with timed("model_call", {**log_ctx, "prompt_sha256": digest[:16]}):
                return self.adapter(messages, options, tools=tools or None, context=self.context)

        return _call

    def render(self, input_text: str, querytime_instructions: str = "") -> list[ChatMessage]:
        """The first-step messages this nerd would send for an input."""

        text = apply_preprocessors(input_text, self.spec.input_preprocessors)
        return self.template.render(text, querytime_instructions)

    def invoke_raw(self, input_text: str, querytime_instructions: str = "") -> str:
        text = apply_preprocessors(input_text, self.spec.input_preprocessors)
        return self.agent.run(self.template, self.runner, text, querytime_instructions)

    def invoke_detailed(self, input_text: str, querytime_instructions: str = "") -> ExtractionOutcome:
        raw = self.invoke_raw(input_text, querytime_instructions)
        with timed("parse", {"nerd": self.spec.name, "parser": self.spec.parser.mode}):
            outcome = extract_with_repair(
                raw,
                self.spec.parser,
                self.repairer,
                repair_without_boundaries=self.repair_without_boundaries,
            )
        if outcome.warnings:
            _LOGGER.info("nerd=%s parse warnings=%s", self.spec.name, outcome.warnings)
        for sink in self.result_sinks:
            sink(outcome.result)
        return outcome

    def invoke(self, input_text: str, querytime_instructions: str = "") -> Any:
        """Run the nerd and return the parsed result (model, dict or string)."""

        return self.invoke_detailed(input_text, querytime_instructions).result

    def as_tool(self, name: Optional[str] = None, description: Optional[str] = None) -> Tool:
        """Expose this bound nerd as a tool taking ``{input, runtime_instructions?}``."""

        def _run(input: str, runtime_instructions: Optional[str] = None) -> str:
            result = self.invoke(input, runtime_instructions or "")
            if isinstance(result, BaseModel):
                return result.model_dump_json(indent=2, by_alias=True)
            return result if isinstance(result, str) else str(result)

        return make_tool(
            name or self.spec.name,
            description or self.spec.as_tool_description,
            _run,
            NerdToolInput,
        )


def bind_nerd(
    spec: NerdSpec,
    model: str,
    *,
    provider: Optional[str] = None,
    adapter: Optional[ChatAdapter] = None,
    repair_adapter: Optional[ChatAdapter] = None,
    repair_model: Optional[str] = None,
    context: Optional[ProviderContext] = None,
    mock: Optional[bool] = None,
    temperature: Optional[float] = None,
    result_sinks: Iterable[ResultSink] = (),
    repair_without_boundaries: bool = False,
    settings: Optional[NerdsSettings] = None,
) -> BoundNerd:
    """Bind ``spec`` to ``model``, selecting the agent kind once.

    Raises ``UnsupportedPlatformError`` when the provider is not allowed for
    the nerd. An injected ``adapter`` also serves repairs unless
    ``repair_adapter`` is given.
    """

    settings = settings or load_settings()
    use_mock = settings.mock if mock is None else mock
    mode = "MOCK" if use_mock else "LIVE"

    binding, caps = resolve_binding(
        model,
        provider=provider,
        temperature=settings.default_temperature if temperature is None else temperature,
    )
    if binding.provider not in spec.platforms:
        raise UnsupportedPlatformError(binding.provider, spec.platforms)

    agent = select_agent(
        spec.tools,
        native_tools=caps.supports_native_tools(binding.api_model),
        max_iterations=spec.max_iterations,
    )
    if isinstance(agent, SimpleAgent) and spec.parser.is_structured and caps.supports_json_mode:
        binding = replace(binding, options=replace(binding.options, response_mime_type=JSON_MIME_TYPE))

    template = build_nerd_prompt(
        spec,
        tool_instructions=agent.tool_instructions(),
        format_instructions=spec.parser.format_instructions(),
        has_scratchpad=not isinstance(agent, SimpleAgent),
    )
    chat = adapter or get_chat_adapter(provider=binding.provider, provider_mode=mode)

    repairer: Optional[OutputRepairer] = None
    if spec.parser.is_structured:
        repair_binding, _ = resolve_binding(repair_model or settings.repair_model, temperature=0.0)
        repair_chat = repair_adapter or adapter or get_chat_adapter(provider=repair_binding.provider, provider_mode=mode)
        repairer = OutputRepairer(repair_chat, repair_binding.options, context)

    _LOGGER.debug(
        "bound nerd=%s provider=%s model=%s agent=%s mode=%s",
        spec.name,
        binding.provider,
        binding.api_model,
        agent.kind,
        mode,
    )
    return BoundNerd(
        spec,
        binding,
        agent,
        template,
        chat,
        repairer=repairer,
        context=context,
        result_sinks=tuple(result_sinks),
        repair_without_boundaries=repair_without_boundaries,
    )


def spec_from_config(
    cfg: NerdConfig,
    *,
    tools: Sequence[Tool] = (),
    settings: Optional[NerdsSettings] = None,
) -> NerdSpec:
    """Build a NerdSpec from a YAML/JSON nerd description."""

    settings = settings or load_settings()
    return NerdSpec(
        name=cfg.name,
        purpose=cfg.purpose,
        parser=get_builtin_parser(cfg.output),
        do_list=tuple(cfg.do_list),
        do_not_list=tuple(cfg.do_not_list),
        strategy=cfg.strategy,
        additional_notes=cfg.additional_notes,
        as_tool_description=cfg.as_tool_description,
        tools=tuple(tools),
        input_preprocessors=(line_number_inserter,) if cfg.number_lines else (),
        max_iterations=settings.max_iterations,
    )


__all__ = [
    "ALL_PLATFORMS",
    "TOOL_PLATFORMS",
    "BoundNerd",
    "ModelBinding",
    "NerdSpec",
    "bind_nerd",
    "resolve_binding",
    "spec_from_config",
]
