"""Load settings.yaml into typed dataclasses. Checks API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from swarm.models import AgentConfig, StageConfigs

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

STAGE_NAMES = ("initial", "refinement", "synthesis")


@dataclass
class ProviderConfig:
    name: str
    sdk: str               # "google-genai", "openai", "anthropic"
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class StageConfig:
    system_instruction: str
    temperature: float = 0.7
    search: bool = True
    thinking_budget: int | None = None
    model: str | None = None   # falls back to the provider's model


@dataclass
class PromptsConfig:
    internal_context: str = "\n\n---INTERNAL CONTEXT---\n{context}"
    critique: str = (
        'My initial response was: "{own_answer}". The other agents responded with:\n'
        "{peer_answers}\n\n"
        "Based on this context, critically re-evaluate and provide a new, "
        "improved response to the original query."
    )
    peer_entry: str = '{number}. "{answer}"'
    synthesis: str = (
        "Here are the {count} refined responses to the user's query. Your task is "
        "to synthesize them into the best single, final answer.\n\n{refined_answers}"
    )
    refined_entry: str = 'Refined Response {number}:\n"{answer}"'


@dataclass
class DefaultsConfig:
    provider: str
    num_agents: int = 4
    max_attachment_bytes: int = 4 * 1024 * 1024


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    providers: dict[str, ProviderConfig]
    stages: dict[str, StageConfig]
    prompts: PromptsConfig = field(default_factory=PromptsConfig)
    available_providers: set[str] = field(default_factory=set)

    def agent_config(self, stage: str, provider: str) -> AgentConfig:
        """Resolve one stage into the AgentConfig sent with every call of that stage."""
        stage_cfg = self.stages[stage]
        return AgentConfig(
            model_id=stage_cfg.model or self.providers[provider].model,
            system_instruction=stage_cfg.system_instruction,
            temperature=stage_cfg.temperature,
            search_enabled=stage_cfg.search,
            thinking_budget=stage_cfg.thinking_budget,
        )

    def stage_configs(self, provider: str) -> StageConfigs:
        return StageConfigs(
            initial=self.agent_config("initial", provider),
            refinement=self.agent_config("refinement", provider),
            synthesis=self.agent_config("synthesis", provider),
        )


def _load_stage(raw: dict) -> StageConfig:
    thinking = raw.get("thinking_budget")
    return StageConfig(
        system_instruction=str(raw["system_instruction"]).strip(),
        temperature=float(raw.get("temperature", 0.7)),
        search=bool(raw.get("search", True)),
        thinking_budget=int(thinking) if thinking is not None else None,
        model=raw.get("model"),
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError if a stage
    section is missing. Logs missing API keys but does not raise; callers
    check available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        provider=str(defaults_raw["provider"]),
        num_agents=int(defaults_raw.get("num_agents", 4)),
        max_attachment_bytes=int(float(defaults_raw.get("max_attachment_mb", 4)) * 1024 * 1024),
    )
    if defaults.num_agents < 1:
        raise ValueError(f"num_agents must be >= 1, got {defaults.num_agents}")

    stages_raw = raw["stages"]
    missing = [name for name in STAGE_NAMES if name not in stages_raw]
    if missing:
        raise ValueError(f"Missing stage sections in settings: {', '.join(missing)}")
    stages = {name: _load_stage(stages_raw[name]) for name in STAGE_NAMES}

    prompts_raw = raw.get("prompts") or {}
    prompts = PromptsConfig(**{k: str(v) for k, v in prompts_raw.items()})

    providers: dict[str, ProviderConfig] = {}
    available_providers: set[str] = set()

    for provider_name, provider_raw in raw["providers"].items():
        provider_cfg = ProviderConfig(
            name=provider_name,
            sdk=provider_raw["sdk"],
            model=provider_raw["model"],
            api_key_env=provider_raw["api_key_env"],
            timeout_sec=int(provider_raw["timeout_sec"]),
            max_tokens=int(provider_raw["max_tokens"]),
            base_url=provider_raw.get("base_url"),
        )
        providers[provider_name] = provider_cfg

        api_key = os.environ.get(provider_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s — set %s in .env",
                provider_name,
                provider_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        providers=providers,
        stages=stages,
        prompts=prompts,
        available_providers=available_providers,
    )
