"""Shared pytest fixtures."""

from collections.abc import AsyncIterator
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AppConfig, DefaultsConfig, PromptsConfig, ProviderConfig, StageConfig
from swarm.models import AgentConfig, Content, Generation, Part, StageConfigs, StreamChunk
from swarm.providers.base import ModelClient, ProviderError


@pytest.fixture
def sample_provider_config() -> ProviderConfig:
    return ProviderConfig(
        name="test_provider",
        sdk="google-genai",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def agent_config() -> AgentConfig:
    return AgentConfig(
        model_id="test-model-1",
        system_instruction="Answer briefly.",
        temperature=0.7,
        search_enabled=True,
        thinking_budget=1024,
    )


@pytest.fixture
def stage_configs() -> StageConfigs:
    return StageConfigs(
        initial=AgentConfig(model_id="test-model-1", system_instruction="initial"),
        refinement=AgentConfig(model_id="test-model-1", system_instruction="refine"),
        synthesis=AgentConfig(model_id="test-model-1", system_instruction="synthesize"),
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig()


@pytest.fixture
def sample_app_config(tmp_path: Path) -> AppConfig:
    providers = {
        "gemini": ProviderConfig(
            name="gemini",
            sdk="google-genai",
            model="gemini-2.5-pro",
            api_key_env="TEST_GEMINI_KEY",
            timeout_sec=60,
            max_tokens=4096,
        ),
        "openai": ProviderConfig(
            name="openai",
            sdk="openai",
            model="gpt-4.1",
            api_key_env="TEST_OPENAI_KEY",
            timeout_sec=60,
            max_tokens=4096,
        ),
    }
    stages = {
        "initial": StageConfig(system_instruction="initial", thinking_budget=32768),
        "refinement": StageConfig(system_instruction="refine"),
        "synthesis": StageConfig(system_instruction="synthesize", model="gemini-2.5-flash"),
    }
    return AppConfig(
        defaults=DefaultsConfig(provider="gemini"),
        providers=providers,
        stages=stages,
        available_providers={"gemini"},
    )


@pytest.fixture
def user_request() -> list[Content]:
    return [Content(role="user", parts=(Part(text="2+2?"),))]


class MockClient(ModelClient):
    """Test double ModelClient.

    generate_once is an AsyncMock. generate_stream replays `stream_chunks`
    and, when `stream_error_at` is set, raises ProviderError before yielding
    the chunk at that index (len(stream_chunks) means after the last chunk).
    """

    def __init__(
        self,
        answer: str = "Mock answer",
        stream_chunks: list[StreamChunk] | None = None,
        provider_name: str = "mock",
    ) -> None:
        self._name = provider_name
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because generate_once is defined in the class body below.
        self.generate_once = AsyncMock(return_value=Generation(text=answer))  # type: ignore[assignment]
        self.stream_chunks = stream_chunks if stream_chunks is not None else [StreamChunk("Mock synthesis")]
        self.stream_error_at: int | None = None
        self.stream_calls: list[tuple[list[Content], AgentConfig]] = []

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def generate_once(self, contents: list[Content], config: AgentConfig) -> Generation:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return Generation(text="Mock answer")

    async def generate_stream(self, contents: list[Content], config: AgentConfig) -> AsyncIterator[StreamChunk]:
        self.stream_calls.append((contents, config))
        for i, chunk in enumerate(self.stream_chunks):
            if self.stream_error_at == i:
                raise ProviderError(self._name, "stream interrupted")
            yield chunk
        if self.stream_error_at == len(self.stream_chunks):
            raise ProviderError(self._name, "stream interrupted")


@pytest.fixture
def mock_client() -> MockClient:
    return MockClient()
