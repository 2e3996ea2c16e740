"""Abstract model client consumed by every pipeline stage."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from swarm.models import AgentConfig, Content, Generation, StreamChunk


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class ModelClient(ABC):
    """Abstract base for all generative model backends."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'gemini', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the provider's default model identifier."""
        ...

    @abstractmethod
    async def generate_once(self, contents: list[Content], config: AgentConfig) -> Generation:
        """Generate one complete response.

        Args:
            contents: Ordered conversation contents, last entry is the request.
            config: Stage settings, including the system instruction.

        Returns:
            Generation with the response text and any citations.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...

    @abstractmethod
    def generate_stream(self, contents: list[Content], config: AgentConfig) -> AsyncIterator[StreamChunk]:
        """Stream a response as text deltas, in arrival order.

        Raises:
            ProviderError: On API failure, before or after any chunk.
        """
        ...
