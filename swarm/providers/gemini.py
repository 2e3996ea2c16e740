"""Gemini client using google-genai SDK with native async."""

import asyncio
import logging
import os
import time
from collections.abc import AsyncIterator

from google import genai
from google.genai import types as genai_types

from config.config_loader import ProviderConfig
from swarm.models import AgentConfig, Content, Generation, Source, StreamChunk
from swarm.providers.base import ModelClient, ProviderError

logger = logging.getLogger(__name__)


def _to_genai_contents(contents: list[Content]) -> list[genai_types.Content]:
    converted: list[genai_types.Content] = []
    for content in contents:
        parts: list[genai_types.Part] = []
        for part in content.parts:
            if part.inline_data is not None:
                parts.append(
                    genai_types.Part.from_bytes(
                        data=part.inline_data.data,
                        mime_type=part.inline_data.mime_type,
                    )
                )
            if part.text is not None:
                parts.append(genai_types.Part(text=part.text))
        converted.append(genai_types.Content(role=content.role, parts=parts))
    return converted


def _extract_citations(response) -> tuple[Source, ...]:
    """Pull web grounding chunks out of a response or stream chunk.

    Entries without a uri are kept here; the synthesis stage filters them.
    """
    candidates = getattr(response, "candidates", None)
    if not candidates:
        return ()
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) if metadata else None
    if not chunks:
        return ()
    citations: list[Source] = []
    for chunk in chunks:
        web = getattr(chunk, "web", None)
        if web is None:
            continue
        citations.append(Source(uri=web.uri or "", title=web.title or ""))
    return tuple(citations)


class GeminiClient(ModelClient):
    """Google Gemini client via google-genai SDK."""

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = genai.Client(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    def _generate_config(self, config: AgentConfig) -> genai_types.GenerateContentConfig:
        tools = [genai_types.Tool(google_search=genai_types.GoogleSearch())] if config.search_enabled else None
        thinking = (
            genai_types.ThinkingConfig(thinking_budget=config.thinking_budget)
            if config.thinking_budget is not None
            else None
        )
        return genai_types.GenerateContentConfig(
            system_instruction=config.system_instruction or None,
            temperature=config.temperature,
            max_output_tokens=self._config.max_tokens,
            tools=tools,
            thinking_config=thinking,
        )

    async def generate_once(self, contents: list[Content], config: AgentConfig) -> Generation:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=config.model_id,
                    contents=_to_genai_contents(contents),
                    config=self._generate_config(config),
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        if not response.text:
            raise ProviderError(self._config.name, "Empty response text")

        token_count: int | None = None
        if response.usage_metadata:
            token_count = response.usage_metadata.total_token_count

        logger.info("Gemini %s: %.2fs, %s tokens", config.model_id, latency, token_count)

        return Generation(text=response.text, citations=_extract_citations(response))

    async def generate_stream(self, contents: list[Content], config: AgentConfig) -> AsyncIterator[StreamChunk]:
        start = time.monotonic()
        try:
            stream = await asyncio.wait_for(
                self._client.aio.models.generate_content_stream(
                    model=config.model_id,
                    contents=_to_genai_contents(contents),
                    config=self._generate_config(config),
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        chunk_count = 0
        try:
            async for chunk in stream:
                chunk_count += 1
                yield StreamChunk(text_delta=chunk.text or "", citations=_extract_citations(chunk))
        except Exception as exc:
            raise ProviderError(self._config.name, f"Stream failed after {chunk_count} chunks: {exc}") from exc

        logger.info("Gemini stream %s: %.2fs, %d chunks", config.model_id, time.monotonic() - start, chunk_count)
