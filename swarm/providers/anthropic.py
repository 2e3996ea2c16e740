"""Anthropic Claude client using anthropic SDK with native async."""

import asyncio
import base64
import logging
import os
import time
from collections.abc import AsyncIterator

import anthropic as anthropic_sdk

from config.config_loader import ProviderConfig
from swarm.models import AgentConfig, Content, Generation, StreamChunk
from swarm.providers.base import ModelClient, ProviderError

logger = logging.getLogger(__name__)

_ROLES = {"user": "user", "model": "assistant"}


def _to_messages(contents: list[Content]) -> list[dict]:
    messages: list[dict] = []
    for content in contents:
        blocks: list[dict] = []
        for part in content.parts:
            if part.inline_data is not None:
                blocks.append({
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": part.inline_data.mime_type,
                        "data": base64.b64encode(part.inline_data.data).decode("ascii"),
                    },
                })
            if part.text:
                blocks.append({"type": "text", "text": part.text})
        messages.append({"role": _ROLES[content.role], "content": blocks})
    return messages


class AnthropicClient(ModelClient):
    """Anthropic Claude client via anthropic SDK. No search grounding."""

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    def _request_kwargs(self, contents: list[Content], config: AgentConfig) -> dict:
        kwargs: dict = {
            "model": config.model_id,
            "max_tokens": self._config.max_tokens,
            "temperature": config.temperature,
            "messages": _to_messages(contents),
        }
        if config.system_instruction:
            kwargs["system"] = config.system_instruction
        return kwargs

    async def generate_once(self, contents: list[Content], config: AgentConfig) -> Generation:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(**self._request_kwargs(contents, config)),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        if not response.content:
            raise ProviderError(self._config.name, "Empty response content")

        text_blocks = [b.text for b in response.content if b.type == "text"]
        if not text_blocks:
            raise ProviderError(self._config.name, "No text blocks in response")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.input_tokens + response.usage.output_tokens

        logger.info("Anthropic %s: %.2fs, %s tokens", config.model_id, latency, token_count)

        return Generation(text="\n".join(text_blocks))

    async def generate_stream(self, contents: list[Content], config: AgentConfig) -> AsyncIterator[StreamChunk]:
        start = time.monotonic()
        chunk_count = 0
        try:
            async with self._client.messages.stream(**self._request_kwargs(contents, config)) as stream:
                async for text in stream.text_stream:
                    chunk_count += 1
                    yield StreamChunk(text_delta=text)
        except Exception as exc:
            raise ProviderError(self._config.name, f"Stream failed after {chunk_count} chunks: {exc}") from exc

        logger.info("Anthropic stream %s: %.2fs, %d chunks", config.model_id, time.monotonic() - start, chunk_count)
