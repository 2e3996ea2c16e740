"""OpenAI client using openai SDK with native async.

Also serves OpenAI-compatible endpoints (e.g. xAI Grok) through base_url.
Neither search grounding nor thinking budgets are forwarded.
"""

import asyncio
import base64
import logging
import os
import time
from collections.abc import AsyncIterator

from openai import AsyncOpenAI

from config.config_loader import ProviderConfig
from swarm.models import AgentConfig, Content, Generation, StreamChunk
from swarm.providers.base import ModelClient, ProviderError

logger = logging.getLogger(__name__)

_ROLES = {"user": "user", "model": "assistant"}


def _to_messages(contents: list[Content], config: AgentConfig) -> list[dict]:
    messages: list[dict] = []
    if config.system_instruction:
        messages.append({"role": "system", "content": config.system_instruction})
    for content in contents:
        has_image = any(p.inline_data is not None for p in content.parts)
        if not has_image:
            text = "".join(p.text or "" for p in content.parts)
            messages.append({"role": _ROLES[content.role], "content": text})
            continue
        blocks: list[dict] = []
        for part in content.parts:
            if part.inline_data is not None:
                encoded = base64.b64encode(part.inline_data.data).decode("ascii")
                blocks.append({
                    "type": "image_url",
                    "image_url": {"url": f"data:{part.inline_data.mime_type};base64,{encoded}"},
                })
            if part.text is not None:
                blocks.append({"type": "text", "text": part.text})
        messages.append({"role": _ROLES[content.role], "content": blocks})
    return messages


class OpenAIClient(ModelClient):
    """OpenAI (or OpenAI-compatible) client via openai SDK."""

    def __init__(self, config: ProviderConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        if config.base_url:
            self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url)
        else:
            self._client = AsyncOpenAI(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def generate_once(self, contents: list[Content], config: AgentConfig) -> Generation:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=config.model_id,
                    messages=_to_messages(contents, config),
                    max_tokens=self._config.max_tokens,
                    temperature=config.temperature,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self._config.name, "Empty response content")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        logger.info("OpenAI %s: %.2fs, %s tokens", config.model_id, latency, token_count)

        return Generation(text=choice.message.content)

    async def generate_stream(self, contents: list[Content], config: AgentConfig) -> AsyncIterator[StreamChunk]:
        start = time.monotonic()
        try:
            stream = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=config.model_id,
                    messages=_to_messages(contents, config),
                    max_tokens=self._config.max_tokens,
                    temperature=config.temperature,
                    stream=True,
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
                if not chunk.choices:
                    continue
                chunk_count += 1
                yield StreamChunk(text_delta=chunk.choices[0].delta.content or "")
        except Exception as exc:
            raise ProviderError(self._config.name, f"Stream failed after {chunk_count} chunks: {exc}") from exc

        logger.info("OpenAI stream %s: %.2fs, %d chunks", config.model_id, time.monotonic() - start, chunk_count)
