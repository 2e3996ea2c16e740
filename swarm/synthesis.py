"""Synthesis stage: one streaming call that merges all refined answers."""

import logging
import time
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass

from config.config_loader import PromptsConfig
from swarm.errors import StreamFailure
from swarm.models import AgentConfig, Content, Part, Source
from swarm.providers.base import ModelClient, ProviderError
from swarm.refinement import with_internal_context

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SynthesisDelta:
    delta: str
    text: str                      # everything received so far
    citations: tuple[Source, ...] = ()


@dataclass(frozen=True)
class SynthesisDone:
    text: str
    sources: tuple[Source, ...]


SynthesisEvent = SynthesisDelta | SynthesisDone


def build_synthesis_context(refined_answers: list[str], prompts: PromptsConfig) -> str:
    """List every refined answer under an explicit ordinal label."""
    entries = "\n\n".join(
        prompts.refined_entry.format(number=number, answer=answer)
        for number, answer in enumerate(refined_answers, start=1)
    )
    return prompts.synthesis.format(count=len(refined_answers), refined_answers=entries)


def dedupe_sources(citations: Iterable[Source]) -> tuple[Source, ...]:
    """Drop citations without a uri and keep the first occurrence of each uri."""
    seen: set[str] = set()
    sources: list[Source] = []
    for citation in citations:
        if not citation.uri or citation.uri in seen:
            continue
        seen.add(citation.uri)
        sources.append(citation)
    return tuple(sources)


async def stream_synthesis(
    refined_answers: list[str],
    history: list[Content],
    base_parts: list[Part],
    client: ModelClient,
    config: AgentConfig,
    prompts: PromptsConfig,
) -> AsyncIterator[SynthesisEvent]:
    """Stream the final answer.

    Yields one SynthesisDelta per chunk, carrying the whole text received so
    far, then a single SynthesisDone with the deduplicated sources. Citations
    are only released in the done event.

    Raises:
        StreamFailure: If the client fails before or during the stream.
    """
    contents = with_internal_context(
        history, base_parts, build_synthesis_context(refined_answers, prompts), prompts
    )

    logger.info("Running synthesis over %d refined answers via %s", len(refined_answers), client.name())
    start = time.monotonic()

    text = ""
    pending: list[Source] = []
    try:
        async for chunk in client.generate_stream(contents, config):
            text += chunk.text_delta
            pending.extend(chunk.citations)
            yield SynthesisDelta(delta=chunk.text_delta, text=text, citations=chunk.citations)
    except ProviderError as exc:
        logger.warning("Synthesis stream failed after %d chars: %s", len(text), exc)
        raise StreamFailure(str(exc), partial_text=text) from exc
    except Exception as exc:
        logger.warning("Synthesis stream unexpected failure after %d chars: %s", len(text), exc)
        raise StreamFailure(f"Unexpected error: {exc}", partial_text=text) from exc

    sources = dedupe_sources(pending)
    logger.info(
        "Synthesis complete: %.2fs, %d chars, %d sources",
        time.monotonic() - start,
        len(text),
        len(sources),
    )
    yield SynthesisDone(text=text, sources=sources)
