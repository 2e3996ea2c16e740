"""Tests for swarm/synthesis.py."""

import pytest

from swarm.errors import StreamFailure
from swarm.models import Part, Source, StreamChunk
from swarm.synthesis import (
    SynthesisDelta,
    SynthesisDone,
    build_synthesis_context,
    dedupe_sources,
    stream_synthesis,
)
from tests.conftest import MockClient


async def _collect(client, agent_config, prompts, refined=("a", "b")):
    events = []
    async for event in stream_synthesis(list(refined), [], [Part(text="q")], client, agent_config, prompts):
        events.append(event)
    return events


def test_build_synthesis_context_labels_every_answer(sample_prompts_config):
    context = build_synthesis_context(["first", "second", "third"], sample_prompts_config)

    assert context.startswith("Here are the 3 refined responses")
    assert 'Refined Response 1:\n"first"' in context
    assert 'Refined Response 2:\n"second"' in context
    assert 'Refined Response 3:\n"third"' in context


def test_dedupe_sources_keeps_first_occurrence():
    citations = [
        Source("https://b.example", "B"),
        Source("https://a.example", "A"),
        Source("https://b.example", "B again"),
        Source("", "no uri"),
        Source("https://c.example", ""),
        Source("https://a.example", "A again"),
    ]

    assert dedupe_sources(citations) == (
        Source("https://b.example", "B"),
        Source("https://a.example", "A"),
        Source("https://c.example", ""),
    )


def test_dedupe_sources_empty():
    assert dedupe_sources([]) == ()


async def test_stream_publishes_growing_text(agent_config, sample_prompts_config):
    deltas = ["The ", "answer ", "", "is 4."]
    client = MockClient(stream_chunks=[StreamChunk(d) for d in deltas])

    events = await _collect(client, agent_config, sample_prompts_config)

    texts = [e.text for e in events if isinstance(e, SynthesisDelta)]
    assert len(texts) == len(deltas)
    assert all(len(a) <= len(b) for a, b in zip(texts, texts[1:]))
    assert texts[-1] == "".join(deltas)
    assert isinstance(events[-1], SynthesisDone)
    assert events[-1].text == "The answer is 4."


async def test_citations_released_only_when_done(agent_config, sample_prompts_config):
    example = Source("https://example.com", "Example")
    other = Source("https://other.example", "Other")
    client = MockClient(stream_chunks=[
        StreamChunk("a", (example,)),
        StreamChunk("b", (other, example)),
        StreamChunk("c", (Source("", "blank"),)),
    ])

    events = await _collect(client, agent_config, sample_prompts_config)

    assert all(isinstance(e, SynthesisDelta) for e in events[:-1])
    assert events[-1].sources == (example, other)


async def test_stream_sends_one_request_with_all_answers(agent_config, sample_prompts_config):
    client = MockClient()

    await _collect(client, agent_config, sample_prompts_config, refined=("x", "y", "z"))

    assert len(client.stream_calls) == 1
    contents, config = client.stream_calls[0]
    assert config is agent_config
    final_text = contents[-1].parts[-1].text
    assert "---INTERNAL CONTEXT---" in final_text
    assert 'Refined Response 3:\n"z"' in final_text


async def test_failure_before_first_chunk(agent_config, sample_prompts_config):
    client = MockClient(stream_chunks=[StreamChunk("never")])
    client.stream_error_at = 0

    with pytest.raises(StreamFailure) as exc_info:
        await _collect(client, agent_config, sample_prompts_config)

    assert exc_info.value.partial_text == ""


async def test_failure_mid_stream_keeps_partial_text_on_error(agent_config, sample_prompts_config):
    client = MockClient(stream_chunks=[StreamChunk("Partial "), StreamChunk("lost")])
    client.stream_error_at = 1

    with pytest.raises(StreamFailure, match="stream interrupted") as exc_info:
        await _collect(client, agent_config, sample_prompts_config)

    assert exc_info.value.partial_text == "Partial "
