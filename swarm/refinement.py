"""Refinement stage: each agent critiques its own answer against its peers."""

import logging

from config.config_loader import PromptsConfig
from swarm.fanout import gather_agents
from swarm.models import AgentConfig, Content, Part
from swarm.providers.base import ModelClient

logger = logging.getLogger(__name__)


def build_critique_context(answers: list[str], index: int, prompts: PromptsConfig) -> str:
    """Build the critique text for agent `index`.

    The agent's own answer is quoted once as its previous response. The other
    answers keep their relative order and are numbered 1..N-1 without gaps.
    """
    peers = [answer for i, answer in enumerate(answers) if i != index]
    peer_block = "\n".join(
        prompts.peer_entry.format(number=number, answer=answer)
        for number, answer in enumerate(peers, start=1)
    )
    return prompts.critique.format(own_answer=answers[index], peer_answers=peer_block)


def with_internal_context(
    history: list[Content],
    base_parts: list[Part],
    context: str,
    prompts: PromptsConfig,
) -> list[Content]:
    """Return history plus a final user turn of base parts and the marked context."""
    parts = (*base_parts, Part(text=prompts.internal_context.format(context=context)))
    return [*history, Content(role="user", parts=parts)]


def build_refinement_requests(
    answers: list[str],
    history: list[Content],
    base_parts: list[Part],
    prompts: PromptsConfig,
) -> list[list[Content]]:
    """One request per agent, aligned to the agent index of `answers`."""
    return [
        with_internal_context(history, base_parts, build_critique_context(answers, i, prompts), prompts)
        for i in range(len(answers))
    ]


async def run_refinement(
    initial_answers: list[str],
    history: list[Content],
    base_parts: list[Part],
    client: ModelClient,
    config: AgentConfig,
    prompts: PromptsConfig,
) -> list[str]:
    """Run one critique call per agent and return refined answers in agent order.

    Raises:
        StageFailure: If any refinement call fails.
    """
    requests = build_refinement_requests(initial_answers, history, base_parts, prompts)
    logger.debug("Built %d critique requests", len(requests))
    generations = await gather_agents("refinement", requests, client, config)
    return [g.text for g in generations]
