"""Fan-out execution: N concurrent agent calls joined in agent order."""

import asyncio
import logging

from swarm.errors import StageFailure
from swarm.models import AgentConfig, Content, Generation
from swarm.providers.base import ModelClient, ProviderError

logger = logging.getLogger(__name__)


async def _call_agent(
    client: ModelClient,
    contents: list[Content],
    config: AgentConfig,
    stage: str,
    index: int,
) -> Generation:
    """Call the client once for one agent. Any failure becomes a StageFailure."""
    try:
        return await client.generate_once(contents, config)
    except ProviderError as exc:
        logger.warning("Agent %d failed in %s stage: %s", index + 1, stage, exc)
        raise StageFailure(stage, index, str(exc)) from exc
    except Exception as exc:
        logger.warning("Agent %d unexpected failure in %s stage: %s", index + 1, stage, exc)
        raise StageFailure(stage, index, f"Unexpected error: {exc}") from exc


async def gather_agents(
    stage: str,
    requests: list[list[Content]],
    client: ModelClient,
    config: AgentConfig,
) -> list[Generation]:
    """Run one call per request concurrently and return results in request order.

    All-or-nothing: the first failure cancels the calls still in flight and
    propagates as StageFailure. Nothing is retried.
    """
    logger.info("Starting %s stage with %d agents", stage, len(requests))

    tasks = [
        asyncio.ensure_future(_call_agent(client, contents, config, stage, index))
        for index, contents in enumerate(requests)
    ]
    try:
        results = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        # Siblings must finish unwinding before the stage reports failure.
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    logger.info("%s stage complete: %d/%d agents succeeded", stage.capitalize(), len(results), len(requests))
    return list(results)


async def run_fan_out(
    contents: list[Content],
    client: ModelClient,
    config: AgentConfig,
    num_agents: int,
    stage: str = "initial",
) -> list[str]:
    """Send the same request to num_agents agents and return their answers.

    Divergence between agents comes from sampling temperature, not from the
    request. Citations from this stage are not kept.
    """
    if num_agents < 1:
        raise ValueError(f"num_agents must be >= 1, got {num_agents}")
    generations = await gather_agents(stage, [contents] * num_agents, client, config)
    return [g.text for g in generations]
