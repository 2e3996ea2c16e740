"""Model health checks — ping each stage model before starting a run."""

import asyncio
import logging

from swarm.models import AgentConfig, Content, Part
from swarm.providers.base import ModelClient

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(client: ModelClient, model_id: str) -> tuple[str, bool, str]:
    """Ping a single model. Returns (model_id, ok, error_message)."""
    contents = [Content(role="user", parts=(Part(text=_PING_PROMPT),))]
    config = AgentConfig(model_id=model_id, temperature=0.0)
    try:
        await asyncio.wait_for(client.generate_once(contents, config), timeout=_TIMEOUT_SEC)
        return model_id, True, ""
    except Exception as exc:
        return model_id, False, str(exc)


async def run_health_checks(
    client: ModelClient,
    model_ids: list[str],
) -> dict[str, tuple[bool, str]]:
    """Ping every distinct model in parallel.

    Returns:
        Dict mapping model id -> (ok, error_message).
        error_message is "" when ok is True.
    """
    unique = list(dict.fromkeys(model_ids))
    results = await asyncio.gather(*(_check_one(client, m) for m in unique))
    for model_id, ok, err in results:
        if not ok:
            logger.debug("Health check failed for %s: %s", model_id, err)
    return {model_id: (ok, err) for model_id, ok, err in results}
