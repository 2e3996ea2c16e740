"""Unit tests for swarm/healthcheck.py — no real API calls."""

import asyncio
from unittest.mock import AsyncMock

from swarm.healthcheck import run_health_checks
from swarm.models import Generation
from swarm.providers.base import ProviderError
from tests.conftest import MockClient


async def test_all_models_pass():
    """All models succeed -> all marked ok, no errors."""
    client = MockClient("OK")

    results = await run_health_checks(client, ["model-a", "model-b"])

    assert results == {"model-a": (True, ""), "model-b": (True, "")}


async def test_duplicate_models_pinged_once():
    client = MockClient("OK")

    results = await run_health_checks(client, ["model-a", "model-a", "model-a"])

    assert list(results) == ["model-a"]
    assert client.generate_once.call_count == 1


async def test_ping_uses_requested_model():
    client = MockClient("OK")

    await run_health_checks(client, ["gemini-2.5-flash"])

    contents, config = client.generate_once.call_args.args
    assert config.model_id == "gemini-2.5-flash"
    assert config.search_enabled is False
    assert contents[0].parts[0].text == "Reply with the word OK only."


async def test_one_model_fails():
    """A model that raises returns ok=False with the error message."""
    client = MockClient()

    async def fail_for_b(contents, config):
        if config.model_id == "model-b":
            raise ProviderError("mock", "403 Forbidden")
        return Generation(text="OK")

    client.generate_once = AsyncMock(side_effect=fail_for_b)

    results = await run_health_checks(client, ["model-a", "model-b"])

    assert results["model-a"] == (True, "")
    ok, err = results["model-b"]
    assert ok is False
    assert "403" in err


async def test_empty_model_list():
    results = await run_health_checks(MockClient(), [])
    assert results == {}


async def test_timeout_counts_as_failure():
    """A model that hangs past the timeout is marked as failed."""
    client = MockClient()

    async def hang(*args, **kwargs):
        await asyncio.sleep(9999)

    client.generate_once = AsyncMock(side_effect=hang)

    # Patch the timeout to 0.05s so the test runs fast
    import swarm.healthcheck as hc
    original = hc._TIMEOUT_SEC
    hc._TIMEOUT_SEC = 0.05
    try:
        results = await run_health_checks(client, ["slow"])
    finally:
        hc._TIMEOUT_SEC = original

    ok, _ = results["slow"]
    assert ok is False
