"""Tests for provider selection and argument handling in swarm/cli.py."""

from pathlib import Path

import click
import pytest
from click.testing import CliRunner

from swarm.cli import _build_client, _load_attachment, _resolve_provider, main
from swarm.providers.gemini import GeminiClient
from swarm.providers.openai_provider import OpenAIClient


def test_resolve_provider_uses_default(sample_app_config):
    assert _resolve_provider(sample_app_config, None) == "gemini"


def test_resolve_provider_flag_wins(sample_app_config):
    assert _resolve_provider(sample_app_config, "openai") == "openai"


def test_resolve_provider_unknown_flag(sample_app_config):
    with pytest.raises(click.UsageError, match="Unknown provider"):
        _resolve_provider(sample_app_config, "nope")


def test_resolve_provider_falls_back_to_available(sample_app_config):
    sample_app_config.available_providers = {"openai"}
    assert _resolve_provider(sample_app_config, None) == "openai"


def test_resolve_provider_none_available(sample_app_config):
    sample_app_config.available_providers = set()
    with pytest.raises(click.UsageError, match="No providers available"):
        _resolve_provider(sample_app_config, None)


def test_build_client_dispatches_on_sdk(sample_app_config, monkeypatch):
    monkeypatch.setenv("TEST_GEMINI_KEY", "test-key")
    monkeypatch.setenv("TEST_OPENAI_KEY", "test-key")

    assert isinstance(_build_client(sample_app_config, "gemini"), GeminiClient)
    assert isinstance(_build_client(sample_app_config, "openai"), OpenAIClient)


def test_build_client_unknown_sdk(sample_app_config):
    sample_app_config.providers["gemini"].sdk = "carrier-pigeon"
    with pytest.raises(click.UsageError, match="unsupported sdk"):
        _build_client(sample_app_config, "gemini")


def test_load_attachment_reads_image(tmp_path: Path):
    path = tmp_path / "photo.png"
    path.write_bytes(b"\x89PNG\r\n")

    attachment = _load_attachment(path)

    assert attachment.mime_type == "image/png"
    assert attachment.data == b"\x89PNG\r\n"


def test_load_attachment_rejects_non_image(tmp_path: Path):
    path = tmp_path / "notes.txt"
    path.write_text("hello", encoding="utf-8")

    with pytest.raises(click.BadParameter):
        _load_attachment(path)


def test_main_requires_question_or_chat():
    result = CliRunner().invoke(main, ["--skip-health-check"])
    assert result.exit_code == 1
    assert "Provide a QUESTION" in result.output
