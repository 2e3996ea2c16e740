"""Click CLI — loads config, builds the model client, runs the agent pipeline."""

import asyncio
import logging
import mimetypes
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.logging import RichHandler

from config.config_loader import AppConfig, load_config
from swarm.errors import ValidationError
from swarm.healthcheck import run_health_checks
from swarm.models import Attachment, StageConfigs, Turn
from swarm.output import ConsoleView, console
from swarm.providers.anthropic import AnthropicClient
from swarm.providers.base import ModelClient, ProviderError
from swarm.providers.gemini import GeminiClient
from swarm.providers.openai_provider import OpenAIClient
from swarm.runner import PipelineRunner

logger = logging.getLogger(__name__)

CLIENT_CLASSES: dict[str, type[ModelClient]] = {
    "google-genai": GeminiClient,
    "openai": OpenAIClient,
    "anthropic": AnthropicClient,
}

_EXIT_COMMANDS = {"/exit", "/quit"}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _resolve_provider(config: AppConfig, provider_arg: str | None) -> str:
    """Pick the provider: --provider wins, then the configured default.

    Falls back to the first available provider when the default has no API key.
    Raises click.UsageError when nothing usable is configured.
    """
    if provider_arg:
        if provider_arg not in config.providers:
            raise click.UsageError(
                f"Unknown provider '{provider_arg}'. Choose from: {', '.join(sorted(config.providers))}"
            )
        return provider_arg
    if config.defaults.provider in config.available_providers:
        return config.defaults.provider
    available = sorted(config.available_providers)
    if not available:
        raise click.UsageError("No providers available. Check API keys in .env.")
    logger.warning("Default provider '%s' has no API key, using '%s'", config.defaults.provider, available[0])
    return available[0]


def _build_client(config: AppConfig, provider_name: str) -> ModelClient:
    provider_cfg = config.providers[provider_name]
    client_cls = CLIENT_CLASSES.get(provider_cfg.sdk)
    if client_cls is None:
        raise click.UsageError(f"Provider '{provider_name}' uses unsupported sdk '{provider_cfg.sdk}'")
    return client_cls(provider_cfg)


def _load_attachment(path: Path) -> Attachment:
    """Read an image file. Size is checked by the runner, not here."""
    mime_type, _ = mimetypes.guess_type(path.name)
    if not mime_type or not mime_type.startswith("image/"):
        raise click.BadParameter(f"{path} is not an image file", param_hint="--image")
    return Attachment(data=path.read_bytes(), mime_type=mime_type)


async def _check_health(client: ModelClient, stages: StageConfigs) -> bool:
    """Ping the stage models and ask the user what to do on failures.

    Returns False when the user declines to continue.
    """
    console.print("\n[bold]Checking models...[/bold]")
    model_ids = [stages.initial.model_id, stages.refinement.model_id, stages.synthesis.model_id]
    results = await run_health_checks(client, model_ids)

    failed = False
    for model_id in sorted(results):
        ok, err = results[model_id]
        if ok:
            console.print(f"  [green]OK  [/green] {model_id}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {model_id}: {short_err}")
            failed = True

    console.print()
    if not failed:
        return True
    return await asyncio.to_thread(click.confirm, "Continue anyway?", default=False)


def _last_model_turn(runner: PipelineRunner) -> Turn | None:
    turns = runner.turns
    if turns and turns[-1].role == "model":
        return turns[-1]
    return None


async def _ask(
    runner: PipelineRunner,
    view: ConsoleView,
    text: str,
    image: Attachment | None,
    show_work: bool,
) -> None:
    """Submit one question and render the outcome."""
    turns_before = len(runner.turns)
    try:
        await runner.submit(text, image)
    except ValidationError as exc:
        view.finish(None)
        console.print(f"[bold red]Error:[/bold red] {exc}")
        return
    turn = _last_model_turn(runner) if len(runner.turns) > turns_before else None
    view.finish(turn, show_work=show_work)


async def _chat_loop(
    runner: PipelineRunner,
    view: ConsoleView,
    image: Attachment | None,
    show_work: bool,
) -> None:
    """Interactive session. History carries across questions; /exit quits.

    A --image attachment is sent with the first question only.
    """
    console.print("[dim]Type a question, or /exit to quit.[/dim]")
    while True:
        try:
            text = await asyncio.to_thread(click.prompt, "You", default="", show_default=False)
        except (EOFError, click.Abort):
            break
        if text.strip() in _EXIT_COMMANDS:
            break
        if not text.strip() and image is None:
            continue
        await _ask(runner, view, text, image, show_work)
        image = None


async def _run(
    client: ModelClient,
    stages: StageConfigs,
    runner: PipelineRunner,
    view: ConsoleView,
    question: str | None,
    image: Attachment | None,
    chat: bool,
    show_work: bool,
    skip_health_check: bool,
) -> None:
    if not skip_health_check and not await _check_health(client, stages):
        return
    if chat:
        await _chat_loop(runner, view, image, show_work)
    else:
        await _ask(runner, view, question or "", image, show_work)


@click.command()
@click.argument("question", required=False)
@click.option("--image", "image_path", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Attach an image to the question")
@click.option("--agents", "num_agents", default=None, type=click.IntRange(min=1),
              help="Number of parallel agents (default: from config)")
@click.option("--provider", default=None, help="Provider from settings.yaml (default: from config)")
@click.option("--chat", is_flag=True, default=False, help="Interactive session with conversation history")
@click.option("--show-work", is_flag=True, default=False, help="Print every agent's intermediate answers")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    question: str | None,
    image_path: Path | None,
    num_agents: int | None,
    provider: str | None,
    chat: bool,
    show_work: bool,
    skip_health_check: bool,
    verbose: bool,
) -> None:
    """AI Swarm -- several agents answer, critique each other, one synthesizes.

    \b
    Examples:
      swarm "Explain the concept of agentic workflows in AI."
      swarm "What is in this picture?" --image photo.png --show-work
      swarm "Compare Next.js and Remix" --agents 6 --provider openai
      swarm --chat
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    if not chat and not question and image_path is None:
        console.print("[bold red]Error:[/bold red] Provide a QUESTION argument, --image, or --chat.")
        sys.exit(1)

    provider_name = _resolve_provider(config, provider)
    try:
        client = _build_client(config, provider_name)
    except ProviderError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    image = _load_attachment(image_path) if image_path else None
    effective_agents = num_agents if num_agents is not None else config.defaults.num_agents
    stages = config.stage_configs(provider_name)

    # The spinner reads the runner's elapsed time, which freezes when synthesis starts.
    view = ConsoleView(effective_agents, elapsed=lambda: runner.elapsed_sec)
    runner = PipelineRunner(
        client=client,
        stages=stages,
        prompts=config.prompts,
        num_agents=effective_agents,
        max_attachment_bytes=config.defaults.max_attachment_bytes,
        on_status=view.on_status,
        on_publish=view.on_publish,
    )

    console.print(
        f"\n[bold cyan]AI Swarm[/bold cyan] — {effective_agents} agents via {client.name()} "
        f"({stages.synthesis.model_id})"
    )

    asyncio.run(
        _run(
            client=client,
            stages=stages,
            runner=runner,
            view=view,
            question=question,
            image=image,
            chat=chat,
            show_work=show_work,
            skip_health_check=skip_health_check,
        )
    )


if __name__ == "__main__":
    main()
