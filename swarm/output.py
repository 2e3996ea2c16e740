"""Rich console rendering for pipeline progress, streamed answers and work traces."""

import logging
from collections.abc import Callable

from rich.console import Console, Group
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import Progress, ProgressColumn, SpinnerColumn, Task, TextColumn, TimeElapsedColumn
from rich.rule import Rule
from rich.text import Text

from swarm.models import Source, Turn, WorkTrace

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _preview(text: str, words: int = 50) -> str:
    """Return the first N words of an agent answer."""
    all_words = text.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _source_label(source: Source) -> str:
    return source.title or source.uri


def print_work_trace(work: WorkTrace, full: bool = False) -> None:
    """Print every agent's initial and refined answer."""
    for label, answers in (("Initial Responses", work.initial_responses),
                           ("Refined Responses", work.refined_responses)):
        console.print(Rule(f"[bold cyan]{label}[/bold cyan]"))
        for i, answer in enumerate(answers, start=1):
            console.print(
                Panel(
                    answer if full else _preview(answer),
                    title=f"[bold]Agent {i}[/bold]",
                    border_style="dim",
                )
            )


def print_sources(sources: tuple[Source, ...]) -> None:
    if not sources:
        return
    console.print(Rule("[bold green]Sources[/bold green]"))
    for i, source in enumerate(sources, start=1):
        console.print(Text(f"{i}. {_source_label(source)} ", style="bold").append(source.uri, style="dim"))


class RunElapsedColumn(ProgressColumn):
    """Elapsed time as reported by the pipeline runner, frozen once synthesis starts."""

    def __init__(self, elapsed: Callable[[], float]) -> None:
        super().__init__()
        self._elapsed = elapsed

    def render(self, task: Task) -> Text:
        return Text(f"{self._elapsed():.1f}s", style="progress.elapsed")


class ConsoleView:
    """Renders runner callbacks: a spinner while agents run, live markdown while streaming.

    Rich allows one live display at a time, so the spinner is stopped before
    the streaming view starts.
    """

    def __init__(self, num_agents: int, elapsed: Callable[[], float] | None = None) -> None:
        self._num_agents = num_agents
        self._elapsed = elapsed
        self._progress: Progress | None = None
        self._task_id = None
        self._live: Live | None = None

    def on_status(self, status: str) -> None:
        if status:
            if self._progress is None:
                self._progress = Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    RunElapsedColumn(self._elapsed) if self._elapsed else TimeElapsedColumn(),
                    console=console,
                    transient=True,
                )
                self._progress.start()
                self._task_id = self._progress.add_task(status, total=None)
            else:
                self._progress.update(self._task_id, description=status)
            self._progress.print(f"[dim]{status} ({self._num_agents} agents)[/dim]")
        elif self._progress is not None:
            self._progress.stop()
            self._progress = None

    def on_publish(self, turn: Turn) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
        renderable = Group(Rule("[bold green]Synthesizer Agent[/bold green]"), Markdown(turn.text))
        if self._live is None:
            self._live = Live(renderable, console=console, refresh_per_second=8)
            self._live.start()
        else:
            self._live.update(renderable)

    def finish(self, turn: Turn | None, show_work: bool = False) -> None:
        """Stop live displays, leaving the answer on screen, then print work and sources."""
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
        if self._live is not None:
            self._live.stop()
            self._live = None
        if turn is None:
            return
        if show_work and turn.work is not None:
            print_work_trace(turn.work)
        print_sources(turn.sources)
