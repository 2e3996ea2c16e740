"""Pipeline runner: sequences fan-out, refinement and synthesis for one turn log."""

import logging
import time
from collections.abc import Callable

from config.config_loader import PromptsConfig
from swarm.errors import AttachmentTooLarge, PipelineError, RunInProgressError, ValidationError
from swarm.fanout import run_fan_out
from swarm.history import TurnLog, build_user_parts, project_history
from swarm.models import Attachment, Content, PipelineRun, Stage, StageConfigs, Turn, WorkTrace
from swarm.providers.base import ModelClient
from swarm.refinement import run_refinement
from swarm.synthesis import SynthesisDelta, SynthesisDone, stream_synthesis

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTACHMENT_BYTES = 4 * 1024 * 1024

STATUS_FAN_OUT = "Initializing agents..."
STATUS_REFINE = "Refining answers..."

ERROR_TEMPLATE = "Sorry, I encountered an error: {message}. Please try again."


def validate_submission(text: str, image: Attachment | None, max_attachment_bytes: int) -> None:
    """Reject a submission before anything is sent.

    Raises:
        AttachmentTooLarge: If the image exceeds max_attachment_bytes.
        ValidationError: If the text is blank and there is no image.
    """
    if image is not None and len(image.data) > max_attachment_bytes:
        raise AttachmentTooLarge(len(image.data), max_attachment_bytes)
    if not text.strip() and image is None:
        raise ValidationError("Submission needs text or an image")


class PipelineRunner:
    """Owns the turn log and runs at most one pipeline against it at a time.

    Renderers read `turns`, `status`, `elapsed_sec` and `busy`; they may also
    register `on_status` (status string changes) and `on_publish` (the
    in-flight model turn was replaced) callbacks.
    """

    def __init__(
        self,
        client: ModelClient,
        stages: StageConfigs,
        prompts: PromptsConfig | None = None,
        num_agents: int = 4,
        max_attachment_bytes: int = DEFAULT_MAX_ATTACHMENT_BYTES,
        on_status: Callable[[str], None] | None = None,
        on_publish: Callable[[Turn], None] | None = None,
    ) -> None:
        if num_agents < 1:
            raise ValueError(f"num_agents must be >= 1, got {num_agents}")
        self._client = client
        self._stages = stages
        self._prompts = prompts or PromptsConfig()
        self._num_agents = num_agents
        self._max_attachment_bytes = max_attachment_bytes
        self._on_status = on_status
        self._on_publish = on_publish

        self._log = TurnLog()
        self._run: PipelineRun | None = None
        self._stage = Stage.IDLE
        self._status = ""
        self._frozen_elapsed: float | None = None

    @property
    def turns(self) -> tuple[Turn, ...]:
        return self._log.turns

    @property
    def status(self) -> str:
        return self._status

    @property
    def stage(self) -> Stage:
        return self._stage

    @property
    def busy(self) -> bool:
        return self._run is not None

    @property
    def num_agents(self) -> int:
        return self._num_agents

    @property
    def elapsed_sec(self) -> float:
        """Seconds from submission to the synthesis transition; 0.0 when idle."""
        if self._frozen_elapsed is not None:
            return self._frozen_elapsed
        if self._run is None:
            return 0.0
        return time.monotonic() - self._run.started_at

    def _set_status(self, status: str) -> None:
        self._status = status
        if self._on_status:
            self._on_status(status)

    def _enter(self, stage: Stage) -> None:
        logger.debug("Pipeline stage %s -> %s", self._stage.value, stage.value)
        self._stage = stage
        if self._run is not None:
            self._run.stage = stage
        if stage is Stage.FAN_OUT:
            self._set_status(STATUS_FAN_OUT)
        elif stage is Stage.REFINE:
            self._set_status(STATUS_REFINE)
        elif stage is Stage.SYNTHESIZE:
            self._frozen_elapsed = self.elapsed_sec
            self._set_status("")

    def _publish(self, turn: Turn, *, append: bool = False) -> None:
        if append:
            self._log.append(turn)
        else:
            self._log.replace_last(turn)
        if self._on_publish:
            self._on_publish(turn)

    async def submit(self, text: str, image: Attachment | None = None) -> None:
        """Run the full pipeline for one submission.

        Results arrive through the turn log. Stage and stream failures become
        a single error turn; they are not raised.

        Raises:
            RunInProgressError: If a run is already active.
            ValidationError: If the submission is empty or the image too large.
        """
        if self._run is not None:
            raise RunInProgressError("A pipeline run is already in progress")
        validate_submission(text, image, self._max_attachment_bytes)

        user_turn = Turn(role="user", text_parts=(text,), image=image)
        history = project_history(self._log.turns)
        self._run = PipelineRun(input_turn=user_turn, started_at=time.monotonic())
        self._log.append(user_turn)

        try:
            await self._execute(self._run, history)
        except PipelineError as exc:
            self._fail(exc)
        finally:
            self._run = None
            self._frozen_elapsed = None
            self._stage = Stage.IDLE
            if self._status:
                self._set_status("")

    async def _execute(self, run: PipelineRun, history: list[Content]) -> None:
        base_parts = build_user_parts(run.input_turn)
        request = [*history, Content(role="user", parts=tuple(base_parts))]

        self._enter(Stage.FAN_OUT)
        run.initial_answers = await run_fan_out(
            request, self._client, self._stages.initial, self._num_agents
        )

        self._enter(Stage.REFINE)
        run.refined_answers = await run_refinement(
            run.initial_answers, history, base_parts, self._client, self._stages.refinement, self._prompts
        )

        self._enter(Stage.SYNTHESIZE)
        logger.info("Agents finished in %.1fs, streaming synthesis", self.elapsed_sec)
        self._publish(Turn(role="model", text_parts=("",)), append=True)

        async for event in stream_synthesis(
            run.refined_answers, history, base_parts, self._client, self._stages.synthesis, self._prompts
        ):
            if isinstance(event, SynthesisDelta):
                self._publish(Turn(role="model", text_parts=(event.text,)))
            elif isinstance(event, SynthesisDone):
                work = WorkTrace(
                    initial_responses=tuple(run.initial_answers),
                    refined_responses=tuple(run.refined_answers),
                )
                self._publish(
                    Turn(role="model", text_parts=(event.text,), sources=event.sources, work=work)
                )

        self._enter(Stage.DONE)

    def _fail(self, exc: PipelineError) -> None:
        logger.error("Pipeline failed during %s: %s", self._stage.value, exc)
        if self._stage is Stage.SYNTHESIZE and self._log.turns and self._log.turns[-1].role == "model":
            # Partial synthesis text is dropped in favour of one error turn.
            self._log.remove_last()
        self._stage = Stage.FAILED
        self._set_status("")
        error_turn = Turn(role="model", text_parts=(ERROR_TEMPLATE.format(message=exc),))
        self._publish(error_turn, append=True)
