"""Pure dataclasses for the agent swarm pipeline. No logic, no deps."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

Role = Literal["user", "model"]


@dataclass(frozen=True)
class Attachment:
    data: bytes
    mime_type: str         # e.g. "image/png"


@dataclass(frozen=True)
class Source:
    uri: str
    title: str = ""


@dataclass(frozen=True)
class WorkTrace:
    initial_responses: tuple[str, ...]
    refined_responses: tuple[str, ...]


@dataclass(frozen=True)
class Turn:
    role: Role
    text_parts: tuple[str, ...]
    image: Attachment | None = None
    sources: tuple[Source, ...] = ()
    work: WorkTrace | None = None

    @property
    def text(self) -> str:
        return "".join(self.text_parts)


@dataclass(frozen=True)
class AgentConfig:
    model_id: str
    system_instruction: str = ""
    temperature: float = 0.7
    search_enabled: bool = False
    thinking_budget: int | None = None


@dataclass(frozen=True)
class StageConfigs:
    initial: AgentConfig
    refinement: AgentConfig
    synthesis: AgentConfig


@dataclass(frozen=True)
class Part:
    text: str | None = None
    inline_data: Attachment | None = None


@dataclass(frozen=True)
class Content:
    role: Role
    parts: tuple[Part, ...]


@dataclass(frozen=True)
class Generation:
    text: str
    citations: tuple[Source, ...] = ()


@dataclass(frozen=True)
class StreamChunk:
    text_delta: str
    citations: tuple[Source, ...] = ()


class Stage(Enum):
    IDLE = "idle"
    FAN_OUT = "fan_out"
    REFINE = "refine"
    SYNTHESIZE = "synthesize"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PipelineRun:
    input_turn: Turn
    started_at: float              # time.monotonic() at submission
    stage: Stage = Stage.FAN_OUT
    initial_answers: list[str] = field(default_factory=list)
    refined_answers: list[str] = field(default_factory=list)
