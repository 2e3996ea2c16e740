"""Pipeline error taxonomy."""


class PipelineError(Exception):
    """Base for every error the pipeline raises on purpose."""


class ValidationError(PipelineError):
    """Raised when a submission has neither text nor an image."""


class AttachmentTooLarge(ValidationError):
    """Raised when the attached image exceeds the configured byte limit."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"Attachment is {size} bytes, limit is {limit} bytes")


class RunInProgressError(PipelineError):
    """Raised when a submission arrives while another run is active."""


class StageFailure(PipelineError):
    """Raised when one agent call of a fan-out stage fails."""

    def __init__(self, stage: str, agent_index: int, message: str) -> None:
        self.stage = stage
        self.agent_index = agent_index
        super().__init__(f"{stage} stage failed at agent {agent_index + 1}: {message}")


class StreamFailure(PipelineError):
    """Raised when the synthesis stream fails before or during streaming."""

    def __init__(self, message: str, partial_text: str = "") -> None:
        self.partial_text = partial_text
        super().__init__(f"synthesis failed: {message}")
