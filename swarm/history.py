"""Turn log and its projection into model request contents."""

from collections.abc import Iterable

from swarm.models import Content, Part, Turn


class TurnLog:
    """Ordered conversation log. One writer (the active run), many readers."""

    def __init__(self, turns: Iterable[Turn] = ()) -> None:
        self._turns: list[Turn] = list(turns)

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def append(self, turn: Turn) -> None:
        self._turns.append(turn)

    def replace_last(self, turn: Turn) -> None:
        if not self._turns:
            raise IndexError("replace_last on empty turn log")
        self._turns[-1] = turn

    def remove_last(self) -> Turn:
        return self._turns.pop()

    def __len__(self) -> int:
        return len(self._turns)


def project_history(turns: Iterable[Turn]) -> list[Content]:
    """Project finalized turns into (role, parts) request contents.

    Only the text parts are carried over. Sources, work traces and earlier
    image attachments are display-only and never re-enter a request.
    """
    return [
        Content(role=turn.role, parts=tuple(Part(text=t) for t in turn.text_parts))
        for turn in turns
    ]


def build_user_parts(turn: Turn) -> list[Part]:
    """Return the request parts of a submission: image first, then non-blank text."""
    parts: list[Part] = []
    if turn.image is not None:
        parts.append(Part(inline_data=turn.image))
    text = turn.text
    if text.strip():
        parts.append(Part(text=text))
    return parts
