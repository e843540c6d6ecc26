"""Interfaces of the collaborators the pipeline drives but does not own."""

from abc import ABC, abstractmethod
from collections.abc import Iterator

from models.illustration import Annotation, Candidate, Message


class AnnotationStore(ABC):
    """
    Transcript access for the pipeline.

    The pipeline reads role/text and writes the annotation field at most once per
    message; ``set_annotation`` is last-write-wins.
    """

    @abstractmethod
    def get_message(self, message_id: int) -> Message | None:
        ...

    @abstractmethod
    def get_annotation(self, message_id: int) -> Annotation | None:
        ...

    @abstractmethod
    def set_annotation(self, message_id: int, annotation: Annotation) -> None:
        ...

    @abstractmethod
    def iter_messages(self) -> Iterator[Message]:
        """Every message in transcript order."""

    def add_message(self, role: str, text: str) -> int:
        """Append a message and return its id; read-only stores leave this unimplemented."""
        raise NotImplementedError(f"{type(self).__name__} does not accept new messages")


class BaseRenderer(ABC):
    """Shows the transient loading indicator and materializes annotations."""

    @abstractmethod
    def show_loading(self, message_id: int) -> None:
        ...

    @abstractmethod
    def clear_loading(self, message_id: int) -> None:
        """Remove the indicator; a no-op when none is shown."""

    @abstractmethod
    async def render_annotation(self, message_id: int, annotation: Annotation) -> None:
        ...

    @abstractmethod
    def withdraw_annotation(self, message_id: int) -> None:
        """Remove a rendered annotation whose write to the store failed."""

    @abstractmethod
    def has_rendered(self, message_id: int) -> bool:
        """True when the message already displays its annotation."""


class BaseApprover(ABC):
    """Human confirmation used when auto mode is off."""

    @abstractmethod
    async def present_for_approval(self, candidate: Candidate, *, message_id: int) -> bool:
        ...


CAPTION_ICONS = {"google": "🔍", "commons": "🏛️"}


def format_caption(annotation: Annotation) -> str:
    """Caption shown under an illustration, e.g. '🏛️ Mona Lisa · via commons'."""
    icon = CAPTION_ICONS.get(annotation.source, "📖")
    return f"{icon} {annotation.query} · via {annotation.source}"
