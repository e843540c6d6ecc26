"""In-process rendering collaborator used by the HTTP service."""

from models.illustration import Annotation
from orchestrator.collaborators import BaseRenderer, format_caption
from utils.logger import get_logger

logger = get_logger(__name__)


class RenderState(BaseRenderer):
    """
    Tracks what a client should currently display for each message.

    Clients poll GET /v1/messages/{id}; ``loading`` and ``rendered`` mirror the
    indicator and the attached image.
    """

    def __init__(self, show_caption: bool = True):
        self.show_caption = show_caption
        self._loading: set[int] = set()
        self._rendered: dict[int, Annotation] = {}

    def show_loading(self, message_id: int) -> None:
        self._loading.add(message_id)

    def clear_loading(self, message_id: int) -> None:
        self._loading.discard(message_id)

    def is_loading(self, message_id: int) -> bool:
        return message_id in self._loading

    async def render_annotation(self, message_id: int, annotation: Annotation) -> None:
        self._rendered[message_id] = annotation
        logger.debug(f"Rendered annotation for message {message_id}: {annotation.url}")

    def withdraw_annotation(self, message_id: int) -> None:
        if self._rendered.pop(message_id, None) is not None:
            logger.debug(f"Withdrew annotation for message {message_id}")

    def has_rendered(self, message_id: int) -> bool:
        return message_id in self._rendered

    def caption_for(self, message_id: int) -> str | None:
        annotation = self._rendered.get(message_id)
        if annotation is None or not self.show_caption:
            return None
        return format_caption(annotation)

    def reset(self) -> None:
        """Forget everything rendered, as after a page reload."""
        self._loading.clear()
        self._rendered.clear()
