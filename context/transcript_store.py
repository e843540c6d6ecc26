"""
InMemoryTranscriptStore - transcript held in process memory.

Messages keep their insertion order and receive sequential integer ids starting at 0.
Annotations are kept beside the messages and are last-write-wins.
"""

import threading
from collections.abc import Iterator
from dataclasses import replace

from models.illustration import Annotation, Message
from orchestrator.collaborators import AnnotationStore
from utils.logger import get_logger

logger = get_logger(__name__)


class InMemoryTranscriptStore(AnnotationStore):
    def __init__(self, messages: list[tuple[str, str]] | None = None):
        """
        Args:
            messages: Optional initial (role, text) pairs in transcript order
        """
        self._messages: dict[int, Message] = {}
        self._next_id = 0
        self._lock = threading.Lock()
        for role, text in messages or []:
            self.add_message(role, text)

    def add_message(self, role: str, text: str) -> int:
        """Append a message and return its id."""
        if not role or not role.strip():
            raise ValueError("role must not be empty")

        with self._lock:
            message_id = self._next_id
            self._next_id += 1
            self._messages[message_id] = Message(message_id, role.strip().lower(), text or "")
        logger.debug(f"Added {role} message {message_id} (total messages: {len(self._messages)})")
        return message_id

    def get_message(self, message_id: int) -> Message | None:
        return self._messages.get(message_id)

    def get_annotation(self, message_id: int) -> Annotation | None:
        message = self._messages.get(message_id)
        return message.annotation if message else None

    def set_annotation(self, message_id: int, annotation: Annotation) -> None:
        with self._lock:
            message = self._messages.get(message_id)
            if message is None:
                raise KeyError(f"Unknown message id {message_id}")
            self._messages[message_id] = replace(message, annotation=annotation)
        logger.debug(f"Stored annotation for message {message_id}: {annotation.url}")

    def iter_messages(self) -> Iterator[Message]:
        return iter(sorted(self._messages.values(), key=lambda m: m.message_id))

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()
            self._next_id = 0

    def __len__(self) -> int:
        return len(self._messages)
