"""
SqlAnnotationStore - durable AnnotationStore backed by SQLAlchemy.

Each operation runs in its own short session and commits immediately, so an
annotation is durable as soon as set_annotation returns.
"""

from collections.abc import Iterator

from sqlalchemy import Engine
from sqlalchemy.orm import sessionmaker

from db import repository
from db.engine import get_engine
from db.session import create_session_factory
from db.tables import create_tables
from models.illustration import Annotation, Message
from orchestrator.collaborators import AnnotationStore
from utils.logger import get_logger

logger = get_logger(__name__)


class SqlAnnotationStore(AnnotationStore):
    def __init__(self, engine: Engine | None = None, *, create_schema: bool = True):
        self.engine = engine or get_engine()
        self._sessions: sessionmaker = create_session_factory(self.engine)
        if create_schema:
            create_tables(self.engine)

    def add_message(self, role: str, text: str) -> int:
        if not role or not role.strip():
            raise ValueError("role must not be empty")
        with self._sessions() as db:
            message_id = repository.save_message(db, role.strip().lower(), text or "")
            db.commit()
        return message_id

    def get_message(self, message_id: int) -> Message | None:
        with self._sessions() as db:
            return repository.get_message(db, message_id)

    def get_annotation(self, message_id: int) -> Annotation | None:
        with self._sessions() as db:
            return repository.get_annotation(db, message_id)

    def set_annotation(self, message_id: int, annotation: Annotation) -> None:
        with self._sessions() as db:
            if repository.get_message(db, message_id) is None:
                raise KeyError(f"Unknown message id {message_id}")
            try:
                repository.upsert_annotation(db, message_id, annotation)
                db.commit()
            except Exception:
                db.rollback()
                logger.error(f"Failed to persist annotation for message {message_id}", exc_info=True)
                raise

    def iter_messages(self) -> Iterator[Message]:
        with self._sessions() as db:
            rows = repository.list_messages(db)
        return iter(rows)

