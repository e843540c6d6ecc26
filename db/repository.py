"""
Repository layer for transcript messages and annotations.
All CRUD functions use SQLAlchemy Core against the tables in db.tables.

Design principles:
- Functions do NOT commit - caller commits for transaction control
- Returns None when a row is missing
- Uses SQLAlchemy Core (insert/select/update) not ORM
"""

from typing import Any

from sqlalchemy import insert, select, update
from sqlalchemy.orm import Session

from db.tables import annotations, messages
from models.illustration import Annotation, Message
from utils.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# MESSAGES
# ============================================================================


def save_message(db: Session, role: str, content: str) -> int:
    """
    Insert a message into the messages table.

    Returns:
        int: message id

    Note:
        Does NOT commit. Caller must commit.
    """
    stmt = insert(messages).values(role=role, content=content).returning(messages.c.id)
    message_id = db.execute(stmt).scalar_one()
    logger.debug(f"Saved {role} message: {message_id}")
    return message_id


def get_message(db: Session, message_id: int) -> Message | None:
    stmt = (
        select(messages, *_annotation_columns())
        .select_from(messages.outerjoin(annotations, annotations.c.message_id == messages.c.id))
        .where(messages.c.id == message_id)
    )
    row = db.execute(stmt).mappings().first()
    return _row_to_message(row) if row else None


def list_messages(db: Session) -> list[Message]:
    """All messages in transcript order (ascending id), annotations attached."""
    stmt = (
        select(messages, *_annotation_columns())
        .select_from(messages.outerjoin(annotations, annotations.c.message_id == messages.c.id))
        .order_by(messages.c.id)
    )
    return [_row_to_message(row) for row in db.execute(stmt).mappings()]


# ============================================================================
# ANNOTATIONS
# ============================================================================


def get_annotation(db: Session, message_id: int) -> Annotation | None:
    stmt = select(annotations).where(annotations.c.message_id == message_id)
    row = db.execute(stmt).mappings().first()
    if row is None:
        return None
    return Annotation.from_dict(dict(row))


def upsert_annotation(db: Session, message_id: int, annotation: Annotation) -> None:
    """
    Write the annotation for a message (last-write-wins).

    Note:
        Does NOT commit. Caller must commit.
    """
    values = _annotation_values(annotation)
    result = db.execute(
        update(annotations).where(annotations.c.message_id == message_id).values(**values)
    )
    if result.rowcount == 0:
        db.execute(insert(annotations).values(message_id=message_id, **values))
    logger.debug(f"Upserted annotation for message {message_id}: {annotation.url}")


def _annotation_values(annotation: Annotation) -> dict[str, Any]:
    return {
        "url": annotation.url,
        "thumbnail_url": annotation.thumbnail_url,
        "query": annotation.query,
        "source": annotation.source,
        "title": annotation.title,
    }


def _annotation_columns():
    return (
        annotations.c.url.label("a_url"),
        annotations.c.thumbnail_url.label("a_thumbnail_url"),
        annotations.c.query.label("a_query"),
        annotations.c.source.label("a_source"),
        annotations.c.title.label("a_title"),
    )


def _row_to_message(row) -> Message:
    annotation = None
    if row["a_url"] is not None:
        annotation = Annotation(
            url=row["a_url"],
            query=row["a_query"] or "",
            source=row["a_source"] or "",
            thumbnail_url=row["a_thumbnail_url"],
            title=row["a_title"],
        )
    return Message(
        message_id=row["id"],
        role=row["role"],
        text=row["content"] or "",
        annotation=annotation,
    )
