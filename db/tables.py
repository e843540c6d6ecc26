"""
SQLAlchemy Core table definitions.

One row per transcript message; at most one annotation row per message.
"""

from sqlalchemy import (
    Column,
    DateTime,
    Engine,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    func,
)

from utils.logger import get_logger

logger = get_logger(__name__)

metadata = MetaData()

messages = Table(
    "messages",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("role", String(32), nullable=False),
    Column("content", Text, nullable=False, default=""),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

annotations = Table(
    "annotations",
    metadata,
    Column(
        "message_id",
        Integer,
        ForeignKey("messages.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("url", Text, nullable=False),
    Column("thumbnail_url", Text),
    Column("query", Text, nullable=False, default=""),
    Column("source", String(64), nullable=False, default=""),
    Column("title", Text),
    Column("updated_at", DateTime(timezone=True), server_default=func.now()),
)


def create_tables(engine: Engine) -> None:
    """Create missing tables; existing tables are left untouched."""
    metadata.create_all(engine)
    logger.debug(f"Ensured tables: {', '.join(sorted(metadata.tables))}")
