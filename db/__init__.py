"""
Database package for the annotation store.
Provides the SQLAlchemy engine, session factory, table definitions and repository functions.
"""

from db.annotation_store import SqlAnnotationStore
from db.engine import create_db_engine, get_engine
from db.repository import (
    get_annotation,
    get_message,
    list_messages,
    save_message,
    upsert_annotation,
)
from db.session import create_session_factory
from db.tables import annotations, create_tables, messages, metadata

__all__ = [
    "SqlAnnotationStore",
    "annotations",
    "create_db_engine",
    "create_session_factory",
    "create_tables",
    "get_annotation",
    "get_engine",
    "get_message",
    "list_messages",
    "messages",
    "metadata",
    "save_message",
    "upsert_annotation",
]
