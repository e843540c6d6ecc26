"""Shared utilities for FastAPI routes."""

from collections.abc import Mapping

from fastapi import HTTPException, status

from models.illustration import Message
from orchestrator.collaborators import AnnotationStore

MAX_SEARCH_LIMIT = 20
SENSITIVE_HEADERS = {"x-api-key", "authorization"}


def require_message(store: AnnotationStore, message_id: int) -> Message:
    """Fetch a message or raise 404."""
    message = store.get_message(message_id)
    if message is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Message {message_id} not found"
        )
    return message


def clamp_limit(limit: int | None, default: int) -> int:
    """Clamp a requested result count to a sane range."""
    if limit is None:
        return default
    return max(1, min(limit, MAX_SEARCH_LIMIT))


def redact_sensitive_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """
    Redact auth-bearing headers before logging.
    """
    redacted: dict[str, str] = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS and value:
            redacted[key] = "[REDACTED]"
        else:
            redacted[key] = value
    return redacted
