from dataclasses import dataclass
from enum import Enum
from typing import Any

from models.illustration import Annotation


class PipelineState(str, Enum):
    IDLE = "idle"
    ELIGIBLE = "eligible"
    IN_PROGRESS = "in_progress"
    ANNOTATED = "annotated"
    SKIPPED = "skipped"
    FAILED = "failed"


class SkipReason(str, Enum):
    DISABLED = "disabled"
    MESSAGE_NOT_FOUND = "message_not_found"
    USER_MESSAGE = "user_message"
    TOO_SHORT = "too_short"
    ALREADY_ANNOTATED = "already_annotated"
    AI_NOT_CONFIGURED = "ai_not_configured"
    IN_FLIGHT = "in_flight"
    NO_QUERIES = "no_queries"
    NO_CANDIDATES = "no_candidates"
    NONE_SUITABLE = "none_suitable"
    REJECTED = "rejected"
    NO_APPROVER = "no_approver"


@dataclass(frozen=True)
class PipelineOutcome:
    message_id: int
    state: PipelineState
    reason: str = ""
    annotation: Annotation | None = None
    query_count: int = 0
    candidate_count: int = 0
    error: str | None = None

    @property
    def annotated(self) -> bool:
        return self.state is PipelineState.ANNOTATED

    def to_dict(self) -> dict[str, Any]:
        return {
            "message_id": self.message_id,
            "state": self.state.value,
            "reason": self.reason,
            "annotation": self.annotation.to_dict() if self.annotation else None,
            "query_count": self.query_count,
            "candidate_count": self.candidate_count,
            "error": self.error,
        }
