"""Pydantic response models (DTOs) for FastAPI endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class AnnotationDTO(BaseModel):
    url: str
    thumbnail_url: str | None = None
    query: str
    source: str
    title: str | None = None
    caption: str | None = None

    @classmethod
    def from_annotation(cls, annotation, caption: str | None = None):
        if annotation is None:
            return None
        return cls(caption=caption, **annotation.to_dict())


class MessageResponseDTO(BaseModel):
    message_id: int
    role: str
    text: str
    state: str = "idle"
    annotation: AnnotationDTO | None = None
    loading: bool = False
    rendered: bool = False
    queued: bool = False


class OutcomeResponseDTO(BaseModel):
    message_id: int
    state: str
    reason: str
    annotation: AnnotationDTO | None = None
    query_count: int = 0
    candidate_count: int = 0
    error: str | None = None

    @classmethod
    def from_outcome(cls, outcome):
        data = outcome.to_dict()
        data["annotation"] = AnnotationDTO.from_annotation(outcome.annotation)
        return cls(**data)


class CandidateDTO(BaseModel):
    url: str
    thumbnail_url: str
    title: str
    source_tag: str
    width: int = 0
    height: int = 0
    origin_domain: str | None = None
    query_text: str = ""

    @classmethod
    def from_candidate(cls, candidate):
        return cls(
            url=candidate.url,
            thumbnail_url=candidate.thumbnail_url,
            title=candidate.title,
            source_tag=candidate.source_tag,
            width=candidate.width,
            height=candidate.height,
            origin_domain=candidate.origin_domain,
            query_text=candidate.query_text,
        )


class SearchResponseDTO(BaseModel):
    query: str
    source: str
    candidates: list[CandidateDTO] = Field(default_factory=list)
    count: int = 0


class ModelsResponseDTO(BaseModel):
    models: list[str]
    count: int
    current_model: str | None = None


class PendingApprovalDTO(BaseModel):
    message_id: int
    candidate: CandidateDTO


class ApprovalResponseDTO(BaseModel):
    message_id: int
    approved: bool


class RestoreResponseDTO(BaseModel):
    restored: int


class HealthResponseDTO(BaseModel):
    status: str
    timestamp: str
    version: str = "1.0.0"
    features: dict[str, Any] = Field(default_factory=dict)
