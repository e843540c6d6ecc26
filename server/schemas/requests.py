"""Pydantic request models for FastAPI endpoints."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from models.illustration import SourceHint


class MessageRequest(BaseModel):
    role: str = Field(..., pattern="^(user|assistant|system)$")
    text: str
    illustrate: bool = True


class ApprovalRequest(BaseModel):
    approve: bool


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1)
    source: Optional[str] = None
    limit: Optional[int] = Field(None, gt=0)

    @field_validator("source")
    @classmethod
    def validate_source(cls, value):
        if value is not None and SourceHint.parse(value) is None:
            raise ValueError("source must be one of: encyclopedic, web, either")
        return value

    def hint(self) -> SourceHint:
        return SourceHint.parse(self.source) or SourceHint.EITHER


class RestoreRequest(BaseModel):
    reset_render_state: bool = False
