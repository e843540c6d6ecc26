from dataclasses import dataclass, field
from enum import Enum
from typing import Any

USER_ROLES = {"user"}


class SourceHint(str, Enum):
    """Which search strategy (or strategies) should run for a query."""

    ENCYCLOPEDIC = "encyclopedic"
    WEB = "web"
    EITHER = "either"

    @classmethod
    def parse(cls, value: Any) -> "SourceHint | None":
        """Map the vocabulary a model tends to use onto a hint; unknown values give None."""
        if isinstance(value, SourceHint):
            return value
        if not isinstance(value, str):
            return None
        return _HINT_ALIASES.get(value.strip().lower())


_HINT_ALIASES = {
    "encyclopedic": SourceHint.ENCYCLOPEDIC,
    "wiki": SourceHint.ENCYCLOPEDIC,
    "wikipedia": SourceHint.ENCYCLOPEDIC,
    "wikimedia": SourceHint.ENCYCLOPEDIC,
    "web": SourceHint.WEB,
    "google": SourceHint.WEB,
    "either": SourceHint.EITHER,
    "both": SourceHint.EITHER,
}


@dataclass(frozen=True)
class Annotation:
    url: str
    query: str
    source: str
    thumbnail_url: str | None = None
    title: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "thumbnail_url": self.thumbnail_url,
            "query": self.query,
            "source": self.source,
            "title": self.title,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Annotation":
        return cls(
            url=data["url"],
            query=data.get("query") or "",
            source=data.get("source") or "",
            thumbnail_url=data.get("thumbnail_url"),
            title=data.get("title"),
        )


@dataclass(frozen=True)
class Message:
    message_id: int
    role: str
    text: str
    annotation: Annotation | None = None

    @property
    def is_user(self) -> bool:
        return self.role.lower() in USER_ROLES


@dataclass(frozen=True)
class Query:
    text: str
    source_hint: SourceHint
    sequence_index: int


@dataclass(frozen=True)
class ExtractionResult:
    queries: list[Query] = field(default_factory=list)
    source_hint: SourceHint = SourceHint.EITHER
    need_image: bool = True

    @classmethod
    def empty(cls) -> "ExtractionResult":
        return cls(queries=[], source_hint=SourceHint.EITHER, need_image=False)


@dataclass(frozen=True)
class Candidate:
    url: str
    thumbnail_url: str
    title: str
    source_tag: str
    width: int = 0
    height: int = 0
    origin_domain: str | None = None
    query_text: str = ""

    @property
    def preview_url(self) -> str:
        """Smallest usable image address: the thumbnail when set, else the original."""
        return self.thumbnail_url or self.url

    def to_annotation(self) -> Annotation:
        return Annotation(
            url=self.url,
            thumbnail_url=self.thumbnail_url or None,
            query=self.query_text,
            source=self.source_tag,
            title=self.title or None,
        )


@dataclass(frozen=True)
class ImagePart:
    """A fetched candidate thumbnail, ready to be inlined into a vision prompt."""

    index: int
    mime_type: str
    data_b64: str
    source_tag: str

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data_b64}"
