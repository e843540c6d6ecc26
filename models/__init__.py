"""
Models package for transcript messages, search candidates and annotations.
"""

from .errors import (
    ConfigurationError,
    IllustrationError,
    ParseError,
    StageTimeoutError,
    TransportError,
)
from .illustration import (
    Annotation,
    Candidate,
    ExtractionResult,
    ImagePart,
    Message,
    Query,
    SourceHint,
)

__all__ = [
    "Annotation",
    "Candidate",
    "ConfigurationError",
    "ExtractionResult",
    "IllustrationError",
    "ImagePart",
    "Message",
    "ParseError",
    "Query",
    "SourceHint",
    "StageTimeoutError",
    "TransportError",
]
