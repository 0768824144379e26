# Models - wire shapes (pydantic) and the domain records mapped from them

from .responses import (
    Envelope, ErrorDetail, TokenResponse, Relationship,
    MangaData, ChapterData, AtHomeServerResponse,
    MangaEnvelope, ChapterFeedEnvelope,
)
from .domain import MangaDetails, ChapterDetails, map_manga, map_chapter

__all__ = [
    "Envelope", "ErrorDetail", "TokenResponse", "Relationship",
    "MangaData", "ChapterData", "AtHomeServerResponse",
    "MangaEnvelope", "ChapterFeedEnvelope",
    "MangaDetails", "ChapterDetails", "map_manga", "map_chapter",
]
