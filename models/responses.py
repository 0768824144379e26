"""
Wire Models
-----------
Pydantic models for MangaDex JSON responses.

Unknown fields are ignored. Relationship attributes stay raw until a caller
asks for the shape that matches the relationship type.
"""

from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
import logging

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError

T = TypeVar("T")

logger = logging.getLogger("mangadex.models")


class WireModel(BaseModel):
    """Base for all wire models: camelCase aliases, extra keys ignored."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TokenResponse(WireModel):
    """Token endpoint response."""
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: int = 0

    def __repr__(self) -> str:
        refresh = "********" if self.refresh_token else None
        return f"TokenResponse(access_token='********', refresh_token={refresh!r}, expires_in={self.expires_in})"


class ErrorDetail(WireModel):
    id: Optional[str] = None
    status: int = 0
    title: Optional[str] = None
    detail: Optional[str] = None


class Envelope(WireModel, Generic[T]):
    """Standard `{result, data, total, errors}` response wrapper."""
    result: Optional[str] = None
    response: Optional[str] = None
    data: Optional[T] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    total: Optional[int] = None
    errors: List[ErrorDetail] = Field(default_factory=list)

    @property
    def is_ok(self) -> bool:
        return (self.result or "").lower() == "ok"

    def error_summary(self) -> str:
        """Join server error titles/details into one diagnostic line."""
        parts = [e.detail or e.title or "" for e in self.errors]
        parts = [p for p in parts if p]
        return "; ".join(parts) or f"result={self.result!r}"


# --- Relationship attribute shapes ---

class AuthorAttributes(WireModel):
    name: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    biography: Optional[Dict[str, str]] = None
    twitter: Optional[str] = None
    pixiv: Optional[str] = None
    youtube: Optional[str] = None
    website: Optional[str] = None
    version: Optional[int] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")


class CoverAttributes(WireModel):
    description: Optional[str] = None
    volume: Optional[str] = None
    file_name: Optional[str] = Field(default=None, alias="fileName")
    locale: Optional[str] = None
    version: Optional[int] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")


# Relation type -> attribute shape. Types not listed keep raw attributes only.
RELATIONSHIP_ATTRIBUTE_TYPES: Dict[str, Type[WireModel]] = {
    "author": AuthorAttributes,
    "artist": AuthorAttributes,
    "cover_art": CoverAttributes,
}


class Relationship(WireModel):
    """
    A related entity reference.

    `attributes` is only present when the request expanded the relation with
    `includes[]`; its shape depends on `type`.
    """
    id: Optional[str] = None
    type: Optional[str] = None
    related: Optional[str] = None
    attributes: Optional[Dict[str, Any]] = None

    _decoded: Dict[str, Optional[WireModel]] = PrivateAttr(default_factory=dict)

    def typed_attributes(self, shape: Optional[Type[WireModel]] = None) -> Optional[WireModel]:
        """
        Decode `attributes` into the shape registered for this relation type.

        Decoded once per shape and cached. Returns None when attributes are
        absent, the type has no registered shape, or decoding fails.
        """
        if shape is None:
            shape = RELATIONSHIP_ATTRIBUTE_TYPES.get((self.type or "").lower())
        if shape is None or not self.attributes:
            return None

        key = shape.__name__
        if key not in self._decoded:
            try:
                self._decoded[key] = shape.model_validate(self.attributes)
            except ValidationError as e:
                logger.warning(
                    f"Could not decode {shape.__name__} for relationship "
                    f"type '{self.type}' id '{self.id}': {e.error_count()} error(s)"
                )
                self._decoded[key] = None
        return self._decoded[key]


# --- Manga ---

class TagAttributes(WireModel):
    name: Optional[Dict[str, str]] = None
    group: Optional[str] = None

    @property
    def english_name(self) -> Optional[str]:
        return (self.name or {}).get("en")


class Tag(WireModel):
    id: Optional[str] = None
    type: Optional[str] = None
    attributes: Optional[TagAttributes] = None


class MangaAttributes(WireModel):
    title: Optional[Dict[str, str]] = None
    alt_titles: Optional[List[Optional[Dict[str, str]]]] = Field(default=None, alias="altTitles")
    description: Optional[Dict[str, str]] = None
    links: Optional[Dict[str, Optional[str]]] = None
    original_language: Optional[str] = Field(default=None, alias="originalLanguage")
    last_volume: Optional[str] = Field(default=None, alias="lastVolume")
    last_chapter: Optional[str] = Field(default=None, alias="lastChapter")
    publication_demographic: Optional[str] = Field(default=None, alias="publicationDemographic")
    status: Optional[str] = None
    year: Optional[int] = None
    content_rating: Optional[str] = Field(default=None, alias="contentRating")
    tags: Optional[List[Optional[Tag]]] = None
    state: Optional[str] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    version: Optional[int] = None
    available_translated_languages: Optional[List[Optional[str]]] = Field(
        default=None, alias="availableTranslatedLanguages"
    )
    latest_uploaded_chapter: Optional[str] = Field(default=None, alias="latestUploadedChapter")

    @property
    def english_title(self) -> Optional[str]:
        return (self.title or {}).get("en")

    @property
    def english_description(self) -> Optional[str]:
        return (self.description or {}).get("en")


class MangaData(WireModel):
    id: Optional[str] = None
    type: Optional[str] = None
    attributes: Optional[MangaAttributes] = None
    relationships: List[Optional[Relationship]] = Field(default_factory=list)


# --- Chapters ---

class ChapterAttributes(WireModel):
    title: Optional[str] = None
    volume: Optional[str] = None
    chapter: Optional[str] = None
    pages: Optional[int] = None
    translated_language: Optional[str] = Field(default=None, alias="translatedLanguage")
    uploader: Optional[str] = None
    external_url: Optional[str] = Field(default=None, alias="externalUrl")
    version: Optional[int] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    publish_at: Optional[str] = Field(default=None, alias="publishAt")
    readable_at: Optional[str] = Field(default=None, alias="readableAt")


class ChapterData(WireModel):
    id: Optional[str] = None
    type: Optional[str] = None
    attributes: Optional[ChapterAttributes] = None
    relationships: List[Optional[Relationship]] = Field(default_factory=list)


# --- MangaDex@Home ---

class AtHomeChapter(WireModel):
    hash: Optional[str] = None
    data: List[str] = Field(default_factory=list)
    data_saver: List[str] = Field(default_factory=list, alias="dataSaver")


class AtHomeServerResponse(WireModel):
    result: Optional[str] = None
    base_url: Optional[str] = Field(default=None, alias="baseUrl")
    chapter: Optional[AtHomeChapter] = None
    errors: List[ErrorDetail] = Field(default_factory=list)

    @property
    def is_ok(self) -> bool:
        return (self.result or "").lower() == "ok"


MangaEnvelope = Envelope[MangaData]
ChapterFeedEnvelope = Envelope[List[Optional[ChapterData]]]
