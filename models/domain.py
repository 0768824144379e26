"""
Domain Records
--------------
Plain records handed to callers, mapped from wire models.
"""

from dataclasses import dataclass, field
from typing import List, Optional
import logging

from .responses import (
    AuthorAttributes, ChapterData, CoverAttributes, MangaData,
)

UNKNOWN_VALUE = "N/A"
ERROR_VALUE = "Error"

logger = logging.getLogger("mangadex.models")


def has_text(value: Optional[str]) -> bool:
    """True if the string has non-whitespace content."""
    return value is not None and value.strip() != ""


@dataclass
class ChapterDetails:
    """A chapter as seen by callers. `source_id` is the stable identifier."""
    source_id: str
    chapter_url: str = ""
    chapter_number: str = UNKNOWN_VALUE
    volume: Optional[str] = None
    title: Optional[str] = None
    language: Optional[str] = None
    pages: Optional[int] = None
    publish_date: Optional[str] = None

    @property
    def id(self) -> str:
        return self.source_id


@dataclass
class MangaDetails:
    """A manga as seen by callers."""
    source_id: str
    source_url: str
    title: str
    alternative_titles: List[str] = field(default_factory=list)
    authors: List[str] = field(default_factory=list)
    artists: List[str] = field(default_factory=list)
    genres: List[str] = field(default_factory=list)
    description: Optional[str] = None
    status: Optional[str] = None
    year: Optional[int] = None
    cover_image_url: Optional[str] = None
    chapters: List[ChapterDetails] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.source_id


def map_chapter(chapter: ChapterData, site_base_url: str = "https://mangadex.org") -> ChapterDetails:
    """Map a feed entry to ChapterDetails; missing attributes give a placeholder."""
    chapter_url = f"{site_base_url}/chapter/{chapter.id}" if has_text(chapter.id) else ""
    attrs = chapter.attributes
    if attrs is None:
        logger.warning(f"Chapter attributes missing for chapter {chapter.id or UNKNOWN_VALUE}")
        return ChapterDetails(source_id=chapter.id or ERROR_VALUE)

    return ChapterDetails(
        source_id=chapter.id or ERROR_VALUE,
        chapter_url=chapter_url,
        chapter_number=attrs.chapter if has_text(attrs.chapter) else UNKNOWN_VALUE,
        volume=attrs.volume if has_text(attrs.volume) else None,
        title=attrs.title if has_text(attrs.title) else None,
        language=attrs.translated_language if has_text(attrs.translated_language) else None,
        pages=attrs.pages if attrs.pages is not None and attrs.pages >= 0 else None,
        publish_date=attrs.publish_at if has_text(attrs.publish_at) else None,
    )


def _add_unique_casefold(target: List[str], value: str) -> None:
    if not any(existing.lower() == value.lower() for existing in target):
        target.append(value)


def map_manga(
    manga: MangaData,
    original_identifier: str,
    site_base_url: str = "https://mangadex.org",
    uploads_base_url: str = "https://uploads.mangadex.org",
) -> MangaDetails:
    """
    Map a manga entity and its expanded relationships to MangaDetails.

    Authors/artists come from `author`/`artist` relationships, the cover from
    the first `cover_art` relationship with a file name, genres from tags in
    the "genre" group. Alternative titles are deduplicated case-insensitively
    and never repeat the main English title.
    """
    source_url = f"{site_base_url}/title/{manga.id}" if has_text(manga.id) else original_identifier
    attrs = manga.attributes
    if attrs is None:
        logger.error(f"Manga attributes missing for manga {manga.id or UNKNOWN_VALUE}")
        return MangaDetails(
            source_id=manga.id or UNKNOWN_VALUE,
            source_url=original_identifier,
            title=f"{ERROR_VALUE}: missing attributes",
        )

    authors: List[str] = []
    artists: List[str] = []
    cover_file: Optional[str] = None

    for rel in manga.relationships:
        if rel is None:
            continue
        rel_type = (rel.type or "").lower()
        typed = rel.typed_attributes()
        if rel_type in ("author", "artist") and isinstance(typed, AuthorAttributes):
            if has_text(typed.name):
                (authors if rel_type == "author" else artists).append(typed.name)
        elif rel_type == "cover_art" and cover_file is None and isinstance(typed, CoverAttributes):
            if has_text(typed.file_name):
                cover_file = typed.file_name

    genres: List[str] = []
    for tag in attrs.tags or []:
        if tag is None or tag.attributes is None:
            continue
        if (tag.attributes.group or "").lower() != "genre":
            continue
        name = tag.attributes.english_name
        if has_text(name) and name not in genres:
            genres.append(name)

    alt_titles: List[str] = []
    for entry in attrs.alt_titles or []:
        for title in (entry or {}).values():
            if has_text(title):
                _add_unique_casefold(alt_titles, title)
    for title in (attrs.title or {}).values():
        if has_text(title):
            _add_unique_casefold(alt_titles, title)

    main_title = attrs.english_title
    if has_text(main_title):
        alt_titles = [t for t in alt_titles if t.lower() != main_title.lower()]

    cover_url = None
    if cover_file and has_text(manga.id):
        cover_url = f"{uploads_base_url}/covers/{manga.id}/{cover_file}"

    description = attrs.english_description
    return MangaDetails(
        source_id=manga.id or UNKNOWN_VALUE,
        source_url=source_url,
        title=main_title if main_title is not None else UNKNOWN_VALUE,
        alternative_titles=alt_titles,
        authors=authors,
        artists=artists,
        genres=genres,
        description=description if has_text(description) else None,
        status=attrs.status if has_text(attrs.status) else None,
        year=attrs.year,
        cover_image_url=cover_url,
    )
