"""
MangaDex Client
---------------
High-level surface: manga details, chapter lists, page images.

Rules:
- One credential set per client, one rate limiter shared by every request
- Authenticated calls go through the executor (one re-auth retry)
- Image downloads and MangaDex@Home lookups are unauthenticated but still
  rate limited
"""

from threading import Event
from typing import Dict, List, Optional
import logging
import re

from auth.token_manager import TokenManager
from auth.tokens import Credential
from core.errors import ApiError, DecodeError, ParameterError, Result
from infra.config import ClientConfig
from infra.logging import RequestContext
from models.domain import ChapterDetails, MangaDetails, has_text, map_chapter, map_manga
from models.responses import AtHomeServerResponse, ChapterFeedEnvelope, MangaEnvelope

from .executor import AuthenticatedExecutor
from .pagination import Collection, Page, PageCursor, PaginatedCollector
from .rate_limiter import RateLimiter, get_global_limiter
from .transport import HttpTransport, build_query

UUID_PATTERN = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")
MANGA_URL_PATTERN = re.compile(
    r"mangadex\.org/(?:title|manga)/"
    r"([0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12})"
)

RECENCY_ORDER = {"order[publishAt]": "desc"}
NATURAL_ORDER = {"order[volume]": "asc", "order[chapter]": "asc"}
MANGA_INCLUDES = ["author", "artist", "cover_art"]


class MangaDexClient:
    """
    Authenticated, rate-limited MangaDex client.

    Stateful: build once per credential set and reuse. Safe to call from
    several threads.
    """

    def __init__(
        self,
        config: ClientConfig,
        rate_limiter: Optional[RateLimiter] = None,
        transport: Optional[HttpTransport] = None,
        token_manager: Optional[TokenManager] = None,
    ):
        self.config = config
        self._logger = logging.getLogger("mangadex.api.client")

        self.rate_limiter = rate_limiter or (transport.rate_limiter if transport else get_global_limiter())
        self.rate_limiter.configure(config.request_interval_ms)

        self.transport = transport or HttpTransport(
            rate_limiter=self.rate_limiter,
            timeout_seconds=config.timeout_seconds,
            user_agent=config.user_agent,
        )
        self.token_manager = token_manager or TokenManager(
            Credential(
                client_id=config.client_id,
                client_secret=config.client_secret,
                grant_mode=config.grant_type,
                username=config.username,
                password=config.password,
            ),
            self.transport,
            config.token_url,
            safety_margin_seconds=config.token_safety_margin_seconds,
        )
        self.executor = AuthenticatedExecutor(self.token_manager)
        self.collector = PaginatedCollector(self.executor, page_size=config.page_size)

        self._logger.info(
            f"MangaDexClient initialized, global request interval {self.rate_limiter.interval_ms} ms"
        )

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> "MangaDexClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # --- identifiers ---

    def extract_manga_id(self, identifier: Optional[str]) -> Result[str]:
        """Accept a bare UUID or a mangadex.org title/manga URL."""
        if not has_text(identifier):
            return Result.failure(ParameterError("Manga identifier is empty"))
        identifier = identifier.strip()
        if UUID_PATTERN.match(identifier):
            return Result.success(identifier)
        match = MANGA_URL_PATTERN.search(identifier)
        if match:
            return Result.success(match.group(1))
        return Result.failure(ParameterError(f"Could not extract a MangaDex id from: {identifier}"))

    # --- manga ---

    def fetch_manga_details(self, identifier: str) -> Result[MangaDetails]:
        """Fetch a manga with its authors, artists and cover expanded."""
        with RequestContext():
            manga_id = self.extract_manga_id(identifier)
            if not manga_id.ok:
                self._logger.warning(manga_id.error.message)
                return Result.failure(manga_id.error)

            url = f"{self.config.api_base_url}/manga/{manga_id.value}"
            params = build_query({"includes[]": MANGA_INCLUDES})
            response = self.executor.execute(
                lambda headers: self.transport.get_json(url, MangaEnvelope, headers=headers, params=params)
            )
            if not response.ok:
                self._logger.warning(f"Error fetching manga details for {manga_id.value}: {response.error!r}")
                return Result.failure(response.error)

            envelope = response.value
            if not envelope.is_ok:
                return Result.failure(ApiError(
                    f"Manga {manga_id.value}: {envelope.error_summary()}",
                    details={"errors": [e.model_dump() for e in envelope.errors]},
                ))
            if envelope.data is None:
                return Result.failure(DecodeError(f"Manga {manga_id.value}: response has no data"))

            return Result.success(map_manga(
                envelope.data,
                identifier,
                site_base_url=self.config.site_base_url,
                uploads_base_url=self.config.uploads_base_url,
            ))

    # --- chapters ---

    def _feed_fetcher(self, manga_id: str, order: Dict[str, str], languages: Optional[List[str]]):
        url = f"{self.config.api_base_url}/manga/{manga_id}/feed"

        def fetch_page(cursor: PageCursor, headers: Dict[str, str]) -> Result[Page[ChapterDetails]]:
            params = build_query({
                "limit": cursor.limit,
                "offset": cursor.offset,
                **order,
                "translatedLanguage[]": list(languages) if languages else None,
            })
            response = self.transport.get_json(url, ChapterFeedEnvelope, headers=headers, params=params)
            if not response.ok:
                return Result.failure(response.error)
            envelope = response.value
            if not envelope.is_ok:
                return Result.failure(ApiError(
                    f"Chapter feed for {manga_id} at offset {cursor.offset}: {envelope.error_summary()}"
                ))
            batch = envelope.data or []
            items = [map_chapter(c, self.config.site_base_url) for c in batch if c is not None]
            return Result.success(Page(items=items, total=envelope.total, returned=len(batch)))

        return fetch_page

    def fetch_chapters_by_recency(
        self,
        identifier: str,
        languages: Optional[List[str]] = None,
        count: Optional[int] = None,
        cancel: Optional[Event] = None,
    ) -> Collection[ChapterDetails]:
        """
        Most recently published chapters first.

        Args:
            identifier: Manga UUID or URL
            languages: Translated language codes to keep (all if None/empty)
            count: Maximum number of chapters (all if None)
        """
        with RequestContext():
            manga_id = self.extract_manga_id(identifier)
            if not manga_id.ok:
                return Collection(error=manga_id.error)

            self._logger.info(
                f"Fetching chapters by recency for {manga_id.value}"
                f"{f', languages {languages}' if languages else ''}, count {count if count is not None else 'all'}"
            )
            collection = self.collector.collect_recent(
                self._feed_fetcher(manga_id.value, RECENCY_ORDER, languages), count=count, cancel=cancel
            )
            self._logger.info(f"Fetched {len(collection)} chapters for {manga_id.value} (by recency)")
            return collection

    def fetch_chapters_by_range(
        self,
        identifier: str,
        languages: Optional[List[str]] = None,
        start_chapter_id: Optional[str] = None,
        end_chapter_id: Optional[str] = None,
        cancel: Optional[Event] = None,
    ) -> Collection[ChapterDetails]:
        """
        Chapters in reading order (volume, then chapter), sliced by chapter id.

        Both bounds are inclusive. A start id that is not in the feed gives an
        empty result.
        """
        with RequestContext():
            manga_id = self.extract_manga_id(identifier)
            if not manga_id.ok:
                return Collection(error=manga_id.error)

            self._logger.info(
                f"Fetching all chapters for id range filtering of {manga_id.value}"
                f"{f', languages {languages}' if languages else ''}"
            )
            return self.collector.collect_range(
                self._feed_fetcher(manga_id.value, NATURAL_ORDER, languages),
                start_id=start_chapter_id,
                end_id=end_chapter_id,
                cancel=cancel,
            )

    # --- pages ---

    def fetch_chapter_page_urls(
        self,
        chapter_id: str,
        data_saver: bool = False,
        force_port_443: bool = False,
    ) -> Result[List[str]]:
        """Resolve full image URLs for a chapter via MangaDex@Home."""
        with RequestContext():
            if not has_text(chapter_id):
                return Result.failure(ParameterError("Chapter id is empty"))

            url = f"{self.config.api_base_url}/at-home/server/{chapter_id}"
            params = build_query({"forcePort443": force_port_443})
            raw = self.transport.get_text(url, params=params)
            if not raw.ok:
                self._logger.warning(f"No response from MangaDex@Home for chapter {chapter_id}: {raw.error!r}")
                return Result.failure(raw.error)

            decoded = self.transport.decode(raw.value, AtHomeServerResponse, source=url)
            if not decoded.ok:
                return Result.failure(decoded.error)

            server = decoded.value
            if not server.is_ok:
                return Result.failure(ApiError(f"MangaDex@Home returned result={server.result!r} for chapter {chapter_id}"))
            if not has_text(server.base_url) or server.chapter is None or not has_text(server.chapter.hash):
                return Result.failure(DecodeError(
                    f"Incomplete MangaDex@Home response for chapter {chapter_id} (missing baseUrl or hash)"
                ))

            filenames = server.chapter.data_saver if data_saver else server.chapter.data
            if not filenames:
                mode = "data-saver" if data_saver else "data"
                return Result.failure(DecodeError(f"No page files listed for chapter {chapter_id} ({mode} mode)"))

            quality = "data-saver" if data_saver else "data"
            urls = [f"{server.base_url}/{quality}/{server.chapter.hash}/{name}" for name in filenames]
            self._logger.info(f"Fetched {len(urls)} page URLs for chapter {chapter_id}")
            return Result.success(urls)

    def download_page_image(self, image_url: str) -> Result[bytes]:
        """Download one page image. No auth header; still rate limited."""
        with RequestContext():
            if not has_text(image_url):
                return Result.failure(ParameterError("Image URL is empty"))

            self._logger.info(f"Downloading image from {image_url}")
            image = self.transport.get_bytes(image_url)
            if image.ok:
                self._logger.info(f"Downloaded {len(image.value)} bytes from {image_url}")
            else:
                self._logger.warning(f"Failed to download image from {image_url}: {image.error!r}")
            return image
