"""
Paginated Collector
-------------------
Assembles ordered collections from offset/limit pages.

Two policies over one loop:
- collect_recent: stop at `count`, at the server total, or on a short page
- collect_range: fetch everything, then slice between two ids (inclusive)

Every page goes through the AuthenticatedExecutor. A failed page ends the
pass; whatever was accumulated is kept and returned with the error.
"""

from dataclasses import dataclass, field
from threading import Event
from typing import Callable, Dict, Generic, List, Optional, Sequence, Set, TypeVar
import logging

from core.errors import ClientError, ParameterError, Result

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 100


@dataclass(frozen=True)
class PageCursor:
    """Offset/limit pair identifying one page."""
    offset: int = 0
    limit: int = DEFAULT_PAGE_SIZE

    def __post_init__(self):
        if self.offset < 0:
            raise ValueError(f"offset must be non-negative, got {self.offset}")
        if self.limit <= 0:
            raise ValueError(f"limit must be positive, got {self.limit}")

    def advance(self, returned: int) -> "PageCursor":
        return PageCursor(self.offset + returned, self.limit)


@dataclass
class Page(Generic[T]):
    """
    One fetched page.

    `returned` is how many entries the server sent (including any that could
    not be mapped); it drives the offset and the short-page check.
    """
    items: List[T]
    total: Optional[int] = None
    returned: Optional[int] = None

    def __post_init__(self):
        if self.returned is None:
            self.returned = len(self.items)


@dataclass
class Collection(Generic[T]):
    """Result of a collection pass; partial when `error` is set or the pass was cancelled."""
    items: List[T] = field(default_factory=list)
    error: Optional[ClientError] = None
    pages_fetched: int = 0
    total: Optional[int] = None
    cancelled: bool = False

    @property
    def complete(self) -> bool:
        return self.error is None and not self.cancelled

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)


FetchPage = Callable[[PageCursor, Dict[str, str]], Result[Page[T]]]


def slice_range(
    items: Sequence[T],
    start_id: Optional[str],
    end_id: Optional[str],
    key: Callable[[T], str],
) -> List[T]:
    """
    Inclusive slice of `items` between two identifiers.

    Copying starts at `start_id` (or at the first item if None) and stops
    after `end_id`. A `start_id` that never appears yields an empty list,
    even when `end_id` alone would have matched.
    """
    if start_id is None and end_id is None:
        return list(items)

    ranged: List[T] = []
    in_range = start_id is None
    for item in items:
        item_id = key(item)
        if not in_range and item_id == start_id:
            in_range = True
        if in_range:
            ranged.append(item)
            if end_id is not None and item_id == end_id:
                break

    if not in_range:
        return []
    return ranged


class PaginatedCollector:
    """Drives page fetches through an executor and assembles the results."""

    def __init__(
        self,
        executor,
        page_size: int = DEFAULT_PAGE_SIZE,
        key: Callable[[T], str] = lambda item: item.id,
    ):
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self.executor = executor
        self.page_size = page_size
        self.key = key
        self._logger = logging.getLogger("mangadex.api.pagination")

    def collect_recent(
        self,
        fetch_page: FetchPage,
        count: Optional[int] = None,
        cancel: Optional[Event] = None,
    ) -> Collection[T]:
        """
        Accumulate pages until `count` items, the server total, or a short page.

        Returns at most `count` items when a count is given.
        """
        if count is not None and count < 0:
            return Collection(error=ParameterError(f"count must be non-negative, got {count}"))
        if count == 0:
            return Collection()
        return self._collect(fetch_page, count, cancel)

    def collect_all(self, fetch_page: FetchPage, cancel: Optional[Event] = None) -> Collection[T]:
        """Accumulate the entire collection, ignoring any count."""
        return self._collect(fetch_page, None, cancel)

    def collect_range(
        self,
        fetch_page: FetchPage,
        start_id: Optional[str] = None,
        end_id: Optional[str] = None,
        cancel: Optional[Event] = None,
    ) -> Collection[T]:
        """
        Accumulate everything, then slice between `start_id` and `end_id`.

        Slicing runs over whatever was fetched successfully; the collection
        error (if any) and the cancelled flag are kept on the result.
        """
        collection = self.collect_all(fetch_page, cancel)
        if start_id is None and end_id is None:
            self._logger.info(f"No id range given, returning all {len(collection.items)} items")
            return collection

        ranged = slice_range(collection.items, start_id, end_id, self.key)
        if not collection.complete:
            self._logger.warning(
                f"Range [{start_id}..{end_id}] applied to an incomplete pass of {len(collection.items)} items"
            )
        elif start_id is not None and not ranged:
            self._logger.warning(f"Start id '{start_id}' not found in {len(collection.items)} fetched items")
        else:
            self._logger.info(f"Range [{start_id}..{end_id}] selected {len(ranged)} of {len(collection.items)} items")
        collection.items = ranged
        return collection

    def _collect(self, fetch_page: FetchPage, count: Optional[int], cancel: Optional[Event]) -> Collection[T]:
        collection: Collection[T] = Collection()
        seen: Set[str] = set()
        cursor = PageCursor(0, self.page_size)

        while True:
            if cancel is not None and cancel.is_set():
                self._logger.info(f"Collection cancelled at offset {cursor.offset}")
                collection.cancelled = True
                break

            result = self.executor.execute(
                lambda headers: fetch_page(cursor, headers), requires_auth=True, cancel=cancel
            )
            if not result.ok:
                self._logger.warning(
                    f"Page fetch failed at offset {cursor.offset}: {result.error!r}; "
                    f"keeping {len(collection.items)} collected items",
                    extra={"offset": cursor.offset},
                )
                collection.error = result.error
                collection.cancelled = cancel is not None and cancel.is_set()
                break

            page = result.value
            collection.pages_fetched += 1
            if page.total is not None:
                collection.total = page.total
            if page.returned == 0:
                break

            for item in page.items:
                item_key = self.key(item)
                if item_key in seen:
                    self._logger.debug(f"Skipping duplicate item {item_key}")
                    continue
                seen.add(item_key)
                collection.items.append(item)
                if count is not None and len(collection.items) >= count:
                    break

            if count is not None and len(collection.items) >= count:
                break
            cursor = cursor.advance(page.returned)
            if page.total is not None and cursor.offset >= page.total:
                break
            if page.returned < cursor.limit:
                break

        if count is not None:
            collection.items = collection.items[:count]
        return collection
