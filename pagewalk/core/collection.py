from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, Iterator, NoReturn

from pagewalk.core.record import Record
from pagewalk.lifecycle.observability import track_fetch
from pagewalk.utils.exceptions import (
    ImmutableError,
    MalformedPagination,
    MalformedResponse,
    OutOfRange,
)
from pagewalk.utils.pagination import (
    PageLink,
    Relation,
    index_of,
    page_number_of,
    parse_page_links,
)
from pagewalk.utils.types import Fetcher

logger = logging.getLogger(__name__)

Pagination = dict[Relation, PageLink]


class PagedCollection:
    """Lazy, read-only view over a paginated API collection.

    Built from one already-fetched page, the collection addresses every item
    of the remote collection by a global index, ``(page - 1) * per_page +
    offset``, and fetches further pages through its fetcher only when an
    access needs them. Each page is fetched at most once unless a refresh is
    forced.

    Records are cached by global index and the cache only grows. Mutation is
    refused with ImmutableError.
    """

    def __init__(
        self,
        items: Iterable[Any],
        link_header: str | None = None,
        fetcher: Fetcher | None = None,
        *,
        record_class: type[Record] = Record,
    ) -> None:
        self._fetcher = fetcher
        self._record_class = record_class
        self._lock = threading.RLock()
        self._data: dict[int, Record] = {}
        self._pagination: Pagination = parse_page_links(link_header)
        self._pagination_per_page: dict[int, Pagination] = {}

        current = self._pagination.get(Relation.CURRENT)
        if current is not None:
            self._page = current.page_number
            self._key = current.start_index
            self._pagination_per_page[self._page] = self._pagination
        elif Relation.NEXT in self._pagination:
            raise MalformedPagination(
                "Link header advertises a next page but no current page"
            )
        else:
            # Unpaginated response: the whole result is page 1
            self._page = 1
            self._key = 0
        self._start = self._key

        items = list(items)
        if current is not None and len(items) > current.per_page:
            raise MalformedResponse(
                f"Page {current.page_number} of {current.endpoint} has "
                f"{len(items)} items for a page size of {current.per_page}"
            )
        for offset, item in enumerate(items):
            self._data[self._start + offset] = record_class.from_json(item)

    # --- Introspection ---

    @property
    def per_page(self) -> int | None:
        """Page size reported by the server, or None for a single page."""
        current = self._pagination.get(Relation.CURRENT)
        return current.per_page if current is not None else None

    @property
    def page(self) -> int | None:
        """Page number under the cursor."""
        return self._page

    @property
    def start_index(self) -> int:
        """Global index of the first item of the initial page."""
        return self._start

    @property
    def fetched_pages(self) -> list[int]:
        """Page numbers that have been requested and answered, plus the initial page."""
        return sorted(self._pagination_per_page)

    @property
    def is_frozen(self) -> bool:
        """True when no further pages can be fetched."""
        return self._fetcher is None

    def __repr__(self) -> str:
        current = self._pagination.get(Relation.CURRENT)
        endpoint = current.endpoint if current is not None else None
        return (
            f"{type(self).__name__}(endpoint={endpoint!r}, "
            f"cached={len(self._data)}, page={self._page})"
        )

    # --- Page fetching ---

    def ensure_page(self, page_number: int, force_refresh: bool = False) -> bool:
        """Fetch a page unless it is already cached.

        The request reuses the current page's endpoint and query parameters
        and only overrides the page number, so every page belongs to the same
        filtered and sorted view. The cache is left untouched if the fetch or
        decoding fails.

        Args:
            page_number: 1-indexed page number
            force_refresh: Fetch even if the page is cached

        Returns:
            True if a request was issued, False if the page was cached or the
            collection cannot fetch (single page or frozen snapshot)

        Raises:
            ValueError: If page_number is below 1
            MalformedPagination: If the response lacks a current link or
                changes page size
            MalformedResponse: If the response items cannot be decoded
        """
        if page_number < 1:
            raise ValueError("page_number must be >= 1")

        with self._lock:
            current = self._pagination.get(Relation.CURRENT)
            if current is None or self._fetcher is None:
                return False

            start = index_of(page_number, current.per_page)
            seen = start in self._data or page_number in self._pagination_per_page
            if seen and not force_refresh:
                logger.debug("Page %d of %s already cached", page_number, current.endpoint)
                return False

            params = current.params_for(page_number)
            with track_fetch("fetch_page", current.endpoint, page_number, params) as ctx:
                result = self._fetcher.fetch(current.endpoint, params)
                ctx["result_count"] = len(result.items)

            pagination = parse_page_links(result.link_header)
            fetched = pagination.get(Relation.CURRENT)
            if fetched is None:
                raise MalformedPagination(
                    f"Response for page {page_number} of {current.endpoint} has no current link"
                )
            if fetched.per_page != current.per_page:
                raise MalformedPagination(
                    f"Page size changed from {current.per_page} to {fetched.per_page} "
                    f"on page {fetched.page_number} of {current.endpoint}"
                )
            if len(result.items) > fetched.per_page:
                raise MalformedResponse(
                    f"Page {fetched.page_number} of {current.endpoint} returned "
                    f"{len(result.items)} items for a page size of {fetched.per_page}"
                )
            if fetched.page_number != page_number:
                logger.warning(
                    "Requested page %d of %s but the server returned page %d",
                    page_number,
                    current.endpoint,
                    fetched.page_number,
                )

            records = [self._record_class.from_json(item) for item in result.items]
            self._merge(fetched, records, replace=force_refresh)
            self._pagination_per_page[fetched.page_number] = pagination
            # The requested page counts as answered even when another came back
            self._pagination_per_page.setdefault(page_number, pagination)
            logger.debug(
                "Fetched page %d of %s (%d items)",
                fetched.page_number,
                current.endpoint,
                len(records),
            )
            return True

    def _merge(self, link: PageLink, records: list[Record], replace: bool) -> None:
        """Place a page's records at its index range.

        Without ``replace`` the merge is additive and keeps existing entries.
        With it, the page's own range is replaced and nothing outside it is
        touched.
        """
        start = link.start_index
        if replace:
            for index in range(start, start + link.per_page):
                self._data.pop(index, None)
        for offset, record in enumerate(records):
            self._data.setdefault(start + offset, record)

    def materialize_all(self, force_refresh: bool = False) -> None:
        """Fetch every page after the initial one by following next links.

        The iteration cursor is left where it was.

        Raises:
            MalformedPagination: If the next links loop back on themselves
        """
        if self._fetcher is None:
            return

        with self._lock:
            page, key = self._page, self._key
            try:
                next_page = self._next_page_number(self._pagination)
                visited: set[int] = set()
                while next_page is not None:
                    if next_page in visited:
                        raise MalformedPagination(
                            f"Next links loop back to page {next_page}"
                        )
                    visited.add(next_page)
                    self.ensure_page(next_page, force_refresh)
                    pagination = self._pagination_per_page.get(next_page)
                    if pagination is None:
                        raise MalformedPagination(
                            f"No pagination recorded for page {next_page}"
                        )
                    next_page = self._next_page_number(pagination)
            finally:
                self._page, self._key = page, key

    @staticmethod
    def _next_page_number(pagination: Pagination) -> int | None:
        link = pagination.get(Relation.NEXT)
        return link.page_number if link is not None else None

    # --- Random access ---

    def exists(self, index: int) -> bool:
        """Whether an item exists at a global index.

        A miss fetches all remaining pages, since the extent of the
        collection is unknown until every page has been seen.
        """
        if index < 0:
            return False
        if index not in self._data:
            self.materialize_all()
        return index in self._data

    def get(self, index: int) -> Record:
        """Return the record at a global index.

        Raises:
            OutOfRange: If no item exists at the index
        """
        if not self.exists(index):
            raise OutOfRange(f"Index {index} is out of range")
        return self._data[index]

    def __getitem__(self, index: int) -> Record:
        return self.get(index)

    def count(self) -> int:
        """Number of items in the whole collection."""
        self.materialize_all()
        return len(self._data)

    def __len__(self) -> int:
        return self.count()

    def get_array_copy(self) -> dict[int, Record]:
        """Snapshot of every record keyed by global index, in index order."""
        self.materialize_all()
        return dict(sorted(self._data.items()))

    def to_list(self) -> list[Record]:
        return list(self.get_array_copy().values())

    # --- Mutation is refused ---

    def _refuse(self) -> NoReturn:
        raise ImmutableError("API responses are immutable")

    def set(self, index: int, value: Any) -> NoReturn:
        self._refuse()

    def unset(self, index: int) -> NoReturn:
        self._refuse()

    def __setitem__(self, index: int, value: Any) -> None:
        self._refuse()

    def __delitem__(self, index: int) -> None:
        self._refuse()

    # --- Iteration ---

    def rewind(self) -> None:
        """Move the cursor to index 0, the start of the whole collection."""
        self._key = 0
        self._page = 1

    def advance(self) -> None:
        """Move the cursor to the next index."""
        self._key += 1
        if self.per_page is not None:
            self._page = page_number_of(self._key, self.per_page)

    def key(self) -> int:
        """Global index under the cursor."""
        return self._key

    def current(self) -> Record:
        """Return the record under the cursor, fetching its page if needed.

        Raises:
            OutOfRange: If no item exists at the cursor
        """
        key = self._key
        if key not in self._data and key >= 0 and self.per_page is not None:
            self.ensure_page(page_number_of(key, self.per_page))
        try:
            return self._data[key]
        except KeyError:
            raise OutOfRange(f"No item at index {key}")

    def is_valid(self) -> bool:
        """Whether the cursor points at an existing item."""
        return self.exists(self._key)

    def seek_page(self, page_number: int) -> None:
        """Move the cursor to the first item of a page, fetching it if needed.

        Raises:
            OutOfRange: If the page holds no items
        """
        if self.per_page is None:
            start = 0 if page_number == 1 else -1
        else:
            self.ensure_page(page_number)
            start = index_of(page_number, self.per_page)
        if start not in self._data:
            raise OutOfRange(f"Page {page_number} is out of range")
        self._page, self._key = page_number, start

    def __iter__(self) -> Iterator[Record]:
        """Iterate from index 0 with a cursor independent of the collection's."""
        index = 0
        while self.exists(index):
            yield self._data[index]
            index += 1

    # --- Pickling ---

    def __getstate__(self) -> dict[str, Any]:
        self.materialize_all()
        return {"page": self._page, "key": self._key, "data": dict(self._data)}

    def __setstate__(self, state: dict[str, Any]) -> None:
        # Restored collections are frozen snapshots without a fetcher
        self._fetcher = None
        self._record_class = Record
        self._lock = threading.RLock()
        self._pagination = {}
        self._pagination_per_page = {}
        self._page = state["page"]
        self._key = state["key"]
        self._data = dict(state["data"])
        self._start = min(self._data, default=0)
