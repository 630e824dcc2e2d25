from urllib.parse import urlencode

import pytest

from pagewalk import FetchResult, PagedCollection, TransportFailure, disable_tracing
from pagewalk.core.client import _clients, disconnect

ENDPOINT = "https://canvas.test/api/v1/courses"


def build_link_header(page: int, per_page: int, last: int, endpoint: str = ENDPOINT, **params) -> str:
    """Canvas-style Link header for one page of a collection."""

    def url(n: int) -> str:
        return f"{endpoint}?{urlencode({**params, 'page': n, 'per_page': per_page}, doseq=True)}"

    links = [
        f'<{url(page)}>; rel="current"',
        f'<{url(1)}>; rel="first"',
        f'<{url(last)}>; rel="last"',
    ]
    if page < last:
        links.append(f'<{url(page + 1)}>; rel="next"')
    if page > 1:
        links.append(f'<{url(page - 1)}>; rel="prev"')
    return ",".join(links)


def build_items(start: int, n: int) -> list[dict]:
    return [{"id": i, "name": f"item_{i:03d}"} for i in range(start, start + n)]


class StubFetcher:
    """Fetcher serving fixed pages and recording every request."""

    def __init__(self, sizes: list[int], per_page: int, **params) -> None:
        self.per_page = per_page
        self.params = params
        self.pages: dict[int, list[dict]] = {}
        start = 0
        for number, size in enumerate(sizes, start=1):
            self.pages[number] = build_items(start, size)
            start += per_page
        self.calls: list[tuple[str, dict]] = []
        self.fail_pages: set[int] = set()

    @property
    def last_page(self) -> int:
        return len(self.pages)

    @property
    def pages_fetched(self) -> list[int]:
        return [int(params["page"]) for _, params in self.calls]

    def fetch(self, endpoint: str, params: dict) -> FetchResult:
        self.calls.append((endpoint, dict(params)))
        page = int(params["page"])
        if page in self.fail_pages:
            raise TransportFailure(f"Page {page} unavailable", status_code=503)
        header = build_link_header(page, self.per_page, self.last_page, endpoint, **self.params)
        return FetchResult(list(self.pages.get(page, [])), header)

    def collection(self, page: int = 1, **kwargs) -> PagedCollection:
        """Build a collection from one page, as a first response would."""
        header = build_link_header(page, self.per_page, self.last_page, ENDPOINT, **self.params)
        return PagedCollection(self.pages[page], header, self, **kwargs)


@pytest.fixture(autouse=True)
def reset_state():
    """Reset tracing state and the client registry between tests."""
    yield
    disable_tracing()
    for alias in list(_clients):
        disconnect(alias)


@pytest.fixture
def link_header():
    return build_link_header


@pytest.fixture
def make_fetcher():
    return StubFetcher


@pytest.fixture
def three_pages():
    """Five items over three pages of sizes 2, 2 and 1."""
    return StubFetcher([2, 2, 1], per_page=2)
