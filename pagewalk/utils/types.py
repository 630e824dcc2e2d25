from typing import Any, NamedTuple, Protocol

# Type aliases for better clarity
RecordData = dict[str, Any]
ParamValue = str | list[str]
QueryParams = dict[str, ParamValue]

# Constants
MAX_PER_PAGE = 100  # Largest page size a collection will request
PAGE_PARAM = "page"
PER_PAGE_PARAM = "per_page"


class FetchResult(NamedTuple):
    """Decoded items of one page plus that response's Link header."""

    items: list[Any]
    link_header: str | None = None


class Fetcher(Protocol):
    """Performs one GET against an endpoint and returns the decoded page."""

    def fetch(self, endpoint: str, params: QueryParams) -> FetchResult: ...

