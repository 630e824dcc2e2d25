from pagewalk.utils.exceptions import (
    PagewalkError,
    ImmutableError,
    OutOfRange,
    MalformedPagination,
    MalformedResponse,
    TransportFailure,
    AuthenticationFailed,
    NotConnected,
)
from pagewalk.utils.pagination import (
    PageLink,
    Relation,
    parse_page_links,
    index_of,
    page_number_of,
)
from pagewalk.utils.types import (
    RecordData,
    QueryParams,
    FetchResult,
    Fetcher,
    MAX_PER_PAGE,
    PAGE_PARAM,
    PER_PAGE_PARAM,
)

__all__ = [
    "PagewalkError",
    "ImmutableError",
    "OutOfRange",
    "MalformedPagination",
    "MalformedResponse",
    "TransportFailure",
    "AuthenticationFailed",
    "NotConnected",
    "PageLink",
    "Relation",
    "parse_page_links",
    "index_of",
    "page_number_of",
    "RecordData",
    "QueryParams",
    "FetchResult",
    "Fetcher",
    "MAX_PER_PAGE",
    "PAGE_PARAM",
    "PER_PAGE_PARAM",
]
