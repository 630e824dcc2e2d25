from pagewalk.core import (
    Record,
    PagedCollection,
    ApiClient,
    connect,
    disconnect,
    get_client,
)
from pagewalk.lifecycle import (
    enable_tracing,
    disable_tracing,
    FetchEvent,
    add_listener,
)
from pagewalk.utils import (
    PagewalkError,
    ImmutableError,
    OutOfRange,
    MalformedPagination,
    MalformedResponse,
    TransportFailure,
    AuthenticationFailed,
    NotConnected,
    PageLink,
    Relation,
    parse_page_links,
    FetchResult,
    Fetcher,
    MAX_PER_PAGE,
)

__all__ = [
    # Core
    "Record",
    "PagedCollection",
    "ApiClient",
    "connect",
    "disconnect",
    "get_client",
    # Lifecycle
    "enable_tracing",
    "disable_tracing",
    "FetchEvent",
    "add_listener",
    # Utils
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
    "FetchResult",
    "Fetcher",
    "MAX_PER_PAGE",
]
