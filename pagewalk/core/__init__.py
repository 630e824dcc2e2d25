from pagewalk.core.record import Record
from pagewalk.core.collection import PagedCollection
from pagewalk.core.client import ApiClient, connect, disconnect, get_client

__all__ = [
    "Record",
    "PagedCollection",
    "ApiClient",
    "connect",
    "disconnect",
    "get_client",
]
