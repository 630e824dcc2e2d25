from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from pagewalk.core.collection import PagedCollection
from pagewalk.core.record import Record
from pagewalk.lifecycle.observability import track_fetch
from pagewalk.utils.exceptions import (
    AuthenticationFailed,
    MalformedResponse,
    NotConnected,
    TransportFailure,
)
from pagewalk.utils.settings import SettingsResolver
from pagewalk.utils.types import MAX_PER_PAGE, PER_PAGE_PARAM, FetchResult, QueryParams

logger = logging.getLogger(__name__)

# Paths ending in a numeric id address a single object
_OBJECT_PATH = re.compile(r"^.*/\d+/?$")

_clients: dict[str, ApiClient] = {}


class ApiClient:
    """Synchronous client for a link-paginated JSON API.

    Every request carries the bearer token. GET responses for collection
    paths become PagedCollections that use this client to fetch further
    pages; responses for single-object paths become Records.

    Subclasses may declare an inner ``Settings`` class with ``per_page``,
    ``timeout``, ``record_class`` and ``user_agent``.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not isinstance(token, str) or not token:
            raise ValueError("API access token must be a non-empty string")

        cls = type(self)
        self._per_page = SettingsResolver.get_per_page(cls)
        self._record_class: type[Record] = SettingsResolver.get_record_class(cls)
        self._http = httpx.Client(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
                "User-Agent": SettingsResolver.get_user_agent(cls),
            },
            timeout=timeout if timeout is not None else SettingsResolver.get_timeout(cls),
            transport=transport,
            follow_redirects=True,
        )

    @property
    def base_url(self) -> str:
        return str(self._http.base_url)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> ApiClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # --- Requests ---

    def get(self, path: str, params: QueryParams | None = None) -> Record | PagedCollection:
        """GET a path and wrap the response.

        Args:
            path: Endpoint path relative to the base URL, or an absolute URL
            params: Query parameters; ``per_page`` defaults to the client's
                page size and is capped at MAX_PER_PAGE

        Returns:
            A Record for single-object paths, otherwise a PagedCollection

        Raises:
            TransportFailure: If the request fails
            MalformedResponse: If the body does not match the path's shape
        """
        params = self._prepare_params(params)
        with track_fetch("get", path, params=params) as ctx:
            response = self._request(path, encode_params(params, brackets=True))
            body = self._decode(response, path)
            ctx["result_count"] = len(body) if isinstance(body, list) else 1

        if _OBJECT_PATH.match(path):
            return self._record_class.from_json(body)
        if not isinstance(body, list):
            raise MalformedResponse(f"Expected a JSON list from {path}")
        return PagedCollection(
            body,
            response.headers.get("link"),
            self,
            record_class=self._record_class,
        )

    def fetch(self, endpoint: str, params: QueryParams) -> FetchResult:
        """Fetch one page of a collection for a PagedCollection.

        Parameters come from the collection's page links and are sent under
        their original names.
        """
        params = self._prepare_params(params)
        response = self._request(endpoint, encode_params(params))
        body = self._decode(response, endpoint)
        if not isinstance(body, list):
            raise MalformedResponse(f"Expected a JSON list from {endpoint}")
        return FetchResult(body, response.headers.get("link"))

    # --- Internal ---

    def _prepare_params(self, params: QueryParams | None) -> QueryParams:
        """Default the page size and keep it within MAX_PER_PAGE."""
        prepared = dict(params or {})
        per_page = prepared.get(PER_PAGE_PARAM)
        if per_page is None:
            prepared[PER_PAGE_PARAM] = str(self._per_page)
        elif _page_size(per_page) > MAX_PER_PAGE:
            logger.warning(
                "per_page=%s exceeds the maximum of %d; requesting %d",
                per_page,
                MAX_PER_PAGE,
                MAX_PER_PAGE,
            )
            prepared[PER_PAGE_PARAM] = str(MAX_PER_PAGE)
        return prepared

    def _request(self, path: str, params: list[tuple[str, str]]) -> httpx.Response:
        try:
            response = self._http.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            error_class = AuthenticationFailed if status in (401, 403) else TransportFailure
            raise error_class(
                f"GET {path} failed with status {status}", status_code=status
            ) from e
        except httpx.HTTPError as e:
            raise TransportFailure(f"GET {path} failed: {e}") from e
        return response

    @staticmethod
    def _decode(response: httpx.Response, path: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponse(f"Response from {path} is not valid JSON") from e


def _page_size(per_page: Any) -> int:
    if isinstance(per_page, (list, tuple, bool)):
        raise ValueError(f"per_page must be an integer, got {per_page!r}")
    try:
        size = int(per_page)
    except (TypeError, ValueError) as e:
        raise ValueError(f"per_page must be an integer, got {per_page!r}") from e
    if size < 1:
        raise ValueError(f"per_page must be at least 1, got {per_page!r}")
    return size


def encode_params(params: QueryParams, brackets: bool = False) -> list[tuple[str, str]]:
    """Flatten query parameters into pairs, repeating the key for each list item.

    With ``brackets``, list keys get the unindexed ``[]`` suffix the API
    expects for caller-supplied arrays:
    {"include": ["a", "b"]} -> include[]=a&include[]=b
    Without it, keys are sent as given, so parameters read back from a Link
    URL reproduce that URL's query.
    """
    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        if isinstance(value, (list, tuple)):
            name = f"{key}[]" if brackets and not key.endswith("[]") else key
            pairs.extend((name, str(item)) for item in value)
        else:
            pairs.append((key, str(value)))
    return pairs


# --- Connection registry ---


def connect(
    base_url: str,
    token: str,
    *,
    alias: str = "default",
    client_class: type[ApiClient] = ApiClient,
    **kwargs: Any,
) -> ApiClient:
    """Create an API client and register it under an alias.

    Args:
        base_url: API root, e.g. https://canvas.example.edu/api/v1
        token: Bearer access token
        alias: Registry alias for multi-instance setups
        client_class: ApiClient subclass to instantiate
        **kwargs: Passed to the client constructor

    Returns:
        The registered ApiClient

    Raises:
        ValueError: If the token is empty
    """
    logger.info(f"Connecting to {base_url} with alias '{alias}'")
    client = client_class(base_url, token, **kwargs)
    previous = _clients.pop(alias, None)
    if previous is not None:
        previous.close()
    _clients[alias] = client
    return client


def disconnect(alias: str = "default") -> None:
    """Close and remove a registered client.

    Args:
        alias: Registry alias to disconnect
    """
    client = _clients.pop(alias, None)
    if client is not None:
        client.close()
        logger.info(f"Disconnected client (alias: '{alias}')")


def get_client(alias: str = "default") -> ApiClient:
    """Retrieve a registered client or raise NotConnected.

    Args:
        alias: Registry alias

    Returns:
        ApiClient instance

    Raises:
        NotConnected: If no client exists for the alias
    """
    try:
        return _clients[alias]
    except KeyError:
        raise NotConnected(
            f"No client registered for alias '{alias}'. Call connect() first."
        )
