"""Link header parsing and page arithmetic.

An API response that is one page of a larger collection carries a Link header
such as::

    <https://h/api/v1/courses?page=2&per_page=10>; rel="current",
    <https://h/api/v1/courses?page=3&per_page=10>; rel="next"

Each link is decoded into a PageLink holding everything needed to request
that page again with identical filter and sort parameters.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from urllib.parse import parse_qsl, urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pagewalk.utils.exceptions import MalformedPagination
from pagewalk.utils.types import MAX_PER_PAGE, PAGE_PARAM, PER_PAGE_PARAM, QueryParams

logger = logging.getLogger(__name__)

_LINK_PATTERN = re.compile(r'<(?P<url>[^>]*)>\s*;\s*rel="?(?P<rel>[^",;]+)"?')


class Relation(str, Enum):
    FIRST = "first"
    LAST = "last"
    NEXT = "next"
    PREV = "prev"
    CURRENT = "current"


class PageLink(BaseModel):
    """One named page reference taken from a Link header."""

    model_config = ConfigDict(frozen=True)

    relation: Relation
    page_number: int = Field(ge=1)
    per_page: int = Field(ge=1, le=MAX_PER_PAGE)
    endpoint: str
    params: QueryParams = Field(default_factory=dict)

    @classmethod
    def from_url(cls, url: str, relation: Relation | str) -> PageLink:
        """Decode a page URL into a PageLink.

        Args:
            url: Absolute URL of the page, query string included
            relation: Relation name the URL was advertised under

        Returns:
            PageLink for the URL

        Raises:
            MalformedPagination: If the page number or page size is not a
                positive integer within bounds
        """
        parts = urlsplit(url)
        endpoint = urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
        params = _parse_query(parts.query)

        try:
            return cls(
                relation=relation,
                page_number=_int_param(params, PAGE_PARAM, url),
                per_page=_int_param(params, PER_PAGE_PARAM, url),
                endpoint=endpoint,
                params=params,
            )
        except ValidationError as e:
            raise MalformedPagination(f"Invalid page link '{url}': {e}") from e

    def params_for(self, page_number: int) -> QueryParams:
        """Return this link's query parameters targeting another page."""
        params = {
            key: list(value) if isinstance(value, list) else value
            for key, value in self.params.items()
        }
        params[PAGE_PARAM] = str(page_number)
        return params

    @property
    def start_index(self) -> int:
        return index_of(self.page_number, self.per_page)


def parse_page_links(header: str | None) -> dict[Relation, PageLink]:
    """Parse a Link header value into PageLinks keyed by relation.

    An absent or blank header means the response was a single, unpaginated
    page and yields an empty mapping. Relations other than first, last, next,
    prev and current are ignored.

    Args:
        header: Raw Link header value, or None

    Returns:
        Mapping of relation to PageLink

    Raises:
        MalformedPagination: If the header holds no link segment, a link is
            invalid, or the links disagree on page size
    """
    if header is None or not header.strip():
        return {}

    matches = list(_LINK_PATTERN.finditer(header))
    if not matches:
        raise MalformedPagination(f"Unparsable Link header: {header!r}")

    links: dict[Relation, PageLink] = {}
    for match in matches:
        try:
            relation = Relation(match["rel"].strip())
        except ValueError:
            logger.debug("Ignoring unknown link relation '%s'", match["rel"])
            continue
        links[relation] = PageLink.from_url(match["url"], relation)

    page_sizes = {link.per_page for link in links.values()}
    if len(page_sizes) > 1:
        raise MalformedPagination(
            f"Links in one response disagree on page size: {sorted(page_sizes)}"
        )
    return links


def index_of(page_number: int, per_page: int, offset: int = 0) -> int:
    """Global index of the item at ``offset`` within a page."""
    return (page_number - 1) * per_page + offset


def page_number_of(index: int, per_page: int) -> int:
    """Page number holding the item at a global index."""
    return index // per_page + 1


def _parse_query(query: str) -> QueryParams:
    """Decode a query string, keeping repeated keys as lists in order."""
    params: QueryParams = {}
    for key, value in parse_qsl(query, keep_blank_values=True):
        if key not in params:
            params[key] = value
            continue
        existing = params[key]
        if isinstance(existing, list):
            existing.append(value)
        else:
            params[key] = [existing, value]
    return params


def _int_param(params: QueryParams, name: str, url: str) -> int:
    value = params.get(name, "1")
    if isinstance(value, list):
        raise MalformedPagination(f"Repeated '{name}' parameter in page link '{url}'")
    try:
        return int(value)
    except ValueError:
        raise MalformedPagination(
            f"Non-numeric '{name}' parameter {value!r} in page link '{url}'"
        )
