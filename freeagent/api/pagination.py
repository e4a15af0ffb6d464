"""Pagination helpers.

List endpoints accept ``page`` and ``per_page`` query parameters and describe
the result set with a ``Link`` header and an ``X-Total-Count`` header::

    Link: <https://api.freeagent.com/v2/invoices?page=2&per_page=50>; rel='next',
          <https://api.freeagent.com/v2/invoices?page=4&per_page=50>; rel='last'
"""

import re
from dataclasses import dataclass, field
from typing import Any

MAX_PER_PAGE = 100
DEFAULT_PER_PAGE = 25

LINK_RELATIONS = ("prev", "next", "first", "last")

_LINK_PART = re.compile(r"""<([^>]*)>\s*;\s*rel\s*=\s*['"]?([A-Za-z]+)['"]?""")


def validate_per_page(per_page: int) -> int:
    """Check a page size against the server maximum.

    Raises:
        ValueError: If per_page is outside 1..100.
    """
    if not 1 <= per_page <= MAX_PER_PAGE:
        raise ValueError(f"per_page must be between 1 and {MAX_PER_PAGE}, got {per_page}")
    return per_page


def parse_link_header(value: str | None) -> dict[str, str]:
    """Parse a Link header into a mapping of relation to URL.

    Only prev, next, first and last relations are kept. Malformed parts are
    skipped.
    """
    links: dict[str, str] = {}
    if not value:
        return links

    for part in value.split(","):
        match = _LINK_PART.search(part)
        if not match:
            continue
        url, rel = match.group(1).strip(), match.group(2).lower()
        if rel in LINK_RELATIONS and url:
            links[rel] = url
    return links


def parse_total_count(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


@dataclass
class Page:
    """One page of a list endpoint."""

    items: list[dict[str, Any]]
    links: dict[str, str] = field(default_factory=dict)
    total_count: int | None = None

    @property
    def has_next(self) -> bool:
        return "next" in self.links

    @property
    def next_url(self) -> str | None:
        return self.links.get("next")
