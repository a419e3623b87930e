"""Pagination for Lattice page collections.

``paginate`` slices an ordered PageCollection into fixed-size pages. Page 1
is always published at the base URL; page N > 1 appends the pagination
pattern (``page/{number}/`` by default), so the two never collide.
"""

from __future__ import annotations

import math
import re

from .collections import PageCollection
from .errors import InvalidArgument
from .html_utils import is_absolute_url

DEFAULT_PATTERN = "page/{number}/"


def normalize_base_url(base_url: str) -> str:
    """Return ``base_url`` with a leading and a trailing slash.

    Examples:
        >>> normalize_base_url("blog")
        '/blog/'
    """
    trimmed = base_url.strip()
    if is_absolute_url(trimmed):
        return trimmed.rstrip("/") + "/"
    collapsed = re.sub(r"/+", "/", f"/{trimmed.strip('/')}/")
    return collapsed


def _normalize_pattern(pattern: str) -> str:
    if "{number}" not in pattern:
        raise InvalidArgument(f"Pagination pattern must contain '{{number}}': {pattern!r}")
    cleaned = pattern.strip().lstrip("/")
    return cleaned if cleaned.endswith("/") else f"{cleaned}/"


class Pager:
    """One page of a paginated collection.

    Attributes:
        source: The full collection being paginated.
        per_page: Items per page.
        base_url: Normalized URL of page 1.
        pattern: Suffix pattern for pages after the first.
    """

    def __init__(
        self,
        source: PageCollection,
        page_number: int,
        per_page: int,
        base_url: str,
        pattern: str = DEFAULT_PATTERN,
    ):
        if per_page < 1:
            raise InvalidArgument(f"per_page must be at least 1, got {per_page}")
        self.source = source
        self.per_page = per_page
        self.base_url = normalize_base_url(base_url)
        self.pattern = _normalize_pattern(pattern)
        self._requested = page_number

    @property
    def total_items(self) -> int:
        return len(self.source)

    @property
    def total_pages(self) -> int:
        if not self.source:
            return 1
        return math.ceil(len(self.source) / self.per_page)

    @property
    def page_number(self) -> int:
        return min(max(1, self._requested), self.total_pages)

    @property
    def items(self) -> PageCollection:
        offset = (self.page_number - 1) * self.per_page
        return self.source.slice(offset, self.per_page)

    def url(self) -> str:
        return self.url_for(self.page_number)

    def url_for(self, number: int) -> str:
        """URL of page ``number``; page 1 is exactly the base URL."""
        number = max(1, number)
        if number == 1:
            return self.base_url
        return self.base_url + self.pattern.format(number=number)

    def _sibling(self, number: int) -> Pager:
        return Pager(self.source, number, self.per_page, self.base_url, self.pattern)

    @property
    def has_previous(self) -> bool:
        return self.page_number > 1

    @property
    def has_next(self) -> bool:
        return self.page_number < self.total_pages

    def previous(self) -> Pager | None:
        return self._sibling(self.page_number - 1) if self.has_previous else None

    def next(self) -> Pager | None:
        return self._sibling(self.page_number + 1) if self.has_next else None

    @property
    def previous_url(self) -> str | None:
        return self.url_for(self.page_number - 1) if self.has_previous else None

    @property
    def next_url(self) -> str | None:
        return self.url_for(self.page_number + 1) if self.has_next else None

    def first(self) -> Pager:
        return self._sibling(1)

    def last(self) -> Pager:
        return self._sibling(self.total_pages)

    def pagers(self) -> list[Pager]:
        return [self._sibling(number) for number in range(1, self.total_pages + 1)]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Pager({self.page_number}/{self.total_pages} at {self.url()!r})"


def paginate(
    collection: PageCollection,
    page_number: int,
    per_page: int,
    base_url: str,
    pattern: str = DEFAULT_PATTERN,
) -> Pager:
    """Return page ``page_number`` of ``collection``.

    Args:
        collection: Ordered pages.
        page_number: 1-based page number; clamped to ``[1, total_pages]``.
        per_page: Items per page.
        base_url: URL of page 1.
        pattern: Suffix for later pages, containing ``{number}``.

    Returns:
        Pager for the requested page. An empty collection has one empty page.

    Raises:
        InvalidArgument: When ``per_page < 1`` or the pattern lacks ``{number}``.
    """
    if not isinstance(collection, PageCollection):
        collection = PageCollection(collection)
    return Pager(collection, page_number, per_page, base_url, pattern)


def page_number_from_url(base_url: str, url: str, pattern: str = DEFAULT_PATTERN) -> int | None:
    """Reverse ``Pager.url_for``.

    Returns:
        The page number ``url`` addresses below ``base_url``, or None.
    """
    base = normalize_base_url(base_url)
    target = normalize_base_url(url)
    if target == base:
        return 1
    if not target.startswith(base):
        return None
    suffix_pattern = re.escape(_normalize_pattern(pattern)).replace(
        re.escape("{number}"), r"(\d+)"
    )
    match = re.fullmatch(suffix_pattern, target[len(base) :])
    if not match:
        return None
    number = int(match.group(1))
    return number if number > 1 else None
