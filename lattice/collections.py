"""Immutable, chainable collections used by templates and the site graph.

Every transformation returns a new collection; no operation mutates its
receiver, so collections can be shared freely between concurrent renders.

Key classes:
- PageCollection: Ordered pages with filtering, sorting and grouping.
- AssetCollection: Ordered content assets.
- TaxonomyCollection: Term to PageCollection mapping for one taxonomy.

Key functions:
- sort_pages: The site ordering (weight, then date, then slug).
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from datetime import datetime, timezone
from fnmatch import fnmatchcase
from typing import Any

from .content import ContentAsset, ContentPage
from .errors import InvalidArgument
from .utils import dotted_get

_PAGE_FIELDS = {
    "title",
    "slug",
    "url_path",
    "relative_path",
    "date",
    "weight",
    "draft",
    "type",
    "template",
    "section_key",
    "is_index",
    "navigation_title",
}

_OPERATORS = {
    "=": "eq",
    "==": "eq",
    "eq": "eq",
    "!=": "ne",
    "<>": "ne",
    "ne": "ne",
    ">=": "ge",
    "ge": "ge",
    ">": "gt",
    "gt": "gt",
    "<=": "le",
    "le": "le",
    "<": "lt",
    "lt": "lt",
    "in": "in",
    "not in": "not in",
    "intersect": "intersect",
    "like": "like",
}

_MISSING = object()


def _timestamp(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def site_order_key(page: ContentPage) -> tuple:
    """Sort key for the site ordering.

    Weight ascending with missing weights last, then date descending with
    missing dates last, then slug ascending.
    """
    weight = page.weight
    date = page.date
    return (
        weight is None,
        weight if weight is not None else 0,
        date is None,
        -_timestamp(date) if date is not None else 0.0,
        page.slug,
    )


def sort_pages(pages: Iterable[ContentPage]) -> list[ContentPage]:
    return sorted(pages, key=site_order_key)


def _check_direction(direction: str) -> bool:
    normalized = direction.strip().lower()
    if normalized not in ("asc", "desc"):
        raise InvalidArgument(f"Sort direction must be 'asc' or 'desc', got {direction!r}")
    return normalized == "desc"


def _sort_with_missing_last(items: list, value: Callable[[Any], Any], reverse: bool) -> list:
    present = [item for item in items if value(item) is not None]
    missing = [item for item in items if value(item) is None]
    try:
        present.sort(key=value, reverse=reverse)
    except TypeError:
        present.sort(key=lambda item: str(value(item)), reverse=reverse)
    return present + missing


def field_value(page: ContentPage, key: str) -> Any:
    """Resolve a field for sorting, filtering and grouping.

    Plain names read page attributes, then metadata. ``meta.x.y`` reads
    metadata and ``taxonomies.tags`` reads a page's terms.
    """
    key = key.strip()
    if not key:
        return None
    if key.startswith("meta."):
        return page.meta(key[5:])
    if key.startswith("taxonomies."):
        return list(page.terms(key[11:]))
    if key in _PAGE_FIELDS:
        return getattr(page, key)
    return dotted_get(page.metadata, key)


def _compare(left: Any, right: Any) -> int:
    if left == right:
        return 0
    if left is None:
        return 1
    if right is None:
        return -1
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return (left > right) - (left < right)
    if isinstance(left, datetime) and isinstance(right, datetime):
        lt, rt = _timestamp(left), _timestamp(right)
        return (lt > rt) - (lt < rt)
    ls, rs = str(left), str(right)
    return (ls > rs) - (ls < rs)


def _like(actual: Any, pattern: Any) -> bool:
    if not isinstance(actual, str) or not isinstance(pattern, str):
        return False
    trimmed = pattern.strip()
    if not trimmed:
        return actual == ""
    try:
        compiled = re.compile(trimmed)
    except re.error:
        compiled = re.compile(re.escape(trimmed))
    return compiled.search(actual) is not None


def _matches(actual: Any, operator: str, expected: Any) -> bool:
    if operator == "eq":
        return actual == expected
    if operator == "ne":
        return actual != expected
    if operator in ("gt", "ge", "lt", "le"):
        result = _compare(actual, expected)
        return {
            "gt": result > 0,
            "ge": result >= 0,
            "lt": result < 0,
            "le": result <= 0,
        }[operator]
    if operator in ("in", "not in"):
        if isinstance(expected, (list, tuple, set, frozenset)):
            found = actual in expected
        elif isinstance(actual, str) and isinstance(expected, str):
            found = actual in expected
        else:
            found = False
        return found if operator == "in" else not found
    if operator == "intersect":
        if not isinstance(actual, (list, tuple)) or not isinstance(expected, (list, tuple)):
            return False
        return any(item in expected for item in actual)
    if operator == "like":
        return _like(actual, expected)
    return False


class PageCollection(Sequence[ContentPage]):
    """Immutable ordered list of pages."""

    def __init__(self, pages: Iterable[ContentPage] = ()):
        self._pages = tuple(pages)

    def __iter__(self) -> Iterator[ContentPage]:
        return iter(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return PageCollection(self._pages[item])
        return self._pages[item]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, PageCollection):
            return self._pages == other._pages
        if isinstance(other, (list, tuple)):
            return self._pages == tuple(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def all(self) -> list[ContentPage]:
        return list(self._pages)

    def count(self) -> int:  # type: ignore[override]
        return len(self._pages)

    def is_empty(self) -> bool:
        return not self._pages

    def first(self) -> ContentPage | None:
        return self._pages[0] if self._pages else None

    def last(self) -> ContentPage | None:
        return self._pages[-1] if self._pages else None

    def take(self, limit: int) -> PageCollection:
        if limit < 0:
            raise InvalidArgument(f"take() expects a non-negative limit, got {limit}")
        return PageCollection(self._pages[:limit])

    def slice(self, offset: int, length: int | None = None) -> PageCollection:
        end = None if length is None else offset + length
        return PageCollection(self._pages[offset:end])

    def reverse(self) -> PageCollection:
        return PageCollection(reversed(self._pages))

    def filter(self, predicate: Callable[[ContentPage], bool]) -> PageCollection:
        return PageCollection(p for p in self._pages if predicate(p))

    def sort(self, key: Callable[[ContentPage], Any], reverse: bool = False) -> PageCollection:
        return PageCollection(sorted(self._pages, key=key, reverse=reverse))

    def by(self, key: str, direction: str = "asc") -> PageCollection:
        """Sort by a field; pages without a value go last.

        Raises:
            InvalidArgument: When ``direction`` is not ``asc`` or ``desc``.
        """
        reverse = _check_direction(direction)
        return PageCollection(
            _sort_with_missing_last(list(self._pages), lambda p: field_value(p, key), reverse)
        )

    def by_date(self, direction: str = "desc") -> PageCollection:
        reverse = _check_direction(direction)
        return PageCollection(
            _sort_with_missing_last(
                list(self._pages),
                lambda p: _timestamp(p.date) if p.date is not None else None,
                reverse,
            )
        )

    def by_title(self, direction: str = "asc") -> PageCollection:
        reverse = _check_direction(direction)
        return PageCollection(
            sorted(self._pages, key=lambda p: p.title.casefold(), reverse=reverse)
        )

    def by_weight(self) -> PageCollection:
        """Apply the site ordering."""
        return PageCollection(sort_pages(self._pages))

    def where(self, key: str, operator: Any, value: Any = _MISSING) -> PageCollection:
        """Filter by comparing a field against a value.

        ``where("type", "post")`` compares for equality;
        ``where("weight", ">", 2)`` uses an explicit operator. Supported
        operators: ``= == eq != <> ne > gt >= ge < lt <= le in``,
        ``not in``, ``intersect`` and ``like`` (regular expression search).
        """
        if value is _MISSING:
            op, expected = "eq", operator
        elif isinstance(operator, str) and operator.strip().lower() in _OPERATORS:
            op, expected = _OPERATORS[operator.strip().lower()], value
        else:
            raise InvalidArgument(f"Unsupported where() operator: {operator!r}")
        return PageCollection(
            p for p in self._pages if _matches(field_value(p, key), op, expected)
        )

    def where_type(self, *types: str) -> PageCollection:
        wanted = {t.strip().lower() for t in types if t.strip()}
        return PageCollection(
            p for p in self._pages if (p.type or "").lower() in wanted
        )

    def with_term(self, taxonomy: str, term: str) -> PageCollection:
        return PageCollection(p for p in self._pages if term in p.terms(taxonomy))

    def published(self) -> PageCollection:
        return PageCollection(p for p in self._pages if not p.draft)

    def drafts(self) -> PageCollection:
        return PageCollection(p for p in self._pages if p.draft)

    def group_by(self, key: str) -> dict[str, PageCollection]:
        """Group pages by a field value, in order of first appearance.

        Pages whose value is a list are placed in every matching group.
        """
        groups: dict[str, list[ContentPage]] = {}
        for page in self._pages:
            value = field_value(page, key)
            values = value if isinstance(value, (list, tuple)) else [value]
            for item in values:
                label = "" if item is None else str(item)
                groups.setdefault(label, []).append(page)
        return {label: PageCollection(pages) for label, pages in groups.items()}

    def group_by_date(self, fmt: str = "%Y", direction: str = "desc") -> dict[str, PageCollection]:
        """Group dated pages by a ``strftime`` label, newest group first."""
        groups: dict[str, list[ContentPage]] = {}
        for page in self.by_date(direction):
            if page.date is None:
                continue
            groups.setdefault(page.date.strftime(fmt), []).append(page)
        return {label: PageCollection(pages) for label, pages in groups.items()}

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PageCollection({len(self._pages)} pages)"


class AssetCollection(Sequence[ContentAsset]):
    """Immutable ordered list of content assets."""

    def __init__(self, assets: Iterable[ContentAsset] = ()):
        self._assets = tuple(assets)

    def __iter__(self) -> Iterator[ContentAsset]:
        return iter(self._assets)

    def __len__(self) -> int:
        return len(self._assets)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return AssetCollection(self._assets[item])
        return self._assets[item]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, AssetCollection):
            return self._assets == other._assets
        if isinstance(other, (list, tuple)):
            return self._assets == tuple(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def all(self) -> list[ContentAsset]:
        return list(self._assets)

    def count(self) -> int:  # type: ignore[override]
        return len(self._assets)

    def is_empty(self) -> bool:
        return not self._assets

    def first(self) -> ContentAsset | None:
        return self._assets[0] if self._assets else None

    def last(self) -> ContentAsset | None:
        return self._assets[-1] if self._assets else None

    def take(self, limit: int) -> AssetCollection:
        if limit < 0:
            raise InvalidArgument(f"take() expects a non-negative limit, got {limit}")
        return AssetCollection(self._assets[:limit])

    def slice(self, offset: int, length: int | None = None) -> AssetCollection:
        end = None if length is None else offset + length
        return AssetCollection(self._assets[offset:end])

    def reverse(self) -> AssetCollection:
        return AssetCollection(reversed(self._assets))

    def filter(self, predicate: Callable[[ContentAsset], bool]) -> AssetCollection:
        return AssetCollection(a for a in self._assets if predicate(a))

    def images(self) -> AssetCollection:
        return self.filter(lambda a: a.is_image())

    def of_type(self, *extensions: str) -> AssetCollection:
        return self.filter(lambda a: a.is_type(*extensions))

    def matching(self, pattern: str) -> AssetCollection:
        """Keep assets whose relative path or filename matches a glob."""
        return self.filter(
            lambda a: fnmatchcase(a.relative_path, pattern) or fnmatchcase(a.filename, pattern)
        )

    def sort_by_name(self, direction: str = "asc") -> AssetCollection:
        reverse = _check_direction(direction)
        return AssetCollection(
            sorted(self._assets, key=lambda a: (a.filename.casefold(), a.relative_path), reverse=reverse)
        )

    def sort_by_size(self, direction: str = "asc") -> AssetCollection:
        reverse = _check_direction(direction)
        return AssetCollection(
            sorted(self._assets, key=lambda a: (a.size, a.relative_path), reverse=reverse)
        )

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"AssetCollection({len(self._assets)} assets)"


class TaxonomyCollection(Mapping[str, PageCollection]):
    """Mapping of term to PageCollection for one taxonomy, sorted by term."""

    def __init__(self, name: str, mapping: Mapping[str, Iterable[ContentPage]] | None = None):
        self.name = name
        items = sorted((mapping or {}).items(), key=lambda kv: (kv[0].casefold(), kv[0]))
        self._mapping = {term: PageCollection(pages) for term, pages in items}
        self._folded: dict[str, str] = {}
        for term in self._mapping:
            self._folded.setdefault(term.casefold(), term)

    def __getitem__(self, key: str) -> PageCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def terms(self) -> list[str]:
        return list(self._mapping)

    def _resolve(self, term: str) -> str | None:
        cleaned = term.strip()
        if cleaned in self._mapping:
            return cleaned
        return self._folded.get(cleaned.casefold())

    def term(self, term: str) -> PageCollection:
        """Pages declaring ``term``; an empty collection for unknown terms."""
        resolved = self._resolve(term)
        return self._mapping[resolved] if resolved is not None else PageCollection()

    def has_term(self, term: str) -> bool:
        return self._resolve(term) is not None

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TaxonomyCollection({self.name!r}, {len(self._mapping)} terms)"
