"""Route table for Lattice.

Every page publishes one route at its URL. Every configured listing adds one
route per pager page: page 1 is the section URL (bound to the section's index
page when it has one) and page N > 1 follows the pagination pattern. Batch
builds write every route; the live server looks one up per request.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from .collections import PageCollection
from .config import BuildConfig, ListingConfig
from .content import ContentPage
from .errors import ContentParseError
from .graph import SiteGraph
from .pagination import normalize_base_url, paginate
from .utils import normalize_url_path, path_key, slugify_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Route:
    """A publishable URL.

    Attributes:
        url_path: Public path without base path, with a trailing slash.
        page: Page rendered at this URL (None for synthetic listing pages).
        listing: Listing this route paginates, if any.
        page_number: Pager page number for listing routes.
        collection: Pages being paginated for listing routes.
        base_url: URL of the listing's first page.
    """

    url_path: str
    page: ContentPage | None = None
    listing: ListingConfig | None = None
    page_number: int = 1
    collection: PageCollection | None = None
    base_url: str | None = None

    @property
    def kind(self) -> str:
        if self.listing is None:
            return "page"
        return "listing" if self.page is None else "page+listing"

    @property
    def output_path(self) -> str:
        key = path_key(self.url_path)
        return f"{key}/index.html" if key else "index.html"

    @property
    def source_path(self) -> Path | None:
        return self.page.source_path if self.page is not None else None


class RouteTable:
    """Ordered, collision-free mapping of URL paths to routes."""

    def __init__(self, routes: list[Route] | None = None):
        self._routes: dict[str, Route] = {}
        for route in routes or []:
            self.add(route)

    def add(self, route: Route) -> None:
        """Add a route.

        Raises:
            ContentParseError: When another route already publishes the URL.
        """
        key = normalize_url_path(route.url_path)
        existing = self._routes.get(key)
        if existing is not None:
            where = route.source_path or Path(route.url_path)
            other = existing.source_path or existing.url_path
            raise ContentParseError(where, f"URL {route.url_path} is already published by {other}")
        self._routes[key] = route

    def resolve(self, url_path: str) -> Route | None:
        return self._routes.get(normalize_url_path(url_path))

    def __iter__(self) -> Iterator[Route]:
        return iter(self._routes.values())

    def __len__(self) -> int:
        return len(self._routes)

    @classmethod
    def from_graph(cls, graph: SiteGraph, config: BuildConfig) -> RouteTable:
        listing_routes: dict[str, Route] = {}
        extra: list[Route] = []
        for listing in config.listings:
            for route in _listing_routes(graph, config, listing):
                if route.page is not None and route.page_number == 1:
                    listing_routes[normalize_url_path(route.url_path)] = route
                else:
                    extra.append(route)

        table = cls()
        for page in graph.pages:
            key = normalize_url_path(page.url_path)
            table.add(listing_routes.pop(key, None) or Route(url_path=page.url_path, page=page))
        for route in extra:
            table.add(route)
        return table


def listing_collection(graph: SiteGraph, section_name: str) -> PageCollection:
    """Pages a listing paginates: the section subtree minus index pages."""
    section = graph.section(section_name)
    if section is None:
        return PageCollection()
    return section.all_pages().filter(lambda p: not graph.is_section_index(p)).by_weight()


def _listing_routes(graph: SiteGraph, config: BuildConfig, listing: ListingConfig) -> list[Route]:
    section = graph.section(listing.section)
    if section is None:
        logger.warning("Listing section '%s' has no pages; skipping", listing.section)
        return []
    index = section.index
    base_url = index.url_path if index is not None else normalize_base_url(slugify_path(section.path))
    collection = listing_collection(graph, listing.section)
    first = paginate(collection, 1, listing.per_page, base_url, config.pagination_pattern)
    return [
        Route(
            url_path=first.url_for(number),
            page=index if number == 1 else None,
            listing=listing,
            page_number=number,
            collection=collection,
            base_url=first.base_url,
        )
        for number in range(1, first.total_pages + 1)
    ]
