"""Per-render query API for templates.

A SiteContext is bound to one render: the site graph, the page being
rendered, the configuration and, for listing pages, the active pager.
Templates reach it as ``site`` and navigate the graph only through it.

Key classes:
- SiteContext: Read-only façade over SiteGraph.
"""

from __future__ import annotations

from typing import Any

from .collections import AssetCollection, PageCollection, TaxonomyCollection
from .config import BuildConfig, SiteConfig
from .content import ContentPage
from .graph import Section, SiteGraph
from .html_utils import is_absolute_url, join_root_url
from .pagination import Pager, paginate
from .utils import lookup_key, normalize_url_path, path_key


class SiteContext:
    """Read-only façade templates use to query the site graph.

    Attributes:
        graph: The immutable site graph.
        page: The page being rendered (None for synthetic listings).
        config: Build configuration.
        pager: Pager bound to a listing route, if any.
        current_url: URL path of the route being rendered.
    """

    def __init__(
        self,
        graph: SiteGraph,
        page: ContentPage | None,
        config: BuildConfig,
        pager: Pager | None = None,
        current_url: str | None = None,
    ):
        self.graph = graph
        self.page = page
        self.config = config
        self.pager = pager
        if current_url is None:
            current_url = page.url_path if page is not None else "/"
        self.current_url = current_url

    @property
    def site_config(self) -> SiteConfig:
        return self.config.site

    @property
    def version(self) -> str:
        return self.config.version

    def url(self, path: str, absolute: bool = False) -> str:
        """Apply the base path (or base URL) to a site-relative path.

        Absolute URLs are returned unchanged and a path that already carries
        the base path is not prefixed twice.
        """
        if is_absolute_url(path):
            return path
        relative = path if path.startswith("/") else f"/{path}"
        base_path = self.site_config.base_path
        if base_path and not (relative == base_path or relative.startswith(f"{base_path}/")):
            relative = f"{base_path}{relative}"
        if absolute and self.site_config.base_url:
            return join_root_url(self.site_config.base_url, relative)
        return relative

    def is_current(self, path: str) -> bool:
        """True when ``path`` addresses the route being rendered."""
        candidate = path
        base_path = self.site_config.base_path
        if base_path:
            normalized = "/" + path_key(candidate)
            if normalized == base_path or normalized.startswith(f"{base_path}/"):
                candidate = normalized[len(base_path) :] or "/"
        return normalize_url_path(candidate) == normalize_url_path(self.current_url)

    def pages(self) -> PageCollection:
        return self.graph.pages

    def root_pages(self) -> PageCollection:
        return self.graph.root_pages()

    def sections(self) -> tuple[Section, ...]:
        return self.graph.sections()

    def section(self, name: str) -> Section:
        """Look up a section; unknown names yield an empty section."""
        found = self.graph.section(name)
        if found is not None:
            return found
        return Section(path=path_key(name), label="")

    def regular_pages(self) -> PageCollection:
        return self.graph.regular_pages()

    def type(self, name: str) -> PageCollection:
        return self.graph.regular_pages().where_type(name)

    def by_slug(self, slug: str) -> ContentPage | None:
        return self.graph.find_by_slug(slug)

    def by_url(self, url: str) -> ContentPage | None:
        return self.graph.find_by_url(url)

    def taxonomy(self, name: str) -> TaxonomyCollection:
        return self.graph.taxonomy(name)

    def taxonomy_term(self, name: str, term: str) -> PageCollection:
        """Pages for ``term``; empty for unknown taxonomies or terms."""
        return self.graph.taxonomy(name).term(term)

    def previous(self) -> ContentPage | None:
        return self.graph.previous(self.page) if self.page is not None else None

    def next(self) -> ContentPage | None:
        return self.graph.next(self.page) if self.page is not None else None

    def previous_in_section(self) -> ContentPage | None:
        return self.graph.previous_in_section(self.page) if self.page is not None else None

    def next_in_section(self) -> ContentPage | None:
        return self.graph.next_in_section(self.page) if self.page is not None else None

    def assets(self, root: str | None = None) -> AssetCollection:
        return self.graph.assets(root)

    def page_assets(self, subdir: str | None = None) -> AssetCollection:
        if self.page is None:
            return AssetCollection()
        return self.graph.page_assets(self.page, subdir)

    def assets_for(self, page: ContentPage | str, subdir: str | None = None) -> AssetCollection:
        """Assets of another page, given as a page or a slug."""
        target = self.graph.find_by_slug(page) if isinstance(page, str) else page
        if target is None:
            return AssetCollection()
        return self.graph.page_assets(target, subdir)

    def paginate(
        self,
        collection: PageCollection,
        per_page: int = 10,
        page_number: int | None = None,
        base_url: str | None = None,
    ) -> Pager:
        """Paginate a collection from a template.

        Defaults to the bound pager's page number and the current URL.
        """
        if page_number is None:
            page_number = self.pager.page_number if self.pager is not None else 1
        if base_url is None:
            base_url = self.pager.base_url if self.pager is not None else self.url(
                self.page.url_path if self.page is not None else self.current_url
            )
        return paginate(
            collection,
            page_number,
            per_page,
            base_url,
            self.config.pagination_pattern,
        )

    def meta(self, path: str, default: Any = None) -> Any:
        """Read page metadata, falling back to site metadata."""
        if self.page is not None and self.page.has_meta(path):
            return self.page.meta(path, default)
        return self.site_config.site_meta(path, default)

    def section_of(self, page: ContentPage | None = None) -> Section | None:
        target = page or self.page
        return self.graph.section_of(target) if target is not None else None

    def is_section(self, name: str) -> bool:
        return self.graph.section(name) is not None and bool(lookup_key(name))
