"""Render orchestration for Lattice.

SiteBuilder turns routes of a site graph into HTML. The batch build renders
every route concurrently and writes each result atomically; the live server
rebuilds the graph and renders a single route per request. Both go through
``render_route`` so their output is identical.

Key classes:
- SiteBuilder: Graph loading, template selection, context binding, rendering.
- BuildResult: Outcome of a batch build.

Key functions:
- build_site: Load configuration and run a batch build.
"""

from __future__ import annotations

import logging
import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jinja2 import TemplateNotFound, TemplateSyntaxError
from markupsafe import Markup

from .config import BuildConfig, load_config
from .content import ContentPage, ContentProcessor
from .context import SiteContext
from .errors import RenderError, RouteNotFoundError
from .feeds import FeedGenerator, default_feeds
from .graph import SiteGraph, SiteGraphBuilder
from .pagination import Pager, paginate
from .routes import Route, RouteTable
from .templates import TemplateEngine
from .utils import ensure_clean_dir, path_key, write_atomic

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Result of a batch build.

    Attributes:
        pages: Pages in the graph.
        output_dir: Directory the site was written to.
        written: Output files written, in route order.
        failures: Per-route render errors.
    """

    pages: list[ContentPage]
    output_dir: Path
    written: list[Path] = field(default_factory=list)
    failures: list[RenderError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def resolve_meta(site: SiteContext, page: ContentPage | None) -> dict[str, Any]:
    """Merge site meta defaults with a page's ``meta`` map and description."""
    config = site.site_config
    meta: dict[str, Any] = dict(config.meta)
    if config.description:
        meta["description"] = config.description
    if page is not None:
        page_meta = page.metadata.get("meta")
        if isinstance(page_meta, dict):
            meta.update({str(k): v for k, v in page_meta.items()})
        description = page.metadata.get("description")
        if isinstance(description, str) and description.strip():
            meta["description"] = description.strip()
    return meta


def _format_error_message(exc: Exception) -> str:
    """Format an exception raised while rendering into a readable message."""
    if isinstance(exc, TemplateNotFound):
        return f"Template not found: {exc.name}"
    if isinstance(exc, TemplateSyntaxError):
        return f"Template syntax error on line {exc.lineno}: {exc.message}"
    error_type = type(exc).__name__
    if error_type == "UndefinedError":
        return f"Undefined variable: {exc}"
    return f"{error_type}: {exc}"


class SiteBuilder:
    """Binds routes to templates and renders them.

    Attributes:
        config: Build configuration.
        content_processor: Discovers content and builds page entities.
        graph_builder: Assembles the site graph.
        templates: Template collaborator.
        feeds: Files written from the graph after every route.
    """

    def __init__(
        self,
        config: BuildConfig,
        content_processor: ContentProcessor | None = None,
        graph_builder: SiteGraphBuilder | None = None,
        templates: TemplateEngine | None = None,
        feeds: list[FeedGenerator] | None = None,
    ):
        self.config = config
        self.content_processor = content_processor or ContentProcessor(config)
        self.graph_builder = graph_builder or SiteGraphBuilder(config)
        self.templates = templates or TemplateEngine(config.template_dir)
        self.feeds = default_feeds() if feeds is None else feeds

    def load_graph(self) -> SiteGraph:
        """Discover content and build a fresh site graph.

        Raises:
            DiscoveryError: On unreadable paths.
            ContentParseError: On malformed front matter or duplicate slugs.
        """
        pages, assets = self.content_processor.load(self.config.include_drafts)
        return self.graph_builder.build(pages, assets, self.config.include_drafts)

    def route_table(self, graph: SiteGraph) -> RouteTable:
        return RouteTable.from_graph(graph, self.config)

    def select_template(self, route: Route) -> str:
        """Pick the template for a route.

        Order: the page's ``template`` key, the listing template, a template
        named after the page ``type``, then the default page template.
        """
        page = route.page
        if page is not None and page.template:
            return page.template
        if route.listing is not None and route.listing.template:
            return route.listing.template
        if page is not None and page.type and self.templates.has_template(page.type):
            return page.type
        return self.config.page_template

    def bind_pager(self, site_url, route: Route) -> Pager | None:
        if route.listing is None or route.collection is None:
            return None
        return paginate(
            route.collection,
            route.page_number,
            route.listing.per_page,
            site_url(route.base_url or route.url_path),
            self.config.pagination_pattern,
        )

    def build_context(self, graph: SiteGraph, route: Route) -> dict[str, Any]:
        """Bind the render context for a route."""
        site = SiteContext(graph, route.page, self.config, current_url=route.url_path)
        pager = self.bind_pager(site.url, route)
        if pager is not None:
            site = SiteContext(graph, route.page, self.config, pager=pager, current_url=route.url_path)
        page = route.page
        if page is not None:
            title = page.title
        else:
            section = graph.section(route.listing.section) if route.listing else None
            title = section.label if section is not None else (self.config.site.title or "")
        return {
            "site": site,
            "page": page,
            "content": page.content if page is not None else Markup(""),
            "title": title,
            "url": site.url(route.url_path),
            "meta": resolve_meta(site, page),
            "config": self.config.site,
            "pager": pager,
            "version": self.config.version,
            "url_for": site.url,
        }

    def render_route(self, graph: SiteGraph, route: Route) -> str:
        """Render one route.

        Raises:
            RenderError: When the template cannot be resolved or rendered.
        """
        try:
            template = self.select_template(route)
            context = self.build_context(graph, route)
            return self.templates.render(template, context)
        except RenderError:
            raise
        except Exception as exc:
            raise RenderError(
                route.url_path,
                _format_error_message(exc),
                source_path=route.source_path,
                original_error=exc,
            ) from exc

    def render_page(self, graph: SiteGraph, page: ContentPage) -> str:
        route = self.route_table(graph).resolve(page.url_path) or Route(page.url_path, page)
        return self.render_route(graph, route)

    def strip_base_path(self, request_path: str) -> str:
        path = request_path.split("?", 1)[0] or "/"
        base_path = self.config.site.base_path
        if base_path and (path == base_path or path.startswith(f"{base_path}/")):
            path = path[len(base_path) :] or "/"
        return path

    def match_request(self, request_path: str) -> tuple[SiteGraph, Route | None]:
        """Rebuild the graph from disk and resolve a live request path."""
        graph = self.load_graph()
        route = self.route_table(graph).resolve(self.strip_base_path(request_path))
        return graph, route

    def render_request(self, request_path: str) -> str:
        """Render the route for a live request.

        Raises:
            RouteNotFoundError: When nothing is published at the path.
            RenderError: When rendering fails.
        """
        graph, route = self.match_request(request_path)
        if route is None:
            raise RouteNotFoundError(request_path)
        return self.render_route(graph, route)

    def build(self, clean: bool = True) -> BuildResult:
        """Render and write every route.

        Construction errors propagate; render errors are collected per route
        and never stop unrelated routes from being written.

        Args:
            clean: Whether to empty the output directory first.

        Returns:
            BuildResult with written files and per-route failures.
        """
        graph = self.load_graph()
        table = self.route_table(graph)
        output_dir = self.config.output_dir
        if clean:
            ensure_clean_dir(output_dir)
        else:
            output_dir.mkdir(parents=True, exist_ok=True)

        result = BuildResult(pages=list(graph.pages), output_dir=output_dir)
        routes = list(table)
        with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
            futures = [
                executor.submit(self._render_and_write, graph, route, output_dir)
                for route in routes
            ]
            for route, future in zip(routes, futures):
                try:
                    result.written.append(future.result())
                except RenderError as exc:
                    logger.error("Failed to render %s: %s", route.url_path, exc.message)
                    result.failures.append(exc)

        self.publish_content_assets(graph, output_dir)
        self.publish_static(output_dir)
        for feed in self.feeds:
            feed.write(output_dir, graph, self.config)
        logger.info(
            "Wrote %d of %d routes to %s", len(result.written), len(routes), output_dir
        )
        return result

    def _render_and_write(self, graph: SiteGraph, route: Route, output_dir: Path) -> Path:
        html = self.render_route(graph, route)
        target = output_dir / route.output_path
        write_atomic(target, html)
        logger.debug("Wrote %s", target)
        return target

    def publish_content_assets(self, graph: SiteGraph, output_dir: Path) -> None:
        for asset in graph.assets():
            target = output_dir / path_key(asset.relative_path)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(asset.source_path, target)

    def publish_static(self, output_dir: Path) -> None:
        static_dir = self.config.static_dir
        if static_dir.is_dir():
            shutil.copytree(static_dir, output_dir, dirs_exist_ok=True)


def build_site(
    project_root: Path,
    include_drafts: bool = False,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
) -> BuildResult:
    """Build the site at ``project_root``.

    Args:
        project_root: Root directory of the project.
        include_drafts: Whether to publish draft pages.
        clean_output: Whether to wipe the output directory before building.
        output_dir_override: Optional output directory.

    Returns:
        BuildResult for the run.
    """
    overrides: dict[str, Any] = {"include_drafts": include_drafts}
    if output_dir_override is not None:
        overrides["output_dir"] = str(output_dir_override)
    config = load_config(project_root, overrides=overrides)
    return SiteBuilder(config).build(clean=clean_output)
