"""Feed files written next to the rendered site.

Key classes:
- FeedGenerator: Base class for files generated from the site graph.
- SitemapGenerator: Writes ``sitemap.xml`` when the site has a base URL.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from .config import BuildConfig
from .context import SiteContext
from .graph import SiteGraph
from .html_utils import escape_html
from .utils import write_atomic

logger = logging.getLogger(__name__)

SITEMAP_NAMESPACE = "http://www.sitemaps.org/schemas/sitemap/0.9"


class FeedGenerator(ABC):
    """Generates one file from the site graph."""

    @property
    @abstractmethod
    def filename(self) -> str: ...

    @abstractmethod
    def generate(self, graph: SiteGraph, config: BuildConfig) -> str | None:
        """Return the file content, or None when the feed should be skipped."""

    def write(self, output_dir: Path, graph: SiteGraph, config: BuildConfig) -> Path | None:
        """Generate and write the feed.

        Returns:
            The written path, or None when skipped.
        """
        text = self.generate(graph, config)
        if text is None:
            logger.debug("Skipping %s", self.filename)
            return None
        target = output_dir / self.filename
        write_atomic(target, text)
        logger.info("Wrote %s", target)
        return target


class SitemapGenerator(FeedGenerator):
    """Lists every published page with its absolute URL.

    Requires ``site.base_url``; drafts are left out even when they are
    rendered, and ``lastmod`` is only written for dated pages.
    """

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, graph: SiteGraph, config: BuildConfig) -> str | None:
        if not config.site.base_url:
            return None
        site = SiteContext(graph, None, config)
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            f'<urlset xmlns="{SITEMAP_NAMESPACE}">',
        ]
        for page in graph.pages:
            if page.draft:
                continue
            loc = escape_html(site.url(page.url_path, absolute=True))
            if page.date is not None:
                lastmod = page.date.strftime("%Y-%m-%d")
                lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
            else:
                lines.append(f"  <url><loc>{loc}</loc></url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


def default_feeds() -> list[FeedGenerator]:
    return [SitemapGenerator()]
