"""Content discovery and page construction for Lattice.

This module walks the content root, splits every document into front matter
and body, and builds the immutable page and asset entities the site graph is
assembled from. Markup conversion is deferred: a page renders its body the
first time ``content`` or ``toc`` is read.

Key classes:
- Heading: One table-of-contents entry.
- ContentPage: Immutable page entity.
- ContentAsset: Immutable, stat-only asset entity.
- FileContentLoader: Implementation of the ContentLoader protocol.
- DefaultPageBuilder: Implementation of the PageBuilder protocol.
- ContentProcessor: Facade running discovery and page construction.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any

from markupsafe import Markup

from .config import BuildConfig
from .errors import DiscoveryError
from .extractors import CompositeMetadataExtractor, split_front_matter
from .renderers import RendererRegistry, default_renderer_registry
from .utils import (
    dotted_get,
    extension_of,
    has_dotted,
    is_ignored,
    parent_key,
    path_key,
    slugify,
    slugify_path,
    strip_extension,
    titleize,
)

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ("png", "jpg", "jpeg", "gif", "webp", "svg", "avif")


@dataclass(frozen=True)
class Heading:
    """A heading extracted from a rendered body.

    Attributes:
        level: Heading level (1-6).
        id: Anchor ID for the heading.
        text: Plain heading text.
    """

    level: int
    id: str
    text: str


@dataclass(frozen=True)
class DocumentRecord:
    """Raw document produced by discovery."""

    path: Path
    relative_path: str
    raw_front_matter: str | None
    raw_body: str


@dataclass(frozen=True)
class AssetRecord:
    """Raw asset produced by discovery; no bytes are read."""

    path: Path
    relative_path: str


@dataclass(frozen=True)
class Discovery:
    """Documents and assets under a content root, sorted by relative path."""

    documents: tuple[DocumentRecord, ...]
    assets: tuple[AssetRecord, ...]


@dataclass(frozen=True, eq=False)
class ContentPage:
    """An authored document.

    Attributes:
        source_path: Path to the source file.
        relative_path: Source path relative to the content root.
        slug: Unique, path-derived identifier (``blog/post-a``).
        url_path: Public path without base path (``/blog/post-a/``).
        output_path: File written by the batch build.
        title: Human-readable title.
        body: Raw body without front matter.
        metadata: Read-only decoded front matter.
        taxonomies: Taxonomy name to terms declared by the page.
        date: Publication date, if any.
        weight: Ordering weight, if any.
        draft: Whether the page is a draft.
        type: Optional page type, used for template selection.
        template: Optional explicit template name.
        section_key: Key of the owning section (``''`` for root pages).
        is_index: Whether the file is a directory index.
        bundle_key: Directory whose assets belong to this page.
    """

    source_path: Path
    relative_path: str
    slug: str
    url_path: str
    output_path: str
    title: str
    body: str
    metadata: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    taxonomies: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    date: datetime | None = None
    weight: int | float | None = None
    draft: bool = False
    type: str | None = None
    template: str | None = None
    section_key: str = ""
    is_index: bool = False
    bundle_key: str = ""
    renderer: Callable[[Path, str], tuple[str, list]] | None = field(
        default=None, repr=False
    )

    def __post_init__(self):
        object.__setattr__(self, "_render_lock", threading.Lock())

    def _rendered(self) -> tuple[Markup, tuple[Heading, ...]]:
        cached = self.__dict__.get("_render_cache")
        if cached is not None:
            return cached
        with self._render_lock:
            cached = self.__dict__.get("_render_cache")
            if cached is None:
                if self.renderer is None:
                    html, headings = self.body, []
                else:
                    html, headings = self.renderer(self.source_path, self.body)
                cached = (Markup(html), tuple(headings))
                object.__setattr__(self, "_render_cache", cached)
        return cached

    @property
    def content(self) -> Markup:
        """Rendered HTML fragment."""
        return self._rendered()[0]

    @property
    def toc(self) -> tuple[Heading, ...]:
        return self._rendered()[1]

    @property
    def navigation_title(self) -> str:
        value = self.metadata.get("navigationTitle") or self.metadata.get("navigation_title")
        return value.strip() if isinstance(value, str) and value.strip() else self.title

    def meta(self, path: str, default: Any = None) -> Any:
        """Read a dotted metadata path, returning ``default`` when absent."""
        return dotted_get(self.metadata, path, default)

    def has_meta(self, path: str) -> bool:
        return has_dotted(self.metadata, path)

    def terms(self, taxonomy: str) -> tuple[str, ...]:
        return self.taxonomies.get(taxonomy, ())

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"ContentPage({self.slug!r})"


@dataclass(frozen=True)
class ContentAsset:
    """A non-document file under the content root.

    Attributes:
        relative_path: Path relative to the content root.
        url_path: Public path without base path.
        source_path: Absolute path on disk.
        filename: File name.
        extension: Lowercased extension without dot.
        size: Size in bytes at discovery time.
    """

    relative_path: str
    url_path: str
    source_path: Path
    filename: str
    extension: str
    size: int

    def is_type(self, *extensions: str) -> bool:
        wanted = {ext.lower().lstrip(".") for ext in extensions}
        return self.extension in wanted

    def is_image(self) -> bool:
        return self.extension in IMAGE_EXTENSIONS

    def read_bytes(self) -> bytes:
        return self.source_path.read_bytes()


class FileContentLoader:
    """Discovers documents and assets under the content root.

    Attributes:
        config: Build configuration (content root, extensions, ignores).
    """

    def __init__(self, config: BuildConfig):
        self.config = config
        self.content_dir = config.content_dir

    def discover(self, include_drafts: bool = False) -> Discovery:
        """Walk the content root.

        Draft filtering needs typed metadata, so it happens in the page
        builder; ``include_drafts`` is accepted for protocol symmetry.

        Args:
            include_drafts: Whether draft documents will be published.

        Returns:
            Discovery with both lists sorted by relative path.

        Raises:
            DiscoveryError: When the root is missing or a file is unreadable.
        """
        if not self.content_dir.is_dir():
            raise DiscoveryError(self.content_dir, "content directory does not exist")

        entries: list[tuple[str, Path]] = []
        for path in self.content_dir.rglob("*"):
            if path.is_dir():
                continue
            rel = path.relative_to(self.content_dir).as_posix()
            if is_ignored(rel, self.config.ignore):
                continue
            entries.append((rel, path))
        entries.sort(key=lambda item: item[0])

        documents: list[DocumentRecord] = []
        assets: list[AssetRecord] = []
        for rel, path in entries:
            if self.config.is_content_file(path):
                documents.append(self._read_document(path, rel))
            else:
                assets.append(AssetRecord(path=path, relative_path=rel))
        logger.debug(
            "Discovered %d documents and %d assets in %s",
            len(documents),
            len(assets),
            self.content_dir,
        )
        return Discovery(documents=tuple(documents), assets=tuple(assets))

    def _read_document(self, path: Path, rel: str) -> DocumentRecord:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise DiscoveryError(path, f"unable to read content file: {exc}") from exc
        raw_front_matter, body = split_front_matter(text)
        return DocumentRecord(
            path=path,
            relative_path=rel,
            raw_front_matter=raw_front_matter,
            raw_body=body,
        )


class DefaultPageBuilder:
    """Builds ContentPage and ContentAsset entities from raw records.

    Attributes:
        config: Build configuration.
        renderer_registry: Markup renderers used for lazy body rendering.
        metadata_extractor: Composite front-matter extractor.
    """

    def __init__(
        self,
        config: BuildConfig,
        renderer_registry: RendererRegistry | None = None,
        metadata_extractor: CompositeMetadataExtractor | None = None,
    ):
        self.config = config
        self.renderer_registry = renderer_registry or default_renderer_registry
        self.metadata_extractor = metadata_extractor or CompositeMetadataExtractor(
            taxonomies=config.taxonomies
        )

    def build(self, record: DocumentRecord) -> ContentPage:
        """Build a page from a document record.

        Raises:
            ContentParseError: When the front matter cannot be decoded.
        """
        fields = self.metadata_extractor.extract(
            record.raw_front_matter, record.raw_body, record.path
        )
        metadata = fields.get("metadata", {})
        rel = path_key(record.relative_path)
        stem_key = strip_extension(rel)
        is_index = stem_key.rpartition("/")[2].lower() == "index"
        slug = self.slug_for(rel, metadata)
        section_key = parent_key(rel)

        return ContentPage(
            source_path=record.path,
            relative_path=rel,
            slug=slug,
            url_path=self.url_for_slug(slug),
            output_path=self.output_for_slug(slug),
            title=fields.get("title") or self.title_for_slug(slug),
            body=record.raw_body,
            metadata=MappingProxyType(dict(metadata)),
            taxonomies=MappingProxyType(dict(fields.get("taxonomies", {}))),
            date=fields.get("date"),
            weight=fields.get("weight"),
            draft=bool(fields.get("draft", False)),
            type=fields.get("type"),
            template=fields.get("template"),
            section_key=section_key,
            is_index=is_index,
            bundle_key=section_key if is_index else stem_key,
            renderer=self.renderer_registry.render,
        )

    def build_asset(self, record: AssetRecord) -> ContentAsset:
        """Build an asset from stat data only."""
        try:
            size = record.path.stat().st_size
        except OSError as exc:
            raise DiscoveryError(record.path, f"unable to stat asset: {exc}") from exc
        rel = path_key(record.relative_path)
        return ContentAsset(
            relative_path=rel,
            url_path=f"/{rel}",
            source_path=record.path,
            filename=record.path.name,
            extension=extension_of(rel),
            size=size,
        )

    @staticmethod
    def slug_for(relative_path: str, metadata: Mapping[str, Any]) -> str:
        """Derive the slug, honouring a front-matter ``slug`` override.

        ``section/index.md`` collapses to ``section``; the root index keeps
        the slug ``index``.
        """
        override = metadata.get("slug")
        if isinstance(override, str) and path_key(override.strip()):
            return slugify_path(override.strip())
        segments = [s for s in strip_extension(path_key(relative_path)).split("/") if s]
        if len(segments) > 1 and segments[-1].lower() == "index":
            segments.pop()
        return "/".join(slugify(segment) for segment in segments) or "index"

    @staticmethod
    def url_for_slug(slug: str) -> str:
        return "/" if slug == "index" else f"/{slug}/"

    @staticmethod
    def output_for_slug(slug: str) -> str:
        return "index.html" if slug == "index" else f"{slug}/index.html"

    @staticmethod
    def title_for_slug(slug: str) -> str:
        if slug == "index":
            return "Home"
        return titleize(slug.rpartition("/")[2])


class ContentProcessor:
    """Facade running discovery and page construction.

    Attributes:
        config: Build configuration.
    """

    def __init__(
        self,
        config: BuildConfig,
        content_loader: FileContentLoader | None = None,
        page_builder: DefaultPageBuilder | None = None,
    ):
        self.config = config
        self._content_loader = content_loader or FileContentLoader(config)
        self._page_builder = page_builder or DefaultPageBuilder(config)

    def load(self, include_drafts: bool = False) -> tuple[list[ContentPage], list[ContentAsset]]:
        """Discover content and build entities.

        Args:
            include_drafts: Whether draft pages are kept.

        Returns:
            Tuple of (pages, assets), both in discovery order.

        Raises:
            DiscoveryError: On unreadable paths.
            ContentParseError: On malformed front matter.
        """
        discovery = self._content_loader.discover(include_drafts)
        pages: list[ContentPage] = []
        for record in discovery.documents:
            page = self._page_builder.build(record)
            if page.draft and not include_drafts:
                logger.debug("Skipping draft %s", page.relative_path)
                continue
            pages.append(page)
        assets = [self._page_builder.build_asset(record) for record in discovery.assets]
        return pages, assets
