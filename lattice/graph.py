"""Site graph construction for Lattice.

The site graph is the immutable aggregate every render queries: a section
tree derived from the directory layout, taxonomy indexes, lookups by slug and
URL, reading-order navigation, and ownership of co-located assets.

Key classes:
- Section: A directory-derived grouping of pages, possibly nested.
- SiteGraph: The root aggregate.
- SiteGraphBuilder: Assembles a SiteGraph from pages and assets.

The graph is built in a single pass and never mutated afterwards, so any
number of render threads may read it concurrently.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from typing import Any

from .collections import AssetCollection, PageCollection, TaxonomyCollection, sort_pages
from .config import BuildConfig
from .content import ContentAsset, ContentPage
from .errors import ContentParseError
from .utils import lookup_key, normalize_url_path, parent_key, path_key, titleize

logger = logging.getLogger(__name__)


def _weight_key(weight: int | float | None) -> tuple:
    return (weight is None, weight if weight is not None else 0)


def _under(relative_path: str, directory: str) -> bool:
    if not directory:
        return True
    return relative_path.startswith(f"{directory}/")


class Section:
    """A directory-derived grouping of pages.

    Attributes:
        path: Directory path relative to the content root (case preserved).
        key: Case-folded lookup key.
        depth: Nesting depth; the root section has depth 0.
        label: Index page title, else the humanized directory name.
        weight: Index page weight, else the smallest page weight.
        index: The section's index page, if any.
        pages: Direct pages in site order, index page included.
        children: Child sections ordered by weight, then path.
    """

    def __init__(
        self,
        path: str,
        label: str,
        pages: Sequence[ContentPage] = (),
        children: Sequence[Section] = (),
        index: ContentPage | None = None,
        weight: int | float | None = None,
        assets: Sequence[ContentAsset] = (),
    ):
        self.path = path
        self.key = lookup_key(path)
        self.depth = len(self.key.split("/")) if self.key else 0
        self.label = label
        self.index = index
        self.weight = weight
        self.pages = PageCollection(pages)
        self.children: tuple[Section, ...] = tuple(children)
        self._site_assets = tuple(assets)

    @property
    def is_root(self) -> bool:
        return self.key == ""

    def __iter__(self) -> Iterator[ContentPage]:
        return iter(self.pages)

    def __len__(self) -> int:
        return len(self.pages)

    def count(self) -> int:
        return len(self.pages)

    def is_empty(self) -> bool:
        return not self.pages and not self.children

    def has_children(self) -> bool:
        return bool(self.children)

    def child(self, name: str) -> Section | None:
        """Return a direct or nested child by name (``guides`` or ``guides/api``)."""
        wanted = lookup_key(name)
        if not wanted:
            return None
        target = f"{self.key}/{wanted}" if self.key else wanted
        for section in self.flatten():
            if section.key == target:
                return section
        return None

    def flatten(self) -> list[Section]:
        """All descendant sections, depth-first, excluding this one."""
        result: list[Section] = []
        for child in self.children:
            result.append(child)
            result.extend(child.flatten())
        return result

    def all_pages(self) -> PageCollection:
        """Own pages followed by every descendant's pages, depth-first."""
        pages = list(self.pages)
        for child in self.children:
            pages.extend(child.all_pages())
        return PageCollection(pages)

    def assets(self, subdir: str | None = None) -> AssetCollection:
        """Files directly inside the section directory (or ``subdir`` of it)."""
        directory = self._directory(subdir)
        return AssetCollection(
            a for a in self._site_assets if parent_key(a.relative_path) == directory
        )

    def all_assets(self, subdir: str | None = None) -> AssetCollection:
        """Every file below the section directory (or ``subdir`` of it)."""
        directory = self._directory(subdir)
        return AssetCollection(a for a in self._site_assets if _under(a.relative_path, directory))

    def _directory(self, subdir: str | None) -> str:
        if not subdir:
            return self.path
        extra = path_key(subdir)
        return f"{self.path}/{extra}" if self.path else extra

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Section({self.path!r}, {len(self.pages)} pages, {len(self.children)} children)"


class SiteGraph:
    """Immutable aggregate of pages, sections, taxonomies and assets."""

    def __init__(
        self,
        root: Section,
        pages: Sequence[ContentPage],
        taxonomies: dict[str, TaxonomyCollection],
        assets: Sequence[ContentAsset],
        asset_owners: dict[str, str],
        include_drafts: bool = False,
    ):
        self.root = root
        self.include_drafts = include_drafts
        self._pages = PageCollection(sort_pages(pages))
        self._taxonomies = taxonomies
        self._assets = AssetCollection(assets)
        self._asset_owners = asset_owners
        self._by_slug = {lookup_key(p.slug): p for p in pages}
        self._by_url = {normalize_url_path(p.url_path): p for p in pages}
        self._sections = {root.key: root}
        for section in root.flatten():
            self._sections[section.key] = section
        self._reading_order = self._build_reading_order()
        self._positions = {id(p): i for i, p in enumerate(self._reading_order)}

    @property
    def pages(self) -> PageCollection:
        """Every page in site order."""
        return self._pages

    def root_pages(self) -> PageCollection:
        return self.root.pages

    def sections(self) -> tuple[Section, ...]:
        """Top-level sections."""
        return self.root.children

    def all_sections(self) -> list[Section]:
        return self.root.flatten()

    def section(self, name: str) -> Section | None:
        """Look up a section by path; ``''`` and ``/`` return the root."""
        return self._sections.get(lookup_key(name))

    def section_of(self, page: ContentPage) -> Section:
        return self._sections.get(lookup_key(page.section_key), self.root)

    def is_section_index(self, page: ContentPage) -> bool:
        return page.is_index and bool(page.section_key)

    def regular_pages(self) -> PageCollection:
        """Every page except section index pages, in site order."""
        return self._pages.filter(lambda p: not self.is_section_index(p))

    def find_by_slug(self, slug: str) -> ContentPage | None:
        return self._by_slug.get(lookup_key(slug))

    def find_by_url(self, url_path: str) -> ContentPage | None:
        return self._by_url.get(normalize_url_path(url_path))

    def taxonomy(self, name: str) -> TaxonomyCollection:
        """Return a taxonomy; unknown names yield an empty collection."""
        found = self._taxonomies.get(name.strip())
        return found if found is not None else TaxonomyCollection(name.strip())

    def taxonomy_names(self) -> list[str]:
        return list(self._taxonomies)

    def _build_reading_order(self) -> list[ContentPage]:
        blocks: list[tuple[Any, list[ContentPage]]] = []
        for section in self.root.children:
            blocks.append((section.weight, list(section.all_pages())))
        for page in self.root.pages:
            blocks.append((page.weight, [page]))
        blocks.sort(key=lambda block: _weight_key(block[0]))
        return [page for _, pages in blocks for page in pages]

    def reading_order(self) -> PageCollection:
        return PageCollection(self._reading_order)

    def _adjacent(self, pages: Sequence[ContentPage], page: ContentPage, offset: int):
        for position, candidate in enumerate(pages):
            if candidate is page or candidate.slug == page.slug:
                target = position + offset
                if 0 <= target < len(pages):
                    return pages[target]
                return None
        return None

    def previous(self, page: ContentPage) -> ContentPage | None:
        position = self._positions.get(id(page))
        if position is None:
            return self._adjacent(self._reading_order, page, -1)
        return self._reading_order[position - 1] if position > 0 else None

    def next(self, page: ContentPage) -> ContentPage | None:
        position = self._positions.get(id(page))
        if position is None:
            return self._adjacent(self._reading_order, page, 1)
        target = position + 1
        return self._reading_order[target] if target < len(self._reading_order) else None

    def previous_in_section(self, page: ContentPage) -> ContentPage | None:
        return self._adjacent(self.section_of(page).pages, page, -1)

    def next_in_section(self, page: ContentPage) -> ContentPage | None:
        return self._adjacent(self.section_of(page).pages, page, 1)

    def assets(self, root: str | None = None) -> AssetCollection:
        """All content assets, or those below ``root``."""
        if not root or not path_key(root):
            return self._assets
        directory = path_key(root)
        return self._assets.filter(lambda a: _under(a.relative_path, directory))

    def page_assets(self, page: ContentPage, subdir: str | None = None) -> AssetCollection:
        """Assets owned by a page's bundle, optionally below ``subdir``."""
        owner = f"page:{lookup_key(page.slug)}"
        owned = self._assets.filter(lambda a: self._asset_owners.get(a.relative_path) == owner)
        if not subdir or not path_key(subdir):
            return owned
        directory = path_key(f"{page.bundle_key}/{subdir}")
        return owned.filter(lambda a: _under(a.relative_path, directory))

    def asset_owner(self, asset: ContentAsset) -> str | None:
        return self._asset_owners.get(asset.relative_path)

    def find_asset(self, relative_path: str) -> ContentAsset | None:
        key = path_key(relative_path)
        for asset in self._assets:
            if asset.relative_path == key:
                return asset
        return None


class SiteGraphBuilder:
    """Assembles a SiteGraph from pages and assets.

    Attributes:
        config: Build configuration (taxonomy keys, draft visibility).
    """

    def __init__(self, config: BuildConfig):
        self.config = config

    def build(
        self,
        pages: Iterable[ContentPage],
        assets: Iterable[ContentAsset] = (),
        include_drafts: bool | None = None,
    ) -> SiteGraph:
        """Build the graph.

        Args:
            pages: Pages from the page builder.
            assets: Assets from the page builder.
            include_drafts: Override for ``config.include_drafts``.

        Returns:
            Immutable SiteGraph.

        Raises:
            ContentParseError: When two pages resolve to the same slug.
        """
        drafts = self.config.include_drafts if include_drafts is None else include_drafts
        listed = [p for p in pages if drafts or not p.draft]
        self._check_unique_slugs(listed)
        asset_list = sorted(assets, key=lambda a: a.relative_path)

        by_dir: dict[str, list[ContentPage]] = {}
        dir_names: dict[str, str] = {}
        for page in listed:
            key = lookup_key(page.section_key)
            by_dir.setdefault(key, []).append(page)
            dir_names.setdefault(key, page.section_key)
            # Intermediate directories without pages still become sections.
            parent = parent_key(page.section_key)
            while parent:
                dir_names.setdefault(lookup_key(parent), parent)
                parent = parent_key(parent)

        root = self._build_section("", dir_names, by_dir, asset_list)
        graph = SiteGraph(
            root=root,
            pages=listed,
            taxonomies=self._build_taxonomies(listed),
            assets=asset_list,
            asset_owners=self._assign_assets(listed, asset_list, dir_names),
            include_drafts=drafts,
        )
        logger.debug(
            "Built site graph: %d pages, %d sections, %d assets",
            len(listed),
            len(root.flatten()),
            len(asset_list),
        )
        return graph

    def _check_unique_slugs(self, pages: list[ContentPage]) -> None:
        seen: dict[str, ContentPage] = {}
        for page in pages:
            key = lookup_key(page.slug)
            if key in seen:
                raise ContentParseError(
                    page.source_path,
                    f"duplicate slug '{page.slug}' (also used by {seen[key].relative_path})",
                )
            seen[key] = page

    def _build_section(
        self,
        path: str,
        dir_names: dict[str, str],
        by_dir: dict[str, list[ContentPage]],
        assets: list[ContentAsset],
    ) -> Section:
        key = lookup_key(path)
        child_keys = sorted(k for k in dir_names if k and parent_key(k) == key)
        children = [self._build_section(dir_names[k], dir_names, by_dir, assets) for k in child_keys]
        children.sort(key=lambda s: (_weight_key(s.weight), s.key))

        pages = sort_pages(by_dir.get(key, []))
        index = next((p for p in pages if p.is_index), None)
        weight = index.weight if index is not None and index.weight is not None else None
        if weight is None:
            weights = [p.weight for p in pages if p.weight is not None]
            weights.extend(c.weight for c in children if c.weight is not None)
            weight = min(weights) if weights else None

        if index is not None:
            label = index.title
        elif path:
            label = titleize(path.rpartition("/")[2])
        else:
            label = "Home"
        return Section(
            path=path,
            label=label,
            pages=pages,
            children=children,
            index=index,
            weight=weight,
            assets=assets,
        )

    def _build_taxonomies(self, pages: list[ContentPage]) -> dict[str, TaxonomyCollection]:
        taxonomies: dict[str, TaxonomyCollection] = {}
        for name in self.config.taxonomies:
            terms: dict[str, list[ContentPage]] = {}
            for page in pages:
                for term in page.terms(name):
                    terms.setdefault(term, []).append(page)
            taxonomies[name] = TaxonomyCollection(
                name, {term: sort_pages(members) for term, members in terms.items()}
            )
        return taxonomies

    def _assign_assets(
        self,
        pages: list[ContentPage],
        assets: list[ContentAsset],
        dir_names: dict[str, str],
    ) -> dict[str, str]:
        """Map each asset to the nearest page bundle or section above it.

        Walking up from the asset's directory, the first directory that is a
        leaf page bundle (``blog/post-a/`` for ``blog/post-a.md``) or holds an
        index page claims the asset for that page; otherwise the first
        directory that is a section claims it for the section.
        """
        bundles: dict[str, str] = {}
        for page in pages:
            bundles.setdefault(lookup_key(page.bundle_key), f"page:{lookup_key(page.slug)}")
        owners: dict[str, str] = {}
        for asset in assets:
            directory = parent_key(asset.relative_path)
            while True:
                key = lookup_key(directory)
                if key in bundles:
                    owners[asset.relative_path] = bundles[key]
                    break
                if key in dir_names or not key:
                    owners[asset.relative_path] = f"section:{key}"
                    break
                directory = parent_key(directory)
        return owners
