"""Project configuration for Lattice.

Configuration lives in ``lattice.yaml`` at the project root and is merged over
``DEFAULT_CONFIG``. A few environment variables are read once at start-up and
override the file. The resulting ``BuildConfig`` is immutable and is passed
explicitly to every component that needs it.

Key classes:
- SiteConfig: Site-wide values exposed to templates.
- ListingConfig: A paginated listing over one section.
- BuildConfig: Resolved directories and build options.

Key functions:
- load_config: Read ``lattice.yaml`` plus environment overrides.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from . import __version__
from .errors import ConfigError
from .utils import dotted_get, has_dotted, path_key

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "lattice.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "content_dir": "content",
    "template_dir": "templates",
    "static_dir": "static",
    "output_dir": "public",
    "cache_dir": ".cache",
    "page_template": "page",
    "content_extensions": ["md", "dj", "html"],
    "ignore": [".*", "_*"],
    "taxonomies": ["tags"],
    "pagination_pattern": "page/{number}/",
    "workers": 4,
    "port": 4000,
    "ws_port": None,
    "listings": [],
    "images": {},
    "site": {},
}

_TRUTHY = {"1", "true", "yes", "on"}
_RESERVED_SITE_KEYS = {"title", "description", "base_url", "base_path", "meta"}


def normalize_base_path(value: Any) -> str | None:
    """Normalize a base path to ``/prefix`` form.

    Returns None for blank, root-only or non-string input.
    """
    if not isinstance(value, str):
        return None
    key = path_key(value.strip())
    return f"/{key}" if key else None


@dataclass(frozen=True)
class SiteConfig:
    """Site-wide values made available to templates.

    Attributes:
        title: Site title.
        description: Default description for pages without one.
        base_url: Canonical origin used for absolute URLs.
        base_path: Optional prefix (``/docs``) the site is published under.
        meta: Free-form site metadata; unknown top-level keys land here too.
    """

    title: str | None = None
    description: str | None = None
    base_url: str | None = None
    base_path: str | None = None
    meta: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, value: Any) -> SiteConfig:
        if value is None:
            return cls()
        if not isinstance(value, dict):
            raise ConfigError("'site' must be a mapping")

        def text(key: str) -> str | None:
            item = value.get(key)
            return item.strip() or None if isinstance(item, str) else None

        meta = {
            str(k): v
            for k, v in value.items()
            if str(k) and k not in _RESERVED_SITE_KEYS
        }
        extra = value.get("meta") or {}
        if not isinstance(extra, dict):
            raise ConfigError("'site.meta' must be a mapping")
        meta.update({str(k): v for k, v in extra.items()})
        return cls(
            title=text("title"),
            description=text("description"),
            base_url=text("base_url"),
            base_path=normalize_base_path(value.get("base_path")),
            meta=MappingProxyType(meta),
        )

    def site_meta(self, path: str, default: Any = None) -> Any:
        return dotted_get(self.meta, path, default)

    def has_site_meta(self, path: str) -> bool:
        return has_dotted(self.meta, path)


@dataclass(frozen=True)
class ListingConfig:
    """A paginated listing over the pages of one section.

    Attributes:
        section: Section key (``blog``).
        per_page: Number of pages per listing page.
        template: Optional template name used for synthetic listing pages.
    """

    section: str
    per_page: int = 10
    template: str | None = None


@dataclass(frozen=True)
class BuildConfig:
    """Resolved build configuration.

    Attributes:
        project_root: Directory holding ``lattice.yaml``.
        content_dir: Root scanned for content documents and assets.
        template_dir: Jinja2 template directory.
        static_dir: Files copied verbatim into the output.
        output_dir: Build destination.
        cache_dir: Cache for transformed images.
        page_template: Default template name.
        content_extensions: Extensions (without dot) treated as documents.
        ignore: Glob patterns excluding path segments from discovery.
        taxonomies: Metadata keys that form taxonomies.
        pagination_pattern: Suffix for listing pages, with ``{number}``.
        listings: Paginated listings to publish.
        image_presets: Named image transform parameter sets.
        include_drafts: Whether draft pages are published.
        workers: Size of the batch render pool.
        port: Dev server HTTP port.
        ws_port: Dev server live-reload websocket port.
        site: Site-wide template values.
        version: Lattice version, computed once at start-up.
    """

    project_root: Path
    content_dir: Path
    template_dir: Path
    static_dir: Path
    output_dir: Path
    cache_dir: Path
    page_template: str = "page"
    content_extensions: tuple[str, ...] = ("md", "dj", "html")
    ignore: tuple[str, ...] = (".*", "_*")
    taxonomies: tuple[str, ...] = ("tags",)
    pagination_pattern: str = "page/{number}/"
    listings: tuple[ListingConfig, ...] = ()
    image_presets: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    include_drafts: bool = False
    workers: int = 4
    port: int = 4000
    ws_port: int | None = None
    site: SiteConfig = field(default_factory=SiteConfig)
    version: str = __version__

    @classmethod
    def for_root(cls, project_root: Path, **overrides: Any) -> BuildConfig:
        """Build a config with default directories under ``project_root``."""
        base = cls(
            project_root=project_root,
            content_dir=project_root / DEFAULT_CONFIG["content_dir"],
            template_dir=project_root / DEFAULT_CONFIG["template_dir"],
            static_dir=project_root / DEFAULT_CONFIG["static_dir"],
            output_dir=project_root / DEFAULT_CONFIG["output_dir"],
            cache_dir=project_root / DEFAULT_CONFIG["cache_dir"],
        )
        return replace(base, **overrides)

    def is_content_file(self, path: str | Path) -> bool:
        """Return True when ``path`` has a document extension."""
        suffix = Path(path).suffix
        return bool(suffix) and suffix[1:].lower() in self.content_extensions

    def listing_for(self, section_key: str) -> ListingConfig | None:
        wanted = path_key(section_key).casefold()
        for listing in self.listings:
            if path_key(listing.section).casefold() == wanted:
                return listing
        return None


def _read_config_file(project_root: Path) -> dict[str, Any]:
    config_path = project_root / CONFIG_FILENAME
    if not config_path.exists():
        return {}
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"{config_path}: {exc}") from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f"{config_path}: top level must be a mapping")
    return loaded


def _string_list(name: str, value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"'{name}' must be a list of strings")
    return tuple(v.strip() for v in value if v.strip())


def _listings(value: Any) -> tuple[ListingConfig, ...]:
    if not isinstance(value, list):
        raise ConfigError("'listings' must be a list")
    listings = []
    for item in value:
        if not isinstance(item, dict) or not isinstance(item.get("section"), str):
            raise ConfigError("each listing needs a 'section' name")
        per_page = item.get("per_page", 10)
        if not isinstance(per_page, int) or isinstance(per_page, bool) or per_page < 1:
            raise ConfigError(f"listing '{item['section']}': per_page must be a positive integer")
        template = item.get("template")
        listings.append(
            ListingConfig(
                section=path_key(item["section"]),
                per_page=per_page,
                template=template if isinstance(template, str) else None,
            )
        )
    return tuple(listings)


def _image_presets(value: Any) -> dict[str, dict[str, Any]]:
    if not isinstance(value, dict):
        raise ConfigError("'images' must be a mapping")
    presets = value.get("presets") or {}
    if not isinstance(presets, dict):
        raise ConfigError("'images.presets' must be a mapping")
    return {
        str(name): dict(params)
        for name, params in presets.items()
        if isinstance(params, dict)
    }


def load_config(
    project_root: Path,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> BuildConfig:
    """Load configuration from ``lattice.yaml``.

    Precedence, lowest first: ``DEFAULT_CONFIG``, the config file,
    environment variables, then explicit ``overrides`` (CLI flags).

    Args:
        project_root: Root directory of the project.
        overrides: Explicit values, ignored when None.
        environ: Environment mapping; defaults to ``os.environ``.

    Returns:
        Resolved BuildConfig.

    Raises:
        ConfigError: When the file or a value has an invalid shape.
    """
    env = os.environ if environ is None else environ
    raw = DEFAULT_CONFIG.copy()
    raw.update(_read_config_file(project_root))

    include_drafts = bool(raw.get("include_drafts", False))
    if env.get("LATTICE_CONTENT_DIR"):
        raw["content_dir"] = env["LATTICE_CONTENT_DIR"]
    if env.get("LATTICE_OUTPUT_DIR"):
        raw["output_dir"] = env["LATTICE_OUTPUT_DIR"]
    if "LATTICE_DRAFTS" in env:
        include_drafts = env["LATTICE_DRAFTS"].strip().lower() in _TRUTHY

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key == "include_drafts":
            include_drafts = include_drafts or bool(value)
        else:
            raw[key] = value

    def directory(key: str) -> Path:
        value = raw.get(key)
        if not isinstance(value, (str, Path)):
            raise ConfigError(f"'{key}' must be a path")
        path = Path(value)
        return path if path.is_absolute() else project_root / path

    pattern = raw.get("pagination_pattern")
    if not isinstance(pattern, str) or "{number}" not in pattern:
        raise ConfigError("'pagination_pattern' must contain '{number}'")

    workers = raw.get("workers")
    if not isinstance(workers, int) or workers < 1:
        raise ConfigError("'workers' must be a positive integer")

    config = BuildConfig(
        project_root=project_root,
        content_dir=directory("content_dir"),
        template_dir=directory("template_dir"),
        static_dir=directory("static_dir"),
        output_dir=directory("output_dir"),
        cache_dir=directory("cache_dir"),
        page_template=str(raw.get("page_template") or "page"),
        content_extensions=tuple(
            ext.lstrip(".").lower()
            for ext in _string_list("content_extensions", raw.get("content_extensions"))
        ),
        ignore=_string_list("ignore", raw.get("ignore") or []),
        taxonomies=_string_list("taxonomies", raw.get("taxonomies") or []),
        pagination_pattern=pattern,
        listings=_listings(raw.get("listings") or []),
        image_presets=MappingProxyType(_image_presets(raw.get("images") or {})),
        include_drafts=include_drafts,
        workers=workers,
        port=int(raw.get("port") or 4000),
        ws_port=int(raw["ws_port"]) if raw.get("ws_port") else None,
        site=SiteConfig.from_mapping(raw.get("site")),
        version=__version__,
    )
    logger.debug("Loaded configuration for %s", project_root)
    return config
