from pathlib import Path

from lattice.config import BuildConfig, SiteConfig
from lattice.content import ContentProcessor
from lattice.context import SiteContext
from lattice.graph import SiteGraphBuilder


def write_files(root: Path, files: dict) -> None:
    for rel, text in files.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")


def make_context(tmp_path, files, slug=None, site=None):
    write_files(tmp_path / "content", files)
    config = BuildConfig.for_root(tmp_path, site=site or SiteConfig())
    pages, assets = ContentProcessor(config).load()
    graph = SiteGraphBuilder(config).build(pages, assets)
    page = graph.find_by_slug(slug) if slug else None
    return SiteContext(graph, page, config)


SITE_FILES = {
    "index.md": "---\ntitle: Home\nweight: 0\n---\nWelcome",
    "blog/index.md": "---\ntitle: Blog\n---\n",
    "blog/first.md": "---\ntitle: First\nweight: 1\ntags: [python]\ntype: post\n---\n",
    "blog/second.md": "---\ntitle: Second\nweight: 2\ntags: [python, web]\ntype: post\n---\n",
    "blog/first/photo.jpg": "img",
}


def test_url_applies_base_path_once(tmp_path):
    site = SiteConfig.from_mapping({"base_path": "docs/", "base_url": "https://example.com"})
    context = make_context(tmp_path, SITE_FILES, slug="blog/first", site=site)

    assert context.url("/blog/") == "/docs/blog/"
    assert context.url("blog/") == "/docs/blog/"
    assert context.url("/docs/blog/") == "/docs/blog/"
    assert context.url("https://cdn.example.com/x.js") == "https://cdn.example.com/x.js"
    assert context.url("/blog/", absolute=True) == "https://example.com/docs/blog/"


def test_url_without_base_path(tmp_path):
    context = make_context(tmp_path, SITE_FILES, slug="index")
    assert context.url("/about/") == "/about/"
    assert context.url("/about/", absolute=True) == "/about/"


def test_is_current_ignores_slashes_and_base_path(tmp_path):
    site = SiteConfig.from_mapping({"base_path": "/docs"})
    context = make_context(tmp_path, SITE_FILES, slug="blog/first", site=site)
    assert context.is_current("/blog/first")
    assert context.is_current("/docs/blog/first/")
    assert not context.is_current("/blog/")


def test_section_queries(tmp_path):
    context = make_context(tmp_path, SITE_FILES, slug="blog/first")

    assert [s.path for s in context.sections()] == ["blog"]
    assert context.section("blog").label == "Blog"
    empty = context.section("nope")
    assert empty.count() == 0
    assert empty.is_empty()
    assert context.is_section("blog")
    assert not context.is_section("nope")
    assert context.section_of().path == "blog"


def test_page_queries(tmp_path):
    context = make_context(tmp_path, SITE_FILES, slug="blog/first")

    assert context.by_slug("blog/second").title == "Second"
    assert context.by_url("/blog/first/") is context.page
    assert [p.slug for p in context.type("post")] == ["blog/first", "blog/second"]
    assert "blog" not in [p.slug for p in context.regular_pages()]
    assert [p.slug for p in context.taxonomy_term("tags", "python")] == [
        "blog/first",
        "blog/second",
    ]
    assert context.taxonomy_term("tags", "missing").is_empty()
    assert context.taxonomy_term("colors", "red").is_empty()
    assert context.next_in_section().slug == "blog/second"


def test_asset_queries(tmp_path):
    context = make_context(tmp_path, SITE_FILES, slug="blog/first")

    assert [a.filename for a in context.page_assets()] == ["photo.jpg"]
    assert [a.filename for a in context.assets_for("blog/first")] == ["photo.jpg"]
    assert context.assets_for("blog/second").is_empty()
    assert context.assets_for("missing").is_empty()
    assert len(context.assets("blog")) == 1


def test_meta_falls_back_to_site_meta(tmp_path):
    site = SiteConfig.from_mapping({"title": "Site", "author": "Ada", "meta": {"lang": "en"}})
    files = dict(SITE_FILES)
    files["about.md"] = "---\nlang: fr\n---\n"
    context = make_context(tmp_path, files, slug="about", site=site)

    assert context.meta("lang") == "fr"
    assert context.meta("author") == "Ada"
    assert context.meta("missing", "x") == "x"


def test_paginate_defaults_to_page_url(tmp_path):
    context = make_context(tmp_path, SITE_FILES, slug="blog")
    pager = context.paginate(context.section("blog").pages, per_page=1)
    assert pager.base_url == "/blog/"
    assert pager.total_pages == 3
    assert pager.next_url == "/blog/page/2/"
