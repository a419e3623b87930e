from pathlib import Path

import pytest

from lattice.config import BuildConfig
from lattice.content import ContentProcessor
from lattice.errors import ContentParseError
from lattice.graph import SiteGraphBuilder


def write_files(root: Path, files: dict) -> None:
    for rel, text in files.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")


def build_graph(tmp_path: Path, files: dict, include_drafts: bool = False, **overrides):
    write_files(tmp_path / "content", files)
    config = BuildConfig.for_root(tmp_path, include_drafts=include_drafts, **overrides)
    pages, assets = ContentProcessor(config).load(include_drafts)
    return SiteGraphBuilder(config).build(pages, assets)


def front(**fields) -> str:
    lines = [f"{key}: {value}" for key, value in fields.items()]
    return "---\n" + "\n".join(lines) + "\n---\nBody\n"


def test_drafts_are_excluded_from_sections(tmp_path):
    graph = build_graph(
        tmp_path,
        {
            "blog/post-a.dj": front(weight=1),
            "blog/post-b.dj": front(weight=2, draft="true"),
        },
    )
    blog = graph.section("blog")
    assert blog.count() == 1
    assert blog.all_pages().first().slug == "blog/post-a"


def test_drafts_included_on_request(tmp_path):
    graph = build_graph(
        tmp_path,
        {
            "blog/post-a.dj": front(weight=1),
            "blog/post-b.dj": front(weight=2, draft="true"),
        },
        include_drafts=True,
    )
    assert [p.slug for p in graph.section("blog")] == ["blog/post-a", "blog/post-b"]
    assert graph.include_drafts is True


def test_every_page_in_exactly_one_section(tmp_path):
    graph = build_graph(
        tmp_path,
        {
            "index.md": "Home",
            "about.md": "About",
            "blog/index.md": front(title="Blog"),
            "blog/first.md": "First",
            "guides/api/intro.md": "Intro",
            "guides/setup.md": "Setup",
        },
    )
    sections = [graph.root] + graph.all_sections()
    seen = [page.slug for section in sections for page in section.pages]
    assert sorted(seen) == sorted(p.slug for p in graph.pages)
    assert len(seen) == len(set(seen))


def test_section_front_matter_does_not_move_page(tmp_path):
    graph = build_graph(
        tmp_path,
        {
            "blog/first.md": front(section="guides"),
            "guides/setup.md": "Setup",
        },
    )
    page = graph.find_by_slug("blog/first")
    assert graph.section_of(page) is graph.section("blog")
    assert [p.slug for p in graph.section("guides")] == ["guides/setup"]
    assert page.metadata["section"] == "guides"


def test_section_tree_and_labels(tmp_path):
    graph = build_graph(
        tmp_path,
        {
            "blog/index.md": front(title="Our Blog", weight=5),
            "blog/post.md": front(weight=1),
            "guides/api/intro.md": "Intro",
            "guides/getting-started.md": front(weight=2),
        },
    )
    assert [s.path for s in graph.sections()] == ["guides", "blog"]
    blog = graph.section("Blog")
    assert blog.label == "Our Blog"
    assert blog.weight == 5
    assert blog.index.slug == "blog"

    guides = graph.section("guides")
    assert guides.label == "Guides"
    assert guides.weight == 2
    assert guides.has_children()
    api = guides.child("api")
    assert api is graph.section("guides/api")
    assert api.depth == 2
    assert [p.slug for p in guides.all_pages()] == ["guides/getting-started", "guides/api/intro"]

    assert graph.section("missing") is None
    assert graph.section("") is graph.root


def test_section_index_excluded_from_regular_pages(tmp_path):
    graph = build_graph(
        tmp_path,
        {"index.md": "Home", "blog/index.md": "Blog", "blog/post.md": "Post"},
    )
    blog_index = graph.find_by_slug("blog")
    assert graph.is_section_index(blog_index)
    assert blog_index in graph.section("blog").pages
    regular = [p.slug for p in graph.regular_pages()]
    assert "blog" not in regular
    assert "index" in regular


def test_duplicate_slug_rejected(tmp_path):
    with pytest.raises(ContentParseError) as excinfo:
        build_graph(
            tmp_path,
            {"blog/post.md": "A", "blog/other.md": front(slug="blog/post")},
        )
    assert "duplicate slug" in excinfo.value.message


def test_lookup_by_slug_and_url(tmp_path):
    graph = build_graph(tmp_path, {"index.md": "Home", "blog/My Post.md": "Post"})
    page = graph.find_by_slug("Blog/My-Post")
    assert page.slug == "blog/my-post"
    assert graph.find_by_url("/blog/my-post") is page
    assert graph.find_by_url("/") is graph.find_by_slug("index")
    assert graph.find_by_url("/nope/") is None


def test_reading_order_sections_and_root_pages_by_weight(tmp_path):
    graph = build_graph(
        tmp_path,
        {
            "index.md": front(weight=0),
            "about.md": front(weight=10),
            "docs/index.md": front(weight=5),
            "docs/intro.md": front(weight=1),
            "docs/advanced.md": front(weight=2),
            "blog/post.md": front(weight=3),
        },
    )
    order = [p.slug for p in graph.reading_order()]
    assert order == ["index", "blog/post", "docs/intro", "docs/advanced", "docs", "about"]

    intro = graph.find_by_slug("docs/intro")
    assert graph.previous(intro).slug == "blog/post"
    assert graph.next(intro).slug == "docs/advanced"
    assert graph.previous(graph.find_by_slug("index")) is None
    assert graph.next(graph.find_by_slug("about")) is None
    assert graph.next_in_section(intro).slug == "docs/advanced"
    assert graph.previous_in_section(intro) is None


def test_taxonomies_built_for_configured_keys(tmp_path):
    graph = build_graph(
        tmp_path,
        {
            "a.md": front(tags="[python, web]", weight=1),
            "b.md": front(tags="[python]", weight=2),
            "c.md": front(categories="[news]"),
        },
        taxonomies=("tags", "categories"),
    )
    tags = graph.taxonomy("tags")
    assert tags.terms() == ["python", "web"]
    assert [p.slug for p in tags.term("python")] == ["a", "b"]
    assert [p.slug for p in graph.taxonomy("categories").term("news")] == ["c"]
    assert graph.taxonomy("unknown").terms() == []
    assert graph.taxonomy("tags").term("missing").is_empty()


def test_bundle_and_section_asset_ownership(tmp_path):
    write_files(
        tmp_path / "content",
        {
            "blog/post-a/cover.jpg": "img",
            "blog/post-a/gallery/one.png": "img",
            "blog/banner.png": "img",
            "docs/index.md": "Docs",
            "docs/diagram.svg": "svg",
            "logo.png": "img",
        },
    )
    graph = build_graph(tmp_path, {"blog/post-a.md": "Post A", "blog/other.md": "Other"})

    post = graph.find_by_slug("blog/post-a")
    assert [a.relative_path for a in graph.page_assets(post)] == [
        "blog/post-a/cover.jpg",
        "blog/post-a/gallery/one.png",
    ]
    assert [a.filename for a in graph.page_assets(post, "gallery")] == ["one.png"]
    assert graph.page_assets(graph.find_by_slug("blog/other")).is_empty()

    docs_index = graph.find_by_slug("docs")
    assert [a.filename for a in graph.page_assets(docs_index)] == ["diagram.svg"]

    banner = graph.find_asset("blog/banner.png")
    assert graph.asset_owner(banner) == "section:blog"
    assert graph.asset_owner(graph.find_asset("logo.png")) == "section:"

    blog = graph.section("blog")
    assert [a.filename for a in blog.assets()] == ["banner.png"]
    assert len(blog.all_assets()) == 3
    assert [a.filename for a in graph.assets("blog/post-a/gallery")] == ["one.png"]
