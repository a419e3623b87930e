from datetime import datetime
from pathlib import Path

import pytest

from lattice.config import BuildConfig
from lattice.content import (
    AssetRecord,
    ContentProcessor,
    DefaultPageBuilder,
    DocumentRecord,
    FileContentLoader,
)
from lattice.errors import ContentParseError, DiscoveryError
from lattice.extractors import (
    CompositeMetadataExtractor,
    TaxonomyExtractor,
    decode_front_matter,
    split_front_matter,
)


def write_files(root: Path, files: dict) -> None:
    for rel, text in files.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")


def make_record(rel: str, front_matter: str | None = None, body: str = "") -> DocumentRecord:
    return DocumentRecord(
        path=Path("/site/content") / rel,
        relative_path=rel,
        raw_front_matter=front_matter,
        raw_body=body,
    )


def test_split_front_matter_with_dash_and_plus_fences():
    raw, body = split_front_matter("---\ntitle: Hi\n---\nBody\n")
    assert raw == "title: Hi"
    assert body == "Body\n"

    raw, body = split_front_matter("+++\nweight: 2\n+++\nText")
    assert raw == "weight: 2"
    assert body == "Text"


def test_split_front_matter_without_fence_and_empty_block():
    assert split_front_matter("Just text") == (None, "Just text")
    raw, body = split_front_matter("---\n---\nBody")
    assert raw == ""
    assert body == "Body"


def test_decode_front_matter_errors_carry_path():
    path = Path("content/bad.md")
    with pytest.raises(ContentParseError) as excinfo:
        decode_front_matter("title: [unclosed", path)
    assert excinfo.value.path == path

    with pytest.raises(ContentParseError):
        decode_front_matter("- just\n- a list", path)


def test_decode_front_matter_trims_keys_and_keeps_order():
    data = decode_front_matter("zeta: 1\nalpha: 2\n", Path("x.md"))
    assert list(data) == ["zeta", "alpha"]
    assert decode_front_matter(None, Path("x.md")) == {}


def test_composite_extractor_typed_fields():
    extractor = CompositeMetadataExtractor(taxonomies=("tags",))
    fields = extractor.extract(
        "title: ' Hello '\ndate: 2024-03-01\nweight: 2\ndraft: 'yes'\ntype: post\n"
        "tags: [' a ', b, a, '']\n",
        "Body",
        Path("post.md"),
    )
    assert fields["title"] == "Hello"
    assert fields["date"] == datetime(2024, 3, 1)
    assert fields["weight"] == 2
    assert fields["draft"] is True
    assert fields["type"] == "post"
    assert fields["taxonomies"] == {"tags": ("a", "b")}


def test_title_falls_back_to_first_heading_for_markdown():
    fields = CompositeMetadataExtractor().extract(None, "intro\n# First Heading\n", Path("a.md"))
    assert fields["title"] == "First Heading"
    fields = CompositeMetadataExtractor().extract(None, "# Not used\n", Path("a.html"))
    assert fields["title"] is None


def test_weight_ignores_booleans_and_strings():
    extractor = CompositeMetadataExtractor()
    assert extractor.extract("weight: true", "", Path("a.md"))["weight"] is None
    assert extractor.extract("weight: heavy", "", Path("a.md"))["weight"] is None
    assert extractor.extract("weight: 1.5", "", Path("a.md"))["weight"] == 1.5


def test_date_from_filename_prefix():
    fields = CompositeMetadataExtractor().extract(None, "", Path("2023-07-04-party.md"))
    assert fields["date"] == datetime(2023, 7, 4)


def test_taxonomy_extractor_accepts_scalar():
    result = TaxonomyExtractor(("tags", "categories")).extract({"categories": "news"}, "", Path("a.md"))
    assert result == {"taxonomies": {"categories": ("news",)}}


def test_slug_derivation():
    assert DefaultPageBuilder.slug_for("index.md", {}) == "index"
    assert DefaultPageBuilder.slug_for("blog/index.md", {}) == "blog"
    assert DefaultPageBuilder.slug_for("Blog/My Post.md", {}) == "blog/my-post"
    assert DefaultPageBuilder.slug_for("blog/post.md", {"slug": "/News/Custom/"}) == "news/custom"
    assert DefaultPageBuilder.slug_for("blog/post.md", {"slug": "  "}) == "blog/post"


def test_page_builder_fields(tmp_path):
    builder = DefaultPageBuilder(BuildConfig.for_root(tmp_path))

    page = builder.build(make_record("guides/getting-started.md", None, "Text"))
    assert page.slug == "guides/getting-started"
    assert page.url_path == "/guides/getting-started/"
    assert page.output_path == "guides/getting-started/index.html"
    assert page.title == "Getting started"
    assert page.section_key == "guides"
    assert page.is_index is False
    assert page.bundle_key == "guides/getting-started"

    index = builder.build(make_record("guides/index.md", "title: Guides", "Text"))
    assert index.slug == "guides"
    assert index.is_index is True
    assert index.bundle_key == "guides"

    home = builder.build(make_record("index.md", None, "Welcome"))
    assert home.slug == "index"
    assert home.url_path == "/"
    assert home.output_path == "index.html"
    assert home.title == "Home"


def test_page_metadata_is_read_only(tmp_path):
    builder = DefaultPageBuilder(BuildConfig.for_root(tmp_path))
    page = builder.build(make_record("a.md", "author:\n  name: Ada", ""))
    assert page.meta("author.name") == "Ada"
    assert page.has_meta("author")
    assert page.meta("missing", "x") == "x"
    with pytest.raises(TypeError):
        page.metadata["author"] = "Bob"


def test_page_content_rendered_lazily_with_toc(tmp_path):
    builder = DefaultPageBuilder(BuildConfig.for_root(tmp_path))
    page = builder.build(make_record("doc.md", None, "## Setup\n\ntext\n\n## Setup\n"))

    assert "_render_cache" not in page.__dict__
    html = page.content
    assert '<h2 id="setup">Setup</h2>' in html
    assert '<h2 id="setup-1">Setup</h2>' in html
    assert [h.id for h in page.toc] == ["setup", "setup-1"]
    assert page.content is html


def test_html_pages_pass_through(tmp_path):
    builder = DefaultPageBuilder(BuildConfig.for_root(tmp_path))
    page = builder.build(make_record("raw.html", None, "<p>raw</p>"))
    assert page.content == "<p>raw</p>"


def test_build_asset_reads_stat_only(tmp_path):
    image = tmp_path / "content" / "blog" / "Photo.PNG"
    image.parent.mkdir(parents=True)
    image.write_bytes(b"12345")
    builder = DefaultPageBuilder(BuildConfig.for_root(tmp_path))

    asset = builder.build_asset(AssetRecord(path=image, relative_path="blog/Photo.PNG"))

    assert asset.url_path == "/blog/Photo.PNG"
    assert asset.extension == "png"
    assert asset.size == 5
    assert asset.is_image()
    assert asset.is_type(".PNG", "jpg")
    assert asset.read_bytes() == b"12345"


def test_discovery_sorted_and_filtered(tmp_path):
    write_files(
        tmp_path / "content",
        {
            "b.md": "B",
            "a.md": "A",
            "blog/post.dj": "Post",
            "blog/photo.jpg": "img",
            "_partials/header.md": "ignored",
            ".hidden/x.md": "ignored",
            "blog/.DS_Store": "ignored",
        },
    )
    discovery = FileContentLoader(BuildConfig.for_root(tmp_path)).discover()

    assert [d.relative_path for d in discovery.documents] == ["a.md", "b.md", "blog/post.dj"]
    assert [a.relative_path for a in discovery.assets] == ["blog/photo.jpg"]


def test_discovery_missing_root_raises(tmp_path):
    with pytest.raises(DiscoveryError) as excinfo:
        FileContentLoader(BuildConfig.for_root(tmp_path)).discover()
    assert excinfo.value.path == tmp_path / "content"


def test_discovery_unreadable_file_raises(tmp_path):
    content = tmp_path / "content"
    content.mkdir()
    (content / "binary.md").write_bytes(b"\xff\xfe\x00bad")
    with pytest.raises(DiscoveryError) as excinfo:
        FileContentLoader(BuildConfig.for_root(tmp_path)).discover()
    assert excinfo.value.path == content / "binary.md"


def test_processor_filters_drafts(tmp_path):
    write_files(
        tmp_path / "content",
        {
            "live.md": "---\ntitle: Live\n---\n",
            "wip.md": "---\ntitle: WIP\ndraft: true\n---\n",
        },
    )
    processor = ContentProcessor(BuildConfig.for_root(tmp_path))

    pages, _ = processor.load(include_drafts=False)
    assert [p.slug for p in pages] == ["live"]

    pages, _ = processor.load(include_drafts=True)
    assert sorted(p.slug for p in pages) == ["live", "wip"]


def test_processor_reports_malformed_front_matter(tmp_path):
    write_files(tmp_path / "content", {"broken.md": "---\ntitle: [oops\n---\nBody"})
    with pytest.raises(ContentParseError) as excinfo:
        ContentProcessor(BuildConfig.for_root(tmp_path)).load()
    assert excinfo.value.path == tmp_path / "content" / "broken.md"
