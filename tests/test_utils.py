from datetime import datetime

from lattice.html_utils import escape_html, inject_before_body_end, is_absolute_url, join_root_url
from lattice.utils import (
    dotted_get,
    ensure_clean_dir,
    extension_of,
    extract_date_from_name,
    has_dotted,
    is_ignored,
    lookup_key,
    normalize_url_path,
    path_key,
    slugify,
    slugify_path,
    strip_extension,
    titleize,
)


def test_path_key_resolves_dots_without_escaping_root():
    assert path_key("/blog/2024/../post/") == "blog/post"
    assert path_key("./a//b/.") == "a/b"
    assert path_key("../../etc/passwd") == "etc/passwd"
    assert path_key("guides\\api\\intro.md") == "guides/api/intro.md"
    assert path_key("") == ""


def test_lookup_key_is_case_insensitive():
    assert lookup_key("/Blog/Post/") == lookup_key("blog/post")


def test_normalize_url_path_variants():
    assert normalize_url_path("/") == "/"
    assert normalize_url_path("") == "/"
    assert normalize_url_path("/index") == "/"
    assert normalize_url_path("/blog/") == "/blog"
    assert normalize_url_path("blog") == "/blog"
    assert normalize_url_path("/blog/?page=2#top") == "/blog"


def test_slugify_segments():
    assert slugify("Hello World!") == "hello-world"
    assert slugify("--Already-Slugged--") == "already-slugged"
    assert slugify("!!!") == "page"
    assert slugify_path("Guides/Getting Started") == "guides/getting-started"


def test_titleize():
    assert titleize("getting-started") == "Getting started"
    assert titleize("api_reference") == "Api reference"
    assert titleize("---") == "Untitled"


def test_extract_date_from_name():
    assert extract_date_from_name("2024-01-15-launch") == datetime(2024, 1, 15)
    assert extract_date_from_name("2024-13-40-bad") is None
    assert extract_date_from_name("launch") is None


def test_is_ignored_matches_any_segment():
    patterns = [".*", "_*"]
    assert is_ignored(".git/config", patterns)
    assert is_ignored("blog/_drafts/post.md", patterns)
    assert is_ignored("blog/.hidden.md", patterns)
    assert not is_ignored("blog/post.md", patterns)
    assert not is_ignored("blog/post.md", [])


def test_extension_helpers():
    assert extension_of("images/Photo.JPG") == "jpg"
    assert extension_of("README") == ""
    assert strip_extension("blog/post.md") == "blog/post"
    assert strip_extension("post") == "post"


def test_dotted_get_and_has_dotted():
    data = {"author": {"name": "Ada", "links": {"site": None}}}
    assert dotted_get(data, "author.name") == "Ada"
    assert dotted_get(data, "author.missing", "fallback") == "fallback"
    assert dotted_get(data, "author.name.first", "x") == "x"
    assert has_dotted(data, "author.links.site")
    assert not has_dotted(data, "author.email")


def test_ensure_clean_dir(tmp_path):
    target = tmp_path / "out"
    (target / "nested").mkdir(parents=True)
    (target / "nested" / "old.html").write_text("old")

    ensure_clean_dir(target)

    assert target.is_dir()
    assert list(target.iterdir()) == []


def test_html_helpers():
    assert escape_html('<a href="x">&</a>') == "&lt;a href=&quot;x&quot;&gt;&amp;&lt;/a&gt;"
    assert is_absolute_url("https://example.com")
    assert is_absolute_url("//cdn.example.com/a.js")
    assert is_absolute_url("#top")
    assert not is_absolute_url("/about/")
    assert join_root_url("https://example.com/", "/about/") == "https://example.com/about/"
    assert inject_before_body_end("<body>x</body>", "<s/>") == "<body>x<s/></body>"
    assert inject_before_body_end("<p>x</p>", "<s/>") == "<p>x</p><s/>"
