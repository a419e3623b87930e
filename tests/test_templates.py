import pytest
from jinja2 import TemplateNotFound
from markupsafe import Markup

from lattice.content import Heading
from lattice.templates import TemplateEngine, render_toc


class FakePage:
    def __init__(self, toc):
        self.toc = toc


def test_render_toc_nests_by_level():
    page = FakePage(
        (
            Heading(2, "intro", "Intro"),
            Heading(3, "details", "Details & more"),
            Heading(2, "usage", "Usage"),
        )
    )
    html = render_toc(page)
    assert isinstance(html, Markup)
    assert html == (
        '<ul><li><a href="#intro">Intro</a>'
        '<ul><li><a href="#details">Details &amp; more</a></li></ul>'
        '</li><li><a href="#usage">Usage</a></li></ul>'
    )


def test_render_toc_empty():
    assert render_toc(None) == ""
    assert render_toc(FakePage(())) == ""


def test_template_resolution_order(tmp_path):
    (tmp_path / "page.html").write_text("html")
    (tmp_path / "page.jinja").write_text("jinja")
    (tmp_path / "post").write_text("bare")
    engine = TemplateEngine(tmp_path)

    assert engine.render("page", {}) == "jinja"
    assert engine.render("post", {}) == "bare"
    assert engine.has_template("page")
    assert not engine.has_template("missing")
    with pytest.raises(TemplateNotFound):
        engine.resolve("missing")


def test_autoescape_and_globals(tmp_path):
    (tmp_path / "page.html").write_text("{{ value }}|{{ safe }}|{{ greet() }}")
    engine = TemplateEngine(tmp_path, globals={"greet": lambda: "hi"})

    rendered = engine.render("page", {"value": "<b>", "safe": Markup("<i>x</i>")})
    assert rendered == "&lt;b&gt;|<i>x</i>|hi"
    assert ".highlight" in engine.render_string("{{ pygments_css() }}", {})
