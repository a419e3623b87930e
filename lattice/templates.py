"""Template rendering engine for Lattice.

Templates are Jinja2 files under the project's template directory. A name
such as ``page`` resolves to the first existing candidate among
``page.html.jinja``, ``page.jinja``, ``page.html`` and ``page``.

Key class:
- TemplateEngine: Resolves and renders templates.

Key function:
- render_toc: Render a page's headings as a nested list.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, Template, TemplateNotFound, select_autoescape
from markupsafe import Markup, escape
from pygments.formatters import HtmlFormatter

from .content import ContentPage, Heading

__all__ = ["TemplateEngine", "render_toc"]

TEMPLATE_SUFFIXES = (".html.jinja", ".jinja", ".html", "")


def render_toc(page: ContentPage | None) -> Markup:
    """Render a table of contents as nested HTML from page headings.

    Generates nested ``<ul><li><a href="#id">text</a></li></ul>`` markup
    following heading levels.

    Args:
        page: Page whose ``toc`` should be rendered.

    Returns:
        Markup-safe HTML, or empty Markup if the page has no headings.
    """
    if page is None or not page.toc:
        return Markup("")
    return _render_toc_from_headings(page.toc)


def _render_toc_from_headings(headings: Iterable[Heading]) -> Markup:
    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in headings:
        level = heading.level

        # Close nested lists if going to a shallower level
        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        else:
            html_parts.append("<ul>")
            level_stack.append(level)

        html_parts.append(f'<li><a href="#{escape(heading.id)}">{escape(heading.text)}</a>')

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


class TemplateEngine:
    """Jinja2-backed template renderer.

    The environment is shared by every render; all per-render state travels
    in the context dictionary, so concurrent renders do not interfere.

    Attributes:
        template_dir: Directory containing templates.
        env: Jinja2 environment.
    """

    def __init__(self, template_dir: Path, globals: dict[str, Any] | None = None):
        self.template_dir = template_dir
        self.env = Environment(
            loader=FileSystemLoader([str(template_dir)]),
            autoescape=select_autoescape(["html", "xml", "jinja"]),
            enable_async=False,
        )
        self.env.globals["render_toc"] = render_toc
        self.env.globals["pygments_css"] = self._pygments_css
        if globals:
            self.env.globals.update(globals)

    @staticmethod
    def _pygments_css() -> Markup:
        return Markup(HtmlFormatter().get_style_defs(".highlight"))

    def candidates(self, name: str) -> list[str]:
        return [f"{name}{suffix}" for suffix in TEMPLATE_SUFFIXES]

    def resolve(self, name: str) -> Template:
        """Return the first existing candidate template for ``name``.

        Raises:
            TemplateNotFound: When no candidate exists.
        """
        names = self.candidates(name)
        for candidate in names:
            try:
                return self.env.get_template(candidate)
            except TemplateNotFound:
                continue
        raise TemplateNotFound(name, f"none of {', '.join(names)} found in {self.template_dir}")

    def has_template(self, name: str) -> bool:
        try:
            self.resolve(name)
        except TemplateNotFound:
            return False
        return True

    def render(self, name: str, context: dict[str, Any]) -> str:
        """Render template ``name`` with ``context``."""
        return self.resolve(name).render(**context)

    def render_string(self, template: str, context: dict[str, Any]) -> str:
        return self.env.from_string(template).render(**context)
