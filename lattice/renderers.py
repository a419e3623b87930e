"""Markup renderers for Lattice.

Renderers turn a document body into an HTML fragment plus the headings used
for the table of contents. Pages call them lazily, the first time their
``content`` or ``toc`` is read.

Key classes:
- MarkdownRenderer: Renders Markdown (and Djot-style) bodies with mistune.
- HTMLRenderer: Passes HTML bodies through.
- RendererRegistry: Picks the renderer for a source file.
"""

from __future__ import annotations

import re
from pathlib import Path

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-") or "section"


class _HighlightRenderer(mistune.HTMLRenderer):
    """mistune renderer adding heading anchors and Pygments highlighting.

    Attributes:
        headings: Heading objects collected during rendering.
    """

    def __init__(self):
        super().__init__(escape=False)
        self.headings: list = []
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        from .content import Heading

        base_id = _generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id

        plain = re.sub(r"<[^>]+>", "", text)
        self.headings.append(Heading(level=level, id=heading_id, text=plain))
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block, highlighted when the language is known."""
        lang = info.split()[0] if info else None
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        escaped = code.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        lang_class = f' class="language-{lang}"' if lang else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown content to HTML with heading extraction."""

    extensions = (".md", ".markdown", ".dj")

    @property
    def source_type(self) -> str:
        return "markdown"

    def can_render(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    def render(self, content: str) -> tuple[str, list]:
        """Render Markdown content to HTML.

        Args:
            content: Markdown source content.

        Returns:
            Tuple of (rendered HTML, list of Heading objects).
        """
        renderer = _HighlightRenderer()
        markdown = mistune.create_markdown(
            renderer=renderer, plugins=["strikethrough", "footnotes", "table", "url"]
        )
        html = markdown(content)
        return html, renderer.headings


class HTMLRenderer:
    """Passes HTML content through unchanged."""

    @property
    def source_type(self) -> str:
        return "html"

    def can_render(self, path: Path) -> bool:
        return path.suffix.lower() in (".html", ".htm")

    def render(self, content: str) -> tuple[str, list]:
        return content, []


class RendererRegistry:
    """Registry of markup renderers, consulted in registration order."""

    def __init__(self):
        self._renderers: list = []
        self.register(MarkdownRenderer())
        self.register(HTMLRenderer())

    def register(self, renderer) -> None:
        """Register a new renderer.

        Args:
            renderer: A ContentRenderer implementation.
        """
        self._renderers.append(renderer)

    def get_renderer(self, path: Path):
        """Get the renderer for a file.

        Args:
            path: Path to the source file.

        Returns:
            The first renderer that can handle the file, or None.
        """
        for renderer in self._renderers:
            if renderer.can_render(path):
                return renderer
        return None

    def render(self, path: Path, content: str) -> tuple[str, list]:
        """Render ``content`` with the renderer for ``path``.

        Files without a matching renderer are passed through.
        """
        renderer = self.get_renderer(path)
        if renderer is None:
            return content, []
        return renderer.render(content)


default_renderer_registry = RendererRegistry()
