"""HTML and URL string helpers for Lattice.

Functions:
    escape_html: Escape special HTML characters in a string.
    is_absolute_url: Check whether a URL must be left untouched.
    join_root_url: Join a base URL with a path.
    inject_before_body_end: Insert a snippet before ``</body>``.
"""

from __future__ import annotations

# URL prefixes that are never rewritten
_URL_SKIP_PREFIXES = (
    "http://",
    "https://",
    "//",
    "mailto:",
    "tel:",
    "#",
    "javascript:",
)


def escape_html(text: str) -> str:
    """Escape special HTML characters in a string.

    Examples:
        >>> escape_html('<b>"Tom" & Jerry</b>')
        '&lt;b&gt;&quot;Tom&quot; &amp; Jerry&lt;/b&gt;'
    """
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def is_absolute_url(url: str) -> bool:
    """Return True for URLs with a scheme, protocol-relative URLs and anchors."""
    return url.startswith(_URL_SKIP_PREFIXES)


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Args:
        root_url: Base URL (e.g., https://example.com/blog).
        path: Path beginning with or without a leading slash.

    Returns:
        Combined URL with proper slash handling.

    Examples:
        >>> join_root_url('https://example.com', '/about')
        'https://example.com/about'

        >>> join_root_url('https://example.com/', 'about')
        'https://example.com/about'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def inject_before_body_end(html: str, snippet: str) -> str:
    """Insert ``snippet`` before the closing body tag, or append it."""
    if "</body>" in html:
        return html.replace("</body>", f"{snippet}</body>", 1)
    return html + snippet
