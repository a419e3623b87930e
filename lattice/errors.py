"""Error types for Lattice.

Construction errors (discovery, parsing, graph assembly) abort a run.
Render errors are isolated per route: collected during a batch build and
turned into a 500 response by the live server.

Key classes:
- LatticeError: Base class for every error raised by the package.
- DiscoveryError: An unreadable path under the content root.
- ContentParseError: Malformed front matter, duplicate slug or route collision.
- RouteNotFoundError: No route matches a live request path.
- RenderError: Template resolution or rendering failed for one route.
- InvalidArgument: A caller passed an out-of-range argument.
"""

from __future__ import annotations

from pathlib import Path


class LatticeError(Exception):
    """Base class for Lattice errors."""


class ConfigError(LatticeError):
    """Project configuration has an invalid shape."""


class DiscoveryError(LatticeError):
    """A path under the content root could not be read.

    Attributes:
        path: The offending path.
        message: Human-readable reason.
    """

    def __init__(self, path: Path, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class ContentParseError(LatticeError):
    """A content file could not be turned into a page.

    Attributes:
        path: Path to the source file.
        message: Human-readable reason, including the decoder message.
    """

    def __init__(self, path: Path, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class RouteNotFoundError(LatticeError):
    """No page or listing is published at the requested URL path."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No route for {path}")


class RenderError(LatticeError):
    """Rendering a single route failed.

    Attributes:
        source_path: Source file of the page, or None for synthetic listings.
        url_path: URL of the route being rendered.
        message: Human-readable error message.
        original_error: The exception raised by the template layer.
    """

    def __init__(
        self,
        url_path: str,
        message: str,
        source_path: Path | None = None,
        original_error: Exception | None = None,
    ):
        self.url_path = url_path
        self.message = message
        self.source_path = source_path
        self.original_error = original_error
        where = source_path if source_path is not None else url_path
        super().__init__(f"{where}: {message}")


class InvalidArgument(LatticeError, ValueError):
    """A caller supplied an invalid argument (e.g. a non-positive page size)."""
