"""Protocol definitions for Lattice.

Components receive their collaborators explicitly through constructor
arguments; these protocols describe what each collaborator must provide so
tests can pass lightweight fakes.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .content import (
        AssetRecord,
        ContentAsset,
        ContentPage,
        Discovery,
        DocumentRecord,
        Heading,
    )


@runtime_checkable
class ContentRenderer(Protocol):
    """Turns a document body into an HTML fragment and its headings."""

    @abstractmethod
    def can_render(self, path: Path) -> bool:
        """Check if this renderer can handle the given file."""
        ...

    @abstractmethod
    def render(self, content: str) -> tuple[str, list[Heading]]:
        """Render content to HTML.

        Args:
            content: Document body without front matter.

        Returns:
            Tuple of (rendered HTML, list of headings for TOC).
        """
        ...

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the source type identifier (e.g. 'markdown', 'html')."""
        ...


@runtime_checkable
class MetadataExtractor(Protocol):
    """Derives typed page fields from decoded front matter."""

    @abstractmethod
    def extract(self, metadata: Mapping[str, Any], body: str, path: Path) -> dict[str, Any]:
        """Extract fields from one document.

        Args:
            metadata: Decoded front matter.
            body: Document body.
            path: Path to the source file.

        Returns:
            Dictionary of extracted fields.
        """
        ...


@runtime_checkable
class ContentLoader(Protocol):
    """Discovers raw document and asset records under a content root."""

    @abstractmethod
    def discover(self, include_drafts: bool = False) -> Discovery:
        ...


@runtime_checkable
class PageBuilder(Protocol):
    """Builds immutable page and asset entities from raw records."""

    @abstractmethod
    def build(self, record: DocumentRecord) -> ContentPage:
        ...

    @abstractmethod
    def build_asset(self, record: AssetRecord) -> ContentAsset:
        ...


@runtime_checkable
class TemplateRenderer(Protocol):
    """Renders a named template against a bound context."""

    @abstractmethod
    def has_template(self, name: str) -> bool:
        ...

    @abstractmethod
    def render(self, name: str, context: dict[str, Any]) -> str:
        """Render template ``name``.

        Raises:
            RenderError: When the template cannot be found or rendered.
        """
        ...


@runtime_checkable
class ImageTransformer(Protocol):
    """Produces a transformed copy of an image for a set of parameters."""

    @abstractmethod
    def transform(self, source: Path, params: Mapping[str, Any]) -> Path | None:
        """Return the path of the transformed image, or None to serve the original."""
        ...
