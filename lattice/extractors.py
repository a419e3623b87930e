"""Front matter handling and metadata extractors for Lattice.

A document starts with a front-matter block fenced by ``---`` (or ``+++``)
lines. The block is decoded with PyYAML and the resulting mapping is handed
to a chain of small extractors, each deriving one typed page field.

Key functions:
- split_front_matter: Separate the raw block from the body.
- decode_front_matter: Decode a raw block into an ordered mapping.

Key classes:
- TitleExtractor, DateExtractor, WeightExtractor, DraftExtractor,
  TypeExtractor, TaxonomyExtractor: One field each.
- CompositeMetadataExtractor: Decodes the block and runs every extractor.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml

from .errors import ContentParseError
from .utils import extract_date_from_name

FRONTMATTER_RE = re.compile(
    r"\A(?P<fence>---|\+\+\+)[ \t]*\r?\n(?:(?P<block>.*?)\r?\n)?(?P=fence)[ \t]*(?:\r?\n|\Z)",
    re.DOTALL,
)

_TRUTHY = {"1", "true", "yes", "on"}


def split_front_matter(text: str) -> tuple[str | None, str]:
    """Split a document into its raw front-matter block and body.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (raw block or None when the file has no fence, body).
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return None, text
    return match.group("block") or "", text[match.end() :]


def decode_front_matter(raw: str | None, path: Path) -> dict[str, Any]:
    """Decode a raw front-matter block.

    Keys are converted to trimmed strings; their order is preserved.

    Args:
        raw: Raw block from ``split_front_matter``.
        path: Source path, used in error messages.

    Returns:
        Ordered metadata mapping (empty when there is no block).

    Raises:
        ContentParseError: When the block is not valid YAML or not a mapping.
    """
    if raw is None or not raw.strip():
        return {}
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ContentParseError(path, f"Invalid front matter: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ContentParseError(
            path, f"Front matter must be a mapping, got {type(data).__name__}"
        )
    result: dict[str, Any] = {}
    for key, value in data.items():
        name = str(key).strip()
        if name:
            result[name] = value
    return result


def _text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class TitleExtractor:
    """Extracts the title from front matter or the first level-1 heading.

    Returns None when neither is present; the page builder then derives
    a title from the slug.
    """

    def extract(self, metadata: Mapping[str, Any], body: str, path: Path) -> dict[str, Any]:
        title = _text(metadata.get("title"))
        if title is None and path.suffix.lower() in (".md", ".dj"):
            for line in body.splitlines():
                stripped = line.strip()
                if stripped.startswith("# "):
                    title = stripped[2:].strip() or None
                    break
        return {"title": title}


class DateExtractor:
    """Extracts the publication date.

    Looks at the ``date`` key (datetime, date or ISO string), falling back
    to a ``YYYY-MM-DD-`` filename prefix. Pages with neither have no date.
    """

    def extract(self, metadata: Mapping[str, Any], body: str, path: Path) -> dict[str, Any]:
        value = metadata.get("date")
        parsed: datetime | None = None
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, date):
            parsed = datetime(value.year, value.month, value.day)
        elif isinstance(value, str) and value.strip():
            try:
                parsed = datetime.fromisoformat(value.strip())
            except ValueError:
                parsed = None
        if parsed is None:
            parsed = extract_date_from_name(path.stem)
        return {"date": parsed}


class WeightExtractor:
    """Extracts a numeric ``weight``; anything else counts as missing."""

    def extract(self, metadata: Mapping[str, Any], body: str, path: Path) -> dict[str, Any]:
        value = metadata.get("weight")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return {"weight": None}
        return {"weight": value}


class DraftExtractor:
    """Extracts the ``draft`` flag."""

    def extract(self, metadata: Mapping[str, Any], body: str, path: Path) -> dict[str, Any]:
        value = metadata.get("draft", False)
        if isinstance(value, str):
            return {"draft": value.strip().lower() in _TRUTHY}
        return {"draft": value is True}


class TypeExtractor:
    """Extracts the optional ``type`` and ``template`` names."""

    def extract(self, metadata: Mapping[str, Any], body: str, path: Path) -> dict[str, Any]:
        return {
            "type": _text(metadata.get("type")),
            "template": _text(metadata.get("template")),
        }


class TaxonomyExtractor:
    """Extracts taxonomy terms for each configured taxonomy key.

    A scalar or list value is accepted. Terms are trimmed, case is kept and
    duplicates are dropped; blank terms are skipped so a page never lands
    under an empty term.
    """

    def __init__(self, taxonomies: Iterable[str] = ("tags",)):
        self.taxonomies = tuple(taxonomies)

    def extract(self, metadata: Mapping[str, Any], body: str, path: Path) -> dict[str, Any]:
        result: dict[str, tuple[str, ...]] = {}
        for name in self.taxonomies:
            value = metadata.get(name)
            if value is None:
                continue
            items = value if isinstance(value, (list, tuple)) else [value]
            terms: list[str] = []
            for item in items:
                if item is None or isinstance(item, (dict, list)):
                    continue
                term = str(item).strip()
                if term and term not in terms:
                    terms.append(term)
            if terms:
                result[name] = tuple(terms)
        return {"taxonomies": result}


class CompositeMetadataExtractor:
    """Decodes front matter and runs every field extractor over it.

    Results are merged in order, so later extractors can override earlier
    ones. The decoded mapping is returned under ``metadata``.
    """

    def __init__(self, extractors: list | None = None, taxonomies: Iterable[str] = ("tags",)):
        if extractors is None:
            self._extractors = [
                TitleExtractor(),
                DateExtractor(),
                WeightExtractor(),
                DraftExtractor(),
                TypeExtractor(),
                TaxonomyExtractor(taxonomies),
            ]
        else:
            self._extractors = list(extractors)

    def add_extractor(self, extractor) -> None:
        self._extractors.append(extractor)

    def extract(self, raw_front_matter: str | None, body: str, path: Path) -> dict[str, Any]:
        """Extract all metadata for one document.

        Args:
            raw_front_matter: Raw block, or None when the file has none.
            body: Document body.
            path: Path to the source file.

        Returns:
            Dictionary with ``metadata`` plus every extracted field.

        Raises:
            ContentParseError: When the front matter cannot be decoded.
        """
        metadata = decode_front_matter(raw_front_matter, path)
        result: dict[str, Any] = {"metadata": metadata}
        for extractor in self._extractors:
            result.update(extractor.extract(metadata, body, path))
        return result
