"""Path, key and string helpers for Lattice.

Every component compares paths through the helpers here so filesystem paths,
URL paths and lookup names share a single key space.

Key functions:
    path_key: Canonical slash-separated key with ``.``/``..`` resolved.
    lookup_key: Case-folded ``path_key`` used for every name lookup.
    normalize_url_path: Canonical form of a URL path for comparisons.
    slugify: Convert one path segment to a URL slug.
    titleize: Convert a slug segment to a human-readable title.
    extract_date_from_name: Extract a date from a ``YYYY-MM-DD-`` prefix.
    is_ignored: Match a relative path against ignore globs.
    ensure_clean_dir: Ensure a directory exists and is empty.
    write_atomic: Replace a text file through a temporary file.
"""

from __future__ import annotations

import os
import re
import shutil
import tempfile
from collections.abc import Iterable
from datetime import datetime
from fnmatch import fnmatchcase
from pathlib import Path, PurePath

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def path_key(value: str | PurePath) -> str:
    """Canonicalize a filesystem or URL path fragment.

    Backslashes become slashes, empty and ``.`` segments are dropped and
    ``..`` pops the previous segment. A ``..`` above the root is discarded,
    so the result never escapes the root.

    Args:
        value: Path fragment to canonicalize.

    Returns:
        Slash-separated key without leading or trailing slashes.

    Examples:
        >>> path_key("/blog/2024/../post/")
        'blog/post'
    """
    text = value.as_posix() if isinstance(value, PurePath) else str(value)
    segments: list[str] = []
    for segment in text.replace("\\", "/").split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments:
                segments.pop()
            continue
        segments.append(segment)
    return "/".join(segments)


def lookup_key(value: str | PurePath) -> str:
    """Return the case-folded ``path_key`` used for name lookups."""
    return path_key(value).casefold()


def parent_key(key: str) -> str:
    """Return the parent of a ``path_key`` (``''`` for top-level keys)."""
    head, _, _ = key.rpartition("/")
    return head


def normalize_url_path(value: str) -> str:
    """Normalize a URL path for equality checks.

    Query strings and fragments are dropped, the root and ``/index`` both map
    to ``/``, and every other path is returned as ``/segment/...`` without a
    trailing slash.

    Examples:
        >>> normalize_url_path("/blog/")
        '/blog'
        >>> normalize_url_path("index")
        '/'
    """
    path = value.split("?", 1)[0].split("#", 1)[0]
    key = path_key(path)
    if key in ("", "index"):
        return "/"
    return f"/{key}"


def slugify(segment: str) -> str:
    """Convert a single path segment into a URL slug.

    Args:
        segment: File or directory name without extension.

    Returns:
        Lowercase slug; ``page`` when nothing usable remains.
    """
    cleaned = _SLUG_RE.sub("-", segment.lower()).strip("-")
    return cleaned or "page"


def slugify_path(value: str) -> str:
    """Slugify every segment of a slash-separated path."""
    return "/".join(slugify(segment) for segment in path_key(value).split("/") if segment)


def titleize(name: str) -> str:
    """Convert a slug segment into a human-readable title.

    Examples:
        >>> titleize("getting-started")
        'Getting started'
        >>> titleize("api_reference")
        'Api reference'
    """
    words = [word for word in re.split(r"[\s\-_]+", name) if word]
    if not words:
        return "Untitled"
    text = " ".join(words).lower()
    return text[0].upper() + text[1:]


def extract_date_from_name(name: str) -> datetime | None:
    """Extract a date from a filename with a ``YYYY-MM-DD`` prefix.

    Args:
        name: Filename stem (without extension).

    Returns:
        datetime when a valid date prefix is found, None otherwise.
    """
    parts = name.split("-")
    if len(parts) >= 3 and all(p.isdigit() for p in parts[:3]):
        try:
            return datetime(int(parts[0]), int(parts[1]), int(parts[2]))
        except ValueError:
            return None
    return None


def is_ignored(relative: str | PurePath, patterns: Iterable[str]) -> bool:
    """Check whether any segment of a relative path matches an ignore glob.

    A match on a directory segment excludes the whole subtree.
    """
    globs = tuple(patterns)
    if not globs:
        return False
    return any(
        fnmatchcase(segment, pattern)
        for segment in path_key(relative).split("/")
        for pattern in globs
    )


def extension_of(path: str | PurePath) -> str:
    """Return the lowercased extension without the dot."""
    suffix = PurePath(path).suffix
    return suffix[1:].lower() if suffix else ""


def strip_extension(relative: str) -> str:
    """Drop the final extension from a relative path key."""
    head, sep, tail = relative.rpartition("/")
    stem = PurePath(tail).stem if "." in tail else tail
    return f"{head}{sep}{stem}"


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


def write_atomic(target: Path, text: str) -> None:
    """Write ``text`` to ``target`` through a temporary file and a rename."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, target)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


_MISSING = object()


def dotted_get(data, path: str, default=None):
    """Read a dotted path (``a.b.c``) from nested mappings.

    Args:
        data: Root mapping.
        path: Dotted key path; a blank path returns ``data`` itself.
        default: Value returned when any segment is absent.

    Returns:
        The value at ``path`` or ``default``.
    """
    if not path.strip():
        return data
    current = data
    for part in path.strip().split("."):
        if not hasattr(current, "get"):
            return default
        current = current.get(part, _MISSING)
        if current is _MISSING:
            return default
    return current


def has_dotted(data, path: str) -> bool:
    """Check whether a dotted path exists in nested mappings."""
    if not path.strip():
        return bool(data)
    return dotted_get(data, path, _MISSING) is not _MISSING
