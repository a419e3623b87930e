"""Traversal-safe resolution of request paths against asset roots.

The live server uses AssetPathResolver for static files and content assets,
and the image pipeline uses it to find transform sources. A request can only
ever resolve to a regular file whose real path lies inside the real path of
the root it was resolved against.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from pathlib import Path
from urllib.parse import unquote

logger = logging.getLogger(__name__)


class AssetPathResolver:
    """Resolves request paths to files under one or more roots.

    Attributes:
        roots: Roots searched in order.
        exclude: Predicate rejecting files that must never be served.
    """

    def __init__(
        self,
        roots: Iterable[Path],
        exclude: Callable[[Path], bool] | None = None,
    ):
        self.roots = [Path(root) for root in roots]
        self.exclude = exclude

    def resolve(self, request_path: str) -> Path | None:
        """Resolve a URL path to a file.

        Args:
            request_path: URL path, possibly percent-encoded, without query.

        Returns:
            The first matching file inside a root, or None.
        """
        decoded = unquote(request_path.split("?", 1)[0]).replace("\\", "/")
        if "\x00" in decoded:
            return None
        relative = decoded.lstrip("/")
        if not relative:
            return None
        for root in self.roots:
            found = self._resolve_in(root, relative)
            if found is not None:
                return found
        return None

    def _resolve_in(self, root: Path, relative: str) -> Path | None:
        try:
            real_root = root.resolve(strict=True)
            candidate = (real_root / relative).resolve(strict=True)
        except (OSError, RuntimeError):
            return None
        if not candidate.is_relative_to(real_root) or not candidate.is_file():
            return None
        if self.exclude is not None and self.exclude(candidate):
            logger.debug("Refusing to serve %s", candidate)
            return None
        return candidate
