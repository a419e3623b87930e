"""Image transforms for the live server.

Query parameters on a content image request select a transform: either a
named preset (``?preset=thumb`` or ``?p=thumb``) or individual keys from an
allow-list (``w``, ``h``, ``fit``, ``q``, ``fm``). Explicit keys override the
preset; unknown keys are ignored. Width and height are capped at
``MAX_DIMENSION`` pixels.

Key classes:
- ImagePresetResolver: Turns a query mapping into transform parameters.
- PillowImageTransformer: Applies parameters with Pillow and caches results.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

ALLOWED_KEYS = ("w", "h", "fit", "q", "fm")
FIT_MODES = ("contain", "crop", "fill")
FORMATS = {"jpg": "JPEG", "jpeg": "JPEG", "png": "PNG", "webp": "WEBP", "gif": "GIF"}
MAX_DIMENSION = 4096


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _positive_int(value: Any, upper: int | None = None) -> int | None:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    if number < 1:
        return None
    return min(number, upper) if upper is not None else number


class ImagePresetResolver:
    """Resolves transform parameters from request query values.

    Attributes:
        presets: Named parameter sets from the ``images.presets`` config.
    """

    def __init__(self, presets: Mapping[str, Mapping[str, Any]] | None = None):
        self.presets = presets or {}

    def resolve(self, query: Mapping[str, Any]) -> dict[str, Any]:
        """Return normalized transform parameters for ``query``.

        Args:
            query: Query mapping; values may be strings or lists of strings.

        Returns:
            Dictionary with a subset of ``w``, ``h``, ``fit``, ``q``, ``fm``.
        """
        raw: dict[str, Any] = {}
        preset_name = _first(query.get("preset")) or _first(query.get("p"))
        if preset_name:
            preset = self.presets.get(str(preset_name))
            if preset is None:
                logger.debug("Unknown image preset %r", preset_name)
            else:
                raw.update({k: v for k, v in preset.items() if k in ALLOWED_KEYS})
        for key in ALLOWED_KEYS:
            if key in query:
                raw[key] = _first(query[key])
        return self._normalize(raw)

    @staticmethod
    def _normalize(raw: Mapping[str, Any]) -> dict[str, Any]:
        params: dict[str, Any] = {}
        for key in ("w", "h"):
            size = _positive_int(raw.get(key), upper=MAX_DIMENSION)
            if size is not None:
                params[key] = size
        quality = _positive_int(raw.get("q"), upper=100)
        if quality is not None:
            params["q"] = quality
        fit = str(raw.get("fit") or "").strip().lower()
        if fit in FIT_MODES:
            params["fit"] = fit
        fmt = str(raw.get("fm") or "").strip().lower()
        if fmt in FORMATS:
            params["fm"] = fmt
        return params


class PillowImageTransformer:
    """Applies transform parameters with Pillow.

    Results are cached under ``cache_dir`` by source path, modification time
    and parameters, so repeated requests reuse earlier output.
    """

    def __init__(self, cache_dir: Path):
        self.cache_dir = cache_dir

    def cache_path(self, source: Path, params: Mapping[str, Any]) -> Path:
        stat = source.stat()
        fingerprint = f"{source}:{stat.st_mtime_ns}:{sorted(params.items())}"
        digest = hashlib.sha256(fingerprint.encode("utf-8")).hexdigest()[:24]
        extension = params.get("fm") or source.suffix.lstrip(".").lower()
        return self.cache_dir / "images" / f"{digest}.{extension}"

    def transform(self, source: Path, params: Mapping[str, Any]) -> Path | None:
        """Return a transformed copy of ``source``.

        Returns:
            Path to the cached result, or None when there is nothing to do
            or Pillow cannot decode the source (the original is served).
        """
        if not params:
            return None
        target = self.cache_path(source, params)
        if target.exists():
            return target
        try:
            with Image.open(source) as image:
                result = self._apply(image, params)
                fmt = FORMATS.get(params.get("fm") or "", image.format or "PNG")
        except UnidentifiedImageError:
            logger.debug("Pillow cannot decode %s; serving original", source)
            return None
        if fmt == "JPEG" and result.mode not in ("RGB", "L"):
            result = result.convert("RGB")
        save_kwargs: dict[str, Any] = {}
        if "q" in params and fmt in ("JPEG", "WEBP"):
            save_kwargs["quality"] = params["q"]
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.stem}.", suffix=target.suffix)
        os.close(fd)
        try:
            result.save(tmp_name, format=fmt, **save_kwargs)
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        return target

    @staticmethod
    def _apply(image: Image.Image, params: Mapping[str, Any]) -> Image.Image:
        width, height = params.get("w"), params.get("h")
        if not width and not height:
            return image.copy()
        if not width:
            width = max(1, round(image.width * height / image.height))
        if not height:
            height = max(1, round(image.height * width / image.width))
        fit = params.get("fit", "contain")
        if fit == "crop":
            return ImageOps.fit(image, (width, height))
        if fit == "fill":
            return image.resize((width, height))
        copy = image.copy()
        copy.thumbnail((width, height))
        return copy
