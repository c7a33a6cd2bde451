"""On-disk cache of rendered images, keyed by import path and variant."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from gonlineviz.errors import CacheError
from gonlineviz.models import RenderVariant

logger = logging.getLogger(__name__)

FULL_GRAPH_FILE = "dot.png"
LEAF_GRAPH_FILE = "dot_leaf.png"


class RenderCache:
    """Only the canonical variant (default depth, forward) is ever cached.

    Entries live at ``<root>/<import path>/dot.png`` or ``dot_leaf.png``.
    Writes go to a temporary file in the entry's directory and are renamed
    into place, so readers never see a partially written image.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def path_for(self, import_path: str, variant: RenderVariant) -> Path:
        filename = LEAF_GRAPH_FILE if variant.with_leaf else FULL_GRAPH_FILE
        return self.root.joinpath(*import_path.split("/"), filename)

    def get(self, import_path: str, variant: RenderVariant) -> bytes | None:
        if not variant.is_canonical:
            return None
        path = self.path_for(import_path, variant)
        logger.info("looking for cached image at %r", str(path))
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("unable to read cache file %r: %s", str(path), e)
            return None

    def put(self, import_path: str, variant: RenderVariant, data: bytes) -> bytes:
        """Persist ``data`` for a canonical variant and return it unchanged.

        Raises:
            CacheError: the directory or file could not be written.
        """
        if not variant.is_canonical:
            return data
        path = self.path_for(import_path, variant)
        try:
            path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        except OSError as e:
            raise CacheError(f"mkdir {path.parent}: {e}") from e

        logger.info("caching image for %s at %r", import_path, str(path))
        try:
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".png")
        except OSError as e:
            raise CacheError(f"create temp file in {path.parent}: {e}") from e
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise CacheError(f"write {path}: {e}") from e
        return data

    def clear(self, import_path: str) -> int:
        """Remove cached images of one package; returns how many were removed."""
        removed = 0
        for variant in (RenderVariant(), RenderVariant(with_leaf=True)):
            try:
                self.path_for(import_path, variant).unlink()
                removed += 1
            except FileNotFoundError:
                continue
        return removed
