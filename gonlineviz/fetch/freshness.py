"""Decide whether a local checkout is stale from its VCS metadata directory."""

from __future__ import annotations

import time
from datetime import timedelta
from pathlib import Path
from typing import Callable

from gonlineviz.fetch.vcs import VCS_BY_NAME

# Metadata directories of the VCSs we can update
SUPPORTED_METADATA_DIRS = tuple(v.metadata_dir for v in VCS_BY_NAME.values())


class FreshnessOracle:
    def __init__(
        self,
        src_root: Path,
        staleness: timedelta = timedelta(hours=24),
        clock: Callable[[], float] = time.time,
    ):
        self.src_root = Path(src_root)
        self.staleness = staleness
        self.clock = clock

    def metadata_dir(self, import_path: str) -> Path | None:
        """Find the VCS metadata dir for the repository holding ``import_path``."""
        directory = self.src_root / import_path
        while directory != self.src_root and self.src_root in directory.parents:
            for name in SUPPORTED_METADATA_DIRS:
                candidate = directory / name
                if candidate.is_dir():
                    return candidate
            directory = directory.parent
        return None

    def is_stale(self, import_path: str) -> bool:
        meta_dir = self.metadata_dir(import_path)
        if meta_dir is None:
            # absent, or under a VCS we cannot update
            return True
        try:
            mtime = meta_dir.stat().st_mtime
        except OSError:
            return True
        return self.clock() - mtime > self.staleness.total_seconds()
