"""Metadata resolver: locate a package in GOROOT/GOPATH and memoize its metadata."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from gonlineviz.config import Settings
from gonlineviz.errors import FetchRequiredError
from gonlineviz.locks import KeyedLock
from gonlineviz.models import PackageMetadata
from gonlineviz.resolver.gosource import BuildContext, PackageReadError, read_package

logger = logging.getLogger(__name__)


class MetadataResolver:
    """Resolve import paths to :class:`PackageMetadata`.

    Successful resolutions are memoized for the lifetime of the resolver.
    Concurrent resolutions of the same import path are single-flighted: the
    first caller reads the package, the others wait and then hit the memo.
    """

    def __init__(self, goroot: Path, gopath: list[Path], context: BuildContext | None = None):
        self.goroot = Path(goroot)
        self.gopath = [Path(p) for p in gopath]
        self.context = context or BuildContext()
        self._cache: dict[str, PackageMetadata] = {}
        self._locks = KeyedLock()

    @classmethod
    def from_settings(cls, settings: Settings) -> MetadataResolver:
        ctx = BuildContext(
            goos=settings.goos,
            goarch=settings.goarch,
            cgo_enabled=bool(settings.cgo_enabled),
            build_tags=list(settings.build_tags),
        )
        return cls(settings.goroot, settings.gopath, ctx)

    def cached(self, import_path: str) -> PackageMetadata | None:
        return self._cache.get(import_path)

    def __len__(self) -> int:
        return len(self._cache)

    async def resolve(self, import_path: str) -> PackageMetadata:
        """Return metadata for ``import_path``.

        Raises:
            FetchRequiredError: no usable package exists locally.
        """
        meta = self._cache.get(import_path)
        if meta is not None:
            return meta

        async with self._locks.hold(import_path):
            meta = self._cache.get(import_path)
            if meta is not None:
                return meta

            logger.info("not in cache, importing %r", import_path)
            meta = await asyncio.to_thread(self._load, import_path)
            self._cache[import_path] = meta
            return meta

    def _candidates(self, import_path: str) -> list[tuple[Path, bool]]:
        dirs = [(self.goroot / "src" / import_path, True)]
        dirs.extend((root / "src" / import_path, False) for root in self.gopath)
        return dirs

    def _load(self, import_path: str) -> PackageMetadata:
        for directory, goroot in self._candidates(import_path):
            if not directory.is_dir():
                continue
            try:
                pkg = read_package(directory, self.context)
            except PackageReadError as e:
                raise FetchRequiredError(import_path, str(e)) from e
            return PackageMetadata(
                import_path=import_path,
                dir=directory,
                name=pkg.name,
                go_files=tuple(pkg.go_files),
                imports=tuple(pkg.imports),
                goroot=goroot,
            )
        raise FetchRequiredError(import_path, "cannot find package in GOROOT or GOPATH")
