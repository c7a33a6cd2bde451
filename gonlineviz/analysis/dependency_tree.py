"""Dependency tree builder: recursive, depth-bounded, fetching on demand."""

from __future__ import annotations

import logging

from gonlineviz.errors import (
    FetchRequiredError,
    ImportCycleError,
    PackageNotFoundError,
    StandardPackage,
)
from gonlineviz.fetch.fetcher import PackageFetcher
from gonlineviz.fetch.freshness import FreshnessOracle
from gonlineviz.models import (
    CGO_PSEUDO_PACKAGE,
    DEFAULT_DEPTH,
    DependencyNode,
    PackageMetadata,
    source_files,
)
from gonlineviz.resolver import MetadataResolver

logger = logging.getLogger(__name__)


class PackageLoader:
    """Resolve a package, fetching it once when it is missing or stale."""

    def __init__(
        self,
        resolver: MetadataResolver,
        fetcher: PackageFetcher,
        freshness: FreshnessOracle,
    ):
        self.resolver = resolver
        self.fetcher = fetcher
        self.freshness = freshness

    async def load(self, import_path: str) -> PackageMetadata:
        """Return metadata for a non-standard package.

        Raises:
            StandardPackage: the package is part of the standard library.
            FetchError: retrieving the package failed.
            PackageNotFoundError: still unresolvable after a fetch attempt.
        """
        try:
            meta = await self.resolver.resolve(import_path)
        except FetchRequiredError as first:
            if self.freshness.is_stale(import_path):
                await self.fetcher.fetch(import_path)
            try:
                meta = await self.resolver.resolve(import_path)
            except FetchRequiredError as e:
                raise PackageNotFoundError(str(e)) from first

        if meta.goroot:
            raise StandardPackage(import_path)
        return meta


class DependencyTreeBuilder:
    """Build a rooted :class:`DependencyNode` tree of a package's imports.

    Children are only expanded while ``depth < max_depth``, so no node lies
    more than ``max_depth`` edges from the root. Standard-library imports are
    left out, the cgo pseudo-package appears as an empty leaf. Re-entering a
    package already on the current path raises :class:`ImportCycleError`.
    """

    def __init__(self, loader: PackageLoader):
        self.loader = loader

    async def build(self, import_path: str, max_depth: int = DEFAULT_DEPTH) -> DependencyNode:
        try:
            return await self._build(import_path, 0, max_depth, ())
        except StandardPackage as e:
            raise PackageNotFoundError(
                f"package {e.import_path} is part of the standard library"
            ) from e

    async def _build(
        self,
        import_path: str,
        depth: int,
        max_depth: int,
        ancestors: tuple[str, ...],
    ) -> DependencyNode:
        node = DependencyNode(import_path=import_path)
        if depth > max_depth or import_path == CGO_PSEUDO_PACKAGE:
            return node
        if import_path in ancestors:
            raise ImportCycleError(list(ancestors[ancestors.index(import_path):]) + [import_path])

        meta = await self.loader.load(import_path)
        node.files = source_files(meta)

        if depth >= max_depth:
            return node

        path = ancestors + (import_path,)
        for dep in meta.imports:
            try:
                child = await self._build(dep, depth + 1, max_depth, path)
            except StandardPackage:
                continue
            node.add_child(child)
        return node
