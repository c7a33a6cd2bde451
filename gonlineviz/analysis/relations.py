"""Relation index: unbounded import closure with forward and reverse edges."""

from __future__ import annotations

import logging
from collections import deque

from gonlineviz.analysis.dependency_tree import PackageLoader
from gonlineviz.errors import PackageNotFoundError, StandardPackage
from gonlineviz.models import CGO_PSEUDO_PACKAGE, RelationIndex

logger = logging.getLogger(__name__)


class RelationIndexBuilder:
    """Breadth-first closure over the import relation reachable from a root."""

    def __init__(self, loader: PackageLoader):
        self.loader = loader

    async def build_full(self, root: str) -> RelationIndex:
        index = RelationIndex(root=root)
        queue = deque([root])
        visited: set[str] = set()
        excluded: set[str] = set()  # standard library

        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            index.forward.setdefault(current, [])
            if current == CGO_PSEUDO_PACKAGE:
                continue

            try:
                meta = await self.loader.load(current)
            except StandardPackage as e:
                raise PackageNotFoundError(
                    f"package {current} is part of the standard library"
                ) from e
            index.packages[current] = meta

            for dep in meta.imports:
                if dep in excluded:
                    continue
                if dep not in visited and dep != CGO_PSEUDO_PACKAGE:
                    try:
                        await self.loader.load(dep)
                    except StandardPackage:
                        excluded.add(dep)
                        continue
                index.add_edge(current, dep)
                if dep not in visited:
                    queue.append(dep)

        logger.info(
            "relation index for %s: %d packages, %d edges",
            root, len(index.forward), sum(len(v) for v in index.forward.values()),
        )
        return index
