"""Render one import graph: throttle -> cache -> build -> serialize -> layout -> cache."""

from __future__ import annotations

import asyncio
import logging

from gonlineviz.analysis.dependency_tree import DependencyTreeBuilder, PackageLoader
from gonlineviz.analysis.relations import RelationIndexBuilder
from gonlineviz.config import Settings
from gonlineviz.errors import BadRequestError, CacheError, PackageNotFoundError
from gonlineviz.fetch.fetcher import PackageFetcher
from gonlineviz.fetch.freshness import FreshnessOracle
from gonlineviz.models import RenderVariant
from gonlineviz.render.cache import RenderCache
from gonlineviz.render.dot_writer import DotWriter
from gonlineviz.render.layout import LayoutRenderer
from gonlineviz.resolver import MetadataResolver
from gonlineviz.throttle import TokenBucket

logger = logging.getLogger(__name__)


def validate_import_path(import_path: str) -> str:
    """Reject paths that are empty or could escape the GOPATH and cache roots."""
    if not import_path:
        raise BadRequestError("please provide a valid package path")
    if import_path.startswith("/") or "\\" in import_path:
        raise BadRequestError(f"invalid package path {import_path!r}")
    if any(ord(c) < 0x20 or c == "\x7f" for c in import_path):
        raise BadRequestError(f"invalid package path {import_path!r}")
    if any(part in ("", ".", "..") for part in import_path.split("/")):
        raise BadRequestError(f"invalid package path {import_path!r}")
    return import_path


class RenderService:
    def __init__(
        self,
        resolver: MetadataResolver,
        fetcher: PackageFetcher,
        freshness: FreshnessOracle,
        cache: RenderCache,
        throttle: TokenBucket,
        layout: LayoutRenderer,
    ):
        self.resolver = resolver
        self.fetcher = fetcher
        self.freshness = freshness
        self.cache = cache
        self.throttle = throttle
        self.layout = layout
        self.loader = PackageLoader(resolver, fetcher, freshness)
        self.tree_builder = DependencyTreeBuilder(self.loader)
        self.index_builder = RelationIndexBuilder(self.loader)

    @classmethod
    def from_settings(cls, settings: Settings) -> RenderService:
        freshness = FreshnessOracle(settings.src_root, staleness=settings.staleness)
        return cls(
            resolver=MetadataResolver.from_settings(settings),
            fetcher=PackageFetcher(settings.src_root, freshness=freshness),
            freshness=freshness,
            cache=RenderCache(settings.cache_dir),
            throttle=TokenBucket(settings.throttle_capacity, settings.throttle_rate),
            layout=LayoutRenderer(settings.dot_command),
        )

    async def dot_source(self, import_path: str, variant: RenderVariant) -> str:
        """Build the graph for ``import_path`` and return it as DOT text."""
        validate_import_path(import_path)
        tree = await self.tree_builder.build(import_path, variant.depth)
        if not tree.has_files():
            raise PackageNotFoundError(f"no .go files in {tree.import_path}")

        writer = DotWriter(max_depth=variant.depth, with_leaf=variant.with_leaf)
        if not variant.reversed:
            return writer.plot_graph(tree)

        target = validate_import_path(variant.reversed)
        index = await self.index_builder.build_full(import_path)
        node = index.lookup(target)
        if node is None:
            raise PackageNotFoundError(
                f"package {target} not found or has no tracked files in the graph of {import_path}"
            )
        return writer.plot_reverse(index, target)

    async def render(self, import_path: str, variant: RenderVariant) -> bytes:
        """Return the PNG for ``import_path``, served from cache when possible."""
        await self.throttle.acquire()
        validate_import_path(import_path)

        if variant.is_canonical:
            logger.info("can use cache for %s", import_path)
            cached = await asyncio.to_thread(self.cache.get, import_path, variant)
            if cached is not None:
                return cached

        dot_text = await self.dot_source(import_path, variant)
        image = await self.layout.render(dot_text)

        if variant.is_canonical:
            logger.info("generated image for %s is cacheable", import_path)
            try:
                await asyncio.to_thread(self.cache.put, import_path, variant, image)
            except CacheError as e:
                logger.error("unable to cache image for %s: %s", import_path, e)
        return image
