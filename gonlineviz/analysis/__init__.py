"""Dependency tree and relation index construction."""

from __future__ import annotations

from gonlineviz.analysis.dependency_tree import DependencyTreeBuilder, PackageLoader
from gonlineviz.analysis.relations import RelationIndexBuilder

__all__ = ["DependencyTreeBuilder", "PackageLoader", "RelationIndexBuilder"]
