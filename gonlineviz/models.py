"""Data models for package resolution, dependency trees and render variants."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

CGO_PSEUDO_PACKAGE = "C"
DEFAULT_DEPTH = 128


@dataclass(frozen=True)
class PackageMetadata:
    """Structural metadata of one Go package, as read from local storage."""
    import_path: str
    dir: Path
    name: str = ""
    go_files: tuple[str, ...] = ()
    imports: tuple[str, ...] = ()
    goroot: bool = False  # part of the standard library


@dataclass
class SourceFile:
    file_name: str
    namespace: str  # short name of the owning package


@dataclass
class DependencyNode:
    """One package within a single traversal."""
    import_path: str
    children: list[DependencyNode] = field(default_factory=list)
    files: list[SourceFile] = field(default_factory=list)

    def add_child(self, child: DependencyNode) -> None:
        self.children.append(child)

    def has_files(self) -> bool:
        return bool(self.files)

    def walk(self, depth: int = 0) -> Iterator[tuple[DependencyNode, int]]:
        """Pre-order traversal yielding ``(node, depth)`` pairs."""
        yield self, depth
        for child in self.children:
            yield from child.walk(depth + 1)


@dataclass
class RelationIndex:
    root: str
    packages: dict[str, PackageMetadata] = field(default_factory=dict)
    forward: dict[str, list[str]] = field(default_factory=dict)  # importer -> [imported]
    reverse: dict[str, set[str]] = field(default_factory=dict)  # imported -> {importers}

    def add_edge(self, importer: str, imported: str) -> None:
        targets = self.forward.setdefault(importer, [])
        if imported not in targets:
            targets.append(imported)
        self.reverse.setdefault(imported, set()).add(importer)

    def imports(self, import_path: str) -> list[str]:
        return list(self.forward.get(import_path, []))

    def importers(self, import_path: str) -> list[str]:
        return sorted(self.reverse.get(import_path, ()))

    def __contains__(self, import_path: str) -> bool:
        return import_path in self.forward or import_path in self.reverse

    def lookup(self, import_path: str) -> DependencyNode | None:
        """Return a childless node for a discovered package, or ``None``."""
        if import_path not in self:
            return None
        node = DependencyNode(import_path=import_path)
        meta = self.packages.get(import_path)
        if meta:
            node.files = source_files(meta)
        return node


@dataclass(frozen=True)
class RenderVariant:
    """The flag set that shapes a rendered graph and selects its cache entry."""
    with_leaf: bool = False
    depth: int = DEFAULT_DEPTH
    reversed: str | None = None  # reverse-query target

    @property
    def is_canonical(self) -> bool:
        return self.depth == DEFAULT_DEPTH and not self.reversed


def short_name(import_path: str) -> str:
    return import_path.rstrip("/").rsplit("/", 1)[-1]


def source_files(meta: PackageMetadata) -> list[SourceFile]:
    namespace = short_name(meta.import_path)
    return [SourceFile(file_name=f, namespace=namespace) for f in meta.go_files]
