"""Serialize dependency trees and reverse subgraphs as Graphviz DOT text."""

from __future__ import annotations

import re
from collections import deque

from gonlineviz.models import DEFAULT_DEPTH, DependencyNode, RelationIndex, SourceFile

_BARE_ID = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_KEYWORDS = frozenset({"node", "edge", "graph", "digraph", "subgraph", "strict"})


def quote_id(name: str) -> str:
    """Return ``name`` as a DOT ID, quoting it unless it is a plain bare ID."""
    if _BARE_ID.fullmatch(name) and name.lower() not in _KEYWORDS:
        return name
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class DotWriter:
    """Emit one node statement per package and one edge per import relation.

    Edges always point from importer to imported package, whether the graph
    came from a forward tree or from reverse adjacency. With ``with_leaf``
    each package becomes a cluster holding one note-shaped node per file.
    """

    def __init__(self, max_depth: int = DEFAULT_DEPTH, with_leaf: bool = False):
        self.max_depth = max_depth
        self.with_leaf = with_leaf
        self._lines: list[str] = []
        self._indent = 0

    def _line(self, text: str) -> None:
        self._lines.append("  " * self._indent + text)

    def _header(self) -> None:
        self._lines = []
        self._indent = 0
        self._line("digraph main {")
        self._indent += 1
        self._line("graph [rankdir=LR, compound=true, ranksep=1.0];")
        self._line('node [shape=box, style=filled, fillcolor="#f5f5f5"];')
        self._line("edge [arrowhead=vee];")

    def _footer(self) -> str:
        self._indent -= 1
        self._line("}")
        return "\n".join(self._lines) + "\n"

    def _package(self, import_path: str, files: list[SourceFile], root: bool) -> None:
        attrs = [f"label={quote_id(import_path)}"]
        if root:
            attrs.append('fillcolor="#d0e4ff"')
        statement = f"{quote_id(import_path)} [{', '.join(attrs)}];"
        if not (self.with_leaf and files):
            self._line(statement)
            return

        self._line(f"subgraph {quote_id('cluster_' + import_path)} {{")
        self._indent += 1
        self._line(f"label={quote_id(import_path)};")
        self._line(statement)
        for f in files:
            file_id = quote_id(f"{import_path}/{f.file_name}")
            self._line(f"{file_id} [label={quote_id(f.file_name)}, shape=note, fillcolor=white];")
        self._indent -= 1
        self._line("}")

    def _edges(self, edges: list[tuple[str, str]]) -> None:
        for importer, imported in edges:
            self._line(f"{quote_id(importer)} -> {quote_id(imported)};")

    def plot_graph(self, root: DependencyNode) -> str:
        """Serialize a forward dependency tree."""
        self._header()
        seen: dict[str, list[SourceFile]] = {}
        edges: list[tuple[str, str]] = []
        edge_set: set[tuple[str, str]] = set()

        for node, depth in root.walk():
            if depth > self.max_depth:
                continue
            if node.import_path not in seen or (node.files and not seen[node.import_path]):
                seen[node.import_path] = node.files
            if depth == self.max_depth:
                continue
            for child in node.children:
                edge = (node.import_path, child.import_path)
                if edge not in edge_set:
                    edge_set.add(edge)
                    edges.append(edge)

        for import_path, files in seen.items():
            self._package(import_path, files, import_path == root.import_path)
        self._edges(edges)
        return self._footer()

    def plot_reverse(self, index: RelationIndex, target: str) -> str:
        """Serialize the importers of ``target``, up to ``max_depth`` hops away."""
        self._header()
        order: list[str] = [target]
        depth_of = {target: 0}
        edges: list[tuple[str, str]] = []
        queue = deque([target])

        while queue:
            current = queue.popleft()
            depth = depth_of[current]
            if depth >= self.max_depth:
                continue
            for importer in index.importers(current):
                edges.append((importer, current))
                if importer not in depth_of:
                    depth_of[importer] = depth + 1
                    order.append(importer)
                    queue.append(importer)

        for import_path in order:
            node = index.lookup(import_path)
            files = node.files if node else []
            self._package(import_path, files, import_path == target)
        self._edges(edges)
        return self._footer()
