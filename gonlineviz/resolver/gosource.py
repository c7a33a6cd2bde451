"""Read a Go package directory: buildable files, package name and imports.

File selection follows the GOPATH-mode build context of the Go toolchain:
test files and files starting with ``_`` or ``.`` are skipped, filename
GOOS/GOARCH suffixes and build constraints (``//go:build`` or the legacy
``// +build`` lines) are evaluated against a :class:`BuildContext`, and files
importing ``"C"`` only count when cgo is enabled.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from gonlineviz.models import CGO_PSEUDO_PACKAGE

KNOWN_OS = frozenset({
    "aix", "android", "darwin", "dragonfly", "freebsd", "hurd", "illumos",
    "ios", "js", "linux", "nacl", "netbsd", "openbsd", "plan9", "solaris",
    "wasip1", "windows", "zos",
})

UNIX_OS = frozenset({
    "aix", "android", "darwin", "dragonfly", "freebsd", "hurd", "illumos",
    "ios", "linux", "netbsd", "openbsd", "solaris",
})

KNOWN_ARCH = frozenset({
    "386", "amd64", "amd64p32", "arm", "armbe", "arm64", "arm64be", "loong64",
    "mips", "mipsle", "mips64", "mips64le", "mips64p32", "mips64p32le",
    "ppc", "ppc64", "ppc64le", "riscv", "riscv64", "s390", "s390x",
    "sparc", "sparc64", "wasm",
})

# GOOS values that also satisfy another GOOS tag
_OS_ALIASES = {"android": "linux", "illumos": "solaris", "ios": "darwin"}

# Comments and the literals that may contain comment markers, scanned left to right
_COMMENT_OR_LITERAL = re.compile(
    r"//[^\n]*"
    r"|/\*.*?\*/"
    r"|\"(?:[^\"\\\n]|\\.)*\""
    r"|`[^`]*`"
    r"|'(?:[^'\\\n]|\\.)*'",
    re.DOTALL,
)
_PACKAGE_CLAUSE = re.compile(r"\bpackage\s+([A-Za-z_]\w*)")
_IMPORT_GROUP = re.compile(r"\s*;?\s*import\s*\((.*?)\)", re.DOTALL)
_IMPORT_SINGLE = re.compile(r"\s*;?\s*import\s+(?:[\w.]+\s+)?(\"[^\"\n]*\"|`[^`]*`)")
_IMPORT_SPEC = re.compile(r"(?:[\w.]+\s+)?(\"[^\"\n]*\"|`[^`]*`)")
_CONSTRAINT_TOKEN = re.compile(r"\s*(\(|\)|!|&&|\|\||[A-Za-z0-9_.]+)")


class PackageReadError(Exception):
    """The directory does not hold a buildable Go package."""


class NoGoFilesError(PackageReadError):
    def __init__(self, directory: Path):
        super().__init__(f"no buildable Go source files in {directory}")
        self.directory = directory


class MultiplePackagesError(PackageReadError):
    def __init__(self, directory: Path, names: list[str]):
        super().__init__(f"found packages {', '.join(names)} in {directory}")
        self.directory = directory
        self.names = names


@dataclass
class BuildContext:
    goos: str = "linux"
    goarch: str = "amd64"
    cgo_enabled: bool = False
    build_tags: list[str] = field(default_factory=list)
    release_tags: list[str] = field(
        default_factory=lambda: [f"go1.{i}" for i in range(1, 31)]
    )

    def match_tag(self, tag: str) -> bool:
        if tag == "ignore":
            return False
        if tag in (self.goos, self.goarch, "gc"):
            return True
        if _OS_ALIASES.get(self.goos) == tag:
            return True
        if tag == "unix" and self.goos in UNIX_OS:
            return True
        if tag == "cgo":
            return self.cgo_enabled
        return tag in self.build_tags or tag in self.release_tags


@dataclass
class GoPackage:
    name: str
    go_files: list[str]
    imports: list[str]


# ── Filename constraints ─────────────────────────────────────

def good_os_arch_file(file_name: str, ctx: BuildContext) -> bool:
    """Check ``name_GOOS_GOARCH.go`` style suffixes against the context."""
    stem = file_name.split(".", 1)[0]
    if "_" not in stem:
        return True
    parts = stem[stem.index("_"):].split("_")
    if parts and parts[-1] == "test":
        parts = parts[:-1]
    n = len(parts)
    if n >= 2 and parts[-2] in KNOWN_OS and parts[-1] in KNOWN_ARCH:
        return ctx.match_tag(parts[-2]) and ctx.match_tag(parts[-1])
    if n >= 1 and (parts[-1] in KNOWN_OS or parts[-1] in KNOWN_ARCH):
        return ctx.match_tag(parts[-1])
    return True


# ── Build constraints ────────────────────────────────────────

class _ExprParser:
    """Recursive-descent evaluator for ``//go:build`` expressions."""

    def __init__(self, expr: str, ctx: BuildContext):
        self.tokens = self._tokenize(expr)
        self.pos = 0
        self.ctx = ctx

    @staticmethod
    def _tokenize(expr: str) -> list[str]:
        tokens: list[str] = []
        pos = 0
        expr = expr.rstrip()
        while pos < len(expr):
            m = _CONSTRAINT_TOKEN.match(expr, pos)
            if not m:
                raise ValueError(f"invalid build constraint: {expr!r}")
            tokens.append(m.group(1))
            pos = m.end()
        return tokens

    def _peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> str:
        tok = self._peek()
        if tok is None:
            raise ValueError("unexpected end of build constraint")
        self.pos += 1
        return tok

    def evaluate(self) -> bool:
        result = self._or()
        if self._peek() is not None:
            raise ValueError(f"unexpected token {self._peek()!r} in build constraint")
        return result

    def _or(self) -> bool:
        result = self._and()
        while self._peek() == "||":
            self._next()
            rhs = self._and()
            result = result or rhs
        return result

    def _and(self) -> bool:
        result = self._not()
        while self._peek() == "&&":
            self._next()
            rhs = self._not()
            result = result and rhs
        return result

    def _not(self) -> bool:
        if self._peek() == "!":
            self._next()
            return not self._not()
        return self._atom()

    def _atom(self) -> bool:
        tok = self._next()
        if tok == "(":
            result = self._or()
            if self._next() != ")":
                raise ValueError("missing ')' in build constraint")
            return result
        if tok in (")", "!", "&&", "||"):
            raise ValueError(f"unexpected token {tok!r} in build constraint")
        return self.ctx.match_tag(tok)


def eval_go_build(expr: str, ctx: BuildContext) -> bool:
    return _ExprParser(expr, ctx).evaluate()


def eval_plus_build(line: str, ctx: BuildContext) -> bool:
    """Evaluate one ``// +build`` line: spaces are OR, commas are AND."""
    for alternative in line.split():
        ok = True
        for term in alternative.split(","):
            negated = term.startswith("!")
            tag = term.lstrip("!")
            if not tag or ctx.match_tag(tag) == negated:
                ok = False
                break
        if ok:
            return True
    return False


def should_build(source: str, ctx: BuildContext) -> bool:
    """Evaluate the build constraints in the file header."""
    go_build: str | None = None
    plus_build: list[tuple[int, str]] = []
    last_blank = -1

    for i, raw in enumerate(source.splitlines()):
        line = raw.strip()
        if not line:
            last_blank = i
            continue
        if not line.startswith("//"):
            break
        if line.startswith("//go:build") and go_build is None:
            go_build = line[len("//go:build"):]
        else:
            body = line[2:].strip()
            if body.startswith("+build"):
                plus_build.append((i, body[len("+build"):]))

    if go_build is not None:
        return eval_go_build(go_build, ctx)

    # +build lines only count when followed by a blank line
    for i, expr in plus_build:
        if i < last_blank and not eval_plus_build(expr, ctx):
            return False
    return True


# ── Package clause and imports ───────────────────────────────

def _blank_comment(m: re.Match) -> str:
    text = m.group(0)
    if text.startswith("//"):
        return ""
    if text.startswith("/*"):
        return "\n" if "\n" in text else " "
    return text


def strip_comments(source: str) -> str:
    """Remove comments, leaving string, raw string and rune literals intact."""
    return _COMMENT_OR_LITERAL.sub(_blank_comment, source)


def parse_header(source: str) -> tuple[str, list[str]]:
    """Return the package name and imports declared by one Go file."""
    code = strip_comments(source)
    m = _PACKAGE_CLAUSE.search(code)
    if not m:
        raise PackageReadError("missing package clause")
    name = m.group(1)

    imports: list[str] = []
    pos = m.end()
    while True:
        group = _IMPORT_GROUP.match(code, pos)
        if group:
            imports.extend(_unquote(s) for s in _IMPORT_SPEC.findall(group.group(1)))
            pos = group.end()
            continue
        single = _IMPORT_SINGLE.match(code, pos)
        if single:
            imports.append(_unquote(single.group(1)))
            pos = single.end()
            continue
        break
    return name, imports


def _unquote(literal: str) -> str:
    return literal[1:-1]


def _candidate(file_name: str) -> bool:
    if not file_name.endswith(".go"):
        return False
    if file_name.startswith(("_", ".")):
        return False
    return not file_name.endswith("_test.go")


def read_package(directory: Path, ctx: BuildContext) -> GoPackage:
    """Read the buildable Go files of ``directory``.

    Raises:
        NoGoFilesError: the directory holds no buildable Go files.
        MultiplePackagesError: build files disagree on the package name.
    """
    go_files: list[str] = []
    imports: set[str] = set()
    names: list[str] = []

    for path in sorted(directory.iterdir()):
        if not path.is_file() or not _candidate(path.name):
            continue
        if not good_os_arch_file(path.name, ctx):
            continue
        source = path.read_text(encoding="utf-8", errors="replace")
        if not should_build(source, ctx):
            continue
        name, file_imports = parse_header(source)
        if CGO_PSEUDO_PACKAGE in file_imports and not ctx.cgo_enabled:
            continue
        if name == "documentation":
            continue
        if name not in names:
            names.append(name)
        go_files.append(path.name)
        imports.update(file_imports)

    if not go_files:
        raise NoGoFilesError(directory)
    if len(names) > 1:
        raise MultiplePackagesError(directory, names)
    return GoPackage(name=names[0], go_files=go_files, imports=sorted(imports))
