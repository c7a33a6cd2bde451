"""Map Go import paths to repository roots.

Well-known hosting sites are mapped statically; everything else goes through
``?go-get=1`` discovery, reading the ``go-import`` meta tag served by the
import path's host.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from html.parser import HTMLParser

import httpx

from gonlineviz.errors import RepoNotFoundError
from gonlineviz.fetch.vcs import GIT, VCS, vcs_by_name
from gonlineviz.models import CGO_PSEUDO_PACKAGE

logger = logging.getLogger(__name__)

# host -> number of path segments forming the repository root
_STATIC_HOSTS = {
    "github.com": 3,
    "bitbucket.org": 3,
    "gitlab.com": 3,
}

_GOPKG_IN = re.compile(
    r"^gopkg\.in/(?:(?P<user>[A-Za-z0-9][-A-Za-z0-9]*)/)?"
    r"(?P<pkg>[A-Za-z][-.A-Za-z0-9]*)\.(?P<version>v[0-9]+(?:-unstable)?)(?:/.*)?$"
)


@dataclass(frozen=True)
class RepoRoot:
    vcs: VCS
    repo: str  # clone URL
    root: str  # import path prefix the repository holds


class _GoImportParser(HTMLParser):
    def __init__(self):
        super().__init__()
        self.imports: list[tuple[str, str, str]] = []

    def handle_starttag(self, tag, attrs):
        if tag != "meta":
            return
        attr = dict(attrs)
        if attr.get("name") != "go-import":
            return
        fields = (attr.get("content") or "").split()
        if len(fields) == 3:
            self.imports.append((fields[0], fields[1], fields[2]))


def parse_go_import_meta(html: str) -> list[tuple[str, str, str]]:
    """Return ``(prefix, vcs, repo)`` triples from ``go-import`` meta tags."""
    parser = _GoImportParser()
    parser.feed(html)
    parser.close()
    return parser.imports


def _is_prefix(prefix: str, import_path: str) -> bool:
    return import_path == prefix or import_path.startswith(prefix + "/")


class RepoLocator:
    """Resolve import paths to :class:`RepoRoot` values."""

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 20.0):
        self._client = client
        self.timeout = timeout

    async def repo_root(self, import_path: str) -> RepoRoot:
        """Raises :class:`RepoNotFoundError` when the path cannot be mapped."""
        if import_path == CGO_PSEUDO_PACKAGE:
            raise RepoNotFoundError("the cgo pseudo-package has no repository")
        first = import_path.split("/", 1)[0]
        if "." not in first:
            raise RepoNotFoundError(f"import path {import_path!r} does not begin with a hostname")

        root = self._static_root(import_path)
        if root is not None:
            return root
        return await self._discover(import_path)

    def _static_root(self, import_path: str) -> RepoRoot | None:
        parts = import_path.split("/")
        segments = _STATIC_HOSTS.get(parts[0])
        if segments is not None:
            if len(parts) < segments:
                raise RepoNotFoundError(f"invalid {parts[0]} import path {import_path!r}")
            root = "/".join(parts[:segments])
            return RepoRoot(vcs=GIT, repo=f"https://{root}", root=root)

        if parts[0] == "golang.org" and len(parts) >= 3 and parts[1] == "x":
            root = "/".join(parts[:3])
            return RepoRoot(vcs=GIT, repo=f"https://go.googlesource.com/{parts[2]}", root=root)

        if parts[0] == "gopkg.in":
            m = _GOPKG_IN.match(import_path)
            if not m:
                raise RepoNotFoundError(f"invalid gopkg.in import path {import_path!r}")
            user = m.group("user") or f"go-{m.group('pkg')}"
            root_parts = 3 if m.group("user") else 2
            root = "/".join(parts[:root_parts])
            return RepoRoot(vcs=GIT, repo=f"https://github.com/{user}/{m.group('pkg')}", root=root)
        return None

    async def _discover(self, import_path: str) -> RepoRoot:
        parts = import_path.split("/")
        client = self._client or httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        try:
            for n in range(len(parts), 0, -1):
                prefix = "/".join(parts[:n])
                url = f"https://{prefix}"
                try:
                    resp = await client.get(url, params={"go-get": "1"})
                except httpx.HTTPError as e:
                    logger.info("go-get discovery for %s failed: %s", prefix, e)
                    continue
                if resp.status_code != 200:
                    continue
                for meta_prefix, vcs_name, repo in parse_go_import_meta(resp.text):
                    if vcs_name == "mod" or not _is_prefix(meta_prefix, import_path):
                        continue
                    vcs = vcs_by_name(vcs_name)
                    if vcs is None:
                        raise RepoNotFoundError(f"unsupported VCS {vcs_name!r} for {meta_prefix}")
                    return RepoRoot(vcs=vcs, repo=repo, root=meta_prefix)
        finally:
            if self._client is None:
                await client.aclose()
        raise RepoNotFoundError(f"unrecognized import path {import_path!r}")


# Import path prefixes whose git repositories need full history
FULL_HISTORY_PREFIXES = ("gopkg.in",)


class ClonePolicy:
    """Pick shallow or full-history retrieval for a repository."""

    def __init__(self, full_history_prefixes: tuple[str, ...] = FULL_HISTORY_PREFIXES):
        self.full_history_prefixes = full_history_prefixes

    def shallow(self, import_path: str, root: RepoRoot) -> bool:
        if root.vcs.name != "git":
            return False
        return not any(import_path.startswith(p) for p in self.full_history_prefixes)
