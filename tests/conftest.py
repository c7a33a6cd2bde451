"""Shared fixtures: a throwaway GOPATH, the fixture GOROOT and a fake fetcher."""

import shutil
from pathlib import Path

import pytest

from gonlineviz.analysis.dependency_tree import PackageLoader
from gonlineviz.config import Settings
from gonlineviz.fetch.freshness import FreshnessOracle
from gonlineviz.resolver import MetadataResolver
from gonlineviz.resolver.gosource import BuildContext

FIXTURES = Path(__file__).parent / "fixtures"
GOROOT = FIXTURES / "goroot"
REMOTE = FIXTURES / "remote"


class FakeFetcher:
    """Records fetches and "clones" packages from ``fixtures/remote``."""

    def __init__(self, src_root: Path, error: Exception | None = None):
        self.src_root = src_root
        self.error = error
        self.fetched: list[str] = []

    async def fetch(self, import_path: str) -> None:
        self.fetched.append(import_path)
        if self.error is not None:
            raise self.error
        source = REMOTE / import_path
        if source.is_dir():
            shutil.copytree(source, self.src_root / import_path, dirs_exist_ok=True)


@pytest.fixture
def gopath(tmp_path):
    dest = tmp_path / "gopath"
    shutil.copytree(FIXTURES / "gopath", dest)
    return dest


@pytest.fixture
def src_root(gopath):
    return gopath / "src"


@pytest.fixture
def settings(gopath, tmp_path):
    return Settings(
        goroot=GOROOT,
        gopath=[gopath],
        cgo_enabled=False,
        goos="linux",
        goarch="amd64",
        cache_dir=tmp_path / "cache",
        log_level="DEBUG",
    )


@pytest.fixture
def fetcher(src_root):
    return FakeFetcher(src_root)


@pytest.fixture
def resolver(gopath):
    return MetadataResolver(GOROOT, [gopath], BuildContext())


@pytest.fixture
def loader(resolver, fetcher, src_root):
    return PackageLoader(resolver, fetcher, FreshnessOracle(src_root))
