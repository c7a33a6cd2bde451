"""Package retrieval: freshness checks, repository lookup and VCS commands."""

from __future__ import annotations

from gonlineviz.fetch.fetcher import PackageFetcher
from gonlineviz.fetch.freshness import FreshnessOracle
from gonlineviz.fetch.remote import ClonePolicy, RepoLocator, RepoRoot
from gonlineviz.fetch.vcs import GIT, HG, VCS

__all__ = [
    "ClonePolicy",
    "FreshnessOracle",
    "GIT",
    "HG",
    "PackageFetcher",
    "RepoLocator",
    "RepoRoot",
    "VCS",
]
