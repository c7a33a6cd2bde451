"""Ensure a package's repository is checked out and fresh under GOPATH."""

from __future__ import annotations

import logging
from pathlib import Path

from gonlineviz.errors import FetchError, RepoNotFoundError, VCSCommandError
from gonlineviz.fetch.freshness import FreshnessOracle
from gonlineviz.fetch.remote import ClonePolicy, RepoLocator
from gonlineviz.fetch.vcs import CommandRunner, run_command
from gonlineviz.locks import KeyedLock
from gonlineviz.models import CGO_PSEUDO_PACKAGE

logger = logging.getLogger(__name__)


class PackageFetcher:
    """Clone or update the repository holding an import path.

    Fetches of one repository root are serialized. Once the root's lock is
    held the freshness check is repeated, so a request that queued behind a
    concurrent fetch of the same repository does not fetch it again.
    """

    def __init__(
        self,
        src_root: Path,
        locator: RepoLocator | None = None,
        freshness: FreshnessOracle | None = None,
        policy: ClonePolicy | None = None,
        runner: CommandRunner = run_command,
    ):
        self.src_root = Path(src_root)
        self.locator = locator or RepoLocator()
        self.freshness = freshness or FreshnessOracle(self.src_root)
        self.policy = policy or ClonePolicy()
        self.runner = runner
        self._locks = KeyedLock()

    async def fetch(self, import_path: str) -> None:
        """Raises :class:`FetchError` naming the step that failed."""
        if import_path == CGO_PSEUDO_PACKAGE:
            return

        try:
            root = await self.locator.repo_root(import_path)
        except RepoNotFoundError as e:
            raise FetchError("repo root for import path", e) from e
        if not root.root or not root.repo:
            raise FetchError("repo root for import path", "empty repo root")

        shallow = self.policy.shallow(import_path, root)
        local_parent = (self.src_root / root.root).parent
        local_path = self.src_root / root.root

        async with self._locks.hold(root.root):
            if local_path.exists() and not self.freshness.is_stale(root.root):
                logger.info("%s was refreshed concurrently, skipping fetch", root.root)
                return

            try:
                local_parent.mkdir(parents=True, exist_ok=True, mode=0o700)
            except OSError as e:
                raise FetchError("mkdir all", e) from e

            try:
                exists = local_path.exists()
            except OSError as e:
                raise FetchError("stat", e) from e

            if not exists:
                logger.info("create %s", root.repo)
                step = "vcs create"
                action = root.vcs.clone(local_path, root.repo, shallow=shallow, runner=self.runner)
            else:
                logger.info("update %s", root.repo)
                step = "vcs download"
                action = root.vcs.update(local_path, runner=self.runner)
            try:
                await action
            except VCSCommandError as e:
                raise FetchError(step, e) from e

            try:
                await root.vcs.tag_sync(local_path, runner=self.runner)
            except VCSCommandError as e:
                raise FetchError("vcs tag sync", e) from e
