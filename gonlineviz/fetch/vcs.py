"""Version-control backends driven as cancellable subprocesses."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable

from gonlineviz.errors import VCSCommandError

logger = logging.getLogger(__name__)

CommandRunner = Callable[[list[str], "Path | None"], Awaitable[str]]


async def run_command(command: list[str], cwd: Path | None = None) -> str:
    """Run ``command`` and return its combined output.

    Raises:
        VCSCommandError: the command could not start or exited non-zero.
    """
    logger.info("%s", " ".join(command))
    env = dict(os.environ, GIT_TERMINAL_PROMPT="0")
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=str(cwd) if cwd else None,
            env=env,
        )
    except OSError as e:
        raise VCSCommandError(command, None, str(e)) from e

    try:
        stdout, _ = await proc.communicate()
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        raise

    output = stdout.decode("utf-8", errors="replace") if stdout else ""
    if proc.returncode != 0:
        raise VCSCommandError(command, proc.returncode, output)
    return output


@dataclass(frozen=True)
class VCS:
    """Command templates for one version-control system.

    ``{repo}`` and ``{dir}`` placeholders are substituted per invocation.
    """
    name: str
    cmd: str
    metadata_dir: str
    create: tuple[str, ...]
    create_shallow: tuple[str, ...]
    download: tuple[str, ...]
    tag_sync_default: tuple[str, ...]

    def _expand(self, template: tuple[str, ...], **values: str) -> list[str]:
        return [self.cmd] + [part.format(**values) for part in template]

    async def clone(
        self,
        dest: Path,
        repo: str,
        shallow: bool = False,
        runner: CommandRunner = run_command,
    ) -> None:
        template = self.create_shallow if shallow else self.create
        await runner(self._expand(template, repo=repo, dir=str(dest)), dest.parent)

    async def update(self, dest: Path, runner: CommandRunner = run_command) -> None:
        await runner(self._expand(self.download), dest)

    async def tag_sync(self, dest: Path, runner: CommandRunner = run_command) -> None:
        await runner(self._expand(self.tag_sync_default), dest)


GIT = VCS(
    name="git",
    cmd="git",
    metadata_dir=".git",
    create=("clone", "{repo}", "{dir}"),
    create_shallow=("clone", "--depth=1", "{repo}", "{dir}"),
    download=("pull", "--ff-only"),
    tag_sync_default=("submodule", "update", "--init", "--recursive"),
)

HG = VCS(
    name="hg",
    cmd="hg",
    metadata_dir=".hg",
    create=("clone", "-U", "{repo}", "{dir}"),
    create_shallow=("clone", "-U", "{repo}", "{dir}"),
    download=("pull",),
    tag_sync_default=("update", "default"),
)

VCS_BY_NAME: dict[str, VCS] = {v.name: v for v in (GIT, HG)}


def vcs_by_name(name: str) -> VCS | None:
    return VCS_BY_NAME.get(name.lower())
