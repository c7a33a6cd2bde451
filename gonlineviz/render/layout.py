"""Run the Graphviz ``dot`` executable on DOT text."""

from __future__ import annotations

import asyncio
import logging

from gonlineviz.errors import RenderError

logger = logging.getLogger(__name__)

LAYOUT_ENV = {"PATH": "/usr/bin:/bin"}


class LayoutRenderer:
    def __init__(self, command: str = "dot", args: tuple[str, ...] = ("-Tpng",)):
        self.command = command
        self.args = args

    async def render(self, dot_text: str) -> bytes:
        """Return the image produced for ``dot_text``.

        The subprocess is killed when the awaiting task is cancelled.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                self.command,
                *self.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=LAYOUT_ENV,
            )
        except OSError as e:
            raise RenderError(f"unable to call {self.command}: {e}") from e

        try:
            stdout, stderr = await proc.communicate(dot_text.encode("utf-8"))
        except asyncio.CancelledError:
            if proc.returncode is None:
                logger.info("killing %s for cancelled request", self.command)
                proc.kill()
                await proc.wait()
            raise

        if proc.returncode != 0:
            output = stderr.decode("utf-8", errors="replace").strip()
            raise RenderError(f"{self.command} exited with {proc.returncode}, output: {output}")
        if not stdout:
            raise RenderError(f"{self.command} produced no output")
        return stdout
