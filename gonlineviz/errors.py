"""Error taxonomy shared by the resolver, fetcher, renderer and web layer."""

from __future__ import annotations


class GraphError(Exception):
    """Base class for errors surfaced to the caller of a render request."""

    kind = "internal"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequestError(GraphError):
    kind = "bad_request"
    status_code = 400


class PackageNotFoundError(GraphError):
    """The package has no resolvable source or no tracked files."""

    kind = "not_found"
    status_code = 404


class FetchError(GraphError):
    """A step of retrieving a package's repository failed."""

    kind = "fetch_failed"

    def __init__(self, step: str, cause: BaseException | str):
        super().__init__(f"{step}: {cause}")
        self.step = step
        self.cause = cause


class RepoNotFoundError(Exception):
    """No repository location could be derived for an import path."""


class VCSCommandError(Exception):
    def __init__(self, command: list[str], returncode: int | None, output: str):
        detail = output.strip() or "no output"
        super().__init__(f"{' '.join(command)} exited with {returncode}: {detail}")
        self.command = command
        self.returncode = returncode
        self.output = output


class RenderError(GraphError):
    kind = "render_failed"


class CacheError(GraphError):
    kind = "cache_failed"


class ImportCycleError(GraphError):
    kind = "import_cycle"
    status_code = 422

    def __init__(self, cycle: list[str]):
        super().__init__("import cycle: " + " -> ".join(cycle))
        self.cycle = cycle


# ── Signals (not errors) ────────────────────────────────────


class FetchRequiredError(Exception):
    """Local storage holds no usable package; the caller may fetch and retry."""

    def __init__(self, import_path: str, reason: str = ""):
        msg = f"package {import_path} not available locally"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)
        self.import_path = import_path
        self.reason = reason


class StandardPackage(Exception):
    """Raised to terminate a branch at a standard-library package."""

    def __init__(self, import_path: str):
        super().__init__(import_path)
        self.import_path = import_path
