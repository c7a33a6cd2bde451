"""Runtime settings, filled from the environment when not given explicitly."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path


def _env_bool(key: str, default: bool) -> bool:
    val = os.getenv(key, "")
    if val:
        return val in ("true", "1")
    return default


@dataclass
class Settings:
    listen_addr: str = ""
    goroot: Path | None = None
    gopath: list[Path] = field(default_factory=list)
    cgo_enabled: bool | None = None
    goos: str = ""
    goarch: str = ""
    build_tags: list[str] = field(default_factory=list)
    cache_dir: Path | None = None
    staleness: timedelta = timedelta(hours=24)
    throttle_capacity: int = 10
    throttle_rate: float = 10.0
    dot_command: str = "dot"
    log_level: str = ""

    def __post_init__(self):
        if not self.listen_addr:
            self.listen_addr = os.getenv("LISTEN_ADDR", "localhost:3245")
        if self.goroot is None:
            self.goroot = Path(os.getenv("GOROOT", "/usr/local/go"))
        if not self.gopath:
            self.gopath = [Path(p) for p in os.getenv("GOPATH", "").split(os.pathsep) if p]
        if self.cgo_enabled is None:
            self.cgo_enabled = _env_bool("CGO_ENABLED", False)
        if not self.goos:
            self.goos = os.getenv("GOOS", "linux")
        if not self.goarch:
            self.goarch = os.getenv("GOARCH", "amd64")
        if self.cache_dir is None:
            default = Path(os.getenv("HOME", str(Path.home()))) / ".gonlineviz"
            self.cache_dir = Path(os.getenv("GONLINEVIZ_CACHE_DIR", str(default)))
        if not self.log_level:
            self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.goroot = Path(self.goroot)
        self.gopath = [Path(p) for p in self.gopath]
        self.cache_dir = Path(self.cache_dir)

    @property
    def src_root(self) -> Path:
        """``src`` directory of the GOPATH entry that fetched packages land in."""
        if not self.gopath:
            raise ValueError("please set the GOPATH environment variable")
        return self.gopath[0] / "src"

    @property
    def listen_host(self) -> str:
        host, _, _ = self.listen_addr.rpartition(":")
        return host or "127.0.0.1"

    @property
    def listen_port(self) -> int:
        _, _, port = self.listen_addr.rpartition(":")
        return int(port)
