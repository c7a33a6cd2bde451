"""Click CLI with serve, render and clear-cache subcommands."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

import click

from gonlineviz import __version__
from gonlineviz.config import Settings
from gonlineviz.errors import GraphError
from gonlineviz.models import DEFAULT_DEPTH, RenderVariant
from gonlineviz.render.cache import RenderCache
from gonlineviz.service import RenderService, validate_import_path


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s  %(name)-28s  %(levelname)-7s  %(message)s",
    )


def _settings(gopath: str | None, goroot: str | None, cgo: bool | None,
              cache_dir: Path | None, **kwargs) -> Settings:
    settings = Settings(
        goroot=Path(goroot) if goroot else None,
        gopath=[Path(p) for p in gopath.split(os.pathsep) if p] if gopath else [],
        cgo_enabled=cgo,
        cache_dir=cache_dir,
        **kwargs,
    )
    if not settings.gopath:
        raise click.UsageError("please set the GOPATH environment variable or pass --gopath")
    return settings


@click.group()
@click.version_option(version=__version__)
def cli():
    """gonlineviz: render Go package import graphs."""


@cli.command()
@click.option("--listen", "-l", envvar="LISTEN_ADDR", default="localhost:3245", help="The listen address")
@click.option("--goroot", envvar="GOROOT", help="The GOROOT variable")
@click.option("--gopath", envvar="GOPATH", help="The GOPATH variable")
@click.option("--cgo/--no-cgo", default=None, help="Enable CGO (defaults to CGO_ENABLED)")
@click.option("--cache-dir", envvar="GONLINEVIZ_CACHE_DIR", type=click.Path(path_type=Path),
              help="Directory holding cached images")
def serve(listen: str, goroot: str | None, gopath: str | None, cgo: bool | None, cache_dir: Path | None):
    """Start the HTTP server."""
    import uvicorn

    from gonlineviz.web import create_app

    settings = _settings(gopath, goroot, cgo, cache_dir, listen_addr=listen)
    setup_logging(settings.log_level)
    try:
        settings.cache_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
    except OSError as e:
        raise click.ClickException(f"unable to create cache dir {settings.cache_dir}: {e}")

    click.echo(f"listening on {settings.listen_addr}")
    uvicorn.run(
        create_app(settings),
        host=settings.listen_host,
        port=settings.listen_port,
        log_level=settings.log_level.lower(),
    )


@cli.command()
@click.argument("import_path")
@click.option("--leaf", is_flag=True, help="Include source files as leaf nodes")
@click.option("--depth", type=click.IntRange(min=0), default=DEFAULT_DEPTH, show_default=True)
@click.option("--reversed", "reversed_target", help="Show what imports this package instead")
@click.option("--format", "fmt", type=click.Choice(["png", "dot"]), default="png", show_default=True)
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path),
              help="Output file (defaults to stdout for dot)")
@click.option("--goroot", envvar="GOROOT")
@click.option("--gopath", envvar="GOPATH")
@click.option("--cgo/--no-cgo", default=None)
@click.option("--cache-dir", envvar="GONLINEVIZ_CACHE_DIR", type=click.Path(path_type=Path))
def render(
    import_path: str,
    leaf: bool,
    depth: int,
    reversed_target: str | None,
    fmt: str,
    output: Path | None,
    goroot: str | None,
    gopath: str | None,
    cgo: bool | None,
    cache_dir: Path | None,
):
    """Render the import graph of IMPORT_PATH once, without the HTTP server."""
    settings = _settings(gopath, goroot, cgo, cache_dir)
    setup_logging(settings.log_level)
    service = RenderService.from_settings(settings)
    variant = RenderVariant(with_leaf=leaf, depth=depth, reversed=reversed_target)

    if fmt == "png" and output is None:
        raise click.UsageError("--output is required for png output")

    try:
        if fmt == "dot":
            text = asyncio.run(service.dot_source(import_path, variant))
            if output is None:
                click.echo(text, nl=False)
                return
            output.write_text(text, encoding="utf-8")
        else:
            output.write_bytes(asyncio.run(service.render(import_path, variant)))
    except GraphError as e:
        raise click.ClickException(f"{e.kind}: {e.message}")
    click.echo(f"wrote {output}")


@cli.command("clear-cache")
@click.argument("import_path")
@click.option("--cache-dir", envvar="GONLINEVIZ_CACHE_DIR", type=click.Path(path_type=Path))
def clear_cache(import_path: str, cache_dir: Path | None):
    """Remove cached images of IMPORT_PATH."""
    try:
        validate_import_path(import_path)
    except GraphError as e:
        raise click.UsageError(e.message)
    cache = RenderCache(Settings(cache_dir=cache_dir).cache_dir)
    removed = cache.clear(import_path)
    click.echo(f"removed {removed} cached image(s) for {import_path}")


if __name__ == "__main__":
    cli()
