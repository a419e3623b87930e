"""Command-line interface for Lattice.

Commands:
- build: Render every route into the output directory.
- serve: Run the live development server.
- routes: List every route the site publishes.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__
from .config import load_config
from .errors import ContentParseError, DiscoveryError, LatticeError


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    for noisy in ("websockets", "watchdog"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _fail(project_root: Path, exc: LatticeError) -> None:
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    path = getattr(exc, "path", None)
    if isinstance(exc, (DiscoveryError, ContentParseError)) and path is not None:
        try:
            shown = Path(path).relative_to(project_root)
        except ValueError:
            shown = path
        click.echo(click.style(f"  File: {shown}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
    else:
        click.echo(click.style(f"  Error: {exc}", fg="white"), err=True)
    raise SystemExit(1)


@click.group()
@click.version_option(version=__version__, prog_name="lattice")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """Lattice static site generator."""
    _configure_logging(verbose)


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
@click.option("--clean/--no-clean", default=True, help="Empty the output directory first")
@click.option(
    "--output",
    type=click.Path(file_okay=False, path_type=Path),
    required=False,
    help="Output directory (overrides lattice.yaml)",
)
def build(drafts: bool, clean: bool, output: Path | None):
    """Build the site into the output directory."""
    project_root = Path.cwd()
    from .build import SiteBuilder

    try:
        config = load_config(
            project_root,
            overrides={"include_drafts": drafts, "output_dir": str(output) if output else None},
        )
        result = SiteBuilder(config).build(clean=clean)
    except LatticeError as exc:
        _fail(project_root, exc)
        return

    for failure in result.failures:
        where = failure.source_path or failure.url_path
        click.echo(click.style(f"  {where}: {failure.message}", fg="red"), err=True)
    click.echo(
        f"Built {len(result.written)} pages into {result.output_dir}"
        + (f" ({len(result.failures)} failed)" if result.failures else "")
    )
    if not result.ok:
        raise SystemExit(1)


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
@click.option("--host", default="127.0.0.1", show_default=True, help="Interface to bind")
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides lattice.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides lattice.yaml ws_port)",
)
def serve(drafts: bool, host: str, port: int | None, ws_port: int | None):
    """Run the dev server; pages are rendered per request."""
    project_root = Path.cwd()
    from .server import DevServer

    try:
        config = load_config(project_root, overrides={"include_drafts": drafts})
    except LatticeError as exc:
        _fail(project_root, exc)
        return
    server = DevServer(config, host=host, http_port=port, ws_port=ws_port)
    click.echo(f"Serving at http://{host}:{server.http_port} (Ctrl+C to stop)")
    server.start()


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
def routes(drafts: bool):
    """List every URL the site publishes."""
    project_root = Path.cwd()
    from .build import SiteBuilder

    try:
        config = load_config(project_root, overrides={"include_drafts": drafts})
        builder = SiteBuilder(config)
        table = builder.route_table(builder.load_graph())
    except LatticeError as exc:
        _fail(project_root, exc)
        return
    for route in table:
        source = route.page.relative_path if route.page is not None else "-"
        click.echo(f"{route.url_path}\t{route.kind}\t{source}")


def main():
    """Entry point for the CLI application."""
    cli()
