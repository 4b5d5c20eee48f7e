"""CLI for gisquick-sync."""

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .config import load_scan_config
from .core import DirectorySnapshot
from .errors import ConfigError, IgnoreFileError, SnapshotError
from .ignore import IgnoreSpec
from .snapshot import DirectoryScanner
from .utils import format_mtime, humanize_size, short_checksum


app = typer.Typer(help="""\
Inventory a Gisquick project directory: list the files that take part in
synchronization, with sizes, modification times and checksums.""")

console = Console()
err_console = Console(stderr=True, soft_wrap=True)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _resolve_root(root: Optional[Path]) -> Path:
    target = (root or Path.cwd()).resolve()
    if not target.is_dir():
        err_console.print(f"[red]error:[/red] `{target}` is not a directory")
        raise typer.Exit(1)
    return target


def _print_snapshot(snapshot: DirectorySnapshot) -> None:
    table = Table(title=snapshot.root, show_lines=False)
    table.add_column("Path")
    table.add_column("Size", justify="right")
    table.add_column("Modified")
    table.add_column("Checksum")

    for f in snapshot.files:
        table.add_row(escape(f.path), humanize_size(f.size), format_mtime(f.mtime), short_checksum(f.checksum))
    for f in snapshot.temporary_files:
        table.add_row(
            f"[dim]{escape(f.path)}[/dim]", humanize_size(f.size), format_mtime(f.mtime), "[dim]temporary[/dim]"
        )

    console.print(table)
    console.print(
        f"{len(snapshot.files)} files, {len(snapshot.temporary_files)} temporary "
        f"({humanize_size(snapshot.total_size)})"
    )


@app.command()
def scan(
    root: Optional[Path] = typer.Argument(None, help="Project directory (default: current directory)"),
    no_checksum: bool = typer.Option(False, "--no-checksum", help="Skip checksum computation"),
    as_json: bool = typer.Option(False, "--json", help="Print the snapshot as JSON"),
    dbhash: Optional[str] = typer.Option(None, "--dbhash", help="dbhash command for .gpkg files"),
    workers: Optional[int] = typer.Option(None, "--workers", "-j", min=1, help="Parallel hashing threads"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Checksum tool timeout in seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Scan a project directory and list its files."""
    _setup_logging(verbose)
    target = _resolve_root(root)

    try:
        config = load_scan_config(target)
    except ConfigError as e:
        err_console.print(f"[red]error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    # Command-line options win over config file and environment
    if dbhash:
        config.dbhash_cmd = dbhash
    if workers:
        config.workers = workers
    if timeout is not None:
        config.tool_timeout = timeout if timeout > 0 else None

    try:
        snapshot = DirectoryScanner.from_config(config).scan(target, checksum=not no_checksum)
    except SnapshotError as e:
        err_console.print(f"[red]error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(snapshot.to_wire(), indent=2))
    else:
        _print_snapshot(snapshot)


@app.command("check-ignore")
def check_ignore(
    paths: List[str] = typer.Argument(..., help="Project-relative paths to test"),
    root: Optional[Path] = typer.Option(None, "--root", help="Project directory (default: current directory)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Print the given paths that the ignore rules exclude."""
    _setup_logging(verbose)
    target = _resolve_root(root)

    try:
        spec = IgnoreSpec.load(target)
    except IgnoreFileError as e:
        err_console.print(f"[red]error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    ignored = [p for p in paths if spec.is_ignored(Path(p).as_posix())]
    for p in ignored:
        typer.echo(p)
    if not ignored:
        raise typer.Exit(1)


def main():
    app()


if __name__ == "__main__":
    main()
