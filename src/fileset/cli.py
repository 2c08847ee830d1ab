"""CLI for inspecting directories as filesets."""

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from .api import fileset
from .core import ChangeType
from .errors import FilesetError
from .utils import humanize_size


app = typer.Typer(help="""\
Inspect directories as immutable, content-addressed filesets: list files
with their content hashes, compare two directories, or mirror one directory
into another through the deduplicating blob store.""")

console = Console()

_CHANGE_STYLE = {
    ChangeType.ADDED: ("+", "green"),
    ChangeType.REMOVED: ("-", "red"),
    ChangeType.CHANGED: ("~", "yellow"),
}


@app.callback()
def main(
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
):
    """Fileset inspection tool."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _load(directory: Path, include: Optional[List[str]] = None, exclude: Optional[List[str]] = None):
    try:
        return fileset().add(directory, include=include, exclude=exclude)
    except (OSError, FilesetError) as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(2)


@app.command()
def ls(
    directory: Path = typer.Argument(..., help="Directory to scan"),
    include: Optional[List[str]] = typer.Option(None, "-i", "--include", help="Only paths matching this regex"),
    exclude: Optional[List[str]] = typer.Option(None, "-x", "--exclude", help="Skip paths matching this regex"),
):
    """List files with size and content hash.

    Examples:
        fileset ls assets
        fileset ls assets -i '\\.md$' -x '^drafts/'
    """
    fs = _load(directory, include, exclude)

    table = Table(title=str(directory))
    table.add_column("Path")
    table.add_column("Size", justify="right")
    table.add_column("Hash", style="dim")
    total = 0
    for path in fs.ls():
        entry = fs.entry(path)
        total += entry.size
        table.add_row(path, humanize_size(entry.size), entry.hash[:12])
    console.print(table)
    console.print(f"[dim]{len(fs)} files, {humanize_size(total)} total[/dim]")


@app.command()
def digest(
    directory: Path = typer.Argument(..., help="Directory to scan"),
):
    """Print the composite digest of a directory's files and contents."""
    console.print(_load(directory).digest())


@app.command()
def diff(
    before: Path = typer.Argument(..., help="Earlier directory"),
    after: Path = typer.Argument(..., help="Later directory"),
    exit_code: bool = typer.Option(False, "--exit-code", help="Exit with 1 if the directories differ"),
):
    """Show files added, removed and changed between two directories."""
    result = _load(before).compare(_load(after))

    if not result.has_changes:
        console.print("[green]✓[/green] No differences")
        return

    table = Table()
    table.add_column("")
    table.add_column("Path")
    table.add_column("Before", style="dim")
    table.add_column("After", style="dim")
    for change in result.changes:
        if change.change_type == ChangeType.UNCHANGED:
            continue
        symbol, style = _CHANGE_STYLE[change.change_type]
        table.add_row(
            f"[{style}]{symbol}[/{style}]",
            change.path,
            change.before.hash[:12] if change.before else "",
            change.after.hash[:12] if change.after else "",
        )
    console.print(table)

    counts = result.summary
    console.print(
        f"{counts.get(ChangeType.ADDED, 0)} added, "
        f"{counts.get(ChangeType.REMOVED, 0)} removed, "
        f"{counts.get(ChangeType.CHANGED, 0)} changed"
    )
    if exit_code:
        raise typer.Exit(1)


@app.command()
def commit(
    source: Path = typer.Argument(..., help="Directory to read"),
    dest: Path = typer.Argument(..., help="Directory to mirror into"),
    include: Optional[List[str]] = typer.Option(None, "-i", "--include", help="Only paths matching this regex"),
    exclude: Optional[List[str]] = typer.Option(None, "-x", "--exclude", help="Skip paths matching this regex"),
):
    """Mirror SOURCE into DEST through the blob store.

    Files in DEST that are not in SOURCE are removed. Committed files are
    read-only hard links into a temporary blob store.
    """
    fs = _load(source, include, exclude)
    try:
        fs.commit(dest)
    except OSError as e:
        console.print(f"[red]✗[/red] Commit failed: {e}")
        raise typer.Exit(2)
    console.print(f"[green]✓[/green] Committed {len(fs)} files to {dest}")


if __name__ == "__main__":
    app()
