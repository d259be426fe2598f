"""``deployforge resolve TAG`` — show the digest a tag currently points at.

Tags are a convenience for operators.  The pipeline itself only ever
addresses artifacts by digest.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from deployforge.config import config
from deployforge.core.tag_registry import TagNotFoundError, TagRegistry

console = Console()


def resolve_cmd(
    tag: str = typer.Argument(None, help="Tag to resolve, e.g. v1.4 or latest."),
    list_all: bool = typer.Option(False, "--all", "-a", help="List every tag binding."),
    tag_db: Path = typer.Option(None, "--tags", help="Path to the tag registry database."),
) -> None:
    """Resolve a tag (last writer wins) to its artifact digest."""
    db_path = tag_db or config.tag_db_path
    if not db_path.exists():
        console.print(f"[bold red]Tag registry not found:[/bold red] {db_path}")
        raise typer.Exit(code=1)
    registry = TagRegistry(db_path)

    if list_all or not tag:
        table = Table(title="Tags")
        table.add_column("Tag", style="cyan")
        table.add_column("Digest")
        table.add_column("Updated", style="dim")
        for binding in registry.list_tags():
            table.add_row(
                binding.tag, binding.digest,
                binding.updated_at.strftime("%Y-%m-%d %H:%M:%S"),
            )
        console.print(table)
        return

    try:
        digest = registry.resolve(tag)
    except TagNotFoundError as exc:
        console.print(f"[bold red]Unknown tag:[/bold red] {tag}")
        raise typer.Exit(code=1) from exc
    console.print(digest)
