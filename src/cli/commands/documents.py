"""Context document commands."""

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from cli.utils import get_components

console = Console()


@click.group()
def documents():
    """Manage versioned context documents."""


@documents.command("save")
@click.argument("name")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-c", "--community-context", required=True, help="Community context")
def documents_save(name, file, community_context):
    """Store FILE as the next version of NAME if its content changed."""
    c = get_components()
    content = file.read_text(encoding="utf-8")
    version = c["documents"].save(name, content, community_context)
    if version is None:
        console.print(f"[yellow]Unchanged:[/] {name}")
    else:
        console.print(f"[green]Saved:[/] {name} v{version}")


@documents.command("show")
@click.argument("name")
@click.option("-c", "--community-context", required=True, help="Community context")
@click.option("--version", "version", type=int, default=None, help="Specific version (default latest)")
def documents_show(name, community_context, version):
    """Print a document's content."""
    c = get_components()
    store = c["documents"]
    if version is None:
        doc = store.get_latest(name, community_context)
    else:
        doc = store.get_version(name, version, community_context)

    if doc is None:
        console.print(f"[red]Not found:[/] {name}")
        raise SystemExit(1)

    console.print(f"[bold]{doc.name}[/] v{doc.version} [dim]({doc.created_at:%Y-%m-%d %H:%M})[/]")
    console.print(doc.content, markup=False, highlight=False)


@documents.command("list")
@click.option("-c", "--community-context", required=True, help="Community context")
def documents_list(community_context):
    """List documents with their latest version."""
    c = get_components()
    store = c["documents"]
    names = store.list_names(community_context)
    if not names:
        console.print("[yellow]No context documents found.[/]")
        return

    table = Table(show_header=True)
    table.add_column("Name", style="cyan")
    table.add_column("Version", justify="right")
    table.add_column("Updated", style="dim")
    for name in names:
        doc = store.get_latest(name, community_context)
        table.add_row(name, str(doc.version), f"{doc.created_at:%Y-%m-%d %H:%M}")
    console.print(table)
