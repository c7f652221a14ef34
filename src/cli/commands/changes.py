"""Context document change inspection."""

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table, box

from cli.utils import get_components
from ledger.changes import DiffKind, DocumentChange, context_changes

console = Console()

_MARKS = {
    DiffKind.ADDED: ("[green]+[/]", "green"),
    DiffKind.REMOVED: ("[red]-[/]", "red"),
    DiffKind.UNCHANGED: (" ", "dim"),
}


def _render_change(change: DocumentChange) -> None:
    console.print(Panel(f"[bold]{escape(change.name)}[/]", border_style="blue"))
    console.print(
        f"[dim]Changes from v{change.previous.version} "
        f"({change.previous.created_at:%Y-%m-%d %H:%M}) to v{change.latest.version} "
        f"({change.latest.created_at:%Y-%m-%d %H:%M})[/]"
    )
    table = Table(box=box.MINIMAL)
    table.add_column("Line", justify="right")
    table.add_column("Change")
    table.add_column("Content")
    for line in change.lines:
        mark, style = _MARKS[line.kind]
        table.add_row(str(line.line_number), mark, f"[{style}]{escape(line.content)}[/]")
    console.print(table)


@click.command("context-changes")
@click.option("-c", "--community-context", required=True, help="Community context")
@click.option("-n", "--count", default=10, show_default=True, help="Max documents to inspect")
@click.option("--seed", type=int, default=None, help="Seed for random document selection")
def context_changes_cmd(community_context, count, seed):
    """Show what changed in the latest version of each context document."""
    c = get_components()
    documents = c["documents"]

    if not documents.list_names(community_context):
        console.print("[yellow]No context documents found for this community.[/]")
        return

    changes = context_changes(documents, community_context, count=count, seed=seed)
    for change in changes:
        _render_change(change)

    if not changes:
        console.print("[yellow]No changes found between versions.[/]")
    else:
        console.print(f"[green]Found changes in {len(changes)} document(s).[/]")
