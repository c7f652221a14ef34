"""Staleness status of stored subjects."""

import click
from rich.console import Console
from rich.table import Table

from cli.utils import get_components
from shared_types import SubjectKind, SubjectStatus

console = Console()

_STATUS_STYLE = {
    SubjectStatus.CURRENT: "green",
    SubjectStatus.STALE: "yellow",
    SubjectStatus.UNPREDICTED: "dim",
}


@click.command()
@click.option("-m", "--model", required=True, help="Model name")
@click.option("-c", "--community-context", required=True, help="Community context")
@click.option("--bonus", is_flag=True, help="Show bonus questions instead of matches")
def status(model, community_context, bonus):
    """List stored subjects with latest index and staleness."""
    c = get_components()
    store = c["store"]
    indexer = c["indexer"]

    kind = SubjectKind.BONUS if bonus else SubjectKind.MATCH
    subjects = store.list_subjects(model, community_context, kind)
    if not subjects:
        console.print("[yellow]No predictions found.[/]")
        return

    table = Table(show_header=True, title=f"{kind.capitalize()} predictions ({model}, {community_context})")
    table.add_column("Subject", style="cyan")
    table.add_column("Index", justify="right")
    table.add_column("Status")
    table.add_column("Stale documents / warnings", style="dim")

    stale_count = 0
    for subject in subjects:
        index = indexer.get_current_index(subject)
        result = indexer.check(subject)
        state = SubjectStatus.STALE if result.stale else SubjectStatus.CURRENT
        if result.stale:
            stale_count += 1
        notes = ", ".join(result.stale_documents + result.warnings)
        style = _STATUS_STYLE[state]
        table.add_row(subject.entity_id, str(index), f"[{style}]{state}[/]", notes)

    console.print(table)
    console.print(f"{stale_count} of {len(subjects)} stale.")
