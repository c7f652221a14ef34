"""Cost report command."""

import click
from rich.console import Console
from rich.table import Table

from cli.utils import format_bucket, get_components, parse_list_option
from ledger.costs import CostReport, aggregate_costs
from shared_types import SubjectKind

console = Console()


def _parse_matchdays(value: str | None) -> list[str] | None:
    matchdays = parse_list_option(value)
    if matchdays is None:
        return None
    for m in matchdays:
        if not m.isdigit():
            raise click.BadParameter(f"invalid matchday: {m}", param_hint="--matchdays")
    return matchdays


def _render_detailed(report: CostReport) -> Table:
    table = Table(show_header=True, title="Prediction costs by reprediction index")
    table.add_column("Community Context", style="cyan")
    table.add_column("Model", style="green")
    table.add_column("Category")
    table.add_column("Index 0", justify="right")
    table.add_column("Index 1", justify="right")
    table.add_column("Index 2+", justify="right")
    table.add_column("Total Count", justify="right")
    table.add_column("Total Cost (USD)", justify="right")

    for row in report.rows:
        b = row.buckets
        style = "blue" if row.category == SubjectKind.BONUS else None
        table.add_row(
            row.community_context,
            row.model,
            row.category.capitalize(),
            format_bucket(b.index0.count, b.index0.cost),
            format_bucket(b.index1.count, b.index1.cost),
            format_bucket(b.index2_plus.count, b.index2_plus.cost),
            str(b.total.count),
            f"${b.total.cost:.4f}",
            style=style,
        )

    t = report.total
    table.add_row(
        "Total",
        "",
        "",
        format_bucket(t.index0.count, t.index0.cost),
        format_bucket(t.index1.count, t.index1.cost),
        format_bucket(t.index2_plus.count, t.index2_plus.cost),
        str(t.total.count),
        f"${t.total.cost:.4f}",
        style="bold",
    )
    return table


def _render_summary(report: CostReport) -> Table:
    table = Table(show_header=True, title="Prediction costs")
    table.add_column("Category")
    table.add_column("Count", justify="right")
    table.add_column("Cost (USD)", justify="right")
    for category, buckets in report.by_category.items():
        table.add_row(category.capitalize(), str(buckets.total.count), f"${buckets.total.cost:.4f}")
    table.add_row("Total", str(report.total.total.count), f"${report.total.total.cost:.4f}", style="bold")
    return table


@click.command()
@click.option("--matchdays", default=None, help="Comma-separated matchdays or 'all'")
@click.option("--models", default=None, help="Comma-separated models or 'all'")
@click.option("--community-contexts", default=None, help="Comma-separated contexts or 'all'")
@click.option("--bonus", is_flag=True, help="Include bonus predictions")
@click.option(
    "--all",
    "include_all",
    is_flag=True,
    help="Aggregate over every matchday, model and context, bonus included; overrides the filters",
)
@click.option("--detailed", is_flag=True, help="Break down by context, model and reprediction index")
def cost(matchdays, models, community_contexts, bonus, include_all, detailed):
    """Aggregate generation costs across stored predictions."""
    if include_all:
        groups = model_list = context_list = None
    else:
        groups = _parse_matchdays(matchdays)
        model_list = parse_list_option(models)
        context_list = parse_list_option(community_contexts)

    c = get_components()
    store = c["store"]
    if model_list is None:
        model_list = store.list_models()
    if context_list is None:
        context_list = store.list_community_contexts()

    if not model_list or not context_list:
        console.print("[yellow]No predictions found.[/]")
        return

    report = aggregate_costs(
        store,
        model_list,
        context_list,
        groups=groups,
        include_bonus=bonus or include_all,
    )
    console.print(_render_detailed(report) if detailed else _render_summary(report))
