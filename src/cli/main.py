"""CLI entry point for the prediction ledger."""

import sys
from pathlib import Path

import click
import structlog
from rich.console import Console

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from cli.commands.changes import context_changes_cmd
from cli.commands.cost import cost
from cli.commands.documents import documents
from cli.commands.status import status
from cli.config import load_config_model
from cli.logging_config import setup_logging

console = Console()
logger = structlog.get_logger()


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
def cli(verbose: bool, json_logs: bool):
    """Prediction ledger - versioned predictions and their costs."""
    try:
        config = load_config_model()
    except ValueError as e:
        console.print(f"[red]Config error:[/] {e}")
        sys.exit(1)

    level = "DEBUG" if verbose else config.logging.level
    setup_logging(
        json_mode=json_logs or config.logging.json_logs,
        level=level,
        log_file=config.paths.log_file,
    )
    logger.debug("cli_started", db_path=str(config.paths.db_path))


cli.add_command(cost)
cli.add_command(context_changes_cmd)
cli.add_command(status)
cli.add_command(documents)


if __name__ == "__main__":
    cli()
