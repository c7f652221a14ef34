"""Shared CLI utilities."""

from typing import Optional

import click
import structlog
from rich.console import Console

console = Console()
logger = structlog.get_logger()

ALL = "all"


def get_components():
    """Initialize stores, indexer and a runner factory from config."""
    from cli.config import load_config_model
    from ledger import DocumentStore, PredictionStore, RefreshRunner, RepredictionIndexer
    from ledger.errors import StoreUnavailable
    from ledger.retry import retry_from_config

    config_model = load_config_model()
    config = config_model.to_dict()

    @retry_from_config(config, exceptions=(StoreUnavailable,))
    def _open_stores():
        db_path = config_model.paths.db_path
        timeout = config_model.store.busy_timeout
        store = PredictionStore(
            db_path,
            max_conflict_attempts=config_model.store.max_conflict_attempts,
            timeout=timeout,
        )
        documents = DocumentStore(db_path, timeout=timeout)
        return store, documents

    store, documents = _open_stores()
    indexer = RepredictionIndexer(store, documents, config_model.staleness.skip_documents)

    def make_runner(generator):
        return RefreshRunner.from_config(indexer, generator, config_model.runner)

    return {
        "config": config,
        "config_model": config_model,
        "store": store,
        "documents": documents,
        "indexer": indexer,
        "make_runner": make_runner,
    }


def parse_list_option(value: Optional[str]) -> Optional[list[str]]:
    """Parse "all" or "a,b,c". None means "discover from the store"."""
    if value is None or value.strip().lower() == ALL:
        return None
    items = [v.strip() for v in value.split(",") if v.strip()]
    if not items:
        raise click.BadParameter("expected 'all' or a comma-separated list")
    return items


def format_bucket(count: int, cost: float) -> str:
    """Table cell for an index bucket: "12 ($0.34)" or "-"."""
    if count == 0:
        return "-"
    return f"{count} (${cost:.2f})"
