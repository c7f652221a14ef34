"""Prediction ledger: versioned predictions with dependency-driven staleness."""

from .costs import CostReport, CostRow, IndexBuckets, aggregate_costs, bucket_costs
from .documents import DocumentStore
from .errors import ConcurrencyConflict, LedgerError, StoreUnavailable
from .indexer import RepredictionIndexer
from .models import (
    ContextDocument,
    CostBucket,
    GenerationResult,
    LatestPrediction,
    PredictionMetadata,
    PredictionRecord,
    RepredictionDecision,
    StalenessResult,
    SubjectKey,
    bonus_entity_id,
    match_entity_id,
)
from .refresh import RefreshOutcome, RefreshRunner
from .staleness import document_lookup, is_stale, normalize_document_name
from .store import PredictionStore

__all__ = [
    "ConcurrencyConflict",
    "ContextDocument",
    "CostBucket",
    "CostReport",
    "CostRow",
    "DocumentStore",
    "GenerationResult",
    "IndexBuckets",
    "LatestPrediction",
    "LedgerError",
    "PredictionMetadata",
    "PredictionRecord",
    "PredictionStore",
    "RefreshOutcome",
    "RefreshRunner",
    "RepredictionDecision",
    "RepredictionIndexer",
    "StalenessResult",
    "StoreUnavailable",
    "SubjectKey",
    "aggregate_costs",
    "bonus_entity_id",
    "bucket_costs",
    "document_lookup",
    "is_stale",
    "match_entity_id",
    "normalize_document_name",
]
