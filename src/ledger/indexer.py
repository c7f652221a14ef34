"""Reprediction indexing: current index, next append, and subject status."""

from typing import Any, Iterable, Optional

import structlog

from shared_types import RepredictionAction, SubjectStatus

from .documents import DocumentStore
from .models import RepredictionDecision, StalenessResult, SubjectKey
from .staleness import DEFAULT_SKIP_DOCUMENTS, document_lookup, is_stale
from .store import PredictionStore

logger = structlog.get_logger()


class RepredictionIndexer:
    """Combines the prediction store and staleness checks per subject."""

    def __init__(
        self,
        store: PredictionStore,
        documents: DocumentStore,
        skip_documents: Iterable[str] = DEFAULT_SKIP_DOCUMENTS,
    ):
        self.store = store
        self.documents = documents
        self.skip_documents = list(skip_documents)

    def get_current_index(self, subject: SubjectKey) -> int:
        return self.store.get_latest_index(subject)

    def append_next(
        self,
        subject: SubjectKey,
        value: Any,
        dependency_document_names: Iterable[str],
        cost: float,
        token_usage: Any,
        group: str | int | None = None,
    ) -> int:
        return self.store.save_next(
            subject, value, dependency_document_names, cost, token_usage, group=group
        )

    def check(self, subject: SubjectKey, community_context: Optional[str] = None) -> StalenessResult:
        """Staleness of the subject's latest prediction against its documents."""
        context = subject.community_context if community_context is None else community_context
        metadata = self.store.get_metadata(subject)
        return is_stale(metadata, document_lookup(self.documents, context), self.skip_documents)

    def status(self, subject: SubjectKey, community_context: Optional[str] = None) -> SubjectStatus:
        if self.get_current_index(subject) == -1:
            return SubjectStatus.UNPREDICTED
        if self.check(subject, community_context).stale:
            return SubjectStatus.STALE
        return SubjectStatus.CURRENT

    def decide(self, subject: SubjectKey, max_repredictions: Optional[int] = None) -> RepredictionDecision:
        """What to do for a subject on this run.

        max_repredictions caps the reprediction index: once the latest index
        reaches it, a stale subject is skipped instead of regenerated.
        """
        current = self.get_current_index(subject)
        if current == -1:
            return RepredictionDecision(
                action=RepredictionAction.PREDICT_FIRST,
                status=SubjectStatus.UNPREDICTED,
                current_index=-1,
                next_index=0,
            )

        result = self.check(subject)
        if not result.stale:
            return RepredictionDecision(
                action=RepredictionAction.SKIP_CURRENT,
                status=SubjectStatus.CURRENT,
                current_index=current,
                next_index=current + 1,
                warnings=result.warnings,
            )

        if max_repredictions is not None and current >= max_repredictions:
            logger.info(
                "max_repredictions_reached",
                entity_id=subject.entity_id,
                model=subject.model,
                index=current,
                max_repredictions=max_repredictions,
            )
            action = RepredictionAction.SKIP_MAX_REACHED
        else:
            action = RepredictionAction.REPREDICT

        return RepredictionDecision(
            action=action,
            status=SubjectStatus.STALE,
            current_index=current,
            next_index=current + 1,
            warnings=result.warnings,
        )
