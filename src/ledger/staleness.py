"""Dependency-driven staleness evaluation.

A prediction is stale when any document it was built from has a version
created after the prediction. Every form of uncertainty (no metadata, a
missing document, a failing lookup) resolves to "not stale".
"""

from typing import Callable, Iterable, Optional

import structlog

from .models import ContextDocument, PredictionMetadata, StalenessResult, to_utc

logger = structlog.get_logger()

DocumentLookup = Callable[[str], Optional[ContextDocument]]

DEFAULT_SKIP_DOCUMENTS = ("bundesliga-standings.csv",)


def normalize_document_name(name: str) -> str:
    """Strip a trailing display label: "doc.csv (Home team)" -> "doc.csv"."""
    idx = name.rfind(" (")
    if idx > 0 and name.endswith(")"):
        return name[:idx]
    return name


def _skip_set(skip_documents: Iterable[str]) -> set[str]:
    return {normalize_document_name(n).casefold() for n in skip_documents}


def is_stale(
    metadata: Optional[PredictionMetadata],
    lookup: DocumentLookup,
    skip_documents: Iterable[str] = DEFAULT_SKIP_DOCUMENTS,
) -> StalenessResult:
    """Decide whether a prediction needs regeneration.

    Never raises. A lookup failure for one dependency becomes a warning and
    that dependency counts as fresh.
    """
    if metadata is None or metadata.created_at is None:
        return StalenessResult(stale=False)

    result = StalenessResult(stale=False)
    try:
        predicted_at = to_utc(metadata.created_at)
        skip = _skip_set(skip_documents)
    except Exception as e:
        logger.warning("staleness_metadata_invalid", error=str(e))
        result.warnings.append(f"Cannot evaluate staleness: {e}")
        return result

    for raw_name in metadata.dependency_document_names:
        name = raw_name
        try:
            name = normalize_document_name(raw_name)
            if name.casefold() in skip:
                continue

            document = lookup(name)
            if document is None:
                logger.warning("dependency_not_found", document=name)
                result.warnings.append(f"Context document {name} not found (dependency not found)")
                continue

            if to_utc(document.created_at) > predicted_at:
                result.stale = True
                result.stale_documents.append(name)
        except Exception as e:
            logger.warning("dependency_check_failed", document=name, error=str(e))
            result.warnings.append(f"Failed to check dependency {name}: {e}")

    if result.stale:
        logger.debug("prediction_stale", documents=result.stale_documents)
    return result


def document_lookup(documents, community_context: str) -> DocumentLookup:
    """Adapt a DocumentStore into a name -> latest document callable."""

    def _lookup(name: str) -> Optional[ContextDocument]:
        return documents.get_latest(name, community_context)

    return _lookup
