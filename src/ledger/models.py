"""Data models for context documents and versioned prediction records."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from shared_types import RepredictionAction, SubjectKind, SubjectStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Coerce a datetime to aware UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class ContextDocument:
    name: str
    content: str
    version: int
    created_at: datetime
    community_context: str = ""


@dataclass(frozen=True)
class SubjectKey:
    """Identity a prediction is computed for.

    entity_id names a match or a bonus question; kind picks the cost
    category and keeps match and bonus histories apart.
    """

    entity_id: str
    model: str
    community_context: str
    kind: SubjectKind = SubjectKind.MATCH


@dataclass
class PredictionRecord:
    subject: SubjectKey
    reprediction_index: int
    value: Any
    created_at: datetime
    dependency_document_names: list[str] = field(default_factory=list)
    cost: float = 0.0
    token_usage: str = ""
    group: str | None = None


@dataclass
class PredictionMetadata:
    created_at: datetime | None
    dependency_document_names: list[str] = field(default_factory=list)


@dataclass
class LatestPrediction:
    value: Any
    index: int


@dataclass
class CostBucket:
    cost: float = 0.0
    count: int = 0

    def __add__(self, other: "CostBucket") -> "CostBucket":
        return CostBucket(self.cost + other.cost, self.count + other.count)

    @property
    def is_empty(self) -> bool:
        return self.count == 0 and self.cost == 0


@dataclass
class StalenessResult:
    stale: bool
    warnings: list[str] = field(default_factory=list)
    stale_documents: list[str] = field(default_factory=list)


@dataclass
class RepredictionDecision:
    action: RepredictionAction
    status: SubjectStatus
    current_index: int
    next_index: int
    warnings: list[str] = field(default_factory=list)

    @property
    def should_predict(self) -> bool:
        return self.action in (RepredictionAction.PREDICT_FIRST, RepredictionAction.REPREDICT)


@dataclass
class GenerationResult:
    """Output of the external generation service for one subject."""

    value: Any
    cost: float
    token_usage: str
    document_names: list[str] = field(default_factory=list)
    group: str | None = None


def match_entity_id(home_team: str, away_team: str, starts_at: datetime) -> str:
    """Deterministic match id from team names and kickoff instant."""
    home = home_team.replace(" ", "_").replace(".", "")
    away = away_team.replace(" ", "_").replace(".", "")
    return f"{home}_{away}_{int(to_utc(starts_at).timestamp())}"


def bonus_entity_id(question_text: str) -> str:
    """Bonus questions are keyed by their text so re-issued form ids share history."""
    return " ".join(question_text.split()).casefold()
