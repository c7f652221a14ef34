"""Shared enums and types for the prediction ledger."""

from enum import StrEnum


class SubjectKind(StrEnum):
    MATCH = "match"
    BONUS = "bonus"


class SubjectStatus(StrEnum):
    UNPREDICTED = "unpredicted"
    STALE = "stale"
    CURRENT = "current"


class RepredictionAction(StrEnum):
    PREDICT_FIRST = "predict_first"
    REPREDICT = "repredict"
    SKIP_CURRENT = "skip_current"
    SKIP_MAX_REACHED = "skip_max_reached"
