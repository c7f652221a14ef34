"""Ledger error hierarchy."""

import sqlite3
from contextlib import contextmanager

import structlog

logger = structlog.get_logger()


class LedgerError(Exception):
    """Base ledger error."""


class StoreUnavailable(LedgerError):
    """Backing store could not be read or written (transient)."""


class ConcurrencyConflict(LedgerError):
    """A reprediction index slot was taken by a concurrent writer."""

    def __init__(self, message: str, index: int | None = None):
        super().__init__(message)
        self.index = index


@contextmanager
def store_errors(operation: str, **fields):
    """Translate SQLite failures into StoreUnavailable.

    IntegrityError passes through untouched; callers use it to detect an
    occupied slot on conditional inserts.
    """
    try:
        yield
    except sqlite3.IntegrityError:
        raise
    except sqlite3.DatabaseError as e:
        logger.error("store_unavailable", operation=operation, error=str(e), **fields)
        raise StoreUnavailable(f"{operation} failed: {e}") from e
