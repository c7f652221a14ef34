"""Line diffs between the latest and previous version of context documents."""

import difflib
import random
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Optional

import structlog

from .documents import DocumentStore
from .errors import LedgerError
from .models import ContextDocument

logger = structlog.get_logger()


class DiffKind(StrEnum):
    UNCHANGED = "unchanged"
    ADDED = "added"
    REMOVED = "removed"


@dataclass
class DiffLine:
    kind: DiffKind
    line_number: int
    content: str


@dataclass
class DocumentChange:
    name: str
    previous: ContextDocument
    latest: ContextDocument
    lines: list[DiffLine] = field(default_factory=list)

    @property
    def added(self) -> list[str]:
        return [d.content for d in self.lines if d.kind == DiffKind.ADDED]

    @property
    def removed(self) -> list[str]:
        return [d.content for d in self.lines if d.kind == DiffKind.REMOVED]


def diff_lines(old: str, new: str) -> list[DiffLine]:
    """Line-level diff; numbers refer to the old text for removals, new text otherwise."""
    old_lines = old.split("\n")
    new_lines = new.split("\n")
    result: list[DiffLine] = []
    matcher = difflib.SequenceMatcher(a=old_lines, b=new_lines, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            result.extend(
                DiffLine(DiffKind.UNCHANGED, j + 1, new_lines[j]) for j in range(j1, j2)
            )
            continue
        if tag in ("replace", "delete"):
            result.extend(DiffLine(DiffKind.REMOVED, i + 1, old_lines[i]) for i in range(i1, i2))
        if tag in ("replace", "insert"):
            result.extend(DiffLine(DiffKind.ADDED, j + 1, new_lines[j]) for j in range(j1, j2))
    return result


def latest_change(documents: DocumentStore, name: str, community_context: str) -> Optional[DocumentChange]:
    """Diff of the newest version against its predecessor, None if there is none."""
    latest = documents.get_latest(name, community_context)
    if latest is None or latest.version <= 1:
        return None
    previous = documents.get_version(name, latest.version - 1, community_context)
    if previous is None or previous.content == latest.content:
        return None
    return DocumentChange(name, previous, latest, diff_lines(previous.content, latest.content))


def select_documents(names: list[str], count: int, seed: Optional[int] = None) -> list[str]:
    """All names when count covers them, else a random sample (seedable)."""
    if len(names) <= count:
        return list(names)
    return random.Random(seed).sample(names, count)


def context_changes(
    documents: DocumentStore,
    community_context: str,
    count: int = 10,
    seed: Optional[int] = None,
) -> list[DocumentChange]:
    names = select_documents(documents.list_names(community_context), count, seed)
    changes = []
    for name in names:
        try:
            change = latest_change(documents, name, community_context)
        except LedgerError as e:
            logger.warning("context_change_failed", document=name, error=str(e))
            continue
        if change is not None:
            changes.append(change)
    logger.debug("context_changes_collected", checked=len(names), changed=len(changes))
    return changes
