"""
Versioned snapshot comparison.

A snapshot is anything with a `version` (int) and `documents` (id -> dict),
e.g. streetart.api.documents.CollectionSnapshot.
"""

from dataclasses import dataclass
from typing import Any, Protocol

ADDED = "added"
CHANGED = "changed"
REMOVED = "removed"


class Snapshot(Protocol):
    version: int
    documents: dict[str, dict[str, Any]]


@dataclass(frozen=True)
class SnapshotChange:
    id: str
    kind: str  # added | changed | removed
    previous: dict[str, Any] | None
    current: dict[str, Any] | None

    def field_changed(self, key: str) -> bool:
        before = (self.previous or {}).get(key)
        after = (self.current or {}).get(key)
        return before != after


def diff_snapshots(previous: Snapshot | None, current: Snapshot) -> list[SnapshotChange]:
    """
    Document-level changes from previous to current, ordered by id.
    A missing previous snapshot means everything in current was added.
    Equal versions mean nothing changed, whatever the documents say.
    """
    if previous is not None and previous.version == current.version:
        return []
    before = previous.documents if previous is not None else {}
    after = current.documents

    changes = []
    for doc_id in sorted(set(before) | set(after)):
        old = before.get(doc_id)
        new = after.get(doc_id)
        if old is None and new is not None:
            changes.append(SnapshotChange(doc_id, ADDED, None, new))
        elif old is not None and new is None:
            changes.append(SnapshotChange(doc_id, REMOVED, old, None))
        elif old != new:
            changes.append(SnapshotChange(doc_id, CHANGED, old, new))
    return changes
