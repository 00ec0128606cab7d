"""Record building and versioned snapshot storage."""

from .builder import RecordBuilder
from .store import (
    MergeResult,
    PropertyEntry,
    PropertyIndex,
    SnapshotGroup,
    SnapshotRow,
    SnapshotStore,
)

__all__ = [
    "MergeResult",
    "PropertyEntry",
    "PropertyIndex",
    "RecordBuilder",
    "SnapshotGroup",
    "SnapshotRow",
    "SnapshotStore",
]
