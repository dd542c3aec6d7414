"""Path index domain: entries, snapshot store, and the background indexer."""

from __future__ import annotations

from .indexer import DirectoryIndexer, WalkItem
from .store import DirectoryListing, IndexSnapshot, PathIndex, ReconcileReport
from .types import Entry, ScanPhase, ScanState, ScanStatus

__all__ = [
    "DirectoryIndexer",
    "DirectoryListing",
    "Entry",
    "IndexSnapshot",
    "PathIndex",
    "ReconcileReport",
    "ScanPhase",
    "ScanState",
    "ScanStatus",
    "WalkItem",
]
