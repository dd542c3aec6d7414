"""Domain datatypes for indexed entries and scan lifecycle."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field

from ..errors import ProviderError
from ..providers.base import EntryKind


@dataclass(frozen=True)
class Entry:
    """One indexed filesystem node, replaced (never mutated) when it changes."""

    path: str
    kind: EntryKind
    size: int | None
    mtime_ns: int | None
    generation: int

    @property
    def name(self) -> str:
        return self.path.rpartition("/")[2]

    @property
    def normalized_name(self) -> str:
        return self.name.casefold()

    @property
    def is_directory(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    def same_metadata(self, kind: EntryKind, size: int | None, mtime_ns: int | None) -> bool:
        return self.kind is kind and self.size == size and self.mtime_ns == mtime_ns


class ScanPhase(enum.Enum):
    NOT_STARTED = "not started"
    SCANNING = "scanning"
    IDLE = "idle"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class ScanState:
    """Indexer lifecycle marker; ``error`` is set only for ``DEGRADED``."""

    phase: ScanPhase = ScanPhase.NOT_STARTED
    error: ProviderError | None = None

    @classmethod
    def degraded(cls, error: ProviderError) -> ScanState:
        return cls(ScanPhase.DEGRADED, error)

    @property
    def is_degraded(self) -> bool:
        return self.phase is ScanPhase.DEGRADED

    def label(self) -> str:
        if self.error is not None:
            return f"{self.phase.value}: {self.error}"
        return self.phase.value


@dataclass(frozen=True)
class ScanStatus:
    """Progress snapshot rendered by the UI's scanning indicator."""

    state: ScanState
    indexed_entries: int
    indexed_files: int
    pending_directories: int
    failed_directories: Mapping[str, ProviderError] = field(default_factory=dict)
    last_scan_seconds: float | None = None


__all__ = ["Entry", "ScanPhase", "ScanState", "ScanStatus"]
