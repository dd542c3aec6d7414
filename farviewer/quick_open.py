"""Quick-open session: sequenced, cancellable fuzzy queries over the index.

Each keystroke gets the next sequence number. One daemon worker per session
scores the newest query against a single index snapshot; superseded work is
abandoned between candidates, and a result is delivered only if its sequence
number is still the newest when scoring finishes. The UI drains delivered
results from a queue (or receives them through ``on_result``).
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from queue import Empty, Queue

from .config import QuickOpenSettings
from .errors import Cancelled
from .index.store import IndexSnapshot, PathIndex
from .index.types import Entry, ScanPhase, ScanState
from .search.fuzzy import rank_candidates

logger = logging.getLogger(__name__)


class SessionPhase(enum.Enum):
    IDLE = "idle"
    PENDING = "pending"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


@dataclass(frozen=True)
class SessionState:
    phase: SessionPhase = SessionPhase.IDLE
    seq: int = 0


@dataclass(frozen=True)
class Query:
    """User-entered text plus its position in the session's total order."""

    text: str
    seq: int


@dataclass(frozen=True)
class RankedItem:
    entry: Entry
    score: int

    @property
    def path(self) -> str:
        return self.entry.path


@dataclass(frozen=True)
class RankedResult:
    """Top-K matches for one query, plus the scan context they were computed in."""

    query: Query
    items: tuple[RankedItem, ...]
    scan_state: ScanState
    candidate_count: int
    snapshot_version: int

    @property
    def seq(self) -> int:
        return self.query.seq

    @property
    def paths(self) -> list[str]:
        return [item.path for item in self.items]

    @property
    def incomplete(self) -> bool:
        """Whether an empty result may reflect an unfinished or failed scan, not "no matches"."""
        return self.scan_state.phase is not ScanPhase.IDLE


def rank_snapshot(
    query: Query,
    snapshot: IndexSnapshot,
    limit: int,
    should_cancel: Callable[[], bool] | None = None,
) -> tuple[RankedItem, ...]:
    """Score every candidate of ``snapshot`` for ``query`` and keep the top ``limit``."""
    if not query.text.strip():
        return ()
    ranked = rank_candidates(
        query.text,
        snapshot.candidates,
        lambda entry: entry.path,
        limit=limit,
        should_cancel=should_cancel,
    )
    return tuple(RankedItem(entry=entry, score=score) for entry, score in ranked)


class QuickOpenSession:
    """Per-interaction controller fed by ``on_query_changed`` on every keystroke."""

    def __init__(
        self,
        index: PathIndex,
        settings: QuickOpenSettings | None = None,
        *,
        scan_state: Callable[[], ScanState] | None = None,
        on_result: Callable[[RankedResult], None] | None = None,
    ) -> None:
        self.index = index
        self.settings = settings if settings is not None else QuickOpenSettings()
        self._scan_state = scan_state if scan_state is not None else (lambda: ScanState(ScanPhase.IDLE))
        self._on_result = on_result
        self._lock = threading.Lock()
        self._delivered = threading.Condition(self._lock)
        self._closed = threading.Event()
        self._latest_seq = 0
        self._delivered_seq = 0
        self._pending: Query | None = None
        self._running = False
        self._state = SessionState()
        self._last_result: RankedResult | None = None
        self._results: Queue[RankedResult] = Queue()

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def last_result(self) -> RankedResult | None:
        with self._lock:
            return self._last_result

    def on_query_changed(self, text: str) -> int:
        """Register the latest query text and return its sequence number.

        Any older query still pending or being scored is superseded.
        """
        if self._closed.is_set():
            raise Cancelled("quick-open session is closed")
        with self._lock:
            self._latest_seq += 1
            query = Query(text=text, seq=self._latest_seq)
            self._pending = query
            self._state = SessionState(SessionPhase.PENDING, query.seq)
            if self._running:
                return query.seq
            self._running = True

        worker = threading.Thread(
            target=self._worker,
            name="farviewer-quick-open",
            daemon=True,
        )
        worker.start()
        return query.seq

    def _is_superseded(self, seq: int) -> bool:
        return self._closed.is_set() or self._latest_seq != seq

    def _worker(self) -> None:
        """Drain pending queries until none is left, newest first."""
        while True:
            with self._lock:
                query = self._pending
                self._pending = None
                if query is None or self._closed.is_set():
                    self._running = False
                    return

            debounce = self.settings.debounce_seconds
            if debounce > 0 and self._closed.wait(debounce):
                continue
            if self._is_superseded(query.seq):
                self._mark_cancelled(query)
                continue

            snapshot = self.index.snapshot()
            try:
                items = rank_snapshot(
                    query,
                    snapshot,
                    self.settings.result_limit,
                    should_cancel=lambda seq=query.seq: self._is_superseded(seq),
                )
            except Cancelled:
                self._mark_cancelled(query)
                continue

            result = RankedResult(
                query=query,
                items=items,
                scan_state=self._scan_state(),
                candidate_count=snapshot.file_count,
                snapshot_version=snapshot.version,
            )
            self._deliver(result)

    def _mark_cancelled(self, query: Query) -> None:
        logger.debug("quick-open query %d (%r) superseded", query.seq, query.text)
        with self._lock:
            if self._state.seq == query.seq:
                self._state = SessionState(SessionPhase.CANCELLED, query.seq)

    def _deliver(self, result: RankedResult) -> None:
        with self._lock:
            if self._is_superseded(result.seq) or result.seq <= self._delivered_seq:
                stale = True
            else:
                stale = False
                self._delivered_seq = result.seq
                self._last_result = result
                self._state = SessionState(SessionPhase.COMPLETED, result.seq)
                self._results.put(result)
                self._delivered.notify_all()
        if stale:
            self._mark_cancelled(result.query)
            return
        if self._on_result is not None:
            self._on_result(result)

    def drain_results(self) -> list[RankedResult]:
        """Drain delivered results in delivery (ascending sequence) order."""
        out: list[RankedResult] = []
        while True:
            try:
                out.append(self._results.get_nowait())
            except Empty:
                break
        return out

    def wait_for_result(self, seq: int | None = None, timeout_seconds: float | None = None) -> RankedResult | None:
        """Block until a result at or after ``seq`` (default: newest query) is delivered."""
        deadline = None if timeout_seconds is None else time.monotonic() + timeout_seconds
        with self._lock:
            target = self._latest_seq if seq is None else seq
            while self._delivered_seq < target and not self._closed.is_set():
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return None
                self._delivered.wait(remaining)
            if self._delivered_seq < target:
                return None
            return self._last_result

    def close(self) -> None:
        """Stop the session; in-flight scoring is abandoned silently."""
        self._closed.set()
        with self._lock:
            self._pending = None
            if self._state.phase is SessionPhase.PENDING:
                self._state = SessionState(SessionPhase.CANCELLED, self._state.seq)
            self._delivered.notify_all()


__all__ = [
    "Query",
    "QuickOpenSession",
    "RankedItem",
    "RankedResult",
    "SessionPhase",
    "SessionState",
    "rank_snapshot",
]
