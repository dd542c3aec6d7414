"""Background directory indexer.

Walks a provider breadth-first with a bounded listing pool, reconciles each
directory into the shared ``PathIndex``, and keeps it fresh from watch events
or timed fallback re-scans. Nothing here ever blocks a quick-open reader: the
only shared state readers touch is the index snapshot pointer.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from collections import deque
from collections.abc import Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass

from ..config import IndexerSettings
from ..errors import Cancelled, NotFound, PermissionDenied, ProviderError, error_kind
from ..providers.base import (
    ChangeEvent,
    FilesystemProvider,
    ListedChild,
    is_within,
    normalize_relative,
    parent_of,
)
from .store import DirectoryListing, PathIndex, ReconcileReport
from .types import ScanPhase, ScanState, ScanStatus

logger = logging.getLogger(__name__)

WALK_POLL_SECONDS = 0.05


@dataclass(frozen=True)
class WalkItem:
    """One directory to list; ``recursive`` walks every listed subdirectory too."""

    directory: str
    recursive: bool = True


class DirectoryIndexer:
    """Maintain ``index`` as an eventually-consistent mirror of ``provider``."""

    def __init__(
        self,
        provider: FilesystemProvider,
        index: PathIndex | None = None,
        settings: IndexerSettings | None = None,
    ) -> None:
        self.provider = provider
        self.index = index if index is not None else PathIndex()
        self.settings = settings if settings is not None else IndexerSettings()
        self.workers = self.settings.workers_for(provider.is_remote)

        self._lock = threading.Lock()
        self._state_changed = threading.Condition(self._lock)
        self._state = ScanState()
        self._frontier: deque[WalkItem] = deque()
        self._in_flight = 0
        self._failed: dict[str, ProviderError] = {}
        self._root_error: ProviderError | None = None
        self._provider_error: ProviderError | None = None
        self._generations = itertools.count(1)
        self._walk_running = False
        self._walk_cancel: threading.Event | None = None
        self._walk_serial = 0
        self._paused = True
        self._closed = threading.Event()
        self._monitor: threading.Thread | None = None
        self._scan_started_at: float | None = None
        self._last_scan_seconds: float | None = None

    # lifecycle
    @property
    def state(self) -> ScanState:
        with self._lock:
            return self._state

    def start(self, *, monitor: bool = True) -> None:
        """Begin (or resume from the pending frontier) the background walk."""
        if self._closed.is_set():
            raise Cancelled("indexer is closed")
        with self._lock:
            self._paused = False
            if not self._frontier and not self._walk_running and self._state.phase is ScanPhase.NOT_STARTED:
                self._frontier.append(WalkItem(""))
                logger.info("scan started for %s with %d workers", self.provider.display_root, self.workers)
            if self._frontier:
                self._set_state_locked(ScanState(ScanPhase.SCANNING))
            self._ensure_walk_locked()
            start_monitor = monitor and self._monitor is None
            if start_monitor:
                self._monitor = threading.Thread(
                    target=self._run_monitor,
                    name="farviewer-index-monitor",
                    daemon=True,
                )
        if start_monitor:
            assert self._monitor is not None
            self._monitor.start()

    def cancel(self) -> None:
        """Stop the current walk, keeping its frontier so ``start`` resumes it."""
        with self._lock:
            self._paused = True
            self._detach_walk_locked()

    def close(self) -> None:
        """Cancel all background work for good (application exit or root close)."""
        self._closed.set()
        self.cancel()
        with self._lock:
            self._state_changed.notify_all()

    def rescan(self, path: str | None = None) -> None:
        """Trigger a re-scan of the whole tree (``None``) or of one directory.

        A directory re-scan lists only that directory; subdirectories that
        were not indexed before are walked in full.
        """
        if self._closed.is_set():
            return
        with self._lock:
            if path is None:
                self._frontier.clear()
                self._frontier.append(WalkItem(""))
                self._provider_error = None
            else:
                self._frontier.append(WalkItem(normalize_relative(path), recursive=False))
            self._set_state_locked(ScanState(ScanPhase.SCANNING))
            self._ensure_walk_locked()

    def wait_for_scan(self, timeout_seconds: float | None = None) -> ScanState:
        """Block until the current walk settles (idle or degraded) or timeout."""
        deadline = None if timeout_seconds is None else time.monotonic() + timeout_seconds
        with self._lock:
            while self._walk_running or self._state.phase in (ScanPhase.NOT_STARTED, ScanPhase.SCANNING):
                if self._closed.is_set() or (self._paused and not self._walk_running):
                    break
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    break
                self._state_changed.wait(remaining)
            return self._state

    def status(self) -> ScanStatus:
        snapshot = self.index.snapshot()
        with self._lock:
            return ScanStatus(
                state=self._state,
                indexed_entries=len(snapshot),
                indexed_files=snapshot.file_count,
                pending_directories=len(self._frontier) + self._in_flight,
                failed_directories=dict(self._failed),
                last_scan_seconds=self._last_scan_seconds,
            )

    # state helpers (lock held)
    def _set_state_locked(self, state: ScanState) -> None:
        if state == self._state:
            return
        if state.phase is ScanPhase.SCANNING and self._state.phase is not ScanPhase.SCANNING:
            self._scan_started_at = time.monotonic()
        self._state = state
        self._state_changed.notify_all()

    def _ensure_walk_locked(self) -> None:
        if self._walk_running or self._paused or self._closed.is_set() or not self._frontier:
            return
        cancel = threading.Event()
        self._walk_running = True
        self._walk_cancel = cancel
        self._walk_serial += 1
        walker = threading.Thread(
            target=self._run_walk,
            args=(cancel,),
            name=f"farviewer-index-walk-{self._walk_serial}",
            daemon=True,
        )
        walker.start()

    def _detach_walk_locked(self) -> None:
        if self._walk_cancel is not None:
            self._walk_cancel.set()
        self._walk_cancel = None
        self._walk_running = False
        self._in_flight = 0
        self._state_changed.notify_all()

    def _finish_walk_locked(self) -> None:
        self._walk_running = False
        self._walk_cancel = None
        if self._scan_started_at is not None:
            self._last_scan_seconds = time.monotonic() - self._scan_started_at
        error = self._provider_error or self._root_error
        if error is not None:
            self._set_state_locked(ScanState.degraded(error))
            logger.warning("index degraded for %s: %s", self.provider.display_root, error)
        else:
            self._set_state_locked(ScanState(ScanPhase.IDLE))
            logger.info(
                "scan finished for %s: %d entries in %.2fs",
                self.provider.display_root,
                len(self.index.snapshot()),
                self._last_scan_seconds or 0.0,
            )
        self._state_changed.notify_all()

    # walking
    def _include_name(self, name: str) -> bool:
        return self.settings.show_hidden or not name.startswith(".")

    def _visible(self, children: list[ListedChild]) -> tuple[ListedChild, ...]:
        if self.settings.show_hidden:
            return tuple(children)
        return tuple(child for child in children if self._include_name(child.name))

    def _list_with_retry(self, directory: str, cancel: threading.Event) -> list[ListedChild]:
        """List ``directory``, retrying retryable errors with exponential backoff."""
        delay = self.settings.backoff_initial_seconds
        attempt = 0
        while True:
            if cancel.is_set():
                raise Cancelled(directory)
            try:
                return self.provider.list(directory)
            except ProviderError as exc:
                if not exc.retryable or attempt >= self.settings.max_retries:
                    raise
                attempt += 1
                logger.info(
                    "retrying list of %r after %s (attempt %d/%d, %.2fs)",
                    directory or "/",
                    error_kind(exc),
                    attempt,
                    self.settings.max_retries,
                    delay,
                )
                if cancel.wait(delay):
                    raise Cancelled(directory) from exc
                delay = min(delay * 2, self.settings.backoff_max_seconds)

    def _run_walk(self, cancel: threading.Event) -> None:
        executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="farviewer-list")
        in_flight: dict[Future[list[ListedChild]], WalkItem] = {}
        try:
            while not cancel.is_set():
                with self._lock:
                    while self._frontier and len(in_flight) < self.workers:
                        item = self._frontier.popleft()
                        in_flight[executor.submit(self._list_with_retry, item.directory, cancel)] = item
                    self._in_flight = len(in_flight)
                    if not in_flight:
                        if self._walk_cancel is cancel:
                            self._finish_walk_locked()
                        return

                done, _pending = wait(list(in_flight), timeout=WALK_POLL_SECONDS, return_when=FIRST_COMPLETED)
                if not done or cancel.is_set():
                    continue
                listings: list[tuple[DirectoryListing, WalkItem]] = []
                for future in done:
                    item = in_flight.pop(future)
                    try:
                        children = future.result()
                    except Cancelled:
                        in_flight[future] = item
                        break
                    except ProviderError as exc:
                        if self._handle_list_failure(item, exc, cancel):
                            in_flight[future] = item
                            break
                        continue
                    except Exception as exc:
                        logger.error("unexpected failure listing %r", item.directory or "/", exc_info=exc)
                        self._handle_list_failure(
                            item,
                            ProviderError(f"{type(exc).__name__}: {exc}", item.directory),
                            cancel,
                        )
                        continue
                    listings.append(
                        (
                            DirectoryListing(
                                directory=item.directory,
                                children=self._visible(children),
                                generation=next(self._generations),
                            ),
                            item,
                        )
                    )
                reports = self.index.apply_listings(listing for listing, _item in listings)
                self._after_reconcile(zip(reports, (item for _listing, item in listings)))
        except Exception as exc:
            logger.exception("index walk for %s stopped unexpectedly", self.provider.display_root)
            with self._lock:
                if self._walk_cancel is cancel:
                    self._provider_error = ProviderError(f"{type(exc).__name__}: {exc}")
                    self._set_state_locked(ScanState.degraded(self._provider_error))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
            with self._lock:
                # Unfinished directories go back to the front so a resumed walk
                # restarts from the same boundary.
                for item in in_flight.values():
                    self._frontier.appendleft(item)
                if self._walk_cancel is cancel:
                    self._detach_walk_locked()
                else:
                    # Detached earlier; a resume may already be waiting on these items.
                    self._ensure_walk_locked()
                self._state_changed.notify_all()

    def _after_reconcile(self, results: Iterable[tuple[ReconcileReport, WalkItem]]) -> None:
        with self._lock:
            for report, item in results:
                if not report.attached:
                    continue
                self._provider_error = None
                self._failed.pop(report.directory, None)
                if not report.directory:
                    self._root_error = None
                for removed in report.removed:
                    for failed in [key for key in self._failed if is_within(key, removed)]:
                        del self._failed[failed]
                for subdirectory in report.subdirectories:
                    if item.recursive or not self.index.has_listing(subdirectory):
                        self._frontier.append(WalkItem(subdirectory))

    def _handle_list_failure(self, item: WalkItem, exc: ProviderError, cancel: threading.Event) -> bool:
        """Contain one directory's failure; return ``True`` when the walk must stop."""
        directory = item.directory
        if exc.retryable:
            logger.warning(
                "giving up on %r after %d retries: %s; marking provider degraded",
                directory or "/",
                self.settings.max_retries,
                exc,
            )
            with self._lock:
                self._provider_error = exc
                self._set_state_locked(ScanState.degraded(exc))
            cancel.set()
            return True

        if not directory:
            with self._lock:
                self._root_error = exc
            if isinstance(exc, NotFound):
                removed = self.index.evict("")
                logger.warning("root %s is gone; evicted %d entries", self.provider.display_root, removed)
            else:
                logger.warning("cannot list root %s: %s", self.provider.display_root, exc)
            return False

        if isinstance(exc, NotFound):
            self.index.evict(directory)
            with self._lock:
                for failed in [key for key in self._failed if is_within(key, directory)]:
                    del self._failed[failed]
            logger.info("directory %r vanished; evicted", directory)
            return False

        if isinstance(exc, PermissionDenied):
            self.index.evict(directory, keep_entry=True)
        with self._lock:
            self._failed[directory] = exc
        logger.warning("skipping %r: %s", directory, exc)
        return False

    # change monitoring
    def _wait_for_first_walk(self) -> None:
        while not self._closed.is_set():
            self.wait_for_scan()
            with self._lock:
                if not self._paused and not self._walk_running:
                    return
            self._closed.wait(WALK_POLL_SECONDS)

    def _run_monitor(self) -> None:
        # The watch baseline must not overlap the first walk.
        self._wait_for_first_walk()
        watching = threading.Event()
        if self.provider.supports_watch and not self._closed.is_set():
            try:
                events = self.provider.watch("", stop=self._closed, include_name=self._include_name)
            except ProviderError as exc:
                logger.info("watch unavailable for %s (%s); using timed re-scans", self.provider.display_root, exc)
            else:
                watching.set()
                # Catch changes made between the first walk and the baseline.
                self.rescan()
                threading.Thread(
                    target=self._consume_watch,
                    args=(events, watching),
                    name="farviewer-index-watch",
                    daemon=True,
                ).start()

        interval = self.settings.rescan_interval_seconds
        while not self._closed.wait(interval):
            with self._lock:
                idle = not self._walk_running and not self._paused
                degraded = self._state.is_degraded
            if idle and (degraded or not watching.is_set()):
                self.rescan()

    def _consume_watch(self, events: Iterable[ChangeEvent], watching: threading.Event) -> None:
        try:
            for event in events:
                if self._closed.is_set():
                    return
                self.rescan(event.path)
                if event.removed and event.path:
                    self.rescan(parent_of(event.path))
        except ProviderError as exc:
            logger.info("watch for %s stopped (%s); using timed re-scans", self.provider.display_root, exc)
        finally:
            watching.clear()


__all__ = ["DirectoryIndexer", "WalkItem"]
