"""One opened root: provider, background indexer, and quick-open sessions.

This is the surface handed to the UI: open quick-open on the key binding,
feed it keystrokes, read files for preview, and render the scan indicator.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import BinaryIO

from .config import Settings
from .errors import Cancelled
from .index.indexer import DirectoryIndexer
from .index.store import PathIndex
from .index.types import ScanState, ScanStatus
from .providers.base import FilesystemProvider, normalize_relative
from .quick_open import QuickOpenSession, RankedResult
from .target import Target, open_provider

logger = logging.getLogger(__name__)


class Workspace:
    """Owns the provider and indexer for one target until ``close``."""

    def __init__(self, target: Target, provider: FilesystemProvider, settings: Settings | None = None) -> None:
        self.target = target
        self.provider = provider
        self.settings = settings if settings is not None else Settings()
        self.index = PathIndex()
        self.indexer = DirectoryIndexer(provider, self.index, self.settings.indexer)
        self._lock = threading.Lock()
        self._session: QuickOpenSession | None = None
        self._closed = False

    @classmethod
    def open(
        cls,
        target: Target,
        settings: Settings | None = None,
        provider: FilesystemProvider | None = None,
        *,
        monitor: bool = True,
    ) -> Workspace:
        """Create the provider (unless given) and start background indexing."""
        settings = settings if settings is not None else Settings()
        if provider is None:
            provider = open_provider(target, settings)
        workspace = cls(target, provider, settings)
        logger.info("opening %s", provider.display_root)
        workspace.indexer.start(monitor=monitor)
        return workspace

    @property
    def scan_state(self) -> ScanState:
        return self.indexer.state

    def status(self) -> ScanStatus:
        return self.indexer.status()

    def rescan(self, path: str | None = None) -> None:
        self.indexer.rescan(path)

    def wait_for_scan(self, timeout_seconds: float | None = None) -> ScanState:
        return self.indexer.wait_for_scan(timeout_seconds)

    def open_quick_open(self, on_result: Callable[[RankedResult], None] | None = None) -> QuickOpenSession:
        """Start a quick-open interaction, closing any previous one."""
        with self._lock:
            if self._closed:
                raise Cancelled("workspace is closed")
            previous = self._session
            session = QuickOpenSession(
                self.index,
                self.settings.quick_open,
                scan_state=lambda: self.indexer.state,
                on_result=on_result,
            )
            self._session = session
        if previous is not None:
            previous.close()
        return session

    def read_file(self, path: str) -> BinaryIO:
        """Open ``path`` (relative to the root) through the active provider."""
        return self.provider.read_file(normalize_relative(path))

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            session = self._session
            self._session = None
        if session is not None:
            session.close()
        self.indexer.close()
        self.provider.close()
        logger.info("closed %s", self.provider.display_root)

    def __enter__(self) -> Workspace:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


__all__ = ["Workspace"]
