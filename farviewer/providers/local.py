"""Local-disk provider backed by ``os.scandir``."""

from __future__ import annotations

import os
import stat as stat_module
import threading
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import BinaryIO

from ..errors import NotFound, PermissionDenied, ProviderError, TransportError
from .base import (
    ChangeEvent,
    EntryKind,
    FilesystemProvider,
    ListedChild,
    call_with_timeout,
    normalize_relative,
)
from .watch import poll_directory_changes


def translate_os_error(exc: OSError, path: str) -> ProviderError:
    """Map an ``OSError`` raised for ``path`` onto the provider taxonomy."""
    if isinstance(exc, (FileNotFoundError, NotADirectoryError)):
        return NotFound(exc.strerror or "no such file or directory", path)
    if isinstance(exc, PermissionError):
        return PermissionDenied(exc.strerror or "permission denied", path)
    return TransportError(exc.strerror or str(exc), path)


def _kind_for_mode(mode: int) -> EntryKind | None:
    if stat_module.S_ISLNK(mode):
        return EntryKind.SYMLINK
    if stat_module.S_ISDIR(mode):
        return EntryKind.DIRECTORY
    if stat_module.S_ISREG(mode):
        return EntryKind.FILE
    return None


class LocalProvider(FilesystemProvider):
    """Provider for a directory tree on the local machine.

    Watching is emulated by polling per-directory metadata signatures.
    """

    is_remote = False
    supports_watch = True

    def __init__(
        self,
        root: Path,
        call_timeout_seconds: float | None = 10.0,
        watch_poll_seconds: float = 1.0,
    ) -> None:
        super().__init__(call_timeout_seconds)
        self.root = Path(root).resolve()
        self.watch_poll_seconds = watch_poll_seconds

    @property
    def display_root(self) -> str:
        return str(self.root)

    def absolute(self, path: str) -> Path:
        relative = normalize_relative(path)
        return self.root / relative if relative else self.root

    def _scan(self, path: str) -> list[ListedChild]:
        """List ``path`` without a timeout wrapper."""
        directory = self.absolute(path)
        children: list[ListedChild] = []
        try:
            with os.scandir(directory) as entries:
                for child in entries:
                    try:
                        st = child.stat(follow_symlinks=False)
                    except OSError:
                        continue
                    kind = _kind_for_mode(st.st_mode)
                    if kind is None:
                        continue
                    children.append(
                        ListedChild(
                            name=child.name,
                            kind=kind,
                            size=int(st.st_size) if kind is EntryKind.FILE else None,
                            mtime_ns=int(st.st_mtime_ns),
                        )
                    )
        except OSError as exc:
            raise translate_os_error(exc, path) from exc
        children.sort(key=lambda item: item.name)
        return children

    def list(self, path: str) -> list[ListedChild]:
        self._ensure_open(path)
        return call_with_timeout(lambda: self._scan(path), self.call_timeout_seconds, path)

    def stat(self, path: str) -> ListedChild:
        self._ensure_open(path)

        def run() -> ListedChild:
            target = self.absolute(path)
            try:
                st = os.lstat(target)
            except OSError as exc:
                raise translate_os_error(exc, path) from exc
            kind = _kind_for_mode(st.st_mode) or EntryKind.FILE
            return ListedChild(
                name=target.name,
                kind=kind,
                size=int(st.st_size) if kind is EntryKind.FILE else None,
                mtime_ns=int(st.st_mtime_ns),
            )

        return call_with_timeout(run, self.call_timeout_seconds, path)

    def read_file(self, path: str) -> BinaryIO:
        self._ensure_open(path)

        def run() -> BinaryIO:
            try:
                return open(self.absolute(path), "rb")
            except IsADirectoryError as exc:
                raise NotFound("is a directory", path) from exc
            except OSError as exc:
                raise translate_os_error(exc, path) from exc

        return call_with_timeout(run, self.call_timeout_seconds, path)

    def watch(
        self,
        path: str = "",
        *,
        stop: threading.Event | None = None,
        include_name: Callable[[str], bool] | None = None,
    ) -> Iterator[ChangeEvent]:
        self._ensure_open(path)
        return poll_directory_changes(
            self._scan,
            normalize_relative(path),
            interval_seconds=self.watch_poll_seconds,
            stop=stop,
            include_name=include_name,
        )


__all__ = ["LocalProvider", "translate_os_error"]
