"""Provider capability interface shared by local and remote trees.

Every provider exposes the same blocking, timeout-bounded calls over paths
relative to its root (``""`` is the root itself, separators are ``/``).
"""

from __future__ import annotations

import enum
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import BinaryIO, TypeVar

from ..errors import ProviderError, Timeout, TransportError

T = TypeVar("T")


class EntryKind(enum.Enum):
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


@dataclass(frozen=True)
class ListedChild:
    """One child row returned by ``list`` (or the node itself for ``stat``)."""

    name: str
    kind: EntryKind
    size: int | None
    mtime_ns: int | None


@dataclass(frozen=True)
class ChangeEvent:
    """Directory whose listing should be reconciled again."""

    path: str
    removed: bool = False


def normalize_relative(path: str) -> str:
    """Normalize a root-relative path to ``a/b`` form (``""`` for the root).

    Only ``/`` separates segments; a backslash is an ordinary name character.
    """
    parts = [part for part in path.split("/") if part and part != "."]
    if ".." in parts:
        raise ValueError(f"path escapes provider root: {path!r}")
    return "/".join(parts)


def join_relative(parent: str, name: str) -> str:
    return f"{parent}/{name}" if parent else name


def parent_of(path: str) -> str:
    head, _sep, _tail = path.rpartition("/")
    return head


def is_within(path: str, directory: str) -> bool:
    """Return whether ``path`` equals ``directory`` or lies underneath it."""
    if not directory:
        return True
    return path == directory or path.startswith(directory + "/")


def call_with_timeout(func: Callable[[], T], timeout_seconds: float | None, path: str = "") -> T:
    """Run ``func`` bounded by ``timeout_seconds``.

    The call runs on a daemon thread; when the deadline passes the caller gets
    ``Timeout`` while the stuck thread is abandoned. ``None`` or a non-positive
    timeout calls ``func`` inline.
    """
    if timeout_seconds is None or timeout_seconds <= 0:
        return func()

    done = threading.Event()
    outcome: dict[str, object] = {}

    def run() -> None:
        try:
            outcome["value"] = func()
        except BaseException as exc:
            outcome["error"] = exc
        finally:
            done.set()

    worker = threading.Thread(target=run, name="farviewer-provider-call", daemon=True)
    worker.start()
    if not done.wait(timeout_seconds):
        raise Timeout(f"call exceeded {timeout_seconds:g}s", path)
    error = outcome.get("error")
    if error is not None:
        raise error  # type: ignore[misc]
    return outcome["value"]  # type: ignore[return-value]


class FilesystemProvider(ABC):
    """Uniform list/stat/read/watch access to one opened tree."""

    is_remote = False
    supports_watch = False

    def __init__(self, call_timeout_seconds: float | None = 10.0) -> None:
        self.call_timeout_seconds = call_timeout_seconds
        self._closed = False

    @property
    @abstractmethod
    def display_root(self) -> str:
        """Human-readable root (path or ``user@host:path``)."""

    @abstractmethod
    def list(self, path: str) -> list[ListedChild]:
        """List immediate children of ``path``."""

    @abstractmethod
    def stat(self, path: str) -> ListedChild:
        """Return metadata for ``path`` itself."""

    @abstractmethod
    def read_file(self, path: str) -> BinaryIO:
        """Open ``path`` for reading as a byte stream."""

    def watch(
        self,
        path: str = "",
        *,
        stop: threading.Event | None = None,
        include_name: Callable[[str], bool] | None = None,
    ) -> Iterator[ChangeEvent]:
        """Yield change events under ``path`` until ``stop`` is set.

        Children whose name fails ``include_name`` are neither watched nor
        reported. Implementations take their baseline before returning.
        """
        raise TransportError("watch is not supported by this provider", path)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    def _ensure_open(self, path: str) -> None:
        if self._closed:
            raise TransportError("provider is closed", path)

    def __enter__(self) -> FilesystemProvider:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


__all__ = [
    "ChangeEvent",
    "EntryKind",
    "FilesystemProvider",
    "ListedChild",
    "ProviderError",
    "call_with_timeout",
    "is_within",
    "join_relative",
    "normalize_relative",
    "parent_of",
]
