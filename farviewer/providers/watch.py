"""Poll-based change detection over directory listings.

Each watched directory is reduced to a cheap digest of its children's
metadata. Consecutive polling rounds compare digests and report only the
directories whose listing changed, which is what the indexer re-lists.
"""

from __future__ import annotations

import hashlib
import threading
from collections import deque
from collections.abc import Callable, Iterable, Iterator

from ..errors import NotFound, PermissionDenied
from .base import ChangeEvent, EntryKind, ListedChild, is_within, join_relative


def _update_digest(digest, token: str) -> None:
    """Append a token plus separator byte to a hash digest."""
    digest.update(token.encode("utf-8", errors="surrogateescape"))
    digest.update(b"\0")


def directory_signature(children: Iterable[ListedChild]) -> str:
    """Build a digest over sorted child metadata for one directory."""
    digest = hashlib.blake2b(digest_size=20)
    rows = sorted(children, key=lambda child: child.name)
    for child in rows:
        _update_digest(
            digest,
            f"child:{child.name}:{child.kind.value}:{child.size or 0}:{child.mtime_ns or 0}",
        )
    return digest.hexdigest()


def snapshot_signatures(
    list_directory: Callable[[str], list[ListedChild]],
    root: str,
    include_name: Callable[[str], bool] | None = None,
) -> dict[str, str]:
    """Return ``{directory: signature}`` for every reachable directory under ``root``.

    Directories that vanish or refuse access mid-walk are simply absent.
    """
    signatures: dict[str, str] = {}
    pending: deque[str] = deque([root])
    while pending:
        directory = pending.popleft()
        try:
            children = list_directory(directory)
        except (NotFound, PermissionDenied):
            continue
        if include_name is not None:
            children = [child for child in children if include_name(child.name)]
        signatures[directory] = directory_signature(children)
        for child in children:
            if child.kind is EntryKind.DIRECTORY:
                pending.append(join_relative(directory, child.name))
    return signatures


def diff_signatures(previous: dict[str, str], current: dict[str, str]) -> list[ChangeEvent]:
    """Return change events between two signature maps, parents before children."""
    events: list[ChangeEvent] = []
    for directory in sorted(set(previous) | set(current), key=lambda item: (item.count("/"), item)):
        before = previous.get(directory)
        after = current.get(directory)
        if before == after:
            continue
        if after is None:
            if any(event.removed and is_within(directory, event.path) for event in events):
                continue
            events.append(ChangeEvent(path=directory, removed=True))
            continue
        events.append(ChangeEvent(path=directory))
    return events


def poll_directory_changes(
    list_directory: Callable[[str], list[ListedChild]],
    root: str = "",
    *,
    interval_seconds: float = 1.0,
    stop: threading.Event | None = None,
    include_name: Callable[[str], bool] | None = None,
) -> Iterator[ChangeEvent]:
    """Record a baseline now, then return an iterator of later change events.

    The baseline is taken before this function returns, so any change made
    after the call is reported. Events stop once ``stop`` is set. Provider
    errors other than per-directory absence or denial propagate: from this
    call while taking the baseline, later from the iterator.
    """
    stop_event = stop if stop is not None else threading.Event()
    baseline = snapshot_signatures(list_directory, root, include_name)
    return _poll_rounds(list_directory, root, baseline, interval_seconds, stop_event, include_name)


def _poll_rounds(
    list_directory: Callable[[str], list[ListedChild]],
    root: str,
    previous: dict[str, str],
    interval_seconds: float,
    stop_event: threading.Event,
    include_name: Callable[[str], bool] | None,
) -> Iterator[ChangeEvent]:
    while not stop_event.wait(max(0.0, interval_seconds)):
        current = snapshot_signatures(list_directory, root, include_name)
        events = diff_signatures(previous, current)
        previous = current
        for event in events:
            if stop_event.is_set():
                return
            yield event


__all__ = [
    "diff_signatures",
    "directory_signature",
    "poll_directory_changes",
    "snapshot_signatures",
]
