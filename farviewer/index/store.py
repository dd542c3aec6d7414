"""Shared path index with copy-on-write directory buckets.

Each listed directory owns one immutable ``DirectoryBucket`` (its children by
name plus the names of its child directories). Buckets live in a fixed number
of shards; a commit copies only the shards it touches and publishes a new
tuple of shards, so a reader's snapshot is just a reference to whatever was
current when it asked and nothing it holds is ever mutated. One commit may
reconcile several directories, and each directory's evictions and insertions
land in the same commit.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from functools import cached_property
from types import MappingProxyType

from ..providers.base import EntryKind, ListedChild, is_within, join_relative, parent_of
from .types import Entry

SHARD_COUNT = 128


@dataclass(frozen=True)
class DirectoryBucket:
    """One directory's listing: children keyed by name, in name order."""

    children: Mapping[str, Entry]
    subdirectories: frozenset[str]


Shards = tuple[Mapping[str, DirectoryBucket], ...]

_EMPTY_SHARDS: Shards = tuple(MappingProxyType({}) for _ in range(SHARD_COUNT))


def _shard_of(directory: str) -> int:
    return hash(directory) % SHARD_COUNT


def _name_of(path: str) -> str:
    return path.rpartition("/")[2]


@dataclass(frozen=True)
class DirectoryListing:
    """Fresh ``list`` result for one directory, stamped with a generation."""

    directory: str
    children: tuple[ListedChild, ...]
    generation: int


@dataclass(frozen=True)
class ReconcileReport:
    """What one directory reconciliation changed."""

    directory: str
    added: tuple[str, ...] = ()
    changed: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    subdirectories: tuple[str, ...] = ()
    attached: bool = True

    @property
    def touched(self) -> bool:
        return bool(self.added or self.changed or self.removed)


class IndexSnapshot:
    """Immutable view of the index at one version."""

    def __init__(self, version: int, shards: Shards) -> None:
        self.version = version
        self._shards = shards

    def _bucket(self, directory: str) -> DirectoryBucket | None:
        return self._shards[_shard_of(directory)].get(directory)

    def _buckets(self) -> Iterator[tuple[str, DirectoryBucket]]:
        for shard in self._shards:
            yield from shard.items()

    @cached_property
    def candidates(self) -> tuple[Entry, ...]:
        """Quick-open candidates (files and symlinks) in no particular order."""
        return tuple(
            entry
            for _directory, bucket in self._buckets()
            for entry in bucket.children.values()
            if not entry.is_directory
        )

    @cached_property
    def paths(self) -> tuple[str, ...]:
        """Candidate paths, sorted."""
        return tuple(sorted(entry.path for entry in self.candidates))

    @property
    def directories(self) -> tuple[str, ...]:
        """Directories whose listing is present in this snapshot."""
        return tuple(sorted(directory for directory, _bucket in self._buckets()))

    def children(self, directory: str) -> tuple[Entry, ...] | None:
        bucket = self._bucket(directory)
        return None if bucket is None else tuple(bucket.children.values())

    def get(self, path: str) -> Entry | None:
        if not path:
            return None
        bucket = self._bucket(parent_of(path))
        return None if bucket is None else bucket.children.get(_name_of(path))

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.get(path) is not None

    @cached_property
    def _size(self) -> int:
        return sum(len(bucket.children) for _directory, bucket in self._buckets())

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[str]:
        for _directory, bucket in self._buckets():
            for entry in bucket.children.values():
                yield entry.path

    @property
    def file_count(self) -> int:
        return len(self.candidates)


class _Draft:
    """Pending commit over a shard tuple; shards are copied on first write."""

    def __init__(self, shards: Shards) -> None:
        self._shards: list[Mapping[str, DirectoryBucket]] = list(shards)
        self._copied: dict[int, dict[str, DirectoryBucket]] = {}

    @property
    def changed(self) -> bool:
        return bool(self._copied)

    def get(self, directory: str) -> DirectoryBucket | None:
        return self._shards[_shard_of(directory)].get(directory)

    def keys(self) -> list[str]:
        return [directory for shard in self._shards for directory in shard]

    def _writable(self, directory: str) -> dict[str, DirectoryBucket]:
        index = _shard_of(directory)
        shard = self._copied.get(index)
        if shard is None:
            shard = dict(self._shards[index])
            self._copied[index] = shard
            self._shards[index] = shard
        return shard

    def put(self, directory: str, bucket: DirectoryBucket) -> None:
        self._writable(directory)[directory] = bucket

    def pop(self, directory: str) -> DirectoryBucket | None:
        if self.get(directory) is None:
            return None
        return self._writable(directory).pop(directory)

    def freeze(self) -> Shards:
        return tuple(
            MappingProxyType(shard) if index in self._copied else shard
            for index, shard in enumerate(self._shards)
        )


def _drop_subtrees(draft: _Draft, directories: Iterable[str]) -> int:
    """Remove listings at or under each of ``directories``; return entries dropped."""
    roots = list(directories)
    if not roots:
        return 0
    dropped = 0
    for key in [key for key in draft.keys() if any(is_within(key, root) for root in roots)]:
        bucket = draft.pop(key)
        if bucket is not None:
            dropped += len(bucket.children)
    return dropped


def _is_attached(draft: _Draft, directory: str) -> bool:
    """Return whether ``directory`` is still listed as a directory by its parent."""
    if not directory:
        return True
    parent = draft.get(parent_of(directory))
    return parent is not None and _name_of(directory) in parent.subdirectories


class PathIndex:
    """The single mutable index shared by the indexer and quick-open sessions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._shards: Shards = _EMPTY_SHARDS
        self._version = 0
        self._snapshot = IndexSnapshot(0, _EMPTY_SHARDS)

    @property
    def version(self) -> int:
        return self._version

    def snapshot(self) -> IndexSnapshot:
        """Return the immutable view for the current version."""
        with self._lock:
            if self._snapshot.version != self._version:
                self._snapshot = IndexSnapshot(self._version, self._shards)
            return self._snapshot

    def has_listing(self, directory: str) -> bool:
        return directory in self._shards[_shard_of(directory)]

    def _publish(self, shards: Shards) -> None:
        self._shards = shards
        self._version += 1

    def apply_listings(self, listings: Iterable[DirectoryListing]) -> list[ReconcileReport]:
        """Reconcile each listing against its directory's previous contents.

        Unchanged children keep their existing ``Entry`` (and generation);
        changed or new children get the listing's generation; children that
        disappeared are evicted together with any listed subtree below them.
        A batch that changes nothing publishes no new version.
        """
        listings = list(listings)
        if not listings:
            return []
        reports: list[ReconcileReport] = []
        with self._lock:
            draft = _Draft(self._shards)
            for listing in listings:
                reports.append(self._reconcile(draft, listing))
            if draft.changed:
                self._publish(draft.freeze())
        return reports

    def _reconcile(self, draft: _Draft, listing: DirectoryListing) -> ReconcileReport:
        directory = listing.directory
        if not _is_attached(draft, directory):
            return ReconcileReport(directory=directory, attached=False)
        bucket = draft.get(directory)
        previous = dict(bucket.children) if bucket is not None else {}
        added: list[str] = []
        changed: list[str] = []
        subdirectories: list[str] = []
        stale_subtrees: list[str] = []
        merged: dict[str, Entry] = {}

        for child in sorted(listing.children, key=lambda item: item.name):
            path = join_relative(directory, child.name)
            old = previous.pop(child.name, None)
            if old is not None and old.same_metadata(child.kind, child.size, child.mtime_ns):
                merged[child.name] = old
            else:
                merged[child.name] = Entry(
                    path=path,
                    kind=child.kind,
                    size=child.size,
                    mtime_ns=child.mtime_ns,
                    generation=listing.generation,
                )
                if old is None:
                    added.append(path)
                else:
                    changed.append(path)
                    if old.is_directory and child.kind is not EntryKind.DIRECTORY:
                        stale_subtrees.append(path)
            if child.kind is EntryKind.DIRECTORY:
                subdirectories.append(path)

        removed = [entry.path for entry in previous.values()]
        stale_subtrees.extend(entry.path for entry in previous.values() if entry.is_directory)
        _drop_subtrees(draft, stale_subtrees)

        if bucket is None or added or changed or removed:
            draft.put(
                directory,
                DirectoryBucket(
                    children=MappingProxyType(merged),
                    subdirectories=frozenset(_name_of(path) for path in subdirectories),
                ),
            )
        return ReconcileReport(
            directory=directory,
            added=tuple(added),
            changed=tuple(changed),
            removed=tuple(sorted(removed)),
            subdirectories=tuple(subdirectories),
        )

    def evict(self, directory: str, keep_entry: bool = False) -> int:
        """Evict ``directory``'s subtree and (unless ``keep_entry``) its entry in the parent listing.

        Evicting ``""`` empties the index. Returns the number of entries removed.
        """
        with self._lock:
            draft = _Draft(self._shards)
            removed = _drop_subtrees(draft, [directory])
            if directory and not keep_entry:
                parent = parent_of(directory)
                name = _name_of(directory)
                bucket = draft.get(parent)
                if bucket is not None and name in bucket.children:
                    children = {key: entry for key, entry in bucket.children.items() if key != name}
                    draft.put(
                        parent,
                        DirectoryBucket(MappingProxyType(children), bucket.subdirectories - {name}),
                    )
                    removed += 1
            if not draft.changed:
                return 0
            self._publish(draft.freeze())
            return removed

    def clear(self) -> None:
        with self._lock:
            self._publish(_EMPTY_SHARDS)


__all__ = [
    "DirectoryBucket",
    "DirectoryListing",
    "IndexSnapshot",
    "PathIndex",
    "ReconcileReport",
]
