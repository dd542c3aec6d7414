"""Remote provider: directory listings fetched through a command channel."""

from __future__ import annotations

import io
import posixpath
import shlex
import threading
from decimal import Decimal, InvalidOperation
from typing import BinaryIO

from ..errors import NotFound, TransportError
from .base import EntryKind, FilesystemProvider, ListedChild, normalize_relative
from .ssh import RemoteChannel

LISTING_FORMAT = r"%y\t%s\t%T@\t%f\0"
_KIND_BY_TYPE = {
    "f": EntryKind.FILE,
    "d": EntryKind.DIRECTORY,
    "l": EntryKind.SYMLINK,
}


def _mtime_ns(raw: str) -> int | None:
    try:
        return int(Decimal(raw) * 1_000_000_000)
    except (InvalidOperation, ValueError):
        return None


def parse_listing(payload: bytes, skip_dot_entries: bool = True) -> list[ListedChild]:
    """Parse NUL-separated ``find -printf`` records into listed children.

    Records for other node types (sockets, devices, fifos) and malformed
    records are skipped.
    """
    children: list[ListedChild] = []
    for raw in payload.split(b"\0"):
        if not raw.strip():
            continue
        record = raw.decode("utf-8", errors="surrogateescape")
        fields = record.split("\t", 3)
        if len(fields) != 4:
            continue
        type_code, size_text, mtime_text, name = fields
        kind = _KIND_BY_TYPE.get(type_code)
        if kind is None or not name:
            continue
        if skip_dot_entries and name in {".", ".."}:
            continue
        size: int | None = None
        if kind is EntryKind.FILE:
            try:
                size = int(size_text)
            except ValueError:
                size = None
        children.append(ListedChild(name=name, kind=kind, size=size, mtime_ns=_mtime_ns(mtime_text)))
    children.sort(key=lambda item: item.name)
    return children


class RemoteProvider(FilesystemProvider):
    """Provider for a tree reachable only through a remote channel.

    Every channel call holds one permit from a shared bounded set so a walk
    never has more than ``max_in_flight`` requests on the link.
    """

    is_remote = True
    supports_watch = False

    def __init__(
        self,
        channel: RemoteChannel,
        root: str,
        call_timeout_seconds: float | None = 10.0,
        max_in_flight: int = 4,
    ) -> None:
        super().__init__(call_timeout_seconds)
        self.channel = channel
        self.root = root or "/"
        self.max_in_flight = max(1, max_in_flight)
        self._permits = threading.BoundedSemaphore(self.max_in_flight)

    @property
    def display_root(self) -> str:
        return f"{self.channel.describe()}:{self.root}"

    def absolute(self, path: str) -> str:
        relative = normalize_relative(path)
        return posixpath.join(self.root, relative) if relative else self.root

    def _run(self, command: str, path: str) -> bytes:
        self._ensure_open(path)
        with self._permits:
            return self.channel.run(command, self.call_timeout_seconds, path)

    def list(self, path: str) -> list[ListedChild]:
        command = (
            f"cd -- {shlex.quote(self.absolute(path))} && "
            f"find . -mindepth 1 -maxdepth 1 -printf {shlex.quote(LISTING_FORMAT)}"
        )
        return parse_listing(self._run(command, path))

    def stat(self, path: str) -> ListedChild:
        target = self.absolute(path)
        command = f"find {shlex.quote(target)} -maxdepth 0 -printf {shlex.quote(LISTING_FORMAT)}"
        rows = parse_listing(self._run(command, path), skip_dot_entries=False)
        if not rows:
            raise NotFound("no such file or directory", path)
        row = rows[0]
        return ListedChild(
            name=posixpath.basename(target.rstrip("/")) or target,
            kind=row.kind,
            size=row.size,
            mtime_ns=row.mtime_ns,
        )

    def read_file(self, path: str) -> BinaryIO:
        payload = self._run(f"cat -- {shlex.quote(self.absolute(path))}", path)
        return io.BytesIO(payload)

    def close(self) -> None:
        if self.closed:
            return
        super().close()
        try:
            self.channel.close()
        except TransportError:
            pass


__all__ = ["LISTING_FORMAT", "RemoteProvider", "parse_listing"]
