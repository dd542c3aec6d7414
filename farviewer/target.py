"""Opened-target parsing and provider construction.

``<path>`` opens a local tree; ``user@host:/path`` (or ``ssh://user@host:port/path``)
opens a remote tree over ssh. The resulting ``Target`` is created once at
startup and never mutated.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

from .config import Settings
from .errors import NotFound
from .providers.base import FilesystemProvider
from .providers.local import LocalProvider
from .providers.remote import RemoteProvider
from .providers.ssh import SshChannel

_SCP_LIKE_RE = re.compile(r"^(?:(?P<user>[^@/\s:]+)@)?(?P<host>[^@/\s:]+):(?P<path>.*)$")


class TargetKind(enum.Enum):
    LOCAL = "local"
    REMOTE = "remote"


@dataclass(frozen=True)
class Target:
    """What was opened: local root, or remote host/user/port plus remote root."""

    kind: TargetKind
    root: str
    host: str | None = None
    user: str | None = None
    port: int | None = None

    @property
    def is_remote(self) -> bool:
        return self.kind is TargetKind.REMOTE

    @property
    def destination(self) -> str:
        """ssh destination (``user@host`` or ``host``)."""
        if self.host is None:
            raise ValueError("local targets have no ssh destination")
        return f"{self.user}@{self.host}" if self.user else self.host

    def display(self) -> str:
        if not self.is_remote:
            return self.root
        return f"{self.destination}:{self.root}"


def local_target(path: str | Path) -> Target:
    return Target(kind=TargetKind.LOCAL, root=str(Path(path).expanduser().resolve()))


def parse_target(text: str | None, *, force_remote: bool = False) -> Target:
    """Parse a CLI target string.

    The scp-like ``host:path`` form without a user is only treated as remote
    when ``force_remote`` is set, so local names containing ``:`` stay local.
    An empty remote path means ``/``.
    """
    if text is None or not text.strip():
        if force_remote:
            raise ValueError("a remote target needs a host")
        return local_target(Path.cwd())
    raw = text.strip()

    if raw.startswith("ssh://"):
        parts = urlsplit(raw)
        if not parts.hostname:
            raise ValueError(f"missing host in {raw!r}")
        return Target(
            kind=TargetKind.REMOTE,
            root=parts.path or "/",
            host=parts.hostname,
            user=parts.username,
            port=parts.port,
        )

    match = _SCP_LIKE_RE.match(raw)
    if match is not None and (match.group("user") or force_remote):
        return Target(
            kind=TargetKind.REMOTE,
            root=match.group("path") or "/",
            host=match.group("host"),
            user=match.group("user"),
        )
    if force_remote:
        return Target(kind=TargetKind.REMOTE, root="/", host=raw)
    return local_target(raw)


def open_provider(target: Target, settings: Settings | None = None) -> FilesystemProvider:
    """Build the provider for ``target``; local roots must exist and be directories."""
    settings = settings if settings is not None else Settings()
    timeout = settings.indexer.call_timeout_seconds
    if not target.is_remote:
        root = Path(target.root)
        if not root.is_dir():
            raise NotFound("not a directory", target.root)
        return LocalProvider(
            root,
            call_timeout_seconds=timeout,
            watch_poll_seconds=settings.indexer.watch_poll_seconds,
        )

    options = list(settings.remote.ssh_options)
    if target.port is not None:
        options.extend(["-p", str(target.port)])
    channel = SshChannel(target.destination, options)
    return RemoteProvider(
        channel,
        target.root,
        call_timeout_seconds=timeout,
        max_in_flight=settings.remote.max_in_flight,
    )


__all__ = ["Target", "TargetKind", "local_target", "open_provider", "parse_target"]
