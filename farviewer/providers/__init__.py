"""Filesystem providers: one interface over local and remote trees.

- ``LocalProvider`` lists the local disk and emulates watch by polling
- ``RemoteProvider`` lists a remote tree through a command channel
- ``SshChannel`` is the ssh-backed channel used for ``user@host:path`` targets
"""

from __future__ import annotations

from .base import (
    ChangeEvent,
    EntryKind,
    FilesystemProvider,
    ListedChild,
    call_with_timeout,
    is_within,
    join_relative,
    normalize_relative,
    parent_of,
)
from .local import LocalProvider
from .remote import RemoteProvider, parse_listing
from .ssh import RemoteChannel, SshChannel

__all__ = [
    "ChangeEvent",
    "EntryKind",
    "FilesystemProvider",
    "ListedChild",
    "LocalProvider",
    "RemoteChannel",
    "RemoteProvider",
    "SshChannel",
    "call_with_timeout",
    "is_within",
    "join_relative",
    "normalize_relative",
    "parent_of",
    "parse_listing",
]
