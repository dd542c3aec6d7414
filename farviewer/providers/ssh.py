"""``ssh`` client wrapper used as the remote command channel.

Authentication and host-key handling belong to the user's ssh setup; the
channel only runs one shell command per call and maps failures onto the
provider error taxonomy.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from typing import Protocol

from ..errors import NotFound, PermissionDenied, ProviderError, Timeout, TransportError

logger = logging.getLogger(__name__)

SSH_TRANSPORT_EXIT_CODE = 255
DEFAULT_SSH_OPTIONS: tuple[str, ...] = ("-o", "BatchMode=yes")


class RemoteChannel(Protocol):
    """Ready-to-use command channel to the remote host."""

    def run(self, command: str, timeout_seconds: float | None, path: str = "") -> bytes:
        """Run ``command`` remotely and return its stdout."""
        ...

    def describe(self) -> str:
        ...

    def close(self) -> None:
        ...


def classify_remote_failure(stderr: str, path: str) -> ProviderError:
    """Translate a remote command's stderr into a provider error."""
    lowered = stderr.casefold()
    message = stderr.strip().splitlines()[-1] if stderr.strip() else "remote command failed"
    if "no such file" in lowered or "not a directory" in lowered or "is a directory" in lowered:
        return NotFound(message, path)
    if "permission denied" in lowered:
        return PermissionDenied(message, path)
    return TransportError(message, path)


class SshChannel:
    """Run commands through the system ``ssh`` binary."""

    def __init__(
        self,
        destination: str,
        ssh_options: Sequence[str] = (),
        *,
        executable: str = "ssh",
    ) -> None:
        self.destination = destination
        self.ssh_options = tuple(DEFAULT_SSH_OPTIONS) + tuple(ssh_options)
        self.executable = executable
        self._closed = False

    def describe(self) -> str:
        return self.destination

    def command_line(self, command: str) -> list[str]:
        return [self.executable, *self.ssh_options, self.destination, command]

    def run(self, command: str, timeout_seconds: float | None, path: str = "") -> bytes:
        if self._closed:
            raise TransportError("ssh channel is closed", path)
        try:
            proc = subprocess.run(
                self.command_line(command),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=False,
                timeout=timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            raise Timeout(f"ssh call exceeded {timeout_seconds:g}s", path) from exc
        except OSError as exc:
            raise TransportError(f"failed to run ssh: {exc}", path) from exc

        if proc.returncode == 0:
            return proc.stdout
        stderr = proc.stderr.decode("utf-8", errors="replace")
        if proc.returncode == SSH_TRANSPORT_EXIT_CODE:
            logger.warning("ssh transport failure for %s: %s", self.destination, stderr.strip())
            raise TransportError(stderr.strip() or "ssh connection failed", path)
        raise classify_remote_failure(stderr, path)

    def close(self) -> None:
        self._closed = True


__all__ = ["RemoteChannel", "SshChannel", "classify_remote_failure"]
