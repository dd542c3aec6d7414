"""Persistent JSON config helpers and typed runtime settings.

Stores indexer/quick-open tunables, the hidden-file preference, remote ssh
options, and logging preferences. All access is defensive: malformed or
missing config falls back to defaults.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

from platformdirs import user_config_dir, user_log_dir

APP_NAME = "farviewer"
CONFIG_FILENAME = "config.json"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
DEFAULT_LOG_PATH = Path(user_log_dir(APP_NAME, appauthor=False)) / f"{APP_NAME}.log"
CONFIG_PATH = DEFAULT_CONFIG_PATH


def _default_local_workers() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


@dataclass(frozen=True)
class IndexerSettings:
    """Walk, retry, and re-scan tunables for the directory indexer."""

    local_workers: int = field(default_factory=_default_local_workers)
    remote_workers: int = 4
    call_timeout_seconds: float = 10.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.25
    backoff_max_seconds: float = 4.0
    rescan_interval_seconds: float = 30.0
    watch_poll_seconds: float = 1.0
    show_hidden: bool = False

    def workers_for(self, is_remote: bool) -> int:
        return max(1, self.remote_workers if is_remote else self.local_workers)


@dataclass(frozen=True)
class QuickOpenSettings:
    """Result cap (K) and keystroke debounce for quick-open sessions."""

    result_limit: int = 200
    debounce_ms: int = 15

    @property
    def debounce_seconds(self) -> float:
        return max(0, self.debounce_ms) / 1000.0


@dataclass(frozen=True)
class RemoteSettings:
    max_in_flight: int = 4
    ssh_options: tuple[str, ...] = ()


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "warning"
    file: Path | None = DEFAULT_LOG_PATH


@dataclass(frozen=True)
class Settings:
    indexer: IndexerSettings = field(default_factory=IndexerSettings)
    quick_open: QuickOpenSettings = field(default_factory=QuickOpenSettings)
    remote: RemoteSettings = field(default_factory=RemoteSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


def load_config() -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object]) -> None:
    """Persist config data as pretty-printed JSON.

    Filesystem/serialization errors are ignored so an unwritable config never
    interrupts the session.
    """
    try:
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_PATH.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except (OSError, TypeError, ValueError):
        pass


def _section(data: dict[str, object], key: str) -> dict[str, object]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _positive_int(value: object, default: int) -> int:
    """Accept strictly positive integers; booleans and other types fall back."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return default
    return value


def _nonnegative_int(value: object, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return default
    return value


def _positive_float(value: object, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return default
    return float(value)


def _bool(value: object, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _string_tuple(value: object) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(item for item in value if isinstance(item, str) and item)


def settings_from_config(data: dict[str, object]) -> Settings:
    """Build validated ``Settings`` from a raw config mapping."""
    defaults = Settings()
    indexer_raw = _section(data, "indexer")
    quick_raw = _section(data, "quick_open")
    remote_raw = _section(data, "remote")
    logging_raw = _section(data, "logging")

    d_indexer = defaults.indexer
    indexer = IndexerSettings(
        local_workers=_positive_int(indexer_raw.get("local_workers"), d_indexer.local_workers),
        remote_workers=_positive_int(indexer_raw.get("remote_workers"), d_indexer.remote_workers),
        call_timeout_seconds=_positive_float(
            indexer_raw.get("call_timeout_seconds"), d_indexer.call_timeout_seconds
        ),
        max_retries=_nonnegative_int(indexer_raw.get("max_retries"), d_indexer.max_retries),
        backoff_initial_seconds=_positive_float(
            indexer_raw.get("backoff_initial_seconds"), d_indexer.backoff_initial_seconds
        ),
        backoff_max_seconds=_positive_float(
            indexer_raw.get("backoff_max_seconds"), d_indexer.backoff_max_seconds
        ),
        rescan_interval_seconds=_positive_float(
            indexer_raw.get("rescan_interval_seconds"), d_indexer.rescan_interval_seconds
        ),
        watch_poll_seconds=_positive_float(
            indexer_raw.get("watch_poll_seconds"), d_indexer.watch_poll_seconds
        ),
        show_hidden=_bool(indexer_raw.get("show_hidden"), d_indexer.show_hidden),
    )
    quick_open = QuickOpenSettings(
        result_limit=_positive_int(quick_raw.get("result_limit"), defaults.quick_open.result_limit),
        debounce_ms=_nonnegative_int(quick_raw.get("debounce_ms"), defaults.quick_open.debounce_ms),
    )
    remote = RemoteSettings(
        max_in_flight=_positive_int(remote_raw.get("max_in_flight"), defaults.remote.max_in_flight),
        ssh_options=_string_tuple(remote_raw.get("ssh_options")),
    )

    level = logging_raw.get("level")
    raw_file = logging_raw.get("file")
    log_file = defaults.logging.file
    if isinstance(raw_file, str) and raw_file.strip():
        log_file = Path(raw_file.strip()).expanduser()
    logging_settings = LoggingSettings(
        level=level.strip().casefold() if isinstance(level, str) and level.strip() else defaults.logging.level,
        file=log_file,
    )
    return Settings(indexer=indexer, quick_open=quick_open, remote=remote, logging=logging_settings)


def load_settings() -> Settings:
    """Load settings from the persisted config file."""
    return settings_from_config(load_config())


def with_overrides(
    settings: Settings,
    *,
    show_hidden: bool | None = None,
    result_limit: int | None = None,
    ssh_options: tuple[str, ...] = (),
) -> Settings:
    """Return ``settings`` with per-run CLI overrides applied."""
    indexer = settings.indexer
    if show_hidden is not None:
        indexer = replace(indexer, show_hidden=show_hidden)
    quick_open = settings.quick_open
    if result_limit is not None:
        quick_open = replace(quick_open, result_limit=max(1, result_limit))
    remote = settings.remote
    if ssh_options:
        remote = replace(remote, ssh_options=remote.ssh_options + tuple(ssh_options))
    return replace(settings, indexer=indexer, quick_open=quick_open, remote=remote)


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "IndexerSettings",
    "LoggingSettings",
    "QuickOpenSettings",
    "RemoteSettings",
    "Settings",
    "load_config",
    "load_settings",
    "save_config",
    "settings_from_config",
    "with_overrides",
]
