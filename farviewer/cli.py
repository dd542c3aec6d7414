"""Command-line front door for farviewer.

Parses CLI options, resolves the target into a provider, and runs one
non-interactive mode: list the index, answer a quick-open query, or preview
a file.
"""

from __future__ import annotations

import argparse
import sys

from .config import Settings, load_settings, with_overrides
from .errors import NotFound, ProviderError, error_kind
from .index.types import ScanStatus
from .logging_setup import configure_logging
from .preview import DEFAULT_STYLE, render_preview
from .target import Target, open_provider, parse_target
from .workspace import Workspace

DEFAULT_WAIT_SECONDS = 30.0


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def _nonnegative_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("value must be >= 0")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="farviewer",
        description="Browse and fuzzy-search local or remote (user@host:/path) directory trees.",
    )
    parser.add_argument(
        "target",
        nargs="?",
        default=None,
        help="Directory or user@host:/path to open. Defaults to current directory.",
    )
    parser.add_argument("--ssh", action="store_true", help="Treat TARGET as a remote host[:path] even without user@.")
    parser.add_argument(
        "--ssh-option",
        action="append",
        default=[],
        metavar="OPT",
        help="Extra argument passed to ssh (repeatable).",
    )
    parser.add_argument("--quick-open", metavar="QUERY", help="Print ranked quick-open matches for QUERY and exit.")
    parser.add_argument("--limit", type=_positive_int, default=None, help="Maximum quick-open results.")
    parser.add_argument("--preview", metavar="PATH", help="Print a highlighted preview of PATH (relative to TARGET).")
    parser.add_argument("--style", default=DEFAULT_STYLE, help="Pygments style name for --preview.")
    parser.add_argument("--no-color", action="store_true", help="Disable color output.")
    parser.add_argument("--show-hidden", action="store_true", default=None, help="Index dot-files and dot-directories.")
    parser.add_argument(
        "--wait",
        type=_nonnegative_float,
        default=DEFAULT_WAIT_SECONDS,
        metavar="SECONDS",
        help="How long to wait for the scan before answering (default: %(default)s).",
    )
    parser.add_argument("--log-level", default=None, help="debug, info, warning or error.")
    parser.add_argument("--log-file", default=None, help="Log file path (default: platform log dir).")
    parser.add_argument("--log-stderr", action="store_true", help="Also log to stderr.")
    return parser


def format_status(status: ScanStatus) -> str:
    parts = [
        status.state.label(),
        f"{status.indexed_files} files",
        f"{status.indexed_entries} entries",
    ]
    if status.pending_directories:
        parts.append(f"{status.pending_directories} directories pending")
    if status.failed_directories:
        parts.append(f"{len(status.failed_directories)} directories skipped")
    return "[" + ", ".join(parts) + "]"


def run_preview(target: Target, path: str, settings: Settings, style: str, no_color: bool) -> None:
    provider = open_provider(target, settings)
    try:
        sys.stdout.write(render_preview(provider.read_file(path), path, style=style, no_color=no_color))
    finally:
        provider.close()


def run_index(target: Target, settings: Settings, query: str | None, wait_seconds: float) -> None:
    with Workspace.open(target, settings, monitor=False) as workspace:
        workspace.wait_for_scan(wait_seconds)
        if query is None:
            for path in workspace.index.snapshot().paths:
                sys.stdout.write(path + "\n")
        else:
            session = workspace.open_quick_open()
            seq = session.on_query_changed(query)
            result = session.wait_for_result(seq, timeout_seconds=max(1.0, wait_seconds))
            if result is not None:
                for item in result.items:
                    sys.stdout.write(f"{item.score}\t{item.path}\n")
        sys.stderr.write(format_status(workspace.status()) + "\n")


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and run the requested mode."""
    args = build_parser().parse_args(argv)
    settings = with_overrides(
        load_settings(),
        show_hidden=args.show_hidden,
        result_limit=args.limit,
        ssh_options=tuple(args.ssh_option),
    )
    log_file = args.log_file if args.log_file is not None else settings.logging.file
    configure_logging(args.log_level or settings.logging.level, log_file, include_stderr=args.log_stderr)

    try:
        target = parse_target(args.target, force_remote=args.ssh)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc

    try:
        if args.preview is not None:
            run_preview(target, args.preview, settings, args.style, args.no_color)
            return
        run_index(target, settings, args.quick_open, args.wait)
    except NotFound as exc:
        if not target.is_remote and args.preview is None:
            raise SystemExit(f"Path not found: {target.root}") from exc
        raise SystemExit(str(exc)) from exc
    except ProviderError as exc:
        raise SystemExit(f"{error_kind(exc)}: {exc}") from exc


if __name__ == "__main__":
    main()
