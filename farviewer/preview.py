"""Preview handoff: decode provider bytes, neutralize control bytes, highlight.

The core never interprets file contents beyond this: bytes come from
``read_file`` on the active provider and leave as terminal text.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import BinaryIO

from pygments import highlight
from pygments.formatters import TerminalFormatter
from pygments.lexers import TextLexer, get_lexer_for_filename
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

DEFAULT_STYLE = "monokai"
DEFAULT_PREVIEW_BYTES = 512 * 1024
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
_FORMATTERS: dict[str, TerminalFormatter] = {}


def decode_text(payload: bytes) -> str:
    for encoding in ("utf-8", "utf-8-sig", "latin-1"):
        try:
            return payload.decode(encoding)
        except UnicodeDecodeError:
            continue
    return payload.decode("utf-8", errors="replace")


def sanitize_terminal_text(source: str) -> str:
    """Escape terminal control bytes to avoid side effects (bell, cursor moves, etc.)."""
    if _CONTROL_RE.search(source) is None:
        return source

    out: list[str] = []
    for ch in source:
        code = ord(ch)
        if ch in {"\n", "\r", "\t"}:
            out.append(ch)
            continue
        # C0 controls + DEL + C1 controls.
        if code < 32 or code == 127 or 0x80 <= code <= 0x9F:
            out.append(f"\\x{code:02x}")
            continue
        out.append(ch)
    return "".join(out)


def _normalize_style(style: str) -> str:
    try:
        get_style_by_name(style)
    except ClassNotFound:
        return DEFAULT_STYLE
    return style


def _formatter_for_style(style: str) -> TerminalFormatter:
    formatter = _FORMATTERS.get(style)
    if formatter is None:
        formatter = TerminalFormatter(style=style)
        _FORMATTERS[style] = formatter
    return formatter


def colorize_source(source: str, path: str, style: str = DEFAULT_STYLE) -> str:
    """Highlight ``source`` with the lexer guessed from ``path``'s file name."""
    name = PurePosixPath(path).name
    try:
        lexer = get_lexer_for_filename(name, source)
    except ClassNotFound:
        lexer = TextLexer()
    return highlight(source, lexer, _formatter_for_style(_normalize_style(style)))


def read_preview(stream: BinaryIO, max_bytes: int = DEFAULT_PREVIEW_BYTES) -> tuple[str, bool]:
    """Read at most ``max_bytes`` from ``stream``; return ``(text, truncated)``."""
    with stream:
        payload = stream.read(max_bytes + 1)
    truncated = len(payload) > max_bytes
    return sanitize_terminal_text(decode_text(payload[:max_bytes])), truncated


def render_preview(
    stream: BinaryIO,
    path: str,
    style: str = DEFAULT_STYLE,
    no_color: bool = False,
    max_bytes: int = DEFAULT_PREVIEW_BYTES,
) -> str:
    text, truncated = read_preview(stream, max_bytes)
    rendered = text if no_color else colorize_source(text, path, style)
    if truncated:
        if not rendered.endswith("\n"):
            rendered += "\n"
        rendered += f"... (preview truncated at {max_bytes} bytes)\n"
    return rendered


__all__ = [
    "colorize_source",
    "decode_text",
    "read_preview",
    "render_preview",
    "sanitize_terminal_text",
]
