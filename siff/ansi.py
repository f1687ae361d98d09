"""ANSI-aware text measurement and line shaping utilities.

Styled rows are built from plain strings plus SGR codes; these helpers keep
clipping and padding aligned when color codes and wide chars are present.
"""

from __future__ import annotations

import re
import unicodedata

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")
RESET = "\x1b[0m"
BOLD = "\x1b[1m"
DIM = "\x1b[2m"
REVERSE = "\x1b[7m"
FG_RED = "\x1b[31m"
FG_GREEN = "\x1b[32m"
FG_YELLOW = "\x1b[33m"
FG_BLUE = "\x1b[34m"
FG_MAGENTA = "\x1b[35m"
FG_CYAN = "\x1b[36m"
FG_WHITE = "\x1b[37m"
FG_GRAY = "\x1b[90m"


def char_display_width(ch: str) -> int:
    """Return terminal column width for one character.

    Combining marks consume no columns; East Asian wide/fullwidth characters
    consume two.
    """
    if unicodedata.combining(ch):
        return 0
    if unicodedata.east_asian_width(ch) in {"W", "F"}:
        return 2
    return 1


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE_RE.sub("", text)


def display_width(text: str) -> int:
    """Visible width of ``text`` with escape sequences ignored."""
    return sum(char_display_width(ch) for ch in strip_ansi(text))


def clip_ansi_line(text: str, max_cols: int) -> str:
    """Trim a styled line to at most ``max_cols`` display columns.

    ANSI escape sequences are preserved verbatim and do not count toward width.
    """
    if max_cols <= 0 or not text:
        return ""

    out: list[str] = []
    col = 0
    i = 0
    n = len(text)
    while i < n:
        if text[i] == "\x1b":
            match = ANSI_ESCAPE_RE.match(text, i)
            if match:
                out.append(match.group(0))
                i = match.end()
                continue
        ch = text[i]
        w = char_display_width(ch)
        if col + w > max_cols:
            break
        out.append(ch)
        col += w
        i += 1

    return "".join(out)


def fit_ansi_line(text: str, width: int) -> str:
    """Clip to ``width`` columns and right-pad with spaces, resetting style at the end."""
    clipped = clip_ansi_line(text, width)
    padding = max(0, width - display_width(clipped))
    return f"{clipped}{RESET}{' ' * padding}"


def style(text: str, *codes: str) -> str:
    if not codes:
        return text
    return f"{''.join(codes)}{text}{RESET}"


__all__ = [
    "ANSI_ESCAPE_RE",
    "clip_ansi_line",
    "display_width",
    "fit_ansi_line",
    "strip_ansi",
    "style",
]
