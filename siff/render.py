"""Frame rendering for the tree browser.

``build_frame_lines`` is pure (snapshot in, styled lines out) so layout can be
unit tested; ``render_frame`` writes one full frame to stdout.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from .ansi import (
    BOLD,
    FG_CYAN,
    FG_GRAY,
    FG_GREEN,
    FG_RED,
    FG_WHITE,
    FG_YELLOW,
    fit_ansi_line,
    style,
)
from .backends.types import Backend, PackOptions
from .runtime.status import StatusKind
from .tokens.counter import format_token_count

HEADER_ROWS = 2
FOOTER_ROWS = 2
ROW_PREFIX = "► "
ROW_PREFIX_WIDTH = 2
INDENT_WIDTH = 2
EXPANSION_ICON_WIDTH = 3

HINTS = (
    "↑/↓ navigate • ←/→ collapse/expand • Space select • E/C expand/collapse all • "
    "A/U select/unselect all • r run • x cancel • b backend • q quit"
)


@dataclass(frozen=True)
class TreeRow:
    """Display snapshot of one visible node."""

    path: Path
    name: str
    depth: int
    is_directory: bool
    is_selected: bool
    is_expanded: bool
    has_selected_descendants: bool
    token_count: int | None


@dataclass(frozen=True)
class RenderContext:
    root_name: str
    selected_count: int
    total_tokens: int
    options: PackOptions
    rows: tuple[TreeRow, ...]
    selected_index: int
    scroll_offset: int
    status_message: str
    status_kind: StatusKind
    is_processing: bool
    width: int
    height: int


def tree_view_rows(height: int) -> int:
    """Number of terminal rows available for tree entries."""
    return max(1, height - HEADER_ROWS - FOOTER_ROWS)


def row_indent(depth: int) -> int:
    """Display indentation of a node; the scan root (depth 0) is never shown."""
    return max(0, depth - 1) * INDENT_WIDTH


def is_expansion_icon_hit(depth: int, col: int) -> bool:
    """Whether 0-based column ``col`` falls on a directory's ``[+]``/``[-]`` icon."""
    start = ROW_PREFIX_WIDTH + row_indent(depth)
    return start <= col <= start + EXPANSION_ICON_WIDTH


def token_count_color(count: int) -> str:
    if count < 1_000:
        return FG_GREEN
    if count < 10_000:
        return FG_YELLOW
    return FG_RED


def format_tree_row(row: TreeRow, highlighted: bool) -> str:
    indent = " " * row_indent(row.depth)
    if row.is_directory:
        icon = "[-]" if row.is_expanded else "[+]"
        if highlighted:
            color = FG_WHITE
        elif row.is_selected:
            color = FG_GREEN
        elif row.has_selected_descendants:
            color = FG_YELLOW
        else:
            color = FG_CYAN
        show_tokens = row.is_selected or row.has_selected_descendants
    else:
        icon = "●" if row.is_selected else "○"
        color = FG_GREEN if row.is_selected and not highlighted else FG_WHITE
        show_tokens = row.is_selected

    prefix = ROW_PREFIX if highlighted else " " * ROW_PREFIX_WIDTH
    codes = (BOLD, color) if highlighted else (color,)
    text = style(f"{prefix}{indent}{icon} {row.name}", *codes)
    if show_tokens and row.token_count is not None:
        text += style(f" ({format_token_count(row.token_count)})", token_count_color(row.token_count))
    return text


def build_options_line(options: PackOptions) -> str:
    def flag(enabled: bool, label: str, key: str) -> str:
        symbol = "●" if enabled else "○"
        return style(f"{symbol} {label} ({key})", FG_GREEN if enabled else FG_GRAY)

    backend = style(f"Backend: {options.backend.display_name} (b)", FG_CYAN)
    parts = [backend]
    if options.backend is Backend.REPOMIX:
        parts.append(flag(options.compress, "Compress", "c"))
        parts.append(flag(options.remove_comments, "Remove comments", "m"))
    parts.append(flag(options.include_file_tree, "File tree", "t"))
    parts.append(style(f"Format: {options.output_format.display_name} (f)", FG_GREEN))
    return "  ".join(parts)


def build_header_line(context: RenderContext) -> str:
    info = style(f" {context.root_name}  •  Selected: {context.selected_count} items", FG_CYAN)
    tokens = style(f"Tokens: {format_token_count(context.total_tokens)} ", FG_YELLOW)
    info_width = len(f" {context.root_name}  •  Selected: {context.selected_count} items")
    tokens_width = len(f"Tokens: {format_token_count(context.total_tokens)} ")
    gap = max(1, context.width - info_width - tokens_width)
    return f"{info}{' ' * gap}{tokens}"


def status_color(kind: StatusKind) -> str:
    return {
        StatusKind.ERROR: FG_RED,
        StatusKind.WARNING: FG_YELLOW,
        StatusKind.RUNNING: FG_CYAN,
        StatusKind.COMPLETION: FG_GREEN,
        StatusKind.BULK: FG_CYAN,
        StatusKind.PROGRESS: FG_CYAN,
    }.get(kind, FG_WHITE)


def build_frame_lines(context: RenderContext) -> list[str]:
    """Return exactly ``context.height`` lines, each fitted to ``context.width``."""
    width = max(1, context.width)
    lines = [build_header_line(context), " " + build_options_line(context.options)]

    visible = tree_view_rows(context.height)
    window = context.rows[context.scroll_offset : context.scroll_offset + visible]
    for offset, row in enumerate(window):
        lines.append(format_tree_row(row, context.scroll_offset + offset == context.selected_index))
    if not context.rows:
        lines.append(style("  (no files)", FG_GRAY))
    while len(lines) < HEADER_ROWS + visible:
        lines.append("")

    status = context.status_message
    if not status and context.is_processing:
        status = "Processing... (x to cancel)"
    lines.append(style(f" {status}", status_color(context.status_kind)) if status else "")
    lines.append(style(f" {HINTS}", FG_YELLOW))
    return [fit_ansi_line(line, width) for line in lines[: max(1, context.height)]]


def render_frame(context: RenderContext) -> None:
    out = ["\033[H"]
    out.append("\r\n".join(build_frame_lines(context)))
    os.write(sys.stdout.fileno(), "".join(out).encode("utf-8", errors="replace"))


__all__ = [
    "FOOTER_ROWS",
    "HEADER_ROWS",
    "RenderContext",
    "TreeRow",
    "build_frame_lines",
    "format_tree_row",
    "is_expansion_icon_hit",
    "render_frame",
    "token_count_color",
    "tree_view_rows",
]
