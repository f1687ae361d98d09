"""Main interactive event loop for the terminal UI.

Single-threaded: every iteration renders when dirty, polls one key with a
short timeout, dispatches it, then drains background results and advances
timers. Background threads only ever talk to this loop through queues.
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from dataclasses import dataclass

from ..input import read_key
from ..render import RenderContext, render_frame, tree_view_rows
from .app import SiffApp
from .keys import handle_key
from .terminal import TerminalController


@dataclass(frozen=True)
class RuntimeLoopTiming:
    """Timing constants controlling interactive loop behavior."""

    key_poll_ms: int = 100


def run_main_loop(
    app: SiffApp,
    terminal: TerminalController,
    stdin_fd: int,
    timing: RuntimeLoopTiming = RuntimeLoopTiming(),
    read: Callable[[int, int | None], str] = read_key,
    render: Callable[[RenderContext], None] = render_frame,
) -> None:
    """Run until a quit key arrives."""
    last_size: tuple[int, int] | None = None
    while True:
        size = terminal.size()
        if size != last_size:
            last_size = size
            app.set_view_rows(tree_view_rows(size[1]))
            app.dirty = True

        if app.dirty:
            render(app.render_context(*size))
            app.dirty = False

        try:
            key = read(stdin_fd, timing.key_poll_ms)
        except KeyboardInterrupt:
            key = "CTRL_C"
        if key and handle_key(app, key):
            return

        app.poll_background()


def run_app(app: SiffApp, timing: RuntimeLoopTiming = RuntimeLoopTiming()) -> None:
    """Enter raw mode, run the loop, and always release background work."""
    stdin_fd = sys.stdin.fileno()
    terminal = TerminalController(stdin_fd, sys.stdout.fileno())
    try:
        with terminal.raw_mode():
            terminal.write("\033[2J")
            run_main_loop(app, terminal, stdin_fd, timing)
    finally:
        app.shutdown()


__all__ = ["RuntimeLoopTiming", "run_app", "run_main_loop"]
