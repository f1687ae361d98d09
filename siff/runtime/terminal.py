"""Terminal control helpers for the TUI session.

Owns raw-mode lifecycle, alternate-screen switching, and mouse toggles.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import termios
import tty


class TerminalController:
    """Manage terminal mode transitions for the interactive session."""

    def __init__(self, stdin_fd: int, stdout_fd: int) -> None:
        """Capture tty state and bind stdin/stdout file descriptors."""
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd
        self._saved_tty_state = termios.tcgetattr(stdin_fd)
        self._mouse_reporting_enabled = False

    def enable_tui_mode(self) -> None:
        """Enter raw alternate-screen mode with mouse reporting enabled."""
        tty.setraw(self.stdin_fd, termios.TCSAFLUSH)
        # Enter alternate screen, enable mouse reporting, and hide cursor.
        os.write(self.stdout_fd, b"\x1b[?1049h\x1b[?25l\x1b[?1000h\x1b[?1002h\x1b[?1006h")
        self._mouse_reporting_enabled = True

    def disable_tui_mode(self) -> None:
        """Restore normal terminal state and disable TUI mouse mode."""
        os.write(self.stdout_fd, b"\x1b[?1000l\x1b[?1002l\x1b[?1006l\x1b[?25h\x1b[?1049l")
        self._mouse_reporting_enabled = False
        termios.tcsetattr(self.stdin_fd, termios.TCSAFLUSH, self._saved_tty_state)

    def size(self) -> tuple[int, int]:
        """Return ``(columns, rows)`` of the attached terminal."""
        size = shutil.get_terminal_size((80, 24))
        return size.columns, size.lines

    def write(self, data: str) -> None:
        os.write(self.stdout_fd, data.encode("utf-8", errors="replace"))

    @contextlib.contextmanager
    def raw_mode(self):
        """Context manager that brackets code with TUI enter/exit calls."""
        try:
            self.enable_tui_mode()
            yield
        finally:
            self.disable_tui_mode()


__all__ = ["TerminalController"]
