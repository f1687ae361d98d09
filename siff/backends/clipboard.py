"""Clipboard delivery for packaged output."""

from __future__ import annotations

import os
import shutil
import sys

from .process import run_cancellable
from .types import BackendError, CancellationToken


def clipboard_commands() -> list[list[str]]:
    """Return candidate clipboard commands for the current platform, in preference order."""
    if sys.platform == "darwin":
        return [["pbcopy"]]
    if os.name == "nt":
        return [["clip"]]
    return [
        ["wl-copy"],
        ["xclip", "-selection", "clipboard"],
        ["xsel", "--clipboard", "--input"],
    ]


def copy_text_to_clipboard(text: str, token: CancellationToken) -> str:
    """Copy ``text`` with the first available clipboard tool.

    Returns the tool name used. Raises ``BackendError`` when no tool is
    installed or every installed tool fails.
    """
    failures: list[str] = []
    for command in clipboard_commands():
        if shutil.which(command[0]) is None:
            continue
        output = run_cancellable(command, token, input_text=text)
        if output.returncode == 0:
            return command[0]
        failures.append(f"{command[0]}: {output.stderr.strip() or f'exit code {output.returncode}'}")

    if failures:
        raise BackendError(f"Clipboard command failed: {'; '.join(failures)}")
    raise BackendError("No clipboard utility found. Please install wl-copy, xclip or xsel")


__all__ = [
    "clipboard_commands",
    "copy_text_to_clipboard",
]
