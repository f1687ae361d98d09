"""Shared datatypes for packaging backends."""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path


class Backend(Enum):
    REPOMIX = "repomix"
    YEK = "yek"

    @property
    def display_name(self) -> str:
        return "Repomix" if self is Backend.REPOMIX else "Yek"

    @classmethod
    def parse(cls, value: object, default: "Backend") -> "Backend":
        """Parse persisted names leniently (``"Repomix"`` and ``"repomix"`` both work)."""
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return default


class OutputFormat(Enum):
    PLAIN_TEXT = "plain"
    MARKDOWN = "markdown"
    XML = "xml"

    @property
    def display_name(self) -> str:
        return {
            OutputFormat.PLAIN_TEXT: "Plain Text",
            OutputFormat.MARKDOWN: "Markdown",
            OutputFormat.XML: "XML",
        }[self]

    @property
    def repomix_flag(self) -> str:
        return f"--style={self.value}"

    def next(self) -> "OutputFormat":
        """Cycle plain text -> markdown -> xml -> plain text."""
        order = (OutputFormat.PLAIN_TEXT, OutputFormat.MARKDOWN, OutputFormat.XML)
        return order[(order.index(self) + 1) % len(order)]

    @classmethod
    def parse(cls, value: object, default: "OutputFormat") -> "OutputFormat":
        if isinstance(value, str):
            lowered = value.strip().lower().replace(" ", "")
            aliases = {"plaintext": "plain", "plain": "plain", "markdown": "markdown", "xml": "xml"}
            canonical = aliases.get(lowered)
            for member in cls:
                if member.value == canonical:
                    return member
        return default


@dataclass(frozen=True)
class PackOptions:
    """User-tunable options handed to a backend for one run."""

    backend: Backend = Backend.REPOMIX
    compress: bool = False
    remove_comments: bool = False
    include_file_tree: bool = False
    output_format: OutputFormat = OutputFormat.XML
    output_file: Path | None = None

    def with_changes(self, **changes: object) -> "PackOptions":
        return replace(self, **changes)


@dataclass(frozen=True)
class BackendOutcome:
    """Successful backend result: human-readable message plus optional output path."""

    message: str
    output_file: Path | None = None


class BackendError(Exception):
    """Run-level failure reported to the user as a status message."""


class CancellationToken:
    """Cooperative cancellation signal shared between coordinator and backend."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return cancellation state."""
        return self._event.wait(timeout)


class RunCancelled(Exception):
    """Raised inside a backend when its cancellation token fires."""


class BackendUnavailable(Exception):
    """Startup-time environment problem that prevents a backend from ever running."""


__all__ = [
    "Backend",
    "BackendError",
    "BackendUnavailable",
    "BackendOutcome",
    "CancellationToken",
    "OutputFormat",
    "PackOptions",
    "RunCancelled",
]
