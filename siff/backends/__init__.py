"""Packaging backends (repomix, yek) and the helpers they share."""

from __future__ import annotations

from pathlib import Path

from .clipboard import copy_text_to_clipboard
from .process import ProcessOutput, run_cancellable
from .repomix import RepomixBackend, RepomixInstaller, check_repomix_dependencies, validate_repomix_options
from .types import (
    Backend,
    BackendError,
    BackendOutcome,
    BackendUnavailable,
    CancellationToken,
    OutputFormat,
    PackOptions,
    RunCancelled,
)
from .yek import YekBackend, check_yek_dependencies, validate_yek_options


def validate_options(options: PackOptions, selected_files: list[Path]) -> list[str]:
    """Return non-blocking warnings for a run with ``options.backend``."""
    if options.backend is Backend.YEK:
        return validate_yek_options(options, selected_files)
    return validate_repomix_options(options, selected_files)


__all__ = [
    "Backend",
    "BackendError",
    "BackendOutcome",
    "BackendUnavailable",
    "CancellationToken",
    "OutputFormat",
    "PackOptions",
    "ProcessOutput",
    "RepomixBackend",
    "RepomixInstaller",
    "RunCancelled",
    "YekBackend",
    "check_repomix_dependencies",
    "check_yek_dependencies",
    "copy_text_to_clipboard",
    "run_cancellable",
    "validate_options",
]
