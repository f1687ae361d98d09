"""Yek backend: run the ``yek`` executable on selected files and copy its stdout."""

from __future__ import annotations

import shutil
from collections.abc import Callable
from pathlib import Path

from loguru import logger

from ..file_tree_model import TreeStore, generate_file_tree_text
from .clipboard import copy_text_to_clipboard
from .process import describe_failure, run_cancellable
from .repomix import format_tree_section, relative_include_paths
from .types import BackendError, BackendOutcome, BackendUnavailable, CancellationToken, PackOptions

MAX_YEK_FILES = 10_000
LARGE_SELECTION_WARNING = 1000


def find_yek_binary() -> str | None:
    return shutil.which("yek")


def check_yek_dependencies() -> str:
    """Return the yek executable path or raise ``BackendUnavailable``."""
    binary = find_yek_binary()
    if binary is None:
        raise BackendUnavailable("yek not found on PATH. Install it from https://github.com/bodo-run/yek")
    return binary


def build_yek_args(selected_files: list[Path], root: Path) -> list[str]:
    if len(selected_files) > MAX_YEK_FILES:
        raise BackendError(
            f"Too many files selected ({len(selected_files)}). "
            "Yek may fail with large file counts. Please select fewer files."
        )
    args = relative_include_paths(selected_files, root, reject_commas=False)
    if not args:
        raise BackendError("No valid files to process after security validation")
    return args


def validate_yek_options(options: PackOptions, selected_files: list[Path]) -> list[str]:
    warnings: list[str] = []
    if not selected_files:
        warnings.append("No files selected for processing")
    if len(selected_files) > LARGE_SELECTION_WARNING:
        warnings.append("Large number of files selected, May take a moment to process")
    return warnings


class YekBackend:
    """Pack a selection with yek and deliver the result to the clipboard."""

    def __init__(
        self,
        binary: str | None = None,
        run_process: Callable[..., object] = run_cancellable,
        copy_to_clipboard: Callable[[str, CancellationToken], str] = copy_text_to_clipboard,
    ) -> None:
        self.binary = binary
        self._run_process = run_process
        self._copy_to_clipboard = copy_to_clipboard

    def run(
        self,
        selected_files: list[Path],
        options: PackOptions,
        root: Path,
        store: TreeStore,
        token: CancellationToken,
    ) -> BackendOutcome:
        if not selected_files:
            raise BackendError("No files selected for processing")
        binary = self.binary or find_yek_binary()
        if binary is None:
            raise BackendError("yek not found on PATH")

        args = build_yek_args(selected_files, root)
        logger.info(f"Running yek on {len(args)} files in {root}")
        output = self._run_process([binary, *args], token, cwd=root)
        if output.returncode != 0:
            raise BackendError(f"Yek failed with exit code {output.returncode}: {describe_failure(output)}")

        content = output.stdout
        if options.include_file_tree:
            content = format_tree_section(generate_file_tree_text(store), options.output_format) + content
        if options.output_file is not None:
            try:
                options.output_file.write_text(content, encoding="utf-8")
            except OSError as exc:
                raise BackendError(f"Failed to write output file {options.output_file}: {exc}") from exc

        self._copy_to_clipboard(content, token)
        return BackendOutcome(
            message=f"{len(selected_files)} files processed and copied to clipboard",
            output_file=options.output_file,
        )


__all__ = [
    "MAX_YEK_FILES",
    "YekBackend",
    "build_yek_args",
    "check_yek_dependencies",
    "find_yek_binary",
    "validate_yek_options",
]
