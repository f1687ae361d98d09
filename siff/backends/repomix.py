"""Repomix backend: isolated npm install, command construction and invocation.

Repomix is installed once per pinned version into the user cache directory
and always run with an isolated environment so user or project repomix
config never changes the output.
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
import threading
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from loguru import logger
from platformdirs import user_cache_dir

from ..file_tree_model import TreeStore, generate_file_tree_text
from .clipboard import copy_text_to_clipboard
from .process import describe_failure, run_cancellable
from .types import (
    BackendError,
    BackendOutcome,
    BackendUnavailable,
    CancellationToken,
    OutputFormat,
    PackOptions,
)

APP_NAME = "siff"
REPOMIX_VERSION = "0.3.7"
DIRECTORY_PATTERN_THRESHOLD = 1000
WILDCARD_DIRECTORY_THRESHOLD = 10
LARGE_SELECTION_WARNING = 100
OUTPUT_FILENAME = "siff-repomix-output.txt"
COMMON_NODE_DIRS = ("/usr/local/bin", "/usr/bin", "/bin", "/opt/homebrew/bin")
ENTRY_CANDIDATES = (
    ("bin", "repomix.cjs"),
    ("bin", "repomix.js"),
    ("dist", "cli.js"),
    ("lib", "cli.js"),
    ("index.js",),
)


def default_cache_dir(version: str = REPOMIX_VERSION) -> Path:
    return Path(user_cache_dir(APP_NAME, appauthor=False)) / "repomix" / version


class InstallState(Enum):
    NOT_STARTED = "not_started"
    DOWNLOADING = "downloading"
    READY = "ready"
    FAILED = "failed"


class RepomixInstaller:
    """Install repomix into the cache on a background thread and track progress.

    ``install`` runs npm and may be replaced in tests. Status reads and
    writes go through one lock because the worker thread updates them.
    """

    def __init__(
        self,
        cache_dir: Path | None = None,
        version: str = REPOMIX_VERSION,
        run_npm: Callable[[Path], None] | None = None,
    ) -> None:
        self.version = version
        self.cache_dir = cache_dir if cache_dir is not None else default_cache_dir(version)
        self._run_npm = run_npm if run_npm is not None else self._npm_install
        self._lock = threading.Lock()
        self._state = InstallState.READY if self.find_entry() is not None else InstallState.NOT_STARTED
        self._detail = ""
        self._last_reported: tuple[InstallState, str] = (self._state, self._detail)

    def find_entry(self) -> Path | None:
        package_dir = self.cache_dir / "node_modules" / "repomix"
        for parts in ENTRY_CANDIDATES:
            candidate = package_dir.joinpath(*parts)
            if candidate.exists():
                return candidate
        return None

    @property
    def state(self) -> InstallState:
        with self._lock:
            return self._state

    @property
    def detail(self) -> str:
        with self._lock:
            return self._detail

    def _set(self, state: InstallState, detail: str = "") -> None:
        with self._lock:
            self._state = state
            self._detail = detail

    def start_background_install(self) -> bool:
        """Start installing unless already ready or in progress; return whether it started."""
        with self._lock:
            if self._state in {InstallState.READY, InstallState.DOWNLOADING}:
                return False
            self._state = InstallState.DOWNLOADING
            self._detail = "Initializing..."

        worker = threading.Thread(target=self._install_worker, name="siff-repomix-install", daemon=True)
        worker.start()
        return True

    def _install_worker(self) -> None:
        try:
            self._set(InstallState.DOWNLOADING, "Creating cache directory...")
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            package_json = {
                "name": "siff-repomix-cache",
                "version": "1.0.0",
                "private": True,
                "dependencies": {"repomix": self.version},
            }
            (self.cache_dir / "package.json").write_text(json.dumps(package_json, indent=2) + "\n", encoding="utf-8")
            self._set(InstallState.DOWNLOADING, f"Installing repomix {self.version}...")
            self._run_npm(self.cache_dir)
            self._set(InstallState.DOWNLOADING, "Verifying installation...")
            if self.find_entry() is None:
                raise BackendError("Repomix installation failed, no valid entry point found")
        except Exception as exc:
            logger.warning(f"Repomix install failed: {exc}")
            shutil.rmtree(self.cache_dir, ignore_errors=True)
            self._set(InstallState.FAILED, str(exc))
            return
        logger.info(f"Repomix {self.version} ready in {self.cache_dir}")
        self._set(InstallState.READY)

    @staticmethod
    def _npm_install(cache_dir: Path) -> None:
        output = run_cancellable(
            ["npm", "install", "--no-audit", "--no-fund", "--silent"],
            CancellationToken(),
            cwd=cache_dir,
        )
        if output.returncode != 0:
            raise BackendError(f"npm install failed: {describe_failure(output)}")

    def poll_change(self) -> tuple[InstallState, str] | None:
        """Return ``(state, detail)`` when it changed since the previous poll."""
        with self._lock:
            current = (self._state, self._detail)
        if current == self._last_reported:
            return None
        self._last_reported = current
        return current

    def ensure_entry(self) -> Path:
        """Return the installed entry point or raise ``BackendError`` describing why not."""
        state = self.state
        if state is InstallState.READY:
            entry = self.find_entry()
            if entry is not None:
                return entry
            self._set(InstallState.NOT_STARTED)
            raise BackendError("Repomix cache was deleted, restarting download...")
        if state is InstallState.DOWNLOADING:
            raise BackendError(f"Repomix is still downloading: {self.detail}")
        if state is InstallState.FAILED:
            raise BackendError(f"Repomix download failed: {self.detail}")
        raise BackendError("Repomix download not started yet")


def check_repomix_dependencies(cache_dir: Path | None = None) -> None:
    """Fail fast when node/npm are missing or the cache directory is unwritable."""
    if shutil.which("node") is None:
        raise BackendUnavailable("Node.js not found. Please install Node.js to use repomix integration.")
    if shutil.which("npm") is None:
        raise BackendUnavailable("Npm not found. Please install Node.js and npm to use repomix integration.")
    target = cache_dir if cache_dir is not None else default_cache_dir()
    try:
        target.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise BackendUnavailable(f"Cannot create repomix cache directory {target}: {exc}") from exc
    if not os.access(target, os.W_OK):
        raise BackendUnavailable(f"Repomix cache directory is not writable: {target}")


def relative_include_paths(selected_files: list[Path], root: Path, *, reject_commas: bool) -> list[str]:
    """Convert selected files to safe root-relative strings.

    Paths outside ``root``, containing ``..``, empty, starting with ``-`` or
    (when ``reject_commas``) containing a comma are skipped with a warning.
    """
    out: list[str] = []
    for path in selected_files:
        try:
            relative = path.relative_to(root)
        except ValueError:
            logger.warning(f"Skipping file outside working directory: {path}")
            continue
        text = relative.as_posix()
        if ".." in relative.parts:
            logger.warning(f"Skipping file with path traversal attempt: {text}")
            continue
        if not text or text == "." or text.startswith("-"):
            logger.warning(f"Skipping file with invalid path: {text}")
            continue
        if reject_commas and "," in text:
            logger.warning(f"Skipping file with comma in filename: {text}")
            continue
        out.append(text)
    return out


def build_directory_patterns(relative_files: list[str]) -> list[str]:
    """Group files by directory; directories with many files become ``dir/**``."""
    by_directory: dict[str, list[str]] = {}
    for text in relative_files:
        parent, _, name = text.rpartition("/")
        by_directory.setdefault(parent, []).append(name)

    patterns: list[str] = []
    for directory in sorted(by_directory):
        names = by_directory[directory]
        prefix = f"{directory}/" if directory else ""
        if len(names) > WILDCARD_DIRECTORY_THRESHOLD:
            patterns.append(f"{prefix}**")
        else:
            patterns.extend(f"{prefix}{name}" for name in names)
    return patterns


def build_repomix_args(
    selected_files: list[Path],
    options: PackOptions,
    root: Path,
    output_path: Path,
) -> list[str]:
    """Build the repomix argument vector (entry point excluded)."""
    args = [
        "--no-gitignore",
        "--no-default-patterns",
        "--no-directory-structure",
        "--output",
        str(output_path),
    ]
    if options.compress:
        args.append("--compress")
    if options.remove_comments:
        args.append("--remove-comments")
    args.append(options.output_format.repomix_flag)

    relative = relative_include_paths(selected_files, root, reject_commas=True)
    if not relative:
        raise BackendError("No valid files to process after security validation")
    if len(selected_files) > DIRECTORY_PATTERN_THRESHOLD:
        includes = build_directory_patterns(relative)
    else:
        includes = relative
    args.extend(["--include", ",".join(includes), "."])
    return args


def isolated_environment(fake_home: Path) -> dict[str, str]:
    """Environment that hides global/user repomix configuration."""
    path_dirs: list[str] = []
    node = shutil.which("node")
    if node is not None:
        path_dirs.append(str(Path(node).resolve().parent))
    path_dirs.extend(directory for directory in COMMON_NODE_DIRS if directory not in path_dirs)
    home = str(fake_home)
    return {
        "NODE_ENV": "production",
        "NO_UPDATE_NOTIFIER": "1",
        "NO_COLOR": "1",
        "HOME": home,
        "USERPROFILE": home,
        "XDG_CONFIG_HOME": home,
        "APPDATA": home,
        "PATH": os.pathsep.join(path_dirs),
    }


def format_tree_section(tree_text: str, output_format: OutputFormat) -> str:
    if output_format is OutputFormat.XML:
        return f"<directory_structure>\n{tree_text}</directory_structure>\n\n"
    if output_format is OutputFormat.MARKDOWN:
        return f"## Directory Structure\n\n```\n{tree_text}```\n\n"
    return f"Directory Structure:\n{tree_text}\n"


def validate_repomix_options(options: PackOptions, selected_files: list[Path]) -> list[str]:
    """Return non-blocking warnings about the pending repomix run."""
    warnings: list[str] = []
    if not selected_files:
        warnings.append("No files selected for processing")
    if len(selected_files) > LARGE_SELECTION_WARNING:
        warnings.append(
            f"Large number of files selected ({len(selected_files)}). May take a moment to process."
        )
    if options.output_file is not None and not options.output_file.parent.exists():
        warnings.append(f"Output directory does not exist: {options.output_file.parent}")
    return warnings


class RepomixBackend:
    """Run repomix on a selection and deliver the result to the clipboard."""

    def __init__(
        self,
        installer: RepomixInstaller,
        run_process: Callable[..., object] = run_cancellable,
        copy_to_clipboard: Callable[[str, CancellationToken], str] = copy_text_to_clipboard,
    ) -> None:
        self.installer = installer
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
        entry = self.installer.ensure_entry()

        with tempfile.TemporaryDirectory(prefix="siff-repomix-") as scratch:
            scratch_dir = Path(scratch)
            output_path = scratch_dir / OUTPUT_FILENAME
            fake_home = scratch_dir / "home"
            fake_home.mkdir()
            args = ["node", str(entry), *build_repomix_args(selected_files, options, root, output_path)]
            logger.info(f"Running repomix on {len(selected_files)} files in {root}")
            output = self._run_process(args, token, cwd=root, env=isolated_environment(fake_home))
            if output.returncode != 0:
                raise BackendError(
                    f"Repomix failed with exit code {output.returncode}: {describe_failure(output)}"
                )
            if not output_path.exists():
                raise BackendError("Repomix did not create the expected output file")
            content = output_path.read_text(encoding="utf-8", errors="replace")

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
    "InstallState",
    "REPOMIX_VERSION",
    "RepomixBackend",
    "RepomixInstaller",
    "build_directory_patterns",
    "build_repomix_args",
    "check_repomix_dependencies",
    "default_cache_dir",
    "format_tree_section",
    "isolated_environment",
    "relative_include_paths",
    "validate_repomix_options",
]
